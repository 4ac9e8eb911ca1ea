import pytest

from app.features.permissions.modules import (
    ActionKey,
    ModuleKey,
    PAGE_MODULES,
    PATH_MODULE_MAP,
    PageAction,
    module_for_path,
)


def test_action_key_string_form():
    assert str(ActionKey(ModuleKey.EMPLOYEES, PageAction.DELETE)) == "employees:delete"
    assert str(ActionKey("job-applications", "reference-manual-pdf")) == "job-applications:reference-manual-pdf"


def test_parse_known_names_become_enums():
    key = ActionKey.parse("leaves:approve")
    assert key.module is ModuleKey.LEAVES
    assert key.action is PageAction.APPROVE


def test_parse_keeps_unknown_names_as_strings():
    key = ActionKey.parse("payroll:run")
    assert key == ActionKey("payroll", "run")
    assert str(key) == "payroll:run"


@pytest.mark.parametrize("raw", ["employees", ":view", "employees:", ""])
def test_parse_rejects_malformed_keys(raw):
    with pytest.raises(ValueError):
        ActionKey.parse(raw)


def test_unknown_paths_belong_to_dashboard():
    assert module_for_path("/employees") is ModuleKey.EMPLOYEES
    assert module_for_path("/unknown-xyz") is ModuleKey.DASHBOARD
    assert module_for_path("/employees/123") is ModuleKey.DASHBOARD


def test_path_map_is_read_only():
    with pytest.raises(TypeError):
        PATH_MODULE_MAP["/payroll"] = ModuleKey.SETTINGS


def test_every_module_offers_view():
    for module in PAGE_MODULES:
        assert PageAction.VIEW in module.actions, module.name
    assert len({module.key for module in PAGE_MODULES}) == len(PAGE_MODULES)
