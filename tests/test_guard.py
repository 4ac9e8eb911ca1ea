from dataclasses import dataclass, field

import pytest

from conftest import make_user

from app.features.permissions.guard import (
    AuthState,
    GuardOutcome,
    NO_PERMISSIONS,
    evaluate_route,
)


@dataclass
class FakeView:
    loading: bool = False
    failed: bool = False
    pages: set = field(default_factory=set)

    def has_page_access(self, path: str) -> bool:
        return path in self.pages


STAFF = make_user("u-staff", role="user")
ADMIN = make_user("u-admin", role="admin")
EMPLOYEE = make_user("u-emp", role=None, metadata_role="employee")


def test_auth_loading_comes_first():
    decision = evaluate_route(AuthState(user=None, loading=True), NO_PERMISSIONS, required_page="/employees")
    assert decision.outcome == GuardOutcome.LOADING
    assert not decision.allowed


def test_permissions_loading():
    decision = evaluate_route(AuthState(user=STAFF), FakeView(loading=True), required_page="/employees")
    assert decision.outcome == GuardOutcome.LOADING


def test_unauthenticated_redirects_with_origin():
    decision = evaluate_route(AuthState(), NO_PERMISSIONS, current_path="/leaves", login_path="/signin")
    assert decision.outcome == GuardOutcome.UNAUTHENTICATED
    assert decision.redirect_to == "/signin"
    assert decision.from_path == "/leaves"


def test_unauthenticated_uses_configured_login_path():
    decision = evaluate_route(AuthState(), NO_PERMISSIONS)
    assert decision.redirect_to == "/login"


def test_employee_rejected_despite_grants():
    view = FakeView(pages={"/employees"})
    decision = evaluate_route(AuthState(user=EMPLOYEE), view, required_page="/employees")
    assert decision.outcome == GuardOutcome.ROLE_REJECTED
    assert decision.redirect_to == "/employee-login"


def test_restricted_roles_can_be_overridden():
    contractor = make_user("u-c", role="user", metadata_role="contractor")
    decision = evaluate_route(
        AuthState(user=contractor), FakeView(), restricted_roles={"contractor"}, employee_login_path="/portal"
    )
    assert decision.outcome == GuardOutcome.ROLE_REJECTED
    assert decision.redirect_to == "/portal"


def test_failed_load_is_a_permission_error():
    decision = evaluate_route(AuthState(user=STAFF), FakeView(failed=True), required_page="/employees")
    assert decision.outcome == GuardOutcome.PERMISSION_ERROR
    assert decision.action == "reload"


def test_admin_allowed_despite_failed_load():
    decision = evaluate_route(AuthState(user=ADMIN), FakeView(failed=True), required_page="/employees")
    assert decision.allowed


def test_missing_page_access_is_denied():
    decision = evaluate_route(AuthState(user=STAFF), FakeView(pages={"/leaves"}), required_page="/employees")
    assert decision.outcome == GuardOutcome.ACCESS_DENIED
    assert decision.action == "go_back"


@pytest.mark.parametrize("user,pages,required_page", [
    (STAFF, {"/employees"}, "/employees"),
    (STAFF, set(), None),
    (ADMIN, set(), "/settings"),
])
def test_allowed(user, pages, required_page):
    decision = evaluate_route(AuthState(user=user), FakeView(pages=pages), required_page=required_page)
    assert decision.outcome == GuardOutcome.ALLOWED
    assert decision.allowed
