"""
Static permission vocabulary: permission types, page modules, page actions
and the route path to module lookup.
"""
from enum import Enum
from types import MappingProxyType
from typing import NamedTuple, Union


class PermissionType(str, Enum):
    PAGE_ACCESS = "page_access"
    PAGE_ACTION = "page_action"
    FEATURE_ACCESS = "feature_access"


class ModuleKey(str, Enum):
    DASHBOARD = "dashboard"
    EMPLOYEES = "employees"
    CLIENTS = "clients"
    LEAVES = "leaves"
    DOCUMENTS = "documents"
    DOCUMENT_SIGNING = "document-signing"
    COMPLIANCE = "compliance"
    COMPLIANCE_TYPES = "compliance-types"
    CARE_WORKER_STATEMENTS = "care-worker-statements"
    REPORTS = "reports"
    JOB_APPLICATIONS = "job-applications"
    SETTINGS = "settings"
    USER_MANAGEMENT = "user-management"


class PageAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    UPLOAD = "upload"
    SIGN = "sign"
    GENERATE = "generate"
    EXPORT = "export"
    IMPORT = "import"
    BULK_DELETE = "bulk-delete"
    DOWNLOAD_PDF = "download-pdf"
    REFERENCE_SEND_REQUEST = "reference-send-request"
    REFERENCE_DOWNLOAD_PDF = "reference-download-pdf"
    REFERENCE_MANUAL_PDF = "reference-manual-pdf"


ModuleLike = Union[ModuleKey, str]
ActionLike = Union[PageAction, str]


def _value(item: Union[Enum, str]) -> str:
    return item.value if isinstance(item, Enum) else str(item)


class ActionKey(NamedTuple):
    """A ``page_action`` permission key: module plus action, stored as ``"module:action"``."""
    module: ModuleLike
    action: ActionLike

    def __str__(self) -> str:
        return f"{_value(self.module)}:{_value(self.action)}"

    @classmethod
    def parse(cls, key: str) -> "ActionKey":
        """
        Parse ``"module:action"``. Known names become enum members, unknown
        ones stay strings so rows written by newer clients still round-trip.

        Raises:
            ValueError: if the key has no ``:`` separator or an empty part
        """
        module, sep, action = key.partition(":")
        if not sep or not module or not action:
            raise ValueError(f"Not a page action key: {key!r}")
        try:
            parsed_module: ModuleLike = ModuleKey(module)
        except ValueError:
            parsed_module = module
        try:
            parsed_action: ActionLike = PageAction(action)
        except ValueError:
            parsed_action = action
        return cls(parsed_module, parsed_action)


DEFAULT_MODULE = ModuleKey.DASHBOARD

# Route path -> module key. Process-wide constant.
PATH_MODULE_MAP: MappingProxyType = MappingProxyType({
    "/": ModuleKey.DASHBOARD,
    "/employees": ModuleKey.EMPLOYEES,
    "/clients": ModuleKey.CLIENTS,
    "/leaves": ModuleKey.LEAVES,
    "/documents": ModuleKey.DOCUMENTS,
    "/document-signing": ModuleKey.DOCUMENT_SIGNING,
    "/compliance": ModuleKey.COMPLIANCE,
    "/reports": ModuleKey.REPORTS,
    "/job-applications": ModuleKey.JOB_APPLICATIONS,
    "/settings": ModuleKey.SETTINGS,
    "/user-management": ModuleKey.USER_MANAGEMENT,
})


def module_for_path(path: str) -> ModuleKey:
    """Module guarding ``path``; unknown paths belong to the dashboard."""
    return PATH_MODULE_MAP.get(path, DEFAULT_MODULE)


class PageModule(NamedTuple):
    name: str
    key: ModuleKey
    path: str
    actions: tuple[PageAction, ...]


# Every page module an administrator can hand out permissions for
PAGE_MODULES: tuple[PageModule, ...] = (
    PageModule("Dashboard", ModuleKey.DASHBOARD, "/", (PageAction.VIEW,)),
    PageModule("Employees", ModuleKey.EMPLOYEES, "/employees", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE,
    )),
    PageModule("Clients", ModuleKey.CLIENTS, "/clients", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE,
        PageAction.IMPORT, PageAction.BULK_DELETE,
    )),
    PageModule("Leaves", ModuleKey.LEAVES, "/leaves", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE, PageAction.APPROVE,
    )),
    PageModule("Documents", ModuleKey.DOCUMENTS, "/documents", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE, PageAction.UPLOAD,
    )),
    PageModule("Document Signing", ModuleKey.DOCUMENT_SIGNING, "/document-signing", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE, PageAction.SIGN,
    )),
    PageModule("Compliance", ModuleKey.COMPLIANCE, "/compliance", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE,
    )),
    PageModule("Compliance Types", ModuleKey.COMPLIANCE_TYPES, "/compliance/types", (PageAction.VIEW,)),
    PageModule("Care Worker Statements", ModuleKey.CARE_WORKER_STATEMENTS, "/compliance/statements", (
        PageAction.VIEW,
    )),
    PageModule("Reports", ModuleKey.REPORTS, "/reports", (
        PageAction.VIEW, PageAction.GENERATE, PageAction.EXPORT,
    )),
    PageModule("Job Applications", ModuleKey.JOB_APPLICATIONS, "/job-applications", (
        PageAction.VIEW, PageAction.DELETE, PageAction.EDIT, PageAction.DOWNLOAD_PDF,
        PageAction.REFERENCE_SEND_REQUEST, PageAction.REFERENCE_DOWNLOAD_PDF, PageAction.REFERENCE_MANUAL_PDF,
    )),
    PageModule("Settings", ModuleKey.SETTINGS, "/settings", (PageAction.VIEW, PageAction.EDIT)),
    PageModule("User Management", ModuleKey.USER_MANAGEMENT, "/user-management", (
        PageAction.VIEW, PageAction.CREATE, PageAction.EDIT, PageAction.DELETE,
    )),
)
