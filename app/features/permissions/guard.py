"""
Route guard for the admin portal.

``evaluate_route`` decides what a protected area shows, checking in order:

1. authentication or permissions still loading -> LOADING
2. nobody signed in -> UNAUTHENTICATED (redirect to login, remember origin)
3. restricted account role (employee) -> ROLE_REJECTED, whatever rows exist
4. permission load failed, not an administrator -> PERMISSION_ERROR
5. required page not accessible, not an administrator -> ACCESS_DENIED
6. ALLOWED

Administrators can only be stopped by 2 and 3.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


class GuardOutcome(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ROLE_REJECTED = "role_rejected"
    PERMISSION_ERROR = "permission_error"
    ACCESS_DENIED = "access_denied"
    ALLOWED = "allowed"


class PermissionView(Protocol):
    @property
    def loading(self) -> bool: ...

    @property
    def failed(self) -> bool: ...

    def has_page_access(self, path: str) -> bool: ...


class _NoPermissions:
    """Stands in for a store when nobody is signed in."""
    loading = False
    failed = False

    def has_page_access(self, path: str) -> bool:
        return False


NO_PERMISSIONS = _NoPermissions()


@dataclass(frozen=True)
class AuthState:
    """What the identity layer knows: the signed-in user (if any) and whether it is still resolving."""
    user: Optional[Any] = None
    loading: bool = False


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    message: str = ""
    redirect_to: Optional[str] = None
    from_path: Optional[str] = None
    action: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOWED


class RouteGuardRejection(Exception):
    """Raised by the guard dependency for any outcome other than ALLOWED."""

    def __init__(self, decision: GuardDecision):
        super().__init__(decision.message)
        self.decision = decision


def evaluate_route(
    auth: AuthState,
    permissions: PermissionView,
    required_page: Optional[str] = None,
    current_path: str = "/",
    login_path: Optional[str] = None,
    employee_login_path: Optional[str] = None,
    restricted_roles: Optional[Iterable[str]] = None,
) -> GuardDecision:
    if auth.loading or permissions.loading:
        return GuardDecision(GuardOutcome.LOADING, "Loading...")

    user = auth.user
    if user is None:
        return GuardDecision(
            GuardOutcome.UNAUTHENTICATED,
            "Authentication required",
            redirect_to=login_path or config.LOGIN_PATH,
            from_path=current_path,
        )

    restricted = frozenset(config.RESTRICTED_ROLES if restricted_roles is None else restricted_roles)
    if getattr(user, "metadata_role", None) in restricted:
        log.info(f"Rejected {user.metadata_role} account {getattr(user, 'id', '?')} at {current_path}")
        return GuardDecision(
            GuardOutcome.ROLE_REJECTED,
            "Employee accounts cannot access the admin portal. Please use the employee login.",
            redirect_to=employee_login_path or config.EMPLOYEE_LOGIN_PATH,
        )

    is_admin = bool(getattr(user, "is_admin", False))

    if permissions.failed and not is_admin:
        return GuardDecision(
            GuardOutcome.PERMISSION_ERROR,
            "Failed to load permissions. Please try refreshing the page.",
            action="reload",
        )

    if required_page and not is_admin and not permissions.has_page_access(required_page):
        log.info(f"User {getattr(user, 'id', '?')} denied access to {required_page}")
        return GuardDecision(
            GuardOutcome.ACCESS_DENIED,
            "You don't have permission to access this page. Please contact your administrator.",
            action="go_back",
        )

    return GuardDecision(GuardOutcome.ALLOWED)
