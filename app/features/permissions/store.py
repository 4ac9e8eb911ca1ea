"""
Permission store: owns one user's permission rows and branch access.

Loading is an explicit state machine::

    IDLE -> FETCHING -> SUCCESS
                     -> RETRY_PENDING(attempt) -> FETCHING(attempt + 1) -> ...
                     -> FAILED

A failed attempt is retried after ``retry_delay * (attempt + 1)`` seconds
until ``max_retries`` retries have been spent (1s, 2s, 3s with the defaults).
After that the store is FAILED and holds an empty snapshot, so every query
is denied. Permissions and branch access are always replaced together.

Stores are owned by a ``PermissionStoreRegistry``: opened on the first
authenticated request of a user, closed on sign-out, when the account is
revoked, after sitting idle, or at shutdown.
"""
import time
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from app.core import config
from app.features.permissions.modules import ActionLike, ModuleLike, PermissionType
from app.features.permissions.resolver import PermissionResolver
from app.features.permissions.schemas import BranchAccessRow, PermissionRow, PermissionSnapshot
from app.features.permissions.timers import AsyncioScheduler, Scheduler, TimerHandle
from app.utils import get_logger


log = get_logger(__name__)


class PermissionFetchError(Exception):
    """A remote read of permission or branch-access rows failed. Retryable."""


class PermissionFetcher(Protocol):
    async def fetch_permissions(self, user_id: str) -> Sequence[PermissionRow]: ...

    async def fetch_branch_access(self, user_id: str) -> Sequence[BranchAccessRow]: ...


class FetchStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RETRY_PENDING = "retry_pending"
    SUCCESS = "success"
    FAILED = "failed"


LOADING_STATUSES = frozenset({FetchStatus.IDLE, FetchStatus.FETCHING, FetchStatus.RETRY_PENDING})


class PermissionStore:
    """Permission state for a single user."""

    def __init__(
        self,
        user_id: str,
        fetcher: PermissionFetcher,
        scheduler: Optional[Scheduler] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.user_id = user_id
        self._fetcher = fetcher
        self._scheduler = scheduler or AsyncioScheduler()
        self.max_retries = config.PERMISSION_FETCH_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = config.PERMISSION_FETCH_RETRY_DELAY if retry_delay is None else retry_delay

        self._status = FetchStatus.IDLE
        self._attempt = 0
        self._error: Optional[str] = None
        self._snapshot = PermissionSnapshot.empty()
        self._resolver = PermissionResolver(self._snapshot)
        self._pending: Optional[TimerHandle] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> FetchStatus:
        return self._status

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def loading(self) -> bool:
        return self._status in LOADING_STATUSES

    @property
    def failed(self) -> bool:
        return self._status == FetchStatus.FAILED

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self) -> PermissionSnapshot:
        return self._snapshot

    @property
    def permissions(self) -> tuple[PermissionRow, ...]:
        return self._snapshot.permissions

    @property
    def branch_access(self) -> tuple[BranchAccessRow, ...]:
        return self._snapshot.branch_access

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_permission(self, permission_type: PermissionType | str, permission_key: str) -> bool:
        return self._resolver.has_permission(permission_type, permission_key)

    def has_page_access(self, path: str) -> bool:
        return self._resolver.has_page_access(path)

    def has_feature_access(self, feature: str) -> bool:
        return self._resolver.has_feature_access(feature)

    def has_page_action(self, module: ModuleLike, action: ActionLike) -> bool:
        return self._resolver.has_page_action(module, action)

    def accessible_branches(self) -> frozenset[str]:
        return self._resolver.accessible_branches()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def refetch(self) -> None:
        """
        Start a fresh fetch sequence at attempt 0.

        Cancels a pending retry. Does nothing while an attempt is in flight or
        after the store was closed.
        """
        if self._closed:
            return
        if self._status == FetchStatus.FETCHING:
            log.debug(f"Permission fetch for user {self.user_id} already in flight")
            return
        self._cancel_pending()
        await self._run_attempt(0)

    def close(self) -> None:
        """Dispose the store. A pending retry is cancelled and late results are dropped."""
        self._closed = True
        self._cancel_pending()

    async def _retry(self, attempt: int) -> None:
        self._pending = None
        if self._closed:
            return
        await self._run_attempt(attempt)

    async def _run_attempt(self, attempt: int) -> None:
        self._status = FetchStatus.FETCHING
        self._attempt = attempt
        try:
            permissions = await self._fetcher.fetch_permissions(self.user_id)
            branch_access = await self._fetcher.fetch_branch_access(self.user_id)
        except PermissionFetchError as e:
            if self._closed:
                return
            self._on_failure(attempt, e)
            return

        if self._closed:
            return
        self._replace(PermissionSnapshot(permissions=tuple(permissions), branch_access=tuple(branch_access)))
        self._error = None
        self._status = FetchStatus.SUCCESS
        log.debug(
            f"Loaded {len(self._snapshot.permissions)} permission rows and "
            f"{len(self._snapshot.branch_access)} branch rows for user {self.user_id}"
        )

    def _on_failure(self, attempt: int, error: PermissionFetchError) -> None:
        self._error = str(error) or error.__class__.__name__
        if attempt < self.max_retries:
            delay = self.retry_delay * (attempt + 1)
            log.warning(
                f"Error fetching permissions for user {self.user_id} (attempt {attempt + 1}): "
                f"{self._error}; retrying in {delay:g}s"
            )
            self._status = FetchStatus.RETRY_PENDING
            self._pending = self._scheduler.call_later(delay, self._retry, attempt + 1)
            return

        log.error(
            f"Giving up fetching permissions for user {self.user_id} after {attempt + 1} attempts: {self._error}"
        )
        self._replace(PermissionSnapshot.empty())
        self._status = FetchStatus.FAILED

    def _replace(self, snapshot: PermissionSnapshot) -> None:
        self._snapshot = snapshot
        self._resolver = PermissionResolver(snapshot)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


class PermissionStoreRegistry:
    """
    Owns the open permission stores, one per signed-in user.

    Lives on ``app.state.permission_registry``; routes get it through the
    ``get_permission_registry`` dependency. A store not opened for
    ``idle_ttl`` seconds is closed the next time any store is opened.
    """

    def __init__(
        self,
        fetcher: PermissionFetcher,
        scheduler: Optional[Scheduler] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        idle_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._scheduler = scheduler or AsyncioScheduler()
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.idle_ttl = config.PERMISSION_STORE_IDLE_TTL if idle_ttl is None else idle_ttl
        self._clock = clock
        self._stores: dict[str, PermissionStore] = {}
        self._last_used: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._stores)

    def get(self, user_id: str) -> Optional[PermissionStore]:
        return self._stores.get(user_id)

    async def open(self, user_id: str) -> PermissionStore:
        """
        Return the user's store, creating it and running the first fetch if needed.

        A store that gave up after its retries is fetched again, so a reload
        recovers once the database is back.
        """
        now = self._clock()
        self.evict_idle(now, keep=user_id)
        self._last_used[user_id] = now

        store = self._stores.get(user_id)
        if store is not None:
            if store.failed:
                log.info(f"Reloading failed permission store for user {user_id}")
                await store.refetch()
            return store
        store = PermissionStore(
            user_id,
            self._fetcher,
            scheduler=self._scheduler,
            max_retries=self._max_retries,
            retry_delay=self._retry_delay,
        )
        self._stores[user_id] = store
        log.info(f"Opened permission store for user {user_id}")
        await store.refetch()
        return store

    async def refetch(self, user_id: str) -> bool:
        """Reload an open store. Returns False when the user has none."""
        store = self._stores.get(user_id)
        if store is None:
            return False
        await store.refetch()
        return True

    def evict_idle(self, now: Optional[float] = None, keep: Optional[str] = None) -> int:
        """Close stores idle for longer than ``idle_ttl``. Returns how many were closed."""
        now = self._clock() if now is None else now
        stale = [
            user_id for user_id, last_used in self._last_used.items()
            if user_id != keep and now - last_used > self.idle_ttl
        ]
        for user_id in stale:
            log.debug(f"Evicting idle permission store for user {user_id}")
            self.close(user_id)
        return len(stale)

    def close(self, user_id: str) -> None:
        self._last_used.pop(user_id, None)
        store = self._stores.pop(user_id, None)
        if store is not None:
            store.close()
            log.info(f"Closed permission store for user {user_id}")

    def close_all(self) -> None:
        for user_id in list(self._stores):
            self.close(user_id)
