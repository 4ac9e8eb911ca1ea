from types import SimpleNamespace

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from conftest import FakeFetcher, ManualScheduler

from app.features.users import dependencies
from app.features.users.auth import account_role, verify_jwt_token
from app.features.permissions.store import PermissionStoreRegistry
from app.features.users.models import User, UserRole


def token_for(appwrite_id: str) -> str:
    return jwt.encode({"userId": appwrite_id}, "appwrite-secret", algorithm="HS256")


@pytest.fixture
def appwrite_accounts(monkeypatch):
    accounts = {}

    async def fake_get_appwrite_user(user_id):
        return accounts[user_id]

    monkeypatch.setattr(dependencies, "get_appwrite_user", fake_get_appwrite_user)
    return accounts


def test_malformed_token_is_401():
    with pytest.raises(HTTPException) as exc:
        verify_jwt_token("not-a-jwt")
    assert exc.value.status_code == 401


def test_account_role_reads_prefs():
    assert account_role({"prefs": {"role": "employee"}}) == "employee"
    assert account_role({"prefs": None}) is None


async def test_first_sign_in_of_employee_creates_user(db, appwrite_accounts):
    appwrite_accounts["aw-9"] = {"email": "emp@example.com", "name": "Emp", "prefs": {"role": "employee"}}

    user = await dependencies.resolve_user(token_for("aw-9"), db)

    assert user is not None
    assert user.metadata_role == "employee"
    assert user.is_restricted_account
    assert user.last_login_at is not None


async def test_staff_without_role_record_is_signed_out(db, appwrite_accounts):
    appwrite_accounts["aw-1"] = {"email": "staff@example.com", "name": "Staff", "prefs": {}}
    revoked = []

    assert await dependencies.resolve_user(token_for("aw-1"), db, on_revoked=revoked.append) is None
    assert len(revoked) == 1


async def test_staff_with_role_record(db, appwrite_accounts):
    user = User(appwrite_id="aw-2", email="boss@example.com", name="Boss")
    user.role_assignment = UserRole(role="admin")
    db.add(user)
    await db.commit()

    resolved = await dependencies.resolve_user(token_for("aw-2"), db)

    assert resolved.id == user.id
    assert resolved.is_admin


async def test_deactivated_account_is_403(db, appwrite_accounts):
    revoked = []
    user = User(appwrite_id="aw-3", email="gone@example.com", name="Gone", is_active=False)
    user.role_assignment = UserRole(role="user")
    db.add(user)
    await db.commit()

    with pytest.raises(HTTPException) as exc:
        await dependencies.resolve_user(token_for("aw-3"), db, on_revoked=revoked.append)
    assert exc.value.status_code == 403
    assert revoked == [user.id]


async def test_removed_staff_store_is_released(db, appwrite_accounts):
    user = User(appwrite_id="aw-4", email="former@example.com", name="Former")
    db.add(user)
    await db.commit()
    registry = PermissionStoreRegistry(FakeFetcher(), scheduler=ManualScheduler())
    store = await registry.open(user.id)
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(permission_registry=registry)))
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token_for("aw-4"))

    assert await dependencies.get_optional_user(request, credentials, db) is None
    assert store.closed
    assert registry.get(user.id) is None
