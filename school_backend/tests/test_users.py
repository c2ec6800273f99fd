"""
User management tests (admin-only).
"""

import pytest
from sqlalchemy import select

from school_backend.app.core.config import settings
from school_backend.app.core.security import verify_password
from school_backend.app.models.user import User
from school_backend.app.schemas.users import UserListItem


async def _user_id(client, headers, username):
    users = (await client.get("/api/users", headers=headers)).json()
    return next(user["id"] for user in users if user["username"] == username)


@pytest.mark.asyncio
async def test_list_users_hides_password_hashes(client, admin_headers):
    response = await client.get("/api/users", headers=admin_headers)

    assert response.status_code == 200
    users = response.json()
    assert [user["username"] for user in users] == ["admin"]
    assert set(users[0]) == {"id", "username", "role", "created_at"}


@pytest.mark.asyncio
async def test_create_user(client, admin_headers, db_session):
    response = await client.post("/api/users", headers=admin_headers, json={
        "username": "clerk1", "password": "Clerk1234", "role": "staff"
    })

    assert response.status_code == 201
    assert response.json()["message"] == "User created successfully"
    assert response.json()["user"]["role"] == "staff"

    user = (await db_session.execute(select(User).where(User.username == "clerk1"))).scalar_one()
    assert user.password_hash != "Clerk1234"
    assert verify_password("Clerk1234", user.password_hash)


@pytest.mark.asyncio
async def test_duplicate_username_is_conflict(client, admin_headers):
    payload = {"username": "clerk1", "password": "Clerk1234", "role": "staff"}
    await client.post("/api/users", headers=admin_headers, json=payload)

    response = await client.post("/api/users", headers=admin_headers, json=payload)

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT_001"


@pytest.mark.asyncio
async def test_weak_password_is_rejected(client, admin_headers):
    response = await client.post("/api/users", headers=admin_headers, json={
        "username": "clerk1", "password": "password", "role": "staff"
    })

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client, admin_headers):
    response = await client.post("/api/users", headers=admin_headers, json={
        "username": "clerk1", "password": "Clerk1234", "role": "principal"
    })

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_staff_cannot_manage_users(client, staff_headers):
    assert (await client.get("/api/users", headers=staff_headers)).status_code == 403
    response = await client.post("/api/users", headers=staff_headers, json={
        "username": "sneaky", "password": "Sneaky123", "role": "admin"
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_resets_another_users_password(client, admin_headers, staff_headers, login):
    staff_id = await _user_id(client, admin_headers, "staffer")

    response = await client.put(
        f"/api/users/{staff_id}/password", json={"password": "NewStaff99"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert await login("staffer", "NewStaff99")
    failed = await client.post("/api/auth/login", json={"username": "staffer", "password": "StaffPass1"})
    assert failed.status_code == 401


@pytest.mark.asyncio
async def test_admin_cannot_reset_own_password_through_user_route(client, admin_headers):
    admin_id = await _user_id(client, admin_headers, "admin")

    response = await client.put(
        f"/api/users/{admin_id}/password", json={"password": "Another123"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Use /change-password to change your own password"


@pytest.mark.asyncio
async def test_reset_password_for_unknown_user_is_404(client, admin_headers):
    response = await client.put("/api/users/9999/password", json={"password": "Another123"}, headers=admin_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_change_own_password(client, admin_headers, login):
    response = await client.put("/api/users/change-password", headers=admin_headers, json={
        "currentPassword": settings.default_admin_password, "newPassword": "Stronger123"
    })

    assert response.status_code == 200
    assert await login("admin", "Stronger123")


@pytest.mark.asyncio
async def test_change_own_password_requires_current_password(client, admin_headers):
    response = await client.put("/api/users/change-password", headers=admin_headers, json={
        "currentPassword": "wrong", "newPassword": "Stronger123"
    })

    assert response.status_code == 401
    assert response.json()["message"] == "Current password is incorrect"


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(client, admin_headers):
    admin_id = await _user_id(client, admin_headers, "admin")

    response = await client.delete(f"/api/users/{admin_id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete your own account"


@pytest.mark.asyncio
async def test_delete_user(client, admin_headers, staff_headers):
    staff_id = await _user_id(client, admin_headers, "staffer")

    response = await client.delete(f"/api/users/{staff_id}", headers=admin_headers)
    assert response.status_code == 200

    assert (await client.delete(f"/api/users/{staff_id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_user_list_item_reads_orm_rows(db_session):
    admin = (await db_session.execute(select(User).where(User.username == "admin"))).scalar_one()

    item = UserListItem.model_validate(admin)

    assert item.username == "admin"
    assert item.role == "admin"
