# tests/test_auth_and_users.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.models.profile import Profile
from app.models.user import User
from app.models.user_client import UserClient
from factories import associate, auth_headers, create_client, create_user


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------
# Magic-code login
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_unknown_email_gets_no_code(client):
    r = await client.post("/api/v1/auth/request-code", json={"email": "nobody@example.com"})

    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "code" not in r.json()


@pytest.mark.asyncio
async def test_magic_code_login_sets_session_cookie(client, db):
    await create_user(db, "Staff@Example.com", role="employee")
    await db.commit()

    r = await client.post("/api/v1/auth/request-code", json={"email": "staff@example.com"})
    code = r.json()["code"]
    assert len(code) == 6

    r = await client.post("/api/v1/auth/verify-code", json={"email": "staff@example.com", "code": "000000"})
    assert r.status_code == 401

    r = await client.post("/api/v1/auth/verify-code", json={"email": "staff@example.com", "code": code})
    assert r.status_code == 200
    token = r.json()["access_token"]
    assert "access_token=" in r.headers["set-cookie"]
    assert "httponly" in r.headers["set-cookie"].lower()

    # one-time use
    r = await client.post("/api/v1/auth/verify-code", json={"email": "staff@example.com", "code": code})
    assert r.status_code == 401

    r = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["role"] == "employee"


@pytest.mark.asyncio
async def test_expired_code_is_rejected(client, db):
    user = await create_user(db, "late@example.com", role="admin")
    user.magic_code = "123456"
    user.magic_code_expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()

    r = await client.post("/api/v1/auth/verify-code", json={"email": "late@example.com", "code": "123456"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(client):
    r = await client.post("/api/v1/auth/logout")

    assert r.status_code == 204
    assert 'access_token=""' in r.headers["set-cookie"]
    assert "Max-Age=0" in r.headers["set-cookie"]


# ---------------------------------------------------------
# /me
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_me_lists_accessible_clients_with_primary_flag(client, db):
    a = await create_client(db, "Alpha", domain="alpha.example.com")
    b = await create_client(db, "Beta")
    employee = await create_user(db, "e@example.com", role="employee", first_name="Eve")
    await associate(db, employee.id, a.id)
    await associate(db, employee.id, b.id, is_primary=True)
    await db.commit()

    r = await client.get("/api/v1/auth/me", headers=auth_headers(employee))

    body = r.json()
    assert body["first_name"] == "Eve"
    assert body["client_details"] is None
    assert body["accessible_clients"][0]["name"] == "Beta"
    assert body["accessible_clients"][0]["is_primary"] is True
    assert {c["name"] for c in body["accessible_clients"]} == {"Alpha", "Beta"}


@pytest.mark.asyncio
async def test_me_for_client_user_includes_client_details(client, db):
    own = await create_client(db, "Own Co", website="https://own.example.com")
    user = await create_user(db, "c@example.com", role="client", client_id=own.id)
    await db.commit()

    r = await client.get("/api/v1/auth/me", headers=auth_headers(user))

    body = r.json()
    assert body["client_id"] == str(own.id)
    assert body["client_details"]["name"] == "Own Co"
    assert body["accessible_clients"] == []


@pytest.mark.asyncio
async def test_update_me_edits_names_but_not_role(client, db):
    user = await create_user(db, "e@example.com", role="employee")
    await db.commit()

    r = await client.patch(
        "/api/v1/auth/me",
        json={"first_name": "  Ada   Grace ", "last_name": "Lovelace"},
        headers=auth_headers(user),
    )
    assert r.status_code == 200
    assert r.json()["first_name"] == "Ada Grace"

    r = await client.patch("/api/v1/auth/me", json={"role": "admin"}, headers=auth_headers(user))
    assert r.status_code == 422


# ---------------------------------------------------------
# User provisioning (admin)
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_admin_provisions_staff_with_associations(client, db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    admin = await create_user(db, "admin@example.com", role="admin")
    await db.commit()

    r = await client.post(
        "/api/v1/users",
        json={
            "email": "New.Hire@example.com",
            "first_name": "New",
            "role": "employee",
            "client_ids": [str(a.id), str(b.id)],
            "primary_client_id": str(b.id),
        },
        headers=auth_headers(admin),
    )

    assert r.status_code == 201
    body = r.json()
    assert body["email"] == "new.hire@example.com"
    assert body["client_id"] is None

    stmt = select(UserClient.client_id, UserClient.is_primary).where(UserClient.user_id == uuid.UUID(body["id"]))
    rows = (await db.execute(stmt)).all()
    assert {tuple(row) for row in rows} == {(a.id, False), (b.id, True)}

    r = await client.post(
        "/api/v1/users",
        json={"email": "new.hire@example.com", "role": "employee"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_client_role_binding_is_validated(client, db):
    a = await create_client(db, "A")
    admin = await create_user(db, "admin@example.com", role="admin")
    await db.commit()

    r = await client.post(
        "/api/v1/users",
        json={"email": "c@example.com", "role": "client"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 422

    r = await client.post(
        "/api/v1/users",
        json={"email": "c@example.com", "role": "client", "client_id": str(a.id), "client_ids": [str(a.id)]},
        headers=auth_headers(admin),
    )
    assert r.status_code == 422

    r = await client.post(
        "/api/v1/users",
        json={"email": "e@example.com", "role": "employee", "client_id": str(a.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 422

    r = await client.post(
        "/api/v1/users",
        json={"email": "c@example.com", "role": "client", "client_id": str(a.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201
    assert r.json()["client_id"] == str(a.id)


@pytest.mark.asyncio
async def test_invalid_associations_roll_back_provisioning(client, db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    admin = await create_user(db, "admin@example.com", role="admin")
    await db.commit()

    r = await client.post(
        "/api/v1/users",
        json={
            "email": "e@example.com",
            "role": "employee",
            "client_ids": [str(a.id)],
            "primary_client_id": str(b.id),
        },
        headers=auth_headers(admin),
    )

    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "invalid_association"
    assert (await db.execute(select(User).where(User.email == "e@example.com"))).scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_primary_without_client_ids_is_rejected(client, db):
    a = await create_client(db, "A")
    admin = await create_user(db, "admin@example.com", role="admin")
    await db.commit()

    r = await client.post(
        "/api/v1/users",
        json={"email": "e@example.com", "role": "employee", "client_ids": [], "primary_client_id": str(a.id)},
        headers=auth_headers(admin),
    )

    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "invalid_association"
    assert (await db.execute(select(User).where(User.email == "e@example.com"))).scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_list_users_filters_by_role(client, db):
    a = await create_client(db, "A")
    admin = await create_user(db, "admin@example.com", role="admin")
    await create_user(db, "e@example.com", role="employee")
    await create_user(db, "c@example.com", role="client", client_id=a.id)
    await db.commit()

    r = await client.get("/api/v1/users?role=employee&role=client", headers=auth_headers(admin))

    assert r.status_code == 200
    assert sorted(u["email"] for u in r.json()) == ["c@example.com", "e@example.com"]


@pytest.mark.asyncio
async def test_moving_staff_to_client_role_clears_associations(client, db):
    a = await create_client(db, "A")
    admin = await create_user(db, "admin@example.com", role="admin")
    employee = await create_user(db, "e@example.com", role="employee")
    await associate(db, employee.id, a.id, is_primary=True)
    await db.commit()

    r = await client.patch(f"/api/v1/users/{employee.id}", json={"role": "client"}, headers=auth_headers(admin))
    assert r.status_code == 422

    r = await client.patch(
        f"/api/v1/users/{employee.id}",
        json={"role": "client", "client_id": str(a.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["role"] == "client"
    assert r.json()["client_id"] == str(a.id)

    rows = (await db.execute(select(UserClient).where(UserClient.user_id == employee.id))).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_admin_cannot_delete_self_but_can_delete_others(client, db):
    admin = await create_user(db, "admin@example.com", role="admin")
    employee = await create_user(db, "e@example.com", role="employee")
    await db.commit()

    r = await client.delete(f"/api/v1/users/{admin.id}", headers=auth_headers(admin))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/users/{employee.id}", headers=auth_headers(admin))
    assert r.status_code == 204

    remaining = (await db.execute(select(Profile.id).where(Profile.id == employee.id))).scalar_one_or_none()
    assert remaining is None

    r = await client.get(f"/api/v1/users/{employee.id}", headers=auth_headers(admin))
    assert r.status_code == 404
