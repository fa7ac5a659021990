# tests/test_access_control.py
from __future__ import annotations

import uuid
from datetime import date

import pytest
from jose import jwt
from sqlalchemy import func, select

from app.auth.active_client import resolve_active_client
from app.auth.gate import authorize
from app.auth.session import Principal, pick_credential, resolve_session
from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ProfileIntegrityError,
    ResolutionError,
)
from app.core.config import settings
from app.core.roles import READ_ROLES, WRITE_ROLES, Role, is_tenant_bound, parse_role
from app.core.security import clean_credential, create_access_token
from app.models.profile import Profile
from app.models.report import Report
from factories import associate, auth_headers, create_client, create_user


# ---------------------------------------------------------
# Roles
# ---------------------------------------------------------
def test_parse_role_is_strict():
    assert parse_role(" Employee ") is Role.EMPLOYEE
    with pytest.raises(ValueError):
        parse_role("owner")
    with pytest.raises(ValueError):
        parse_role(None)


def test_only_client_role_is_tenant_bound():
    assert is_tenant_bound(Role.CLIENT) is True
    assert is_tenant_bound(Role.EMPLOYEE) is False
    assert is_tenant_bound(Role.ADMIN) is False


# ---------------------------------------------------------
# Session resolver
# ---------------------------------------------------------
def test_bearer_credential_wins_over_cookie():
    assert pick_credential("header-token", "cookie-token") == "header-token"
    assert pick_credential(None, "cookie-token") == "cookie-token"
    assert pick_credential("", None) is None


def test_clean_credential_strips_paste_noise():
    assert clean_credential("  \"abc.def\"\n") == "abc.def"
    assert clean_credential("Bearer abc.def") == "abc.def"
    assert clean_credential("'bearer abc.def'") == "abc.def"
    assert clean_credential(None) == ""


@pytest.mark.asyncio
async def test_resolve_session_returns_principal(db):
    user = await create_user(db, "staff@example.com", role="employee")
    await db.commit()

    principal = await resolve_session(db, create_access_token(str(user.id)))

    assert principal == Principal(id=user.id, email="staff@example.com")


@pytest.mark.asyncio
@pytest.mark.parametrize("credential", [None, "", "not-a-jwt"])
async def test_resolve_session_rejects_missing_or_garbage(db, credential):
    with pytest.raises(AuthenticationError):
        await resolve_session(db, credential)


@pytest.mark.asyncio
async def test_resolve_session_rejects_unknown_and_inactive_users(db):
    inactive = await create_user(db, "gone@example.com", role="employee", is_active=False)
    await db.commit()

    with pytest.raises(AuthenticationError):
        await resolve_session(db, create_access_token(str(uuid.uuid4())))
    with pytest.raises(AuthenticationError):
        await resolve_session(db, create_access_token(str(inactive.id)))
    with pytest.raises(AuthenticationError):
        await resolve_session(db, create_access_token("not-a-uuid"))


@pytest.mark.asyncio
async def test_resolve_session_rejects_tokens_of_another_type(db):
    user = await create_user(db, "staff@example.com", role="employee")
    await db.commit()

    foreign = jwt.encode(
        {"sub": str(user.id), "exp": 4102444800, "typ": "password_reset"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(AuthenticationError):
        await resolve_session(db, foreign)


# ---------------------------------------------------------
# Role gate
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_gate_allows_listed_role_and_denies_others(db):
    tenant = await create_client(db)
    client_user = await create_user(db, "c@example.com", role="client", client_id=tenant.id)
    await db.commit()

    principal = Principal(id=client_user.id, email="c@example.com")

    profile = await authorize(db, principal, READ_ROLES)
    assert profile.client_id == tenant.id

    with pytest.raises(AuthorizationError) as exc:
        await authorize(db, principal, WRITE_ROLES)
    assert exc.value.message == "insufficient permissions"


@pytest.mark.asyncio
async def test_gate_denies_principal_without_profile(db):
    with pytest.raises(AuthorizationError) as exc:
        await authorize(db, Principal(id=uuid.uuid4(), email="x@example.com"), READ_ROLES)
    assert exc.value.message == "profile not found"


@pytest.mark.asyncio
async def test_gate_flags_client_profile_without_client_id(db):
    broken = await create_user(db, "broken@example.com", role="client", client_id=None)
    await db.commit()

    with pytest.raises(ProfileIntegrityError) as exc:
        await authorize(db, Principal(id=broken.id, email="broken@example.com"), READ_ROLES)

    assert exc.value.status_code == 403
    assert exc.value.code == "client_association_missing"


# ---------------------------------------------------------
# Active-client resolver
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_client_role_ignores_override(db):
    own = await create_client(db, "Own Co")
    other = await create_client(db, "Other Co")
    user = await create_user(db, "c@example.com", role="client", client_id=own.id)
    await db.commit()

    profile = await db.get(Profile, user.id)

    assert await resolve_active_client(db, profile, str(other.id)) == own.id
    assert await resolve_active_client(db, profile, "garbage") == own.id
    assert await resolve_active_client(db, profile, None) == own.id


@pytest.mark.asyncio
async def test_staff_must_name_an_associated_client(db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    employee = await create_user(db, "e@example.com", role="employee")
    await associate(db, employee.id, a.id, is_primary=True)
    await db.commit()

    profile = await db.get(Profile, employee.id)

    assert await resolve_active_client(db, profile, str(a.id)) == a.id

    with pytest.raises(ResolutionError):
        await resolve_active_client(db, profile, None)
    with pytest.raises(ResolutionError):
        await resolve_active_client(db, profile, "  ")
    with pytest.raises(ResolutionError):
        await resolve_active_client(db, profile, "not-a-uuid")
    with pytest.raises(AuthorizationError):
        await resolve_active_client(db, profile, str(b.id))


@pytest.mark.asyncio
async def test_admin_override_is_validated_against_associations(db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    admin = await create_user(db, "admin@example.com", role="admin")
    await associate(db, admin.id, a.id)
    await db.commit()

    profile = await db.get(Profile, admin.id)

    assert await resolve_active_client(db, profile, a.id) == a.id
    with pytest.raises(AuthorizationError):
        await resolve_active_client(db, profile, b.id)


# ---------------------------------------------------------
# Pipeline over HTTP
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_missing_session_is_401_with_code(client):
    r = await client.get("/api/v1/reports")

    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "not_authenticated"
    assert r.headers.get("www-authenticate") == "Bearer"


@pytest.mark.asyncio
async def test_session_cookie_is_accepted(client, db):
    user = await create_user(db, "cookie@example.com", role="admin")
    await db.commit()

    token = create_access_token(str(user.id))
    r = await client.get("/api/v1/auth/me", headers={"Cookie": f"access_token={token}"})

    assert r.status_code == 200
    assert r.json()["email"] == "cookie@example.com"


@pytest.mark.asyncio
async def test_client_override_header_cannot_cross_tenants(client, db):
    own = await create_client(db, "Own Co")
    other = await create_client(db, "Other Co")
    db.add(Report(client_id=other.id, title="Other secret", type="seo", report_date=date(2024, 1, 31)))
    db.add(Report(client_id=own.id, title="Ours", type="seo", report_date=date(2024, 1, 31)))
    user = await create_user(db, "c@example.com", role="client", client_id=own.id)
    await db.commit()

    r = await client.get("/api/v1/reports", headers=auth_headers(user, active_client_id=other.id))

    assert r.status_code == 200
    titles = [row["title"] for row in r.json()["data"]]
    assert titles == ["Ours"]


@pytest.mark.asyncio
async def test_staff_without_active_client_gets_400(client, db):
    a = await create_client(db)
    employee = await create_user(db, "e@example.com", role="employee")
    await associate(db, employee.id, a.id, is_primary=True)
    await db.commit()

    r = await client.get("/api/v1/reports", headers=auth_headers(employee))

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "active_client_required"


@pytest.mark.asyncio
async def test_staff_naming_unassociated_client_gets_403(client, db):
    a = await create_client(db)
    b = await create_client(db)
    employee = await create_user(db, "e@example.com", role="employee")
    await associate(db, employee.id, a.id, is_primary=True)
    await db.commit()

    r = await client.get("/api/v1/reports", headers=auth_headers(employee, active_client_id=b.id))

    assert r.status_code == 403
    assert r.json()["detail"] == {"code": "forbidden", "message": "client not accessible"}


@pytest.mark.asyncio
async def test_denied_write_has_no_side_effects(client, db):
    tenant = await create_client(db)
    user = await create_user(db, "c@example.com", role="client", client_id=tenant.id)
    await db.commit()

    r = await client.post(
        "/api/v1/reports",
        json={"title": "Sneaky", "type": "seo", "report_date": "2024-02-01"},
        headers=auth_headers(user),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "forbidden"

    count = (await db.execute(select(func.count()).select_from(Report))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_broken_client_profile_is_reported_distinctly(client, db):
    broken = await create_user(db, "broken@example.com", role="client", client_id=None)
    await db.commit()

    r = await client.get("/api/v1/auth/me", headers=auth_headers(broken))

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "client_association_missing"


@pytest.mark.asyncio
async def test_admin_only_route_rejects_employee(client, db):
    employee = await create_user(db, "e@example.com", role="employee")
    await db.commit()

    r = await client.get("/api/v1/users", headers=auth_headers(employee))

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "forbidden"
