# tests/test_settings_api.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from app.models.setting import Setting
from factories import associate, auth_headers, create_client, create_user


@pytest.mark.asyncio
async def test_upsert_accepts_all_three_shapes(client, db):
    a = await create_client(db, "A")
    employee = await create_user(db, "e@example.com", role="employee")
    await associate(db, employee.id, a.id, is_primary=True)
    await db.commit()
    headers = auth_headers(employee, active_client_id=a.id)

    r = await client.post(
        "/api/v1/settings",
        json={"settings": [{"setting_key": "theme", "setting_value": "dark", "setting_group": "ui"}]},
        headers=headers,
    )
    assert r.status_code == 200

    r = await client.post(
        "/api/v1/settings",
        json={"setting_key": "per_page", "setting_value": 25, "setting_group": "ui"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()[0]["setting_value"] == "25"

    r = await client.post(
        "/api/v1/settings",
        json={"key_values": {"theme": "light", "notify": True}, "group": "prefs"},
        headers=headers,
    )
    assert r.status_code == 200

    r = await client.get("/api/v1/settings?format=keyValue", headers=headers)
    assert r.json() == {"notify": "True", "per_page": "25", "theme": "light"}

    r = await client.get("/api/v1/settings/group/ui", headers=headers)
    assert r.json() == {"per_page": "25"}

    r = await client.post("/api/v1/settings", json={"unrelated": 1}, headers=headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_client_user_settings_stay_in_own_client(client, db):
    own = await create_client(db, "Own")
    other = await create_client(db, "Other")
    user = await create_user(db, "c@example.com", role="client", client_id=own.id)
    db.add(Setting(client_id=other.id, setting_key="theme", setting_value="blue"))
    await db.commit()

    r = await client.post(
        "/api/v1/settings",
        json={"setting_key": "theme", "setting_value": "red", "client_id": str(other.id)},
        headers=auth_headers(user, active_client_id=other.id),
    )
    assert r.status_code == 200
    assert r.json()[0]["client_id"] == str(own.id)

    rows = (await db.execute(select(Setting.client_id, Setting.setting_value).order_by(Setting.setting_value))).all()
    assert [tuple(row) for row in rows] == [(other.id, "blue"), (own.id, "red")]


@pytest.mark.asyncio
async def test_default_format_filters_by_keys_and_paginates(client, db):
    a = await create_client(db, "A")
    user = await create_user(db, "c@example.com", role="client", client_id=a.id)
    for key in ("alpha", "beta", "gamma"):
        db.add(Setting(client_id=a.id, setting_key=key, setting_value=key.upper()))
    await db.commit()

    r = await client.get("/api/v1/settings?keys=alpha, gamma", headers=auth_headers(user))
    body = r.json()
    assert [row["setting_key"] for row in body["data"]] == ["alpha", "gamma"]
    assert body["pagination"]["total_items"] == 2


@pytest.mark.asyncio
async def test_get_patch_delete_by_id(client, db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    user = await create_user(db, "c@example.com", role="client", client_id=a.id)
    mine = Setting(client_id=a.id, setting_key="tz", setting_value="UTC")
    theirs = Setting(client_id=b.id, setting_key="tz", setting_value="EAT")
    db.add_all([mine, theirs])
    await db.commit()
    headers = auth_headers(user)

    r = await client.get(f"/api/v1/settings/{theirs.id}", headers=headers)
    assert r.status_code == 404

    r = await client.patch(f"/api/v1/settings/{mine.id}", json={"setting_group": "x"}, headers=headers)
    assert r.status_code == 422

    r = await client.patch(f"/api/v1/settings/{mine.id}", json={"setting_value": "Africa/Nairobi"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["setting_value"] == "Africa/Nairobi"

    r = await client.delete(f"/api/v1/settings/{mine.id}", headers=headers)
    assert r.status_code == 204

    r = await client.get(f"/api/v1/settings/{mine.id}", headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_group_replace_forces_group_and_delete_counts(client, db):
    a = await create_client(db, "A")
    b = await create_client(db, "B")
    user = await create_user(db, "c@example.com", role="client", client_id=a.id)
    db.add_all(
        [
            Setting(client_id=a.id, setting_key="theme", setting_value="dark", setting_group="general"),
            Setting(client_id=b.id, setting_key="logo", setting_value="b.png", setting_group="branding"),
        ]
    )
    await db.commit()
    headers = auth_headers(user)

    r = await client.put(
        "/api/v1/settings/group/branding",
        json={"key_values": {"theme": "light", "logo": "a.png"}, "client_id": str(b.id)},
        headers=headers,
    )
    assert r.status_code == 200
    assert {(row["setting_key"], row["setting_group"]) for row in r.json()} == {
        ("theme", "branding"),
        ("logo", "branding"),
    }
    assert all(row["client_id"] == str(a.id) for row in r.json())

    r = await client.put("/api/v1/settings/group/branding", json={"settings": []}, headers=headers)
    assert r.status_code == 400

    r = await client.put("/api/v1/settings/group/branding", json={"setting_key": "x"}, headers=headers)
    assert r.status_code == 422

    r = await client.delete("/api/v1/settings/group/branding", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"group": "branding", "deleted": 2}

    # the other client's branding group is untouched
    rows = (await db.execute(select(Setting.client_id, Setting.setting_key))).all()
    assert [tuple(row) for row in rows] == [(b.id, "logo")]
