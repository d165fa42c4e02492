"""
HTTP surface tests.

Tests cover:
- Health check
- Caller resolution and CSRF enforcement
- Invite-and-join flow end to end
- Error rendering for engine errors
- Impersonation swaps the effective user
- Internal sweep endpoints behind X-Internal-Secret
"""

import pytest

from app.core.config import settings


def _as(user_id: str) -> dict:
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_missing_user_header_is_401(client):
    response = await client.get("/me")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_mutation_without_csrf_header_is_403(client, make_profile):
    make_profile("owner")

    response = await client.post(
        "/orgs",
        json={"name": "Acme", "slug": "acme"},
        headers={**_as("owner"), "X-Requested-With": ""},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invite_and_join_flow(client):
    response = await client.post("/me/sync", json={"email": "Owner@Example.com"}, headers=_as("owner"))
    assert response.status_code == 200
    assert response.json()["email"] == "owner@example.com"

    response = await client.post("/orgs", json={"name": "Acme", "slug": "acme"}, headers=_as("owner"))
    assert response.status_code == 201
    org_id = response.json()["id"]

    roles = (await client.get(f"/orgs/{org_id}/roles", headers=_as("owner"))).json()
    assert [r["name"] for r in roles] == ["owner", "admin", "member"]
    member_role = next(r for r in roles if r["name"] == "member")

    response = await client.post(
        f"/orgs/{org_id}/invitations",
        json={"email": "bob@example.com", "role_id": member_role["id"]},
        headers=_as("owner"),
    )
    assert response.status_code == 201
    token = response.json()["token"]

    preview = await client.post("/invitations/preview", json={"token": token})
    assert preview.json()["organization_slug"] == "acme"
    assert preview.json()["role"] == "member"

    await client.post("/me/sync", json={"email": "bob@example.com"}, headers=_as("bob"))
    response = await client.post("/invitations/accept", json={"token": token}, headers=_as("bob"))
    assert response.status_code == 200
    assert response.json()["role"] == "member"

    members = (await client.get(f"/orgs/{org_id}/members", headers=_as("owner"))).json()
    assert sorted(m["user_id"] for m in members) == ["bob", "owner"]

    check = await client.get(f"/orgs/{org_id}/permissions/member:manage", headers=_as("bob"))
    assert check.json() == {"capability": "member:manage", "allowed": False}

    audit = (await client.get(f"/orgs/{org_id}/audit", headers=_as("owner"))).json()
    assert "invitation.accepted" in [entry["action"] for entry in audit]


@pytest.mark.asyncio
async def test_list_capabilities(client, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner")
    add_member(org, "bob")

    response = await client.get(f"/orgs/{org.id}/roles/capabilities", headers=_as("bob"))

    assert response.status_code == 200
    audit = next(c for c in response.json() if c["key"] == "audit:read")
    assert audit["category"] == "Compliance"
    assert "*" not in [c["key"] for c in response.json()]


@pytest.mark.asyncio
async def test_duplicate_slug_is_409(client, make_profile):
    make_profile("owner")
    await client.post("/orgs", json={"name": "Acme", "slug": "acme"}, headers=_as("owner"))

    response = await client.post("/orgs", json={"name": "Acme 2", "slug": "acme"}, headers=_as("owner"))

    assert response.status_code == 409
    assert response.json()["error"] == "duplicate"


@pytest.mark.asyncio
async def test_unknown_capability_is_422(client, make_profile, make_org):
    make_profile("owner")
    org = make_org("owner")

    response = await client.get(f"/orgs/{org.id}/permissions/cases:read", headers=_as("owner"))

    assert response.status_code == 422
    assert response.json()["error"] == "validation_failed"


@pytest.mark.asyncio
async def test_banned_actor_cannot_mutate(client, db, make_profile):
    profile = make_profile("spammer")
    profile.is_banned = True
    db.commit()

    response = await client.post("/orgs", json={"name": "Spam", "slug": "spam"}, headers=_as("spammer"))

    assert response.status_code == 403
    assert response.json()["error"] == "account_banned"


@pytest.mark.asyncio
async def test_impersonation_swaps_effective_user(client, db, make_profile):
    make_profile("root", is_admin=True)
    make_profile("alice")
    db.commit()

    response = await client.post(
        "/impersonation/start",
        json={"target_user_id": "alice", "reason": "support ticket"},
        headers=_as("root"),
    )
    assert response.status_code == 200

    me = (await client.get("/me", headers=_as("root"))).json()
    assert me["user_id"] == "alice"

    response = await client.post("/impersonation/stop", headers=_as("root"))
    assert response.json() == {"ended": 1}
    me = (await client.get("/me", headers=_as("root"))).json()
    assert me["user_id"] == "root"


@pytest.mark.asyncio
async def test_cannot_impersonate_admin(client, db, make_profile):
    make_profile("root", is_admin=True)
    make_profile("other_admin", is_admin=True)
    db.commit()

    response = await client.post(
        "/impersonation/start",
        json={"target_user_id": "other_admin"},
        headers=_as("root"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_internal_endpoint_requires_secret_header(client):
    response = await client.post("/internal/scheduled/purge-users")

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_internal_endpoint_rejects_wrong_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "s3cret")

    response = await client.post(
        "/internal/scheduled/purge-users",
        headers={"X-Internal-Secret": "nope"},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_internal_sweep_runs(client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "s3cret")

    response = await client.post(
        "/internal/scheduled/expire-impersonation",
        headers={"X-Internal-Secret": "s3cret"},
    )

    assert response.status_code == 200
    assert response.json() == {"job": "expire-impersonation", "count": 0}
