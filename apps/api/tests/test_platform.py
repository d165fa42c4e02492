"""
Platform admin console tests.

Tests cover:
- Admin gate on every console operation
- Profile and org search/detail
- Ban/unban rules
- Admin flag grant/revoke and CLI bootstrap
"""

import pytest

from app.core.errors import InvalidStateError, PermissionDeniedError
from app.db.models import AuditLog
from app.schemas.auth import CallerContext
from app.services import platform_service


@pytest.fixture
def root(make_profile):
    make_profile("root", is_admin=True)
    return CallerContext.for_user("root")


def test_console_requires_admin(db, make_profile):
    make_profile("alice")
    caller = CallerContext.for_user("alice")

    with pytest.raises(PermissionDeniedError):
        platform_service.list_all_profiles(db, caller)
    with pytest.raises(PermissionDeniedError):
        platform_service.list_all_orgs(db, caller)
    with pytest.raises(PermissionDeniedError):
        platform_service.ban_user(db, caller, "root")


def test_impersonating_non_admin_target_keeps_admin_rights(db, root, make_profile):
    make_profile("alice")
    caller = CallerContext(actor_user_id="root", effective_user_id="alice")

    rows, total = platform_service.list_all_profiles(db, caller)
    assert total == 2


def test_search_profiles(db, root, make_profile):
    make_profile("alice", email="alice@acme.io")
    make_profile("bob", email="bob@other.io")

    rows, total = platform_service.list_all_profiles(db, root, search="ACME")
    assert total == 1
    assert rows[0].user_id == "alice"

    # LIKE wildcards are matched literally
    rows, total = platform_service.list_all_profiles(db, root, search="%")
    assert total == 0


def test_profile_detail(db, root, make_profile, make_org):
    make_profile("owner")
    org = make_org("owner", slug="acme")

    detail = platform_service.get_profile_detail(db, root, "owner")

    assert detail["profile"].user_id == "owner"
    assert detail["memberships"][0]["org_id"] == org.id
    assert detail["memberships"][0]["role"] == "owner"
    assert detail["devices"] == []


def test_list_orgs_with_counts(db, root, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner", name="Acme", slug="acme")
    add_member(org, "bob")
    make_org("owner", name="Beta", slug="beta")

    rows, total = platform_service.list_all_orgs(db, root, search="acm")
    assert total == 1
    assert rows[0][0].id == org.id
    assert rows[0][1] == 2

    detail = platform_service.get_org_detail(db, root, org.id)
    assert detail["member_count"] == 2
    assert detail["pending_invitation_count"] == 0
    assert [r.name for r in detail["roles"]] == ["owner", "admin", "member"]


def test_ban_and_unban(db, root, make_profile):
    make_profile("alice")

    profile = platform_service.ban_user(db, root, "alice", reason="spam")
    assert profile.is_banned
    assert profile.ban_reason == "spam"
    assert profile.banned_at is not None

    with pytest.raises(InvalidStateError):
        platform_service.ban_user(db, root, "alice")

    platform_service.unban_user(db, root, "alice")
    assert not profile.is_banned
    assert profile.ban_reason is None

    actions = sorted(a for (a,) in db.query(AuditLog.action))
    assert actions == ["profile.banned", "profile.unbanned"]


def test_cannot_ban_self_or_admin(db, root, make_profile):
    make_profile("other_admin", is_admin=True)

    with pytest.raises(InvalidStateError):
        platform_service.ban_user(db, root, "root")
    with pytest.raises(InvalidStateError):
        platform_service.ban_user(db, root, "other_admin")


def test_set_admin(db, root, make_profile):
    make_profile("alice")

    assert platform_service.set_admin(db, root, "alice", True).is_admin
    assert not platform_service.set_admin(db, root, "alice", False).is_admin
    with pytest.raises(InvalidStateError):
        platform_service.set_admin(db, root, "root", False)

    actions = sorted(a for (a,) in db.query(AuditLog.action))
    assert actions == ["admin.granted", "admin.revoked"]


def test_bootstrap_admin(db, make_profile):
    make_profile("first")

    profile = platform_service.bootstrap_admin(db, "first")

    assert profile.is_admin
    entry = db.query(AuditLog).one()
    assert entry.actor_user_id == "system"
    assert entry.action == "admin.granted"
    # Second call is a no-op
    platform_service.bootstrap_admin(db, "first")
    assert db.query(AuditLog).count() == 1
