"""
Profile tests.

Tests cover:
- Sync creates and refreshes profiles with normalized contact fields
- Deleted and banned accounts cannot sync
- Self-service update and active org
- Account deletion and the sole-owner guard
"""

import pytest

from app.core.errors import (
    BannedAccountError,
    LastOwnerViolationError,
    NotFoundError,
    PermissionDeniedError,
)
from app.db.models import AuditLog, Device, Membership
from app.schemas.auth import CallerContext
from app.services import profile_service


def test_sync_creates_then_updates(db, config):
    profile = profile_service.sync_user(
        db, "u1", config, email=" U1@Example.COM ", phone="+1 555 000 1234"
    )
    assert profile.email == "u1@example.com"
    assert profile.phone == "+15550001234"

    again = profile_service.sync_user(db, "u1", config, display_name="User One")
    assert again.id == profile.id
    assert again.display_name == "User One"
    assert again.email == "u1@example.com"


def test_sync_rejects_deleted_and_banned(db, config, make_profile):
    from datetime import datetime, timezone

    deleted = make_profile("gone")
    deleted.deleted_at = datetime.now(timezone.utc)
    banned = make_profile("banned")
    banned.is_banned = True
    db.flush()

    with pytest.raises(NotFoundError):
        profile_service.sync_user(db, "gone", config)
    with pytest.raises(BannedAccountError):
        profile_service.sync_user(db, "banned", config)


def test_require_active_account(db, make_profile):
    make_profile("ok")
    banned = make_profile("banned")
    banned.is_banned = True
    db.flush()

    assert profile_service.require_active_account(db, "ok").user_id == "ok"
    with pytest.raises(BannedAccountError):
        profile_service.require_active_account(db, "banned")
    with pytest.raises(NotFoundError):
        profile_service.require_active_account(db, "missing")


def test_update_profile_audits_changed_fields(db, make_profile):
    make_profile("u1")

    profile_service.update_profile(
        db, CallerContext.for_user("u1"), display_name="New", phone="555-111-2222"
    )

    entry = db.query(AuditLog).filter(AuditLog.action == "profile.updated").one()
    assert entry.metadata_ == {"fields": ["display_name", "phone"]}
    assert entry.organization_id is None


def test_set_active_org_requires_membership(db, make_profile, make_org):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner")

    profile = profile_service.set_active_org(db, CallerContext.for_user("owner"), org.id)
    assert profile.active_org_id == org.id

    with pytest.raises(PermissionDeniedError):
        profile_service.set_active_org(db, CallerContext.for_user("bob"), org.id)


def test_delete_self(db, config, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner")
    add_member(org, "bob")
    db.add(Device(user_id="bob", session_id="sess-bob"))
    db.flush()

    profile = profile_service.delete_user(db, CallerContext.for_user("bob"), config)

    assert profile.deleted_at is not None
    assert db.query(Membership).filter(Membership.user_id == "bob").count() == 0
    assert db.query(Device).filter(Device.user_id == "bob").count() == 0
    assert profile_service.get_profile(db, "bob") is None
    entry = db.query(AuditLog).filter(AuditLog.action == "profile.deleted").one()
    assert entry.metadata_["memberships_removed"] == 1
    assert entry.metadata_["devices_removed"] == 1


def test_sole_owner_with_members_cannot_delete(db, config, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner", slug="acme")
    add_member(org, "bob")

    with pytest.raises(LastOwnerViolationError) as exc:
        profile_service.delete_user(db, CallerContext.for_user("owner"), config)
    assert "acme" in exc.value.message


def test_sole_owner_of_empty_org_can_delete(db, config, make_profile, make_org):
    make_profile("owner")
    make_org("owner")

    profile_service.delete_user(db, CallerContext.for_user("owner"), config)

    assert profile_service.get_profile(db, "owner") is None


def test_delete_other_requires_admin(db, config, make_profile):
    make_profile("alice")
    make_profile("bob")

    with pytest.raises(PermissionDeniedError):
        profile_service.delete_user(db, CallerContext.for_user("alice"), config, "bob")

    make_profile("root", is_admin=True)
    profile_service.delete_user(db, CallerContext.for_user("root"), config, "bob")
    entry = db.query(AuditLog).filter(AuditLog.action == "profile.deleted").one()
    assert entry.actor_user_id == "root"
    assert entry.metadata_["by_admin"] is True
