"""
Migration linking tests.

Tests cover:
- Disabled by default
- Temporary id rewritten across user-id columns
- Sync with migration_linking relinks before creating a profile
- Soft-deleted placeholders are left alone
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from app.core.errors import InvalidStateError
from app.db.models import AuditLog, Membership, UserProfile
from app.services import migration_linking_service, profile_service


@pytest.fixture
def linking_config(config):
    return replace(config, migration_linking_enabled=True)


def _imported_user(db, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("jane@example.com", email="jane@example.com")
    org = make_org("owner")
    add_member(org, "jane@example.com", "admin")
    db.add(
        AuditLog(
            actor_user_id="jane@example.com",
            action="member.left",
            resource_type="member",
        )
    )
    db.flush()
    return org


def test_disabled_by_default(db, config):
    with pytest.raises(InvalidStateError):
        migration_linking_service.link_migrated_user(db, config, "jane@example.com", "user_real")


def test_link_rewrites_user_ids(db, linking_config, make_profile, make_org, add_member):
    org = _imported_user(db, make_profile, make_org, add_member)

    counts = migration_linking_service.link_migrated_user(
        db, linking_config, "jane@example.com", "user_real"
    )

    assert counts["user_profiles.user_id"] == 1
    assert counts["org_members.user_id"] == 1
    assert counts["audit_logs.actor_user_id"] == 1
    membership = db.query(Membership).filter(Membership.organization_id == org.id, Membership.user_id == "user_real").one()
    assert membership.role.name == "admin"


def test_link_is_noop_when_real_profile_exists(db, linking_config, make_profile):
    make_profile("jane@example.com")
    make_profile("user_real")

    assert migration_linking_service.link_migrated_user(
        db, linking_config, "jane@example.com", "user_real"
    ) == {}


def test_sync_relinks_imported_user(db, linking_config, make_profile, make_org, add_member):
    _imported_user(db, make_profile, make_org, add_member)

    profile = profile_service.sync_user(
        db, "user_real", linking_config, email="Jane@Example.com", migration_linking=True
    )

    assert profile.user_id == "user_real"
    assert db.query(UserProfile).filter(UserProfile.user_id == "jane@example.com").count() == 0
    assert db.query(UserProfile).count() == 2


def test_deleted_placeholder_is_not_linked(db, linking_config, make_profile):
    placeholder = make_profile("bob@example.com", email="bob@example.com")
    placeholder.deleted_at = datetime.now(timezone.utc)
    db.flush()

    assert migration_linking_service.link_migrated_user(
        db, linking_config, "bob@example.com", "user_bob"
    ) == {}

    profile = profile_service.sync_user(
        db, "user_bob", linking_config, email="bob@example.com", migration_linking=True
    )

    assert profile.user_id == "user_bob"
    assert profile.deleted_at is None
    assert placeholder.user_id == "bob@example.com"
