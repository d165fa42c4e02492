"""
Membership tests.

Tests cover:
- Role changes gated by strict outranking
- Last-owner protection (demote, remove, leave)
- Removal clears the active organization
- Platform admin overrides (force remove, ownership transfer)
"""

import pytest

from app.core.errors import (
    AuthorityViolationError,
    InvalidStateError,
    LastOwnerViolationError,
    NotFoundError,
    PermissionDeniedError,
)
from app.db.models import AuditLog, Membership
from app.schemas.auth import CallerContext
from app.services import membership_service, permission_service, role_service


@pytest.fixture
def org(make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("alice")
    make_profile("bob")
    make_profile("carol")
    org = make_org("owner")
    add_member(org, "alice", "admin")
    add_member(org, "bob", "member")
    add_member(org, "carol", "admin")
    return org


def _member(db, org, user_id) -> Membership:
    return permission_service.get_membership(db, org.id, user_id)


def test_admin_promotes_member_to_admin(db, org, config):
    bob = _member(db, org, "bob")
    admin_role = role_service.get_role_by_name(db, org.id, "admin")

    membership_service.update_member_role(
        db, CallerContext.for_user("alice"), config, org.id, bob.id, admin_role.id
    )

    assert bob.role.name == "admin"
    entry = db.query(AuditLog).filter(AuditLog.action == "member.role_changed").one()
    assert entry.metadata_ == {"user_id": "bob", "old_role": "member", "new_role": "admin"}


def test_admin_cannot_manage_equal_rank(db, org, config):
    carol = _member(db, org, "carol")
    member_role = role_service.get_role_by_name(db, org.id, "member")

    with pytest.raises(AuthorityViolationError):
        membership_service.update_member_role(
            db, CallerContext.for_user("alice"), config, org.id, carol.id, member_role.id
        )


def test_admin_cannot_grant_owner(db, org, config):
    bob = _member(db, org, "bob")
    owner_role = role_service.get_role_by_name(db, org.id, "owner")

    with pytest.raises(AuthorityViolationError):
        membership_service.update_member_role(
            db, CallerContext.for_user("alice"), config, org.id, bob.id, owner_role.id
        )


def test_cannot_change_own_role(db, org, config):
    alice = _member(db, org, "alice")
    member_role = role_service.get_role_by_name(db, org.id, "member")

    with pytest.raises(InvalidStateError):
        membership_service.update_member_role(
            db, CallerContext.for_user("alice"), config, org.id, alice.id, member_role.id
        )


def test_member_cannot_remove(db, org, config):
    carol = _member(db, org, "carol")
    with pytest.raises(PermissionDeniedError):
        membership_service.remove_member(
            db, CallerContext.for_user("bob"), config, org.id, carol.id
        )


def test_remove_member_clears_active_org(db, org, config):
    from app.services import profile_service

    bob_profile = profile_service.get_profile(db, "bob")
    bob_profile.active_org_id = org.id
    db.flush()
    bob = _member(db, org, "bob")

    membership_service.remove_member(db, CallerContext.for_user("alice"), config, org.id, bob.id)
    db.refresh(bob_profile)

    assert _member(db, org, "bob") is None
    assert bob_profile.active_org_id is None
    assert db.query(AuditLog).filter(AuditLog.action == "member.removed").count() == 1


def test_remove_unknown_member(db, org, config):
    import uuid

    with pytest.raises(NotFoundError):
        membership_service.remove_member(
            db, CallerContext.for_user("owner"), config, org.id, uuid.uuid4()
        )


def test_last_owner_cannot_leave(db, org, config):
    with pytest.raises(LastOwnerViolationError):
        membership_service.leave_org(db, CallerContext.for_user("owner"), config, org.id)


def test_member_leaves(db, org, config):
    membership_service.leave_org(db, CallerContext.for_user("bob"), config, org.id)

    assert _member(db, org, "bob") is None
    entry = db.query(AuditLog).filter(AuditLog.action == "member.left").one()
    assert entry.actor_user_id == "bob"


def test_second_owner_can_leave(db, org, config, make_profile, add_member):
    make_profile("dave")
    add_member(org, "dave", "owner")

    membership_service.leave_org(db, CallerContext.for_user("owner"), config, org.id)

    assert permission_service.count_owners(db, org.id, config) == 1


def test_owners_cannot_demote_each_other(db, org, config, make_profile, add_member):
    make_profile("dave")
    add_member(org, "dave", "owner")
    owner_role = role_service.get_role_by_name(db, org.id, "owner")
    admin_role = role_service.get_role_by_name(db, org.id, "admin")
    owner = _member(db, org, "owner")

    with pytest.raises(AuthorityViolationError):
        membership_service.update_member_role(
            db, CallerContext.for_user("dave"), config, org.id, owner.id, admin_role.id
        )
    assert owner.role_id == owner_role.id


def test_list_members_ordered_by_rank(db, org):
    rows = membership_service.list_members(db, CallerContext.for_user("bob"), org.id)
    roles = [m.role.name for m, _ in rows]
    assert roles[0] == "owner"
    assert roles[-1] == "member"
    assert all(profile is not None for _, profile in rows)


# =============================================================================
# Platform admin overrides
# =============================================================================

@pytest.fixture
def admin(make_profile):
    return make_profile("root", is_admin=True)


def test_force_remove_requires_admin(db, org, config):
    with pytest.raises(PermissionDeniedError):
        membership_service.force_remove_member(
            db, CallerContext.for_user("alice"), config, org.id, "bob"
        )


def test_force_remove_bypasses_hierarchy(db, org, config, admin):
    membership_service.force_remove_member(
        db, CallerContext.for_user("root"), config, org.id, "alice"
    )

    assert _member(db, org, "alice") is None
    entry = db.query(AuditLog).filter(AuditLog.action == "member.removed").one()
    assert entry.metadata_["forced_by_admin"] is True


def test_force_remove_last_owner_with_members_refused(db, org, config, admin):
    with pytest.raises(LastOwnerViolationError):
        membership_service.force_remove_member(
            db, CallerContext.for_user("root"), config, org.id, "owner"
        )


def test_transfer_ownership(db, org, config, admin):
    membership = membership_service.transfer_ownership(
        db, CallerContext.for_user("root"), config, org.id, "bob"
    )

    assert membership.role.name == "owner"
    assert _member(db, org, "owner").role.name == "admin"
    assert permission_service.count_owners(db, org.id, config) == 1

    entry = db.query(AuditLog).filter(AuditLog.action == "org.ownership_transferred").one()
    assert entry.metadata_ == {"new_owner": "bob", "previous_owners": ["owner"]}


def test_transfer_to_non_member(db, org, config, admin):
    with pytest.raises(NotFoundError):
        membership_service.transfer_ownership(
            db, CallerContext.for_user("root"), config, org.id, "stranger"
        )
