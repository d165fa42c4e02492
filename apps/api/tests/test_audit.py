"""
Audit service tests.

Tests cover:
- actor/effective attribution
- Metadata serialization and email hashing
- Org audit filters, ordering and permission gate
"""

import uuid

import pytest

from app.core.errors import PermissionDeniedError
from app.db.enums import AuditAction
from app.schemas.auth import CallerContext
from app.services import audit_service


def test_hash_email_hides_address():
    hashed = audit_service.hash_email("Jane.Doe@example.com")
    assert hashed.startswith("Jan...@[hash:")
    assert "example.com" not in hashed


def test_hash_email_is_case_insensitive():
    assert audit_service.hash_email("a@x.io")[-14:] == audit_service.hash_email("A@X.IO")[-14:]


def test_log_event_drops_effective_equal_to_actor(db):
    entry = audit_service.log_event(
        db,
        actor_user_id="u1",
        effective_user_id="u1",
        action=AuditAction.PROFILE_UPDATED,
        resource_type="profile",
        resource_id="u1",
    )
    assert entry.effective_user_id is None


def test_metadata_is_json_safe(db):
    rid = uuid.uuid4()
    entry = audit_service.log_event(
        db,
        actor_user_id="u1",
        effective_user_id=None,
        action=AuditAction.ROLE_CREATED,
        resource_type="role",
        resource_id=rid,
        metadata={"role_id": rid, "action": AuditAction.ROLE_CREATED},
    )
    assert entry.resource_id == str(rid)
    assert entry.metadata_ == {"role_id": str(rid), "action": "role.created"}


def test_canonical_json_sorted():
    assert audit_service.canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'
    assert audit_service.canonical_json(None) == "{}"


@pytest.fixture
def org(make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner")
    add_member(org, "bob", "member")
    return org


def test_org_audit_requires_capability(db, org):
    with pytest.raises(PermissionDeniedError):
        audit_service.list_org_audit_logs(db, CallerContext.for_user("bob"), org.id)


def test_org_audit_filters(db, org):
    caller = CallerContext.for_user("owner")
    for _ in range(3):
        audit_service.log_caller_event(
            db, caller, AuditAction.ORG_UPDATED, resource_type="organization", org_id=org.id
        )
    audit_service.log_caller_event(
        db,
        CallerContext.for_user("bob"),
        AuditAction.MEMBER_LEFT,
        resource_type="member",
        org_id=org.id,
    )

    everything = audit_service.list_org_audit_logs(db, caller, org.id)
    # org.created + 3 updates + member.left
    assert len(everything) == 5

    updates = audit_service.list_org_audit_logs(db, caller, org.id, action="org.updated")
    assert len(updates) == 3

    by_bob = audit_service.list_org_audit_logs(db, caller, org.id, actor_user_id="bob")
    assert [e.action for e in by_bob] == ["member.left"]

    limited = audit_service.list_org_audit_logs(db, caller, org.id, limit=2)
    assert len(limited) == 2


def test_actor_and_resource_history(db, org):
    by_owner = audit_service.list_actor_audit_logs(db, "owner")
    assert [e.action for e in by_owner] == ["org.created"]

    history = audit_service.list_resource_audit_logs(db, "organization", org.id)
    assert len(history) == 1
    assert history[0].organization_id == org.id


def test_platform_audit_requires_admin(db, org, make_profile):
    with pytest.raises(PermissionDeniedError):
        audit_service.list_platform_audit_logs(db, CallerContext.for_user("owner"))

    make_profile("root", is_admin=True)
    entries = audit_service.list_platform_audit_logs(
        db, CallerContext.for_user("root"), action="org.created"
    )
    assert len(entries) == 1
