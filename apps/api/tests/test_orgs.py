"""
Organization lifecycle tests.

Tests cover:
- Creation seeds roles, owner membership and audit
- Slug validation and uniqueness (including soft-deleted orgs)
- Owner-only soft delete
- Listing the caller's organizations
"""

import pytest

from app.core.errors import (
    DuplicateConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.db.models import AuditLog, Role
from app.schemas.auth import CallerContext
from app.services import org_service, permission_service


def test_create_org(db, config, make_profile):
    make_profile("owner")

    org = org_service.create_org(
        db, CallerContext.for_user("owner"), config, name="  Acme  ", slug="Acme-Corp"
    )

    assert org.name == "Acme"
    assert org.slug == "acme-corp"
    assert org.status == "active"
    assert db.query(Role).filter(Role.organization_id == org.id).count() == 3
    membership = permission_service.get_membership(db, org.id, "owner")
    assert membership.role.name == "owner"
    assert db.query(AuditLog).filter(AuditLog.action == "org.created").count() == 1


@pytest.mark.parametrize("slug", ["-acme", "acme-", "ac me", "", "acme_corp"])
def test_invalid_slug(db, config, make_profile, slug):
    make_profile("owner")
    with pytest.raises(ValidationFailedError):
        org_service.create_org(db, CallerContext.for_user("owner"), config, name="Acme", slug=slug)


def test_slug_reserved_after_soft_delete(db, config, make_profile, make_org):
    make_profile("owner")
    org = make_org("owner", slug="acme")
    org_service.delete_org(db, CallerContext.for_user("owner"), config, org.id)

    with pytest.raises(DuplicateConflictError):
        make_org("owner", slug="acme")


def test_create_requires_profile(db, config):
    with pytest.raises(NotFoundError):
        org_service.create_org(db, CallerContext.for_user("nobody"), config, name="X", slug="x")


def test_update_org(db, make_profile, make_org):
    make_profile("owner")
    org = make_org("owner")

    org_service.update_org(
        db, CallerContext.for_user("owner"), org.id, name="Renamed", metadata={"tier": "pro"}
    )

    assert org.name == "Renamed"
    assert org.metadata_ == {"tier": "pro"}
    entry = db.query(AuditLog).filter(AuditLog.action == "org.updated").one()
    assert entry.metadata_ == {"fields": ["name", "metadata"]}


def test_update_org_requires_write(db, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    org = make_org("owner")
    add_member(org, "bob")

    with pytest.raises(PermissionDeniedError):
        org_service.update_org(db, CallerContext.for_user("bob"), org.id, name="Mine")


def test_only_owner_deletes(db, config, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("alice")
    org = make_org("owner")
    add_member(org, "alice", "admin")

    with pytest.raises(PermissionDeniedError):
        org_service.delete_org(db, CallerContext.for_user("alice"), config, org.id)


def test_delete_hides_org(db, config, make_profile, make_org):
    from app.services import profile_service

    owner = make_profile("owner")
    org = make_org("owner")
    owner.active_org_id = org.id
    db.flush()

    org_service.delete_org(db, CallerContext.for_user("owner"), config, org.id)
    db.refresh(owner)

    assert org.is_deleted
    assert org.deleted_at is not None
    assert owner.active_org_id is None
    assert org_service.list_user_orgs(db, CallerContext.for_user("owner")) == []
    with pytest.raises(NotFoundError):
        org_service.get_org(db, CallerContext.for_user("owner"), org.id)
    with pytest.raises(NotFoundError):
        profile_service.set_active_org(db, CallerContext.for_user("owner"), org.id)


def test_list_user_orgs(db, make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("bob")
    first = make_org("owner", name="Alpha")
    second = make_org("owner", name="Beta")
    add_member(second, "bob", "admin")

    rows = org_service.list_user_orgs(db, CallerContext.for_user("owner"))
    assert [org.name for org, _ in rows] == ["Alpha", "Beta"]

    rows = org_service.list_user_orgs(db, CallerContext.for_user("bob"))
    assert [(org.id, role.name) for org, role in rows] == [(second.id, "admin")]
    assert first.id not in {org.id for org, _ in rows}


def test_get_by_slug_requires_membership(db, make_profile, make_org):
    make_profile("owner")
    make_profile("bob")
    make_org("owner", slug="acme")

    assert org_service.get_org_by_slug(db, CallerContext.for_user("owner"), "ACME").slug == "acme"
    with pytest.raises(PermissionDeniedError):
        org_service.get_org_by_slug(db, CallerContext.for_user("bob"), "acme")
