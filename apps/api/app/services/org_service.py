"""Organization service - tenant lifecycle."""

import logging
import re
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    DuplicateConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.core.permissions import Capability
from app.db.enums import AuditAction, OrganizationStatus
from app.db.models import Membership, Organization, Role
from app.schemas.auth import CallerContext
from app.services import audit_service, membership_service, permission_service, profile_service, role_service


logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$")


def normalize_slug(slug: str) -> str:
    """Lowercase, trim and validate an organization slug."""
    slug = (slug or "").strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValidationFailedError(
            "Slug must be lowercase letters, digits and hyphens (no leading/trailing hyphen)"
        )
    return slug


def slug_taken(db: Session, slug: str, exclude_org_id: uuid.UUID | None = None) -> bool:
    """Slugs are unique across live and soft-deleted orgs."""
    query = db.query(Organization).filter(Organization.slug == slug)
    if exclude_org_id:
        query = query.filter(Organization.id != exclude_org_id)
    return query.first() is not None


def create_org(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    name: str,
    slug: str,
    logo_url: str | None = None,
    metadata: dict | None = None,
    is_personal: bool = False,
) -> Organization:
    """
    Create an organization, seed its system roles and make the caller owner.

    Raises:
        DuplicateConflictError: Slug already in use
    """
    name = (name or "").strip()
    if not name:
        raise ValidationFailedError("Organization name is required")
    slug = normalize_slug(slug)
    if slug_taken(db, slug):
        raise DuplicateConflictError(f"Slug '{slug}' is already taken")

    profile_service.require_profile(db, caller.effective_user_id)

    org = Organization(
        name=name,
        slug=slug,
        logo_url=logo_url,
        metadata_=metadata,
        created_by=caller.effective_user_id,
        is_personal=is_personal,
        status=OrganizationStatus.ACTIVE.value,
    )
    db.add(org)
    db.flush()

    roles = role_service.seed_system_roles(db, org.id, config)
    membership_service.add_member(
        db,
        org_id=org.id,
        user_id=caller.effective_user_id,
        role=roles[config.owner_role_name],
    )

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ORG_CREATED,
        resource_type="organization",
        org_id=org.id,
        resource_id=org.id,
        metadata={"name": org.name, "slug": org.slug},
    )
    logger.info("Created organization %s (%s)", org.id, org.slug)
    return org


def get_org(db: Session, caller: CallerContext, org_id: uuid.UUID) -> Organization:
    """Live organization the caller belongs to."""
    permission_service.require_membership(db, org_id, caller.effective_user_id)
    return permission_service.require_live_org(db, org_id)


def get_org_by_slug(db: Session, caller: CallerContext, slug: str) -> Organization:
    org = (
        db.query(Organization)
        .filter(
            Organization.slug == slug.strip().lower(),
            Organization.status != OrganizationStatus.DELETED.value,
        )
        .first()
    )
    if not org:
        raise NotFoundError("Organization not found")
    permission_service.require_membership(db, org.id, caller.effective_user_id)
    return org


def update_org(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    name: str | None = None,
    slug: str | None = None,
    logo_url: str | None = None,
    metadata: dict | None = None,
) -> Organization:
    """Patch organization fields. Requires org:write."""
    permission_service.require_permission(db, org_id, caller.effective_user_id, Capability.ORG_WRITE)
    org = permission_service.require_live_org(db, org_id)

    changed: list[str] = []
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationFailedError("Organization name is required")
        if name != org.name:
            org.name = name
            changed.append("name")
    if slug is not None:
        slug = normalize_slug(slug)
        if slug != org.slug:
            if slug_taken(db, slug, exclude_org_id=org.id):
                raise DuplicateConflictError(f"Slug '{slug}' is already taken")
            org.slug = slug
            changed.append("slug")
    if logo_url is not None and logo_url != org.logo_url:
        org.logo_url = logo_url
        changed.append("logo_url")
    if metadata is not None and metadata != org.metadata_:
        org.metadata_ = metadata
        changed.append("metadata")

    if not changed:
        return org

    db.flush()
    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ORG_UPDATED,
        resource_type="organization",
        org_id=org.id,
        resource_id=org.id,
        metadata={"fields": changed},
    )
    return org


def delete_org(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
) -> Organization:
    """
    Soft-delete an organization. Only owner-role members may do this.

    Rows are hard-deleted by the retention purge once the window passes.
    """
    membership = permission_service.require_membership(db, org_id, caller.effective_user_id)
    if not permission_service.is_owner_role(membership.role, config):
        raise PermissionDeniedError("Only owners can delete the organization")

    org = permission_service.require_live_org(db, org_id)
    org.status = OrganizationStatus.DELETED.value
    org.deleted_at = datetime.now(timezone.utc)
    profile_service.clear_active_org_for_all(db, org.id)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ORG_DELETED,
        resource_type="organization",
        org_id=org.id,
        resource_id=org.id,
        metadata={"slug": org.slug},
    )
    logger.info("Organization %s soft-deleted by %s", org.id, caller.actor_user_id)
    return org


def list_user_orgs(db: Session, caller: CallerContext) -> list[tuple[Organization, Role]]:
    """Live organizations the caller belongs to, with the caller's role."""
    rows = (
        db.query(Membership, Organization)
        .join(Organization, Organization.id == Membership.organization_id)
        .filter(
            Membership.user_id == caller.effective_user_id,
            Organization.status != OrganizationStatus.DELETED.value,
        )
        .order_by(Organization.name)
        .all()
    )
    return [(org, membership.role) for membership, org in rows]
