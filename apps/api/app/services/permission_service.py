"""Authorization helpers: membership lookup, capability checks, role ranking.

Ranking: lower Role.sort_order means more authority.
- An actor may manage a member only if the actor strictly outranks them.
- An actor may grant/create/edit a role only at or below their own rank.
Missing membership or capability: deny.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    AuthorityViolationError,
    NotFoundError,
    PermissionDeniedError,
)
from app.core.permissions import Capability, has_permission
from app.db.enums import OrganizationStatus
from app.db.models import Membership, Organization, Role, UserProfile


logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================

def get_membership(db: Session, org_id: uuid.UUID, user_id: str) -> Membership | None:
    """Get a user's membership in an organization (any org status)."""
    return (
        db.query(Membership)
        .filter(
            Membership.organization_id == org_id,
            Membership.user_id == user_id,
        )
        .first()
    )


def get_live_org(db: Session, org_id: uuid.UUID) -> Organization | None:
    """Organization by id, excluding soft-deleted ones."""
    return (
        db.query(Organization)
        .filter(
            Organization.id == org_id,
            Organization.status != OrganizationStatus.DELETED.value,
        )
        .first()
    )


def get_org_including_deleted(db: Session, org_id: uuid.UUID) -> Organization | None:
    """Organization by id regardless of status. Admin and purge paths only."""
    return db.get(Organization, org_id)


def require_live_org(db: Session, org_id: uuid.UUID) -> Organization:
    org = get_live_org(db, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


def require_membership(db: Session, org_id: uuid.UUID, user_id: str) -> Membership:
    """
    Membership in a live organization.

    Raises:
        NotFoundError: Organization missing or deleted
        PermissionDeniedError: User is not a member
    """
    require_live_org(db, org_id)
    membership = get_membership(db, org_id, user_id)
    if not membership:
        raise PermissionDeniedError("Not a member of this organization")
    return membership


def require_permission(
    db: Session,
    org_id: uuid.UUID,
    user_id: str,
    capability: Capability,
) -> Membership:
    """Membership whose role grants the capability (or the wildcard)."""
    membership = require_membership(db, org_id, user_id)
    if not has_permission(membership.role.permissions or [], capability):
        raise PermissionDeniedError(f"Missing permission: {capability.value}")
    return membership


def check_permission(
    db: Session,
    org_id: uuid.UUID,
    user_id: str,
    capability: Capability,
) -> bool:
    """Non-raising variant for UI capability probes."""
    membership = get_membership(db, org_id, user_id)
    if not membership or not get_live_org(db, org_id):
        return False
    return has_permission(membership.role.permissions or [], capability)


# =============================================================================
# Ranking
# =============================================================================

def outranks(actor_role: Role, target_role: Role) -> bool:
    """True if actor_role strictly outranks target_role."""
    return actor_role.sort_order < target_role.sort_order


def can_assign(actor_role: Role, sort_order: int) -> bool:
    """True if an actor may grant/create/edit a role at this rank."""
    return sort_order >= actor_role.sort_order


def require_outranks(actor_role: Role, target_role: Role) -> None:
    if not outranks(actor_role, target_role):
        logger.warning(
            "Authority violation: role %s cannot manage role %s",
            actor_role.name,
            target_role.name,
        )
        raise AuthorityViolationError("Cannot manage a member with equal or higher authority")


def require_can_assign(actor_role: Role, sort_order: int) -> None:
    if not can_assign(actor_role, sort_order):
        logger.warning(
            "Authority violation: role %s cannot grant rank %s",
            actor_role.name,
            sort_order,
        )
        raise AuthorityViolationError("Cannot grant a role above your own")


# =============================================================================
# Owner role
# =============================================================================

def is_owner_role(role: Role, config: AccessConfig) -> bool:
    return role.name == config.owner_role_name


def get_owner_role(db: Session, org_id: uuid.UUID, config: AccessConfig) -> Role | None:
    return (
        db.query(Role)
        .filter(Role.organization_id == org_id, Role.name == config.owner_role_name)
        .first()
    )


def count_owners(db: Session, org_id: uuid.UUID, config: AccessConfig) -> int:
    return (
        db.query(Membership)
        .join(Role, Role.id == Membership.role_id)
        .filter(
            Membership.organization_id == org_id,
            Role.name == config.owner_role_name,
        )
        .count()
    )


def count_members(db: Session, org_id: uuid.UUID) -> int:
    return db.query(Membership).filter(Membership.organization_id == org_id).count()


# =============================================================================
# Platform admin
# =============================================================================

def require_platform_admin(db: Session, user_id: str) -> UserProfile:
    """
    Live, unbanned profile with the platform admin flag.

    Raises:
        PermissionDeniedError: Caller is not a platform admin
    """
    profile = (
        db.query(UserProfile)
        .filter(UserProfile.user_id == user_id, UserProfile.deleted_at.is_(None))
        .first()
    )
    if not profile or not profile.is_admin or profile.is_banned:
        raise PermissionDeniedError("Platform admin access required")
    return profile
