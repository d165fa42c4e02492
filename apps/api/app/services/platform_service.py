"""Platform admin service for console operations.

Handles cross-org operations for platform administrators. Every function
checks the actor (never the impersonated user) for the admin flag.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import InvalidStateError, NotFoundError
from app.db.enums import AuditAction, InvitationStatus, OrganizationStatus
from app.db.models import (
    Device,
    Invitation,
    Membership,
    Organization,
    Role,
    UserProfile,
)
from app.schemas.auth import CallerContext
from app.services import audit_service, permission_service, profile_service
from app.utils.normalization import escape_like_string


logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


# =============================================================================
# Profiles
# =============================================================================

def list_all_profiles(
    db: Session,
    caller: CallerContext,
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> tuple[list[UserProfile], int]:
    """Search profiles by email, display name or user id."""
    permission_service.require_platform_admin(db, caller.actor_user_id)

    query = db.query(UserProfile)
    if not include_deleted:
        query = query.filter(UserProfile.deleted_at.is_(None))
    if search:
        search_term = f"%{escape_like_string(search.strip())}%"
        query = query.filter(
            (UserProfile.email.ilike(search_term, escape="\\"))
            | (UserProfile.display_name.ilike(search_term, escape="\\"))
            | (UserProfile.user_id.ilike(search_term, escape="\\"))
        )

    total = query.count()
    rows = query.order_by(UserProfile.created_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def get_profile_detail(db: Session, caller: CallerContext, user_id: str) -> dict:
    """Profile (including soft-deleted) with memberships and devices."""
    permission_service.require_platform_admin(db, caller.actor_user_id)

    profile = profile_service.get_profile_including_deleted(db, user_id)
    if not profile:
        raise NotFoundError("Profile not found")

    memberships = (
        db.query(Membership, Organization)
        .join(Organization, Organization.id == Membership.organization_id)
        .filter(Membership.user_id == user_id)
        .order_by(Organization.name)
        .all()
    )
    devices = (
        db.query(Device)
        .filter(Device.user_id == user_id)
        .order_by(Device.last_active_at.desc())
        .all()
    )

    return {
        "profile": profile,
        "memberships": [
            {
                "org_id": org.id,
                "org_name": org.name,
                "org_slug": org.slug,
                "org_status": org.status,
                "role": membership.role.name,
                "joined_at": membership.joined_at,
            }
            for membership, org in memberships
        ],
        "devices": devices,
    }


# =============================================================================
# Organizations
# =============================================================================

def list_all_orgs(
    db: Session,
    caller: CallerContext,
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> tuple[list[tuple[Organization, int]], int]:
    """All organizations with member counts."""
    permission_service.require_platform_admin(db, caller.actor_user_id)

    member_counts = (
        db.query(
            Membership.organization_id.label("org_id"),
            func.count(Membership.id).label("member_count"),
        )
        .group_by(Membership.organization_id)
        .subquery()
    )

    query = db.query(Organization, member_counts.c.member_count).outerjoin(
        member_counts, member_counts.c.org_id == Organization.id
    )
    if not include_deleted:
        query = query.filter(Organization.status != OrganizationStatus.DELETED.value)
    if search:
        search_term = f"%{escape_like_string(search.strip())}%"
        query = query.filter(
            (Organization.name.ilike(search_term, escape="\\"))
            | (Organization.slug.ilike(search_term, escape="\\"))
        )

    total = query.count()
    rows = query.order_by(Organization.created_at.desc()).offset(offset).limit(limit).all()
    return [(org, member_count or 0) for org, member_count in rows], total


def get_org_detail(db: Session, caller: CallerContext, org_id: uuid.UUID) -> dict:
    """Organization (including soft-deleted) with roles and counts."""
    permission_service.require_platform_admin(db, caller.actor_user_id)

    org = permission_service.get_org_including_deleted(db, org_id)
    if not org:
        raise NotFoundError("Organization not found")

    member_count = permission_service.count_members(db, org.id)
    pending_invitations = (
        db.query(func.count(Invitation.id))
        .filter(
            Invitation.organization_id == org.id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .scalar()
        or 0
    )
    roles = (
        db.query(Role)
        .filter(Role.organization_id == org.id)
        .order_by(Role.sort_order)
        .all()
    )

    return {
        "organization": org,
        "member_count": member_count,
        "pending_invitation_count": pending_invitations,
        "roles": roles,
    }


# =============================================================================
# Moderation
# =============================================================================

def ban_user(
    db: Session,
    caller: CallerContext,
    user_id: str,
    reason: str | None = None,
) -> UserProfile:
    """Ban a non-admin user. Banned users cannot perform any mutation."""
    permission_service.require_platform_admin(db, caller.actor_user_id)
    if user_id == caller.actor_user_id:
        raise InvalidStateError("Cannot ban yourself")

    profile = profile_service.require_profile(db, user_id)
    if profile.is_admin:
        raise InvalidStateError("Revoke admin access before banning")
    if profile.is_banned:
        raise InvalidStateError("User is already banned")

    profile.is_banned = True
    profile.ban_reason = reason
    profile.banned_at = datetime.now(timezone.utc)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.PROFILE_BANNED,
        resource_type="profile",
        resource_id=user_id,
        metadata={"reason": reason},
    )
    logger.info("User %s banned by %s", user_id, caller.actor_user_id)
    return profile


def unban_user(db: Session, caller: CallerContext, user_id: str) -> UserProfile:
    permission_service.require_platform_admin(db, caller.actor_user_id)

    profile = profile_service.require_profile(db, user_id)
    if not profile.is_banned:
        raise InvalidStateError("User is not banned")

    profile.is_banned = False
    profile.ban_reason = None
    profile.banned_at = None
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.PROFILE_UNBANNED,
        resource_type="profile",
        resource_id=user_id,
    )
    logger.info("User %s unbanned by %s", user_id, caller.actor_user_id)
    return profile


def set_admin(db: Session, caller: CallerContext, user_id: str, is_admin: bool) -> UserProfile:
    """Grant or revoke the platform admin flag. Admins cannot revoke themselves."""
    permission_service.require_platform_admin(db, caller.actor_user_id)
    if user_id == caller.actor_user_id and not is_admin:
        raise InvalidStateError("Cannot revoke your own admin access")

    profile = profile_service.require_profile(db, user_id)
    if profile.is_admin == is_admin:
        return profile

    profile.is_admin = is_admin
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ADMIN_GRANTED if is_admin else AuditAction.ADMIN_REVOKED,
        resource_type="profile",
        resource_id=user_id,
    )
    logger.info(
        "Admin flag for %s set to %s by %s", user_id, is_admin, caller.actor_user_id
    )
    return profile


def bootstrap_admin(db: Session, user_id: str) -> UserProfile:
    """Grant admin without an acting admin (CLI bootstrap). Audited as 'system'."""
    profile = profile_service.require_profile(db, user_id)
    if profile.is_admin:
        return profile
    profile.is_admin = True
    db.flush()
    audit_service.log_event(
        db,
        actor_user_id="system",
        effective_user_id=None,
        action=AuditAction.ADMIN_GRANTED,
        resource_type="profile",
        resource_id=user_id,
        metadata={"bootstrap": True},
    )
    return profile
