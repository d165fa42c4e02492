"""Profile service - identity sync, self-service profile edits and account deletion."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    BannedAccountError,
    LastOwnerViolationError,
    NotFoundError,
)
from app.db.enums import AuditAction, ImpersonationStatus, OrganizationStatus
from app.db.models import Device, ImpersonationSession, Membership, Organization, UserProfile
from app.schemas.auth import CallerContext
from app.services import audit_service, permission_service
from app.utils.normalization import normalize_email, normalize_phone


logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================

def get_profile(db: Session, user_id: str) -> UserProfile | None:
    """Live profile (soft-deleted profiles are excluded)."""
    return (
        db.query(UserProfile)
        .filter(UserProfile.user_id == user_id, UserProfile.deleted_at.is_(None))
        .first()
    )


def get_profile_including_deleted(db: Session, user_id: str) -> UserProfile | None:
    """Profile regardless of deletion. Admin, ban-check and purge paths only."""
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()


def require_profile(db: Session, user_id: str) -> UserProfile:
    profile = get_profile(db, user_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def require_active_account(db: Session, user_id: str) -> UserProfile:
    """
    Gate for mutations: the acting account must exist, be live and unbanned.

    Raises:
        NotFoundError: No profile, or profile soft-deleted
        BannedAccountError: Profile is banned
    """
    profile = get_profile_including_deleted(db, user_id)
    if not profile or profile.deleted_at is not None:
        raise NotFoundError("Account not found or has been deleted")
    if profile.is_banned:
        raise BannedAccountError("Account is banned")
    return profile


# =============================================================================
# Sync from identity provider
# =============================================================================

def sync_user(
    db: Session,
    user_id: str,
    config: AccessConfig,
    email: str | None = None,
    phone: str | None = None,
    display_name: str | None = None,
    avatar_url: str | None = None,
    migration_linking: bool = False,
) -> UserProfile:
    """
    Create or refresh the profile for an identity-provider user.

    With migration_linking (and the feature enabled), a user imported with
    their email as a temporary id is relinked to the real id first.
    """
    now = datetime.now(timezone.utc)
    email = normalize_email(email)
    phone = normalize_phone(phone)

    profile = get_profile_including_deleted(db, user_id)

    if profile is None and migration_linking and email:
        from app.services import migration_linking_service

        if config.migration_linking_enabled:
            migration_linking_service.link_migrated_user(
                db, config, temporary_user_id=email, real_user_id=user_id
            )
            profile = get_profile_including_deleted(db, user_id)

    if profile is not None:
        if profile.deleted_at is not None:
            raise NotFoundError("Account has been deleted")
        if profile.is_banned:
            raise BannedAccountError("Account is banned")
        if email is not None:
            profile.email = email
        if phone is not None:
            profile.phone = phone
        if display_name is not None:
            profile.display_name = display_name
        if avatar_url is not None:
            profile.avatar_url = avatar_url
        profile.last_active_at = now
        db.flush()
        return profile

    profile = UserProfile(
        user_id=user_id,
        email=email,
        phone=phone,
        display_name=display_name,
        avatar_url=avatar_url,
        last_active_at=now,
    )
    db.add(profile)
    db.flush()
    logger.info("Created profile for user_id=%s", user_id)
    return profile


# =============================================================================
# Self-service
# =============================================================================

def update_profile(
    db: Session,
    caller: CallerContext,
    display_name: str | None = None,
    avatar_url: str | None = None,
    phone: str | None = None,
    metadata: dict | None = None,
) -> UserProfile:
    """Update the effective user's own profile fields."""
    profile = require_profile(db, caller.effective_user_id)

    updated: list[str] = []
    if display_name is not None and display_name != profile.display_name:
        profile.display_name = display_name
        updated.append("display_name")
    if avatar_url is not None and avatar_url != profile.avatar_url:
        profile.avatar_url = avatar_url
        updated.append("avatar_url")
    phone = normalize_phone(phone)
    if phone is not None and phone != profile.phone:
        profile.phone = phone
        updated.append("phone")
    if metadata is not None and metadata != profile.metadata_:
        profile.metadata_ = metadata
        updated.append("metadata")

    if not updated:
        return profile

    db.flush()
    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.PROFILE_UPDATED,
        resource_type="profile",
        resource_id=profile.user_id,
        metadata={"fields": updated},
    )
    return profile


def set_active_org(db: Session, caller: CallerContext, org_id: uuid.UUID | None) -> UserProfile:
    """Point the user's active organization at an org they belong to (or clear it)."""
    profile = require_profile(db, caller.effective_user_id)
    if org_id is not None:
        permission_service.require_membership(db, org_id, caller.effective_user_id)
    profile.active_org_id = org_id
    db.flush()
    return profile


def clear_active_org(db: Session, user_id: str, org_id: uuid.UUID) -> None:
    """Clear active_org_id for a user if it points at org_id."""
    (
        db.query(UserProfile)
        .filter(UserProfile.user_id == user_id, UserProfile.active_org_id == org_id)
        .update({UserProfile.active_org_id: None}, synchronize_session="fetch")
    )


def clear_active_org_for_all(db: Session, org_id: uuid.UUID) -> int:
    """Clear active_org_id for every profile pointing at org_id."""
    return (
        db.query(UserProfile)
        .filter(UserProfile.active_org_id == org_id)
        .update({UserProfile.active_org_id: None}, synchronize_session="fetch")
    )


# =============================================================================
# Deletion
# =============================================================================

def _sole_owner_orgs(db: Session, user_id: str, config: AccessConfig) -> list[Organization]:
    """Live orgs where the user is the only owner and other members remain."""
    blocked: list[Organization] = []
    memberships = db.query(Membership).filter(Membership.user_id == user_id).all()
    for membership in memberships:
        org = membership.organization
        if org.status == OrganizationStatus.DELETED.value:
            continue
        if not permission_service.is_owner_role(membership.role, config):
            continue
        if permission_service.count_owners(db, org.id, config) > 1:
            continue
        if permission_service.count_members(db, org.id) > 1:
            blocked.append(org)
    return blocked


def delete_user(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    target_user_id: str | None = None,
) -> UserProfile:
    """
    Soft-delete an account (self, or any account for a platform admin).

    Memberships and devices are removed immediately; the profile row stays
    until the retention purge.

    Raises:
        LastOwnerViolationError: User is the sole owner of an org with other members
    """
    target_user_id = target_user_id or caller.effective_user_id
    by_admin = target_user_id != caller.effective_user_id
    if by_admin:
        permission_service.require_platform_admin(db, caller.actor_user_id)

    profile = require_profile(db, target_user_id)

    blocked = _sole_owner_orgs(db, target_user_id, config)
    if blocked:
        raise LastOwnerViolationError(
            "Transfer ownership of "
            + ", ".join(org.slug for org in blocked)
            + " before deleting this account"
        )

    now = datetime.now(timezone.utc)
    memberships_removed = (
        db.query(Membership)
        .filter(Membership.user_id == target_user_id)
        .delete(synchronize_session="fetch")
    )
    devices_removed = (
        db.query(Device)
        .filter(Device.user_id == target_user_id)
        .delete(synchronize_session="fetch")
    )
    (
        db.query(ImpersonationSession)
        .filter(
            ImpersonationSession.target_user_id == target_user_id,
            ImpersonationSession.status == ImpersonationStatus.ACTIVE.value,
        )
        .update(
            {
                ImpersonationSession.status: ImpersonationStatus.ENDED.value,
                ImpersonationSession.ended_at: now,
            },
            synchronize_session="fetch",
        )
    )

    profile.deleted_at = now
    profile.active_org_id = None
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.PROFILE_DELETED,
        resource_type="profile",
        resource_id=target_user_id,
        metadata={
            "by_admin": by_admin,
            "memberships_removed": memberships_removed,
            "devices_removed": devices_removed,
        },
    )
    logger.info("Soft-deleted profile user_id=%s by_admin=%s", target_user_id, by_admin)
    return profile
