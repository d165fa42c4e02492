"""Retention service - scheduled expiry sweeps and hard-deletion of soft-deleted data.

Every routine is idempotent and batched: rows already gone are simply not
found, and each batch commits on its own so a crash mid-run loses at most
one batch of progress. Only rows already in a terminal or deleted state are
touched.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.db.enums import InvitationCodeStatus, OrganizationStatus
from app.db.models import (
    AuditLog,
    Device,
    Invitation,
    InvitationCode,
    Membership,
    Organization,
    Role,
    UserProfile,
)
from app.services import impersonation_service


logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def expire_impersonation_sessions(db: Session, now: datetime | None = None) -> int:
    """Hourly: mark active impersonation sessions past expiry as expired."""
    count = impersonation_service.expire_sessions(db, _now(now))
    db.commit()
    if count:
        logger.info("Expired %s impersonation session(s)", count)
    return count


def purge_deleted_users(db: Session, config: AccessConfig, now: datetime | None = None) -> int:
    """Daily: hard-delete profiles soft-deleted longer than the retention window."""
    cutoff = _now(now) - config.retention
    total = 0
    while True:
        profiles = (
            db.query(UserProfile)
            .filter(
                UserProfile.deleted_at.isnot(None),
                UserProfile.deleted_at <= cutoff,
            )
            .order_by(UserProfile.deleted_at)
            .limit(config.purge_batch_size)
            .all()
        )
        if not profiles:
            break

        for profile in profiles:
            # Normally already stripped at soft-delete time
            db.query(Membership).filter(Membership.user_id == profile.user_id).delete(
                synchronize_session=False
            )
            db.query(Device).filter(Device.user_id == profile.user_id).delete(
                synchronize_session=False
            )
            db.delete(profile)
        db.commit()
        total += len(profiles)

        if len(profiles) < config.purge_batch_size:
            break

    if total:
        logger.info("Purged %s deleted profile(s)", total)
    return total


def purge_organization(db: Session, org_id: uuid.UUID) -> None:
    """Remove an organization and everything it owns. Caller commits."""
    db.query(Membership).filter(Membership.organization_id == org_id).delete(
        synchronize_session=False
    )
    db.query(Invitation).filter(Invitation.organization_id == org_id).delete(
        synchronize_session=False
    )
    db.query(InvitationCode).filter(InvitationCode.organization_id == org_id).delete(
        synchronize_session=False
    )
    db.query(AuditLog).filter(AuditLog.organization_id == org_id).delete(
        synchronize_session=False
    )
    db.query(Role).filter(Role.organization_id == org_id).delete(synchronize_session=False)
    db.query(UserProfile).filter(UserProfile.active_org_id == org_id).update(
        {UserProfile.active_org_id: None}, synchronize_session=False
    )
    db.query(Organization).filter(Organization.id == org_id).delete(synchronize_session=False)


def purge_deleted_orgs(db: Session, config: AccessConfig, now: datetime | None = None) -> int:
    """Daily: hard-delete orgs soft-deleted longer than the retention window."""
    cutoff = _now(now) - config.retention
    total = 0
    while True:
        org_ids = [
            org_id
            for (org_id,) in db.query(Organization.id)
            .filter(
                Organization.status == OrganizationStatus.DELETED.value,
                Organization.deleted_at.isnot(None),
                Organization.deleted_at <= cutoff,
            )
            .order_by(Organization.deleted_at)
            .limit(config.purge_batch_size)
            .all()
        ]
        if not org_ids:
            break

        for org_id in org_ids:
            purge_organization(db, org_id)
        db.commit()
        db.expire_all()
        total += len(org_ids)

        if len(org_ids) < config.purge_batch_size:
            break

    if total:
        logger.info("Purged %s deleted organization(s)", total)
    return total


def purge_revoked_invitation_codes(
    db: Session,
    config: AccessConfig,
    now: datetime | None = None,
) -> int:
    """Daily: hard-delete join codes revoked longer than the retention window."""
    cutoff = _now(now) - config.retention
    total = 0
    while True:
        code_ids = [
            code_id
            for (code_id,) in db.query(InvitationCode.id)
            .filter(
                InvitationCode.status == InvitationCodeStatus.REVOKED.value,
                InvitationCode.revoked_at.isnot(None),
                InvitationCode.revoked_at <= cutoff,
            )
            .limit(config.purge_batch_size)
            .all()
        ]
        if not code_ids:
            break

        db.query(InvitationCode).filter(InvitationCode.id.in_(code_ids)).delete(
            synchronize_session=False
        )
        db.commit()
        total += len(code_ids)

        if len(code_ids) < config.purge_batch_size:
            break

    if total:
        logger.info("Purged %s revoked invitation code(s)", total)
    return total
