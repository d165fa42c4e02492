"""Impersonation service - platform admins acting as another user.

The actor (admin) stays the audit actor and the subject of ban checks; the
effective user (target) is whose data is read and written. Admins can never
impersonate other admins.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    AdminImpersonationViolationError,
    InvalidStateError,
    NotFoundError,
)
from app.db.enums import AuditAction, ImpersonationStatus
from app.db.models import ImpersonationSession
from app.schemas.auth import CallerContext
from app.services import audit_service, permission_service, profile_service


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


def get_active_impersonation(
    db: Session,
    admin_user_id: str,
    now: datetime | None = None,
) -> ImpersonationSession | None:
    """Active, unexpired session for an admin. Expired rows are never returned."""
    now = now or datetime.now(timezone.utc)
    return (
        db.query(ImpersonationSession)
        .filter(
            ImpersonationSession.admin_user_id == admin_user_id,
            ImpersonationSession.status == ImpersonationStatus.ACTIVE.value,
            ImpersonationSession.expires_at > now,
        )
        .order_by(ImpersonationSession.started_at.desc())
        .first()
    )


def resolve_effective_user(db: Session, actor_user_id: str) -> str:
    """Impersonated user id while a session is live, otherwise the actor."""
    session = get_active_impersonation(db, actor_user_id)
    return session.target_user_id if session else actor_user_id


def _end_active_sessions(db: Session, caller: CallerContext, replaced: bool) -> int:
    now = datetime.now(timezone.utc)
    sessions = (
        db.query(ImpersonationSession)
        .filter(
            ImpersonationSession.admin_user_id == caller.actor_user_id,
            ImpersonationSession.status == ImpersonationStatus.ACTIVE.value,
        )
        .all()
    )
    for session in sessions:
        session.status = ImpersonationStatus.ENDED.value
        session.ended_at = now
        audit_service.log_event(
            db,
            actor_user_id=caller.actor_user_id,
            effective_user_id=None,
            action=AuditAction.IMPERSONATION_ENDED,
            resource_type="impersonation",
            resource_id=session.id,
            metadata={"target_user_id": session.target_user_id, "replaced": replaced},
            ip_address=caller.ip_address,
        )
    db.flush()
    return len(sessions)


def start_impersonation(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    target_user_id: str,
    reason: str | None = None,
    ttl: timedelta | None = None,
) -> ImpersonationSession:
    """
    Begin impersonating target_user_id. Any prior session of this admin ends.

    Raises:
        PermissionDeniedError: Actor is not a platform admin
        InvalidStateError: Actor targeted themselves
        NotFoundError: Target has no live profile
        AdminImpersonationViolationError: Target is an admin
    """
    admin_user_id = caller.actor_user_id
    permission_service.require_platform_admin(db, admin_user_id)

    if target_user_id == admin_user_id:
        raise InvalidStateError("Cannot impersonate yourself")

    target = profile_service.get_profile(db, target_user_id)
    if not target:
        raise NotFoundError("Target user not found")
    if target.is_admin:
        logger.warning(
            "Refused impersonation of admin %s by %s", target_user_id, admin_user_id
        )
        raise AdminImpersonationViolationError("Cannot impersonate another admin")

    _end_active_sessions(db, caller, replaced=True)

    now = datetime.now(timezone.utc)
    session = ImpersonationSession(
        admin_user_id=admin_user_id,
        target_user_id=target_user_id,
        reason=reason,
        status=ImpersonationStatus.ACTIVE.value,
        started_at=now,
        expires_at=now + (ttl or config.impersonation_ttl),
    )
    db.add(session)
    db.flush()

    audit_service.log_event(
        db,
        actor_user_id=admin_user_id,
        effective_user_id=None,
        action=AuditAction.IMPERSONATION_STARTED,
        resource_type="impersonation",
        resource_id=session.id,
        metadata={
            "target_user_id": target_user_id,
            "reason": reason,
            "expires_at": session.expires_at,
        },
        ip_address=caller.ip_address,
    )
    logger.info("Admin %s started impersonating %s", admin_user_id, target_user_id)
    return session


def stop_impersonation(db: Session, caller: CallerContext) -> int:
    """End every active session of the calling admin. Returns how many ended."""
    ended = _end_active_sessions(db, caller, replaced=False)
    if ended:
        logger.info("Admin %s stopped impersonating (%s session(s))", caller.actor_user_id, ended)
    return ended


def list_impersonation_history(
    db: Session,
    caller: CallerContext,
    target_user_id: str | None = None,
    limit: int = HISTORY_LIMIT,
) -> list[ImpersonationSession]:
    """Admin-only history, newest first, optionally for one target."""
    permission_service.require_platform_admin(db, caller.actor_user_id)
    query = db.query(ImpersonationSession)
    if target_user_id:
        query = query.filter(ImpersonationSession.target_user_id == target_user_id)
    return (
        query.order_by(ImpersonationSession.started_at.desc())
        .limit(min(limit, HISTORY_LIMIT))
        .all()
    )


def expire_sessions(db: Session, now: datetime | None = None) -> int:
    """Flip active sessions past expires_at to expired. Idempotent."""
    now = now or datetime.now(timezone.utc)
    return (
        db.query(ImpersonationSession)
        .filter(
            ImpersonationSession.status == ImpersonationStatus.ACTIVE.value,
            ImpersonationSession.expires_at <= now,
        )
        .update(
            {ImpersonationSession.status: ImpersonationStatus.EXPIRED.value},
            synchronize_session=False,
        )
    )
