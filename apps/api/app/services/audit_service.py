"""Audit logging service - append-only trail of state-changing operations.

Every mutation writes its audit row in the caller's session, so the row
commits or rolls back together with the change it describes.

Security guidelines:
- NEVER log secrets (raw invitation tokens, token hashes)
- Hash emails in metadata (use hash_email)
- Use IDs instead of raw data where possible
- IP: Trust X-Forwarded-For only in production behind LB
"""

import hashlib
import json
import uuid
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import Capability
from app.db.enums import AuditAction
from app.db.models import AuditLog
from app.schemas.auth import CallerContext


DEFAULT_AUDIT_LIMIT = 100
MAX_AUDIT_LIMIT = 500


def hash_email(email: str) -> str:
    """Hash email for audit log (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    In development/direct connections, uses request.client.host.
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def canonical_json(obj: dict | None) -> str:
    """Serialize metadata with sorted keys and compact separators."""
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def _clean_metadata(metadata: dict[str, Any] | None) -> dict[str, Any] | None:
    if not metadata:
        return None
    # Round-trip through JSON so UUIDs/datetimes/enums are stored as strings
    return json.loads(canonical_json(metadata))


def log_event(
    db: Session,
    *,
    actor_user_id: str,
    effective_user_id: str | None,
    action: AuditAction,
    resource_type: str,
    org_id: uuid.UUID | None = None,
    resource_id: Any = None,
    metadata: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """
    Append an audit entry in the current transaction.

    Args:
        db: Database session (the same one carrying the mutation)
        actor_user_id: The authenticated human who performed the action
        effective_user_id: Impersonated user, or None when acting as self
        action: Dotted verb (from AuditAction)
        resource_type: Kind of entity affected (e.g. 'member', 'role')
        org_id: Organization context; None for platform-level actions
        resource_id: ID of the affected entity
        metadata: Additional context (no secrets, hashed PII)
        ip_address: Client IP when known

    Returns:
        The created audit log entry
    """
    if effective_user_id == actor_user_id:
        effective_user_id = None

    entry = AuditLog(
        organization_id=org_id,
        actor_user_id=actor_user_id,
        effective_user_id=effective_user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        metadata_=_clean_metadata(metadata),
        ip_address=ip_address,
    )
    db.add(entry)
    db.flush()
    return entry


def log_caller_event(
    db: Session,
    caller: CallerContext,
    action: AuditAction,
    resource_type: str,
    org_id: uuid.UUID | None = None,
    resource_id: Any = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """log_event with actor/effective/ip taken from the resolved caller."""
    return log_event(
        db,
        actor_user_id=caller.actor_user_id,
        effective_user_id=caller.audit_effective_user_id,
        action=action,
        resource_type=resource_type,
        org_id=org_id,
        resource_id=resource_id,
        metadata=metadata,
        ip_address=caller.ip_address,
    )


# =============================================================================
# Queries
# =============================================================================

def _clamp_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return DEFAULT_AUDIT_LIMIT
    return min(limit, MAX_AUDIT_LIMIT)


def list_org_audit_logs(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    action: str | None = None,
    actor_user_id: str | None = None,
    resource_type: str | None = None,
    limit: int | None = None,
) -> list[AuditLog]:
    """
    Organization audit trail, newest first.

    Requires audit:read. Filters on action, else actor; resource_type narrows
    further.
    """
    from app.services import permission_service

    permission_service.require_permission(db, org_id, caller.effective_user_id, Capability.AUDIT_READ)

    query = db.query(AuditLog).filter(AuditLog.organization_id == org_id)
    if action:
        query = query.filter(AuditLog.action == action)
    elif actor_user_id:
        query = query.filter(AuditLog.actor_user_id == actor_user_id)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)

    return (
        query.order_by(AuditLog.timestamp.desc(), AuditLog.id)
        .limit(_clamp_limit(limit))
        .all()
    )


def list_platform_audit_logs(
    db: Session,
    caller: CallerContext,
    action: str | None = None,
    limit: int | None = None,
) -> list[AuditLog]:
    """Platform-wide audit trail for admins, optionally filtered by action."""
    from app.services import permission_service

    permission_service.require_platform_admin(db, caller.actor_user_id)

    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    return (
        query.order_by(AuditLog.timestamp.desc(), AuditLog.id)
        .limit(_clamp_limit(limit))
        .all()
    )


def list_actor_audit_logs(db: Session, actor_user_id: str, limit: int | None = None) -> list[AuditLog]:
    """Everything a given user did, newest first."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.actor_user_id == actor_user_id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id)
        .limit(_clamp_limit(limit))
        .all()
    )


def list_resource_audit_logs(
    db: Session,
    resource_type: str,
    resource_id: Any,
    limit: int | None = None,
) -> list[AuditLog]:
    """History of a single resource, newest first."""
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == str(resource_id),
        )
        .order_by(AuditLog.timestamp.desc(), AuditLog.id)
        .limit(_clamp_limit(limit))
        .all()
    )
