"""Invitation service - single-use token invitations and multi-use join codes.

Token invitations: pending -> accepted | declined | expired | revoked.
Join codes: active -> revoked; expiry and redemption caps are checked on
redeem without changing status.

Raw tokens are returned to the inviter exactly once and never stored or
logged; only their SHA-256 hash is persisted.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    AccessError,
    DuplicateConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.core.permissions import Capability
from app.core.security import (
    generate_invitation_code,
    generate_invitation_token,
    hash_token,
    normalize_invitation_code,
)
from app.db.enums import AuditAction, InvitationCodeStatus, InvitationStatus
from app.db.models import Invitation, InvitationCode, Membership, Organization, Role, UserProfile
from app.schemas.auth import CallerContext
from app.services import (
    audit_service,
    membership_service,
    permission_service,
    profile_service,
    role_service,
)
from app.utils.normalization import extract_phone_last4, normalize_email, normalize_phone


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def mask_phone(phone: str | None) -> str | None:
    """Keep only the last four digits for audit metadata."""
    last4 = extract_phone_last4(phone)
    return f"***{last4}" if last4 else None


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= (now or _now())


# =============================================================================
# Token invitations
# =============================================================================

def _pending_for_recipient(
    db: Session,
    org_id: uuid.UUID,
    email: str | None,
    phone: str | None,
) -> list[Invitation]:
    clauses = []
    if email:
        clauses.append(Invitation.email == email)
    if phone:
        clauses.append(Invitation.phone == phone)
    return (
        db.query(Invitation)
        .filter(
            Invitation.organization_id == org_id,
            Invitation.status == InvitationStatus.PENDING.value,
            or_(*clauses),
        )
        .all()
    )


def create_invitation(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    email: str | None = None,
    phone: str | None = None,
    expires_at: datetime | None = None,
) -> tuple[Invitation, str]:
    """
    Invite someone by email and/or phone.

    Returns (invitation, raw_token). The raw token is not recoverable later.

    Raises:
        ValidationFailedError: No recipient, or expiry in the past
        AuthorityViolationError: Role outranks the inviter
        DuplicateConflictError: A pending invitation already targets this recipient
    """
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.MEMBER_INVITE
    )
    email = normalize_email(email)
    phone = normalize_phone(phone)
    if not email and not phone:
        raise ValidationFailedError("An email or phone number is required")

    role = role_service.require_role(db, org_id, role_id)
    permission_service.require_can_assign(actor.role, role.sort_order)

    now = _now()
    if expires_at is None:
        expires_at = now + config.invitation_ttl
    elif is_expired(expires_at, now):
        raise ValidationFailedError("Expiry must be in the future")

    for existing in _pending_for_recipient(db, org_id, email, phone):
        if is_expired(existing.expires_at, now):
            # Stale pending row; retire it so the recipient can be re-invited
            existing.status = InvitationStatus.EXPIRED.value
            continue
        raise DuplicateConflictError("A pending invitation already exists for this recipient")

    raw_token = generate_invitation_token()
    invitation = Invitation(
        organization_id=org_id,
        email=email,
        phone=phone,
        role_id=role.id,
        invited_by=caller.effective_user_id,
        status=InvitationStatus.PENDING.value,
        token_hash=hash_token(raw_token),
        expires_at=expires_at,
    )
    db.add(invitation)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_CREATED,
        resource_type="invitation",
        org_id=org_id,
        resource_id=invitation.id,
        metadata={
            "email": audit_service.hash_email(email) if email else None,
            "phone": mask_phone(phone),
            "role": role.name,
            "expires_at": expires_at,
        },
    )
    return invitation, raw_token


def get_invitation_by_token(db: Session, raw_token: str) -> Invitation | None:
    return (
        db.query(Invitation)
        .filter(Invitation.token_hash == hash_token(raw_token))
        .first()
    )


def preview_invitation(
    db: Session,
    raw_token: str,
) -> tuple[Invitation, Organization | None, Role | None]:
    """Public preview for the accept page: invitation plus org and role (if still present)."""
    invitation = get_invitation_by_token(db, raw_token)
    if not invitation:
        raise NotFoundError("Invitation not found")
    org = permission_service.get_live_org(db, invitation.organization_id)
    role = role_service.get_role(db, invitation.organization_id, invitation.role_id)
    return invitation, org, role


def _require_pending(db: Session, invitation: Invitation) -> None:
    """Pending and unexpired; an expired invitation is marked and committed first."""
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvalidStateError(f"Invitation is {invitation.status}")
    if is_expired(invitation.expires_at):
        invitation.status = InvitationStatus.EXPIRED.value
        db.commit()
        logger.info("Invitation %s expired on use", invitation.id)
        raise ExpiredError("Invitation has expired")


def _recipient_matches(invitation: Invitation, profile: UserProfile) -> bool:
    if invitation.email and profile.email:
        if invitation.email.lower() == profile.email.lower():
            return True
    if invitation.phone and profile.phone:
        if normalize_phone(invitation.phone) == normalize_phone(profile.phone):
            return True
    return False


def accept_invitation(db: Session, caller: CallerContext, raw_token: str) -> Membership:
    """
    Accept an invitation addressed to the caller's email or phone.

    Creates the membership and writes invitation.accepted + member.added.

    Raises:
        NotFoundError: Unknown token, deleted org, or role no longer exists
        InvalidStateError: Invitation not pending
        ExpiredError: Past expires_at (status is persisted as expired)
        PermissionDeniedError: Invitation addressed to someone else
        DuplicateConflictError: Caller is already a member
    """
    invitation = get_invitation_by_token(db, raw_token)
    if not invitation:
        raise NotFoundError("Invitation not found")

    _require_pending(db, invitation)

    org = permission_service.get_live_org(db, invitation.organization_id)
    if not org:
        raise NotFoundError("Organization not found")

    role = role_service.get_role(db, invitation.organization_id, invitation.role_id)
    if not role:
        raise NotFoundError("Role no longer exists")

    profile = profile_service.require_profile(db, caller.effective_user_id)
    if not _recipient_matches(invitation, profile):
        raise PermissionDeniedError("This invitation was sent to a different recipient")

    if permission_service.get_membership(db, org.id, caller.effective_user_id):
        raise DuplicateConflictError("Already a member of this organization")

    membership = membership_service.add_member(
        db,
        org_id=org.id,
        user_id=caller.effective_user_id,
        role=role,
        invited_by=invitation.invited_by,
    )

    invitation.status = InvitationStatus.ACCEPTED.value
    invitation.accepted_by = caller.effective_user_id
    invitation.accepted_at = _now()
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_ACCEPTED,
        resource_type="invitation",
        org_id=org.id,
        resource_id=invitation.id,
        metadata={"role": role.name},
    )
    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_ADDED,
        resource_type="member",
        org_id=org.id,
        resource_id=membership.id,
        metadata={
            "user_id": caller.effective_user_id,
            "role": role.name,
            "via_invitation": str(invitation.id),
        },
    )
    return membership


def decline_invitation(db: Session, caller: CallerContext, raw_token: str) -> Invitation:
    """Decline an invitation addressed to the caller."""
    invitation = get_invitation_by_token(db, raw_token)
    if not invitation:
        raise NotFoundError("Invitation not found")

    _require_pending(db, invitation)

    profile = profile_service.require_profile(db, caller.effective_user_id)
    if not _recipient_matches(invitation, profile):
        raise PermissionDeniedError("This invitation was sent to a different recipient")

    invitation.status = InvitationStatus.DECLINED.value
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_DECLINED,
        resource_type="invitation",
        org_id=invitation.organization_id,
        resource_id=invitation.id,
    )
    return invitation


def revoke_invitation(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
) -> Invitation:
    """Revoke a pending invitation. Requires invitation:manage."""
    permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.INVITATION_MANAGE
    )
    invitation = (
        db.query(Invitation)
        .filter(Invitation.id == invitation_id, Invitation.organization_id == org_id)
        .first()
    )
    if not invitation:
        raise NotFoundError("Invitation not found")
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvalidStateError(f"Invitation is {invitation.status}")

    invitation.status = InvitationStatus.REVOKED.value
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_REVOKED,
        resource_type="invitation",
        org_id=org_id,
        resource_id=invitation.id,
    )
    return invitation


def list_invitations(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    status: InvitationStatus | None = None,
) -> list[Invitation]:
    """Invitations for an org, newest first."""
    permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.INVITATION_READ
    )
    query = db.query(Invitation).filter(Invitation.organization_id == org_id)
    if status:
        query = query.filter(Invitation.status == status.value)
    return query.order_by(Invitation.created_at.desc()).limit(100).all()


# =============================================================================
# Invitation codes
# =============================================================================

def get_invitation_code(db: Session, code: str) -> InvitationCode | None:
    """Case-insensitive code lookup."""
    return (
        db.query(InvitationCode)
        .filter(InvitationCode.code == normalize_invitation_code(code))
        .first()
    )


def _generate_unique_code(db: Session, config: AccessConfig) -> str:
    for _ in range(config.invitation_code_max_attempts):
        candidate = generate_invitation_code(config.invitation_code_length)
        exists = db.query(InvitationCode.id).filter(InvitationCode.code == candidate).first()
        if not exists:
            return candidate
    raise AccessError("Failed to generate unique invitation code")


def create_invitation_code(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    max_redemptions: int | None = None,
    expires_at: datetime | None = None,
) -> InvitationCode:
    """Issue a shareable join code granting role_id."""
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.INVITATION_CODE_CREATE
    )
    role = role_service.require_role(db, org_id, role_id)
    permission_service.require_can_assign(actor.role, role.sort_order)

    if max_redemptions is not None and max_redemptions < 1:
        raise ValidationFailedError("max_redemptions must be at least 1")
    if expires_at is not None and is_expired(expires_at):
        raise ValidationFailedError("Expiry must be in the future")

    code = InvitationCode(
        organization_id=org_id,
        code=_generate_unique_code(db, config),
        role_id=role.id,
        created_by=caller.effective_user_id,
        max_redemptions=max_redemptions,
        redemption_count=0,
        expires_at=expires_at,
        status=InvitationCodeStatus.ACTIVE.value,
    )
    db.add(code)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_CODE_CREATED,
        resource_type="invitation_code",
        org_id=org_id,
        resource_id=code.id,
        metadata={
            "role": role.name,
            "max_redemptions": max_redemptions,
            "expires_at": expires_at,
        },
    )
    return code


def preview_invitation_code(
    db: Session,
    code: str,
) -> tuple[InvitationCode, Organization | None, Role | None]:
    invitation_code = get_invitation_code(db, code)
    if not invitation_code:
        raise NotFoundError("Invitation code not found")
    org = permission_service.get_live_org(db, invitation_code.organization_id)
    role = role_service.get_role(db, invitation_code.organization_id, invitation_code.role_id)
    return invitation_code, org, role


def redeem_invitation_code(db: Session, caller: CallerContext, code: str) -> Membership:
    """
    Join an organization with a code.

    Raises:
        NotFoundError: Unknown code, deleted org, or role no longer exists
        InvalidStateError: Revoked, or redemption cap reached
        ExpiredError: Past expires_at
        DuplicateConflictError: Caller is already a member
    """
    invitation_code = get_invitation_code(db, code)
    if not invitation_code:
        raise NotFoundError("Invitation code not found")
    if invitation_code.status != InvitationCodeStatus.ACTIVE.value:
        raise InvalidStateError(f"Invitation code is {invitation_code.status}")
    if is_expired(invitation_code.expires_at):
        raise ExpiredError("Invitation code has expired")
    if (
        invitation_code.max_redemptions is not None
        and invitation_code.redemption_count >= invitation_code.max_redemptions
    ):
        raise InvalidStateError("Invitation code has reached its redemption limit")

    org = permission_service.get_live_org(db, invitation_code.organization_id)
    if not org:
        raise NotFoundError("Organization not found")

    role = role_service.get_role(db, org.id, invitation_code.role_id)
    if not role:
        raise NotFoundError("Role no longer exists")

    profile_service.require_profile(db, caller.effective_user_id)
    if permission_service.get_membership(db, org.id, caller.effective_user_id):
        raise DuplicateConflictError("Already a member of this organization")

    # Conditional increment so concurrent redemptions cannot overshoot the cap
    updated = (
        db.query(InvitationCode)
        .filter(
            InvitationCode.id == invitation_code.id,
            InvitationCode.status == InvitationCodeStatus.ACTIVE.value,
            or_(
                InvitationCode.max_redemptions.is_(None),
                InvitationCode.redemption_count < InvitationCode.max_redemptions,
            ),
        )
        .update(
            {InvitationCode.redemption_count: InvitationCode.redemption_count + 1},
            synchronize_session=False,
        )
    )
    if not updated:
        raise InvalidStateError("Invitation code has reached its redemption limit")
    db.expire(invitation_code, ["redemption_count"])

    membership = membership_service.add_member(
        db,
        org_id=org.id,
        user_id=caller.effective_user_id,
        role=role,
        invited_by=invitation_code.created_by,
    )

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_CODE_REDEEMED,
        resource_type="invitation_code",
        org_id=org.id,
        resource_id=invitation_code.id,
        metadata={"role": role.name},
    )
    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_ADDED,
        resource_type="member",
        org_id=org.id,
        resource_id=membership.id,
        metadata={
            "user_id": caller.effective_user_id,
            "role": role.name,
            "via_invitation_code": str(invitation_code.id),
        },
    )
    return membership


def revoke_invitation_code(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    code_id: uuid.UUID,
) -> InvitationCode:
    """Revoke an active join code. Requires invitationCode:manage."""
    permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.INVITATION_CODE_MANAGE
    )
    invitation_code = (
        db.query(InvitationCode)
        .filter(InvitationCode.id == code_id, InvitationCode.organization_id == org_id)
        .first()
    )
    if not invitation_code:
        raise NotFoundError("Invitation code not found")
    if invitation_code.status != InvitationCodeStatus.ACTIVE.value:
        raise InvalidStateError(f"Invitation code is {invitation_code.status}")

    invitation_code.status = InvitationCodeStatus.REVOKED.value
    invitation_code.revoked_at = _now()
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.INVITATION_CODE_REVOKED,
        resource_type="invitation_code",
        org_id=org_id,
        resource_id=invitation_code.id,
    )
    return invitation_code


def list_invitation_codes(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    include_revoked: bool = True,
) -> list[InvitationCode]:
    permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.INVITATION_CODE_READ
    )
    query = db.query(InvitationCode).filter(InvitationCode.organization_id == org_id)
    if not include_revoked:
        query = query.filter(InvitationCode.status == InvitationCodeStatus.ACTIVE.value)
    return query.order_by(InvitationCode.created_at.desc()).all()
