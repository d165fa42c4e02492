"""Invitation endpoints.

Mixed paths: /orgs/{org_id}/invitations for inviters, /invitations/* for
recipients holding a token.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.deps import (
    get_access_config,
    get_active_caller,
    get_caller,
    get_db,
    require_csrf_header,
)
from app.db.enums import InvitationStatus
from app.schemas.auth import CallerContext
from app.schemas.invite import (
    InvitationCreate,
    InvitationCreated,
    InvitationPreview,
    InvitationRead,
    InvitationTokenRequest,
)
from app.schemas.org import MemberRead
from app.services import invite_service


router = APIRouter(tags=["invitations"])


# =============================================================================
# Inviter side
# =============================================================================

@router.get("/orgs/{org_id}/invitations", response_model=list[InvitationRead])
def list_invitations(
    org_id: UUID,
    status_filter: InvitationStatus | None = Query(None, alias="status"),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    invitations = invite_service.list_invitations(db, caller, org_id, status=status_filter)
    return [InvitationRead.model_validate(i) for i in invitations]


@router.post(
    "/orgs/{org_id}/invitations",
    response_model=InvitationCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_invitation(
    org_id: UUID,
    data: InvitationCreate,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """
    Create an invitation. The raw token is returned once, for delivery by
    the caller's notification channel.
    """
    invitation, token = invite_service.create_invitation(
        db,
        caller,
        config,
        org_id,
        role_id=data.role_id,
        email=data.email,
        phone=data.phone,
        expires_at=data.expires_at,
    )
    db.commit()
    return InvitationCreated(invitation=InvitationRead.model_validate(invitation), token=token)


@router.post(
    "/orgs/{org_id}/invitations/{invitation_id}/revoke",
    response_model=InvitationRead,
    dependencies=[Depends(require_csrf_header)],
)
def revoke_invitation(
    org_id: UUID,
    invitation_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    invitation = invite_service.revoke_invitation(db, caller, org_id, invitation_id)
    db.commit()
    return InvitationRead.model_validate(invitation)


# =============================================================================
# Recipient side
# =============================================================================

@router.post("/invitations/preview", response_model=InvitationPreview)
def preview_invitation(
    data: InvitationTokenRequest,
    db: Session = Depends(get_db),
):
    """Public preview; the token is sent in the body so it stays out of access logs."""
    invitation, org, role = invite_service.preview_invitation(db, data.token)
    return InvitationPreview(
        status=invitation.status,
        expires_at=invitation.expires_at,
        organization_name=org.name if org else None,
        organization_slug=org.slug if org else None,
        role=role.name if role else None,
    )


@router.post(
    "/invitations/accept",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def accept_invitation(
    data: InvitationTokenRequest,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    membership = invite_service.accept_invitation(db, caller, data.token)
    db.commit()
    return MemberRead(
        id=membership.id,
        user_id=membership.user_id,
        role_id=membership.role_id,
        role=membership.role.name,
        sort_order=membership.role.sort_order,
        joined_at=membership.joined_at,
        invited_by=membership.invited_by,
    )


@router.post(
    "/invitations/decline",
    response_model=InvitationRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_invitation(
    data: InvitationTokenRequest,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    invitation = invite_service.decline_invitation(db, caller, data.token)
    db.commit()
    return InvitationRead.model_validate(invitation)
