"""Invitation code endpoints (shareable join codes)."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.deps import (
    get_access_config,
    get_active_caller,
    get_caller,
    get_db,
    require_csrf_header,
)
from app.schemas.auth import CallerContext
from app.schemas.invite import (
    InvitationCodeCreate,
    InvitationCodePreview,
    InvitationCodeRead,
    InvitationCodeRedeem,
)
from app.schemas.org import MemberRead
from app.services import invite_service


router = APIRouter(tags=["invitation-codes"])


@router.get("/orgs/{org_id}/invitation-codes", response_model=list[InvitationCodeRead])
def list_invitation_codes(
    org_id: UUID,
    include_revoked: bool = True,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    codes = invite_service.list_invitation_codes(
        db, caller, org_id, include_revoked=include_revoked
    )
    return [InvitationCodeRead.model_validate(c) for c in codes]


@router.post(
    "/orgs/{org_id}/invitation-codes",
    response_model=InvitationCodeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_invitation_code(
    org_id: UUID,
    data: InvitationCodeCreate,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    code = invite_service.create_invitation_code(
        db,
        caller,
        config,
        org_id,
        role_id=data.role_id,
        max_redemptions=data.max_redemptions,
        expires_at=data.expires_at,
    )
    db.commit()
    return InvitationCodeRead.model_validate(code)


@router.post(
    "/orgs/{org_id}/invitation-codes/{code_id}/revoke",
    response_model=InvitationCodeRead,
    dependencies=[Depends(require_csrf_header)],
)
def revoke_invitation_code(
    org_id: UUID,
    code_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    code = invite_service.revoke_invitation_code(db, caller, org_id, code_id)
    db.commit()
    return InvitationCodeRead.model_validate(code)


@router.post("/invitation-codes/preview", response_model=InvitationCodePreview)
def preview_invitation_code(
    data: InvitationCodeRedeem,
    db: Session = Depends(get_db),
):
    code, org, role = invite_service.preview_invitation_code(db, data.code)
    return InvitationCodePreview(
        status=code.status,
        expires_at=code.expires_at,
        organization_name=org.name if org else None,
        organization_slug=org.slug if org else None,
        role=role.name if role else None,
    )


@router.post(
    "/invitation-codes/redeem",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def redeem_invitation_code(
    data: InvitationCodeRedeem,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    """Join the code's organization with the code's role."""
    membership = invite_service.redeem_invitation_code(db, caller, data.code)
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
