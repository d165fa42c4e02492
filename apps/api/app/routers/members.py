"""Organization membership endpoints."""

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
from app.db.models import Membership, UserProfile
from app.schemas.auth import CallerContext
from app.schemas.org import MemberRead, MemberRoleUpdate
from app.services import membership_service


router = APIRouter()


def _member_to_response(membership: Membership, profile: UserProfile | None) -> MemberRead:
    return MemberRead(
        id=membership.id,
        user_id=membership.user_id,
        role_id=membership.role_id,
        role=membership.role.name,
        sort_order=membership.role.sort_order,
        joined_at=membership.joined_at,
        invited_by=membership.invited_by,
        email=profile.email if profile else None,
        display_name=profile.display_name if profile else None,
        avatar_url=profile.avatar_url if profile else None,
    )


@router.get("/{org_id}/members", response_model=list[MemberRead])
def list_members(
    org_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return [
        _member_to_response(m, p)
        for m, p in membership_service.list_members(db, caller, org_id)
    ]


@router.patch(
    "/{org_id}/members/{member_id}",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_member_role(
    org_id: UUID,
    member_id: UUID,
    data: MemberRoleUpdate,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Change a lower-ranked member's role."""
    membership = membership_service.update_member_role(
        db, caller, config, org_id, member_id, data.role_id
    )
    db.commit()
    profile = db.query(UserProfile).filter(UserProfile.user_id == membership.user_id).first()
    return _member_to_response(membership, profile)


@router.delete(
    "/{org_id}/members/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def remove_member(
    org_id: UUID,
    member_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    membership_service.remove_member(db, caller, config, org_id, member_id)
    db.commit()
