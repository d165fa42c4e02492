"""Platform admin router for console operations.

Every service call below checks the actor's platform admin flag; callers who
are not admins get 403 regardless of organization membership.
"""

import logging
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
from app.schemas.auth import CallerContext
from app.schemas.org import MemberRead, OrgRead, RoleRead
from app.schemas.platform import (
    AdminFlagUpdate,
    AuditLogRead,
    BanRequest,
    OrgDetail,
    OrgListResponse,
    OrgSummary,
    ProfileDetail,
    ProfileListResponse,
    ProfileMembership,
    TransferOwnership,
)
from app.schemas.user import DeviceRead, ProfileRead
from app.services import audit_service, membership_service, platform_service, profile_service

router = APIRouter(prefix="/platform", tags=["platform"])
logger = logging.getLogger(__name__)


# =============================================================================
# Users
# =============================================================================

@router.get("/users", response_model=ProfileListResponse)
def list_users(
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    profiles, total = platform_service.list_all_profiles(
        db,
        caller,
        search=search,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    return ProfileListResponse(
        items=[ProfileRead.model_validate(p) for p in profiles],
        total=total,
    )


@router.get("/users/{user_id}", response_model=ProfileDetail)
def get_user(
    user_id: str,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    detail = platform_service.get_profile_detail(db, caller, user_id)
    return ProfileDetail(
        profile=ProfileRead.model_validate(detail["profile"]),
        memberships=[ProfileMembership(**m) for m in detail["memberships"]],
        devices=[DeviceRead.model_validate(d) for d in detail["devices"]],
    )


@router.post(
    "/users/{user_id}/ban",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def ban_user(
    user_id: str,
    data: BanRequest,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    profile = platform_service.ban_user(db, caller, user_id, reason=data.reason)
    db.commit()
    return ProfileRead.model_validate(profile)


@router.post(
    "/users/{user_id}/unban",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def unban_user(
    user_id: str,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    profile = platform_service.unban_user(db, caller, user_id)
    db.commit()
    return ProfileRead.model_validate(profile)


@router.put(
    "/users/{user_id}/admin",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_admin(
    user_id: str,
    data: AdminFlagUpdate,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    """Grant or revoke the platform admin flag."""
    profile = platform_service.set_admin(db, caller, user_id, data.is_admin)
    db.commit()
    return ProfileRead.model_validate(profile)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_user(
    user_id: str,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    profile_service.delete_user(db, caller, config, target_user_id=user_id)
    db.commit()
    logger.info("Platform admin %s deleted user %s", caller.actor_user_id, user_id)


# =============================================================================
# Organizations
# =============================================================================

@router.get("/orgs", response_model=OrgListResponse)
def list_orgs(
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    rows, total = platform_service.list_all_orgs(
        db,
        caller,
        search=search,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    return OrgListResponse(
        items=[
            OrgSummary(organization=OrgRead.model_validate(org), member_count=count)
            for org, count in rows
        ],
        total=total,
    )


@router.get("/orgs/{org_id}", response_model=OrgDetail)
def get_org(
    org_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    detail = platform_service.get_org_detail(db, caller, org_id)
    return OrgDetail(
        organization=OrgRead.model_validate(detail["organization"]),
        member_count=detail["member_count"],
        pending_invitation_count=detail["pending_invitation_count"],
        roles=[RoleRead.model_validate(r) for r in detail["roles"]],
    )


@router.delete(
    "/orgs/{org_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def force_remove_member(
    org_id: UUID,
    user_id: str,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Remove a member without the role hierarchy check."""
    membership_service.force_remove_member(db, caller, config, org_id, user_id)
    db.commit()


@router.post(
    "/orgs/{org_id}/transfer-ownership",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def transfer_ownership(
    org_id: UUID,
    data: TransferOwnership,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    membership = membership_service.transfer_ownership(
        db, caller, config, org_id, data.new_owner_user_id
    )
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


# =============================================================================
# Audit
# =============================================================================

@router.get("/audit", response_model=list[AuditLogRead])
def list_platform_audit_logs(
    action: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Audit entries across all organizations, newest first."""
    entries = audit_service.list_platform_audit_logs(db, caller, action=action, limit=limit)
    return [AuditLogRead.model_validate(e) for e in entries]
