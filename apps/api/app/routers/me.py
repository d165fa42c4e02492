"""Caller-scoped endpoints: profile, active organization, devices."""

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
from app.core.errors import NotFoundError
from app.schemas.auth import CallerContext
from app.schemas.org import OrgRead, OrgWithRole
from app.schemas.user import (
    ActiveOrgUpdate,
    DeviceRead,
    DeviceRegister,
    ProfileRead,
    ProfileSync,
    ProfileUpdate,
    RemovedSessions,
)
from app.services import device_service, org_service, profile_service


router = APIRouter()


# =============================================================================
# Profile
# =============================================================================

@router.post(
    "/sync",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def sync_profile(
    data: ProfileSync,
    caller: CallerContext = Depends(get_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Create or refresh the signed-in user's profile from identity claims."""
    profile = profile_service.sync_user(
        db,
        caller.actor_user_id,
        config,
        email=data.email,
        phone=data.phone,
        display_name=data.display_name,
        avatar_url=data.avatar_url,
        migration_linking=data.migration_linking,
    )
    db.commit()
    return ProfileRead.model_validate(profile)


@router.get("", response_model=ProfileRead)
def get_me(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Profile of the effective user (the impersonated user while impersonating)."""
    profile = profile_service.get_profile(db, caller.effective_user_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return ProfileRead.model_validate(profile)


@router.patch("", response_model=ProfileRead, dependencies=[Depends(require_csrf_header)])
def update_me(
    data: ProfileUpdate,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    profile = profile_service.update_profile(
        db,
        caller,
        display_name=data.display_name,
        avatar_url=data.avatar_url,
        phone=data.phone,
        metadata=data.metadata,
    )
    db.commit()
    return ProfileRead.model_validate(profile)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_me(
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Soft-delete the caller's account."""
    profile_service.delete_user(db, caller, config)
    db.commit()


@router.put(
    "/active-org",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_active_org(
    data: ActiveOrgUpdate,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    profile = profile_service.set_active_org(db, caller, data.org_id)
    db.commit()
    return ProfileRead.model_validate(profile)


@router.get("/orgs", response_model=list[OrgWithRole])
def list_my_orgs(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Live organizations the caller belongs to."""
    return [
        OrgWithRole(
            organization=OrgRead.model_validate(org),
            role=role.name,
            permissions=list(role.permissions or []),
        )
        for org, role in org_service.list_user_orgs(db, caller)
    ]


# =============================================================================
# Devices
# =============================================================================

@router.get("/devices", response_model=list[DeviceRead])
def list_devices(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return [DeviceRead.model_validate(d) for d in device_service.list_devices(db, caller)]


@router.post(
    "/devices",
    response_model=DeviceRead | None,
    dependencies=[Depends(require_csrf_header)],
)
def register_device(
    data: DeviceRegister,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    """Register the current session's device (no-op while impersonating)."""
    session_id = data.session_id or caller.session_id
    device = device_service.register_device(
        db,
        caller,
        session_id=session_id or "",
        user_agent=caller.user_agent,
        ip_address=caller.ip_address,
    )
    db.commit()
    return DeviceRead.model_validate(device) if device else None


@router.post(
    "/devices/activity",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def touch_device(
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    if caller.session_id and device_service.update_device_activity(db, caller, caller.session_id):
        db.commit()


@router.delete(
    "/devices/{device_id}",
    response_model=RemovedSessions,
    dependencies=[Depends(require_csrf_header)],
)
def remove_device(
    device_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    session_id = device_service.remove_device(db, caller, device_id)
    db.commit()
    return RemovedSessions(session_ids=[session_id])


@router.post(
    "/devices/revoke-others",
    response_model=RemovedSessions,
    dependencies=[Depends(require_csrf_header)],
)
def remove_other_devices(
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    """Remove every device except the current session."""
    session_ids = device_service.remove_all_other_devices(db, caller, caller.session_id)
    db.commit()
    return RemovedSessions(session_ids=session_ids)
