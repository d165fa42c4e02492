"""Organization lifecycle endpoints."""

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
from app.core.errors import ValidationFailedError
from app.core.permissions import Capability
from app.schemas.auth import CallerContext
from app.schemas.org import CapabilityCheck, OrgCreate, OrgRead, OrgUpdate
from app.services import membership_service, org_service, permission_service


router = APIRouter()


@router.post(
    "",
    response_model=OrgRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_org(
    data: OrgCreate,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Create an organization; the caller becomes its owner."""
    org = org_service.create_org(
        db,
        caller,
        config,
        name=data.name,
        slug=data.slug,
        logo_url=data.logo_url,
        metadata=data.metadata,
        is_personal=data.is_personal,
    )
    db.commit()
    return OrgRead.model_validate(org)


@router.get("/by-slug/{slug}", response_model=OrgRead)
def get_org_by_slug(
    slug: str,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return OrgRead.model_validate(org_service.get_org_by_slug(db, caller, slug))


@router.get("/{org_id}", response_model=OrgRead)
def get_org(
    org_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return OrgRead.model_validate(org_service.get_org(db, caller, org_id))


@router.patch("/{org_id}", response_model=OrgRead, dependencies=[Depends(require_csrf_header)])
def update_org(
    org_id: UUID,
    data: OrgUpdate,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    org = org_service.update_org(
        db,
        caller,
        org_id,
        name=data.name,
        slug=data.slug,
        logo_url=data.logo_url,
        metadata=data.metadata,
    )
    db.commit()
    return OrgRead.model_validate(org)


@router.delete(
    "/{org_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_org(
    org_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Soft-delete the organization (owners only)."""
    org_service.delete_org(db, caller, config, org_id)
    db.commit()


@router.post(
    "/{org_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def leave_org(
    org_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    membership_service.leave_org(db, caller, config, org_id)
    db.commit()


@router.get("/{org_id}/permissions/{capability}", response_model=CapabilityCheck)
def check_permission(
    org_id: UUID,
    capability: str,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Whether the caller holds a capability in this org (for UI gating)."""
    if not Capability.has_value(capability):
        raise ValidationFailedError(f"Unknown permission: {capability}")
    allowed = permission_service.check_permission(
        db, org_id, caller.effective_user_id, Capability(capability)
    )
    return CapabilityCheck(capability=capability, allowed=allowed)
