"""Organization role endpoints."""

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
from app.core.permissions import Capability, CapabilityCategory, get_all_capabilities
from app.schemas.auth import CallerContext
from app.schemas.org import CapabilityInfo, RoleCreate, RoleRead, RoleUpdate
from app.services import permission_service, role_service


router = APIRouter()


@router.get("/{org_id}/roles", response_model=list[RoleRead])
def list_roles(
    org_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Roles ordered by rank, most authority first."""
    return [RoleRead.model_validate(r) for r in role_service.list_roles(db, caller, org_id)]


@router.get("/{org_id}/roles/capabilities", response_model=list[CapabilityInfo])
def list_capabilities(
    org_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """
    Capabilities a role can grant, with labels for role editors.

    Requires role:read.
    """
    permission_service.require_permission(db, org_id, caller.effective_user_id, Capability.ROLE_READ)
    return [
        CapabilityInfo(
            key=c.key,
            label=c.label,
            description=c.description,
            category=CapabilityCategory(c.category).value,
        )
        for c in get_all_capabilities()
    ]


@router.post(
    "/{org_id}/roles",
    response_model=RoleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_role(
    org_id: UUID,
    data: RoleCreate,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    role = role_service.create_role(
        db,
        caller,
        org_id,
        name=data.name,
        permissions=data.permissions,
        sort_order=data.sort_order,
        description=data.description,
    )
    db.commit()
    return RoleRead.model_validate(role)


@router.patch(
    "/{org_id}/roles/{role_id}",
    response_model=RoleRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_role(
    org_id: UUID,
    role_id: UUID,
    data: RoleUpdate,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    role = role_service.update_role(
        db,
        caller,
        org_id,
        role_id,
        config,
        name=data.name,
        description=data.description,
        permissions=data.permissions,
        sort_order=data.sort_order,
    )
    db.commit()
    return RoleRead.model_validate(role)


@router.delete(
    "/{org_id}/roles/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_role(
    org_id: UUID,
    role_id: UUID,
    caller: CallerContext = Depends(get_active_caller),
    db: Session = Depends(get_db),
):
    role_service.delete_role(db, caller, org_id, role_id)
    db.commit()
