"""Organization audit trail endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_caller, get_db
from app.schemas.auth import CallerContext
from app.schemas.platform import AuditLogRead
from app.services import audit_service


router = APIRouter(tags=["audit"])


@router.get("/orgs/{org_id}/audit", response_model=list[AuditLogRead])
def list_org_audit_logs(
    org_id: UUID,
    action: str | None = None,
    actor_user_id: str | None = None,
    resource_type: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """
    Audit entries for one organization, newest first.

    Requires audit:read. action takes precedence over actor_user_id.
    """
    entries = audit_service.list_org_audit_logs(
        db,
        caller,
        org_id,
        action=action,
        actor_user_id=actor_user_id,
        resource_type=resource_type,
        limit=limit,
    )
    return [AuditLogRead.model_validate(e) for e in entries]
