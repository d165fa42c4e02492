"""Platform admin impersonation endpoints."""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query
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
from app.schemas.platform import ImpersonationRead, ImpersonationStart, ImpersonationStopped
from app.services import impersonation_service


router = APIRouter(prefix="/impersonation", tags=["impersonation"])


@router.post(
    "/start",
    response_model=ImpersonationRead,
    dependencies=[Depends(require_csrf_header)],
)
def start_impersonation(
    data: ImpersonationStart,
    caller: CallerContext = Depends(get_active_caller),
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Act as another user. Any session the admin already holds is ended first."""
    ttl = timedelta(minutes=data.ttl_minutes) if data.ttl_minutes else None
    session = impersonation_service.start_impersonation(
        db,
        caller,
        config,
        target_user_id=data.target_user_id,
        reason=data.reason,
        ttl=ttl,
    )
    db.commit()
    return ImpersonationRead.model_validate(session)


@router.post(
    "/stop",
    response_model=ImpersonationStopped,
    dependencies=[Depends(require_csrf_header)],
)
def stop_impersonation(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ended = impersonation_service.stop_impersonation(db, caller)
    db.commit()
    return ImpersonationStopped(ended=ended)


@router.get("/active", response_model=ImpersonationRead | None)
def get_active_impersonation(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    session = impersonation_service.get_active_impersonation(db, caller.actor_user_id)
    return ImpersonationRead.model_validate(session) if session else None


@router.get("/history", response_model=list[ImpersonationRead])
def list_impersonation_history(
    target_user_id: str | None = None,
    limit: int = Query(50, ge=1, le=50),
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    sessions = impersonation_service.list_impersonation_history(
        db, caller, target_user_id=target_user_id, limit=limit
    )
    return [ImpersonationRead.model_validate(s) for s in sessions]
