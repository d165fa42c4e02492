"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external scheduler; the same sweeps are available from the CLI.
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.deps import get_access_config, get_db, verify_internal_secret
from app.services import retention_service


router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)
logger = logging.getLogger(__name__)


class SweepResponse(BaseModel):
    job: str
    count: int


@router.post("/expire-impersonation", response_model=SweepResponse)
def expire_impersonation(db: Session = Depends(get_db)):
    """Hourly: mark impersonation sessions past expiry as expired."""
    count = retention_service.expire_impersonation_sessions(db)
    return SweepResponse(job="expire-impersonation", count=count)


@router.post("/purge-users", response_model=SweepResponse)
def purge_users(
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Daily: hard-delete accounts soft-deleted beyond the retention window."""
    count = retention_service.purge_deleted_users(db, config)
    return SweepResponse(job="purge-users", count=count)


@router.post("/purge-orgs", response_model=SweepResponse)
def purge_orgs(
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    """Daily: hard-delete organizations soft-deleted beyond the retention window."""
    count = retention_service.purge_deleted_orgs(db, config)
    return SweepResponse(job="purge-orgs", count=count)


@router.post("/purge-invitation-codes", response_model=SweepResponse)
def purge_invitation_codes(
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
):
    count = retention_service.purge_revoked_invitation_codes(db, config)
    if count:
        logger.info("Scheduled purge removed %s revoked invitation code(s)", count)
    return SweepResponse(job="purge-invitation-codes", count=count)
