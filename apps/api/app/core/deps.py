"""FastAPI dependencies for caller resolution, authorization gates and database access.

Authentication happens upstream: the identity layer in front of this service
forwards the authenticated user id in X-User-Id (and the identity session id
in X-Session-Id). This service trusts those headers.
"""

from functools import lru_cache
from typing import Generator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import AccessConfig, build_access_config, settings
from app.db.session import SessionLocal
from app.schemas.auth import CallerContext


# Header names
USER_ID_HEADER = "X-User-Id"
SESSION_ID_HEADER = "X-Session-Id"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    Uncommitted work is discarded on close.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def _default_access_config() -> AccessConfig:
    return build_access_config(settings)


def get_access_config() -> AccessConfig:
    """Engine configuration (built once from settings)."""
    return _default_access_config()


def get_caller(
    request: Request,
    db: Session = Depends(get_db),
) -> CallerContext:
    """
    Resolve the caller: actor from the identity header, effective user from
    any live impersonation session.

    Raises:
        HTTPException 401: No user id forwarded
    """
    from app.services import audit_service, impersonation_service

    actor_user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not actor_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    effective_user_id = impersonation_service.resolve_effective_user(db, actor_user_id)
    user_agent = request.headers.get("user-agent")

    return CallerContext(
        actor_user_id=actor_user_id,
        effective_user_id=effective_user_id,
        ip_address=audit_service.get_client_ip(request),
        session_id=request.headers.get(SESSION_ID_HEADER),
        user_agent=user_agent[:500] if user_agent else None,
    )


def get_active_caller(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
) -> CallerContext:
    """
    Caller for mutations: the actor's account must be live and unbanned.

    Raises:
        NotFoundError / BannedAccountError (rendered by the app error handler)
    """
    from app.services import profile_service

    profile_service.require_active_account(db, caller.actor_user_id)
    return caller


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """Verify the internal secret header for scheduled endpoints."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")
