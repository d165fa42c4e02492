"""FastAPI application entry point."""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.errors import AccessError
from app.core.structured_logging import build_log_context
from app.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Org Access API",
    description="Multi-tenant organization access control and audit API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With", "X-User-Id", "X-Session-Id"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Error handling
# ============================================================================

@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    """Render domain errors as {"error": code, "detail": message}."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected: %s",
        exc.code,
        extra=build_log_context(
            actor_user_id=request.headers.get("X-User-Id"),
            request_id=getattr(request.state, "request_id", None),
            route=request.url.path,
            method=request.method,
        ),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# ============================================================================
# Routers
# ============================================================================

from app.routers import (  # noqa: E402
    audit,
    impersonation,
    internal,
    invitation_codes,
    invitations,
    me,
    members,
    orgs,
    platform,
    roles,
)

# Caller-scoped profile, active org, devices
app.include_router(me.router, prefix="/me", tags=["me"])

# Organizations, roles and members
app.include_router(orgs.router, prefix="/orgs", tags=["orgs"])
app.include_router(roles.router, prefix="/orgs", tags=["roles"])
app.include_router(members.router, prefix="/orgs", tags=["members"])

# Mixed paths: /orgs/{id}/invitations and /invitations/*
app.include_router(invitations.router)
app.include_router(invitation_codes.router)

# Audit trail (audit:read)
app.include_router(audit.router)

# Platform admin console and impersonation
app.include_router(impersonation.router)
app.include_router(platform.router)

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
