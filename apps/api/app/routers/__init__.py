"""API routers."""

from app.routers.audit import router as audit_router
from app.routers.impersonation import router as impersonation_router
from app.routers.internal import router as internal_router
from app.routers.invitation_codes import router as invitation_codes_router
from app.routers.invitations import router as invitations_router
from app.routers.me import router as me_router
from app.routers.members import router as members_router
from app.routers.orgs import router as orgs_router
from app.routers.platform import router as platform_router
from app.routers.roles import router as roles_router

__all__ = [
    "audit_router",
    "impersonation_router",
    "internal_router",
    "invitation_codes_router",
    "invitations_router",
    "me_router",
    "members_router",
    "orgs_router",
    "platform_router",
    "roles_router",
]
