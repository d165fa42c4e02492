"""Pydantic schemas for API request/response models."""

from app.schemas.auth import CallerContext
from app.schemas.invite import (
    InvitationCodeCreate,
    InvitationCodeRead,
    InvitationCreate,
    InvitationRead,
)
from app.schemas.org import OrgCreate, OrgRead, RoleCreate, RoleRead
from app.schemas.user import ProfileRead, ProfileUpdate

__all__ = [
    # Auth
    "CallerContext",
    # Orgs
    "OrgCreate",
    "OrgRead",
    "RoleCreate",
    "RoleRead",
    # Invitations
    "InvitationCreate",
    "InvitationRead",
    "InvitationCodeCreate",
    "InvitationCodeRead",
    # Profiles
    "ProfileRead",
    "ProfileUpdate",
]
