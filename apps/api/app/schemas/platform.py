"""Platform admin, impersonation and audit Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from app.schemas.org import OrgRead, RoleRead
from app.schemas.user import DeviceRead, ProfileRead


class AuditLogRead(BaseModel):
    id: UUID
    organization_id: UUID | None
    actor_user_id: str
    effective_user_id: str | None
    action: str
    resource_type: str
    resource_id: str | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    ip_address: str | None
    timestamp: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Impersonation
# =============================================================================

class ImpersonationStart(BaseModel):
    target_user_id: str = Field(min_length=1)
    reason: str | None = Field(default=None, max_length=500)
    ttl_minutes: int | None = Field(default=None, ge=1, le=24 * 60)


class ImpersonationRead(BaseModel):
    id: UUID
    admin_user_id: str
    target_user_id: str
    reason: str | None
    status: str
    started_at: datetime
    expires_at: datetime
    ended_at: datetime | None

    model_config = {"from_attributes": True}


class ImpersonationStopped(BaseModel):
    ended: int


# =============================================================================
# Console
# =============================================================================

class ProfileListResponse(BaseModel):
    items: list[ProfileRead]
    total: int


class OrgSummary(BaseModel):
    organization: OrgRead
    member_count: int


class OrgListResponse(BaseModel):
    items: list[OrgSummary]
    total: int


class ProfileMembership(BaseModel):
    org_id: UUID
    org_name: str
    org_slug: str
    org_status: str
    role: str
    joined_at: datetime


class ProfileDetail(BaseModel):
    profile: ProfileRead
    memberships: list[ProfileMembership]
    devices: list[DeviceRead]


class OrgDetail(BaseModel):
    organization: OrgRead
    member_count: int
    pending_invitation_count: int
    roles: list[RoleRead]


class BanRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class AdminFlagUpdate(BaseModel):
    is_admin: bool


class TransferOwnership(BaseModel):
    new_owner_user_id: str = Field(min_length=1)
