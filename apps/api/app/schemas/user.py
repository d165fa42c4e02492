"""Profile and device Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class ProfileSync(BaseModel):
    """Identity claims forwarded after sign-in."""

    email: str | None = None
    phone: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    migration_linking: bool = False


class ProfileUpdate(BaseModel):
    """Request schema for updating the caller's profile."""

    display_name: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    metadata: dict | None = None


class ProfileRead(BaseModel):
    """Response schema for reading a profile."""

    user_id: str
    email: str | None
    phone: str | None
    display_name: str | None
    avatar_url: str | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    active_org_id: UUID | None
    last_active_at: datetime | None
    is_admin: bool
    is_banned: bool
    ban_reason: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ActiveOrgUpdate(BaseModel):
    org_id: UUID | None = None


class DeviceRegister(BaseModel):
    session_id: str | None = None


class DeviceRead(BaseModel):
    id: UUID
    session_id: str
    device_name: str | None
    device_type: str | None
    browser: str | None
    os: str | None
    ip_address: str | None
    last_active_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class RemovedSessions(BaseModel):
    """Session ids the identity layer should sign out."""

    session_ids: list[str]
