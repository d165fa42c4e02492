"""Organization, role and membership Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator


class OrgCreate(BaseModel):
    """Request schema for creating an organization."""

    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=100)
    logo_url: str | None = None
    metadata: dict | None = None
    is_personal: bool = False

    @field_validator("slug")
    @classmethod
    def lowercase_slug(cls, v: str) -> str:
        return v.lower().strip()


class OrgUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    slug: str | None = Field(default=None, max_length=100)
    logo_url: str | None = None
    metadata: dict | None = None


class OrgRead(BaseModel):
    """Response schema for reading an organization."""

    id: UUID
    name: str
    slug: str
    logo_url: str | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    is_personal: bool
    status: str
    created_by: str
    created_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrgWithRole(BaseModel):
    """An organization the caller belongs to, with the caller's role."""

    organization: OrgRead
    role: str
    permissions: list[str]


# =============================================================================
# Roles
# =============================================================================

class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    sort_order: int = Field(ge=0)


class RoleUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None
    sort_order: int | None = Field(default=None, ge=0)


class RoleRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: str | None
    permissions: list[str]
    is_system: bool
    sort_order: int

    model_config = {"from_attributes": True}


class CapabilityInfo(BaseModel):
    key: str
    label: str
    description: str
    category: str


# =============================================================================
# Members
# =============================================================================

class MemberRead(BaseModel):
    id: UUID
    user_id: str
    role_id: UUID
    role: str
    sort_order: int
    joined_at: datetime
    invited_by: str | None
    email: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None


class MemberRoleUpdate(BaseModel):
    role_id: UUID


class CapabilityCheck(BaseModel):
    capability: str
    allowed: bool
