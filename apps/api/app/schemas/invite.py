"""Invitation and invitation-code Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class InvitationCreate(BaseModel):
    """
    Request schema for creating an invitation.

    Validates:
    - At least one of email / phone
    - Email format, normalized to lowercase
    """
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    role_id: UUID
    expires_at: datetime | None = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @model_validator(mode="after")
    def require_recipient(self):
        if not self.email and not self.phone:
            raise ValueError("email or phone is required")
        return self


class InvitationRead(BaseModel):
    """Response schema for reading an invitation (never includes the token)."""
    id: UUID
    organization_id: UUID
    email: str | None
    phone: str | None
    role_id: UUID
    invited_by: str
    status: str
    expires_at: datetime
    accepted_by: str | None
    accepted_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationCreated(BaseModel):
    """Returned once on creation. The raw token cannot be retrieved again."""
    invitation: InvitationRead
    token: str


class InvitationTokenRequest(BaseModel):
    token: str = Field(min_length=1)


class InvitationPreview(BaseModel):
    """Public view of an invitation for the accept page."""
    status: str
    expires_at: datetime
    organization_name: str | None
    organization_slug: str | None
    role: str | None


# =============================================================================
# Invitation codes
# =============================================================================

class InvitationCodeCreate(BaseModel):
    role_id: UUID
    max_redemptions: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None


class InvitationCodeRead(BaseModel):
    id: UUID
    organization_id: UUID
    code: str
    role_id: UUID
    created_by: str
    max_redemptions: int | None
    redemption_count: int
    expires_at: datetime | None
    status: str
    revoked_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationCodeRedeem(BaseModel):
    code: str = Field(min_length=1, max_length=32)


class InvitationCodePreview(BaseModel):
    status: str
    expires_at: datetime | None
    organization_name: str | None
    organization_slug: str | None
    role: str | None
