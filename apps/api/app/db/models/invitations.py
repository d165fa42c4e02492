"""Token invitations and multi-use invitation codes."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.enums import InvitationCodeStatus, InvitationStatus
from app.db.types import utcnow


class Invitation(Base):
    """
    Single-use invitation addressed to an email or phone number.

    Only the SHA-256 hash of the token is stored. role_id is a plain
    reference: the role may be deleted after a non-pending invitation.
    """

    __tablename__ = "invitations"
    __table_args__ = (
        CheckConstraint(
            "email IS NOT NULL OR phone IS NOT NULL",
            name="ck_invitations_recipient",
        ),
        Index("ix_invitations_org_status", "organization_id", "status"),
        Index("ix_invitations_org_email", "organization_id", "email"),
        Index("ix_invitations_org_phone", "organization_id", "phone"),
        Index("ix_invitations_role", "role_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    invited_by: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationStatus.PENDING.value, nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    accepted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class InvitationCode(Base):
    """Shareable join code; redeemable until revoked, expired or capped."""

    __tablename__ = "invitation_codes"
    __table_args__ = (
        Index("ix_invitation_codes_org", "organization_id"),
        Index("ix_invitation_codes_status_revoked", "status", "revoked_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    max_redemptions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    redemption_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationCodeStatus.ACTIVE.value, nullable=False
    )
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
