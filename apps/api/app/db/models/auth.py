"""User profile, device and impersonation models.

Users are identified by an opaque string id issued by the external identity
provider. No credentials are stored here.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.enums import ImpersonationStatus
from app.db.types import JSONType, utcnow


class UserProfile(Base):
    """
    Application-side profile for an identity-provider user.

    Soft-deleted via deleted_at (memberships and devices are stripped
    immediately), then purged after the retention window.
    """

    __tablename__ = "user_profiles"
    __table_args__ = (
        Index("ix_user_profiles_email", "email"),
        Index("ix_user_profiles_deleted_at", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    active_org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    last_active_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Moderation
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ban_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Platform admin flag (separate from org roles)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)


class Device(Base):
    """A signed-in session/device for a user, keyed by the identity session id."""

    __tablename__ = "user_devices"
    __table_args__ = (
        Index("ix_user_devices_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    browser: Mapped[str | None] = mapped_column(String(100), nullable=True)
    os: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    last_active_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class ImpersonationSession(Base):
    """
    Admin acting as another user.

    At most one ACTIVE session per admin; expiry is checked lazily on read
    and swept hourly.
    """

    __tablename__ = "impersonation_sessions"
    __table_args__ = (
        Index("ix_impersonation_admin_status", "admin_user_id", "status"),
        Index("ix_impersonation_target", "target_user_id"),
        Index("ix_impersonation_status_expires", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    target_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ImpersonationStatus.ACTIVE.value, nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)
