"""Audit log model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import JSONType, utcnow


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Security:
    - Never stores raw tokens or token hashes
    - effective_user_id is set only when an admin acted as another user
    - organization_id is null for platform-level actions
    - Rows are removed only by the organization purge
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_org_ts", "organization_id", "timestamp"),
        Index("idx_audit_org_action_ts", "organization_id", "action", "timestamp"),
        Index("idx_audit_org_actor_ts", "organization_id", "actor_user_id", "timestamp"),
        Index("idx_audit_action_ts", "action", "timestamp"),
        Index("idx_audit_actor_ts", "actor_user_id", "timestamp"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,  # Platform-level actions have no org
    )
    actor_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    effective_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    action: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
