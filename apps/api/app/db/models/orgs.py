"""Organization, role and membership models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import OrganizationStatus
from app.db.types import JSONType, utcnow


class Organization(Base):
    """
    A tenant in the multi-tenant system.

    Soft-deleted by setting status=deleted and deleted_at; hard-deleted by
    the retention purge. Slugs stay reserved until the purge.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        Index("ix_organizations_status_deleted_at", "status", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    is_personal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=OrganizationStatus.ACTIVE.value, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    roles: Mapped[list["Role"]] = relationship(
        back_populates="organization", order_by="Role.sort_order"
    )

    @property
    def is_deleted(self) -> bool:
        return self.status == OrganizationStatus.DELETED.value


class Role(Base):
    """
    Organization-scoped role.

    Lower sort_order means more authority. The owner role (sort_order 0) is a
    system role: never renamed or deleted.
    """

    __tablename__ = "org_roles"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_org_roles_org_name"),
        Index("ix_org_roles_org_sort", "organization_id", "sort_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permissions: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="roles")


class Membership(Base):
    """A user's membership in an organization. One per (org, user)."""

    __tablename__ = "org_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_members_org_user"),
        Index("ix_org_members_user", "user_id"),
        Index("ix_org_members_role", "role_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("org_roles.id", ondelete="RESTRICT"), nullable=False
    )
    invited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    role: Mapped["Role"] = relationship()
    organization: Mapped["Organization"] = relationship()
