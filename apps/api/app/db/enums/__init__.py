"""Enum definitions for application constants."""

from app.db.enums.audit import AuditAction
from app.db.enums.auth import DeviceType, ImpersonationStatus
from app.db.enums.orgs import InvitationCodeStatus, InvitationStatus, OrganizationStatus

__all__ = [
    "AuditAction",
    "DeviceType",
    "ImpersonationStatus",
    "InvitationCodeStatus",
    "InvitationStatus",
    "OrganizationStatus",
]
