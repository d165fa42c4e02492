"""SQLAlchemy ORM models."""

from app.db.models.audit import AuditLog
from app.db.models.auth import Device, ImpersonationSession, UserProfile
from app.db.models.invitations import Invitation, InvitationCode
from app.db.models.orgs import Membership, Organization, Role

__all__ = [
    "AuditLog",
    "Device",
    "ImpersonationSession",
    "Invitation",
    "InvitationCode",
    "Membership",
    "Organization",
    "Role",
    "UserProfile",
]
