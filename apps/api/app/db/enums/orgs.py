"""Organization and invitation enums."""

from enum import Enum


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class InvitationStatus(str, Enum):
    """
    Token invitation state machine.

    pending -> accepted | declined | expired | revoked (all terminal)
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InvitationCodeStatus(str, Enum):
    """Join code state machine: active -> revoked (terminal)."""

    ACTIVE = "active"
    REVOKED = "revoked"
