"""Audit enums."""

from enum import Enum


class AuditAction(str, Enum):
    """
    Audited actions (dotted verbs).

    Groups:
    - profile.*: account lifecycle and moderation
    - org.*: organization lifecycle
    - role.*, member.*: role hierarchy and membership
    - invitation.*, invitationCode.*: onboarding
    - device.*: session devices
    - impersonation.*, admin.*: platform administration
    """

    # Profiles
    PROFILE_UPDATED = "profile.updated"
    PROFILE_DELETED = "profile.deleted"
    PROFILE_BANNED = "profile.banned"
    PROFILE_UNBANNED = "profile.unbanned"

    # Organizations
    ORG_CREATED = "org.created"
    ORG_UPDATED = "org.updated"
    ORG_DELETED = "org.deleted"
    ORG_OWNERSHIP_TRANSFERRED = "org.ownership_transferred"

    # Roles
    ROLE_CREATED = "role.created"
    ROLE_UPDATED = "role.updated"
    ROLE_DELETED = "role.deleted"

    # Members
    MEMBER_ADDED = "member.added"
    MEMBER_ROLE_CHANGED = "member.role_changed"
    MEMBER_REMOVED = "member.removed"
    MEMBER_LEFT = "member.left"

    # Invitations
    INVITATION_CREATED = "invitation.created"
    INVITATION_ACCEPTED = "invitation.accepted"
    INVITATION_DECLINED = "invitation.declined"
    INVITATION_REVOKED = "invitation.revoked"

    # Invitation codes
    INVITATION_CODE_CREATED = "invitationCode.created"
    INVITATION_CODE_REDEEMED = "invitationCode.redeemed"
    INVITATION_CODE_REVOKED = "invitationCode.revoked"

    # Devices
    DEVICE_REGISTERED = "device.registered"
    DEVICE_REMOVED = "device.removed"
    DEVICE_REVOKED_ALL = "device.revoked_all"

    # Platform administration
    IMPERSONATION_STARTED = "impersonation.started"
    IMPERSONATION_ENDED = "impersonation.ended"
    ADMIN_GRANTED = "admin.granted"
    ADMIN_REVOKED = "admin.revoked"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_
