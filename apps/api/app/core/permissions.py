"""Capability registry and permission evaluation.

Permissions are flat capability strings. A role grants a capability when its
permission list contains the capability exactly or contains the wildcard.
There is no prefix or glob matching.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.core.errors import ValidationFailedError


class Capability(str, Enum):
    """Closed set of capabilities a role can grant."""

    ALL = "*"

    ORG_WRITE = "org:write"
    ORG_DELETE = "org:delete"
    ROLE_READ = "role:read"
    ROLE_MANAGE = "role:manage"
    MEMBER_READ = "member:read"
    MEMBER_MANAGE = "member:manage"
    MEMBER_REMOVE = "member:remove"
    MEMBER_INVITE = "member:invite"
    INVITATION_READ = "invitation:read"
    INVITATION_MANAGE = "invitation:manage"
    INVITATION_CODE_CREATE = "invitationCode:create"
    INVITATION_CODE_READ = "invitationCode:read"
    INVITATION_CODE_MANAGE = "invitationCode:manage"
    AUDIT_READ = "audit:read"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a known capability (or the wildcard)."""
        return value in cls._value2member_map_


class CapabilityCategory(str, Enum):
    """Capability categories for UI grouping."""
    ORGANIZATION = "Organization"
    ROLES = "Roles"
    MEMBERS = "Members"
    INVITATIONS = "Invitations"
    COMPLIANCE = "Compliance"


@dataclass(frozen=True)
class PermissionDef:
    """Capability definition with metadata."""
    key: str
    label: str
    description: str
    category: str


# =============================================================================
# Capability Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    Capability.ORG_WRITE.value: PermissionDef(
        "org:write", "Edit Organization",
        "Change organization name, slug, logo and metadata", CapabilityCategory.ORGANIZATION
    ),
    Capability.ORG_DELETE.value: PermissionDef(
        "org:delete", "Delete Organization",
        "Reserved; deletion is limited to owner-role members", CapabilityCategory.ORGANIZATION
    ),
    Capability.ROLE_READ.value: PermissionDef(
        "role:read", "View Roles",
        "List organization roles", CapabilityCategory.ROLES
    ),
    Capability.ROLE_MANAGE.value: PermissionDef(
        "role:manage", "Manage Roles",
        "Create, edit and delete custom roles", CapabilityCategory.ROLES
    ),
    Capability.MEMBER_READ.value: PermissionDef(
        "member:read", "View Members",
        "List organization members", CapabilityCategory.MEMBERS
    ),
    Capability.MEMBER_MANAGE.value: PermissionDef(
        "member:manage", "Change Member Roles",
        "Assign roles to lower-ranked members", CapabilityCategory.MEMBERS
    ),
    Capability.MEMBER_REMOVE.value: PermissionDef(
        "member:remove", "Remove Members",
        "Remove lower-ranked members", CapabilityCategory.MEMBERS
    ),
    Capability.MEMBER_INVITE.value: PermissionDef(
        "member:invite", "Invite Members",
        "Send invitations by email or phone", CapabilityCategory.INVITATIONS
    ),
    Capability.INVITATION_READ.value: PermissionDef(
        "invitation:read", "View Invitations",
        "List sent invitations", CapabilityCategory.INVITATIONS
    ),
    Capability.INVITATION_MANAGE.value: PermissionDef(
        "invitation:manage", "Manage Invitations",
        "Revoke pending invitations", CapabilityCategory.INVITATIONS
    ),
    Capability.INVITATION_CODE_CREATE.value: PermissionDef(
        "invitationCode:create", "Create Invitation Codes",
        "Issue shareable join codes", CapabilityCategory.INVITATIONS
    ),
    Capability.INVITATION_CODE_READ.value: PermissionDef(
        "invitationCode:read", "View Invitation Codes",
        "List join codes", CapabilityCategory.INVITATIONS
    ),
    Capability.INVITATION_CODE_MANAGE.value: PermissionDef(
        "invitationCode:manage", "Manage Invitation Codes",
        "Revoke join codes", CapabilityCategory.INVITATIONS
    ),
    Capability.AUDIT_READ.value: PermissionDef(
        "audit:read", "View Audit Log",
        "Read the organization audit trail", CapabilityCategory.COMPLIANCE
    ),
}


def get_all_capabilities() -> list[PermissionDef]:
    """Registry entries in declaration order (for role editors)."""
    return list(PERMISSION_REGISTRY.values())


# =============================================================================
# Default system roles (lower sort_order = more authority)
# =============================================================================

DEFAULT_SYSTEM_ROLES: list[dict] = [
    {
        "name": "owner",
        "description": "Full control of the organization",
        "sort_order": 0,
        "permissions": [Capability.ALL.value],
    },
    {
        "name": "admin",
        "description": "Manage members, roles and invitations",
        "sort_order": 10,
        "permissions": [
            "org:write",
            "role:read",
            "role:manage",
            "member:read",
            "member:manage",
            "member:remove",
            "member:invite",
            "invitation:read",
            "invitation:manage",
            "invitationCode:create",
            "invitationCode:read",
            "invitationCode:manage",
            "audit:read",
        ],
    },
    {
        "name": "member",
        "description": "Regular organization member",
        "sort_order": 20,
        "permissions": ["role:read", "member:read"],
    },
]


def parse_capabilities(values: Iterable[str]) -> list[Capability]:
    """
    Validate raw permission strings against the capability set.

    Raises:
        ValidationFailedError: If any value is not a known capability
    """
    parsed: list[Capability] = []
    unknown: list[str] = []
    for value in values:
        if Capability.has_value(value):
            cap = Capability(value)
            if cap not in parsed:
                parsed.append(cap)
        else:
            unknown.append(value)
    if unknown:
        raise ValidationFailedError(f"Unknown permissions: {', '.join(sorted(unknown))}")
    return parsed


def has_permission(permissions: Iterable[str], required: Capability | str) -> bool:
    """True if the permission list contains the wildcard or the exact capability."""
    granted = set(permissions)
    if Capability.ALL.value in granted:
        return True
    required_value = required.value if isinstance(required, Capability) else required
    return required_value in granted
