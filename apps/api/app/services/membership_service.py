"""Membership service - joining, role changes, removal and ownership.

Every org with members keeps at least one owner-role member: operations
that would remove or demote the last owner are refused.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    InvalidStateError,
    LastOwnerViolationError,
    NotFoundError,
)
from app.core.permissions import Capability
from app.db.enums import AuditAction
from app.db.models import Membership, Role, UserProfile
from app.schemas.auth import CallerContext
from app.services import audit_service, permission_service, role_service


logger = logging.getLogger(__name__)


def add_member(
    db: Session,
    org_id: uuid.UUID,
    user_id: str,
    role: Role,
    invited_by: str | None = None,
) -> Membership:
    """Insert a membership. Callers check for an existing one first."""
    membership = Membership(
        organization_id=org_id,
        user_id=user_id,
        role=role,
        invited_by=invited_by,
    )
    db.add(membership)
    db.flush()
    return membership


def get_member(db: Session, org_id: uuid.UUID, member_id: uuid.UUID) -> Membership:
    membership = (
        db.query(Membership)
        .filter(Membership.id == member_id, Membership.organization_id == org_id)
        .first()
    )
    if not membership:
        raise NotFoundError("Member not found")
    return membership


def list_members(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
) -> list[tuple[Membership, UserProfile | None]]:
    """Members with their profile (if synced), most authority first."""
    permission_service.require_permission(db, org_id, caller.effective_user_id, Capability.MEMBER_READ)
    rows = (
        db.query(Membership, UserProfile)
        .join(Role, Role.id == Membership.role_id)
        .outerjoin(UserProfile, UserProfile.user_id == Membership.user_id)
        .filter(Membership.organization_id == org_id)
        .order_by(Role.sort_order, Membership.joined_at)
        .all()
    )
    return [(membership, profile) for membership, profile in rows]


def _guard_last_owner(
    db: Session,
    membership: Membership,
    config: AccessConfig,
    message: str,
) -> None:
    if not permission_service.is_owner_role(membership.role, config):
        return
    if permission_service.count_owners(db, membership.organization_id, config) <= 1:
        raise LastOwnerViolationError(message)


def update_member_role(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    role_id: uuid.UUID,
) -> Membership:
    """
    Change a member's role.

    The actor must strictly outrank the member, and may only assign roles at
    or below their own rank.
    """
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.MEMBER_MANAGE
    )
    target = get_member(db, org_id, member_id)
    if target.user_id == actor.user_id:
        raise InvalidStateError("Cannot change your own role")

    permission_service.require_outranks(actor.role, target.role)
    new_role = role_service.require_role(db, org_id, role_id)
    permission_service.require_can_assign(actor.role, new_role.sort_order)

    old_role = target.role
    if old_role.id == new_role.id:
        return target

    if not permission_service.is_owner_role(new_role, config):
        _guard_last_owner(db, target, config, "Cannot demote the last owner")

    target.role = new_role
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_ROLE_CHANGED,
        resource_type="member",
        org_id=org_id,
        resource_id=target.id,
        metadata={
            "user_id": target.user_id,
            "old_role": old_role.name,
            "new_role": new_role.name,
        },
    )
    return target


def remove_member(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    member_id: uuid.UUID,
) -> None:
    """Remove a lower-ranked member. Use leave_org to remove yourself."""
    from app.services import profile_service

    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.MEMBER_REMOVE
    )
    target = get_member(db, org_id, member_id)
    if target.user_id == actor.user_id:
        raise InvalidStateError("Use leave to remove yourself")

    permission_service.require_outranks(actor.role, target.role)
    _guard_last_owner(db, target, config, "Cannot remove the last owner")

    user_id, role_name = target.user_id, target.role.name
    db.delete(target)
    profile_service.clear_active_org(db, user_id, org_id)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_REMOVED,
        resource_type="member",
        org_id=org_id,
        resource_id=member_id,
        metadata={"user_id": user_id, "role": role_name},
    )


def leave_org(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
) -> None:
    """Leave an organization. The sole owner must transfer ownership first."""
    from app.services import profile_service

    membership = permission_service.require_membership(db, org_id, caller.effective_user_id)
    _guard_last_owner(
        db, membership, config, "The last owner cannot leave; transfer ownership first"
    )

    member_id, role_name = membership.id, membership.role.name
    db.delete(membership)
    profile_service.clear_active_org(db, caller.effective_user_id, org_id)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_LEFT,
        resource_type="member",
        org_id=org_id,
        resource_id=member_id,
        metadata={"user_id": caller.effective_user_id, "role": role_name},
    )


# =============================================================================
# Platform admin overrides
# =============================================================================

def force_remove_member(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    user_id: str,
) -> None:
    """
    Admin removal that bypasses the role hierarchy.

    Still refuses to leave an org with members but no owner.
    """
    from app.services import profile_service

    permission_service.require_platform_admin(db, caller.actor_user_id)
    permission_service.require_live_org(db, org_id)
    membership = permission_service.get_membership(db, org_id, user_id)
    if not membership:
        raise NotFoundError("Member not found")

    if (
        permission_service.is_owner_role(membership.role, config)
        and permission_service.count_owners(db, org_id, config) <= 1
        and permission_service.count_members(db, org_id) > 1
    ):
        raise LastOwnerViolationError("Cannot remove the last owner while other members remain")

    member_id, role_name = membership.id, membership.role.name
    db.delete(membership)
    profile_service.clear_active_org(db, user_id, org_id)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.MEMBER_REMOVED,
        resource_type="member",
        org_id=org_id,
        resource_id=member_id,
        metadata={"user_id": user_id, "role": role_name, "forced_by_admin": True},
    )
    logger.info("Admin %s force-removed %s from org %s", caller.actor_user_id, user_id, org_id)


def transfer_ownership(
    db: Session,
    caller: CallerContext,
    config: AccessConfig,
    org_id: uuid.UUID,
    new_owner_user_id: str,
) -> Membership:
    """
    Admin ownership transfer: every current owner becomes admin, the target
    member becomes owner.
    """
    permission_service.require_platform_admin(db, caller.actor_user_id)
    permission_service.require_live_org(db, org_id)

    new_owner = permission_service.get_membership(db, org_id, new_owner_user_id)
    if not new_owner:
        raise NotFoundError("New owner must be a member of the organization")

    owner_role = permission_service.get_owner_role(db, org_id, config)
    admin_role = role_service.get_role_by_name(db, org_id, config.admin_role_name)
    if not owner_role or not admin_role:
        raise NotFoundError("Organization is missing its owner or admin role")

    previous_owners: list[str] = []
    owners = (
        db.query(Membership)
        .filter(
            Membership.organization_id == org_id,
            Membership.role_id == owner_role.id,
        )
        .all()
    )
    for membership in owners:
        if membership.user_id == new_owner_user_id:
            continue
        membership.role = admin_role
        previous_owners.append(membership.user_id)

    new_owner.role = owner_role
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ORG_OWNERSHIP_TRANSFERRED,
        resource_type="organization",
        org_id=org_id,
        resource_id=org_id,
        metadata={"new_owner": new_owner_user_id, "previous_owners": previous_owners},
    )
    logger.info("Ownership of org %s transferred to %s", org_id, new_owner_user_id)
    return new_owner
