"""Role hierarchy service - organization roles and their ranking rules."""

import logging
import uuid

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import (
    DuplicateConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from app.core.permissions import Capability, parse_capabilities
from app.db.enums import AuditAction, InvitationStatus
from app.db.models import Invitation, Membership, Role
from app.schemas.auth import CallerContext
from app.services import audit_service, permission_service


logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================

def get_role(db: Session, org_id: uuid.UUID, role_id: uuid.UUID) -> Role | None:
    """Get role scoped to an organization."""
    return (
        db.query(Role)
        .filter(Role.id == role_id, Role.organization_id == org_id)
        .first()
    )


def require_role(db: Session, org_id: uuid.UUID, role_id: uuid.UUID) -> Role:
    role = get_role(db, org_id, role_id)
    if not role:
        raise NotFoundError("Role not found")
    return role


def get_role_by_name(db: Session, org_id: uuid.UUID, name: str) -> Role | None:
    return (
        db.query(Role)
        .filter(Role.organization_id == org_id, Role.name == name)
        .first()
    )


def _normalize_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationFailedError("Role name is required")
    return cleaned


# =============================================================================
# Seeding
# =============================================================================

def seed_system_roles(db: Session, org_id: uuid.UUID, config: AccessConfig) -> dict[str, Role]:
    """
    Insert the configured system roles for a new organization.

    Returns roles keyed by name.

    Raises:
        ValidationFailedError: Configuration lacks exactly one owner role
    """
    owner_specs = [spec for spec in config.roles if spec.name == config.owner_role_name]
    if len(owner_specs) != 1:
        raise ValidationFailedError(
            f"Role configuration must include exactly one '{config.owner_role_name}' role"
        )

    created: dict[str, Role] = {}
    for spec in config.roles:
        role = Role(
            organization_id=org_id,
            name=spec.name,
            description=spec.description,
            permissions=list(spec.permissions),
            is_system=True,
            sort_order=spec.sort_order,
        )
        db.add(role)
        created[spec.name] = role
    db.flush()
    return created


# =============================================================================
# CRUD
# =============================================================================

def list_roles(db: Session, caller: CallerContext, org_id: uuid.UUID) -> list[Role]:
    """List roles ordered by rank (most authority first)."""
    permission_service.require_permission(db, org_id, caller.effective_user_id, Capability.ROLE_READ)
    return (
        db.query(Role)
        .filter(Role.organization_id == org_id)
        .order_by(Role.sort_order, Role.name)
        .all()
    )


def create_role(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    name: str,
    permissions: list[str],
    sort_order: int,
    description: str | None = None,
) -> Role:
    """
    Create a custom role at or below the actor's own rank.

    Raises:
        AuthorityViolationError: sort_order outranks the actor
        DuplicateConflictError: Name already used in this organization
    """
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.ROLE_MANAGE
    )
    name = _normalize_name(name)
    capabilities = parse_capabilities(permissions)
    permission_service.require_can_assign(actor.role, sort_order)

    if get_role_by_name(db, org_id, name):
        raise DuplicateConflictError(f"Role '{name}' already exists")

    role = Role(
        organization_id=org_id,
        name=name,
        description=description,
        permissions=[c.value for c in capabilities],
        is_system=False,
        sort_order=sort_order,
    )
    db.add(role)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ROLE_CREATED,
        resource_type="role",
        org_id=org_id,
        resource_id=role.id,
        metadata={
            "name": role.name,
            "sort_order": role.sort_order,
            "permissions": role.permissions,
        },
    )
    return role


def update_role(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    config: AccessConfig,
    name: str | None = None,
    description: str | None = None,
    permissions: list[str] | None = None,
    sort_order: int | None = None,
) -> Role:
    """
    Edit a role at or below the actor's own rank.

    System roles keep their names; the owner role keeps its rank and
    permissions.
    """
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.ROLE_MANAGE
    )
    role = require_role(db, org_id, role_id)

    # Cannot touch a role stronger than yourself
    permission_service.require_can_assign(actor.role, role.sort_order)

    changes: dict[str, dict] = {}

    if name is not None:
        new_name = _normalize_name(name)
        if new_name != role.name:
            if role.is_system:
                raise InvalidStateError("System roles cannot be renamed")
            if get_role_by_name(db, org_id, new_name):
                raise DuplicateConflictError(f"Role '{new_name}' already exists")
            changes["name"] = {"old": role.name, "new": new_name}
            role.name = new_name

    is_owner = permission_service.is_owner_role(role, config)

    if sort_order is not None and sort_order != role.sort_order:
        if is_owner:
            raise InvalidStateError("The owner role rank cannot be changed")
        permission_service.require_can_assign(actor.role, sort_order)
        changes["sort_order"] = {"old": role.sort_order, "new": sort_order}
        role.sort_order = sort_order

    if permissions is not None:
        new_permissions = [c.value for c in parse_capabilities(permissions)]
        if new_permissions != list(role.permissions or []):
            if is_owner:
                raise InvalidStateError("The owner role permissions cannot be changed")
            changes["permissions"] = {"old": list(role.permissions or []), "new": new_permissions}
            role.permissions = new_permissions

    if description is not None and description != role.description:
        changes["description"] = {"old": role.description, "new": description}
        role.description = description

    if not changes:
        return role

    db.flush()
    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ROLE_UPDATED,
        resource_type="role",
        org_id=org_id,
        resource_id=role.id,
        metadata={"name": role.name, "changes": changes},
    )
    return role


def delete_role(
    db: Session,
    caller: CallerContext,
    org_id: uuid.UUID,
    role_id: uuid.UUID,
) -> None:
    """
    Delete a custom role that nobody holds and no pending invitation grants.

    Raises:
        InvalidStateError: System role, or role still referenced
    """
    actor = permission_service.require_permission(
        db, org_id, caller.effective_user_id, Capability.ROLE_MANAGE
    )
    role = require_role(db, org_id, role_id)

    if role.is_system:
        raise InvalidStateError("System roles cannot be deleted")
    permission_service.require_can_assign(actor.role, role.sort_order)

    in_use = db.query(Membership).filter(Membership.role_id == role.id).count()
    if in_use:
        raise InvalidStateError(f"Role is assigned to {in_use} member(s)")

    pending = (
        db.query(Invitation)
        .filter(
            Invitation.role_id == role.id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .count()
    )
    if pending:
        raise InvalidStateError(f"Role is referenced by {pending} pending invitation(s)")

    role_name = role.name
    db.delete(role)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.ROLE_DELETED,
        resource_type="role",
        org_id=org_id,
        resource_id=role_id,
        metadata={"name": role_name},
    )
