"""Migration linking - one-time relink of users imported with a temporary id.

Users brought over from the previous system were stored with their email as
a placeholder user id. On their first real sign-in the placeholder is
rewritten to the identity provider's id across every user-id column listed
below. Disabled unless MIGRATION_LINKING_ENABLED is set.
"""

import logging

from sqlalchemy.orm import Session

from app.core.config import AccessConfig
from app.core.errors import InvalidStateError
from app.db.models import (
    AuditLog,
    Invitation,
    InvitationCode,
    Membership,
    Organization,
    UserProfile,
)


logger = logging.getLogger(__name__)

# (model, attribute) pairs holding user ids
LINKED_COLUMNS = (
    (UserProfile, "user_id"),
    (Membership, "user_id"),
    (Membership, "invited_by"),
    (Invitation, "invited_by"),
    (Invitation, "accepted_by"),
    (InvitationCode, "created_by"),
    (AuditLog, "actor_user_id"),
    (AuditLog, "effective_user_id"),
    (Organization, "created_by"),
)


def link_migrated_user(
    db: Session,
    config: AccessConfig,
    temporary_user_id: str,
    real_user_id: str,
) -> dict[str, int]:
    """
    Rewrite temporary_user_id to real_user_id everywhere.

    No-op when there is no live placeholder profile for temporary_user_id,
    or when the real id already has a profile (already linked). Returns
    rows updated per "table.column".

    Raises:
        InvalidStateError: Feature disabled
    """
    if not config.migration_linking_enabled:
        raise InvalidStateError("Migration linking is disabled")
    if not temporary_user_id or temporary_user_id == real_user_id:
        return {}

    placeholder = (
        db.query(UserProfile.id)
        .filter(UserProfile.user_id == temporary_user_id, UserProfile.deleted_at.is_(None))
        .first()
    )
    if not placeholder:
        return {}

    existing = db.query(UserProfile.id).filter(UserProfile.user_id == real_user_id).first()
    if existing:
        return {}

    counts: dict[str, int] = {}
    for model, attribute in LINKED_COLUMNS:
        column = getattr(model, attribute)
        updated = (
            db.query(model)
            .filter(column == temporary_user_id)
            .update({column: real_user_id}, synchronize_session="fetch")
        )
        if updated:
            counts[f"{model.__tablename__}.{attribute}"] = updated

    db.flush()
    if counts:
        logger.info(
            "Linked migrated user to %s (%s row(s))", real_user_id, sum(counts.values())
        )
    return counts
