"""Caller identity schemas."""

from pydantic import BaseModel, ConfigDict


class CallerContext(BaseModel):
    """
    Resolved caller for one operation.

    actor_user_id is the authenticated human (used for ban checks and as the
    audit actor). effective_user_id is whose data is read and written; it
    differs from the actor only while a platform admin impersonates someone.
    """

    model_config = ConfigDict(frozen=True)

    actor_user_id: str
    effective_user_id: str
    ip_address: str | None = None
    session_id: str | None = None
    user_agent: str | None = None

    @classmethod
    def for_user(cls, user_id: str, **kwargs) -> "CallerContext":
        return cls(actor_user_id=user_id, effective_user_id=user_id, **kwargs)

    @property
    def is_impersonating(self) -> bool:
        return self.actor_user_id != self.effective_user_id

    @property
    def audit_effective_user_id(self) -> str | None:
        """Effective user for audit rows; None when not impersonating."""
        return self.effective_user_id if self.is_impersonating else None
