"""Domain exceptions raised by services and rendered by the API layer."""


class AccessError(Exception):
    """Base class for access-control failures."""

    code = "access_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()


class NotFoundError(AccessError):
    code = "not_found"
    status_code = 404


class PermissionDeniedError(AccessError):
    code = "permission_denied"
    status_code = 403


class AuthorityViolationError(AccessError):
    """Actor tried to act on or grant authority at or above their own rank."""

    code = "authority_violation"
    status_code = 403


class LastOwnerViolationError(AccessError):
    """Operation would leave an organization with members but no owner."""

    code = "last_owner"
    status_code = 409


class DuplicateConflictError(AccessError):
    code = "duplicate"
    status_code = 409


class InvalidStateError(AccessError):
    code = "invalid_state"
    status_code = 409


class ExpiredError(AccessError):
    code = "expired"
    status_code = 410


class AdminImpersonationViolationError(AccessError):
    code = "admin_impersonation"
    status_code = 403


class BannedAccountError(AccessError):
    code = "account_banned"
    status_code = 403


class ValidationFailedError(AccessError):
    code = "validation_failed"
    status_code = 422
