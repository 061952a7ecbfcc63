"""
Typed service-layer errors.

Every failure surfaced by a core operation derives from ServiceError and
carries the HTTP status the API layer maps it to.
"""


class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Bad input or an operation not allowed in the caller's current state."""

    status_code = 400


class InsufficientBalanceError(ValidationError):
    """A debit would take a sub-balance below zero."""


class NotFoundError(ServiceError):
    """A referenced user, task, achievement, stake or transaction is missing."""

    status_code = 404


class StateConflictError(ServiceError):
    """The target row already moved past the requested transition."""

    status_code = 409


class PermissionDeniedError(ServiceError):
    """The authenticated user may not act on this resource."""

    status_code = 403


class AuthenticationError(ServiceError):
    """Credentials are missing, wrong or expired."""

    status_code = 401


class AccountLockedError(ServiceError):
    """Too many failed logins; the account is temporarily locked."""

    status_code = 429
