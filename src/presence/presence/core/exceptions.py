class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a requested record does not exist in the caller's organization."""


class StateConflictError(DomainError):
    """Raised when a record is not in a state that allows the transition."""


class CorrectionProcessingError(DomainError):
    """Raised when an approved correction cannot be applied to the attendance data."""


class PersistenceError(DomainError):
    """Raised on unexpected storage failures."""
