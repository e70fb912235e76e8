"""Exception types for the attendance accounting core.

Transport failures (``RemoteUnavailableError``) are recovered by the service
facades via the local store. Everything else is a domain rejection or a hard
failure and reaches the caller unchanged.
"""


class AcademyError(Exception):
    """Base class for all academy errors."""


class RemoteUnavailableError(AcademyError):
    """Raised when the remote backend cannot be reached or answers garbage."""


class DomainRejectionError(AcademyError):
    """Raised when a reachable store refuses the request."""


class DuplicateSessionError(DomainRejectionError, ValueError):
    """Raised when a session already exists for a (date, time slot, age group)."""


class SessionNotFoundError(DomainRejectionError, LookupError):
    """Raised when a session id does not exist."""


class PlayerNotFoundError(DomainRejectionError, LookupError):
    """Raised when a player id does not exist."""


class AccessDeniedError(DomainRejectionError):
    """Raised when the caller's age group does not own the resource."""


class AttendanceValidationError(DomainRejectionError, ValueError):
    """Raised when an attendance batch or payload fails validation."""


class PersistenceError(AcademyError):
    """Raised when a write fails remotely and then in the local store."""


class MigrationError(AcademyError):
    """Raised when legacy data cannot be parsed at all."""
