"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message lives on the instance so handlers can read it without parsing str(exc).
    # Never raise this directly, always a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # entity_type and entity_id are kept separately so the API layer can log them structured.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input or entity validation fails.

    Example: unknown automation mode, an image URL that is not one of the
    stored candidates, applying a candidate to a violation that is not
    awaiting a choice.
    """

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: starting a bulk job while another is running, cancelling when
    nothing runs.
    """

    pass


class BulkJobConflictError(InvalidStateException):
    """A bulk job is already running.

    HTTP Status: 409 (Conflict)
    """

    def __init__(self, running_job_id: str) -> None:
        super().__init__(f"a bulk job is already running: {running_job_id}")
        self.running_job_id = running_job_id


class NoBulkJobRunningError(InvalidStateException):
    """Cancel was requested but no bulk job is running.

    HTTP Status: 409 (Conflict)
    """

    def __init__(self) -> None:
        super().__init__("no bulk job is running")


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("scheduler interval must be positive")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (metadata provider, image host) returned an error.

    HTTP Status: 502 (Bad Gateway)

    Example:
        raise ExternalServiceError("image download returned HTTP 404")
    """

    pass


class RateLimitExceededError(DomainException):
    """External service rate limit was exceeded.

    HTTP Status: 429
    """

    pass


# =============================================================================
# Public API - All exceptions that can be imported
# =============================================================================
__all__ = [
    # Base
    "DomainException",
    # Entity exceptions
    "EntityNotFoundException",
    # Validation exceptions
    "ValidationException",
    # State exceptions
    "InvalidStateException",
    "BulkJobConflictError",
    "NoBulkJobRunningError",
    # External service exceptions
    "ExternalServiceError",
    "RateLimitExceededError",
    # Configuration
    "ConfigurationError",
]
