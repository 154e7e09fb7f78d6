"""Exception hierarchy for the rendezvous service.

Registry operations raise these; the HTTP layer maps them onto status codes.
"""

from typing import Any, Dict, Optional

REQUIRE_FIELDS_MESSAGE = "require address,sessionId"


class RendezvousError(Exception):
    """Base exception for all rendezvous errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize error with context.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code (defaults to class name)
            context: Additional context about the error
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.cause = cause


class ValidationError(RendezvousError):
    """Raised when caller-supplied registration fields are absent or empty."""

    def __init__(self, message: str = REQUIRE_FIELDS_MESSAGE, **kwargs):
        super().__init__(message, **kwargs)


# Infrastructure Exceptions


class InfrastructureError(RendezvousError):
    """Base exception for infrastructure-related errors."""


class StorageError(InfrastructureError):
    """Raised when the backing entry store is unreachable or corrupt."""


# Retry Exceptions


class MaxRetriesExceededError(RendezvousError):
    """Raised when maximum retry attempts are exceeded."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[Exception] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.last_error = last_error
