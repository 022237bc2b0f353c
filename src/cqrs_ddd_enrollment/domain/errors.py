"""
Domain errors for the enrollment orchestrator.

These errors provide a consistent interface for reporting failures
across the broker, the gate, the synchronizer and the adapters.
Verification failures are not raised: they travel as classified
outcomes (see value_objects.FailureReason).
"""

from typing import Optional, Any


class EnrollmentDomainError(Exception):
    """Base class for all enrollment domain errors."""

    def __init__(
        self,
        message: str,
        code: str = "ENROLLMENT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidTransitionError(EnrollmentDomainError):
    """Raised when a command is not allowed in the run's current state."""

    def __init__(
        self,
        message: str = "Invalid state transition",
        code: str = "INVALID_TRANSITION",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ProfileValidationError(EnrollmentDomainError):
    """Raised when submitted profile values do not pass the gate."""

    def __init__(
        self,
        message: str = "Profile validation failed",
        code: str = "PROFILE_INVALID",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class FinalizationError(EnrollmentDomainError):
    """Base class for recoverable finalization failures."""

    def __init__(
        self,
        message: str = "Finalization failed",
        code: str = "FINALIZATION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class SessionPublishError(FinalizationError):
    """Raised when a published session cannot be read back."""

    def __init__(
        self,
        message: str = "Session not accessible after publish",
        code: str = "SESSION_PUBLISH_FAILED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ProviderError(EnrollmentDomainError):
    """Raised by adapters when the identity provider cannot be reached."""

    def __init__(
        self,
        message: str = "Identity provider unavailable",
        code: str = "PROVIDER_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class RunNotFoundError(EnrollmentDomainError):
    """Raised when an enrollment run id is unknown."""

    def __init__(
        self,
        message: str = "Enrollment run not found",
        code: str = "RUN_NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
