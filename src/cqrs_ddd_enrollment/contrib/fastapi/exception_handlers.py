"""
Exception handlers for FastAPI.

Maps enrollment domain errors to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cqrs_ddd_enrollment.domain.errors import (
    EnrollmentDomainError,
    FinalizationError,
    InvalidTransitionError,
    ProfileValidationError,
    ProviderError,
    RunNotFoundError,
)


def _error_response(status_code: int, exc: EnrollmentDomainError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


async def invalid_transition_error_handler(request: Request, exc: InvalidTransitionError):
    """Handle InvalidTransitionError (409)."""
    return _error_response(status.HTTP_409_CONFLICT, exc)


async def run_not_found_error_handler(request: Request, exc: RunNotFoundError):
    """Handle RunNotFoundError (404)."""
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


async def profile_validation_error_handler(request: Request, exc: ProfileValidationError):
    """Handle ProfileValidationError (422)."""
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


async def finalization_error_handler(request: Request, exc: FinalizationError):
    """Handle FinalizationError (503); the client may retry."""
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


async def provider_error_handler(request: Request, exc: ProviderError):
    """Handle ProviderError (502)."""
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc)


async def enrollment_error_handler(request: Request, exc: EnrollmentDomainError):
    """Handle any other EnrollmentDomainError (400)."""
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all enrollment exception handlers on the app."""
    app.add_exception_handler(InvalidTransitionError, invalid_transition_error_handler)
    app.add_exception_handler(RunNotFoundError, run_not_found_error_handler)
    app.add_exception_handler(ProfileValidationError, profile_validation_error_handler)
    app.add_exception_handler(FinalizationError, finalization_error_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(EnrollmentDomainError, enrollment_error_handler)
