"""
py-cqrs-ddd-enrollment: identity verification and progressive enrollment.

Built using CQRS and DDD patterns from py-cqrs-ddd-toolkit.
"""

__version__ = "0.1.0"

from cqrs_ddd_enrollment.config import EnrollmentConfig
from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain import (
    EnrollmentDomainError,
    EnrollmentRun,
    WizardStep,
    FailureReason,
    VerificationStrategy,
    Destination,
)
from cqrs_ddd_enrollment.application import (
    CredentialBroker,
    SessionSynchronizer,
    RoleResolver,
    RegistrationOrchestrator,
    WizardState,
)

__all__ = [
    "__version__",
    "EnrollmentConfig",
    "EnrollmentContext",
    "EnrollmentDomainError",
    "EnrollmentRun",
    "WizardStep",
    "FailureReason",
    "VerificationStrategy",
    "Destination",
    "CredentialBroker",
    "SessionSynchronizer",
    "RoleResolver",
    "RegistrationOrchestrator",
    "WizardState",
]
