"""Domain layer for enrollment."""

from cqrs_ddd_enrollment.domain.errors import (
    EnrollmentDomainError,
    InvalidTransitionError,
    ProfileValidationError,
    FinalizationError,
    SessionPublishError,
    ProviderError,
    RunNotFoundError,
)
from cqrs_ddd_enrollment.domain.value_objects import (
    VerificationStrategy,
    CodeTypeTag,
    CODE_TYPE_TAG_ORDER,
    OutcomeStatus,
    ErrorClass,
    FailureReason,
    IdentityClaim,
    VerifiedSession,
    VerificationOutcome,
    FieldId,
    ProfileRecord,
    RoleSource,
    Destination,
)
from cqrs_ddd_enrollment.domain.events import (
    EnrollmentStarted,
    IdentityClaimSubmitted,
    VerificationAttemptFailed,
    PasswordFallbackActivated,
    IdentityVerified,
    ProfileStepCompleted,
    ProfileStepSkipped,
    ProfileCompleted,
    BasicProfileRequired,
    FinalizationFailed,
    EnrollmentFinalized,
    EnrollmentAborted,
)
from cqrs_ddd_enrollment.domain.planning import StepPlan, ProgressiveStepPlanner
from cqrs_ddd_enrollment.domain.validation import GateResult, ProfileGate
from cqrs_ddd_enrollment.domain.aggregates import (
    EnrollmentRun,
    WizardStep,
    Trigger,
    TRANSITIONS,
    CreateEnrollmentRunModification,
    UpdateEnrollmentRunModification,
)

__all__ = [
    # Errors
    "EnrollmentDomainError",
    "InvalidTransitionError",
    "ProfileValidationError",
    "FinalizationError",
    "SessionPublishError",
    "ProviderError",
    "RunNotFoundError",
    # Value objects
    "VerificationStrategy",
    "CodeTypeTag",
    "CODE_TYPE_TAG_ORDER",
    "OutcomeStatus",
    "ErrorClass",
    "FailureReason",
    "IdentityClaim",
    "VerifiedSession",
    "VerificationOutcome",
    "FieldId",
    "ProfileRecord",
    "RoleSource",
    "Destination",
    # Events
    "EnrollmentStarted",
    "IdentityClaimSubmitted",
    "VerificationAttemptFailed",
    "PasswordFallbackActivated",
    "IdentityVerified",
    "ProfileStepCompleted",
    "ProfileStepSkipped",
    "ProfileCompleted",
    "BasicProfileRequired",
    "FinalizationFailed",
    "EnrollmentFinalized",
    "EnrollmentAborted",
    # Planning & validation
    "StepPlan",
    "ProgressiveStepPlanner",
    "GateResult",
    "ProfileGate",
    # Aggregate
    "EnrollmentRun",
    "WizardStep",
    "Trigger",
    "TRANSITIONS",
    "CreateEnrollmentRunModification",
    "UpdateEnrollmentRunModification",
]
