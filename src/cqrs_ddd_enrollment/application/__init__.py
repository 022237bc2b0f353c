"""Application layer for enrollment - Broker, Orchestrator, Commands, Handlers."""

from cqrs_ddd_enrollment.application.commands import (
    StartEnrollment,
    SubmitIdentity,
    SubmitVerificationCode,
    OpenVerificationLink,
    SubmitPassword,
    SubmitProfileStep,
    SkipProfileStep,
    GoBackToStep,
    SubmitBasicProfile,
    RetryFinalization,
    RestartEnrollment,
)
from cqrs_ddd_enrollment.application.queries import GetWizardState
from cqrs_ddd_enrollment.application.results import WizardState
from cqrs_ddd_enrollment.application.synchronizer import (
    SessionSynchronizer,
    encode_session,
    decode_session,
    parse_session_record,
)
from cqrs_ddd_enrollment.application.broker import CredentialBroker
from cqrs_ddd_enrollment.application.resolver import RoleResolver
from cqrs_ddd_enrollment.application.orchestrator import RegistrationOrchestrator
from cqrs_ddd_enrollment.application.handlers import (
    StartEnrollmentHandler,
    SubmitIdentityHandler,
    SubmitVerificationCodeHandler,
    OpenVerificationLinkHandler,
    SubmitPasswordHandler,
    SubmitProfileStepHandler,
    SkipProfileStepHandler,
    GoBackToStepHandler,
    SubmitBasicProfileHandler,
    RetryFinalizationHandler,
    RestartEnrollmentHandler,
    GetWizardStateHandler,
)

__all__ = [
    # Commands
    "StartEnrollment",
    "SubmitIdentity",
    "SubmitVerificationCode",
    "OpenVerificationLink",
    "SubmitPassword",
    "SubmitProfileStep",
    "SkipProfileStep",
    "GoBackToStep",
    "SubmitBasicProfile",
    "RetryFinalization",
    "RestartEnrollment",
    # Queries
    "GetWizardState",
    # Results
    "WizardState",
    # Components
    "SessionSynchronizer",
    "encode_session",
    "decode_session",
    "parse_session_record",
    "CredentialBroker",
    "RoleResolver",
    "RegistrationOrchestrator",
    # Handlers
    "StartEnrollmentHandler",
    "SubmitIdentityHandler",
    "SubmitVerificationCodeHandler",
    "OpenVerificationLinkHandler",
    "SubmitPasswordHandler",
    "SubmitProfileStepHandler",
    "SkipProfileStepHandler",
    "GoBackToStepHandler",
    "SubmitBasicProfileHandler",
    "RetryFinalizationHandler",
    "RestartEnrollmentHandler",
    "GetWizardStateHandler",
]
