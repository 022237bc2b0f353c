"""
Ports consumed by the enrollment orchestrator.
"""

from cqrs_ddd_enrollment.ports.identity_provider import (
    IdentityProviderPort,
    ProviderResult,
    ProviderErrorKind,
    AccountStatus,
)
from cqrs_ddd_enrollment.ports.profile_store import ProfileStorePort
from cqrs_ddd_enrollment.ports.session_store import (
    SessionRecord,
    SessionRecordStorePort,
    ContinuationStorePort,
)
from cqrs_ddd_enrollment.ports.run_repository import EnrollmentRunRepository

__all__ = [
    "IdentityProviderPort",
    "ProviderResult",
    "ProviderErrorKind",
    "AccountStatus",
    "ProfileStorePort",
    "SessionRecord",
    "SessionRecordStorePort",
    "ContinuationStorePort",
    "EnrollmentRunRepository",
]
