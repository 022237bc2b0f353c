"""
Domain events for enrollment.

Domain events represent facts that have happened during a run.
They are immutable records of state changes raised by the
EnrollmentRun aggregate.

Uses DomainEvent base class from py-cqrs-ddd-toolkit.
"""

from dataclasses import dataclass, fields
from typing import Dict, Any

from cqrs_ddd.ddd import DomainEvent


class EnrollmentRunEvent:
    """Mixin binding an event to the EnrollmentRun aggregate."""

    @property
    def aggregate_type(self) -> str:
        return "EnrollmentRun"

    @property
    def aggregate_id(self) -> str:
        return self.run_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            kwargs[f.name] = tuple(value) if isinstance(value, list) else value
        return cls(**kwargs)


@dataclass(frozen=True)
class EnrollmentStarted(EnrollmentRunEvent, DomainEvent):
    """Raised when a new enrollment run is opened."""
    run_id: str


@dataclass(frozen=True)
class IdentityClaimSubmitted(EnrollmentRunEvent, DomainEvent):
    """Raised when the user enters an email to verify."""
    run_id: str
    email: str
    strategy: str


@dataclass(frozen=True)
class VerificationAttemptFailed(EnrollmentRunEvent, DomainEvent):
    """Raised for every failed verification attempt or send."""
    run_id: str
    strategy: str
    reason: str
    error_class: str
    tag: str = ""


@dataclass(frozen=True)
class PasswordFallbackActivated(EnrollmentRunEvent, DomainEvent):
    """Raised when a fallback-triggering failure moves the run to password entry."""
    run_id: str
    email: str
    reason: str


@dataclass(frozen=True)
class IdentityVerified(EnrollmentRunEvent, DomainEvent):
    """Raised when a claim is proven and the step plan is computed."""
    run_id: str
    subject_id: str
    strategy: str
    registration_count: int = 0
    planned_steps: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProfileStepCompleted(EnrollmentRunEvent, DomainEvent):
    """Raised when a step value passes the gate."""
    run_id: str
    subject_id: str
    field_id: str


@dataclass(frozen=True)
class ProfileStepSkipped(EnrollmentRunEvent, DomainEvent):
    """Raised when the user skips a skippable step."""
    run_id: str
    subject_id: str
    field_id: str


@dataclass(frozen=True)
class ProfileCompleted(EnrollmentRunEvent, DomainEvent):
    """Raised when collected fields are written to the profile store."""
    run_id: str
    subject_id: str
    field_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class BasicProfileRequired(EnrollmentRunEvent, DomainEvent):
    """Raised when a returning identity must complete the basic profile."""
    run_id: str
    subject_id: str
    missing_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class FinalizationFailed(EnrollmentRunEvent, DomainEvent):
    """Raised when publish or resolve fails; the run can retry."""
    run_id: str
    subject_id: str
    reason: str


@dataclass(frozen=True)
class EnrollmentFinalized(EnrollmentRunEvent, DomainEvent):
    """Raised when the run reaches Done with a destination."""
    run_id: str
    subject_id: str
    destination: str
    destination_source: str = ""


@dataclass(frozen=True)
class EnrollmentAborted(EnrollmentRunEvent, DomainEvent):
    """Raised when a fatal failure sends the run to the error state."""
    run_id: str
    reason: str
