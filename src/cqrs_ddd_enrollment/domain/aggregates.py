"""
Domain aggregate for enrollment runs.

An EnrollmentRun tracks one pass through the wizard, from the
unverified email to the resolved destination. Every state change
goes through a single transition table keyed by (state, trigger).

Uses AggregateRoot base class from py-cqrs-ddd-toolkit.
"""

import logging
import uuid
from enum import Enum
from typing import Optional, List, Any

from cqrs_ddd.ddd import AggregateRoot, Modification

from cqrs_ddd_enrollment.domain.errors import InvalidTransitionError
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
from cqrs_ddd_enrollment.domain.planning import StepPlan
from cqrs_ddd_enrollment.domain.validation import GateResult
from cqrs_ddd_enrollment.domain.value_objects import (
    Destination,
    FailureReason,
    FieldId,
    IdentityClaim,
    OutcomeStatus,
    ProfileRecord,
    VerificationOutcome,
    VerificationStrategy,
    VerifiedSession,
)

logger = logging.getLogger("cqrs_ddd_enrollment.domain.aggregates")


class WizardStep(str, Enum):
    """Externally visible state of an enrollment run."""

    AWAITING_IDENTITY = "awaiting_identity"
    VERIFYING_IDENTITY = "verifying_identity"
    PASSWORD_FALLBACK = "password_fallback"
    COLLECTING_STEPS = "collecting_steps"
    AWAITING_FINAL_GATE = "awaiting_final_gate"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"


class Trigger(str, Enum):
    """Inputs of the transition table."""

    IDENTITY_SUBMITTED = "identity_submitted"
    IDENTITY_REJECTED = "identity_rejected"
    PASSWORD_CHOSEN = "password_chosen"
    RETRYABLE_FAILURE = "retryable_failure"
    FALLBACK_FAILURE = "fallback_failure"
    FATAL_FAILURE = "fatal_failure"
    VERIFIED = "verified"
    STEP_ACCEPTED = "step_accepted"
    STEP_REJECTED = "step_rejected"
    STEP_BACK = "step_back"
    PLAN_COMPLETED = "plan_completed"
    FINALIZATION_FAILED = "finalization_failed"
    GATE_REQUIRED = "gate_required"
    GATE_REJECTED = "gate_rejected"
    FINALIZED = "finalized"
    RESTARTED = "restarted"


_S = WizardStep
_T = Trigger

TRANSITIONS: dict[tuple[WizardStep, Trigger], WizardStep] = {
    (_S.AWAITING_IDENTITY, _T.IDENTITY_SUBMITTED): _S.VERIFYING_IDENTITY,
    (_S.AWAITING_IDENTITY, _T.IDENTITY_REJECTED): _S.AWAITING_IDENTITY,
    (_S.VERIFYING_IDENTITY, _T.IDENTITY_SUBMITTED): _S.VERIFYING_IDENTITY,
    (_S.VERIFYING_IDENTITY, _T.RETRYABLE_FAILURE): _S.VERIFYING_IDENTITY,
    (_S.VERIFYING_IDENTITY, _T.FALLBACK_FAILURE): _S.PASSWORD_FALLBACK,
    (_S.VERIFYING_IDENTITY, _T.PASSWORD_CHOSEN): _S.PASSWORD_FALLBACK,
    (_S.VERIFYING_IDENTITY, _T.VERIFIED): _S.COLLECTING_STEPS,
    (_S.VERIFYING_IDENTITY, _T.RESTARTED): _S.AWAITING_IDENTITY,
    (_S.PASSWORD_FALLBACK, _T.RETRYABLE_FAILURE): _S.PASSWORD_FALLBACK,
    (_S.PASSWORD_FALLBACK, _T.FALLBACK_FAILURE): _S.PASSWORD_FALLBACK,
    (_S.PASSWORD_FALLBACK, _T.VERIFIED): _S.COLLECTING_STEPS,
    (_S.PASSWORD_FALLBACK, _T.RESTARTED): _S.AWAITING_IDENTITY,
    (_S.COLLECTING_STEPS, _T.STEP_ACCEPTED): _S.COLLECTING_STEPS,
    (_S.COLLECTING_STEPS, _T.STEP_REJECTED): _S.COLLECTING_STEPS,
    (_S.COLLECTING_STEPS, _T.STEP_BACK): _S.COLLECTING_STEPS,
    (_S.COLLECTING_STEPS, _T.PLAN_COMPLETED): _S.FINALIZING,
    (_S.FINALIZING, _T.FINALIZATION_FAILED): _S.FINALIZING,
    (_S.FINALIZING, _T.GATE_REQUIRED): _S.AWAITING_FINAL_GATE,
    (_S.FINALIZING, _T.FINALIZED): _S.DONE,
    (_S.AWAITING_FINAL_GATE, _T.GATE_REJECTED): _S.AWAITING_FINAL_GATE,
    (_S.AWAITING_FINAL_GATE, _T.FINALIZED): _S.DONE,
    (_S.ERROR, _T.RESTARTED): _S.AWAITING_IDENTITY,
}

# Fatal failures are absorbed into ERROR from every state but DONE
for _state in WizardStep:
    if _state not in (WizardStep.DONE, WizardStep.ERROR):
        TRANSITIONS[(_state, Trigger.FATAL_FAILURE)] = WizardStep.ERROR

_OUTCOME_TRIGGERS: dict[OutcomeStatus, Trigger] = {
    OutcomeStatus.RETRYABLE: Trigger.RETRYABLE_FAILURE,
    OutcomeStatus.FALLBACK: Trigger.FALLBACK_FAILURE,
    OutcomeStatus.FATAL: Trigger.FATAL_FAILURE,
}


# ═══════════════════════════════════════════════════════════════
# MODIFICATIONS
# ═══════════════════════════════════════════════════════════════


class CreateEnrollmentRunModification(Modification):
    """Modification for opening a new enrollment run."""

    def __init__(self, run: "EnrollmentRun", events: List):
        super().__init__(entity=run, events=events)
        self.run = run


class UpdateEnrollmentRunModification(Modification):
    """Modification for any state change of an enrollment run."""

    def __init__(self, run: "EnrollmentRun", events: List):
        super().__init__(entity=run, events=events)
        self.run = run


# ═══════════════════════════════════════════════════════════════
# ENROLLMENT RUN AGGREGATE ROOT
# ═══════════════════════════════════════════════════════════════


class EnrollmentRun(AggregateRoot):
    """
    Aggregate root for one orchestration run.

    The aggregate holds state and enforces transitions; the
    RegistrationOrchestrator performs the backend calls and feeds
    their classified results in.

    Usage:
        run = EnrollmentRun.create().run
        run.identity_submitted(IdentityClaim.from_input("a@x.com"))
        run.verification_failed(outcome)       # stays / falls back / errors
        run.identity_verified(session, 0, None, plan)
        run.step_submitted(gate_result)
    """

    def __init__(
        self,
        entity_id: str = None,
        state: WizardStep = WizardStep.AWAITING_IDENTITY,
        email: Optional[str] = None,
        strategy: VerificationStrategy = VerificationStrategy.CODE,
        redirect_target: Optional[str] = None,
        session: Optional[VerifiedSession] = None,
        registration_count: int = 0,
        profile: Optional[ProfileRecord] = None,
        profile_existed: bool = False,
        plan: Optional[StepPlan] = None,
        cursor: int = 0,
        answers: Optional[dict[FieldId, Optional[str]]] = None,
        skipped: Optional[set[FieldId]] = None,
        last_error: Optional[FailureReason] = None,
        profile_committed: bool = False,
        missing_basic_fields: Optional[List[FieldId]] = None,
        destination: Optional[Destination] = None,
        code_issued_at: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(entity_id=entity_id, **kwargs)
        self.state = state
        self.email = email
        self.strategy = strategy
        self.redirect_target = redirect_target
        self.session = session
        self.registration_count = registration_count
        self.profile = profile
        self.profile_existed = profile_existed
        self.plan = plan
        self.cursor = cursor
        self.answers = answers or {}
        self.skipped = skipped or set()
        self.last_error = last_error
        self.profile_committed = profile_committed
        self.missing_basic_fields = missing_basic_fields or []
        self.destination = destination
        self.code_issued_at = code_issued_at

    @classmethod
    def create(cls, redirect_target: Optional[str] = None) -> CreateEnrollmentRunModification:
        """Open a run in awaiting_identity."""
        run = cls(entity_id=str(uuid.uuid4()), redirect_target=redirect_target)
        event = EnrollmentStarted(run_id=run.id)
        run.add_domain_event(event)
        return CreateEnrollmentRunModification(run, [event])

    # ═══════════════════════════════════════════════════════════════
    # DERIVED STATE
    # ═══════════════════════════════════════════════════════════════

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id if self.session else None

    @property
    def current_step(self) -> Optional[FieldId]:
        if self.state != WizardStep.COLLECTING_STEPS or not self.plan:
            return None
        if self.cursor >= len(self.plan.steps):
            return None
        return self.plan.steps[self.cursor]

    @property
    def remaining_steps(self) -> tuple[FieldId, ...]:
        if not self.plan or self.state != WizardStep.COLLECTING_STEPS:
            return ()
        return self.plan.steps[self.cursor:]

    @property
    def is_returning(self) -> bool:
        return self.registration_count >= 1

    @property
    def finalization_succeeded(self) -> bool:
        return self.state == WizardStep.DONE

    # ═══════════════════════════════════════════════════════════════
    # IDENTITY
    # ═══════════════════════════════════════════════════════════════

    def identity_submitted(
        self,
        claim: IdentityClaim,
        strategy: VerificationStrategy = VerificationStrategy.CODE,
    ) -> UpdateEnrollmentRunModification:
        """Record the claim; re-submission while verifying means resend."""
        self._transition(Trigger.IDENTITY_SUBMITTED)
        self.email = claim.email
        self.strategy = strategy
        self.last_error = None
        self.code_issued_at = None
        event = IdentityClaimSubmitted(
            run_id=self.id, email=claim.email, strategy=strategy.value
        )
        return self._emit([event])

    def identity_rejected(self, reason: FailureReason) -> UpdateEnrollmentRunModification:
        """The entered email itself was not acceptable."""
        self._transition(Trigger.IDENTITY_REJECTED)
        self.last_error = reason
        return self._emit([])

    def password_chosen(self) -> UpdateEnrollmentRunModification:
        """The user switched to password entry without a failure."""
        self._transition(Trigger.PASSWORD_CHOSEN)
        self.strategy = VerificationStrategy.PASSWORD
        self.last_error = None
        return self._emit([])

    def code_issued(self, issued_at: float) -> None:
        """Remember when the current code was sent, so its age survives reloads."""
        self.require_state(WizardStep.VERIFYING_IDENTITY)
        self.code_issued_at = issued_at

    def verification_failed(
        self, outcome: VerificationOutcome
    ) -> UpdateEnrollmentRunModification:
        """Apply a failed outcome through the transition table."""
        trigger = _OUTCOME_TRIGGERS.get(outcome.status)
        if trigger is None or outcome.reason is None:
            raise InvalidTransitionError(
                f"Outcome {outcome.status.value} is not a failure",
                details={"run_id": self.id},
            )

        previous = self.state
        self._transition(trigger)
        self.last_error = outcome.reason

        events: List[Any] = [
            VerificationAttemptFailed(
                run_id=self.id,
                strategy=outcome.strategy.value,
                reason=outcome.reason.value,
                error_class=outcome.reason.error_class.value,
                tag=outcome.tag.value if outcome.tag else "",
            )
        ]
        if trigger == Trigger.FALLBACK_FAILURE:
            self.strategy = VerificationStrategy.PASSWORD
            if previous != WizardStep.PASSWORD_FALLBACK:
                events.append(
                    PasswordFallbackActivated(
                        run_id=self.id,
                        email=self.email or "",
                        reason=outcome.reason.value,
                    )
                )
        elif trigger == Trigger.FATAL_FAILURE:
            events.append(EnrollmentAborted(run_id=self.id, reason=outcome.reason.value))
        return self._emit(events)

    def identity_verified(
        self,
        session: VerifiedSession,
        registration_count: int,
        profile: Optional[ProfileRecord],
        plan: StepPlan,
        strategy: Optional[VerificationStrategy] = None,
    ) -> UpdateEnrollmentRunModification:
        """Enter collecting_steps with a plan computed once for the run."""
        self._transition(Trigger.VERIFIED)
        self.session = session
        self.registration_count = registration_count
        self.profile_existed = profile is not None
        self.profile = profile or ProfileRecord()
        self.plan = plan
        self.cursor = 0
        self.answers = {}
        self.skipped = set()
        self.last_error = None
        self.code_issued_at = None
        if strategy is not None:
            self.strategy = strategy
        event = IdentityVerified(
            run_id=self.id,
            subject_id=session.user_id,
            strategy=self.strategy.value,
            registration_count=registration_count,
            planned_steps=tuple(s.value for s in plan.steps),
        )
        return self._emit([event])

    # ═══════════════════════════════════════════════════════════════
    # STEP COLLECTION
    # ═══════════════════════════════════════════════════════════════

    def step_submitted(self, result: GateResult) -> UpdateEnrollmentRunModification:
        """
        Apply a gate result for the current step.

        An accepted empty value on a skippable step counts as a skip,
        so skipping and submitting empty leave identical state.
        """
        expected = self.current_step
        if expected is None or result.field_id != expected:
            raise InvalidTransitionError(
                f"Step {result.field_id.value} is not the current step",
                details={"run_id": self.id, "current_step": getattr(expected, "value", None)},
            )

        if not result.ok:
            self._transition(Trigger.STEP_REJECTED)
            self.last_error = result.reason
            return self._emit([])

        self._transition(Trigger.STEP_ACCEPTED)
        self.answers[result.field_id] = result.value
        self.last_error = None
        self.cursor += 1

        if result.value is None and self.plan.is_skippable(result.field_id):
            self.skipped.add(result.field_id)
            event = ProfileStepSkipped(
                run_id=self.id, subject_id=self.user_id or "", field_id=result.field_id.value
            )
        else:
            self.skipped.discard(result.field_id)
            event = ProfileStepCompleted(
                run_id=self.id, subject_id=self.user_id or "", field_id=result.field_id.value
            )
        return self._emit([event])

    def step_back(self, index: Optional[int] = None) -> UpdateEnrollmentRunModification:
        """Return to an earlier step; answers already given are kept."""
        target = self.cursor - 1 if index is None else index
        if target < 0 or target >= self.cursor:
            raise InvalidTransitionError(
                "Can only go back to an earlier step",
                details={"run_id": self.id, "cursor": self.cursor, "target": target},
            )
        self._transition(Trigger.STEP_BACK)
        self.cursor = target
        self.last_error = None
        return self._emit([])

    @property
    def plan_exhausted(self) -> bool:
        return (
            self.state == WizardStep.COLLECTING_STEPS
            and self.plan is not None
            and self.cursor >= len(self.plan.steps)
        )

    def collected_fields(self) -> dict[str, Optional[str]]:
        """Planned fields with their collected values, keyed by column name."""
        if not self.plan:
            return {}
        return {f.value: self.answers.get(f) for f in self.plan.steps}

    def plan_completed(self) -> UpdateEnrollmentRunModification:
        """Leave collection; the orchestrator writes the profile next."""
        self._transition(Trigger.PLAN_COMPLETED)
        self.profile = (self.profile or ProfileRecord()).merged(
            {f: self.answers.get(f) for f in (self.plan.steps if self.plan else ())}
        )
        return self._emit([])

    def profile_written(self) -> UpdateEnrollmentRunModification:
        """Mark collected values as stored so finalization re-entry skips the write."""
        self.require_state(WizardStep.FINALIZING)
        self.profile_committed = True
        field_ids = tuple(self.collected_fields().keys())
        if not field_ids:
            return self._emit([])
        event = ProfileCompleted(
            run_id=self.id, subject_id=self.user_id or "", field_ids=field_ids
        )
        return self._emit([event])

    # ═══════════════════════════════════════════════════════════════
    # FINALIZATION
    # ═══════════════════════════════════════════════════════════════

    def finalization_failed(self, reason: FailureReason) -> UpdateEnrollmentRunModification:
        self._transition(Trigger.FINALIZATION_FAILED)
        self.last_error = reason
        event = FinalizationFailed(
            run_id=self.id, subject_id=self.user_id or "", reason=reason.value
        )
        return self._emit([event])

    def basic_profile_required(
        self, destination: Destination, missing: List[FieldId]
    ) -> UpdateEnrollmentRunModification:
        """Hold the destination until the survival set is complete."""
        self._transition(Trigger.GATE_REQUIRED)
        self.destination = destination
        self.missing_basic_fields = list(missing)
        self.last_error = None
        event = BasicProfileRequired(
            run_id=self.id,
            subject_id=self.user_id or "",
            missing_fields=tuple(f.value for f in missing),
        )
        return self._emit([event])

    def basic_profile_rejected(self, reason: FailureReason) -> UpdateEnrollmentRunModification:
        self._transition(Trigger.GATE_REJECTED)
        self.last_error = reason
        return self._emit([])

    def basic_profile_completed(
        self, values: dict[FieldId, Optional[str]]
    ) -> UpdateEnrollmentRunModification:
        self.require_state(WizardStep.AWAITING_FINAL_GATE)
        self.profile = (self.profile or ProfileRecord()).merged(values)
        self.missing_basic_fields = []
        return self._complete(self.destination)

    def finalized(self, destination: Destination) -> UpdateEnrollmentRunModification:
        self.require_state(WizardStep.FINALIZING)
        return self._complete(destination)

    def _complete(self, destination: Destination) -> UpdateEnrollmentRunModification:
        self._transition(Trigger.FINALIZED)
        self.destination = destination
        self.last_error = None
        event = EnrollmentFinalized(
            run_id=self.id,
            subject_id=self.user_id or "",
            destination=destination.path,
            destination_source=destination.source or "",
        )
        return self._emit([event])

    def restart(self) -> UpdateEnrollmentRunModification:
        """Back to awaiting_identity; everything learned about the claim is dropped."""
        self._transition(Trigger.RESTARTED)
        self.email = None
        self.strategy = VerificationStrategy.CODE
        self.session = None
        self.registration_count = 0
        self.profile = None
        self.profile_existed = False
        self.plan = None
        self.cursor = 0
        self.answers = {}
        self.skipped = set()
        self.last_error = None
        self.profile_committed = False
        self.missing_basic_fields = []
        self.destination = None
        self.code_issued_at = None
        return self._emit([])

    # ═══════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════

    def require_state(self, *states: WizardStep) -> None:
        if self.state not in states:
            raise InvalidTransitionError(
                f"Invalid state: expected one of "
                f"{', '.join(s.value for s in states)}, got {self.state.value}",
                details={"run_id": self.id, "state": self.state.value},
            )

    def _transition(self, trigger: Trigger) -> None:
        target = TRANSITIONS.get((self.state, trigger))
        if target is None:
            raise InvalidTransitionError(
                f"Invalid state transition: {trigger.value} in {self.state.value}",
                details={"run_id": self.id, "state": self.state.value},
            )
        if target != self.state:
            logger.debug(
                f"Run {self.id}: {self.state.value} -> {target.value} ({trigger.value})"
            )
        self.state = target

    def _emit(self, events: List[Any]) -> UpdateEnrollmentRunModification:
        for event in events:
            self.add_domain_event(event)
        self.increment_version()
        return UpdateEnrollmentRunModification(self, events)

    # ═══════════════════════════════════════════════════════════════
    # SERIALIZATION
    # ═══════════════════════════════════════════════════════════════

    def to_dict(self) -> dict[str, Any]:
        """Serialize the run for storage."""
        return {
            "run_id": self.id,
            "state": self.state.value,
            "email": self.email,
            "strategy": self.strategy.value,
            "redirect_target": self.redirect_target,
            "session": self.session.to_payload() if self.session else None,
            "registration_count": self.registration_count,
            "profile": self.profile.to_dict() if self.profile else None,
            "profile_existed": self.profile_existed,
            "plan": self.plan.to_dict() if self.plan else None,
            "cursor": self.cursor,
            "answers": {f.value: v for f, v in self.answers.items()},
            "skipped": sorted(f.value for f in self.skipped),
            "last_error": self.last_error.value if self.last_error else None,
            "profile_committed": self.profile_committed,
            "missing_basic_fields": [f.value for f in self.missing_basic_fields],
            "destination": (
                {"path": self.destination.path, "source": self.destination.source}
                if self.destination
                else None
            ),
            "code_issued_at": self.code_issued_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnrollmentRun":
        """Deserialize a run from storage."""
        session = data.get("session")
        profile = data.get("profile")
        plan = data.get("plan")
        destination = data.get("destination")
        last_error = data.get("last_error")

        run = cls(
            entity_id=data.get("run_id"),
            state=WizardStep(data.get("state", WizardStep.AWAITING_IDENTITY.value)),
            email=data.get("email"),
            strategy=VerificationStrategy(
                data.get("strategy", VerificationStrategy.CODE.value)
            ),
            redirect_target=data.get("redirect_target"),
            session=VerifiedSession.from_payload(session) if session else None,
            registration_count=data.get("registration_count", 0),
            profile=ProfileRecord.from_dict(profile) if profile is not None else None,
            profile_existed=data.get("profile_existed", False),
            plan=StepPlan.from_dict(plan) if plan else None,
            cursor=data.get("cursor", 0),
            answers={FieldId(k): v for k, v in (data.get("answers") or {}).items()},
            skipped={FieldId(f) for f in data.get("skipped", [])},
            last_error=FailureReason(last_error) if last_error else None,
            profile_committed=data.get("profile_committed", False),
            missing_basic_fields=[FieldId(f) for f in data.get("missing_basic_fields", [])],
            destination=Destination(**destination) if destination else None,
            code_issued_at=data.get("code_issued_at"),
        )
        if "version" in data:
            run._version = data["version"]
        return run


__all__ = [
    "EnrollmentRun",
    "WizardStep",
    "Trigger",
    "TRANSITIONS",
    "CreateEnrollmentRunModification",
    "UpdateEnrollmentRunModification",
]
