"""
Enrollment result types.

WizardState is the snapshot handed back to callers after every
command: where the run is, what comes next and what went wrong.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun


@dataclass
class WizardState:
    """
    Snapshot of an enrollment run.

    destination is only set once the run is done; a held destination
    behind the basic-profile gate is not exposed.

    Use from_run() / failed() to create instances.
    """

    run_id: Optional[str]
    state: str
    email: Optional[str] = None
    strategy: Optional[str] = None
    current_step: Optional[str] = None
    current_step_skippable: bool = False
    remaining_steps: list[str] = field(default_factory=list)
    missing_basic_fields: list[str] = field(default_factory=list)
    last_error: Optional[str] = None
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    finalization_succeeded: bool = False
    destination: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_run(cls, run: "EnrollmentRun") -> "WizardState":
        step = run.current_step
        done = run.finalization_succeeded
        return cls(
            run_id=run.id,
            state=run.state.value,
            email=run.email,
            strategy=run.strategy.value if run.strategy else None,
            current_step=step.value if step else None,
            current_step_skippable=bool(step and run.plan and run.plan.is_skippable(step)),
            remaining_steps=[s.value for s in run.remaining_steps],
            missing_basic_fields=[f.value for f in run.missing_basic_fields],
            last_error=run.last_error.value if run.last_error else None,
            error_class=run.last_error.error_class.value if run.last_error else None,
            error_message=run.last_error.message if run.last_error else None,
            finalization_succeeded=done,
            destination=run.destination.path if done and run.destination else None,
            user_id=run.user_id,
        )

    @classmethod
    def failed(
        cls,
        error_message: str,
        error_code: str = "ENROLLMENT_ERROR",
        run: Optional["EnrollmentRun"] = None,
    ) -> "WizardState":
        """A command was refused; the run (if any) is reported unchanged."""
        if run is not None:
            state = cls.from_run(run)
            state.error_message = error_message
            state.error_code = error_code
            return state
        return cls(
            run_id=None,
            state="unknown",
            error_message=error_message,
            error_code=error_code,
        )

    @property
    def is_done(self) -> bool:
        return self.finalization_succeeded

    @property
    def has_error(self) -> bool:
        return self.error_message is not None
