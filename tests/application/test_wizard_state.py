"""
Tests for WizardState snapshots.
"""

from cqrs_ddd_enrollment.application.results import WizardState
from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun
from cqrs_ddd_enrollment.domain.value_objects import (
    FailureReason,
    IdentityClaim,
    VerificationOutcome,
    VerificationStrategy,
)


def test_fresh_run():
    run = EnrollmentRun.create().run
    state = WizardState.from_run(run)

    assert state.run_id == run.id
    assert state.state == "awaiting_identity"
    assert state.current_step is None
    assert state.remaining_steps == []
    assert not state.is_done
    assert not state.has_error


def test_failure_reason_is_explained():
    run = EnrollmentRun.create().run
    run.identity_submitted(IdentityClaim(email="a@x.com"))
    run.verification_failed(
        VerificationOutcome.failure(VerificationStrategy.CODE, FailureReason.EXPIRED)
    )

    state = WizardState.from_run(run)

    assert state.last_error == "expired"
    assert state.error_class == "retryable_input"
    assert state.error_message == "This code has expired. Request a new one."
    assert state.has_error


def test_failed_without_run():
    state = WizardState.failed("Enrollment run not found", "RUN_NOT_FOUND")

    assert state.run_id is None
    assert state.state == "unknown"
    assert state.error_code == "RUN_NOT_FOUND"


def test_failed_with_run_keeps_snapshot():
    run = EnrollmentRun.create().run
    state = WizardState.failed("nope", "INVALID_TRANSITION", run)

    assert state.run_id == run.id
    assert state.state == "awaiting_identity"
    assert state.error_message == "nope"
