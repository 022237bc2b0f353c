"""
Tests for the EnrollmentRun aggregate.
"""

import pytest

from cqrs_ddd_enrollment.domain.aggregates import (
    TRANSITIONS,
    EnrollmentRun,
    Trigger,
    WizardStep,
)
from cqrs_ddd_enrollment.domain.errors import InvalidTransitionError
from cqrs_ddd_enrollment.domain.events import (
    EnrollmentAborted,
    EnrollmentFinalized,
    EnrollmentStarted,
    IdentityClaimSubmitted,
    IdentityVerified,
    PasswordFallbackActivated,
    ProfileStepCompleted,
    ProfileStepSkipped,
    VerificationAttemptFailed,
)
from cqrs_ddd_enrollment.domain.planning import ProgressiveStepPlanner
from cqrs_ddd_enrollment.domain.validation import GateResult
from cqrs_ddd_enrollment.domain.value_objects import (
    Destination,
    FailureReason,
    FieldId,
    IdentityClaim,
    VerificationOutcome,
    VerificationStrategy,
)


def _verifying_run():
    run = EnrollmentRun.create().run
    run.identity_submitted(IdentityClaim(email="a@x.com"))
    return run


def _collecting_run(session, count=0):
    run = _verifying_run()
    plan = ProgressiveStepPlanner().plan(count, None)
    run.identity_verified(session, count, None, plan)
    return run


def test_create_run():
    mod = EnrollmentRun.create(redirect_target="/app/venue")
    run = mod.run

    assert run.state == WizardStep.AWAITING_IDENTITY
    assert run.redirect_target == "/app/venue"
    assert isinstance(mod.events[0], EnrollmentStarted)
    assert mod.events[0].aggregate_id == run.id


def test_identity_submitted_moves_to_verifying():
    run = EnrollmentRun.create().run
    mod = run.identity_submitted(IdentityClaim(email="a@x.com"))

    assert run.state == WizardStep.VERIFYING_IDENTITY
    assert run.email == "a@x.com"
    assert isinstance(mod.events[0], IdentityClaimSubmitted)


def test_code_issuance_is_kept_until_resend():
    run = EnrollmentRun.create().run
    run.identity_submitted(IdentityClaim(email="a@x.com"))
    run.code_issued(1_700_000_000.0)

    restored = EnrollmentRun.from_dict(run.to_dict())
    assert restored.code_issued_at == 1_700_000_000.0

    restored.identity_submitted(IdentityClaim(email="a@x.com"))
    assert restored.code_issued_at is None


def test_retryable_failure_stays_in_place():
    run = _verifying_run()
    mod = run.verification_failed(
        VerificationOutcome.failure(VerificationStrategy.CODE, FailureReason.EXPIRED)
    )

    assert run.state == WizardStep.VERIFYING_IDENTITY
    assert run.last_error == FailureReason.EXPIRED
    assert isinstance(mod.events[0], VerificationAttemptFailed)
    assert mod.events[0].error_class == "retryable_input"


def test_fallback_failure_preserves_email():
    run = _verifying_run()
    mod = run.verification_failed(
        VerificationOutcome.failure(VerificationStrategy.LINK, FailureReason.RATE_LIMITED)
    )

    assert run.state == WizardStep.PASSWORD_FALLBACK
    assert run.email == "a@x.com"
    assert run.strategy == VerificationStrategy.PASSWORD
    assert isinstance(mod.events[1], PasswordFallbackActivated)


def test_fatal_failure_is_absorbing_until_restart():
    run = _verifying_run()
    mod = run.verification_failed(
        VerificationOutcome.failure(VerificationStrategy.CODE, FailureReason.NOT_FOUND)
    )

    assert run.state == WizardStep.ERROR
    assert isinstance(mod.events[-1], EnrollmentAborted)
    with pytest.raises(InvalidTransitionError):
        run.identity_submitted(IdentityClaim(email="a@x.com"))

    run.restart()
    assert run.state == WizardStep.AWAITING_IDENTITY
    assert run.email is None
    assert run.last_error is None


def test_fatal_trigger_reaches_error_from_every_live_state():
    for state in WizardStep:
        target = TRANSITIONS.get((state, Trigger.FATAL_FAILURE))
        if state in (WizardStep.DONE, WizardStep.ERROR):
            assert target is None
        else:
            assert target == WizardStep.ERROR


def test_success_outcome_is_not_a_failure(verified_session):
    run = _verifying_run()
    with pytest.raises(InvalidTransitionError):
        run.verification_failed(
            VerificationOutcome.success(VerificationStrategy.CODE, verified_session)
        )


def test_identity_verified_stores_plan(verified_session):
    run = _verifying_run()
    plan = ProgressiveStepPlanner().plan(0, None)
    mod = run.identity_verified(verified_session, 0, None, plan)

    assert run.state == WizardStep.COLLECTING_STEPS
    assert run.user_id == "user-1"
    assert run.current_step == FieldId.FIRST_NAME
    assert len(run.remaining_steps) == 4
    assert isinstance(mod.events[0], IdentityVerified)
    assert mod.events[0].planned_steps == ("name", "surname", "gender", "instagram_handle")


def test_step_accepted_advances(verified_session):
    run = _collecting_run(verified_session)
    mod = run.step_submitted(GateResult(field_id=FieldId.FIRST_NAME, value="Ada"))

    assert run.current_step == FieldId.LAST_NAME
    assert run.answers[FieldId.FIRST_NAME] == "Ada"
    assert isinstance(mod.events[0], ProfileStepCompleted)


def test_step_rejected_stays(verified_session):
    run = _collecting_run(verified_session)
    run.step_submitted(GateResult(field_id=FieldId.FIRST_NAME, reason=FailureReason.REQUIRED))

    assert run.current_step == FieldId.FIRST_NAME
    assert run.last_error == FailureReason.REQUIRED


def test_step_for_wrong_field_is_refused(verified_session):
    run = _collecting_run(verified_session)
    with pytest.raises(InvalidTransitionError):
        run.step_submitted(GateResult(field_id=FieldId.GENDER, value="female"))


def test_empty_skippable_step_is_recorded_as_skipped(verified_session):
    run = _collecting_run(verified_session, count=3)
    mod = run.step_submitted(GateResult(field_id=FieldId.MESSAGING_NUMBER, value=None))

    assert FieldId.MESSAGING_NUMBER in run.skipped
    assert run.plan_exhausted
    assert isinstance(mod.events[0], ProfileStepSkipped)


def test_go_back_keeps_answers(verified_session):
    run = _collecting_run(verified_session)
    run.step_submitted(GateResult(field_id=FieldId.FIRST_NAME, value="Ada"))
    run.step_submitted(GateResult(field_id=FieldId.LAST_NAME, value="Lovelace"))

    run.step_back(0)

    assert run.current_step == FieldId.FIRST_NAME
    assert run.answers[FieldId.LAST_NAME] == "Lovelace"
    with pytest.raises(InvalidTransitionError):
        run.step_back(2)


def test_cannot_go_back_from_first_step(verified_session):
    run = _collecting_run(verified_session)
    with pytest.raises(InvalidTransitionError):
        run.step_back()


def test_finalization_path(verified_session):
    run = _collecting_run(verified_session, count=3)
    run.step_submitted(GateResult(field_id=FieldId.MESSAGING_NUMBER, value="+306941234567"))
    run.plan_completed()
    assert run.state == WizardStep.FINALIZING
    assert run.profile.whatsapp == "+306941234567"

    run.profile_written()
    run.finalization_failed(FailureReason.PUBLISH_FAILED)
    assert run.state == WizardStep.FINALIZING
    assert not run.finalization_succeeded

    mod = run.finalized(Destination(path="/me"))
    assert run.state == WizardStep.DONE
    assert run.finalization_succeeded
    assert isinstance(mod.events[0], EnrollmentFinalized)
    assert mod.events[0].destination == "/me"


def test_basic_profile_gate_holds_destination(verified_session):
    run = _collecting_run(verified_session, count=3)
    run.step_submitted(GateResult(field_id=FieldId.MESSAGING_NUMBER, value=None))
    run.plan_completed()
    run.basic_profile_required(Destination(path="/me"), [FieldId.DATE_OF_BIRTH])

    assert run.state == WizardStep.AWAITING_FINAL_GATE
    assert run.missing_basic_fields == [FieldId.DATE_OF_BIRTH]
    assert not run.finalization_succeeded

    run.basic_profile_completed({FieldId.DATE_OF_BIRTH: "1990-05-01"})
    assert run.state == WizardStep.DONE
    assert run.profile.date_of_birth == "1990-05-01"
    assert run.missing_basic_fields == []


def test_done_is_terminal(verified_session):
    run = _collecting_run(verified_session, count=3)
    run.step_submitted(GateResult(field_id=FieldId.MESSAGING_NUMBER, value="+306941234567"))
    run.plan_completed()
    run.finalized(Destination(path="/me"))

    with pytest.raises(InvalidTransitionError):
        run.restart()


def test_serialization_restores_state(verified_session):
    run = _collecting_run(verified_session, count=3)
    run.step_submitted(GateResult(field_id=FieldId.MESSAGING_NUMBER, value=None))
    run.plan_completed()
    run.finalization_failed(FailureReason.RESOLVE_FAILED)

    restored = EnrollmentRun.from_dict(run.to_dict())

    assert restored.id == run.id
    assert restored.state == WizardStep.FINALIZING
    assert restored.session == run.session
    assert restored.plan == run.plan
    assert restored.skipped == {FieldId.MESSAGING_NUMBER}
    assert restored.last_error == FailureReason.RESOLVE_FAILED
    assert restored.version == run.version
