from cqrs_ddd_enrollment.domain.events import (
    BasicProfileRequired,
    EnrollmentAborted,
    EnrollmentFinalized,
    EnrollmentStarted,
    IdentityClaimSubmitted,
    IdentityVerified,
    PasswordFallbackActivated,
    ProfileCompleted,
    VerificationAttemptFailed,
)


def test_enrollment_started():
    data = {"run_id": "r1", "event_id": "e1", "correlation_id": "c1"}
    event = EnrollmentStarted.from_dict(data)
    assert event.aggregate_type == "EnrollmentRun"
    assert event.aggregate_id == "r1"


def test_identity_claim_submitted():
    event = IdentityClaimSubmitted.from_dict(
        {"run_id": "r1", "email": "a@x.com", "strategy": "code"}
    )
    assert event.aggregate_id == "r1"
    assert event.email == "a@x.com"
    assert event.strategy == "code"


def test_verification_attempt_failed_default_tag():
    event = VerificationAttemptFailed.from_dict(
        {
            "run_id": "r1",
            "strategy": "link",
            "reason": "link_consumed",
            "error_class": "fallback_triggering",
        }
    )
    assert event.tag == ""
    assert event.reason == "link_consumed"


def test_password_fallback_activated():
    event = PasswordFallbackActivated.from_dict(
        {"run_id": "r1", "email": "a@x.com", "reason": "rate_limited"}
    )
    assert event.aggregate_type == "EnrollmentRun"
    assert event.reason == "rate_limited"


def test_identity_verified_lists_become_tuples():
    event = IdentityVerified.from_dict(
        {
            "run_id": "r1",
            "subject_id": "u1",
            "strategy": "code",
            "registration_count": 2,
            "planned_steps": ["whatsapp"],
        }
    )
    assert event.planned_steps == ("whatsapp",)
    assert event.registration_count == 2


def test_profile_completed():
    event = ProfileCompleted.from_dict(
        {"run_id": "r1", "subject_id": "u1", "field_ids": ["name", "surname"]}
    )
    assert event.field_ids == ("name", "surname")


def test_basic_profile_required():
    event = BasicProfileRequired.from_dict(
        {"run_id": "r1", "subject_id": "u1", "missing_fields": ["date_of_birth"]}
    )
    assert event.missing_fields == ("date_of_birth",)


def test_enrollment_finalized():
    event = EnrollmentFinalized.from_dict(
        {"run_id": "r1", "subject_id": "u1", "destination": "/app/venue", "destination_source": "venue_staff"}
    )
    assert event.aggregate_id == "r1"
    assert event.destination == "/app/venue"


def test_enrollment_aborted():
    event = EnrollmentAborted.from_dict({"run_id": "r1", "reason": "not_found"})
    assert event.reason == "not_found"
