"""
Tests for enrollment value objects.
"""

import pytest

from cqrs_ddd_enrollment.config import EnrollmentConfig
from cqrs_ddd_enrollment.domain.errors import EnrollmentDomainError
from cqrs_ddd_enrollment.domain.value_objects import (
    CODE_TYPE_TAG_ORDER,
    CodeTypeTag,
    Destination,
    ErrorClass,
    FailureReason,
    FieldId,
    IdentityClaim,
    OutcomeStatus,
    ProfileRecord,
    VerificationOutcome,
    VerificationStrategy,
    VerifiedSession,
)


def test_identity_claim_normalizes_email():
    claim = IdentityClaim.from_input("  A@X.Com ")
    assert claim.email == "a@x.com"


@pytest.mark.parametrize("raw", ["", "   ", "no-at-sign", "a@localhost", "a b@x.com"])
def test_identity_claim_rejects_invalid_email(raw):
    with pytest.raises(EnrollmentDomainError) as exc:
        IdentityClaim.from_input(raw)
    assert exc.value.code == "INVALID_EMAIL"


def test_code_type_tags_are_tried_in_fixed_order():
    assert CODE_TYPE_TAG_ORDER == (
        CodeTypeTag.EMAIL,
        CodeTypeTag.SIGNUP,
        CodeTypeTag.MAGICLINK,
    )


def test_every_failure_reason_is_classified_with_a_message():
    for reason in FailureReason:
        assert isinstance(reason.error_class, ErrorClass)
        assert reason.message


def test_failure_classes():
    assert FailureReason.EXPIRED.error_class == ErrorClass.RETRYABLE_INPUT
    assert FailureReason.RATE_LIMITED.error_class == ErrorClass.FALLBACK_TRIGGERING
    assert FailureReason.LINK_CONSUMED.error_class == ErrorClass.FALLBACK_TRIGGERING
    assert FailureReason.NOT_FOUND.error_class == ErrorClass.FATAL_IDENTITY
    assert FailureReason.INVALID_PHONE.error_class == ErrorClass.VALIDATION
    assert FailureReason.PUBLISH_FAILED.error_class == ErrorClass.FINALIZATION


def test_outcome_failure_status_follows_reason():
    retry = VerificationOutcome.failure(VerificationStrategy.CODE, FailureReason.INVALID)
    fallback = VerificationOutcome.failure(VerificationStrategy.LINK, FailureReason.RATE_LIMITED)
    fatal = VerificationOutcome.failure(VerificationStrategy.CODE, FailureReason.NOT_FOUND)

    assert retry.status == OutcomeStatus.RETRYABLE
    assert fallback.requires_fallback
    assert fatal.is_fatal
    assert not retry.is_success


def test_outcome_success(verified_session):
    outcome = VerificationOutcome.success(
        VerificationStrategy.CODE, verified_session, CodeTypeTag.SIGNUP
    )
    assert outcome.is_success
    assert outcome.session.user_id == "user-1"
    assert outcome.tag == CodeTypeTag.SIGNUP


def test_verified_session_payload(verified_session):
    payload = verified_session.to_payload()
    assert payload == {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_at": verified_session.expires_at,
        "user": {"id": "user-1", "email": "a@x.com"},
    }
    assert VerifiedSession.from_payload(payload) == verified_session


def test_verified_session_payload_fills_user_identity():
    session = VerifiedSession(access_token="a", refresh_token="r", user_id="u", email="e@x.com")
    assert session.to_payload()["user"] == {"id": "u", "email": "e@x.com"}
    assert session.to_payload()["expires_at"] is None


def test_profile_record_emptiness_and_merge():
    profile = ProfileRecord(name="Ada", surname="  ")
    assert not profile.is_empty(FieldId.FIRST_NAME)
    assert profile.is_empty(FieldId.LAST_NAME)
    assert profile.is_empty(FieldId.MESSAGING_NUMBER)

    merged = profile.merged({FieldId.LAST_NAME: "Lovelace"})
    assert merged.surname == "Lovelace"
    assert merged.name == "Ada"
    assert profile.surname == "  "


def test_profile_record_from_dict_ignores_unknown_columns():
    record = ProfileRecord.from_dict({"name": "Ada", "email": "a@x.com"})
    assert record.name == "Ada"
    assert record.to_dict()["whatsapp"] is None


def test_destination_staff_bound():
    assert not Destination(path="/me").is_staff_bound
    assert Destination(path="/app/venue", source="venue_staff").is_staff_bound


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://abcd.supabase.co", "sb-abcd-auth-token"),
        ("https://auth.example.com", "sb-auth-auth-token"),
        ("http://localhost:54321", "sb-supabase-auth-token"),
        ("", "sb-supabase-auth-token"),
    ],
)
def test_session_record_name(url, expected):
    assert EnrollmentConfig(project_url=url).session_record_name == expected
