"""
Tests for ProfileGate.
"""

from datetime import date

import pytest

from cqrs_ddd_enrollment.domain.validation import ProfileGate, age_on
from cqrs_ddd_enrollment.domain.value_objects import FailureReason, FieldId, ProfileRecord


@pytest.fixture
def gate():
    return ProfileGate(min_age=13, max_age=120, today=lambda: date(2024, 6, 15))


@pytest.mark.parametrize("value", ["", "   ", None])
def test_required_fields_reject_empty(gate, value):
    result = gate.validate(FieldId.FIRST_NAME, value)
    assert not result.ok
    assert result.reason == FailureReason.REQUIRED
    assert result.message == "This field is required"


def test_empty_phone_is_accepted_when_skippable(gate):
    result = gate.validate(FieldId.MESSAGING_NUMBER, "  ", registration_count=2)
    assert result.ok
    assert result.value is None


def test_empty_phone_is_required_before_second_enrollment(gate):
    result = gate.validate(FieldId.MESSAGING_NUMBER, "", registration_count=1)
    assert result.reason == FailureReason.REQUIRED


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("+306941234567", "+306941234567"),
        ("+30 694 123 4567", "+306941234567"),
        ("6941234567", "6941234567"),
    ],
)
def test_phone_accepts_e164_after_removing_whitespace(gate, raw, expected):
    result = gate.validate(FieldId.MESSAGING_NUMBER, raw)
    assert result.ok
    assert result.value == expected


@pytest.mark.parametrize("raw", ["+0123456", "12345678901234567", "+30-694", "phone"])
def test_phone_rejects_malformed_numbers(gate, raw):
    assert gate.validate(FieldId.MESSAGING_NUMBER, raw).reason == FailureReason.INVALID_PHONE


def test_birth_date_is_normalized(gate):
    result = gate.validate(FieldId.DATE_OF_BIRTH, "1990-05-01")
    assert result.ok
    assert result.value == "1990-05-01"


@pytest.mark.parametrize(
    "raw,reason",
    [
        ("not-a-date", FailureReason.INVALID_DATE),
        ("1990-02-30", FailureReason.INVALID_DATE),
        ("2030-01-01", FailureReason.INVALID_DATE),
        ("2015-01-01", FailureReason.UNDERAGE),
        ("1890-01-01", FailureReason.IMPLAUSIBLE_AGE),
    ],
)
def test_birth_date_rejections(gate, raw, reason):
    assert gate.validate(FieldId.DATE_OF_BIRTH, raw).reason == reason


def test_birth_date_minimum_age_override(gate):
    assert gate.validate(FieldId.DATE_OF_BIRTH, "2010-01-01").ok
    result = gate.validate(FieldId.DATE_OF_BIRTH, "2010-01-01", min_age=18)
    assert result.reason == FailureReason.UNDERAGE


def test_age_counts_completed_years():
    assert age_on(date(2006, 6, 16), date(2024, 6, 15)) == 17
    assert age_on(date(2006, 6, 15), date(2024, 6, 15)) == 18


def test_gender_choices(gate):
    assert gate.validate(FieldId.GENDER, "Female").value == "female"
    assert gate.validate(FieldId.GENDER, "other").reason == FailureReason.INVALID_CHOICE


def test_social_handle_strips_at(gate):
    assert gate.validate(FieldId.SOCIAL_HANDLE, "@ada.lovelace").value == "ada.lovelace"
    assert gate.validate(FieldId.SOCIAL_HANDLE, "ada lovelace").reason == FailureReason.INVALID_HANDLE


def test_names_are_trimmed_and_bounded(gate):
    assert gate.validate(FieldId.FIRST_NAME, "  Ada ").value == "Ada"
    assert gate.validate(FieldId.LAST_NAME, "x" * 101).reason == FailureReason.TOO_LONG


def test_missing_basic_fields(gate):
    profile = ProfileRecord(name="Ada", surname="Lovelace")
    assert gate.missing_basic_fields(profile) == [
        FieldId.DATE_OF_BIRTH,
        FieldId.MESSAGING_NUMBER,
    ]
    assert gate.missing_basic_fields(profile, exempt={FieldId.MESSAGING_NUMBER}) == [
        FieldId.DATE_OF_BIRTH
    ]
    assert gate.missing_basic_fields(None)[0] == FieldId.FIRST_NAME


def test_basic_profile_has_no_skippable_fields(gate):
    results = gate.validate_basic_profile(
        {FieldId.MESSAGING_NUMBER: "", FieldId.DATE_OF_BIRTH: "1990-05-01"}, min_age=18
    )
    assert results[FieldId.MESSAGING_NUMBER].reason == FailureReason.REQUIRED
    assert results[FieldId.DATE_OF_BIRTH].ok
