"""
Profile gate.

Per-field validation rules for the progressive wizard and the
narrower basic-profile completeness check.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

from cqrs_ddd.ddd import ValueObject

from cqrs_ddd_enrollment.domain.planning import is_skippable
from cqrs_ddd_enrollment.domain.value_objects import (
    FailureReason,
    FieldId,
    ProfileRecord,
)


PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9._]{1,30}$")
GENDER_CHOICES = ("male", "female")
NAME_MAX_LENGTH = 100

# Minimal survival set for the basic-profile gate
BASIC_PROFILE_FIELDS: tuple[FieldId, ...] = (
    FieldId.FIRST_NAME,
    FieldId.LAST_NAME,
    FieldId.DATE_OF_BIRTH,
    FieldId.MESSAGING_NUMBER,
)


@dataclass(frozen=True)
class GateResult(ValueObject):
    """Ok (with the normalized value to store) or Error(reason)."""

    field_id: FieldId
    value: Optional[str] = None
    reason: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None


def age_on(birth_date: date, today: date) -> int:
    """Completed years between birth_date and today."""
    had_birthday = (today.month, today.day) >= (birth_date.month, birth_date.day)
    return today.year - birth_date.year - (0 if had_birthday else 1)


class ProfileGate:
    """
    Validates collected fields before the wizard may advance.

    Usage:
        gate = ProfileGate()
        result = gate.validate(FieldId.MESSAGING_NUMBER, "+30 694 123 4567")
        result.ok     # True
        result.value  # "+306941234567"
    """

    def __init__(
        self,
        min_age: int = 13,
        max_age: int = 120,
        today: Optional[Callable[[], date]] = None,
    ):
        self.min_age = min_age
        self.max_age = max_age
        self._today = today or date.today

    def validate(
        self,
        field_id: FieldId,
        value: Optional[str],
        registration_count: int = 0,
        min_age: Optional[int] = None,
    ) -> GateResult:
        stripped = (value or "").strip()

        if not stripped:
            if is_skippable(field_id, registration_count):
                return GateResult(field_id=field_id, value=None)
            return GateResult(field_id=field_id, reason=FailureReason.REQUIRED)

        if field_id == FieldId.MESSAGING_NUMBER:
            return self._validate_phone(stripped)
        if field_id == FieldId.DATE_OF_BIRTH:
            return self._validate_birth_date(
                stripped, self.min_age if min_age is None else min_age
            )
        if field_id == FieldId.GENDER:
            choice = stripped.lower()
            if choice not in GENDER_CHOICES:
                return GateResult(field_id=field_id, reason=FailureReason.INVALID_CHOICE)
            return GateResult(field_id=field_id, value=choice)
        if field_id == FieldId.SOCIAL_HANDLE:
            handle = stripped.lstrip("@")
            if not HANDLE_PATTERN.match(handle):
                return GateResult(field_id=field_id, reason=FailureReason.INVALID_HANDLE)
            return GateResult(field_id=field_id, value=handle)

        if len(stripped) > NAME_MAX_LENGTH:
            return GateResult(field_id=field_id, reason=FailureReason.TOO_LONG)
        return GateResult(field_id=field_id, value=stripped)

    def _validate_phone(self, value: str) -> GateResult:
        compact = re.sub(r"\s", "", value)
        if not PHONE_PATTERN.match(compact):
            return GateResult(
                field_id=FieldId.MESSAGING_NUMBER, reason=FailureReason.INVALID_PHONE
            )
        return GateResult(field_id=FieldId.MESSAGING_NUMBER, value=compact)

    def _validate_birth_date(self, value: str, min_age: int) -> GateResult:
        try:
            birth_date = date.fromisoformat(value)
        except ValueError:
            return GateResult(
                field_id=FieldId.DATE_OF_BIRTH, reason=FailureReason.INVALID_DATE
            )

        today = self._today()
        if birth_date > today:
            return GateResult(
                field_id=FieldId.DATE_OF_BIRTH, reason=FailureReason.INVALID_DATE
            )

        age = age_on(birth_date, today)
        if age < min_age:
            return GateResult(field_id=FieldId.DATE_OF_BIRTH, reason=FailureReason.UNDERAGE)
        if age > self.max_age:
            return GateResult(
                field_id=FieldId.DATE_OF_BIRTH, reason=FailureReason.IMPLAUSIBLE_AGE
            )
        return GateResult(field_id=FieldId.DATE_OF_BIRTH, value=birth_date.isoformat())

    # ═══════════════════════════════════════════════════════════════
    # BASIC PROFILE GATE
    # ═══════════════════════════════════════════════════════════════

    def missing_basic_fields(
        self,
        profile: Optional[ProfileRecord],
        exempt: Iterable[FieldId] = (),
    ) -> list[FieldId]:
        """Survival-set fields that are empty and not exempt."""
        profile = profile or ProfileRecord()
        exempt = set(exempt)
        return [
            f for f in BASIC_PROFILE_FIELDS if f not in exempt and profile.is_empty(f)
        ]

    def validate_basic_profile(
        self, values: dict[FieldId, Optional[str]], min_age: int
    ) -> dict[FieldId, GateResult]:
        """Validate a one-shot completion form; no field is skippable here."""
        return {
            field_id: self.validate(field_id, value, registration_count=0, min_age=min_age)
            for field_id, value in values.items()
        }
