"""
Progressive step planning.

Decides which profile fields are still required, from the user's
enrollment history and what is already on file. The plan is a pure
function of its inputs so it can be computed once per run and never
change under the user.
"""

from dataclasses import dataclass, field
from typing import Optional

from cqrs_ddd.ddd import ValueObject

from cqrs_ddd_enrollment.domain.value_objects import FieldId, ProfileRecord


# Fields requested per registration count bucket, in display order.
# Date of birth and messaging number are deliberately not asked on
# a first enrollment.
FIRST_ENROLLMENT_FIELDS: tuple[FieldId, ...] = (
    FieldId.FIRST_NAME,
    FieldId.LAST_NAME,
    FieldId.GENDER,
    FieldId.SOCIAL_HANDLE,
)
SECOND_ENROLLMENT_FIELDS: tuple[FieldId, ...] = (FieldId.SOCIAL_HANDLE,)
LATER_ENROLLMENT_FIELDS: tuple[FieldId, ...] = (FieldId.MESSAGING_NUMBER,)

SKIPPABLE_FROM_COUNT: dict[FieldId, int] = {FieldId.MESSAGING_NUMBER: 2}


def count_bucket(registration_count: int) -> int:
    """Collapse a registration count into its 0 / 1 / 2 (meaning >= 2) bucket."""
    return min(max(int(registration_count or 0), 0), 2)


def is_skippable(field_id: FieldId, registration_count: int) -> bool:
    threshold = SKIPPABLE_FROM_COUNT.get(field_id)
    return threshold is not None and registration_count >= threshold


@dataclass(frozen=True)
class StepPlan(ValueObject):
    """Ordered, de-duplicated fields still required for one run."""

    steps: tuple[FieldId, ...] = ()
    skippable: frozenset = field(default_factory=frozenset)
    registration_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def is_skippable(self, field_id: FieldId) -> bool:
        return field_id in self.skippable

    def to_dict(self) -> dict:
        return {
            "steps": [s.value for s in self.steps],
            "skippable": sorted(s.value for s in self.skippable),
            "registration_count": self.registration_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StepPlan":
        return cls(
            steps=tuple(FieldId(s) for s in data.get("steps", [])),
            skippable=frozenset(FieldId(s) for s in data.get("skippable", [])),
            registration_count=data.get("registration_count", 0),
        )


class ProgressiveStepPlanner:
    """
    Computes the ordered list of data-collection steps still required.

    Usage:
        planner = ProgressiveStepPlanner()
        plan = planner.plan(registration_count=0, profile=None)
        plan.steps  # (FIRST_NAME, LAST_NAME, GENDER, SOCIAL_HANDLE)
    """

    def plan(
        self, registration_count: int, profile: Optional[ProfileRecord] = None
    ) -> StepPlan:
        profile = profile or ProfileRecord()
        bucket = count_bucket(registration_count)
        candidates = {
            0: FIRST_ENROLLMENT_FIELDS,
            1: SECOND_ENROLLMENT_FIELDS,
            2: LATER_ENROLLMENT_FIELDS,
        }[bucket]

        steps: list[FieldId] = []
        for field_id in candidates:
            if field_id in steps or not profile.is_empty(field_id):
                continue
            steps.append(field_id)

        return StepPlan(
            steps=tuple(steps),
            skippable=frozenset(
                s for s in steps if is_skippable(s, registration_count)
            ),
            registration_count=registration_count,
        )
