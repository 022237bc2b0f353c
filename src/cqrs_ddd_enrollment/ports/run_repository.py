"""
Enrollment Run Repository Port.

Defines the port interface for persisting enrollment runs between
wizard requests. The aggregate itself lives in
cqrs_ddd_enrollment.domain.aggregates.
"""

from typing import Protocol, Optional, runtime_checkable

from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun


@runtime_checkable
class EnrollmentRunRepository(Protocol):
    """
    Port for enrollment run storage.

    Usage:
        repo = InMemoryEnrollmentRunRepository()
        run, events = orchestrator.start()
        await repo.save(run)
        run = await repo.get(run.id)
    """

    async def get(self, run_id: str) -> Optional[EnrollmentRun]:
        """Get a run by id, or None."""
        ...

    async def save(self, run: EnrollmentRun) -> None:
        """Insert or replace a run."""
        ...

    async def delete(self, run_id: str) -> None:
        ...
