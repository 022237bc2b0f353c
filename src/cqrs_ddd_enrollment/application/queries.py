"""
Enrollment queries.

Uses Query base class from py-cqrs-ddd-toolkit.
"""

from dataclasses import dataclass

from cqrs_ddd.core import Query


@dataclass(kw_only=True)
class GetWizardState(Query):
    """Get the current wizard state of a run."""

    run_id: str
