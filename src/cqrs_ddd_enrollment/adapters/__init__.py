"""
Adapters for the enrollment ports.

The in-memory adapters have no extra requirements. GoTrue needs
httpx and the profile store needs sqlalchemy[asyncio]; import them
from their modules.
"""

from cqrs_ddd_enrollment.adapters.memory import (
    InMemoryIdentityProvider,
    InMemoryProfileStore,
    InMemorySessionRecordStore,
    InMemoryContinuationStore,
    InMemoryEnrollmentRunRepository,
)

__all__ = [
    "InMemoryIdentityProvider",
    "InMemoryProfileStore",
    "InMemorySessionRecordStore",
    "InMemoryContinuationStore",
    "InMemoryEnrollmentRunRepository",
]
