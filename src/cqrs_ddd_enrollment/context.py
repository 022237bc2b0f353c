"""
Enrollment context.

Explicit collaborator bundle handed to the broker, the synchronizer,
the resolver and the orchestrator at construction time. The caller
owns its lifecycle; nothing here is module-level state.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from cqrs_ddd_enrollment.config import EnrollmentConfig
from cqrs_ddd_enrollment.ports.identity_provider import IdentityProviderPort
from cqrs_ddd_enrollment.ports.profile_store import ProfileStorePort
from cqrs_ddd_enrollment.ports.session_store import (
    ContinuationStorePort,
    SessionRecordStorePort,
)


@dataclass
class EnrollmentContext:
    """
    Collaborators for one browser context.

    sleep and clock are injectable so backoff and code expiry can be
    driven deterministically in tests.
    """

    identity_provider: IdentityProviderPort
    profile_store: ProfileStorePort
    record_store: SessionRecordStorePort
    continuation_store: ContinuationStorePort
    config: EnrollmentConfig = field(default_factory=EnrollmentConfig)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    clock: Callable[[], float] = time.time
