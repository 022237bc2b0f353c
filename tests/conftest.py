"""
Pytest configuration for py-cqrs-ddd-enrollment tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from cqrs_ddd_enrollment.adapters.memory import (
    InMemoryContinuationStore,
    InMemoryEnrollmentRunRepository,
    InMemoryIdentityProvider,
    InMemoryProfileStore,
    InMemorySessionRecordStore,
)
from cqrs_ddd_enrollment.application.broker import CredentialBroker
from cqrs_ddd_enrollment.application.orchestrator import RegistrationOrchestrator
from cqrs_ddd_enrollment.application.resolver import RoleResolver
from cqrs_ddd_enrollment.application.synchronizer import SessionSynchronizer
from cqrs_ddd_enrollment.config import EnrollmentConfig
from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.value_objects import VerifiedSession
from cqrs_ddd_enrollment.ports.identity_provider import IdentityProviderPort
from cqrs_ddd_enrollment.ports.profile_store import ProfileStorePort

# 2023-11-14T22:13:20Z
START_TIME = 1_700_000_000.0


class FakeClock:
    """Deterministic epoch clock."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)


# -----------------------------------------------------------------------------
# CLOCK & CONFIG
# -----------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def config():
    return EnrollmentConfig(project_url="https://abcd.supabase.co")


# -----------------------------------------------------------------------------
# IN-MEMORY ADAPTERS
# -----------------------------------------------------------------------------


@pytest.fixture
def provider(clock):
    return InMemoryIdentityProvider(clock=clock)


@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def record_store():
    return InMemorySessionRecordStore()


@pytest.fixture
def continuation_store():
    return InMemoryContinuationStore()


@pytest.fixture
def run_repository():
    return InMemoryEnrollmentRunRepository()


@pytest.fixture
def context(provider, profile_store, record_store, continuation_store, config, clock, fake_sleep):
    return EnrollmentContext(
        identity_provider=provider,
        profile_store=profile_store,
        record_store=record_store,
        continuation_store=continuation_store,
        config=config,
        sleep=fake_sleep,
        clock=clock,
    )


@pytest.fixture
def synchronizer(context):
    return SessionSynchronizer(context)


@pytest.fixture
def broker(context, synchronizer):
    return CredentialBroker(context, synchronizer)


@pytest.fixture
def resolver(context):
    return RoleResolver(context)


@pytest.fixture
def orchestrator(context):
    return RegistrationOrchestrator(context)


# -----------------------------------------------------------------------------
# MOCKS
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_provider():
    mock = MagicMock(spec=IdentityProviderPort)
    mock.send_code_or_link = AsyncMock()
    mock.verify_code = AsyncMock()
    mock.sign_in_password = AsyncMock()
    mock.create_account_password = AsyncMock()
    mock.get_session = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_profile_store():
    mock = MagicMock(spec=ProfileStorePort)
    mock.get_profile = AsyncMock(return_value=None)
    mock.upsert_profile = AsyncMock()
    mock.count_prior_enrollments = AsyncMock(return_value=0)
    mock.exists_in = AsyncMock(return_value=False)
    return mock


@pytest.fixture
def verified_session():
    return VerifiedSession(
        access_token="access-1",
        refresh_token="refresh-1",
        user_id="user-1",
        email="a@x.com",
        expires_at=int(START_TIME) + 3600,
        user={"id": "user-1", "email": "a@x.com"},
    )
