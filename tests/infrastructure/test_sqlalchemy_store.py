"""
Tests for SQLAlchemyProfileStore with a mocked session factory.
"""

from contextlib import asynccontextmanager
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from cqrs_ddd_enrollment.adapters.sqlalchemy_store import (
    AttendeeModel,
    SQLAlchemyProfileStore,
)
from cqrs_ddd_enrollment.domain.errors import ProfileValidationError
from cqrs_ddd_enrollment.domain.value_objects import RoleSource


@pytest.fixture
def session_mock():
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.return_value = MagicMock()
    return session


@pytest.fixture
def store(session_mock):
    @asynccontextmanager
    async def session_factory():
        yield session_mock

    return SQLAlchemyProfileStore(session_factory)


@pytest.mark.asyncio
async def test_get_profile_miss(store, session_mock):
    session_mock.execute.return_value.scalar_one_or_none.return_value = None

    assert await store.get_profile("u1") is None
    session_mock.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_profile_converts_date(store, session_mock):
    model = AttendeeModel(
        id="a1",
        user_id="u1",
        name="Ada",
        surname="Lovelace",
        date_of_birth=date(1990, 5, 1),
    )
    session_mock.execute.return_value.scalar_one_or_none.return_value = model

    profile = await store.get_profile("u1")

    assert profile.name == "Ada"
    assert profile.date_of_birth == "1990-05-01"
    assert profile.whatsapp is None


@pytest.mark.asyncio
async def test_upsert_creates_attendee(store, session_mock):
    session_mock.execute.return_value.scalar_one_or_none.return_value = None

    await store.upsert_profile("u1", {"name": "Ada", "date_of_birth": "1990-05-01"})

    model = session_mock.add.call_args[0][0]
    assert isinstance(model, AttendeeModel)
    assert model.user_id == "u1"
    assert model.name == "Ada"
    assert model.date_of_birth == date(1990, 5, 1)
    assert model.created_at is not None
    assert model.updated_at is not None
    session_mock.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_upsert_updates_existing(store, session_mock):
    model = AttendeeModel(id="a1", user_id="u1", name="Ada")
    session_mock.execute.return_value.scalar_one_or_none.return_value = model

    await store.upsert_profile("u1", {"whatsapp": "+306941234567"})

    session_mock.add.assert_not_called()
    assert model.whatsapp == "+306941234567"
    assert model.name == "Ada"


@pytest.mark.asyncio
async def test_upsert_rejects_unknown_columns(store, session_mock):
    with pytest.raises(ProfileValidationError):
        await store.upsert_profile("u1", {"email": "a@x.com"})

    session_mock.execute.assert_not_called()


@pytest.mark.asyncio
async def test_failed_write_rolls_back(store, session_mock):
    session_mock.execute.side_effect = RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await store.upsert_profile("u1", {"name": "Ada"})

    session_mock.rollback.assert_awaited_once()
    session_mock.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_count_prior_enrollments(store, session_mock):
    session_mock.execute.return_value.scalar.return_value = 3

    assert await store.count_prior_enrollments("u1") == 3


@pytest.mark.asyncio
async def test_count_prior_enrollments_none(store, session_mock):
    session_mock.execute.return_value.scalar.return_value = None

    assert await store.count_prior_enrollments("u1") == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("source", list(RoleSource))
async def test_exists_in(store, session_mock, source):
    session_mock.execute.return_value.first.return_value = ("u1",)

    assert await store.exists_in(source, "u1")

    stmt = session_mock.execute.call_args[0][0]
    assert "LIMIT" in str(stmt).upper()


@pytest.mark.asyncio
async def test_exists_in_miss(store, session_mock):
    session_mock.execute.return_value.first.return_value = None

    assert not await store.exists_in(RoleSource.PROMOTER, "u1")


@pytest.mark.asyncio
async def test_platform_roles_filter_by_role_name(store, session_mock):
    session_mock.execute.return_value.first.return_value = None

    await store.exists_in(RoleSource.PLATFORM_ADMIN, "u1")

    stmt = session_mock.execute.call_args[0][0]
    compiled = stmt.compile(compile_kwargs={"literal_binds": True})
    assert "superadmin" in str(compiled)
    assert "user_roles" in str(compiled)
