"""
SQLAlchemy Profile Store.

Async SQLAlchemy backend for ProfileStorePort over the attendee,
registration and role affiliation tables.

Requirements:
- sqlalchemy[asyncio]
- asyncpg (or another async driver)

Usage:
    from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

    engine = create_async_engine("postgresql+asyncpg://...")
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    store = SQLAlchemyProfileStore(session_factory)
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import declarative_base

from cqrs_ddd_enrollment.domain.errors import ProfileValidationError
from cqrs_ddd_enrollment.domain.value_objects import FieldId, ProfileRecord, RoleSource
from cqrs_ddd_enrollment.ports.profile_store import ProfileStorePort


logger = logging.getLogger("cqrs_ddd_enrollment.adapters.sqlalchemy_store")

Base = declarative_base()

# Type for async session factory
AsyncSessionFactory = Callable[[], AsyncSession]


# ═══════════════════════════════════════════════════════════════
# SQLALCHEMY MODELS
# ═══════════════════════════════════════════════════════════════


class AttendeeModel(Base):
    """Profile record, one row per user."""

    __tablename__ = "attendees"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    name = Column(Text, nullable=True)
    surname = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    whatsapp = Column(String(20), nullable=True)
    instagram_handle = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class RegistrationModel(Base):
    """One completed enrollment of an attendee."""

    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True)
    attendee_id = Column(String(36), ForeignKey("attendees.id"), nullable=False, index=True)
    event_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class UserRoleModel(Base):
    """Platform-wide roles (superadmin, door_staff, ...)."""

    __tablename__ = "user_roles"

    user_id = Column(String(36), primary_key=True)
    role = Column(String(50), primary_key=True)


class VenueUserModel(Base):
    __tablename__ = "venue_users"

    venue_id = Column(String(36), primary_key=True)
    user_id = Column(String(36), primary_key=True, index=True)


class OrganizerUserModel(Base):
    __tablename__ = "organizer_users"

    organizer_id = Column(String(36), primary_key=True)
    user_id = Column(String(36), primary_key=True, index=True)


class PromoterModel(Base):
    __tablename__ = "promoters"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=True, index=True)


class DJModel(Base):
    __tablename__ = "djs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=True, index=True)


# Affiliation tables keyed by user_id
AFFILIATION_MODELS = {
    RoleSource.VENUE_STAFF: VenueUserModel,
    RoleSource.ORGANIZER_STAFF: OrganizerUserModel,
    RoleSource.PROMOTER: PromoterModel,
    RoleSource.PERFORMER: DJModel,
}

# Role sources backed by user_roles.role
PLATFORM_ROLES = {
    RoleSource.PLATFORM_ADMIN: "superadmin",
    RoleSource.DOOR_STAFF: "door_staff",
}


# ═══════════════════════════════════════════════════════════════
# SQLALCHEMY PROFILE STORE
# ═══════════════════════════════════════════════════════════════


class SQLAlchemyProfileStore(ProfileStorePort):
    """
    SQLAlchemy implementation of ProfileStorePort.

    Role lookups are existence checks only; how many rows a user
    has in a table never matters.
    """

    def __init__(
        self,
        session_factory: AsyncSessionFactory,
        attendee_model: type = AttendeeModel,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Async session factory from async_sessionmaker
            attendee_model: SQLAlchemy model class for profiles
        """
        self.session_factory = session_factory
        self.attendee_model = attendee_model

    @asynccontextmanager
    async def _session_scope(self):
        """Provide a transactional scope for database operations."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _to_record(self, model: AttendeeModel) -> ProfileRecord:
        data = {f.value: getattr(model, f.value) for f in FieldId}
        if isinstance(data[FieldId.DATE_OF_BIRTH.value], date):
            data[FieldId.DATE_OF_BIRTH.value] = data[FieldId.DATE_OF_BIRTH.value].isoformat()
        return ProfileRecord.from_dict(data)

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        async with self._session_scope() as session:
            stmt = select(self.attendee_model).where(
                self.attendee_model.user_id == user_id
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return self._to_record(model) if model else None

    async def upsert_profile(self, user_id: str, fields: dict[str, Optional[str]]) -> None:
        columns = {f.value for f in FieldId}
        unknown = set(fields) - columns
        if unknown:
            raise ProfileValidationError(
                f"Unknown profile fields: {sorted(unknown)}",
                details={"user_id": user_id},
            )

        now = datetime.now(timezone.utc)
        async with self._session_scope() as session:
            stmt = select(self.attendee_model).where(
                self.attendee_model.user_id == user_id
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                model = self.attendee_model(
                    id=str(uuid.uuid4()), user_id=user_id, created_at=now
                )
                session.add(model)

            for column, value in fields.items():
                if column == FieldId.DATE_OF_BIRTH.value and value:
                    value = date.fromisoformat(value)
                setattr(model, column, value)
            model.updated_at = now

        logger.debug(f"Upserted attendee profile for {user_id}: {sorted(fields)}")

    async def count_prior_enrollments(self, user_id: str) -> int:
        async with self._session_scope() as session:
            stmt = (
                select(func.count(RegistrationModel.id))
                .join(self.attendee_model, RegistrationModel.attendee_id == self.attendee_model.id)
                .where(self.attendee_model.user_id == user_id)
            )
            result = await session.execute(stmt)
            return int(result.scalar() or 0)

    async def exists_in(self, role_source: RoleSource, user_id: str) -> bool:
        if role_source in PLATFORM_ROLES:
            stmt = select(UserRoleModel.user_id).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role == PLATFORM_ROLES[role_source],
            )
        else:
            model = AFFILIATION_MODELS[role_source]
            stmt = select(model.user_id).where(model.user_id == user_id)

        async with self._session_scope() as session:
            result = await session.execute(stmt.limit(1))
            return result.first() is not None
