"""
Profile Store Port.

Defines the interface to the relational store holding profile
records, enrollment history and role affiliation tables.
"""

from typing import Protocol, Optional, runtime_checkable

from cqrs_ddd_enrollment.domain.value_objects import ProfileRecord, RoleSource


@runtime_checkable
class ProfileStorePort(Protocol):
    """Read/upsert access to profiles plus existence lookups on role sources."""

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        """Get the stored profile, or None when the user has none yet."""
        ...

    async def upsert_profile(self, user_id: str, fields: dict[str, Optional[str]]) -> None:
        """
        Insert or update profile fields keyed by user id.

        Args:
            user_id: Owning user
            fields: Column name -> value; only these columns are written
        """
        ...

    async def count_prior_enrollments(self, user_id: str) -> int:
        """Number of enrollments the user completed before this run."""
        ...

    async def exists_in(self, role_source: RoleSource, user_id: str) -> bool:
        """True when at least one affiliation row exists for the user."""
        ...
