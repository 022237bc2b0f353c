"""
Tests for RoleResolver destination priority and overrides.
"""

import pytest

from cqrs_ddd_enrollment.application.resolver import RoleResolver
from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.value_objects import RoleSource


@pytest.mark.asyncio
async def test_no_roles_goes_to_default(resolver):
    destination = await resolver.resolve("user-1")

    assert destination.path == "/me"
    assert destination.source is None
    assert not destination.is_staff_bound


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source, path",
    [
        (RoleSource.PLATFORM_ADMIN, "/admin"),
        (RoleSource.DOOR_STAFF, "/door"),
        (RoleSource.VENUE_STAFF, "/app/venue"),
        (RoleSource.ORGANIZER_STAFF, "/app/organizer"),
        (RoleSource.PROMOTER, "/app/promoter"),
        (RoleSource.PERFORMER, "/app/dj"),
    ],
)
async def test_single_role_destination(resolver, profile_store, source, path):
    profile_store.add_role(source, "user-1")

    destination = await resolver.resolve("user-1")

    assert destination.path == path
    assert destination.source == source.value
    assert destination.is_staff_bound


@pytest.mark.asyncio
async def test_venue_staff_outranks_promoter(resolver, profile_store):
    profile_store.add_role(RoleSource.PROMOTER, "user-1")
    profile_store.add_role(RoleSource.VENUE_STAFF, "user-1")

    destination = await resolver.resolve("user-1")

    assert destination.path == "/app/venue"


@pytest.mark.asyncio
async def test_admin_outranks_everything(resolver, profile_store):
    for source in RoleSource:
        profile_store.add_role(source, "user-1")

    assert (await resolver.resolve("user-1")).path == "/admin"


@pytest.mark.asyncio
async def test_resolution_is_stable(resolver, profile_store):
    profile_store.add_role(RoleSource.PERFORMER, "user-1")
    profile_store.add_role(RoleSource.ORGANIZER_STAFF, "user-1")

    first = await resolver.resolve("user-1")
    second = await resolver.resolve("user-1")

    assert first == second
    assert first.path == "/app/organizer"


@pytest.mark.asyncio
async def test_privileged_override_wins(resolver, profile_store):
    profile_store.add_role(RoleSource.PLATFORM_ADMIN, "user-1")

    destination = await resolver.resolve("user-1", override="/app/venue/42")

    assert destination.path == "/app/venue/42"
    assert destination.source == "override"
    assert destination.is_staff_bound


@pytest.mark.asyncio
async def test_full_url_override_keeps_path_and_query(resolver):
    destination = await resolver.resolve(
        "user-1", override="https://example.com/app/organizer?event=7"
    )

    assert destination.path == "/app/organizer?event=7"


@pytest.mark.parametrize(
    "override",
    [None, "", "/me/tickets", "/apple", "app/venue", "https://example.com/events"],
)
def test_non_privileged_overrides_are_not_honored(resolver, override):
    assert resolver.honored_override(override) is None


@pytest.mark.parametrize("override", ["/app", "/admin", "/door/scan", "/app?tab=1"])
def test_privileged_overrides_are_honored(resolver, override):
    assert resolver.honored_override(override) == override


@pytest.mark.asyncio
async def test_non_privileged_override_falls_back_to_roles(resolver, profile_store):
    profile_store.add_role(RoleSource.PROMOTER, "user-1")

    destination = await resolver.resolve("user-1", override="/me/tickets")

    assert destination.path == "/app/promoter"


@pytest.mark.asyncio
async def test_failed_lookup_is_skipped(mock_provider, mock_profile_store, record_store, continuation_store, config):
    async def exists_in(source, user_id):
        if source == RoleSource.PLATFORM_ADMIN:
            raise RuntimeError("table missing")
        return source == RoleSource.VENUE_STAFF

    mock_profile_store.exists_in.side_effect = exists_in
    resolver = RoleResolver(
        EnrollmentContext(
            identity_provider=mock_provider,
            profile_store=mock_profile_store,
            record_store=record_store,
            continuation_store=continuation_store,
            config=config,
        )
    )

    destination = await resolver.resolve("user-1")

    assert destination.path == "/app/venue"
    assert mock_profile_store.exists_in.await_count == 3
