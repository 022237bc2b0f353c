"""
Role resolver.

Maps a verified user to exactly one landing destination by checking
role sources in a fixed priority order.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.value_objects import (
    OVERRIDE_SOURCE,
    Destination,
    RoleSource,
)

logger = logging.getLogger("cqrs_ddd_enrollment.application.resolver")


class RoleResolver:
    """
    First matching role source wins; no match means the attendee default.

    Lookups are sequential existence checks, so the result depends only
    on which sources match, never on the order rows come back in.

    Usage:
        resolver = RoleResolver(context)
        destination = await resolver.resolve(user_id, override="/app/venue/42")
    """

    def __init__(self, context: EnrollmentContext):
        self.context = context
        self.config = context.config
        self.store = context.profile_store

    def honored_override(self, override: Optional[str]) -> Optional[str]:
        """Path to use verbatim, or None when the override is not privileged."""
        if not override:
            return None
        path = override
        if "://" in override:
            parsed = urlparse(override)
            path = parsed.path or "/"
            if parsed.query:
                path = f"{path}?{parsed.query}"
        if not path.startswith("/"):
            return None
        for prefix in self.config.privileged_prefixes:
            if path == prefix or path.startswith(prefix + "/") or path.startswith(prefix + "?"):
                return path
        return None

    async def resolve(self, user_id: str, override: Optional[str] = None) -> Destination:
        path = self.honored_override(override)
        if path is not None:
            logger.debug(f"Honoring destination override {path} for {user_id}")
            return Destination(path=path, source=OVERRIDE_SOURCE)
        if override:
            logger.debug(f"Ignoring non-privileged destination override {override}")

        for source, destination in self.config.role_destinations:
            if await self._exists(source, user_id):
                logger.info(f"Resolved {user_id} to {destination} via {source.value}")
                return Destination(path=destination, source=source.value)

        return Destination(path=self.config.default_destination)

    async def _exists(self, source: RoleSource, user_id: str) -> bool:
        try:
            return bool(
                await asyncio.wait_for(
                    self.store.exists_in(source, user_id),
                    timeout=self.config.call_timeout_seconds,
                )
            )
        except asyncio.TimeoutError:
            logger.warning(f"Role lookup {source.value} timed out for {user_id}, skipping")
        except Exception as e:
            logger.warning(f"Role lookup {source.value} failed for {user_id}, skipping: {e}")
        return False
