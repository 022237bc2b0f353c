"""
Session synchronizer.

Publishes a verified session as a single server-readable record,
confirms the provider can read it back, and decodes it again for
non-interactive requests.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Any
from urllib.parse import quote, unquote

from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.errors import SessionPublishError
from cqrs_ddd_enrollment.domain.value_objects import VerifiedSession
from cqrs_ddd_enrollment.ports.session_store import SessionRecord

logger = logging.getLogger("cqrs_ddd_enrollment.application.synchronizer")


def encode_session(session: VerifiedSession) -> str:
    """Canonical record value: sorted compact JSON, URL-encoded."""
    payload = json.dumps(
        session.to_payload(), sort_keys=True, separators=(",", ":")
    )
    return quote(payload, safe="")


def decode_session(raw: str) -> Optional[dict[str, Any]]:
    """Inverse of encode_session; None for anything unreadable."""
    try:
        data = json.loads(unquote(raw))
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def parse_session_record(raw: Optional[str], now: float) -> Optional[VerifiedSession]:
    """
    Decode a raw record value.

    Returns the session when it carries an access token and a user
    and has not expired at now (epoch seconds), otherwise None.
    Malformed records are treated as absent.
    """
    if not raw:
        return None
    data = decode_session(raw)
    if not data or not data.get("access_token") or not data.get("user"):
        return None

    try:
        session = VerifiedSession.from_payload(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Malformed session record: {e}")
        return None

    if session.expires_at is not None and session.expires_at <= now:
        logger.debug(f"Session record expired at {session.expires_at}")
        return None
    return session


class SessionSynchronizer:
    """
    Owns the published session record.

    Usage:
        sync = SessionSynchronizer(context)
        record = await sync.publish(session)    # raises SessionPublishError
        session = await sync.read()              # None when absent/expired
        await sync.clear()
    """

    def __init__(self, context: EnrollmentContext):
        self.context = context
        self.config = context.config

    @property
    def record_name(self) -> str:
        return self.config.session_record_name

    async def publish(self, session: VerifiedSession) -> SessionRecord:
        """
        Write the record, overwriting in place, then confirm it.

        Raises:
            SessionPublishError: provider still has no session after
                one delayed re-check
        """
        value = encode_session(session)
        expires_at = (
            datetime.fromtimestamp(session.expires_at, tz=timezone.utc)
            if session.expires_at is not None
            else None
        )
        await self.context.record_store.write(self.record_name, value, expires_at)
        logger.debug(f"Published session record {self.record_name} for {session.user_id}")

        if await self._confirmed():
            return SessionRecord(name=self.record_name, value=value, expires_at=expires_at)

        logger.info(
            f"Session for {session.user_id} not visible yet, re-checking in "
            f"{self.config.publish_confirm_delay_seconds}s"
        )
        await self.context.sleep(self.config.publish_confirm_delay_seconds)
        if await self._confirmed():
            return SessionRecord(name=self.record_name, value=value, expires_at=expires_at)

        logger.error(f"Session for {session.user_id} not accessible after publish")
        raise SessionPublishError(details={"user_id": session.user_id})

    async def _confirmed(self) -> bool:
        return await self.context.identity_provider.get_session() is not None

    def parse(self, raw: Optional[str], now: Optional[float] = None) -> Optional[VerifiedSession]:
        """Decode a raw record value against the context clock."""
        return parse_session_record(raw, self.context.clock() if now is None else now)

    async def read(self, now: Optional[float] = None) -> Optional[VerifiedSession]:
        """Read the published record back from the store."""
        record = await self.context.record_store.read(self.record_name)
        return self.parse(record.value if record else None, now)

    async def clear(self) -> None:
        await self.context.record_store.delete(self.record_name)
        logger.debug(f"Cleared session record {self.record_name}")
