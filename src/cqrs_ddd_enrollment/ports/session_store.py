"""
Session Record and Continuation Store Ports.

SessionRecordStorePort is the cookie jar holding the published,
server-readable session record. ContinuationStorePort is the
browser-local storage holding continuation secrets for links.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Optional, runtime_checkable


@dataclass
class SessionRecord:
    """A stored session record (cookie equivalent)."""

    name: str
    value: str
    expires_at: Optional[datetime] = None
    path: str = "/"
    same_site: str = "Lax"


@runtime_checkable
class SessionRecordStorePort(Protocol):
    """Single-slot-per-name store; writes overwrite in place."""

    async def write(
        self, name: str, value: str, expires_at: Optional[datetime] = None
    ) -> None:
        ...

    async def read(self, name: str) -> Optional[SessionRecord]:
        ...

    async def delete(self, name: str) -> None:
        ...


@runtime_checkable
class ContinuationStorePort(Protocol):
    """Key/value store for continuation secrets of one browser context."""

    async def put(self, key: str, value: str) -> None:
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_namespace(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns count deleted."""
        ...
