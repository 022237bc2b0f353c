"""
Cookie-backed session record store for FastAPI.

The published session record is a browser cookie: readable by
server-rendered requests, written with path=/ and SameSite=Lax and
an expiry mirroring the session's.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import Request, Response

from cqrs_ddd_enrollment.ports.session_store import SessionRecord, SessionRecordStorePort

logger = logging.getLogger("cqrs_ddd_enrollment.contrib.fastapi.session_store")


class CookieSessionRecordStore(SessionRecordStorePort):
    """
    Request-scoped SessionRecordStorePort.

    Reads come from the incoming request's cookies (or a value written
    earlier in the same request); writes and deletes go to the outgoing
    response.

    Usage:
        @app.post("/enroll/code")
        async def submit_code(request: Request, response: Response):
            store = CookieSessionRecordStore(request, response)
            context = EnrollmentContext(..., record_store=store)
    """

    def __init__(
        self,
        request: Request,
        response: Response,
        secure: bool = False,
        httponly: bool = False,
    ):
        self.request = request
        self.response = response
        self.secure = secure
        self.httponly = httponly
        self._written: dict[str, Optional[SessionRecord]] = {}

    async def write(
        self, name: str, value: str, expires_at: Optional[datetime] = None
    ) -> None:
        self.response.set_cookie(
            key=name,
            value=value,
            expires=expires_at,
            path="/",
            samesite="lax",
            secure=self.secure,
            httponly=self.httponly,
        )
        self._written[name] = SessionRecord(name=name, value=value, expires_at=expires_at)
        logger.debug(f"Set session cookie {name}")

    async def read(self, name: str) -> Optional[SessionRecord]:
        if name in self._written:
            return self._written[name]
        value = self.request.cookies.get(name)
        return SessionRecord(name=name, value=value) if value else None

    async def delete(self, name: str) -> None:
        self.response.delete_cookie(key=name, path="/", samesite="lax")
        self._written[name] = None
        logger.debug(f"Deleted session cookie {name}")
