"""
FastAPI dependencies for the published session record.

Server-rendered requests read the session straight from the cookie
written at finalization, without running the orchestrator.
"""

import logging
import time
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status

from cqrs_ddd_enrollment.application.synchronizer import parse_session_record
from cqrs_ddd_enrollment.config import EnrollmentConfig
from cqrs_ddd_enrollment.contrib.fastapi.session_store import CookieSessionRecordStore
from cqrs_ddd_enrollment.domain.value_objects import VerifiedSession

logger = logging.getLogger("cqrs_ddd_enrollment.contrib.fastapi.dependencies")


def get_enrollment_config(request: Request) -> EnrollmentConfig:
    """Config from app.state.enrollment_config, or the defaults."""
    config = getattr(request.app.state, "enrollment_config", None)
    return config if config is not None else EnrollmentConfig()


def get_cookie_record_store(request: Request, response: Response) -> CookieSessionRecordStore:
    return CookieSessionRecordStore(request, response)


async def get_published_session(
    request: Request,
    config: EnrollmentConfig = Depends(get_enrollment_config),
) -> Optional[VerifiedSession]:
    """The unexpired published session, or None."""
    raw = request.cookies.get(config.session_record_name)
    session = parse_session_record(raw, time.time())
    if raw and session is None:
        logger.debug(f"Ignoring unusable session cookie {config.session_record_name}")
    return session


async def require_published_session(
    session: Optional[VerifiedSession] = Depends(get_published_session),
) -> VerifiedSession:
    """Dependency that requires a published session."""
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "UNAUTHORIZED", "message": "Authentication required"},
        )
    return session
