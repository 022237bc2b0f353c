"""
FastAPI integration for cqrs_ddd_enrollment.

Provides the cookie-backed session record store, dependencies that
read the published session, and exception handlers.
"""

from .session_store import CookieSessionRecordStore
from .dependencies import (
    get_enrollment_config,
    get_cookie_record_store,
    get_published_session,
    require_published_session,
)
from .exception_handlers import register_exception_handlers

__all__ = [
    "CookieSessionRecordStore",
    "get_enrollment_config",
    "get_cookie_record_store",
    "get_published_session",
    "require_published_session",
    "register_exception_handlers",
]
