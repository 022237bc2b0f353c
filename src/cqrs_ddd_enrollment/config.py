"""
Configuration for the enrollment orchestrator.

Plain dataclasses handed to components at construction time.
"""

import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from cqrs_ddd_enrollment.domain.value_objects import (
    CODE_TYPE_TAG_ORDER,
    CodeTypeTag,
    RoleSource,
)


DEFAULT_ROLE_DESTINATIONS: tuple[tuple[RoleSource, str], ...] = (
    (RoleSource.PLATFORM_ADMIN, "/admin"),
    (RoleSource.DOOR_STAFF, "/door"),
    (RoleSource.VENUE_STAFF, "/app/venue"),
    (RoleSource.ORGANIZER_STAFF, "/app/organizer"),
    (RoleSource.PROMOTER, "/app/promoter"),
    (RoleSource.PERFORMER, "/app/dj"),
)

_PROJECT_REF_PATTERN = re.compile(r"^https://([^.]+)\.supabase")


@dataclass
class EnrollmentConfig:
    """Configuration for the broker, synchronizer, resolver and orchestrator."""

    # Backend project URL, used to derive the session record name
    project_url: str = ""

    # ═══════ VERIFICATION ═══════
    code_length: int = 8
    code_ttl_seconds: int = 60
    code_type_tags: tuple[CodeTypeTag, ...] = CODE_TYPE_TAG_ORDER
    call_timeout_seconds: float = 10.0
    callback_path: str = "/auth/callback"
    continuation_namespace: str = "enrollment:continuation:"

    # ═══════ PASSWORD ═══════
    password_min_length: int = 6
    password_sign_in_attempts: int = 5
    password_backoff_step_seconds: float = 1.0

    # ═══════ SESSION PUBLISH ═══════
    publish_confirm_delay_seconds: float = 1.0

    # ═══════ PROFILE ═══════
    signup_min_age: int = 13
    basic_profile_min_age: int = 18
    max_age: int = 120

    # ═══════ DESTINATIONS ═══════
    default_destination: str = "/me"
    privileged_prefixes: tuple[str, ...] = ("/app", "/admin", "/door")
    role_destinations: tuple[tuple[RoleSource, str], ...] = field(
        default=DEFAULT_ROLE_DESTINATIONS
    )

    @property
    def project_ref(self) -> str:
        """Project identifier taken from the backend URL's first host label."""
        match = _PROJECT_REF_PATTERN.match(self.project_url or "")
        if match:
            return match.group(1)
        host: Optional[str] = urlparse(self.project_url or "").hostname
        if host and host not in ("localhost", "127.0.0.1"):
            return host.split(".")[0]
        return "supabase"

    @property
    def session_record_name(self) -> str:
        return f"sb-{self.project_ref}-auth-token"
