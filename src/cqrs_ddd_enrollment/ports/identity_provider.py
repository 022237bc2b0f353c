"""
Identity Provider Port.

Defines the interface the orchestrator consumes from the
passwordless + password identity provider (GoTrue/Supabase,
or an in-memory double for tests).

Every method returns a tagged ProviderResult instead of raising,
so callers can classify failures without exception-driven control
flow. Adapters may still raise on programming errors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Optional, runtime_checkable

from cqrs_ddd_enrollment.domain.value_objects import CodeTypeTag, VerifiedSession


class ProviderErrorKind(str, Enum):
    """Error kinds an identity provider can report."""

    RATE_LIMITED = "rate_limited"
    DISABLED = "disabled"
    EXPIRED = "expired"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    OTHER = "other"


class AccountStatus(str, Enum):
    """Result of a password account creation request."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass
class ProviderResult:
    """Tagged result of an identity provider call."""

    session: Optional[VerifiedSession] = None
    error: Optional[ProviderErrorKind] = None
    account_status: Optional[AccountStatus] = None
    message: str = ""

    @classmethod
    def ok(
        cls,
        session: Optional[VerifiedSession] = None,
        account_status: Optional[AccountStatus] = None,
    ) -> "ProviderResult":
        return cls(session=session, account_status=account_status)

    @classmethod
    def failed(cls, error: ProviderErrorKind, message: str = "") -> "ProviderResult":
        return cls(error=error, message=message)

    @property
    def is_ok(self) -> bool:
        return self.error is None


@runtime_checkable
class IdentityProviderPort(Protocol):
    """
    Port for the identity provider that issues codes/links and
    stores sessions.
    """

    async def send_code_or_link(
        self, email: str, redirect_target: Optional[str] = None
    ) -> ProviderResult:
        """
        Send a one-time code (and clickable link) to the email.

        Returns:
            ok, or failed with RATE_LIMITED, DISABLED or OTHER
        """
        ...

    async def verify_code(
        self, email: str, code: str, type_tag: CodeTypeTag
    ) -> ProviderResult:
        """
        Exchange a code issued under type_tag for a session.

        Returns:
            ok with session, or failed with EXPIRED, INVALID,
            NOT_FOUND, RATE_LIMITED or OTHER
        """
        ...

    async def sign_in_password(self, email: str, password: str) -> ProviderResult:
        """Sign in with a password. Returns ok with session or failed."""
        ...

    async def create_account_password(
        self, email: str, password: str
    ) -> ProviderResult:
        """
        Create a password account.

        Returns:
            ok with account_status CREATED or ALREADY_EXISTS, or failed
        """
        ...

    async def get_session(self) -> Optional[VerifiedSession]:
        """Read path: the session currently held by the provider client."""
        ...
