"""
Enrollment commands.

Commands represent intentions to change an enrollment run. Each
command is handled by a corresponding handler.

Uses Command base class from py-cqrs-ddd-toolkit.
"""

from dataclasses import dataclass
from typing import Optional

from cqrs_ddd.core import Command


@dataclass(kw_only=True)
class StartEnrollment(Command):
    """
    Open a new enrollment run.

    redirect_target is honored at finalization only when it points
    into a privileged area (/app, /admin, /door).
    """

    redirect_target: Optional[str] = None


@dataclass(kw_only=True)
class SubmitIdentity(Command):
    """
    Submit the email to verify.

    strategy "code" (default) sends a code and link; "password" goes
    straight to password entry. Re-submitting while verifying resends.
    """

    run_id: str
    email: str
    strategy: str = "code"


@dataclass(kw_only=True)
class SubmitVerificationCode(Command):
    """Submit the emailed one-time code."""

    run_id: str
    code: str


@dataclass(kw_only=True)
class OpenVerificationLink(Command):
    """Complete verification from the emailed link."""

    run_id: str
    email: str
    token: str


@dataclass(kw_only=True)
class SubmitPassword(Command):
    """
    Verify with a password, optionally creating the account first.

    confirmation is checked only when create_account is set.
    """

    run_id: str
    password: str
    confirmation: Optional[str] = None
    create_account: bool = False


@dataclass(kw_only=True)
class SubmitProfileStep(Command):
    """Submit a value for the current profile step."""

    run_id: str
    value: Optional[str] = None


@dataclass(kw_only=True)
class SkipProfileStep(Command):
    """Skip the current step, where skipping is allowed."""

    run_id: str


@dataclass(kw_only=True)
class GoBackToStep(Command):
    """Return to an earlier step; index None means the previous one."""

    run_id: str
    index: Optional[int] = None


@dataclass(kw_only=True)
class SubmitBasicProfile(Command):
    """Complete the basic profile held by the final gate."""

    run_id: str
    values: Optional[dict] = None


@dataclass(kw_only=True)
class RetryFinalization(Command):
    """Retry publish and resolve without verifying again."""

    run_id: str


@dataclass(kw_only=True)
class RestartEnrollment(Command):
    """Return the run to awaiting_identity."""

    run_id: str
