"""
Credential broker.

Issues one-time codes and links and turns every verification
attempt into a classified VerificationOutcome. Backend failures
never escape as exceptions: they are logged with strategy and tag
and come back as tagged outcomes the orchestrator can route.
"""

import asyncio
import logging
import re
import secrets
from typing import Awaitable, Optional, Union

from cqrs_ddd_enrollment.application.synchronizer import SessionSynchronizer
from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.value_objects import (
    CodeTypeTag,
    FailureReason,
    IdentityClaim,
    OutcomeStatus,
    VerificationOutcome,
    VerificationStrategy,
)
from cqrs_ddd_enrollment.ports.identity_provider import (
    AccountStatus,
    ProviderErrorKind,
    ProviderResult,
)

logger = logging.getLogger("cqrs_ddd_enrollment.application.broker")

CONTINUATION_SECRET_KEY = "code-verifier"

# Provider errors that end the tag loop early
_TAG_SHORT_CIRCUIT: dict[ProviderErrorKind, FailureReason] = {
    ProviderErrorKind.NOT_FOUND: FailureReason.NOT_FOUND,
    ProviderErrorKind.RATE_LIMITED: FailureReason.RATE_LIMITED,
}

_SEND_ERRORS: dict[ProviderErrorKind, FailureReason] = {
    ProviderErrorKind.RATE_LIMITED: FailureReason.RATE_LIMITED,
    ProviderErrorKind.DISABLED: FailureReason.SIGNUPS_DISABLED,
}

_LINK_ERRORS: dict[ProviderErrorKind, FailureReason] = {
    ProviderErrorKind.EXPIRED: FailureReason.LINK_CONSUMED,
    ProviderErrorKind.INVALID: FailureReason.LINK_CONSUMED,
    ProviderErrorKind.RATE_LIMITED: FailureReason.RATE_LIMITED,
    ProviderErrorKind.NOT_FOUND: FailureReason.NOT_FOUND,
}


class CredentialBroker:
    """
    Dispatches verification attempts across code, link and password.

    At most one attempt per claim is in flight; a second submit while
    the first is pending is rejected with attempt_in_progress.

    Usage:
        broker = CredentialBroker(context)
        await broker.send(claim, redirect_target="/app/venue")
        outcome = await broker.attempt(claim, VerificationStrategy.CODE, "12345678")
        if outcome.is_success:
            session = outcome.session
    """

    def __init__(
        self,
        context: EnrollmentContext,
        synchronizer: Optional[SessionSynchronizer] = None,
    ):
        self.context = context
        self.config = context.config
        self.provider = context.identity_provider
        self.synchronizer = synchronizer or SessionSynchronizer(context)
        self._issued_at: dict[str, float] = {}
        self._pending: set[str] = set()

    # ═══════════════════════════════════════════════════════════════
    # CONTINUATION SECRETS
    # ═══════════════════════════════════════════════════════════════

    def continuation_prefix(self, claim: IdentityClaim) -> str:
        return f"{self.config.continuation_namespace}{claim.email}:"

    def continuation_key(self, claim: IdentityClaim) -> str:
        return f"{self.continuation_prefix(claim)}{CONTINUATION_SECRET_KEY}"

    async def reset(self, claim: IdentityClaim) -> int:
        """Drop continuation secrets and issuance bookkeeping for a claim."""
        self._issued_at.pop(claim.email, None)
        return await self.context.continuation_store.delete_namespace(
            self.continuation_prefix(claim)
        )

    def issued_at(self, claim: IdentityClaim) -> Optional[float]:
        return self._issued_at.get(claim.email)

    # ═══════════════════════════════════════════════════════════════
    # SEND
    # ═══════════════════════════════════════════════════════════════

    async def send(
        self, claim: IdentityClaim, redirect_target: Optional[str] = None
    ) -> VerificationOutcome:
        """
        Send a fresh code and link for the claim.

        Every continuation secret in the namespace, whichever identity left
        it, and any published session record are cleared first, so only
        the link for this claim can complete in this context.

        Returns:
            A PENDING outcome on success, otherwise a classified failure
        """
        self._issued_at.pop(claim.email, None)
        removed = await self.context.continuation_store.delete_namespace(
            self.config.continuation_namespace
        )
        if removed:
            logger.debug(
                f"Cleared {removed} stale continuation secret(s) before sending to {claim.email}"
            )
        await self.synchronizer.clear()

        await self.context.continuation_store.put(
            self.continuation_key(claim), secrets.token_urlsafe(32)
        )

        result = await self._call(
            self.provider.send_code_or_link(claim.email, redirect_target),
            VerificationStrategy.LINK,
        )
        if isinstance(result, FailureReason):
            return VerificationOutcome.failure(VerificationStrategy.LINK, result)

        if not result.is_ok:
            reason = _SEND_ERRORS.get(result.error, FailureReason.SEND_FAILED)
            logger.warning(
                f"Send to {claim.email} failed: {result.error.value} ({result.message})"
            )
            return VerificationOutcome.failure(VerificationStrategy.LINK, reason)

        self._issued_at[claim.email] = self.context.clock()
        logger.info(f"Sent code and link to {claim.email}")
        return VerificationOutcome(
            strategy=VerificationStrategy.LINK, status=OutcomeStatus.PENDING
        )

    # ═══════════════════════════════════════════════════════════════
    # ATTEMPT
    # ═══════════════════════════════════════════════════════════════

    async def attempt(
        self,
        claim: IdentityClaim,
        strategy: VerificationStrategy,
        secret: str,
        confirmation: Optional[str] = None,
        create_account: bool = False,
        issued_at: Optional[float] = None,
    ) -> VerificationOutcome:
        """
        Run one verification attempt and classify its result.

        issued_at is the epoch time the code was sent, as recorded by the
        caller. Without it the code age is only known to the broker that
        sent it.
        """
        if claim.email in self._pending:
            logger.info(f"Rejected concurrent {strategy.value} attempt for {claim.email}")
            return VerificationOutcome.failure(strategy, FailureReason.ATTEMPT_IN_PROGRESS)

        self._pending.add(claim.email)
        try:
            if strategy == VerificationStrategy.CODE:
                return await self._attempt_code(claim, secret, issued_at)
            if strategy == VerificationStrategy.LINK:
                return await self._attempt_link(claim, secret)
            return await self._attempt_password(
                claim, secret, confirmation, create_account
            )
        finally:
            self._pending.discard(claim.email)

    def is_pending(self, claim: IdentityClaim) -> bool:
        return claim.email in self._pending

    async def _attempt_code(
        self, claim: IdentityClaim, secret: str, issued_at: Optional[float] = None
    ) -> VerificationOutcome:
        strategy = VerificationStrategy.CODE
        code = re.sub(r"\D", "", secret or "")[: self.config.code_length]
        if len(code) != self.config.code_length:
            logger.debug(f"Rejected {len(code)}-digit code for {claim.email} locally")
            return VerificationOutcome.failure(strategy, FailureReason.INVALID)

        if issued_at is None:
            issued_at = self._issued_at.get(claim.email)
        if issued_at is not None:
            age = self.context.clock() - issued_at
            if age > self.config.code_ttl_seconds:
                logger.info(f"Code for {claim.email} submitted {age:.0f}s after issuance")
                return VerificationOutcome.failure(strategy, FailureReason.EXPIRED)

        saw_expired = False
        transport_failure: Optional[FailureReason] = None
        for tag in self.config.code_type_tags:
            result = await self._call(
                self.provider.verify_code(claim.email, code, tag), strategy, tag
            )
            if isinstance(result, FailureReason):
                transport_failure = result
                continue

            if result.is_ok and result.session:
                self._issued_at.pop(claim.email, None)
                logger.info(f"Verified {claim.email} with code (tag {tag.value})")
                return VerificationOutcome.success(strategy, result.session, tag)

            logger.warning(
                f"Code verification for {claim.email} failed with tag {tag.value}: "
                f"{result.error.value if result.error else 'no session'}"
            )
            if result.error in _TAG_SHORT_CIRCUIT:
                return VerificationOutcome.failure(
                    strategy, _TAG_SHORT_CIRCUIT[result.error], tag
                )
            if result.error == ProviderErrorKind.EXPIRED:
                saw_expired = True

        if saw_expired:
            return VerificationOutcome.failure(strategy, FailureReason.EXPIRED)
        if transport_failure is not None:
            return VerificationOutcome.failure(strategy, transport_failure)
        return VerificationOutcome.failure(strategy, FailureReason.INVALID)

    async def _attempt_link(self, claim: IdentityClaim, secret: str) -> VerificationOutcome:
        strategy = VerificationStrategy.LINK
        key = self.continuation_key(claim)
        if await self.context.continuation_store.get(key) is None:
            logger.warning(f"Link for {claim.email} opened without a continuation secret")
            return VerificationOutcome.failure(strategy, FailureReason.CROSS_CONTEXT_LINK)

        tag = CodeTypeTag.MAGICLINK
        result = await self._call(
            self.provider.verify_code(claim.email, secret, tag), strategy, tag
        )
        if isinstance(result, FailureReason):
            return VerificationOutcome.failure(strategy, result, tag)

        if not result.is_ok or not result.session:
            reason = _LINK_ERRORS.get(result.error, FailureReason.BACKEND_ERROR)
            logger.warning(
                f"Link verification for {claim.email} failed: "
                f"{result.error.value if result.error else 'no session'}"
            )
            return VerificationOutcome.failure(strategy, reason, tag)

        await self.context.continuation_store.delete(key)
        self._issued_at.pop(claim.email, None)
        logger.info(f"Verified {claim.email} with link")
        return VerificationOutcome.success(strategy, result.session, tag)

    async def _attempt_password(
        self,
        claim: IdentityClaim,
        password: str,
        confirmation: Optional[str],
        create_account: bool,
    ) -> VerificationOutcome:
        strategy = VerificationStrategy.PASSWORD
        password = password or ""

        if create_account:
            if len(password) < self.config.password_min_length:
                return VerificationOutcome.failure(strategy, FailureReason.WEAK_PASSWORD)
            if confirmation is not None and confirmation != password:
                return VerificationOutcome.failure(strategy, FailureReason.PASSWORD_MISMATCH)

            created = await self._call(
                self.provider.create_account_password(claim.email, password), strategy
            )
            if isinstance(created, FailureReason):
                return VerificationOutcome.failure(strategy, created)
            if not created.is_ok:
                logger.warning(
                    f"Password account creation for {claim.email} failed: "
                    f"{created.error.value} ({created.message})"
                )
                reason = (
                    FailureReason.RATE_LIMITED
                    if created.error == ProviderErrorKind.RATE_LIMITED
                    else FailureReason.BACKEND_ERROR
                )
                return VerificationOutcome.failure(strategy, reason)
            if created.account_status == AccountStatus.CREATED:
                return await self._sign_in_after_create(claim, password)
            logger.info(f"Account for {claim.email} already exists, signing in")

        result = await self._call(
            self.provider.sign_in_password(claim.email, password), strategy
        )
        if isinstance(result, FailureReason):
            return VerificationOutcome.failure(strategy, result)
        if result.is_ok and result.session:
            logger.info(f"Verified {claim.email} with password")
            return VerificationOutcome.success(strategy, result.session)

        logger.warning(
            f"Password sign-in for {claim.email} failed: "
            f"{result.error.value if result.error else 'no session'}"
        )
        if result.error == ProviderErrorKind.RATE_LIMITED:
            return VerificationOutcome.failure(strategy, FailureReason.RATE_LIMITED)
        return VerificationOutcome.failure(strategy, FailureReason.WRONG_PASSWORD)

    async def _sign_in_after_create(
        self, claim: IdentityClaim, password: str
    ) -> VerificationOutcome:
        """A new password may not be committed yet; retry with linear backoff."""
        strategy = VerificationStrategy.PASSWORD
        attempts = self.config.password_sign_in_attempts

        for attempt in range(1, attempts + 1):
            result = await self._call(
                self.provider.sign_in_password(claim.email, password), strategy
            )
            if isinstance(result, ProviderResult) and result.is_ok and result.session:
                logger.info(f"Verified new account {claim.email} on sign-in attempt {attempt}")
                return VerificationOutcome.success(strategy, result.session)

            logger.info(f"Sign-in attempt {attempt}/{attempts} for new account {claim.email} failed")
            if attempt < attempts:
                await self.context.sleep(self.config.password_backoff_step_seconds * attempt)

        logger.error(f"Password for {claim.email} was not committed after {attempts} attempts")
        return VerificationOutcome.failure(strategy, FailureReason.PASSWORD_NOT_COMMITTED)

    # ═══════════════════════════════════════════════════════════════
    # BACKEND CALLS
    # ═══════════════════════════════════════════════════════════════

    async def _call(
        self,
        call: Awaitable[ProviderResult],
        strategy: VerificationStrategy,
        tag: Optional[CodeTypeTag] = None,
    ) -> Union[ProviderResult, FailureReason]:
        """Await a provider call under the configured timeout."""
        context = f"strategy={strategy.value}" + (f" tag={tag.value}" if tag else "")
        try:
            return await asyncio.wait_for(call, timeout=self.config.call_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Identity provider call timed out after "
                f"{self.config.call_timeout_seconds}s ({context})"
            )
            return FailureReason.TIMEOUT
        except Exception as e:
            logger.exception(f"Identity provider call failed ({context}): {e}")
            return FailureReason.BACKEND_ERROR
