"""
Registration orchestrator.

Drives an EnrollmentRun through verification, progressive profile
collection and finalization. The orchestrator performs the backend
calls; the aggregate decides, through its transition table, where
each classified result leads.
"""

import logging
from datetime import date
from typing import Optional, List, Any
from urllib.parse import quote

from cqrs_ddd_enrollment.application.broker import CredentialBroker
from cqrs_ddd_enrollment.application.resolver import RoleResolver
from cqrs_ddd_enrollment.application.results import WizardState
from cqrs_ddd_enrollment.application.synchronizer import SessionSynchronizer
from cqrs_ddd_enrollment.context import EnrollmentContext
from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun, WizardStep
from cqrs_ddd_enrollment.domain.errors import (
    EnrollmentDomainError,
    InvalidTransitionError,
    SessionPublishError,
)
from cqrs_ddd_enrollment.domain.planning import ProgressiveStepPlanner
from cqrs_ddd_enrollment.domain.validation import (
    BASIC_PROFILE_FIELDS,
    GateResult,
    ProfileGate,
)
from cqrs_ddd_enrollment.domain.value_objects import (
    Destination,
    FailureReason,
    FieldId,
    IdentityClaim,
    VerificationOutcome,
    VerificationStrategy,
    VerifiedSession,
)

logger = logging.getLogger("cqrs_ddd_enrollment.application.orchestrator")


class RegistrationOrchestrator:
    """
    State machine driver for enrollment runs.

    Every public method mutates the given run and returns the domain
    events it raised. Persisting the run is the caller's job.

    Usage:
        orchestrator = RegistrationOrchestrator(context)
        run, events = orchestrator.start(redirect_target="/app/venue")
        await orchestrator.submit_email(run, "a@x.com")
        await orchestrator.submit_code(run, "12345678")
        await orchestrator.submit_step(run, "Ada")
        ...
        orchestrator.wizard_state(run).destination
    """

    def __init__(
        self,
        context: EnrollmentContext,
        broker: Optional[CredentialBroker] = None,
        synchronizer: Optional[SessionSynchronizer] = None,
        resolver: Optional[RoleResolver] = None,
        planner: Optional[ProgressiveStepPlanner] = None,
        gate: Optional[ProfileGate] = None,
    ):
        self.context = context
        self.config = context.config
        self.store = context.profile_store
        self.synchronizer = synchronizer or SessionSynchronizer(context)
        self.broker = broker or CredentialBroker(context, self.synchronizer)
        self.resolver = resolver or RoleResolver(context)
        self.planner = planner or ProgressiveStepPlanner()
        self.gate = gate or ProfileGate(
            min_age=self.config.signup_min_age,
            max_age=self.config.max_age,
            today=lambda: date.fromtimestamp(context.clock()),
        )

    # ═══════════════════════════════════════════════════════════════
    # IDENTITY
    # ═══════════════════════════════════════════════════════════════

    def start(self, redirect_target: Optional[str] = None) -> tuple[EnrollmentRun, List[Any]]:
        modification = EnrollmentRun.create(redirect_target=redirect_target)
        logger.debug(f"Started enrollment run {modification.run.id}")
        return modification.run, list(modification.events)

    def callback_target(self, run: EnrollmentRun) -> str:
        """Where the emailed link lands, carrying the run's redirect target."""
        if not run.redirect_target:
            return self.config.callback_path
        return f"{self.config.callback_path}?redirect={quote(run.redirect_target, safe='')}"

    async def submit_email(
        self,
        run: EnrollmentRun,
        email: str,
        strategy: VerificationStrategy = VerificationStrategy.CODE,
    ) -> List[Any]:
        """
        Submit (or re-submit, to resend) the identity claim.

        The code strategy sends a code and link; the password strategy
        goes straight to password entry without a send.
        """
        try:
            claim = IdentityClaim.from_input(email)
        except EnrollmentDomainError:
            return list(run.identity_rejected(FailureReason.INVALID_EMAIL).events)

        events: List[Any] = []
        if strategy == VerificationStrategy.PASSWORD:
            events.extend(run.identity_submitted(claim, VerificationStrategy.PASSWORD).events)
            events.extend(run.password_chosen().events)
            return events

        events.extend(run.identity_submitted(claim, strategy).events)
        outcome = await self.broker.send(claim, self.callback_target(run))
        if not outcome.is_success and outcome.reason is not None:
            events.extend(run.verification_failed(outcome).events)
            return events

        issued_at = self.broker.issued_at(claim)
        if issued_at is not None:
            run.code_issued(issued_at)
        return events

    async def resend(self, run: EnrollmentRun) -> List[Any]:
        run.require_state(WizardStep.VERIFYING_IDENTITY)
        return await self.submit_email(run, run.email, run.strategy)

    def choose_password(self, run: EnrollmentRun) -> List[Any]:
        return list(run.password_chosen().events)

    async def submit_code(self, run: EnrollmentRun, code: str) -> List[Any]:
        run.require_state(WizardStep.VERIFYING_IDENTITY)
        outcome = await self.broker.attempt(
            IdentityClaim(email=run.email),
            VerificationStrategy.CODE,
            code,
            issued_at=run.code_issued_at,
        )
        return await self._apply_outcome(run, outcome)

    async def open_link(self, run: EnrollmentRun, email: str, token: str) -> List[Any]:
        """
        Complete a link verification.

        A run that never sent anything (the link was opened in another
        browser) adopts the email so the password fallback keeps it.
        """
        events: List[Any] = []
        if run.state == WizardStep.AWAITING_IDENTITY:
            claim = IdentityClaim.from_input(email)
            events.extend(run.identity_submitted(claim, VerificationStrategy.LINK).events)
        run.require_state(WizardStep.VERIFYING_IDENTITY)

        outcome = await self.broker.attempt(
            IdentityClaim(email=run.email), VerificationStrategy.LINK, token
        )
        events.extend(await self._apply_outcome(run, outcome))
        return events

    async def submit_password(
        self,
        run: EnrollmentRun,
        password: str,
        confirmation: Optional[str] = None,
        create_account: bool = False,
    ) -> List[Any]:
        run.require_state(WizardStep.VERIFYING_IDENTITY, WizardStep.PASSWORD_FALLBACK)
        outcome = await self.broker.attempt(
            IdentityClaim(email=run.email),
            VerificationStrategy.PASSWORD,
            password,
            confirmation=confirmation,
            create_account=create_account,
        )
        return await self._apply_outcome(run, outcome)

    async def _apply_outcome(
        self, run: EnrollmentRun, outcome: VerificationOutcome
    ) -> List[Any]:
        if outcome.is_success and outcome.session:
            return await self._enter_collection(run, outcome.session, outcome.strategy)
        if outcome.is_fatal:
            logger.error(
                f"Run {run.id}: fatal {outcome.strategy.value} failure "
                f"{outcome.reason.value} for {run.email}"
            )
        return list(run.verification_failed(outcome).events)

    async def _enter_collection(
        self,
        run: EnrollmentRun,
        session: VerifiedSession,
        strategy: VerificationStrategy,
    ) -> List[Any]:
        try:
            count = await self.store.count_prior_enrollments(session.user_id)
            profile = await self.store.get_profile(session.user_id)
        except Exception as e:
            logger.error(
                f"Run {run.id}: enrollment history for {session.user_id} "
                f"not loaded after {strategy.value} verification: {e}"
            )
            outcome = VerificationOutcome.failure(
                strategy, FailureReason.PROFILE_UNAVAILABLE
            )
            return list(run.verification_failed(outcome).events)

        plan = self.planner.plan(count, profile)
        logger.info(
            f"Run {run.id}: {session.user_id} verified via {strategy.value}, "
            f"count={count}, steps={[s.value for s in plan.steps]}"
        )

        events = list(
            run.identity_verified(session, count, profile, plan, strategy=strategy).events
        )
        if plan.is_empty:
            events.extend(await self._complete_plan(run))
        return events

    # ═══════════════════════════════════════════════════════════════
    # STEP COLLECTION
    # ═══════════════════════════════════════════════════════════════

    async def submit_step(self, run: EnrollmentRun, value: Optional[str]) -> List[Any]:
        step = self._current_step(run)
        result = self.gate.validate(
            step,
            value,
            registration_count=run.registration_count,
            min_age=self.config.signup_min_age,
        )
        if not result.ok:
            logger.debug(f"Run {run.id}: step {step.value} rejected ({result.reason.value})")
        return await self._apply_step(run, result)

    async def skip_step(self, run: EnrollmentRun) -> List[Any]:
        """Skip the current step; only allowed where an empty value would be accepted."""
        step = self._current_step(run)
        if not run.plan.is_skippable(step):
            raise InvalidTransitionError(
                f"Step {step.value} cannot be skipped",
                details={"run_id": run.id, "step": step.value},
            )
        return await self._apply_step(run, GateResult(field_id=step, value=None))

    def go_back(self, run: EnrollmentRun, index: Optional[int] = None) -> List[Any]:
        return list(run.step_back(index).events)

    def _current_step(self, run: EnrollmentRun) -> FieldId:
        run.require_state(WizardStep.COLLECTING_STEPS)
        step = run.current_step
        if step is None:
            raise InvalidTransitionError(
                "No step is pending", details={"run_id": run.id}
            )
        return step

    async def _apply_step(self, run: EnrollmentRun, result: GateResult) -> List[Any]:
        events = list(run.step_submitted(result).events)
        if run.plan_exhausted:
            events.extend(await self._complete_plan(run))
        return events

    async def _complete_plan(self, run: EnrollmentRun) -> List[Any]:
        events = list(run.plan_completed().events)
        events.extend(await self.finalize(run))
        return events

    # ═══════════════════════════════════════════════════════════════
    # FINALIZATION
    # ═══════════════════════════════════════════════════════════════

    async def finalize(self, run: EnrollmentRun) -> List[Any]:
        """
        Store collected values once, publish the session, resolve the
        destination, then apply the basic-profile gate.

        Safe to call again after a failure: the profile write is not
        repeated and publishing overwrites in place.
        """
        run.require_state(WizardStep.FINALIZING)
        events: List[Any] = []
        user_id = run.user_id

        if not run.profile_committed:
            fields = run.collected_fields()
            if fields:
                try:
                    await self.store.upsert_profile(user_id, fields)
                except Exception as e:
                    logger.error(f"Run {run.id}: profile write for {user_id} failed: {e}")
                    events.extend(run.finalization_failed(FailureReason.SAVE_FAILED).events)
                    return events
            events.extend(run.profile_written().events)

        try:
            await self.synchronizer.publish(run.session)
        except SessionPublishError as e:
            logger.error(f"Run {run.id}: {e.message}")
            events.extend(run.finalization_failed(FailureReason.PUBLISH_FAILED).events)
            return events
        except Exception as e:
            logger.error(f"Run {run.id}: session publish for {user_id} failed: {e}")
            events.extend(run.finalization_failed(FailureReason.PUBLISH_FAILED).events)
            return events

        try:
            destination = await self.resolver.resolve(user_id, run.redirect_target)
        except Exception as e:
            logger.error(f"Run {run.id}: destination for {user_id} not resolved: {e}")
            events.extend(run.finalization_failed(FailureReason.RESOLVE_FAILED).events)
            return events

        missing = self._missing_basic_fields(run, destination)
        if missing:
            logger.info(
                f"Run {run.id}: basic profile incomplete for {user_id}, "
                f"missing {[f.value for f in missing]}"
            )
            events.extend(run.basic_profile_required(destination, missing).events)
            return events

        events.extend(run.finalized(destination).events)
        logger.info(f"Run {run.id}: {user_id} finalized to {destination.path}")
        return events

    async def retry_finalization(self, run: EnrollmentRun) -> List[Any]:
        return await self.finalize(run)

    def _missing_basic_fields(
        self, run: EnrollmentRun, destination: Destination
    ) -> List[FieldId]:
        if not run.is_returning or destination.is_staff_bound:
            return []
        return self.gate.missing_basic_fields(run.profile, exempt=run.skipped)

    async def submit_basic_profile(
        self, run: EnrollmentRun, values: dict[str, Optional[str]]
    ) -> List[Any]:
        """
        Complete the basic profile in one shot.

        Missing fields must be supplied; other basic fields may be
        supplied to correct them. Date of birth requires the higher
        basic-profile minimum age.
        """
        run.require_state(WizardStep.AWAITING_FINAL_GATE)

        submitted: dict[FieldId, Optional[str]] = {}
        for field_id in BASIC_PROFILE_FIELDS:
            if field_id in run.missing_basic_fields or values.get(field_id.value):
                submitted[field_id] = values.get(field_id.value)

        results = self.gate.validate_basic_profile(
            submitted, min_age=self.config.basic_profile_min_age
        )
        for field_id, result in results.items():
            if not result.ok:
                logger.debug(
                    f"Run {run.id}: basic profile {field_id.value} rejected "
                    f"({result.reason.value})"
                )
                return list(run.basic_profile_rejected(result.reason).events)

        cleaned = {field_id: result.value for field_id, result in results.items()}
        try:
            await self.store.upsert_profile(
                run.user_id, {f.value: v for f, v in cleaned.items()}
            )
        except Exception as e:
            logger.error(f"Run {run.id}: basic profile write for {run.user_id} failed: {e}")
            return list(run.basic_profile_rejected(FailureReason.SAVE_FAILED).events)

        events = list(run.basic_profile_completed(cleaned).events)
        logger.info(f"Run {run.id}: {run.user_id} finalized to {run.destination.path}")
        return events

    # ═══════════════════════════════════════════════════════════════
    # RESTART & STATE
    # ═══════════════════════════════════════════════════════════════

    async def restart(self, run: EnrollmentRun) -> List[Any]:
        """Return to awaiting_identity, dropping secrets and the published record."""
        email = run.email
        events = list(run.restart().events)
        if email:
            await self.broker.reset(IdentityClaim(email=email))
        await self.synchronizer.clear()
        return events

    def wizard_state(self, run: EnrollmentRun) -> WizardState:
        return WizardState.from_run(run)
