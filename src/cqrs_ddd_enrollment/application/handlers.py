"""
Enrollment command and query handlers.

Handlers load the run, let the RegistrationOrchestrator drive it,
persist it, and report the resulting WizardState. Domain errors
(a command arriving in the wrong state, an unknown run) come back
as a failed WizardState with the run left unchanged.

Uses CommandHandler / QueryHandler base classes from py-cqrs-ddd-toolkit.
"""

import logging
from typing import Awaitable, Callable, List, Any

from cqrs_ddd.core import CommandHandler, CommandResponse, QueryHandler, QueryResponse

from cqrs_ddd_enrollment.application.commands import (
    StartEnrollment,
    SubmitIdentity,
    SubmitVerificationCode,
    OpenVerificationLink,
    SubmitPassword,
    SubmitProfileStep,
    SkipProfileStep,
    GoBackToStep,
    SubmitBasicProfile,
    RetryFinalization,
    RestartEnrollment,
)
from cqrs_ddd_enrollment.application.orchestrator import RegistrationOrchestrator
from cqrs_ddd_enrollment.application.queries import GetWizardState
from cqrs_ddd_enrollment.application.results import WizardState
from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun
from cqrs_ddd_enrollment.domain.errors import EnrollmentDomainError, RunNotFoundError
from cqrs_ddd_enrollment.domain.value_objects import VerificationStrategy
from cqrs_ddd_enrollment.ports.run_repository import EnrollmentRunRepository

logger = logging.getLogger("cqrs_ddd_enrollment.application.handlers")

RunAction = Callable[[EnrollmentRun], Awaitable[List[Any]]]


class EnrollmentRunHandler(CommandHandler[WizardState]):
    """Shared load / drive / save cycle for commands addressed to a run."""

    def __init__(
        self,
        orchestrator: RegistrationOrchestrator,
        repository: EnrollmentRunRepository,
    ):
        super().__init__()
        self.orchestrator = orchestrator
        self.repository = repository

    async def _drive(self, command, action: RunAction) -> CommandResponse[WizardState]:
        run = await self.repository.get(command.run_id)
        if run is None:
            error = RunNotFoundError(details={"run_id": command.run_id})
            return self._respond(command, WizardState.failed(error.message, error.code))

        try:
            events = await action(run)
        except EnrollmentDomainError as e:
            logger.info(f"{type(command).__name__} refused for run {run.id}: {e.message}")
            fresh = await self.repository.get(command.run_id)
            return self._respond(command, WizardState.failed(e.message, e.code, fresh))
        except Exception as e:
            logger.exception(f"{type(command).__name__} failed for run {run.id}: {e}")
            fresh = await self.repository.get(command.run_id)
            return self._respond(
                command,
                WizardState.failed("Something went wrong. Please try again.", run=fresh),
            )

        await self.repository.save(run)
        return self._respond(command, WizardState.from_run(run), events)

    def _respond(
        self, command, result: WizardState, events: List[Any] = None
    ) -> CommandResponse[WizardState]:
        return CommandResponse(
            result=result,
            events=events or [],
            correlation_id=command.correlation_id,
            causation_id=command.command_id,
        )


# ═══════════════════════════════════════════════════════════════
# IDENTITY
# ═══════════════════════════════════════════════════════════════


class StartEnrollmentHandler(EnrollmentRunHandler):
    """Handle StartEnrollment: open and store a fresh run."""

    async def handle(self, command: StartEnrollment) -> CommandResponse[WizardState]:
        run, events = self.orchestrator.start(command.redirect_target)
        await self.repository.save(run)
        return self._respond(command, WizardState.from_run(run), events)


class SubmitIdentityHandler(EnrollmentRunHandler):
    """
    Handle SubmitIdentity.

    Flow:
    1. Normalize the email (invalid input stays in awaiting_identity)
    2. For code/link: clear stale secrets, send code and link
    3. Send failures are classified; rate limits fall back to password
    """

    async def handle(self, command: SubmitIdentity) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.submit_email(
                run, command.email, VerificationStrategy(command.strategy)
            )

        return await self._drive(command, action)


class SubmitVerificationCodeHandler(EnrollmentRunHandler):
    """Handle SubmitVerificationCode across the ordered code type tags."""

    async def handle(
        self, command: SubmitVerificationCode
    ) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.submit_code(run, command.code)

        return await self._drive(command, action)


class OpenVerificationLinkHandler(EnrollmentRunHandler):
    """Handle OpenVerificationLink."""

    async def handle(self, command: OpenVerificationLink) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.open_link(run, command.email, command.token)

        return await self._drive(command, action)


class SubmitPasswordHandler(EnrollmentRunHandler):
    """
    Handle SubmitPassword.

    With create_account the password policy is checked locally, the
    account is created and sign-in is retried with backoff until the
    new password is visible.
    """

    async def handle(self, command: SubmitPassword) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.submit_password(
                run,
                command.password,
                confirmation=command.confirmation,
                create_account=command.create_account,
            )

        return await self._drive(command, action)


# ═══════════════════════════════════════════════════════════════
# PROFILE STEPS
# ═══════════════════════════════════════════════════════════════


class SubmitProfileStepHandler(EnrollmentRunHandler):
    async def handle(self, command: SubmitProfileStep) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.submit_step(run, command.value)

        return await self._drive(command, action)


class SkipProfileStepHandler(EnrollmentRunHandler):
    async def handle(self, command: SkipProfileStep) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.skip_step(run)

        return await self._drive(command, action)


class GoBackToStepHandler(EnrollmentRunHandler):
    async def handle(self, command: GoBackToStep) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return self.orchestrator.go_back(run, command.index)

        return await self._drive(command, action)


# ═══════════════════════════════════════════════════════════════
# FINALIZATION
# ═══════════════════════════════════════════════════════════════


class SubmitBasicProfileHandler(EnrollmentRunHandler):
    """Handle SubmitBasicProfile for runs held by the final gate."""

    async def handle(self, command: SubmitBasicProfile) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.submit_basic_profile(run, command.values or {})

        return await self._drive(command, action)


class RetryFinalizationHandler(EnrollmentRunHandler):
    """Handle RetryFinalization; identity is not verified again."""

    async def handle(self, command: RetryFinalization) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.retry_finalization(run)

        return await self._drive(command, action)


class RestartEnrollmentHandler(EnrollmentRunHandler):
    async def handle(self, command: RestartEnrollment) -> CommandResponse[WizardState]:
        async def action(run: EnrollmentRun) -> List[Any]:
            return await self.orchestrator.restart(run)

        return await self._drive(command, action)


# ═══════════════════════════════════════════════════════════════
# QUERIES
# ═══════════════════════════════════════════════════════════════


class GetWizardStateHandler(QueryHandler[WizardState]):
    """Handle GetWizardState."""

    def __init__(self, repository: EnrollmentRunRepository):
        super().__init__()
        self.repository = repository

    async def handle(self, query: GetWizardState) -> QueryResponse[WizardState]:
        run = await self.repository.get(query.run_id)
        if run is None:
            error = RunNotFoundError(details={"run_id": query.run_id})
            return QueryResponse(result=WizardState.failed(error.message, error.code))
        return QueryResponse(result=WizardState.from_run(run))
