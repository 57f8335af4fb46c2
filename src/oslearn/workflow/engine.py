"""Contribution workflow engine.

Drives one learner through forking the upstream repository, adding their
line to the contributors ledger on the fork, committing it and opening a
pull request back upstream:

    forking → awaiting_propagation → reading_ledger → checking_duplicate
    → committing → creating_pr → succeeded

Any step failure ends the run in 'failed' immediately. Nothing is rolled
back: a fork or commit made before the failure stays in place, and a new
run recovers through the duplicate-submission check.

The fork becomes readable asynchronously on GitHub's side. After the
initial propagation delay the engine polls the ledger with exponential
backoff, treating NotFound as "not ready yet" until the readiness deadline.

Source:
- src/oslearn/github/client.py (GitHubClient)
- src/oslearn/ledger.py (ContributorLedger)
- src/oslearn/events/emitter.py (EventEmitter)
- src/oslearn/workflow/models.py (WorkflowStep, WorkflowState, ...)
"""

import asyncio
import inspect
import logging
import time
import uuid
from datetime import date
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from oslearn.events.emitter import EventEmitter, NullEventEmitter
from oslearn.events.models import EventType, WorkflowEvent
from oslearn.github.client import GitHubClient
from oslearn.github.models import FileContent, OutcomeKind, ServiceOutcome
from oslearn.ledger import ContributorEntry, ContributorLedger
from oslearn.workflow.models import (
    WORK_STEPS,
    ContributionRequest,
    FailureKind,
    StepTransition,
    WorkflowConfig,
    WorkflowOutcome,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
    WorkflowStep,
    is_terminal_step,
    is_valid_transition,
)


logger = logging.getLogger(__name__)


StatusCallback = Callable[[WorkflowStatus], Union[None, Awaitable[None]]]

TOKEN_HINT = (
    'Check that your GitHub token has not expired and has the "public_repo" scope.'
)


class InvalidStepTransitionError(Exception):
    """Raised when the engine attempts a step transition outside the map.

    Attributes:
        from_step: The current step.
        to_step: The attempted target step.
    """

    def __init__(self, from_step: WorkflowStep, to_step: WorkflowStep):
        self.from_step = from_step
        self.to_step = to_step
        super().__init__(
            f"Invalid transition from {from_step.value} to {to_step.value}"
        )


class WorkflowAlreadyRunningError(Exception):
    """Raised when start() is called while a run is still in progress.

    Attributes:
        run_id: The run that is still in progress.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Contribution run {run_id} is still in progress")


class StepFailedError(Exception):
    """Ends the current run at the current step.

    Attributes:
        kind: Classification of the failure.
        message: Text to show the learner.
    """

    def __init__(self, kind: FailureKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)


_FAILURE_KINDS: Dict[OutcomeKind, FailureKind] = {
    OutcomeKind.AUTH_FAILURE: FailureKind.AUTH_FAILURE,
    OutcomeKind.NOT_FOUND: FailureKind.NOT_FOUND,
    OutcomeKind.CONFLICT: FailureKind.CONFLICT,
    OutcomeKind.TRANSIENT_FAILURE: FailureKind.TRANSIENT_FAILURE,
}


def failure_message(kind: FailureKind, action: str, detail: str = "") -> str:
    """Build the learner-facing message for a failed step.

    Args:
        kind: Classification of the failure.
        action: What the step was doing, e.g. "fork the repository".
        detail: GitHub's own message, if any.
    """
    if kind == FailureKind.AUTH_FAILURE:
        return f"GitHub refused to {action}. {TOKEN_HINT}"
    suffix = f" ({detail})" if detail else ""
    return f"Could not {action}{suffix}. Please check your connection and try again."


def step_label(step: WorkflowStep, ledger_path: str) -> str:
    """Human-readable phase label for a work step."""
    labels = {
        WorkflowStep.FORKING: "Forking repository...",
        WorkflowStep.AWAITING_PROPAGATION: "Waiting for fork to complete...",
        WorkflowStep.READING_LEDGER: f"Reading {ledger_path}...",
        WorkflowStep.CHECKING_DUPLICATE: "Checking whether you are already listed...",
        WorkflowStep.COMMITTING: "Committing changes...",
        WorkflowStep.CREATING_PR: "Creating Pull Request...",
    }
    position = WORK_STEPS.index(step) + 1
    return f"Step {position}/{len(WORK_STEPS)}: {labels[step]}"


def build_pull_request_body(request: ContributionRequest) -> str:
    """Markdown body of the learner's pull request."""
    return (
        "## Course Completion!\n\n"
        f"**Name:** {request.display_name}\n"
        f"**GitHub:** @{request.identity}\n\n"
        "I completed the Open Source Learning Platform course and learned how "
        "to contribute to open source projects!"
    )


class PRWorkflowEngine:
    """Runs the contribution workflow, one run at a time.

    All collaborators are injected. Tests replace `sleep`, `clock` and
    `today` to drive the readiness polling deterministically.

    Attributes:
        client: GitHub client authenticated with the learner's token. May
                be None when every start() call supplies its own client.
        config: Upstream coordinates and timing.
        event_emitter: Receives step, error and completion events.
        on_status: Called with a WorkflowStatus before every step and when
                   the run ends. May be sync or async.

    Example:
        >>> engine = PRWorkflowEngine(client, config, on_status=print)
        >>> result = await engine.start(
        ...     ContributionRequest(identity="octocat", display_name="Mona")
        ... )
        >>> result.pull_request_url
        'https://github.com/upstream/repo/pull/7'
    """

    def __init__(
        self,
        client: Optional[GitHubClient],
        config: WorkflowConfig,
        event_emitter: Optional[EventEmitter] = None,
        on_status: Optional[StatusCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.config = config
        self.event_emitter = event_emitter or NullEventEmitter()
        self.on_status = on_status
        self._sleep = sleep
        self._clock = clock
        self._today = today
        self._state: Optional[WorkflowState] = None
        self._learner: Optional[str] = None

    @property
    def state(self) -> Optional[WorkflowState]:
        """Copy of the current (or last finished) run's state."""
        return self._state.model_copy(deep=True) if self._state else None

    @property
    def is_running(self) -> bool:
        """Whether a run is in progress."""
        return self._state is not None and not is_terminal_step(self._state.step)

    @property
    def repository(self) -> str:
        return f"{self.config.upstream_owner}/{self.config.upstream_repo}"

    async def start(
        self,
        request: ContributionRequest,
        client: Optional[GitHubClient] = None,
    ) -> WorkflowResult:
        """Run the workflow to a terminal step.

        Args:
            request: The learner's login and display name.
            client: Client for this run, replacing the one given at
                    construction. The session token can change between runs.

        Returns:
            The terminal result. Step failures are reported here, never
            raised.

        Raises:
            WorkflowAlreadyRunningError: If another run is in progress.
            ValueError: If no client was given here or at construction.
        """
        if self.is_running:
            raise WorkflowAlreadyRunningError(self._state.run_id)
        if client is not None:
            self.client = client
        if self.client is None:
            raise ValueError("No GitHub client for this contribution run")

        self._state = WorkflowState(run_id=uuid.uuid4().hex)
        self._learner = request.identity
        started_at = self._clock()

        logger.info(
            "Starting contribution run",
            extra={
                "run_id": self._state.run_id,
                "learner": request.identity,
                "repository": self.repository,
            },
        )

        try:
            url = await self._run(request)
        except StepFailedError as exc:
            return await self._fail(exc.kind, exc.message, started_at)
        except Exception as exc:
            logger.exception(
                "Contribution run crashed",
                extra={"run_id": self._state.run_id, "step": self._state.step.value},
            )
            return await self._fail(
                FailureKind.TRANSIENT_FAILURE,
                f"Something went wrong while submitting your pull request ({exc}).",
                started_at,
            )

        return await self._succeed(url, started_at)

    async def _run(self, request: ContributionRequest) -> str:
        """Execute the work steps in order and return the PR URL."""
        fork_owner, fork_repo = await self._fork(request)
        await self._await_propagation()
        ledger_file = await self._read_ledger(fork_owner, fork_repo)
        ledger = await self._check_duplicate(request, ledger_file)
        await self._commit(request, fork_owner, fork_repo, ledger, ledger_file.sha)
        return await self._create_pull_request(request)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _fork(self, request: ContributionRequest) -> Tuple[str, str]:
        await self._enter(WorkflowStep.FORKING)

        outcome = await self.client.fork_repository(
            self.config.upstream_owner,
            self.config.upstream_repo,
        )
        if outcome.kind in (OutcomeKind.AUTH_FAILURE, OutcomeKind.TRANSIENT_FAILURE):
            raise self._outcome_failure(outcome, "fork the repository")

        if outcome.ok and outcome.value is not None:
            fork_owner, fork_repo = outcome.value.owner, outcome.value.repo
        else:
            # Existing fork: GitHub keeps the upstream name under the learner
            fork_owner, fork_repo = request.identity, self.config.upstream_repo

        self._state.fork_target = f"{fork_owner}/{fork_repo}"
        return fork_owner, fork_repo

    async def _await_propagation(self) -> None:
        await self._enter(WorkflowStep.AWAITING_PROPAGATION)
        if self.config.propagation_delay_seconds > 0:
            await self._sleep(self.config.propagation_delay_seconds)

    async def _read_ledger(self, fork_owner: str, fork_repo: str) -> FileContent:
        await self._enter(WorkflowStep.READING_LEDGER)

        deadline = self._clock() + self.config.readiness_timeout_seconds
        attempt = 0
        while True:
            outcome = await self.client.read_file(
                fork_owner,
                fork_repo,
                self.config.ledger_path,
            )
            if outcome.ok:
                self._state.file_sha = outcome.value.sha
                return outcome.value

            remaining = deadline - self._clock()
            if outcome.kind != OutcomeKind.NOT_FOUND or remaining <= 0:
                break

            delay = min(
                self.config.readiness_backoff_base_seconds * (2 ** attempt),
                self.config.readiness_backoff_max_seconds,
                remaining,
            )
            attempt += 1
            logger.info(
                "Fork not readable yet, retrying",
                extra={
                    "run_id": self._state.run_id,
                    "fork_target": self._state.fork_target,
                    "attempt": attempt,
                    "delay": delay,
                },
            )
            await self._sleep(delay)

        if outcome.kind == OutcomeKind.NOT_FOUND:
            raise StepFailedError(
                FailureKind.NOT_FOUND,
                f"Could not find {self.config.ledger_path} in your fork "
                f"{self._state.fork_target}. The course repository may be "
                "misconfigured, or the fork is taking unusually long to appear.",
            )
        raise self._outcome_failure(outcome, f"read {self.config.ledger_path}")

    async def _check_duplicate(
        self,
        request: ContributionRequest,
        ledger_file: FileContent,
    ) -> ContributorLedger:
        await self._enter(WorkflowStep.CHECKING_DUPLICATE)

        ledger = ContributorLedger(ledger_file.content)
        if ledger.contains(request.identity):
            raise StepFailedError(
                FailureKind.DUPLICATE_SUBMISSION,
                "You've already completed this course! Your name is already in "
                f"{self.config.ledger_path}.",
            )
        return ledger

    async def _commit(
        self,
        request: ContributionRequest,
        fork_owner: str,
        fork_repo: str,
        ledger: ContributorLedger,
        file_sha: str,
    ) -> None:
        await self._enter(WorkflowStep.COMMITTING)

        entry = ContributorEntry(
            identity=request.identity,
            display_name=request.display_name,
            date=self._today().isoformat(),
        )
        outcome = await self.client.write_file(
            fork_owner,
            fork_repo,
            self.config.ledger_path,
            ledger.append(entry),
            file_sha,
            f"Add {request.display_name} to contributors",
        )
        if outcome.kind == OutcomeKind.CONFLICT:
            raise StepFailedError(
                FailureKind.CONFLICT,
                f"{self.config.ledger_path} changed on your fork while it was "
                "being updated. Please try again.",
            )
        if not outcome.ok:
            raise self._outcome_failure(outcome, "commit your changes")

        self._state.commit_sha = outcome.value.commit_sha

    async def _create_pull_request(self, request: ContributionRequest) -> str:
        await self._enter(WorkflowStep.CREATING_PR)

        branch = self.config.default_branch
        outcome = await self.client.create_pull_request(
            self.config.upstream_owner,
            self.config.upstream_repo,
            head=f"{request.identity}:{branch}",
            base=branch,
            title=f"Add {request.display_name} to contributors",
            body=build_pull_request_body(request),
        )
        if outcome.kind == OutcomeKind.CONFLICT:
            raise StepFailedError(
                FailureKind.CONFLICT,
                "A pull request from your fork is already open. "
                "Check your open pull requests on GitHub.",
            )
        if not outcome.ok:
            raise self._outcome_failure(outcome, "create the pull request")

        self._state.pull_request_url = outcome.value.url
        return outcome.value.url

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _outcome_failure(self, outcome: ServiceOutcome, action: str) -> StepFailedError:
        kind = _FAILURE_KINDS.get(outcome.kind, FailureKind.TRANSIENT_FAILURE)
        return StepFailedError(kind, failure_message(kind, action, outcome.message))

    def _transition(self, to_step: WorkflowStep) -> WorkflowStep:
        """Move the run to a new step, validating against the map."""
        from_step = self._state.step
        if not is_valid_transition(from_step, to_step):
            raise InvalidStepTransitionError(from_step, to_step)

        self._state.history.append(StepTransition(from_step=from_step, to_step=to_step))
        self._state.step = to_step
        return from_step

    async def _enter(self, step: WorkflowStep) -> None:
        """Transition to a work step, then notify the UI before the work."""
        from_step = self._transition(step)

        logger.info(
            "Workflow step started",
            extra={"run_id": self._state.run_id, "step": step.value},
        )
        await self._safe_emit(
            WorkflowEvent(
                event_type=EventType.STEP_TRANSITION,
                run_id=self._state.run_id,
                learner=self._learner,
                repository=self.repository,
                details={"from_step": from_step.value, "to_step": step.value},
            )
        )
        await self._notify(
            WorkflowStatus(
                step=step,
                label=step_label(step, self.config.ledger_path),
                position=WORK_STEPS.index(step) + 1,
            )
        )

    async def _succeed(self, url: str, started_at: float) -> WorkflowResult:
        self._transition(WorkflowStep.SUCCEEDED)
        duration = self._clock() - started_at

        logger.info(
            "Contribution run succeeded",
            extra={"run_id": self._state.run_id, "pr_url": url},
        )
        await self._safe_emit(
            WorkflowEvent(
                event_type=EventType.COMPLETION,
                run_id=self._state.run_id,
                learner=self._learner,
                repository=self.repository,
                details={"pr_url": url, "duration_seconds": duration},
            )
        )
        await self._notify(
            WorkflowStatus(step=WorkflowStep.SUCCEEDED, label="Pull request created!")
        )

        return WorkflowResult(
            outcome=WorkflowOutcome.SUCCEEDED,
            pull_request_url=url,
            message="You just submitted your first Pull Request!",
            state=self._state.model_copy(deep=True),
        )

    async def _fail(
        self,
        kind: FailureKind,
        message: str,
        started_at: float,
    ) -> WorkflowResult:
        failed_step = self._state.step
        self._transition(WorkflowStep.FAILED)
        self._state.failure_kind = kind
        self._state.last_error = message
        duration = self._clock() - started_at

        log = logger.info if kind == FailureKind.DUPLICATE_SUBMISSION else logger.warning
        log(
            "Contribution run failed",
            extra={
                "run_id": self._state.run_id,
                "step": failed_step.value,
                "failure_kind": kind.value,
            },
        )
        await self._safe_emit(
            WorkflowEvent(
                event_type=EventType.ERROR,
                run_id=self._state.run_id,
                learner=self._learner,
                repository=self.repository,
                details={
                    "step": failed_step.value,
                    "failure_kind": kind.value,
                    "error_message": message,
                    "duration_seconds": duration,
                },
            )
        )
        await self._notify(WorkflowStatus(step=WorkflowStep.FAILED, label=message))

        return WorkflowResult(
            outcome=WorkflowOutcome.FAILED,
            failure_kind=kind,
            failed_step=failed_step,
            message=message,
            state=self._state.model_copy(deep=True),
        )

    async def _notify(self, status: WorkflowStatus) -> None:
        """Deliver a status notification, swallowing callback errors."""
        if self.on_status is None:
            return
        try:
            result = self.on_status(status)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Status callback failed",
                extra={"run_id": self._state.run_id, "step": status.step.value},
            )

    async def _safe_emit(self, event: WorkflowEvent) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the run."""
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit workflow event",
                extra={"event_type": event.event_type.value, "run_id": event.run_id},
            )
