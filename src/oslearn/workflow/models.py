"""Contribution workflow models.

This module defines the data models for the fork → commit → pull request
workflow, including:
- WorkflowStep: Enum of all workflow steps
- VALID_TRANSITIONS: Map defining allowed step transitions
- FailureKind: Why a run failed
- WorkflowState: In-memory state of one run
- WorkflowStatus: Progress notification sent to the UI before each step
- WorkflowResult: Terminal outcome of a run
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from oslearn.config import LearningSettings


class WorkflowStep(str, Enum):
    """Steps a contribution run progresses through.

    Step Flow:
        idle → forking → awaiting_propagation → reading_ledger
        → checking_duplicate → committing → creating_pr → succeeded

    Any non-terminal step can transition to 'failed'. Both 'succeeded' and
    'failed' are terminal; a new run starts from a fresh state.
    """

    IDLE = "idle"
    FORKING = "forking"
    AWAITING_PROPAGATION = "awaiting_propagation"
    READING_LEDGER = "reading_ledger"
    CHECKING_DUPLICATE = "checking_duplicate"
    COMMITTING = "committing"
    CREATING_PR = "creating_pr"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Valid step transitions map
#
# - The happy path is strictly linear; there is no branching back
# - Any non-terminal step can transition to FAILED
# - SUCCEEDED and FAILED have no outgoing transitions
VALID_TRANSITIONS: Dict[WorkflowStep, List[WorkflowStep]] = {
    WorkflowStep.IDLE: [WorkflowStep.FORKING, WorkflowStep.FAILED],
    WorkflowStep.FORKING: [WorkflowStep.AWAITING_PROPAGATION, WorkflowStep.FAILED],
    WorkflowStep.AWAITING_PROPAGATION: [WorkflowStep.READING_LEDGER, WorkflowStep.FAILED],
    WorkflowStep.READING_LEDGER: [WorkflowStep.CHECKING_DUPLICATE, WorkflowStep.FAILED],
    WorkflowStep.CHECKING_DUPLICATE: [WorkflowStep.COMMITTING, WorkflowStep.FAILED],
    WorkflowStep.COMMITTING: [WorkflowStep.CREATING_PR, WorkflowStep.FAILED],
    WorkflowStep.CREATING_PR: [WorkflowStep.SUCCEEDED, WorkflowStep.FAILED],
    WorkflowStep.SUCCEEDED: [],
    WorkflowStep.FAILED: [],
}

# Steps that perform work, in order, as shown to the learner
WORK_STEPS = (
    WorkflowStep.FORKING,
    WorkflowStep.AWAITING_PROPAGATION,
    WorkflowStep.READING_LEDGER,
    WorkflowStep.CHECKING_DUPLICATE,
    WorkflowStep.COMMITTING,
    WorkflowStep.CREATING_PR,
)


def is_valid_transition(from_step: WorkflowStep, to_step: WorkflowStep) -> bool:
    """Check if a step transition is valid.

    Example:
        >>> is_valid_transition(WorkflowStep.FORKING, WorkflowStep.AWAITING_PROPAGATION)
        True
        >>> is_valid_transition(WorkflowStep.COMMITTING, WorkflowStep.READING_LEDGER)
        False
    """
    return to_step in VALID_TRANSITIONS.get(from_step, [])


def is_terminal_step(step: WorkflowStep) -> bool:
    """Check if a step is terminal (has no outgoing transitions)."""
    return len(VALID_TRANSITIONS.get(step, [])) == 0


class FailureKind(str, Enum):
    """Why a contribution run failed.

    Attributes:
        AUTH_FAILURE: Bad, expired or under-scoped token; the learner must
                      re-enter it.
        NOT_FOUND: An expected resource is missing (misconfigured upstream
                   or a fork that never became readable).
        CONFLICT: Stale ledger sha on commit, or a pull request that is
                  already open.
        DUPLICATE_SUBMISSION: The learner is already in the ledger. Never
                              worth retrying.
        TRANSIENT_FAILURE: Network, rate limit or server trouble.
    """

    AUTH_FAILURE = "auth_failure"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DUPLICATE_SUBMISSION = "duplicate_submission"
    TRANSIENT_FAILURE = "transient_failure"


class WorkflowConfig(BaseModel):
    """Coordinates and timing of the contribution workflow."""

    upstream_owner: str = Field(..., min_length=1)
    upstream_repo: str = Field(..., min_length=1)
    ledger_path: str = "CONTRIBUTORS.md"
    default_branch: str = "main"
    propagation_delay_seconds: float = Field(default=2.0, ge=0)
    readiness_timeout_seconds: float = Field(default=60.0, ge=0)
    readiness_backoff_base_seconds: float = Field(default=1.0, gt=0)
    readiness_backoff_max_seconds: float = Field(default=8.0, gt=0)

    @classmethod
    def from_settings(cls, settings: LearningSettings) -> "WorkflowConfig":
        """Build the workflow configuration from service settings."""
        return cls(
            upstream_owner=settings.upstream_owner,
            upstream_repo=settings.upstream_repo,
            ledger_path=settings.ledger_path,
            default_branch=settings.default_branch,
            propagation_delay_seconds=settings.propagation_delay_seconds,
            readiness_timeout_seconds=settings.readiness_timeout_seconds,
            readiness_backoff_base_seconds=settings.readiness_backoff_base_seconds,
            readiness_backoff_max_seconds=settings.readiness_backoff_max_seconds,
        )


class ContributionRequest(BaseModel):
    """What the learner submits to start a run.

    Attributes:
        identity: The learner's GitHub login.
        display_name: Name written into the ledger and the PR title.
    """

    identity: str = Field(..., min_length=1, max_length=39)
    display_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("identity")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        """Validate that the login looks like a GitHub login."""
        v = v.strip().lstrip("@")
        if not v or not all(c.isalnum() or c == "-" for c in v):
            raise ValueError("identity must be a GitHub login")
        return v

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        """Validate that the name is a single non-blank line."""
        v = v.strip()
        if not v:
            raise ValueError("display_name cannot be empty")
        if len(v.splitlines()) > 1:
            raise ValueError("display_name must be a single line")
        return v


class StepTransition(BaseModel):
    """Record of one step transition within a run."""

    from_step: WorkflowStep
    to_step: WorkflowStep
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class WorkflowState(BaseModel):
    """State of one contribution run, owned by the engine.

    Attributes:
        run_id: Identifier of the run.
        step: The current step.
        fork_target: The learner's fork in "{owner}/{repo}" form.
        file_sha: Blob sha of the ledger read from the fork.
        commit_sha: Commit created by the ledger write.
        pull_request_url: URL of the opened pull request.
        last_error: Human-readable description of the failure, if any.
        failure_kind: Classification of the failure, if any.
        history: Ordered list of step transitions.
    """

    run_id: str = Field(..., min_length=1)
    step: WorkflowStep = WorkflowStep.IDLE
    fork_target: Optional[str] = None
    file_sha: Optional[str] = None
    commit_sha: Optional[str] = None
    pull_request_url: Optional[str] = None
    last_error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    history: List[StepTransition] = Field(default_factory=list)


class WorkflowStatus(BaseModel):
    """Progress notification delivered to the UI.

    Attributes:
        step: The step about to run (or the terminal step reached).
        label: Human-readable phase label.
        position: 1-based position among the work steps, None for terminal
                  notifications.
        total: Number of work steps.
    """

    step: WorkflowStep
    label: str
    position: Optional[int] = None
    total: int = len(WORK_STEPS)


class WorkflowOutcome(str, Enum):
    """Terminal outcome of a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class WorkflowResult(BaseModel):
    """Terminal result of a contribution run.

    Attributes:
        outcome: Whether the pull request was opened.
        pull_request_url: URL of the pull request on success.
        failure_kind: Why the run failed.
        failed_step: The step that failed.
        message: Text to show the learner.
        state: Final state of the run.
    """

    outcome: WorkflowOutcome
    pull_request_url: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    failed_step: Optional[WorkflowStep] = None
    message: str = ""
    state: WorkflowState

    @property
    def succeeded(self) -> bool:
        """Whether the run opened its pull request."""
        return self.outcome == WorkflowOutcome.SUCCEEDED

    @property
    def retryable(self) -> bool:
        """Whether starting a new run could plausibly succeed."""
        return (
            self.outcome == WorkflowOutcome.FAILED
            and self.failure_kind != FailureKind.DUPLICATE_SUBMISSION
        )
