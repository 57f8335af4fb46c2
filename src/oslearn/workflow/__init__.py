"""Fork → commit → pull request workflow for course completion."""

from oslearn.workflow.engine import (
    InvalidStepTransitionError,
    PRWorkflowEngine,
    WorkflowAlreadyRunningError,
)
from oslearn.workflow.models import (
    VALID_TRANSITIONS,
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

__all__ = [
    "ContributionRequest",
    "FailureKind",
    "InvalidStepTransitionError",
    "PRWorkflowEngine",
    "StepTransition",
    "VALID_TRANSITIONS",
    "WORK_STEPS",
    "WorkflowAlreadyRunningError",
    "WorkflowConfig",
    "WorkflowOutcome",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowStep",
    "is_terminal_step",
    "is_valid_transition",
]
