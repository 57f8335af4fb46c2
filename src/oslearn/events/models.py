"""Event models for contribution runs and curriculum navigation.

A WorkflowEvent is emitted when a contribution run enters a step, fails
or opens its pull request, and when the learner moves between stages.

Details keys by event type:

    step_transition   from_step, to_step
    error             step, failure_kind, error_message, duration_seconds
    completion        pr_url, duration_seconds
    stage_transition  from_stage, to_stage
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Kinds of events."""

    STEP_TRANSITION = "step_transition"
    ERROR = "error"
    COMPLETION = "completion"
    STAGE_TRANSITION = "stage_transition"


class WorkflowEvent(BaseModel):
    """One observable occurrence.

    Attributes:
        event_type: Kind of event.
        run_id: Contribution run the event belongs to; None for stage moves.
        learner: GitHub login of the learner, when known.
        repository: Upstream repository as "owner/repo".
        timestamp: UTC time of the event.
        details: Event-specific fields (see module docstring).
    """

    event_type: EventType
    run_id: Optional[str] = None
    learner: Optional[str] = None
    repository: Optional[str] = None
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def stage_transition(cls, from_stage: int, to_stage: int) -> "WorkflowEvent":
        """Event for a curriculum stage move."""
        return cls(
            event_type=EventType.STAGE_TRANSITION,
            details={"from_stage": from_stage, "to_stage": to_stage},
        )

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten into `extra` fields for a log record.

        Example:
            >>> WorkflowEvent.stage_transition(1, 2).to_log_dict()["to_stage"]
            2
        """
        return {
            "event_type": self.event_type.value,
            "run_id": self.run_id,
            "learner": self.learner,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
