"""Learner progress models.

This module defines the data models for curriculum progress, including:
- Credentials and Selections: the learner's session inputs
- ModuleProgress: persisted record of completed and active stages
- StageStatus: navigation status of one stage as shown in the sidebar

Stage 0 is the setup page; stages 1..4 are the curriculum modules.
"""

from enum import Enum
from typing import Set

from pydantic import BaseModel, Field


SETUP_STAGE = 0
FINAL_STAGE = 4
STAGES = tuple(range(SETUP_STAGE, FINAL_STAGE + 1))

STAGE_TITLES = {
    0: "Setup",
    1: "Finding Your Project",
    2: "Good First Issues",
    3: "Git & GitHub Basics",
    4: "Your First Pull Request",
}


class Credentials(BaseModel):
    """Opaque bearer credentials held for the current session.

    Attributes:
        content_key: API key for the lesson text generation service.
        hosting_token: GitHub token used for the contribution workflow.
    """

    content_key: str = ""
    hosting_token: str = ""

    @property
    def complete(self) -> bool:
        """Whether both credentials are present."""
        return bool(self.content_key.strip() and self.hosting_token.strip())


class Selections(BaseModel):
    """Personalization tags chosen by the learner during the curriculum.

    Attributes:
        interest: Interest area chosen in stage 1 (e.g. "game-development").
        skill_level: Coding experience chosen in stage 2.
        git_experience: Prior git experience chosen in stage 3.
    """

    interest: str = ""
    skill_level: str = ""
    git_experience: str = ""


class Session(BaseModel):
    """Everything the learner supplied in this session."""

    credentials: Credentials = Field(default_factory=Credentials)
    selections: Selections = Field(default_factory=Selections)


class ModuleProgress(BaseModel):
    """Persisted curriculum progress.

    The invariant maintained by the state machine is that current_stage is
    either 0 or one greater than the highest completed stage at the time it
    was set, so stages cannot be skipped.

    Attributes:
        current_stage: Stage the learner is on (0 = setup).
        completed_stages: Stages marked complete.
        credentials: Session credentials.
        selections: Session selection tags.
    """

    current_stage: int = Field(default=SETUP_STAGE, ge=SETUP_STAGE, le=FINAL_STAGE)
    completed_stages: Set[int] = Field(default_factory=set)
    credentials: Credentials = Field(default_factory=Credentials)
    selections: Selections = Field(default_factory=Selections)

    @property
    def session(self) -> Session:
        """Session view of the stored credentials and selections."""
        return Session(credentials=self.credentials, selections=self.selections)

    def to_record(self) -> dict:
        """Serialize to the persisted record shape."""
        return {
            "credentials": self.credentials.model_dump(),
            "selections": self.selections.model_dump(),
            "completed_stages": sorted(self.completed_stages),
            "current_stage": self.current_stage,
        }


class StageStatus(str, Enum):
    """Navigation status of a stage.

    Attributes:
        ACTIVE: The stage the learner is currently on.
        COMPLETED: Finished; can be revisited.
        UNLOCKED: The next stage, reachable by completing the current one.
        LOCKED: Not reachable yet.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class StageView(BaseModel):
    """One row of the curriculum overview."""

    stage: int
    title: str
    status: StageStatus
