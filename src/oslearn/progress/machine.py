"""Curriculum stage state machine.

This module implements the ModuleStateMachine class that decides which
curriculum stages are navigable and records stage completion.

Rules:
- advance(n) succeeds only for n == current_stage (re-affirming) or
  n == current_stage + 1, also after jumping back past completed stages.
  It marks n - 1 complete and persists.
- jump(n) moves to the setup stage, a completed stage or the current stage;
  any other target is refused without changing progress.
- Stage 4 is never terminal; it stays navigable after completion.

The state machine depends on a ProgressStore for persistence and writes
back after every transition.
"""

import logging
from typing import List, Optional

from oslearn.progress.models import (
    FINAL_STAGE,
    SETUP_STAGE,
    STAGE_TITLES,
    STAGES,
    Credentials,
    ModuleProgress,
    Selections,
    Session,
    StageStatus,
    StageView,
)
from oslearn.progress.store import ProgressStore


logger = logging.getLogger(__name__)


class InvalidStageTransitionError(Exception):
    """Raised when advancing to a stage that is not unlocked.

    Attributes:
        current_stage: The stage the learner is on.
        target_stage: The stage that was requested.
        message: Human-readable error message.
    """

    def __init__(
        self,
        current_stage: int,
        target_stage: int,
        message: Optional[str] = None,
    ):
        self.current_stage = current_stage
        self.target_stage = target_stage
        self.message = message or (
            f"Cannot advance from stage {current_stage} to stage {target_stage}"
        )
        super().__init__(self.message)


def can_advance(progress: ModuleProgress, stage: int) -> bool:
    """Check whether advance(stage) is allowed for the given progress.

    Example:
        >>> can_advance(ModuleProgress(current_stage=2, completed_stages={1}), 3)
        True
        >>> can_advance(ModuleProgress(current_stage=2, completed_stages={1}), 4)
        False
    """
    if stage not in STAGES:
        return False
    return stage in (progress.current_stage, progress.current_stage + 1)


def can_jump(progress: ModuleProgress, stage: int) -> bool:
    """Check whether jump(stage) is allowed for the given progress."""
    if stage not in STAGES:
        return False
    return (
        stage == SETUP_STAGE
        or stage == progress.current_stage
        or stage in progress.completed_stages
    )


def stage_status(progress: ModuleProgress, stage: int) -> StageStatus:
    """Compute the navigation status of a stage."""
    if stage == progress.current_stage:
        return StageStatus.ACTIVE
    if stage == SETUP_STAGE or stage in progress.completed_stages:
        return StageStatus.COMPLETED
    if stage == progress.current_stage + 1:
        return StageStatus.UNLOCKED
    return StageStatus.LOCKED


class ModuleStateMachine:
    """State machine for curriculum navigation.

    Attributes:
        store: The progress store for persistence.
        progress: The in-memory progress record (loaded by load()).

    Example:
        >>> machine = ModuleStateMachine(InMemoryProgressStore())
        >>> await machine.load()
        >>> await machine.complete_setup("content-key", "ghp_xxx")
        >>> machine.progress.current_stage
        1
    """

    def __init__(self, store: ProgressStore):
        """Initialize the state machine with a store.

        Args:
            store: The progress store for persistence.
        """
        self.store = store
        self.progress = ModuleProgress()

    async def load(self) -> ModuleProgress:
        """Restore persisted progress verbatim, or start at setup.

        Returns:
            The active progress record.
        """
        stored = await self.store.load()
        if stored is None:
            self.progress = ModuleProgress()
            logger.info("Starting fresh progress")
        else:
            self.progress = stored
            logger.info(
                "Progress restored",
                extra={
                    "current_stage": stored.current_stage,
                    "completed_stages": sorted(stored.completed_stages),
                },
            )
        return self.progress

    @property
    def current_stage(self) -> int:
        """The stage the learner is on."""
        return self.progress.current_stage

    @property
    def session(self) -> Session:
        """Credentials and selections of the current session."""
        return self.progress.session

    async def advance(self, stage: int) -> ModuleProgress:
        """Complete the stage before `stage` and make `stage` current.

        Args:
            stage: Target stage; the current stage or the next one.

        Returns:
            The updated progress.

        Raises:
            InvalidStageTransitionError: If the target stage is locked.
        """
        from_stage = self.progress.current_stage
        if not can_advance(self.progress, stage):
            logger.warning(
                "Invalid stage transition attempted",
                extra={"from_stage": from_stage, "to_stage": stage},
            )
            raise InvalidStageTransitionError(from_stage, stage)

        completed = set(self.progress.completed_stages)
        if stage - 1 > SETUP_STAGE:
            completed.add(stage - 1)

        self.progress = self.progress.model_copy(
            update={"current_stage": stage, "completed_stages": completed}
        )

        logger.info(
            "Advancing curriculum stage",
            extra={"from_stage": from_stage, "to_stage": stage},
        )

        await self.store.save(self.progress)
        return self.progress

    async def jump(self, stage: int) -> bool:
        """Navigate to an already reachable stage.

        Args:
            stage: Target stage.

        Returns:
            True if the learner moved, False if the stage is locked (in which
            case nothing changes).
        """
        if not can_jump(self.progress, stage):
            logger.debug(
                "Jump to locked stage ignored",
                extra={"from_stage": self.progress.current_stage, "to_stage": stage},
            )
            return False

        self.progress = self.progress.model_copy(update={"current_stage": stage})
        await self.store.save(self.progress)
        return True

    async def complete_setup(self, content_key: str, hosting_token: str) -> ModuleProgress:
        """Store both credentials and advance to the first module.

        Raises:
            ValueError: If either credential is blank.
            InvalidStageTransitionError: If stage 1 cannot be reached.
        """
        credentials = Credentials(
            content_key=content_key.strip(),
            hosting_token=hosting_token.strip(),
        )
        if not credentials.complete:
            raise ValueError("Both the content key and the GitHub token are required")

        self.progress = self.progress.model_copy(update={"credentials": credentials})
        if self.progress.current_stage == SETUP_STAGE:
            return await self.advance(1)
        await self.store.save(self.progress)
        return self.progress

    async def select(
        self,
        interest: Optional[str] = None,
        skill_level: Optional[str] = None,
        git_experience: Optional[str] = None,
    ) -> Selections:
        """Update the learner's selection tags; None leaves a tag unchanged."""
        updates = {
            key: value
            for key, value in (
                ("interest", interest),
                ("skill_level", skill_level),
                ("git_experience", git_experience),
            )
            if value is not None
        }
        selections = self.progress.selections.model_copy(update=updates)
        self.progress = self.progress.model_copy(update={"selections": selections})
        await self.store.save(self.progress)
        return selections

    def stage_status(self, stage: int) -> StageStatus:
        """Navigation status of one stage."""
        return stage_status(self.progress, stage)

    def overview(self) -> List[StageView]:
        """Status of every stage, in order."""
        return [
            StageView(
                stage=stage,
                title=STAGE_TITLES[stage],
                status=stage_status(self.progress, stage),
            )
            for stage in STAGES
        ]

    @property
    def contribution_unlocked(self) -> bool:
        """Whether the learner has reached the final stage."""
        return (
            self.progress.current_stage == FINAL_STAGE
            or FINAL_STAGE in self.progress.completed_stages
        )

    async def reset(self) -> ModuleProgress:
        """Forget all progress, credentials and selections."""
        self.progress = ModuleProgress()
        await self.store.clear()
        logger.info("Progress reset")
        return self.progress
