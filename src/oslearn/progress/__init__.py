"""Curriculum progress state machine and persistence.

This module manages learner progression through the curriculum:
- setup (0) → module 1 → module 2 → module 3 → module 4

Stages unlock strictly in order. Progress, credentials and selections are
persisted after every transition.
"""

from oslearn.progress.machine import (
    InvalidStageTransitionError,
    ModuleStateMachine,
    can_advance,
    can_jump,
    stage_status,
)
from oslearn.progress.models import (
    FINAL_STAGE,
    SETUP_STAGE,
    STAGES,
    Credentials,
    ModuleProgress,
    Selections,
    Session,
    StageStatus,
    StageView,
)
from oslearn.progress.store import (
    InMemoryProgressStore,
    JsonFileProgressStore,
    ProgressStore,
    ProgressStoreError,
)

__all__ = [
    # Models
    "FINAL_STAGE",
    "SETUP_STAGE",
    "STAGES",
    "Credentials",
    "ModuleProgress",
    "Selections",
    "Session",
    "StageStatus",
    "StageView",
    # State machine
    "InvalidStageTransitionError",
    "ModuleStateMachine",
    "can_advance",
    "can_jump",
    "stage_status",
    # Persistence
    "InMemoryProgressStore",
    "JsonFileProgressStore",
    "ProgressStore",
    "ProgressStoreError",
]
