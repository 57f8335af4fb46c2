"""FastAPI application entry point for the learning platform.

This module serves the curriculum to a local UI: it restores the learner's
progress, exposes stage navigation and discovery lookups, and runs the
contribution workflow that opens the learner's first pull request.

Endpoints:
- GET  /health, /metrics
- GET  /progress, POST /setup, POST /selections
- POST /stages/{stage}/advance, POST /stages/{stage}/jump
- GET  /discover/repositories, /discover/issues
- POST /contribution, GET /contribution/status
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel, Field

from oslearn.config import LearningSettings, get_settings
from oslearn.events.emitter import EventEmitter, create_event_emitter
from oslearn.events.metrics import generate_metrics_output
from oslearn.events.models import WorkflowEvent
from oslearn.github.client import GitHubClient
from oslearn.github.discovery import (
    DEFAULT_INTEREST,
    DEFAULT_SKILL_LEVEL,
    IssueSummary,
    RepositorySummary,
    find_good_first_issues,
    find_repositories,
)
from oslearn.progress.machine import InvalidStageTransitionError, ModuleStateMachine
from oslearn.progress.models import FINAL_STAGE, ModuleProgress
from oslearn.progress.store import JsonFileProgressStore
from oslearn.workflow.engine import PRWorkflowEngine, WorkflowAlreadyRunningError
from oslearn.workflow.models import (
    ContributionRequest,
    WorkflowConfig,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class ContributionTracker:
    """The session's contribution engine and its latest run.

    The engine is the single place that allows one run at a time; the
    tracker only keeps what the status endpoint reports.
    """

    def __init__(self):
        self.engine: Optional[PRWorkflowEngine] = None
        self.statuses: List[WorkflowStatus] = []
        self.result: Optional[WorkflowResult] = None

    @property
    def running(self) -> bool:
        return self.engine is not None and self.engine.is_running

    def record(self, status: WorkflowStatus) -> None:
        if status.step == WorkflowStep.FORKING:
            self.statuses = []
        self.statuses.append(status)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(cfg: LearningSettings) -> None:
    """Log configuration values on startup."""
    logger.info("Learning platform configuration:")
    logger.info(f"  GitHub Base URL: {cfg.github_base_url}")
    logger.info(f"  Upstream Repository: {cfg.upstream_full_name}")
    logger.info(f"  Ledger Path: {cfg.ledger_path}")
    logger.info(f"  Default Branch: {cfg.default_branch}")
    logger.info(f"  Progress Path: {cfg.progress_path}")
    logger.info(f"  Propagation Delay Seconds: {cfg.propagation_delay_seconds}")
    logger.info(f"  Readiness Timeout Seconds: {cfg.readiness_timeout_seconds}")
    logger.info(f"  Event Sinks: {', '.join(cfg.event_sinks)}")
    logger.info(f"  Host: {cfg.host}")
    logger.info(f"  Port: {cfg.port}")


def _log_session(machine: ModuleStateMachine) -> None:
    """Log the restored session with credentials redacted."""
    credentials = machine.session.credentials
    logger.info(
        f"  Content Key: {_redact_secret(credentials.content_key) or '<not set>'}"
    )
    logger.info(
        f"  GitHub Token: {_redact_secret(credentials.hosting_token) or '<not set>'}"
    )



def create_github_client(token: str, cfg: LearningSettings) -> GitHubClient:
    """Create a GitHub client for the learner's token."""
    return GitHubClient(
        token=token,
        base_url=cfg.github_base_url,
        timeout=cfg.request_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown.

    Handles:
    - Configuration loading and validation
    - Restoring persisted progress into the session's state machine
    - Event emitter and contribution engine wiring
    - Graceful shutdown and cleanup
    """
    logger.info("Learning platform starting up...")

    settings = get_settings()
    _log_configuration(settings)

    state_machine = ModuleStateMachine(JsonFileProgressStore(settings.progress_path))
    await state_machine.load()
    _log_session(state_machine)

    event_emitter = create_event_emitter(settings.event_sinks)

    app.state.settings = settings
    app.state.state_machine = state_machine
    app.state.event_emitter = event_emitter
    tracker = ContributionTracker()
    tracker.engine = PRWorkflowEngine(
        client=None,
        config=WorkflowConfig.from_settings(settings),
        event_emitter=event_emitter,
        on_status=tracker.record,
    )
    app.state.contribution = tracker

    logger.info("Learning platform started successfully")

    yield

    logger.info("Learning platform shutting down...")
    await event_emitter.close()
    logger.info("Learning platform shutdown complete")


app = FastAPI(
    title="Open Source Learning Platform",
    description="Guided curriculum ending in a learner's first pull request",
    version="1.0.0",
    lifespan=lifespan,
)


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------


class SetupBody(BaseModel):
    content_key: str
    hosting_token: str


class SelectionsBody(BaseModel):
    interest: Optional[str] = None
    skill_level: Optional[str] = None
    git_experience: Optional[str] = None


class ContributionBody(BaseModel):
    """Start a contribution run.

    Attributes:
        display_name: Name for the ledger line and PR title.
        identity: GitHub login; resolved from the token when omitted.
    """

    display_name: str = Field(..., min_length=1)
    identity: Optional[str] = None


def _progress_view(machine: ModuleStateMachine) -> Dict[str, Any]:
    progress: ModuleProgress = machine.progress
    return {
        "current_stage": progress.current_stage,
        "completed_stages": sorted(progress.completed_stages),
        "stages": [view.model_dump(mode="json") for view in machine.overview()],
        "selections": progress.selections.model_dump(),
        "setup_complete": progress.credentials.complete,
        "contribution_unlocked": machine.contribution_unlocked,
    }


async def _emit_stage_transition(
    emitter: EventEmitter,
    from_stage: int,
    to_stage: int,
) -> None:
    try:
        await emitter.emit(WorkflowEvent.stage_transition(from_stage, to_stage))
    except Exception:
        logger.exception("Failed to emit stage transition event")


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(
        generate_metrics_output(),
        media_type=CONTENT_TYPE_LATEST,
    )


@app.get("/progress")
async def get_progress(request: Request):
    """Current stage, completed stages and the status of every stage."""
    return _progress_view(request.app.state.state_machine)


@app.post("/setup")
async def setup(body: SetupBody, request: Request):
    """Store credentials and unlock the first module."""
    machine: ModuleStateMachine = request.app.state.state_machine
    from_stage = machine.current_stage
    try:
        await machine.complete_setup(body.content_key, body.hosting_token)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if machine.current_stage != from_stage:
        await _emit_stage_transition(
            request.app.state.event_emitter, from_stage, machine.current_stage
        )
    return _progress_view(machine)


@app.post("/selections")
async def update_selections(body: SelectionsBody, request: Request):
    """Record the learner's interest, skill level or git experience."""
    selections = await request.app.state.state_machine.select(
        interest=body.interest,
        skill_level=body.skill_level,
        git_experience=body.git_experience,
    )
    return selections.model_dump()


@app.post("/stages/{stage}/advance")
async def advance_stage(stage: int, request: Request):
    """Complete the previous stage and move to `stage`.

    Returns 409 when the stage is locked.
    """
    machine: ModuleStateMachine = request.app.state.state_machine
    from_stage = machine.current_stage
    try:
        await machine.advance(stage)
    except InvalidStageTransitionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    if from_stage != stage:
        await _emit_stage_transition(request.app.state.event_emitter, from_stage, stage)
    return _progress_view(machine)


@app.post("/stages/{stage}/jump")
async def jump_stage(stage: int, request: Request):
    """Navigate to a reachable stage; locked stages leave progress alone."""
    machine: ModuleStateMachine = request.app.state.state_machine
    from_stage = machine.current_stage
    moved = await machine.jump(stage)
    if moved and from_stage != stage:
        await _emit_stage_transition(request.app.state.event_emitter, from_stage, stage)
    return {"moved": moved, "current_stage": machine.current_stage}


@app.get("/discover/repositories", response_model=List[RepositorySummary])
async def discover_repositories(
    request: Request,
    interest: Optional[str] = None,
    limit: int = 5,
):
    """Repositories matching the learner's interest."""
    machine: ModuleStateMachine = request.app.state.state_machine
    interest = interest or machine.session.selections.interest or DEFAULT_INTEREST
    token = machine.session.credentials.hosting_token
    async with create_github_client(token, request.app.state.settings) as client:
        return await find_repositories(client, interest, limit=limit)


@app.get("/discover/issues", response_model=List[IssueSummary])
async def discover_issues(
    request: Request,
    interest: Optional[str] = None,
    skill_level: Optional[str] = None,
    limit: int = 5,
):
    """Beginner-friendly issues for the learner's interest and skill level."""
    machine: ModuleStateMachine = request.app.state.state_machine
    selections = machine.session.selections
    interest = interest or selections.interest or DEFAULT_INTEREST
    skill_level = skill_level or selections.skill_level or DEFAULT_SKILL_LEVEL
    token = machine.session.credentials.hosting_token
    async with create_github_client(token, request.app.state.settings) as client:
        return await find_good_first_issues(client, interest, skill_level, limit=limit)


@app.post("/contribution")
async def start_contribution(body: ContributionBody, request: Request):
    """Run the contribution workflow and return its terminal result.

    Returns 409 while another run is in progress or before the final stage
    is reached, and 401 when the login cannot be resolved from the token.
    """
    machine: ModuleStateMachine = request.app.state.state_machine
    tracker: ContributionTracker = request.app.state.contribution
    settings: LearningSettings = request.app.state.settings

    if not machine.contribution_unlocked:
        raise HTTPException(
            status_code=409,
            detail=f"Complete stages 1-{FINAL_STAGE - 1} before submitting a pull request",
        )

    token = machine.session.credentials.hosting_token
    if not token:
        raise HTTPException(status_code=401, detail="A GitHub token is required")

    async with create_github_client(token, settings) as client:
        identity = body.identity
        if not identity:
            user = await client.get_authenticated_user()
            if not user.ok:
                raise HTTPException(
                    status_code=401,
                    detail=f"Could not resolve your GitHub login: {user.message}",
                )
            identity = user.value.login

        try:
            contribution = ContributionRequest(
                identity=identity,
                display_name=body.display_name,
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        try:
            tracker.result = await tracker.engine.start(contribution, client=client)
        except WorkflowAlreadyRunningError as e:
            raise HTTPException(status_code=409, detail=str(e))

    return tracker.result.model_dump(mode="json")


@app.get("/contribution/status")
async def contribution_status(request: Request):
    """Status notifications of the latest run and its state."""
    tracker: ContributionTracker = request.app.state.contribution
    state = tracker.engine.state if tracker.engine is not None else None
    return {
        "running": tracker.running,
        "statuses": [status.model_dump(mode="json") for status in tracker.statuses],
        "state": state.model_dump(mode="json") if state is not None else None,
        "result": tracker.result.model_dump(mode="json") if tracker.result else None,
    }


if __name__ == "__main__":
    import uvicorn

    # For local development, load settings to get host/port
    dev_settings = get_settings()
    uvicorn.run(
        "oslearn.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
    )
