"""Event sinks for contribution runs and curriculum navigation.

Emitters receive WorkflowEvents from the workflow engine and the HTTP app:

- LoggingEventEmitter: one log line per event, event fields in `extra`
- CompositeEventEmitter: fans an event out to several sinks at once
- NullEventEmitter: drops everything; the engine's default
- MetricsEventEmitter (metrics.py): prometheus counters and histograms

Source:
- src/oslearn/events/models.py (WorkflowEvent, EventType)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Union

from oslearn.events.models import EventType, WorkflowEvent


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Sinks that can be enabled through OSLEARN_EVENT_SINKS."""

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Destination for workflow events.

    The engine already guards emit() calls, but a sink should still avoid
    raising for problems it can handle itself.
    """

    @abstractmethod
    async def emit(self, event: WorkflowEvent) -> None:
        """Publish one event."""

    async def close(self) -> None:
        """Release sink resources. No-op by default."""


def describe_event(event: WorkflowEvent) -> str:
    """One-line human summary of an event for log output.

    Example:
        >>> describe_event(WorkflowEvent(
        ...     event_type=EventType.STAGE_TRANSITION,
        ...     details={"from_stage": 1, "to_stage": 2},
        ... ))
        'Curriculum stage 1 -> 2'
    """
    details = event.details
    run = event.run_id or "-"
    if event.event_type == EventType.STEP_TRANSITION:
        return f"Contribution run {run} entered {details.get('to_step', '?')}"
    if event.event_type == EventType.COMPLETION:
        return f"Contribution run {run} opened {details.get('pr_url', 'a pull request')}"
    if event.event_type == EventType.ERROR:
        return (
            f"Contribution run {run} failed at {details.get('step', '?')} "
            f"({details.get('failure_kind', 'unknown')})"
        )
    return (
        f"Curriculum stage {details.get('from_stage', '?')} -> "
        f"{details.get('to_stage', '?')}"
    )


class LoggingEventEmitter(EventEmitter):
    """Writes each event as a log record.

    Failed runs are logged at ERROR, except duplicate submissions, which
    are the learner re-running a finished course and logged at INFO.
    Everything else is INFO.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    def level_for(self, event: WorkflowEvent) -> int:
        if event.event_type != EventType.ERROR:
            return logging.INFO
        if event.details.get("failure_kind") == "duplicate_submission":
            return logging.INFO
        return logging.ERROR

    async def emit(self, event: WorkflowEvent) -> None:
        self._logger.log(
            self.level_for(event),
            describe_event(event),
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Delivers each event to every child sink concurrently.

    A failing child is logged and skipped; the others still receive the
    event.
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = list(emitters or [])

    def add_emitter(self, emitter: EventEmitter) -> None:
        self._emitters.append(emitter)

    @property
    def emitters(self) -> List[EventEmitter]:
        """Child sinks, as a copy."""
        return list(self._emitters)

    async def emit(self, event: WorkflowEvent) -> None:
        results = await asyncio.gather(
            *(emitter.emit(event) for emitter in self._emitters),
            return_exceptions=True,
        )
        self._log_failures("emit", results, event)

    async def close(self) -> None:
        results = await asyncio.gather(
            *(emitter.close() for emitter in self._emitters),
            return_exceptions=True,
        )
        self._log_failures("close", results)

    def _log_failures(
        self,
        action: str,
        results: Sequence[object],
        event: Optional[WorkflowEvent] = None,
    ) -> None:
        for emitter, result in zip(self._emitters, results):
            if isinstance(result, Exception):
                logger.error(
                    "Event sink %s failed to %s: %s",
                    type(emitter).__name__,
                    action,
                    result,
                    extra={
                        "emitter_type": type(emitter).__name__,
                        "event_type": event.event_type.value if event else None,
                        "run_id": event.run_id if event else None,
                    },
                )


class NullEventEmitter(EventEmitter):
    """Discards every event."""

    async def emit(self, event: WorkflowEvent) -> None:
        return None


def create_event_emitter(
    sink_types: Optional[Sequence[Union[EventSinkType, str]]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Build the emitter for the configured sinks.

    Args:
        sink_types: Sink types or their names. Empty or None means logging
                    only. Repeated entries are ignored.
        logger_name: Logger used by the logging sink.

    Returns:
        The single sink, or a CompositeEventEmitter over several.

    Raises:
        ValueError: If a sink name is unknown.

    Example:
        >>> emitter = create_event_emitter(["logging", "metrics"])
        >>> isinstance(emitter, CompositeEventEmitter)
        True
    """
    requested: List[EventSinkType] = []
    for sink in sink_types or [EventSinkType.LOGGING]:
        sink_type = EventSinkType(sink)
        if sink_type not in requested:
            requested.append(sink_type)

    emitters: List[EventEmitter] = []
    for sink_type in requested:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        else:
            # metrics.py imports this module
            from oslearn.events.metrics import MetricsEventEmitter

            emitters.append(MetricsEventEmitter())

    if len(emitters) == 1:
        return emitters[0]
    return CompositeEventEmitter(emitters)
