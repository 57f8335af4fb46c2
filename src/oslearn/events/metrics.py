"""Prometheus counters for contribution runs and curriculum progress.

    oslearn_contribution_runs_total{result}               success / failure
    oslearn_contribution_failures_total{step,failure_kind}
    oslearn_contribution_duration_seconds                 start to terminal step
    oslearn_stage_transitions_total{to_stage}

GET /metrics serves the default registry; the counters move only when the
"metrics" sink is enabled.
"""

import logging
from typing import Any, Callable, Dict, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from oslearn.events.emitter import EventEmitter
from oslearn.events.models import EventType, WorkflowEvent


logger = logging.getLogger(__name__)


# Fork propagation alone can take most of a minute
RUN_DURATION_BUCKETS = (1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)


class WorkflowMetrics:
    """Collectors for one registry.

    Each instance registers its collectors, so a registry can only back
    one WorkflowMetrics. Tests pass a fresh CollectorRegistry.

    Example:
        >>> metrics = WorkflowMetrics(CollectorRegistry())
        >>> metrics.record_run_finished(success=True)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.runs_total = Counter(
            "oslearn_contribution_runs_total",
            "Contribution runs that reached a terminal step",
            labelnames=["result"],
            registry=self.registry,
        )
        self.failures_total = Counter(
            "oslearn_contribution_failures_total",
            "Failed contribution runs by the step they stopped at",
            labelnames=["step", "failure_kind"],
            registry=self.registry,
        )
        self.duration_seconds = Histogram(
            "oslearn_contribution_duration_seconds",
            "Wall time of a contribution run",
            buckets=RUN_DURATION_BUCKETS,
            registry=self.registry,
        )
        self.stage_transitions_total = Counter(
            "oslearn_stage_transitions_total",
            "Moves between curriculum stages",
            labelnames=["to_stage"],
            registry=self.registry,
        )

    def record_run_finished(self, success: bool) -> None:
        self.runs_total.labels(result="success" if success else "failure").inc()

    def record_failure(self, step: str, failure_kind: str) -> None:
        self.failures_total.labels(step=step, failure_kind=failure_kind).inc()

    def record_run_duration(self, duration_seconds: float) -> None:
        self.duration_seconds.observe(duration_seconds)

    def record_stage_transition(self, to_stage: str) -> None:
        self.stage_transitions_total.labels(to_stage=to_stage).inc()


_shared: Optional[WorkflowMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> WorkflowMetrics:
    """Metrics on `registry`, or the process-wide set on the default registry.

    A custom registry always gets a new WorkflowMetrics. The default one is
    created on first use and reused afterwards.
    """
    global _shared

    if registry is not None:
        return WorkflowMetrics(registry=registry)
    if _shared is None:
        _shared = WorkflowMetrics()
    return _shared


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Text exposition of `registry` (the default registry when None)."""
    return generate_latest(registry if registry is not None else REGISTRY)


def _detail(event: WorkflowEvent, key: str) -> str:
    return str(event.details.get(key, "unknown"))


class MetricsEventEmitter(EventEmitter):
    """Sink that turns run outcomes and stage moves into counter updates.

    Step transitions carry nothing worth counting and are skipped.
    """

    def __init__(
        self,
        metrics: Optional[WorkflowMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self._metrics = metrics if metrics is not None else get_metrics(registry)
        self._handlers: Dict[EventType, Callable[[WorkflowEvent], None]] = {
            EventType.COMPLETION: self._on_completion,
            EventType.ERROR: self._on_error,
            EventType.STAGE_TRANSITION: self._on_stage_transition,
        }

    @property
    def metrics(self) -> WorkflowMetrics:
        return self._metrics

    async def emit(self, event: WorkflowEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            return
        try:
            handler(event)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Could not record %s event in metrics: %s",
                event.event_type.value,
                e,
                extra={"event_type": event.event_type.value, "run_id": event.run_id},
            )

    def _on_completion(self, event: WorkflowEvent) -> None:
        self._metrics.record_run_finished(success=True)
        self._observe_duration(event.details.get("duration_seconds"))

    def _on_error(self, event: WorkflowEvent) -> None:
        self._metrics.record_run_finished(success=False)
        self._metrics.record_failure(
            step=_detail(event, "step"),
            failure_kind=_detail(event, "failure_kind"),
        )
        self._observe_duration(event.details.get("duration_seconds"))

    def _on_stage_transition(self, event: WorkflowEvent) -> None:
        self._metrics.record_stage_transition(_detail(event, "to_stage"))

    def _observe_duration(self, value: Any) -> None:
        if value is not None:
            self._metrics.record_run_duration(float(value))
