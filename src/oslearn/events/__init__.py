"""Observability for contribution runs and curriculum navigation.

WorkflowEvents go to one or more sinks chosen by OSLEARN_EVENT_SINKS: a
logging sink, a prometheus sink, or both through CompositeEventEmitter.
The engine defaults to NullEventEmitter when none is given.
"""

from oslearn.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from oslearn.events.metrics import (
    MetricsEventEmitter,
    WorkflowMetrics,
    generate_metrics_output,
    get_metrics,
)
from oslearn.events.models import EventType, WorkflowEvent

__all__ = [
    # Event models
    "EventType",
    "WorkflowEvent",
    # Event emitters
    "EventEmitter",
    "LoggingEventEmitter",
    "CompositeEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    # Metrics
    "WorkflowMetrics",
    "get_metrics",
    "generate_metrics_output",
    # Factory and configuration
    "EventSinkType",
    "create_event_emitter",
]
