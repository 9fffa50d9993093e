"""Workflow event emission and metrics.

Event Emitters:
- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- MetricsEventEmitter: Emits events as Prometheus metrics
- NullEventEmitter: Discards events

Metrics:
- WorkflowMetrics: Container for all Prometheus metrics
- get_metrics: Get or create the metrics instance
- write_metrics_file: Write Prometheus text output for a textfile collector
"""

from src.triage.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from src.triage.events.metrics import (
    MetricsEventEmitter,
    WorkflowMetrics,
    generate_metrics_output,
    get_metrics,
    write_metrics_file,
)
from src.triage.events.models import EventType, WorkflowEvent

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
    "write_metrics_file",
    # Factory and configuration
    "EventSinkType",
    "create_event_emitter",
]
