"""Event emitter implementations for workflow observability.

This module defines an abstract EventEmitter interface and concrete
implementations for different event sinks:

- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- NullEventEmitter: Discards events

The emitter abstraction allows runs to emit events without coupling to
specific monitoring infrastructure.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from src.triage.events.models import EventType, WorkflowEvent


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks supported by the triage runner.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics (counters, histograms).
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for workflow event emitters.

    Implementations should be:
    - Async-safe: emit() is called from the run's event loop
    - Fault-tolerant: failures should be logged, not raised into the run
    """

    @abstractmethod
    async def emit(self, event: WorkflowEvent) -> None:
        """Emit a workflow event.

        Args:
            event: The workflow event to emit.
        """
        pass

    async def close(self) -> None:
        """Close the emitter and release resources.

        The default implementation does nothing.
        """
        pass


class LoggingEventEmitter(EventEmitter):
    """Event emitter that logs events using structured logging.

    Events are logged at different levels based on event type:

    - STATE_TRANSITION: DEBUG level
    - STEP_COMPLETED: INFO level
    - COMPLETION: INFO level
    - ERROR: ERROR level

    Attributes:
        logger: The logger instance used for event emission.

    Example:
        >>> emitter = LoggingEventEmitter()
        >>> await emitter.emit(event)
        # Logs: INFO - Workflow event: step_completed for issue-triager-workflow
    """

    def __init__(self, logger_name: Optional[str] = None):
        """Initialize the logging event emitter.

        Args:
            logger_name: Optional logger name. If not provided, uses
                         the module logger.
        """
        self._logger = (
            logging.getLogger(logger_name)
            if logger_name
            else logger
        )
        self._log_level_map = {
            EventType.STATE_TRANSITION: logging.DEBUG,
            EventType.STEP_COMPLETED: logging.INFO,
            EventType.COMPLETION: logging.INFO,
            EventType.ERROR: logging.ERROR,
        }

    async def emit(self, event: WorkflowEvent) -> None:
        log_level = self._log_level_map.get(event.event_type, logging.INFO)
        self._logger.log(
            log_level,
            "Workflow event: %s for %s",
            event.event_type.value,
            event.workflow_id,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Event emitter that delegates to multiple child emitters.

    Failures in one emitter do not affect others; each emitter is called
    independently and errors are logged but not propagated.

    Example:
        >>> composite = CompositeEventEmitter(
        ...     [LoggingEventEmitter(), MetricsEventEmitter()]
        ... )
        >>> await composite.emit(event)  # Emits to both sinks
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = list(emitters or [])

    @property
    def emitters(self) -> List[EventEmitter]:
        """Get the list of child emitters (read-only copy)."""
        return list(self._emitters)

    async def emit(self, event: WorkflowEvent) -> None:
        """Emit event to all child emitters.

        Args:
            event: The workflow event to emit.
        """
        for emitter in self._emitters:
            try:
                await emitter.emit(event)
            except Exception as e:
                logger.error(
                    "Failed to emit event to %s: %s",
                    type(emitter).__name__,
                    str(e),
                    extra={
                        "emitter_type": type(emitter).__name__,
                        "event_type": event.event_type.value,
                        "run_id": event.run_id,
                    },
                )

    async def close(self) -> None:
        for emitter in self._emitters:
            try:
                await emitter.close()
            except Exception as e:
                logger.error(
                    "Failed to close emitter %s: %s",
                    type(emitter).__name__,
                    str(e),
                )


class NullEventEmitter(EventEmitter):
    """Event emitter that discards all events."""

    async def emit(self, event: WorkflowEvent) -> None:
        pass


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Create an event emitter for the requested sink types.

    If multiple sink types are requested, a CompositeEventEmitter is
    returned that delegates to all of them.

    Args:
        sink_types: Sink types to enable. If None or empty, returns a
                    LoggingEventEmitter.
        logger_name: Optional logger name for the LoggingEventEmitter.

    Example:
        >>> emitter = create_event_emitter([EventSinkType.LOGGING, EventSinkType.METRICS])
        >>> isinstance(emitter, CompositeEventEmitter)
        True
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    emitters: List[EventEmitter] = []

    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # Imported here so metrics.py can import from this module
            from src.triage.events.metrics import MetricsEventEmitter

            emitters.append(MetricsEventEmitter())
        else:
            logger.warning(
                "Unknown event sink type: %s, skipping",
                sink_type,
            )

    if not emitters:
        return LoggingEventEmitter(logger_name=logger_name)

    if len(emitters) == 1:
        return emitters[0]

    return CompositeEventEmitter(emitters)
