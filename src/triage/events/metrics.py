"""Prometheus metrics for workflow observability.

Metrics Defined:
- workflow_runs_total: Counter of finished runs by terminal status
- workflow_runs_in_progress: Gauge of runs currently executing
- workflow_run_duration_seconds: Histogram of successful run time
- workflow_step_duration_seconds: Histogram of time spent per step

The MetricsEventEmitter integrates with the event emission system to
update metrics from workflow events. The triage runner is a short-lived
process, so metrics are written to a file in Prometheus text format
(see write_metrics_file) for a textfile collector to pick up.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from src.triage.events.emitter import EventEmitter
from src.triage.events.models import EventType, WorkflowEvent


logger = logging.getLogger(__name__)


# Step and run durations are dominated by GitHub and LLM round trips
DEFAULT_DURATION_BUCKETS = (
    0.1,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
)

TERMINAL_STATUSES = ("success", "failed", "suspended")


class WorkflowMetrics:
    """Container for all workflow Prometheus metrics.

    Supports custom registries for testing.

    Metrics:
        runs_total: Counter of finished runs.
            Labels: workflow, status

        runs_in_progress: Gauge of executing runs.
            Labels: workflow

        run_duration_seconds: Histogram of successful run duration.
            Labels: workflow

        step_duration_seconds: Histogram of step duration.
            Labels: workflow, step

    Example:
        >>> metrics = WorkflowMetrics(registry=CollectorRegistry())
        >>> metrics.record_run_finished("issue-triager-workflow", "success")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize workflow metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.runs_total = Counter(
            "workflow_runs_total",
            "Total number of workflow runs by terminal status",
            labelnames=["workflow", "status"],
            registry=self.registry,
        )

        self.runs_in_progress = Gauge(
            "workflow_runs_in_progress",
            "Number of workflow runs currently executing",
            labelnames=["workflow"],
            registry=self.registry,
        )

        self.run_duration_seconds = Histogram(
            "workflow_run_duration_seconds",
            "Duration of successful workflow runs in seconds",
            labelnames=["workflow"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.step_duration_seconds = Histogram(
            "workflow_step_duration_seconds",
            "Time spent executing workflow steps in seconds",
            labelnames=["workflow", "step"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_run_started(self, workflow: str) -> None:
        self.runs_in_progress.labels(workflow=workflow).inc()

    def record_run_finished(self, workflow: str, status: str) -> None:
        """Record that a run reached a terminal status.

        Args:
            workflow: The workflow identifier.
            status: One of "success", "failed", "suspended".
        """
        self.runs_total.labels(workflow=workflow, status=status).inc()
        gauge = self.runs_in_progress.labels(workflow=workflow)
        if gauge._value.get() > 0:
            gauge.dec()

    def record_run_duration(self, workflow: str, duration_seconds: float) -> None:
        self.run_duration_seconds.labels(workflow=workflow).observe(duration_seconds)

    def record_step_duration(
        self,
        workflow: str,
        step: str,
        duration_seconds: float,
    ) -> None:
        self.step_duration_seconds.labels(
            workflow=workflow,
            step=step,
        ).observe(duration_seconds)


# Global metrics instance for the default registry
_default_metrics: Optional[WorkflowMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> WorkflowMetrics:
    """Get or create the workflow metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.
    """
    global _default_metrics

    if registry is not None:
        return WorkflowMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = WorkflowMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate metrics in Prometheus text format."""
    return generate_latest(registry or REGISTRY)


def write_metrics_file(
    path: Union[str, Path],
    registry: Optional[CollectorRegistry] = None,
) -> Path:
    """Write metrics in Prometheus text format to a file.

    The file is written next to its final location and renamed into
    place so a collector never reads a partial file.

    Returns:
        The path that was written.
    """
    target = Path(path)
    tmp_path = target.with_name(f".{target.name}.tmp")
    tmp_path.write_bytes(generate_metrics_output(registry))
    tmp_path.replace(target)
    logger.info("Metrics written", extra={"path": str(target)})
    return target


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    Handles:
    - STATE_TRANSITION: Tracks runs in progress and terminal statuses
    - STEP_COMPLETED: Records step duration
    - COMPLETION: Records run duration

    Attributes:
        metrics: The WorkflowMetrics instance to update.
    """

    def __init__(
        self,
        metrics: Optional[WorkflowMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        if metrics is not None:
            self._metrics = metrics
        else:
            self._metrics = get_metrics(registry)

    @property
    def metrics(self) -> WorkflowMetrics:
        return self._metrics

    async def emit(self, event: WorkflowEvent) -> None:
        """Update metrics based on the workflow event."""
        try:
            if event.event_type == EventType.STATE_TRANSITION:
                self._handle_state_transition(event)
            elif event.event_type == EventType.STEP_COMPLETED:
                self._handle_step_completed(event)
            elif event.event_type == EventType.COMPLETION:
                self._handle_completion(event)
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "run_id": event.run_id,
                },
            )

    def _handle_state_transition(self, event: WorkflowEvent) -> None:
        to_status = event.details.get("to_status")
        if to_status == "running":
            self._metrics.record_run_started(event.workflow_id)
        elif to_status in TERMINAL_STATUSES:
            self._metrics.record_run_finished(event.workflow_id, to_status)

    def _handle_step_completed(self, event: WorkflowEvent) -> None:
        duration = event.details.get("duration_seconds")
        step_key = event.details.get("step_key", "unknown")
        if duration is not None:
            self._metrics.record_step_duration(
                event.workflow_id,
                step_key,
                float(duration),
            )

    def _handle_completion(self, event: WorkflowEvent) -> None:
        duration = event.details.get("duration_seconds")
        if duration is not None:
            self._metrics.record_run_duration(event.workflow_id, float(duration))
