"""Workflow event models for observability.

This module defines the data models for workflow run events:
- EventType: Enum of all event types emitted by a run
- WorkflowEvent: Structured event with run metadata

The models use Pydantic for validation, consistent with the workflow
models in src/triage/workflow/models.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted by a workflow run.

    Attributes:
        STATE_TRANSITION: The run moved between statuses.
        STEP_COMPLETED: A step produced a validated output.
        ERROR: A step or mapping failed the run.
        COMPLETION: The run finished successfully.
    """

    STATE_TRANSITION = "state_transition"
    STEP_COMPLETED = "step_completed"
    ERROR = "error"
    COMPLETION = "completion"


class WorkflowEvent(BaseModel):
    """Structured event emitted by a workflow run.

    Details Field Conventions:
        For STATE_TRANSITION events:
            - from_status: Previous run status
            - to_status: New run status

        For STEP_COMPLETED events:
            - step_key: Key the output was recorded under
            - position: Entry position in the workflow
            - duration_seconds: Time spent in the step

        For ERROR events:
            - entry: Label of the failing entry ("step x" or "mapping y")
            - error_message: Human-readable error description
            - error_type: Exception class name

        For COMPLETION events:
            - duration_seconds: Total run time

    Example:
        >>> event = WorkflowEvent(
        ...     event_type=EventType.STEP_COMPLETED,
        ...     workflow_id="issue-triager-workflow",
        ...     run_id="6f1c...",
        ...     details={"step_key": "triage", "position": 4},
        ... )
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    workflow_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the executing workflow",
    )

    run_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the run",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten the event into a dictionary for structured logging.

        Example:
            >>> event.to_log_dict()["event_type"]
            'step_completed'
        """
        return {
            "event_type": self.event_type.value,
            "workflow_id": self.workflow_id,
            "run_id": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
