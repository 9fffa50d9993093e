"""Workflow run state machine models.

This module defines the data models for a single workflow run:
- RunStatus: Enum of run statuses
- RunTransition: Record of a status change with timestamp
- WorkflowResult: Terminal outcome of a run
- VALID_RUN_TRANSITIONS: Map defining allowed status transitions

The models use Pydantic for validation, consistent with the domain
records in src/triage/models.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Statuses a workflow run moves through.

    Status Flow:
        pending → running → success | failed | suspended

    Attributes:
        PENDING: Run created, start() not called yet.
        RUNNING: Entries are being executed in order.
        SUCCESS: Every entry completed; the final value is available.
        FAILED: A step or mapping raised; no further entries executed.
        SUSPENDED: A step explicitly requested suspension.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SUSPENDED = "suspended"


class RunTransition(BaseModel):
    """Record of a run status transition."""

    model_config = ConfigDict(frozen=True)

    from_status: RunStatus
    to_status: RunStatus
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the transition occurred (UTC timezone)",
    )


# Valid run transitions map
#
# - A run starts exactly once (PENDING → RUNNING)
# - RUNNING ends in exactly one terminal status
# - Terminal statuses have no outgoing transitions; runs are not reused
VALID_RUN_TRANSITIONS: Dict[RunStatus, List[RunStatus]] = {
    RunStatus.PENDING: [
        RunStatus.RUNNING,
    ],
    RunStatus.RUNNING: [
        RunStatus.SUCCESS,
        RunStatus.FAILED,
        RunStatus.SUSPENDED,
    ],
    RunStatus.SUCCESS: [],
    RunStatus.FAILED: [],
    RunStatus.SUSPENDED: [],
}


def is_valid_run_transition(from_status: RunStatus, to_status: RunStatus) -> bool:
    """Check if a run status transition is valid.

    Example:
        >>> is_valid_run_transition(RunStatus.PENDING, RunStatus.RUNNING)
        True
        >>> is_valid_run_transition(RunStatus.SUCCESS, RunStatus.RUNNING)
        False
    """
    return to_status in VALID_RUN_TRANSITIONS.get(from_status, [])


def is_terminal_status(status: RunStatus) -> bool:
    """Check if a status has no outgoing transitions."""
    return len(VALID_RUN_TRANSITIONS.get(status, [])) == 0


class WorkflowResult(BaseModel):
    """Terminal outcome of a workflow run.

    Exactly one of the status-specific field groups is populated:
    - SUCCESS: result holds the final computed value
    - FAILED: error holds the originating exception and error_message
      a human-readable "{entry}: {cause}" description
    - SUSPENDED: suspended_step and suspend_payload describe the wait

    Attributes:
        run_id: Identifier of the run that produced this result.
        workflow_id: Identifier of the executed workflow.
        status: Terminal run status.
        result: Final value of a successful run.
        error: Exception that failed the run.
        error_message: Human-readable failure description.
        suspended_step: Key of the step that requested suspension.
        suspend_payload: Data passed by the suspending step.
        steps: Outputs recorded per step key, in execution order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    run_id: str
    workflow_id: str
    status: RunStatus
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    error_message: Optional[str] = None
    suspended_step: Optional[str] = None
    suspend_payload: Optional[Any] = None
    steps: Mapping[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS
