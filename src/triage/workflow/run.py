"""Execution of a committed workflow against one input.

A WorkflowRun owns the RunContext of a single execution. It walks the
workflow's entries strictly in order:
- A step entry receives the current value, and its validated output is
  recorded under the entry's key before the next entry executes
- A mapping entry rewrites the current value from the RunContext

The run ends in exactly one terminal status. Any error raised by a step
or mapping fails the run immediately; the error is kept on the result
with the label of the entry that raised it. Only a step calling
RunMetadata.suspend() can suspend a run.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import ValidationError

from src.triage.events.emitter import EventEmitter, NullEventEmitter
from src.triage.events.models import EventType, WorkflowEvent
from src.triage.workflow.context import RunContext
from src.triage.workflow.errors import (
    InvalidRunTransitionError,
    StepSuspended,
    WorkflowValidationError,
)
from src.triage.workflow.models import (
    RunStatus,
    RunTransition,
    WorkflowResult,
    is_valid_run_transition,
)
from src.triage.workflow.step import RunMetadata
from src.triage.workflow.workflow import StepEntry, WorkflowEntry

if TYPE_CHECKING:
    from src.triage.workflow.workflow import Workflow


logger = logging.getLogger(__name__)


class WorkflowRun:
    """One stateful execution of a Workflow.

    A run is single-use: start() moves it out of PENDING and it cannot be
    started again. Runs are not shared between concurrent callers; create
    one run per input with Workflow.create_run().

    Attributes:
        run_id: Unique identifier of this run.
        workflow: The executed workflow (shared, read-only).
        status: Current run status.
        history: Ordered status transitions with timestamps.
        context: The RunContext, available once start() was called.
        result: The terminal WorkflowResult, once the run finished.

    Example:
        >>> run = workflow.create_run()
        >>> result = await run.start({"issue_reference": {...}})
        >>> result.status
        <RunStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        workflow: "Workflow",
        event_emitter: Optional[EventEmitter] = None,
        run_id: Optional[str] = None,
    ):
        self.run_id = run_id or uuid.uuid4().hex
        self.workflow = workflow
        self.event_emitter = event_emitter or NullEventEmitter()
        self.status = RunStatus.PENDING
        self.history: List[RunTransition] = []
        self.context: Optional[RunContext] = None
        self.result: Optional[WorkflowResult] = None

    async def start(self, input_data: Any) -> WorkflowResult:
        """Execute every entry of the workflow against the input.

        Args:
            input_data: The run input; validated against the workflow's
                input model when one is declared.

        Returns:
            The terminal WorkflowResult (success, failed or suspended).

        Raises:
            InvalidRunTransitionError: If the run was already started.
        """
        await self._transition(RunStatus.RUNNING)
        started_at = time.monotonic()

        logger.info(
            "Starting workflow run",
            extra={
                "workflow_id": self.workflow.id,
                "run_id": self.run_id,
                "entries": len(self.workflow.entries),
            },
        )

        try:
            init_data = self._validate_workflow_value(input_data, "input")
        except WorkflowValidationError as exc:
            self.context = RunContext(self.run_id, self.workflow.id, init_data=input_data)
            return await self._fail("input", exc)

        self.context = RunContext(self.run_id, self.workflow.id, init_data=init_data)
        value: Any = init_data

        for entry in self.workflow.entries:
            try:
                value = await self._execute_entry(entry, value)
            except StepSuspended as suspension:
                return await self._suspend(entry, suspension)
            except Exception as exc:
                return await self._fail(entry.label, exc)

        try:
            final_value = self._validate_workflow_value(value, "output")
        except WorkflowValidationError as exc:
            return await self._fail("output", exc)

        return await self._succeed(final_value, time.monotonic() - started_at)

    async def _execute_entry(self, entry: WorkflowEntry, value: Any) -> Any:
        """Execute one entry and return the value for the next entry."""
        assert self.context is not None

        if not isinstance(entry, StepEntry):
            return entry.mapping.apply(self.context)

        metadata = RunMetadata(
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            step_id=entry.step.id,
            step_key=entry.key,
            position=entry.position,
        )

        step_started = time.monotonic()
        output = await entry.step.run(value, metadata)
        duration = time.monotonic() - step_started

        self.context.record(entry.key, output)

        await self._emit(
            EventType.STEP_COMPLETED,
            {
                "step_key": entry.key,
                "position": entry.position,
                "duration_seconds": round(duration, 6),
            },
        )
        return output

    def _validate_workflow_value(self, value: Any, phase: str) -> Any:
        model = (
            self.workflow.input_model if phase == "input" else self.workflow.output_model
        )
        if model is None:
            return value
        if isinstance(value, model):
            return value
        try:
            if hasattr(value, "model_dump"):
                value = value.model_dump()
            return model.model_validate(value)
        except ValidationError as e:
            raise WorkflowValidationError(self.workflow.id, phase, cause=e) from e

    async def _transition(self, to_status: RunStatus) -> None:
        """Move the run to a new status and record the transition.

        Raises:
            InvalidRunTransitionError: If the transition is not allowed.
        """
        from_status = self.status
        if not is_valid_run_transition(from_status, to_status):
            logger.warning(
                "Invalid run transition attempted",
                extra={
                    "run_id": self.run_id,
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                },
            )
            raise InvalidRunTransitionError(from_status, to_status)

        self.history.append(
            RunTransition(
                from_status=from_status,
                to_status=to_status,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self.status = to_status

        await self._emit(
            EventType.STATE_TRANSITION,
            {"from_status": from_status.value, "to_status": to_status.value},
        )

    async def _succeed(self, value: Any, duration: float) -> WorkflowResult:
        await self._transition(RunStatus.SUCCESS)
        self.result = self._build_result(result=value)

        logger.info(
            "Workflow run succeeded",
            extra={
                "workflow_id": self.workflow.id,
                "run_id": self.run_id,
                "duration_seconds": round(duration, 3),
            },
        )
        await self._emit(EventType.COMPLETION, {"duration_seconds": round(duration, 6)})
        return self.result

    async def _fail(self, entry_label: str, exc: BaseException) -> WorkflowResult:
        """Transition to FAILED, keeping the originating error."""
        error_message = f"{entry_label}: {exc}"
        logger.exception(
            "Workflow run failed",
            extra={
                "workflow_id": self.workflow.id,
                "run_id": self.run_id,
                "entry": entry_label,
            },
            exc_info=exc,
        )

        await self._transition(RunStatus.FAILED)
        self.result = self._build_result(error=exc, error_message=error_message)

        await self._emit(
            EventType.ERROR,
            {
                "entry": entry_label,
                "error_message": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return self.result

    async def _suspend(self, entry: WorkflowEntry, suspension: StepSuspended) -> WorkflowResult:
        logger.info(
            "Workflow run suspended",
            extra={
                "workflow_id": self.workflow.id,
                "run_id": self.run_id,
                "entry": entry.label,
            },
        )
        await self._transition(RunStatus.SUSPENDED)
        self.result = self._build_result(
            suspended_step=suspension.step_id,
            suspend_payload=suspension.payload,
        )
        return self.result

    def _build_result(self, **fields: Any) -> WorkflowResult:
        steps = dict(self.context.results) if self.context is not None else {}
        return WorkflowResult(
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            status=self.status,
            steps=steps,
            **fields,
        )

    async def _emit(self, event_type: EventType, details: dict) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the run."""
        try:
            await self.event_emitter.emit(
                WorkflowEvent(
                    event_type=event_type,
                    workflow_id=self.workflow.id,
                    run_id=self.run_id,
                    details=details,
                )
            )
        except Exception:
            logger.exception(
                "Failed to emit workflow event",
                extra={
                    "event_type": event_type.value,
                    "run_id": self.run_id,
                },
            )
