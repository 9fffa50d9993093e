"""Exceptions raised by the workflow engine.

The engine distinguishes three error families:
- Definition errors: a workflow is assembled incorrectly (raised by the
  builder, before any run executes)
- Step and mapping errors: validation or execution failures inside one
  entry of a run (captured on the run result as a failure)
- Engine misuse: reading a step result that was never recorded, recording
  a result twice, or driving a run through an invalid status transition
"""

from typing import Any, Optional


class WorkflowError(Exception):
    """Base class for all workflow engine errors.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class WorkflowDefinitionError(WorkflowError):
    """Raised when a workflow definition is invalid."""


class WorkflowCommittedError(WorkflowDefinitionError):
    """Raised when a builder is modified or committed after commit()."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(
            f"Workflow {workflow_id!r} is already committed and cannot be changed"
        )


class UnknownStepDependencyError(WorkflowDefinitionError):
    """Raised at commit time when a mapping requires an unknown step.

    Attributes:
        mapping_name: Name of the mapping declaring the dependency.
        step_key: The step key that is not produced by an earlier entry.
        position: Position of the mapping in the workflow.
    """

    def __init__(self, mapping_name: str, step_key: str, position: int):
        self.mapping_name = mapping_name
        self.step_key = step_key
        self.position = position
        super().__init__(
            f"Mapping {mapping_name!r} at position {position} requires step "
            f"{step_key!r}, which is not declared before it"
        )


class StepValidationError(WorkflowError):
    """Raised when a step's input or output does not match its schema.

    Attributes:
        step_id: Identity of the step.
        phase: Either "input" or "output".
    """

    def __init__(
        self,
        step_id: str,
        phase: str,
        cause: Optional[BaseException] = None,
        detail: Optional[str] = None,
    ):
        self.step_id = step_id
        self.phase = phase
        reason = detail or (str(cause) if cause is not None else "invalid value")
        super().__init__(
            f"Invalid {phase} for step {step_id!r}: {reason}",
            cause=cause,
        )


class WorkflowValidationError(WorkflowError):
    """Raised when a run's input or final output does not match the
    workflow's declared schema.

    Attributes:
        workflow_id: Identifier of the workflow.
        phase: Either "input" or "output".
    """

    def __init__(self, workflow_id: str, phase: str, cause: Optional[BaseException] = None):
        self.workflow_id = workflow_id
        self.phase = phase
        super().__init__(
            f"Invalid {phase} for workflow {workflow_id!r}: {cause}",
            cause=cause,
        )


class StepExecutionError(WorkflowError):
    """Raised by a step to signal a failure with a human-readable cause."""


class StepSuspended(WorkflowError):
    """Raised by a step that requests suspension of its run.

    Steps raise this through RunMetadata.suspend(); the run transitions
    to the suspended status instead of failed.

    Attributes:
        step_id: Identity of the suspending step.
        payload: Data describing what the step is waiting for.
    """

    def __init__(self, step_id: str, payload: Any = None):
        self.step_id = step_id
        self.payload = payload
        super().__init__(f"Step {step_id!r} requested suspension")


class MappingError(WorkflowError):
    """Raised when a mapping fails or returns an unusable value."""


class MissingStepResultError(WorkflowError):
    """Raised when a run context is asked for a result it does not hold.

    Attributes:
        step_key: The requested step key.
        available: Step keys recorded so far.
    """

    def __init__(self, step_key: str, available: Optional[list[str]] = None):
        self.step_key = step_key
        self.available = available or []
        recorded = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"No result recorded for step {step_key!r} (recorded: {recorded})"
        )


class DuplicateStepResultError(WorkflowError):
    """Raised when a step key would be recorded twice in one run."""

    def __init__(self, step_key: str):
        self.step_key = step_key
        super().__init__(f"Result for step {step_key!r} is already recorded")


class InvalidRunTransitionError(WorkflowError):
    """Raised when a run is driven through an invalid status transition.

    Attributes:
        from_status: The current run status.
        to_status: The attempted target status.
    """

    def __init__(self, from_status: Any, to_status: Any):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid run transition from {getattr(from_status, 'value', from_status)} "
            f"to {getattr(to_status, 'value', to_status)}"
        )
