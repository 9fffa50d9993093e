"""Atomic units of work for the workflow engine.

A Step pairs a stable identity with declared input and output schemas
(Pydantic models) and an async execution function. The engine validates
the raw input before calling the function and validates whatever the
function returns before recording it, so malformed data is rejected at
the step boundary rather than trusted.

Steps are opaque to the engine: side effects such as network or model
calls are the step's own responsibility, and the engine never retries
or rate-limits them.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from src.triage.workflow.errors import StepSuspended, StepValidationError


logger = logging.getLogger(__name__)


InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)

StepFunction = Callable[[Any, "RunMetadata"], Awaitable[Any]]


@dataclass(frozen=True)
class RunMetadata:
    """Run information handed to a step alongside its input.

    Attributes:
        run_id: Identifier of the current run.
        workflow_id: Identifier of the executing workflow.
        step_id: Identity of the step being executed.
        step_key: Key the step's result is recorded under.
        position: Position of the step entry in the workflow.
    """

    run_id: str
    workflow_id: str
    step_id: str
    step_key: str
    position: int

    def suspend(self, payload: Any = None) -> None:
        """Request suspension of the run, waiting for external input.

        Raises:
            StepSuspended: Always; the run transitions to suspended.
        """
        raise StepSuspended(self.step_key, payload)


def _coerce(model: Type[BaseModel], value: Any, context: Optional[dict] = None) -> BaseModel:
    """Validate a value against a model, accepting dicts or other models."""
    if isinstance(value, model) and context is None:
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump()
    return model.model_validate(value, context=context)


class Step(Generic[InputT, OutputT]):
    """A named unit of work with validated input and output.

    The same Step instance may be shared by many workflows and runs; it
    holds no per-run state.

    Attributes:
        id: Stable step identity, unique within a workflow in practice.
        input_model: Pydantic model describing the accepted input.
        output_model: Pydantic model describing the produced output.
        description: Optional human-readable description.

    Example:
        >>> class Numbers(BaseModel):
        ...     values: list[int]
        >>> class Total(BaseModel):
        ...     total: int
        >>> async def add(data: Numbers, metadata: RunMetadata) -> Total:
        ...     return Total(total=sum(data.values))
        >>> step = Step("sum", Numbers, Total, add)
    """

    def __init__(
        self,
        id: str,
        input_model: Type[InputT],
        output_model: Type[OutputT],
        execute: StepFunction,
        description: str = "",
    ):
        if not id or not id.strip():
            raise ValueError("step id cannot be empty")
        if not callable(execute):
            raise TypeError(f"execute for step {id!r} must be callable")
        self.id = id
        self.input_model = input_model
        self.output_model = output_model
        self.description = description
        self._execute = execute

    def __repr__(self) -> str:
        return f"Step(id={self.id!r})"

    def validate_input(self, raw_input: Any) -> InputT:
        """Validate raw input against the input model.

        Raises:
            StepValidationError: If the input does not match the schema.
        """
        try:
            return _coerce(self.input_model, raw_input)
        except ValidationError as e:
            raise StepValidationError(self.id, "input", cause=e) from e

    def validate_output(self, raw_output: Any, context: Optional[dict] = None) -> OutputT:
        """Validate a produced value against the output model.

        Args:
            raw_output: Value returned by the execution function.
            context: Optional Pydantic validation context.

        Raises:
            StepValidationError: If the output does not match the schema.
        """
        if raw_output is None:
            raise StepValidationError(self.id, "output", detail="step returned no output")
        try:
            return _coerce(self.output_model, raw_output, context)
        except ValidationError as e:
            raise StepValidationError(self.id, "output", cause=e) from e

    async def run(self, raw_input: Any, metadata: RunMetadata) -> OutputT:
        """Validate input, execute the step, and validate its output.

        Args:
            raw_input: The value produced by the previous entry (or the
                run input for the first entry).
            metadata: Information about the current run.

        Returns:
            The validated output model instance.

        Raises:
            StepValidationError: If input or output is malformed.
            StepSuspended: If the step requested suspension.
            Exception: Whatever the execution function raises.
        """
        data = self.validate_input(raw_input)

        logger.debug(
            "Executing step",
            extra={
                "step_id": self.id,
                "run_id": metadata.run_id,
                "position": metadata.position,
            },
        )

        result = self._execute(data, metadata)
        if inspect.isawaitable(result):
            result = await result

        return self.validate_output(result)


def create_step(
    id: str,
    input_model: Type[InputT],
    output_model: Type[OutputT],
    description: str = "",
) -> Callable[[StepFunction], Step[InputT, OutputT]]:
    """Decorator turning an async function into a Step.

    Example:
        >>> @create_step("sum", Numbers, Total)
        ... async def sum_step(data, metadata):
        ...     return {"total": sum(data.values)}
        >>> sum_step.id
        'sum'
    """

    def decorator(fn: StepFunction) -> Step[InputT, OutputT]:
        return Step(
            id=id,
            input_model=input_model,
            output_model=output_model,
            execute=fn,
            description=description or (fn.__doc__ or "").strip(),
        )

    return decorator


StepRef = Union[Step, str]


def step_key_of(ref: StepRef) -> str:
    """Return the lookup key for a Step or a literal key string."""
    if isinstance(ref, Step):
        return ref.id
    return ref
