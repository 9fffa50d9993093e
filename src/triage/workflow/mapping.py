"""Pure transforms placed between two steps.

A Mapping reshapes or combines the run input and earlier step outputs
into the next step's input. It reads the RunContext by step key, never
by position, so a step can consume the output of any earlier step without
re-plumbing the steps in between.

Mappings may declare the step keys they read. Declared dependencies are
checked when the workflow is committed; undeclared reads are still
checked at run time by the RunContext.
"""

import inspect
from typing import Any, Callable, Iterable, Optional, Tuple

from src.triage.workflow.context import RunContext
from src.triage.workflow.errors import MappingError
from src.triage.workflow.step import StepRef, step_key_of


MappingFunction = Callable[[RunContext], Any]


class Mapping:
    """A synchronous, side-effect-free transform of the run context.

    Attributes:
        fn: Function receiving the RunContext and returning the next
            entry's input.
        requires: Step keys the function reads.
        name: Human-readable name used in errors and logs.
    """

    def __init__(
        self,
        fn: MappingFunction,
        requires: Iterable[StepRef] = (),
        name: Optional[str] = None,
    ):
        if not callable(fn):
            raise TypeError("mapping function must be callable")
        self.fn = fn
        self.requires: Tuple[str, ...] = tuple(step_key_of(ref) for ref in requires)
        self.name = name or getattr(fn, "__name__", "mapping")

    def __repr__(self) -> str:
        return f"Mapping(name={self.name!r}, requires={self.requires!r})"

    def apply(self, context: RunContext) -> Any:
        """Evaluate the mapping against the current context.

        Raises:
            MappingError: If the function returns an awaitable or None.
            MissingStepResultError: If it reads an unrecorded step.
        """
        value = self.fn(context)
        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            raise MappingError(
                f"Mapping {self.name!r} returned an awaitable; mappings must be synchronous"
            )
        if value is None:
            raise MappingError(f"Mapping {self.name!r} returned no value")
        return value
