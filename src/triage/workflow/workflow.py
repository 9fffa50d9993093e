"""Committed, immutable workflow definitions.

A Workflow is an ordered sequence of entries, each either a step entry
(a Step plus the key its result is recorded under) or a mapping entry.
Workflows are produced by WorkflowBuilder.commit() and are read-only
afterwards: many runs, including concurrent ones, may share one Workflow
because every run owns its own RunContext.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple, Type, Union

from pydantic import BaseModel

from src.triage.workflow.mapping import Mapping
from src.triage.workflow.step import Step

if TYPE_CHECKING:
    from src.triage.events.emitter import EventEmitter
    from src.triage.workflow.run import WorkflowRun


@dataclass(frozen=True)
class StepEntry:
    """A step placed in a workflow.

    Attributes:
        step: The wrapped step.
        key: Key the step's output is recorded under in a run.
        position: Zero-based position in the workflow.
    """

    step: Step
    key: str
    position: int

    @property
    def label(self) -> str:
        return f"step {self.key}"


@dataclass(frozen=True)
class MappingEntry:
    """A mapping placed in a workflow."""

    mapping: Mapping
    position: int

    @property
    def label(self) -> str:
        return f"mapping {self.mapping.name}"


WorkflowEntry = Union[StepEntry, MappingEntry]


class Workflow:
    """An immutable, reusable sequence of steps and mappings.

    Attributes:
        id: Workflow identifier.
        description: Human-readable description.
        input_model: Optional schema for run input.
        output_model: Optional schema for the final value.
        entries: The ordered entries (read-only tuple).
    """

    def __init__(
        self,
        id: str,
        entries: Tuple[WorkflowEntry, ...],
        input_model: Optional[Type[BaseModel]] = None,
        output_model: Optional[Type[BaseModel]] = None,
        description: str = "",
    ):
        self._id = id
        self._entries = tuple(entries)
        self._input_model = input_model
        self._output_model = output_model
        self._description = description

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_model(self) -> Optional[Type[BaseModel]]:
        return self._input_model

    @property
    def output_model(self) -> Optional[Type[BaseModel]]:
        return self._output_model

    @property
    def entries(self) -> Tuple[WorkflowEntry, ...]:
        return self._entries

    @property
    def step_keys(self) -> Tuple[str, ...]:
        """Keys of all step entries, in workflow order."""
        return tuple(e.key for e in self._entries if isinstance(e, StepEntry))

    def create_run(
        self,
        event_emitter: Optional["EventEmitter"] = None,
    ) -> "WorkflowRun":
        """Create a fresh run of this workflow.

        Args:
            event_emitter: Optional sink for run events.

        Returns:
            A WorkflowRun in the pending status.
        """
        from src.triage.workflow.run import WorkflowRun

        return WorkflowRun(self, event_emitter=event_emitter)

    def __repr__(self) -> str:
        return f"Workflow(id={self._id!r}, entries={len(self._entries)})"
