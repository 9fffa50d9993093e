"""Builder that assembles and commits workflows.

The builder accumulates an ordered list of step and mapping entries and
freezes them into an immutable Workflow on commit(). Commit performs no
execution; it checks that the definition is well formed:
- The workflow has at least one entry
- Every step entry has a unique key
- Every dependency declared by a mapping is produced by an earlier step

After commit() the builder cannot be reused.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Type, Union

from pydantic import BaseModel

from src.triage.workflow.errors import (
    UnknownStepDependencyError,
    WorkflowCommittedError,
    WorkflowDefinitionError,
)
from src.triage.workflow.mapping import Mapping, MappingFunction
from src.triage.workflow.step import Step, StepRef
from src.triage.workflow.workflow import (
    MappingEntry,
    StepEntry,
    Workflow,
    WorkflowEntry,
)


logger = logging.getLogger(__name__)


class WorkflowBuilder:
    """Append-only builder for a Workflow.

    Example:
        >>> workflow = (
        ...     create_workflow("double-then-sum", input_model=Numbers)
        ...     .then(double)
        ...     .map(lambda ctx: {"values": ctx.get_step_result(double).values},
        ...          requires=[double])
        ...     .then(sum_step)
        ...     .commit()
        ... )
    """

    def __init__(
        self,
        id: str,
        input_model: Optional[Type[BaseModel]] = None,
        output_model: Optional[Type[BaseModel]] = None,
        description: str = "",
    ):
        if not id or not id.strip():
            raise ValueError("workflow id cannot be empty")
        self.id = id
        self.input_model = input_model
        self.output_model = output_model
        self.description = description
        self._entries: List[WorkflowEntry] = []
        self._occurrences: Dict[str, int] = {}
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    def _ensure_open(self) -> None:
        if self._committed:
            raise WorkflowCommittedError(self.id)

    def then(self, entry: Union[Step, Mapping]) -> "WorkflowBuilder":
        """Append a step or a mapping.

        A step declared more than once is recorded under "{id}#{n}" for
        its n-th occurrence (n >= 2).

        Raises:
            WorkflowCommittedError: If the builder is already committed.
            TypeError: If entry is neither a Step nor a Mapping.
        """
        self._ensure_open()
        position = len(self._entries)

        if isinstance(entry, Mapping):
            self._entries.append(MappingEntry(mapping=entry, position=position))
            return self

        if not isinstance(entry, Step):
            raise TypeError(
                f"workflow entries must be Step or Mapping, got {type(entry).__name__}"
            )

        occurrence = self._occurrences.get(entry.id, 0) + 1
        self._occurrences[entry.id] = occurrence
        key = entry.id if occurrence == 1 else f"{entry.id}#{occurrence}"

        self._entries.append(StepEntry(step=entry, key=key, position=position))
        return self

    def map(
        self,
        fn: MappingFunction,
        requires: Iterable[StepRef] = (),
        name: Optional[str] = None,
    ) -> "WorkflowBuilder":
        """Append a mapping built from a function.

        Args:
            fn: Function receiving the RunContext.
            requires: Steps (or step keys) the function reads.
            name: Optional name for errors and logs.
        """
        return self.then(Mapping(fn, requires=requires, name=name))

    def commit(self) -> Workflow:
        """Freeze the entries into an immutable Workflow.

        Raises:
            WorkflowCommittedError: If already committed.
            WorkflowDefinitionError: If the workflow is empty or has
                duplicate step keys.
            UnknownStepDependencyError: If a mapping requires a step that
                is not declared before it.
        """
        self._ensure_open()

        if not self._entries:
            raise WorkflowDefinitionError(f"Workflow {self.id!r} has no entries")

        self._validate_entries()
        self._committed = True

        workflow = Workflow(
            id=self.id,
            entries=tuple(self._entries),
            input_model=self.input_model,
            output_model=self.output_model,
            description=self.description,
        )

        logger.debug(
            "Workflow committed",
            extra={
                "workflow_id": self.id,
                "entries": len(self._entries),
                "step_keys": list(workflow.step_keys),
            },
        )

        return workflow

    def _validate_entries(self) -> None:
        seen: Set[str] = set()
        for entry in self._entries:
            if isinstance(entry, StepEntry):
                if entry.key in seen:
                    raise WorkflowDefinitionError(
                        f"Workflow {self.id!r} declares step key {entry.key!r} twice"
                    )
                seen.add(entry.key)
                continue

            for key in entry.mapping.requires:
                if key not in seen:
                    raise UnknownStepDependencyError(
                        entry.mapping.name, key, entry.position
                    )


def create_workflow(
    id: str,
    input_model: Optional[Type[BaseModel]] = None,
    output_model: Optional[Type[BaseModel]] = None,
    description: str = "",
) -> WorkflowBuilder:
    """Start building a workflow."""
    return WorkflowBuilder(
        id=id,
        input_model=input_model,
        output_model=output_model,
        description=description,
    )
