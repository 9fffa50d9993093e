"""Per-run result cache and the read view handed to mappings.

A RunContext holds the validated run input and every step output
recorded so far, keyed by step key. It only grows during a run: each key
is written exactly once, and lookups of a key that was never recorded
raise instead of returning a default.

Recorded outputs are snapshots. Readers get their own copy, so mutating
a looked-up value never changes what later entries see for that step.
"""

import copy
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel

from src.triage.workflow.errors import DuplicateStepResultError, MissingStepResultError
from src.triage.workflow.step import StepRef, step_key_of


def snapshot(value: Any) -> Any:
    """Return a deep copy of a step value."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)


class RunContext:
    """Accumulated input and step results of one workflow run.

    A context is created per run and never shared between runs.

    Attributes:
        run_id: Identifier of the owning run.
        workflow_id: Identifier of the executing workflow.

    Example:
        >>> context = RunContext("run-1", "wf", init_data={"n": 1})
        >>> context.record("double", {"n": 2})
        >>> context.get_step_result("double")
        {'n': 2}
    """

    def __init__(self, run_id: str, workflow_id: str, init_data: Any):
        self.run_id = run_id
        self.workflow_id = workflow_id
        self._init_data = init_data
        self._results: Dict[str, Any] = {}

    def get_init_data(self) -> Any:
        """Return the run's original (validated) input."""
        return self._init_data

    def get_step_result(self, step: StepRef) -> Any:
        """Return the recorded output of a step.

        Args:
            step: A Step (looked up by its id, i.e. its first occurrence)
                or an explicit step key such as "add-labels#2".

        Raises:
            MissingStepResultError: If no result is recorded for the key.
        """
        key = step_key_of(step)
        if key not in self._results:
            raise MissingStepResultError(key, list(self._results))
        return snapshot(self._results[key])

    def has_result(self, step: StepRef) -> bool:
        return step_key_of(step) in self._results

    def record(self, step_key: str, output: Any) -> None:
        """Record a step output under its key.

        Raises:
            DuplicateStepResultError: If the key is already recorded.
        """
        if step_key in self._results:
            raise DuplicateStepResultError(step_key)
        self._results[step_key] = snapshot(output)

    @property
    def results(self) -> Mapping[str, Any]:
        """Read-only copy of recorded results in execution order."""
        return MappingProxyType({key: snapshot(value) for key, value in self._results.items()})

    @property
    def step_keys(self) -> List[str]:
        return list(self._results)
