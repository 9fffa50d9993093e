"""Step/workflow engine.

Chains independently testable steps into a directed sequence, threading
typed data between them through mappings and recording each step's
output per run:

- Step: named unit of work with validated input and output
- Mapping: synchronous transform of the run context between steps
- WorkflowBuilder / create_workflow: assemble entries, then commit()
- Workflow: immutable, reusable definition
- WorkflowRun: one execution ending in success, failed or suspended
"""

from src.triage.workflow.builder import WorkflowBuilder, create_workflow
from src.triage.workflow.context import RunContext
from src.triage.workflow.errors import (
    DuplicateStepResultError,
    InvalidRunTransitionError,
    MappingError,
    MissingStepResultError,
    StepExecutionError,
    StepSuspended,
    StepValidationError,
    UnknownStepDependencyError,
    WorkflowCommittedError,
    WorkflowDefinitionError,
    WorkflowError,
    WorkflowValidationError,
)
from src.triage.workflow.mapping import Mapping
from src.triage.workflow.models import (
    VALID_RUN_TRANSITIONS,
    RunStatus,
    RunTransition,
    WorkflowResult,
    is_terminal_status,
    is_valid_run_transition,
)
from src.triage.workflow.run import WorkflowRun
from src.triage.workflow.step import RunMetadata, Step, create_step
from src.triage.workflow.workflow import MappingEntry, StepEntry, Workflow

__all__ = [
    # Definition
    "Step",
    "create_step",
    "RunMetadata",
    "Mapping",
    "WorkflowBuilder",
    "create_workflow",
    "Workflow",
    "StepEntry",
    "MappingEntry",
    # Execution
    "RunContext",
    "WorkflowRun",
    "WorkflowResult",
    "RunStatus",
    "RunTransition",
    "VALID_RUN_TRANSITIONS",
    "is_valid_run_transition",
    "is_terminal_status",
    # Errors
    "WorkflowError",
    "WorkflowDefinitionError",
    "WorkflowCommittedError",
    "UnknownStepDependencyError",
    "WorkflowValidationError",
    "StepValidationError",
    "StepExecutionError",
    "StepSuspended",
    "MappingError",
    "MissingStepResultError",
    "DuplicateStepResultError",
    "InvalidRunTransitionError",
]
