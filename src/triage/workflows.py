"""The issue triage workflow.

get-issue -> get-repository-labels -> triage -> add-labels, with
mappings between the steps that assemble each step's input from the
run input and earlier step outputs:

    {issue_reference}
      get-issue              -> {issue}
      map                    -> {owner, repo}
      get-repository-labels  -> {labels, total_count}
      map                    -> {issue, labels}
      triage                 -> {labels}
      map                    -> {issue_reference, labels}
      add-labels             -> {success, message, applied}
      map                    -> {success, message, labels}

Source:
- src/triage/steps.py (step factories)
- src/triage/workflow/builder.py (create_workflow)
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from src.triage.classifier.agent import TriagerAgent
from src.triage.models import IssueReference, LabelAssignment
from src.triage.steps import (
    IssueTracker,
    create_add_labels_step,
    create_classify_step,
    create_fetch_issue_step,
    create_list_labels_step,
)
from src.triage.workflow.builder import create_workflow
from src.triage.workflow.context import RunContext
from src.triage.workflow.workflow import Workflow


TRIAGE_WORKFLOW_ID = "issue-triager-workflow"


class TriageWorkflowInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue_reference: IssueReference


class TriageWorkflowOutput(BaseModel):
    """Final summary of a triage run.

    Attributes:
        success: Whether the labels were applied (or nothing had to be).
        message: Human-readable outcome of the add-labels step.
        labels: The recommended labels with their reasons.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    labels: tuple[LabelAssignment, ...] = Field(default_factory=tuple)


def create_triage_workflow(
    tracker: IssueTracker,
    agent: TriagerAgent,
    apply_labels: bool = True,
) -> Workflow:
    """Assemble and commit the triage workflow.

    Args:
        tracker: Issue tracker used to read the issue and write labels.
        agent: Agent that recommends labels.
        apply_labels: When False, add-labels runs in dry-run mode.

    Returns:
        The committed workflow. It may be run any number of times.
    """
    fetch_issue = create_fetch_issue_step(tracker)
    list_labels = create_list_labels_step(tracker)
    classify = create_classify_step(agent)
    add_labels = create_add_labels_step(tracker, apply=apply_labels)

    def repository_of_issue(ctx: RunContext) -> Dict[str, Any]:
        reference = ctx.get_init_data().issue_reference
        return {"owner": reference.owner, "repo": reference.repo}

    def classify_input(ctx: RunContext) -> Dict[str, Any]:
        return {
            "issue": ctx.get_step_result(fetch_issue).issue,
            "labels": ctx.get_step_result(list_labels).labels,
        }

    def add_labels_input(ctx: RunContext) -> Dict[str, Any]:
        return {
            "issue_reference": ctx.get_init_data().issue_reference,
            "labels": ctx.get_step_result(classify).labels,
        }

    def summary(ctx: RunContext) -> Dict[str, Any]:
        outcome = ctx.get_step_result(add_labels)
        return {
            "success": outcome.success,
            "message": outcome.message,
            "labels": ctx.get_step_result(classify).labels,
        }

    return (
        create_workflow(
            TRIAGE_WORKFLOW_ID,
            input_model=TriageWorkflowInput,
            output_model=TriageWorkflowOutput,
            description="A workflow that triages issues",
        )
        .then(fetch_issue)
        .map(repository_of_issue)
        .then(list_labels)
        .map(classify_input, requires=[fetch_issue, list_labels])
        .then(classify)
        .map(add_labels_input, requires=[classify])
        .then(add_labels)
        .map(summary, requires=[classify, add_labels])
        .commit()
    )
