"""Concrete steps of the issue triage pipeline.

Each factory receives its collaborator (issue tracker or triager agent)
and returns a Step, so steps can be exercised with stubs and reused in
other workflows:

- get-issue: Fetch an issue with its current labels
- get-repository-labels: List the repository's label catalog
- triage: Ask the agent which catalog labels fit the issue
- add-labels: Apply the recommended labels to the issue

Source:
- src/triage/workflow/step.py (Step, RunMetadata)
- src/triage/classifier (agent, prompts, ClassifyInput/ClassifyOutput)
- src/triage/github/client.py (GitHubClient implements IssueTracker)
"""

import logging
from typing import List, Protocol, Sequence

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ConfigDict, Field

from src.triage.classifier.agent import TriagerAgent
from src.triage.classifier.models import ClassifyInput, ClassifyOutput
from src.triage.classifier.prompts import build_triage_prompt
from src.triage.models import Issue, IssueReference, LabelAssignment, LabelTag
from src.triage.workflow.errors import StepExecutionError
from src.triage.workflow.step import RunMetadata, Step


logger = logging.getLogger(__name__)


GET_ISSUE_STEP_ID = "get-issue"
GET_REPOSITORY_LABELS_STEP_ID = "get-repository-labels"
TRIAGE_STEP_ID = "triage"
ADD_LABELS_STEP_ID = "add-labels"


class IssueTracker(Protocol):
    """Issue tracker operations the triage steps depend on."""

    async def get_issue(self, reference: IssueReference) -> Issue:
        ...

    async def list_labels(self, owner: str, repo: str) -> List[LabelTag]:
        ...

    async def add_labels(
        self,
        reference: IssueReference,
        names: Sequence[str],
    ) -> List[LabelTag]:
        ...


class FetchIssueInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue_reference: IssueReference


class FetchIssueOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue: Issue


class ListLabelsInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)


class ListLabelsOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    labels: tuple[LabelTag, ...] = Field(default_factory=tuple)
    total_count: int = Field(..., ge=0)


class AddLabelsInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue_reference: IssueReference
    labels: tuple[LabelAssignment, ...] = Field(default_factory=tuple)


class AddLabelsOutput(BaseModel):
    """Outcome of applying labels.

    Attributes:
        success: False when the tracker rejected the change.
        message: Human-readable summary of what happened.
        applied: Labels on the issue after the change, when known.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    applied: tuple[LabelTag, ...] = Field(default_factory=tuple)


def create_fetch_issue_step(tracker: IssueTracker) -> Step[FetchIssueInput, FetchIssueOutput]:
    """Create the get-issue step."""

    async def fetch_issue(data: FetchIssueInput, metadata: RunMetadata) -> FetchIssueOutput:
        reference = data.issue_reference
        try:
            issue = await tracker.get_issue(reference)
        except Exception as e:
            raise StepExecutionError(
                f"Failed to fetch issue #{reference.number} from "
                f"{reference.full_repository}: {e}",
                cause=e,
            ) from e

        logger.info(
            "Issue fetched",
            extra={
                "issue_id": reference.issue_id,
                "run_id": metadata.run_id,
                "label_count": len(issue.labels),
            },
        )
        return FetchIssueOutput(issue=issue)

    return Step(
        id=GET_ISSUE_STEP_ID,
        input_model=FetchIssueInput,
        output_model=FetchIssueOutput,
        execute=fetch_issue,
        description="Fetch a GitHub issue with its current labels",
    )


def create_list_labels_step(tracker: IssueTracker) -> Step[ListLabelsInput, ListLabelsOutput]:
    """Create the get-repository-labels step."""

    async def list_labels(data: ListLabelsInput, metadata: RunMetadata) -> ListLabelsOutput:
        try:
            labels = await tracker.list_labels(data.owner, data.repo)
        except Exception as e:
            raise StepExecutionError(
                f"Failed to fetch labels from {data.owner}/{data.repo}: {e}",
                cause=e,
            ) from e

        return ListLabelsOutput(labels=tuple(labels), total_count=len(labels))

    return Step(
        id=GET_REPOSITORY_LABELS_STEP_ID,
        input_model=ListLabelsInput,
        output_model=ListLabelsOutput,
        execute=list_labels,
        description="List every label defined in a repository",
    )


def create_classify_step(agent: TriagerAgent) -> Step[ClassifyInput, ClassifyOutput]:
    """Create the triage step.

    The agent's answer is validated again with the catalog as context,
    so a label the repository does not define fails the step instead of
    reaching the tracker.
    """

    async def classify(data: ClassifyInput, metadata: RunMetadata) -> ClassifyOutput:
        prompt = build_triage_prompt(data.issue, data.labels)
        output = await agent.generate([HumanMessage(content=prompt)], ClassifyOutput)

        catalog = {label.name for label in data.labels}
        validated = step.validate_output(output, context={"catalog": catalog})

        logger.info(
            "Issue classified",
            extra={
                "issue_id": data.issue.reference.issue_id,
                "run_id": metadata.run_id,
                "labels": validated.label_names,
            },
        )
        return validated

    step = Step(
        id=TRIAGE_STEP_ID,
        input_model=ClassifyInput,
        output_model=ClassifyOutput,
        execute=classify,
        description="Recommend catalog labels for an issue",
    )
    return step


def create_add_labels_step(
    tracker: IssueTracker,
    apply: bool = True,
) -> Step[AddLabelsInput, AddLabelsOutput]:
    """Create the add-labels step.

    A tracker failure does not fail the run: it is reported as
    success=False with the tracker's message.

    Args:
        tracker: The issue tracker to write to.
        apply: When False the step reports what it would add and makes
            no tracker call.
    """

    async def add_labels(data: AddLabelsInput, metadata: RunMetadata) -> AddLabelsOutput:
        reference = data.issue_reference
        names = [assignment.name for assignment in data.labels]

        if not names:
            return AddLabelsOutput(success=True, message="No labels to add")

        if not apply:
            return AddLabelsOutput(
                success=True,
                message=f"Dry run: would add labels: {', '.join(names)}",
            )

        try:
            applied = await tracker.add_labels(reference, names)
        except Exception as e:
            logger.error(
                "Failed to add labels",
                extra={
                    "issue_id": reference.issue_id,
                    "run_id": metadata.run_id,
                    "labels": names,
                    "error": str(e),
                },
            )
            return AddLabelsOutput(
                success=False,
                message=f"Failed to add labels to {reference.issue_id}: {e}",
            )

        return AddLabelsOutput(
            success=True,
            message=f"Added labels: {', '.join(names)}",
            applied=tuple(applied),
        )

    return Step(
        id=ADD_LABELS_STEP_ID,
        input_model=AddLabelsInput,
        output_model=AddLabelsOutput,
        execute=add_labels,
        description="Add labels to a GitHub issue",
    )
