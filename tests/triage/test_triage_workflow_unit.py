"""Unit tests for the triage steps and the issue triage workflow.

The issue tracker and the triager agent are stubbed with AsyncMock so the
full pipeline runs without GitHub or a language model.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.triage.classifier import ClassificationError, ClassifyOutput, PromptInjectionError
from src.triage.models import Issue, IssueReference, LabelAssignment, LabelTag
from src.triage.steps import (
    ADD_LABELS_STEP_ID,
    GET_ISSUE_STEP_ID,
    GET_REPOSITORY_LABELS_STEP_ID,
    TRIAGE_STEP_ID,
    create_add_labels_step,
    create_classify_step,
    create_fetch_issue_step,
)
from src.triage.workflow import (
    RunMetadata,
    RunStatus,
    StepExecutionError,
    StepValidationError,
)
from src.triage.workflows import (
    TRIAGE_WORKFLOW_ID,
    TriageWorkflowOutput,
    create_triage_workflow,
)


def run_async(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


REFERENCE = IssueReference(owner="acme", repo="widgets", number=42)

CATALOG = [
    LabelTag(name="bug", description="Something isn't working"),
    LabelTag(name="docs"),
    LabelTag(name="ui"),
]


def _issue() -> Issue:
    return Issue(
        reference=REFERENCE,
        title="Login broken",
        body="Clicking login does nothing",
        labels=(LabelTag(name="ui"),),
    )


def _tracker(
    issue: Optional[Issue] = None,
    catalog: Optional[List[LabelTag]] = None,
) -> MagicMock:
    tracker = MagicMock()
    tracker.get_issue = AsyncMock(return_value=issue or _issue())
    tracker.list_labels = AsyncMock(return_value=list(CATALOG if catalog is None else catalog))
    tracker.add_labels = AsyncMock(return_value=[LabelTag(name="ui"), LabelTag(name="bug")])
    return tracker


class StubAgent:
    """Agent returning a fixed recommendation and recording prompts."""

    def __init__(self, names: Sequence[str] = ("bug",), error: Optional[Exception] = None):
        self.names = names
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, messages, output_model):
        self.prompts.append(messages[-1].content)
        if self.error is not None:
            raise self.error
        return output_model(
            labels=tuple(LabelAssignment(name=n, reason=f"{n} fits") for n in self.names)
        )


def _metadata(step_id: str) -> RunMetadata:
    return RunMetadata(
        run_id="run-1",
        workflow_id=TRIAGE_WORKFLOW_ID,
        step_id=step_id,
        step_key=step_id,
        position=0,
    )


def _start(workflow, reference: Any = REFERENCE):
    return run_async(workflow.create_run().start({"issue_reference": reference}))


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class TestTriageWorkflow:
    """End-to-end pipeline behavior with stubbed collaborators."""

    def test_step_order(self):
        workflow = create_triage_workflow(_tracker(), StubAgent())
        assert workflow.id == TRIAGE_WORKFLOW_ID
        assert workflow.step_keys == (
            GET_ISSUE_STEP_ID,
            GET_REPOSITORY_LABELS_STEP_ID,
            TRIAGE_STEP_ID,
            ADD_LABELS_STEP_ID,
        )

    def test_successful_triage(self):
        tracker = _tracker()
        agent = StubAgent(names=("bug",))

        result = _start(create_triage_workflow(tracker, agent))

        assert result.status == RunStatus.SUCCESS
        assert isinstance(result.result, TriageWorkflowOutput)
        assert result.result.success is True
        assert result.result.message
        assert result.result.labels == (LabelAssignment(name="bug", reason="bug fits"),)

        tracker.get_issue.assert_awaited_once_with(REFERENCE)
        tracker.list_labels.assert_awaited_once_with("acme", "widgets")
        tracker.add_labels.assert_awaited_once_with(REFERENCE, ["bug"])
        assert "Issue #42: Login broken" in agent.prompts[0]
        assert "- docs" in agent.prompts[0]

    def test_accepts_dict_reference(self):
        result = _start(
            create_triage_workflow(_tracker(), StubAgent()),
            {"owner": "acme", "repo": "widgets", "number": 42},
        )
        assert result.status == RunStatus.SUCCESS

    def test_label_outside_catalog_fails_run(self):
        tracker = _tracker()
        result = _start(create_triage_workflow(tracker, StubAgent(names=("urgent",))))

        assert result.status == RunStatus.FAILED
        assert isinstance(result.error, StepValidationError)
        assert "urgent" in result.error_message
        assert result.error_message.startswith("step triage:")
        tracker.add_labels.assert_not_called()
        assert ADD_LABELS_STEP_ID not in result.steps

    def test_empty_recommendation_skips_tracker(self):
        tracker = _tracker()
        result = _start(create_triage_workflow(tracker, StubAgent(names=())))

        assert result.status == RunStatus.SUCCESS
        assert result.result.success is True
        assert result.result.message == "No labels to add"
        assert result.result.labels == ()
        tracker.add_labels.assert_not_called()

    def test_dry_run_does_not_call_tracker(self):
        tracker = _tracker()
        result = _start(
            create_triage_workflow(tracker, StubAgent(names=("bug", "docs")), apply_labels=False)
        )

        assert result.status == RunStatus.SUCCESS
        assert result.result.message == "Dry run: would add labels: bug, docs"
        tracker.add_labels.assert_not_called()

    def test_add_labels_failure_is_reported_not_raised(self):
        tracker = _tracker()
        tracker.add_labels.side_effect = RuntimeError("forbidden")

        result = _start(create_triage_workflow(tracker, StubAgent()))

        assert result.status == RunStatus.SUCCESS
        assert result.result.success is False
        assert "forbidden" in result.result.message
        assert result.result.labels[0].name == "bug"

    def test_fetch_failure_fails_run(self):
        tracker = _tracker()
        tracker.get_issue.side_effect = RuntimeError("Not Found")

        result = _start(create_triage_workflow(tracker, StubAgent()))

        assert result.status == RunStatus.FAILED
        assert isinstance(result.error, StepExecutionError)
        assert "Failed to fetch issue #42 from acme/widgets: Not Found" in result.error_message
        tracker.list_labels.assert_not_called()

    def test_label_listing_failure_fails_run(self):
        tracker = _tracker()
        tracker.list_labels.side_effect = RuntimeError("boom")

        result = _start(create_triage_workflow(tracker, StubAgent()))

        assert result.status == RunStatus.FAILED
        assert "Failed to fetch labels from acme/widgets: boom" in result.error_message

    def test_agent_failure_fails_run(self):
        agent = StubAgent(error=ClassificationError("LLM invocation failed: timeout"))
        result = _start(create_triage_workflow(_tracker(), agent))

        assert result.status == RunStatus.FAILED
        assert isinstance(result.error, ClassificationError)

    def test_rejected_injection_fails_run(self):
        agent = StubAgent(error=PromptInjectionError("override attempt"))
        tracker = _tracker()
        result = _start(create_triage_workflow(tracker, agent))

        assert result.status == RunStatus.FAILED
        assert isinstance(result.error, PromptInjectionError)
        tracker.add_labels.assert_not_called()

    def test_invalid_reference_fails_run(self):
        tracker = _tracker()
        result = _start(
            create_triage_workflow(tracker, StubAgent()),
            {"owner": "acme", "repo": "widgets", "number": 0},
        )

        assert result.status == RunStatus.FAILED
        tracker.get_issue.assert_not_called()

    def test_workflow_reused_across_issues(self):
        tracker = _tracker()
        workflow = create_triage_workflow(tracker, StubAgent())

        first = _start(workflow)
        second = _start(workflow, {"owner": "acme", "repo": "widgets", "number": 7})

        assert first.status == second.status == RunStatus.SUCCESS
        assert first.run_id != second.run_id
        assert tracker.get_issue.await_count == 2


# ---------------------------------------------------------------------------
# Individual steps
# ---------------------------------------------------------------------------


class TestSteps:
    """Steps exercised outside a workflow."""

    def test_fetch_issue_step(self):
        step = create_fetch_issue_step(_tracker())
        output = run_async(
            step.run({"issue_reference": REFERENCE}, _metadata(GET_ISSUE_STEP_ID))
        )
        assert output.issue.title == "Login broken"

    def test_classify_step_revalidates_against_catalog(self):
        step = create_classify_step(StubAgent(names=("docs",)))
        with pytest.raises(StepValidationError) as exc_info:
            run_async(
                step.run(
                    {"issue": _issue(), "labels": [LabelTag(name="bug")]},
                    _metadata(TRIAGE_STEP_ID),
                )
            )
        assert exc_info.value.phase == "output"
        assert "docs" in str(exc_info.value)

    def test_classify_step_output(self):
        step = create_classify_step(StubAgent(names=("bug", "docs")))
        output = run_async(
            step.run({"issue": _issue(), "labels": CATALOG}, _metadata(TRIAGE_STEP_ID))
        )
        assert isinstance(output, ClassifyOutput)
        assert output.label_names == ["bug", "docs"]

    def test_add_labels_step_reports_applied(self):
        tracker = _tracker()
        step = create_add_labels_step(tracker)
        output = run_async(
            step.run(
                {
                    "issue_reference": REFERENCE,
                    "labels": [{"name": "bug", "reason": "r"}],
                },
                _metadata(ADD_LABELS_STEP_ID),
            )
        )
        assert output.success is True
        assert output.message == "Added labels: bug"
        assert [label.name for label in output.applied] == ["ui", "bug"]
