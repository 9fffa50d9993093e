"""Unit tests for the command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.triage import main as triage_main
from src.triage.classifier import AllowAllGuard, LLMInjectionGuard
from src.triage.config import TriageSettings
from src.triage.models import IssueReference, LabelAssignment, LabelTag, Issue
from src.triage.workflow import RunStatus, WorkflowResult
from src.triage.workflows import TriageWorkflowOutput


def run_async(coro):
    return asyncio.run(coro)


REFERENCE = IssueReference(owner="acme", repo="widgets", number=42)


class StubAgent:
    async def generate(self, messages, output_model):
        return output_model(labels=(LabelAssignment(name="bug", reason="crash"),))


class FakeGitHubClient:
    """Stands in for GitHubClient inside main()."""

    instances: List["FakeGitHubClient"] = []

    def __init__(self, token: str, base_url: str, page_size: int):
        self.token = token
        self.page_size = page_size
        self.get_issue = AsyncMock(
            return_value=Issue(reference=REFERENCE, title="Crash on start", body=None)
        )
        self.list_labels = AsyncMock(return_value=[LabelTag(name="bug")])
        self.add_labels = AsyncMock(return_value=[LabelTag(name="bug")])
        FakeGitHubClient.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in ("GITHUB_TOKEN", "OPENAI_API_KEY", "GITHUB_REPOSITORY", "GITHUB_WORKSPACE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TRIAGE_GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("TRIAGE_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path / "github_output"))
    FakeGitHubClient.instances = []
    monkeypatch.setattr(triage_main, "GitHubClient", FakeGitHubClient)
    monkeypatch.setattr(triage_main, "build_agent", lambda settings, prompt: StubAgent())
    return monkeypatch


def _result(status: RunStatus, **fields) -> WorkflowResult:
    return WorkflowResult(
        run_id="run-1",
        workflow_id="issue-triager-workflow",
        status=status,
        **fields,
    )


class TestArguments:
    def test_parse_repository(self):
        assert triage_main.parse_repository("acme/widgets") == ("acme", "widgets")

    @pytest.mark.parametrize("value", ["acme", "/widgets", "acme/", "a/b/c"])
    def test_parse_repository_rejects_malformed(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            triage_main.parse_repository(value)

    @pytest.mark.parametrize("value", ["0", "-3", "abc"])
    def test_issue_number_must_be_positive(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            triage_main.positive_int(value)

    def test_repository_not_read_from_env_by_parser(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "not-a-repository")
        args = triage_main.create_parser().parse_args(["--issue-number", "7"])
        assert args.repository is None
        assert args.issue_number == 7
        assert args.dry_run is False


class TestSystemPrompt:
    def test_default_prompt_when_no_file(self):
        prompt = triage_main.load_system_prompt(None)
        assert prompt.startswith("ROLE DEFINITION")

    def test_relative_path_resolved_against_workspace(self, tmp_path):
        (tmp_path / "prompt.md").write_text("Custom prompt", encoding="utf-8")
        assert triage_main.load_system_prompt("prompt.md", str(tmp_path)) == "Custom prompt"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="System prompt file not found"):
            triage_main.resolve_prompt_file("missing.md", str(tmp_path))


class TestWiring:
    def _settings(self, monkeypatch, **env) -> TriageSettings:
        monkeypatch.setenv("TRIAGE_GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("TRIAGE_OPENAI_API_KEY", "sk-test")
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return TriageSettings()

    def test_guard_disabled(self, monkeypatch):
        settings = self._settings(monkeypatch, TRIAGE_GUARD_ENABLED="false")
        assert isinstance(triage_main.build_guard(settings), AllowAllGuard)

    def test_guard_uses_guard_model(self, monkeypatch):
        settings = self._settings(monkeypatch, TRIAGE_GUARD_MODEL="gpt-4o")
        guard = triage_main.build_guard(settings)
        assert isinstance(guard, LLMInjectionGuard)
        assert guard.model_name == "gpt-4o"

    def test_redact_secret(self):
        assert triage_main._redact_secret("ghp_abcdef") == "ghp_******"
        assert triage_main._redact_secret("abc") == "***"


class TestReporting:
    def test_success_writes_github_outputs(self, tmp_path, capsys):
        output_file = tmp_path / "out"
        output = TriageWorkflowOutput(
            success=True,
            message="Added labels: bug",
            labels=(LabelAssignment(name="bug", reason="crash"),),
        )

        code = triage_main.report_result(
            _result(RunStatus.SUCCESS, result=output),
            REFERENCE,
            str(output_file),
        )

        assert code == 0
        lines = output_file.read_text().splitlines()
        assert lines[0] == 'labels=[{"name": "bug", "reason": "crash"}]'
        assert "issue-number=42" in lines
        assert "repository=acme/widgets" in lines
        assert json.loads(capsys.readouterr().out)["success"] is True

    def test_failed_run_exit_code(self, caplog):
        code = triage_main.report_result(
            _result(RunStatus.FAILED, error_message="step triage: boom"),
            REFERENCE,
        )
        assert code == 1
        assert "Workflow failed: step triage: boom" in caplog.text

    def test_suspended_run_exit_code(self, caplog):
        code = triage_main.report_result(_result(RunStatus.SUSPENDED), REFERENCE)
        assert code == 1
        assert "Workflow was suspended unexpectedly" in caplog.text

    def test_multiline_output_uses_delimiter(self, tmp_path):
        output_file = tmp_path / "out"
        triage_main.write_github_output(str(output_file), {"notes": "a\nb"})

        lines = output_file.read_text().splitlines()
        assert lines[0].startswith("notes<<ghadelimiter_")
        assert lines[1:3] == ["a", "b"]
        assert lines[3] == lines[0].split("<<", 1)[1]


class TestRunTriage:
    def test_run_triage_with_stubs(self):
        tracker = MagicMock()
        tracker.get_issue = AsyncMock(
            return_value=Issue(reference=REFERENCE, title="Crash", body="Stack trace")
        )
        tracker.list_labels = AsyncMock(return_value=[LabelTag(name="bug")])
        tracker.add_labels = AsyncMock(return_value=[LabelTag(name="bug")])

        result = run_async(triage_main.run_triage(REFERENCE, tracker, StubAgent()))

        assert result.status == RunStatus.SUCCESS
        assert result.result.labels[0].name == "bug"


class TestMain:
    def test_success(self, env, tmp_path):
        code = triage_main.main(["--repository", "acme/widgets", "--issue-number", "42"])

        assert code == 0
        client = FakeGitHubClient.instances[0]
        client.add_labels.assert_awaited_once_with(REFERENCE, ["bug"])
        assert "repository=acme/widgets" in (tmp_path / "github_output").read_text()

    def test_dry_run_skips_adding_labels(self, env):
        code = triage_main.main(
            ["--repository", "acme/widgets", "--issue-number", "42", "--dry-run"]
        )

        assert code == 0
        FakeGitHubClient.instances[0].add_labels.assert_not_called()

    def test_metrics_file_written(self, env, tmp_path):
        metrics_file = tmp_path / "triage.prom"
        code = triage_main.main(
            [
                "--repository",
                "acme/widgets",
                "--issue-number",
                "42",
                "--metrics-file",
                str(metrics_file),
            ]
        )

        assert code == 0
        assert "workflow_runs_total" in metrics_file.read_text()

    def test_missing_prompt_file(self, env):
        code = triage_main.main(
            [
                "--repository",
                "acme/widgets",
                "--issue-number",
                "42",
                "--system-prompt-file",
                "/nonexistent/prompt.md",
            ]
        )
        assert code == 1

    def test_configuration_error(self, env):
        env.delenv("TRIAGE_GITHUB_TOKEN")
        code = triage_main.main(["--repository", "acme/widgets", "--issue-number", "42"])
        assert code == 1

    def test_repository_required(self, env):
        with pytest.raises(SystemExit):
            triage_main.main(["--issue-number", "42"])

    def test_repository_defaults_to_actions_env(self, env):
        env.setenv("GITHUB_REPOSITORY", "acme/widgets")
        code = triage_main.main(["--issue-number", "42"])

        assert code == 0
        FakeGitHubClient.instances[0].get_issue.assert_awaited_once_with(REFERENCE)

    def test_malformed_actions_repository(self, env, caplog):
        env.setenv("GITHUB_REPOSITORY", "acme")
        code = triage_main.main(["--issue-number", "42"])

        assert code == 1
        assert "Invalid $GITHUB_REPOSITORY" in caplog.text
        assert FakeGitHubClient.instances == []

    def test_event_emitter_closed_when_wiring_fails(self, env):
        emitter = MagicMock()
        emitter.close = AsyncMock()
        env.setattr(triage_main, "create_event_emitter", lambda sink_types: emitter)

        def broken_agent(settings, prompt):
            raise RuntimeError("agent wiring failed")

        env.setattr(triage_main, "build_agent", broken_agent)

        with pytest.raises(RuntimeError, match="agent wiring failed"):
            triage_main.main(["--repository", "acme/widgets", "--issue-number", "42"])
        emitter.close.assert_awaited_once()
