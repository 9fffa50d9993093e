"""Command-line entry point for issue triage.

Runs the triage workflow once for a single issue, typically from a
GitHub Actions job:

    python -m src.triage --issue-number 42 --repository acme/widgets

Configuration is read from TRIAGE_* environment variables (see
config.py). On success the recommended labels are printed as JSON and,
when $GITHUB_OUTPUT is set, exported as step outputs (labels,
issue-number, repository).

Exit codes:
    0: The workflow succeeded
    1: Configuration error, failed or suspended run
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from src.triage.classifier.agent import LangChainTriagerAgent, TriagerAgent
from src.triage.classifier.guard import AllowAllGuard, InjectionGuard, LLMInjectionGuard
from src.triage.classifier.prompts import build_system_prompt
from src.triage.config import TriageSettings, get_settings
from src.triage.events.emitter import EventEmitter, EventSinkType, create_event_emitter
from src.triage.events.metrics import write_metrics_file
from src.triage.github.client import GitHubClient
from src.triage.models import IssueReference
from src.triage.steps import IssueTracker
from src.triage.workflow.models import RunStatus, WorkflowResult
from src.triage.workflows import create_triage_workflow


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())


def parse_repository(value: str) -> Tuple[str, str]:
    """Split "owner/repo" into its parts.

    Raises:
        argparse.ArgumentTypeError: If the value is not "owner/repo".
    """
    owner, sep, repo = value.strip().partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise argparse.ArgumentTypeError(
            f"repository must be in owner/repo format, got {value!r}"
        )
    return owner, repo


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="issue-triage",
        description="Recommend and apply repository labels to a GitHub issue",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Triage issue 42 of the current GitHub Actions repository
  python -m src.triage --issue-number 42

  # Report recommendations without touching the issue
  python -m src.triage --repository acme/widgets --issue-number 42 --dry-run

  # Use a custom system prompt and export metrics
  python -m src.triage --issue-number 42 \\
      --system-prompt-file .github/triage-prompt.md \\
      --metrics-file /tmp/triage.prom
        """,
    )

    parser.add_argument(
        "--repository",
        "-r",
        type=parse_repository,
        default=None,
        help="Repository in owner/repo format (default: $GITHUB_REPOSITORY)",
    )

    parser.add_argument(
        "--issue-number",
        "-n",
        type=positive_int,
        required=True,
        help="Number of the issue to triage",
    )

    parser.add_argument(
        "--system-prompt-file",
        type=str,
        default=None,
        help="File with the triager system prompt; relative paths are resolved "
        "against $GITHUB_WORKSPACE when set (default: built-in prompt)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Recommend labels without adding them to the issue",
    )

    parser.add_argument(
        "--metrics-file",
        type=str,
        default=None,
        help="Write Prometheus metrics in text format to this file after the run",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: TRIAGE_LOG_LEVEL or INFO)",
    )

    return parser


def resolve_prompt_file(path: str, workspace: Optional[str] = None) -> Path:
    """Resolve the system prompt path.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    prompt_path = Path(path)
    if not prompt_path.is_absolute() and workspace:
        prompt_path = Path(workspace) / prompt_path
    if not prompt_path.is_file():
        raise FileNotFoundError(f"System prompt file not found: {prompt_path}")
    return prompt_path


def load_system_prompt(path: Optional[str], workspace: Optional[str] = None) -> str:
    if path is None:
        return build_system_prompt()
    return resolve_prompt_file(path, workspace).read_text(encoding="utf-8")


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: TriageSettings, dry_run: bool) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Triage configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(f"  OpenAI API Key: {_redact_secret(settings.openai_api_key)}")
    logger.info(f"  LLM Model: {settings.llm_model}")
    logger.info(f"  LLM Base URL: {settings.llm_base_url or 'default'}")
    logger.info(f"  Guard Enabled: {settings.guard_enabled}")
    logger.info(f"  Guard Model: {settings.effective_guard_model}")
    logger.info(f"  Apply Labels: {settings.apply_labels and not dry_run}")
    logger.info(f"  Label Page Size: {settings.label_page_size}")
    logger.info(f"  Event Sinks: {settings.event_sinks}")


def build_guard(settings: TriageSettings) -> InjectionGuard:
    if not settings.guard_enabled:
        return AllowAllGuard()
    return LLMInjectionGuard(
        model_name=settings.effective_guard_model,
        api_key=settings.openai_api_key,
        base_url=settings.llm_base_url,
    )


def build_agent(settings: TriageSettings, system_prompt: str) -> LangChainTriagerAgent:
    return LangChainTriagerAgent(
        model_name=settings.llm_model,
        api_key=settings.openai_api_key,
        base_url=settings.llm_base_url,
        system_prompt=system_prompt,
        temperature=settings.llm_temperature,
        guard=build_guard(settings),
    )


async def run_triage(
    reference: IssueReference,
    tracker: IssueTracker,
    agent: TriagerAgent,
    apply_labels: bool = True,
    event_emitter: Optional[EventEmitter] = None,
) -> WorkflowResult:
    """Run the triage workflow once for one issue."""
    workflow = create_triage_workflow(tracker, agent, apply_labels=apply_labels)
    run = workflow.create_run(event_emitter=event_emitter)
    return await run.start({"issue_reference": reference})


def write_github_output(path: str, outputs: Dict[str, str]) -> None:
    """Append step outputs to the $GITHUB_OUTPUT file.

    Multi-line values use the heredoc form GitHub Actions expects.
    """
    with open(path, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4()}"
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                f.write(f"{name}={value}\n")


def report_result(
    result: WorkflowResult,
    reference: IssueReference,
    github_output: Optional[str] = None,
) -> int:
    """Report a finished run and return the process exit code."""
    if result.status == RunStatus.SUCCESS:
        output = result.result
        labels = [assignment.model_dump() for assignment in output.labels]

        print(json.dumps(output.model_dump(mode="json"), indent=2))

        if github_output:
            write_github_output(
                github_output,
                {
                    "labels": json.dumps(labels),
                    "issue-number": str(reference.number),
                    "repository": reference.full_repository,
                },
            )

        logger.info(f"Successfully triaged issue #{reference.number}")
        logger.info(
            f"Recommended labels: {', '.join(a.name for a in output.labels) or 'none'}"
        )
        if not output.success:
            logger.warning(f"Labels were not applied: {output.message}")
        return 0

    if result.status == RunStatus.FAILED:
        logger.error(f"Workflow failed: {result.error_message or 'Unknown error'}")
        return 1

    if result.status == RunStatus.SUSPENDED:
        logger.error("Workflow was suspended unexpectedly")
        return 1

    logger.error(f"Unexpected workflow status: {result.status.value}")
    return 1


async def _run(args: argparse.Namespace, settings: TriageSettings) -> int:
    owner, repo = args.repository
    reference = IssueReference(owner=owner, repo=repo, number=args.issue_number)

    system_prompt = load_system_prompt(
        args.system_prompt_file,
        os.environ.get("GITHUB_WORKSPACE"),
    )

    sink_types: List[EventSinkType] = settings.sink_types
    if args.metrics_file and EventSinkType.METRICS not in sink_types:
        sink_types = [*sink_types, EventSinkType.METRICS]
    event_emitter = create_event_emitter(sink_types)

    logger.info(f"Triaging issue #{reference.number} in {reference.full_repository}")

    try:
        async with GitHubClient(
            token=settings.github_token,
            base_url=settings.github_base_url,
            page_size=settings.label_page_size,
        ) as client:
            result = await run_triage(
                reference,
                tracker=client,
                agent=build_agent(settings, system_prompt),
                apply_labels=settings.apply_labels and not args.dry_run,
                event_emitter=event_emitter,
            )
    finally:
        await event_emitter.close()

    if args.metrics_file:
        write_metrics_file(args.metrics_file)

    return report_result(result, reference, os.environ.get("GITHUB_OUTPUT"))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level or "INFO")

    if args.repository is None:
        default_repository = os.environ.get("GITHUB_REPOSITORY")
        if not default_repository:
            parser.error("--repository is required when $GITHUB_REPOSITORY is not set")
        try:
            args.repository = parse_repository(default_repository)
        except argparse.ArgumentTypeError as e:
            logger.error(f"Invalid $GITHUB_REPOSITORY: {e}")
            return 1

    try:
        settings = get_settings()
    except Exception as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.log_level is None:
        logging.getLogger().setLevel(settings.log_level)

    _log_configuration(settings, args.dry_run)

    try:
        return asyncio.run(_run(args, settings))
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
