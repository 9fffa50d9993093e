"""Prompt rendering for the issue triager.

Source:
- src/triage/models.py (Issue, LabelTag)
"""

from typing import Sequence

from src.triage.models import Issue, LabelTag


TRIAGER_SYSTEM_PROMPT = """ROLE DEFINITION
- You are a GitHub issue triaging assistant that helps analyze and categorize GitHub issues.
- Your key responsibility is to assign appropriate labels to issues.
- Primary stakeholders are development teams seeking organized issue management.

CORE CAPABILITIES
- Analyze issue content, titles, and descriptions to understand the nature of the issue.
- Categorize issues by component, priority, and effort required.

BEHAVIORAL GUIDELINES
- Maintain a systematic and consistent approach to issue categorization.
- Be thorough in analyzing issue content before making decisions.
- Follow established project conventions and labeling standards.
- Always use existing labels, do not suggest new ones.

CONSTRAINTS & BOUNDARIES
- Only work with GitHub issues and related metadata.
- Do not make assumptions about project-specific conventions without context.
- Never override existing assigned labels.

SUCCESS CRITERIA
- Deliver accurate and consistent issue categorization.
- Achieve high accuracy in label assignments.
"""


def build_system_prompt() -> str:
    """Return the default system prompt for the triager agent."""
    return TRIAGER_SYSTEM_PROMPT


def format_catalog(catalog: Sequence[LabelTag]) -> str:
    """Format catalog labels one per line as "- name: description"."""
    return "\n".join(
        f"- {label.name}: {label.description}" if label.description else f"- {label.name}"
        for label in catalog
    )


def build_triage_prompt(issue: Issue, catalog: Sequence[LabelTag]) -> str:
    """Build the user prompt asking for label recommendations.

    Args:
        issue: The issue to triage.
        catalog: Labels defined in the issue's repository.

    Returns:
        Formatted prompt string for the agent.
    """
    current_labels = ", ".join(issue.label_names) or "None"
    body = issue.body or "No description provided"

    return f"""Recommended labels to add to the issue (choose from the available labels in the repository)

**Issue Details:**
- Repository: {issue.reference.full_repository}
- Issue #{issue.reference.number}: {issue.title}
- Current Labels: {current_labels}

**Issue Description:**
{body}

**Available Labels in Repository:**
{format_catalog(catalog)}
"""
