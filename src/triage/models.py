"""Domain records shared by the triage steps.

This module defines the issue tracker data handed between workflow steps:
- IssueReference: Identifies one issue in one repository
- LabelTag: A label as it exists on an issue or in a repository catalog
- Issue: Issue content as fetched from the tracker
- LabelAssignment: A label recommended by the classifier with its reason

All records are frozen Pydantic models. Sequences are stored as tuples so
a record cannot be changed once a step has produced it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class IssueReference(BaseModel):
    """Reference to a single issue in a repository.

    Attributes:
        owner: Repository owner (user or organization).
        repo: Repository name without owner prefix.
        number: Issue number within the repository.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(
        ...,
        min_length=1,
        description="Repository owner (user or organization)",
    )

    repo: str = Field(
        ...,
        min_length=1,
        description="Repository name without owner prefix",
    )

    number: int = Field(
        ...,
        ge=1,
        description="Issue number within the repository (positive integer)",
    )

    @property
    def issue_id(self) -> str:
        """Canonical identifier in format "{owner}/{repo}#{number}"."""
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def full_repository(self) -> str:
        """Repository path in format "{owner}/{repo}"."""
        return f"{self.owner}/{self.repo}"


class LabelTag(BaseModel):
    """A label on an issue or in a repository's label catalog."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Label name")

    description: Optional[str] = Field(
        default=None,
        description="Optional label description",
    )


class Issue(BaseModel):
    """Issue content retrieved from the tracker.

    Attributes:
        reference: The reference the issue was fetched with.
        title: Issue title.
        body: Issue description, absent when the issue has none.
        labels: Labels currently on the issue, in tracker order.
    """

    model_config = ConfigDict(frozen=True)

    reference: IssueReference

    title: str = Field(..., description="Issue title")

    body: Optional[str] = Field(
        default=None,
        description="Issue description (absent when empty)",
    )

    labels: tuple[LabelTag, ...] = Field(
        default_factory=tuple,
        description="Labels currently attached to the issue",
    )

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]


class LabelAssignment(BaseModel):
    """A label recommended by the classifier.

    The name must reference an existing catalog label; the classifier
    is never allowed to invent new labels.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Name of an existing repository label",
    )

    reason: str = Field(
        ...,
        description="Justification for recommending the label",
    )
