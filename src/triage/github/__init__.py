"""GitHub REST API client used as the issue tracker."""

from src.triage.github.client import GitHubAPIError, GitHubClient, RateLimitError

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "RateLimitError",
]
