"""GitHub API client for issue triage.

This module provides an async wrapper around the GitHub REST API for:
- Fetching an issue with its current labels
- Listing a repository's label catalog (paginated transparently)
- Adding labels to an issue

Includes rate limiting and retry logic for API resilience.

Source:
- src/triage/models.py (IssueReference, Issue, LabelTag)
- src/triage/config.py (github_token, github_base_url, label_page_size)
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from src.triage.models import Issue, IssueReference, LabelTag


logger = logging.getLogger(__name__)


# GitHub caps per_page at 100 for the labels endpoint
MAX_PAGE_SIZE = 100


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def parse_label(raw: Any) -> LabelTag:
    """Convert a GitHub label payload into a LabelTag.

    GitHub returns issue labels either as plain strings or as objects;
    a missing name becomes an empty string.
    """
    if isinstance(raw, str):
        return LabelTag(name=raw, description=None)
    return LabelTag(
        name=raw.get("name") or "",
        description=raw.get("description"),
    )


def parse_issue(reference: IssueReference, data: Dict[str, Any]) -> Issue:
    """Convert a GitHub issue payload into an Issue.

    An empty body is treated as absent.
    """
    return Issue(
        reference=reference,
        title=data.get("title") or "",
        body=data.get("body") or None,
        labels=tuple(parse_label(label) for label in data.get("labels") or []),
    )


class GitHubClient:
    """Async GitHub API client with rate limiting and retry logic.

    This client implements the issue tracker operations used by the
    triage steps:

    - Automatic retry with exponential backoff for transient failures
    - Rate limit handling by respecting X-RateLimit-* headers
    - Support for both github.com and GitHub Enterprise Server

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.
        page_size: Number of labels requested per page.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     labels = await client.list_labels("acme", "widgets")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        page_size: int = MAX_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            page_size: Labels per page when listing a catalog (1-100).
            transport: Optional httpx transport, e.g. httpx.MockTransport.
        """
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "issue-triage/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _handle_rate_limit(self, response: httpx.Response) -> None:
        """Raise a RateLimitError describing when to retry.

        Raises:
            RateLimitError: Always.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._parse_int_header(response.headers, "x-ratelimit-limit"),
                "used": self._parse_int_header(response.headers, "x-ratelimit-used"),
            },
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.request.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, ...).
            path: API path (e.g., /repos/owner/repo/issues/1).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: If the request fails after all retries.
            RateLimitError: If rate limit is exceeded.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )
            except httpx.TimeoutException as e:
                last_exception = e
                reason = "Request timeout, retrying"
            except httpx.RequestError as e:
                last_exception = e
                reason = "Request error, retrying"
            else:
                if response.status_code == 403:
                    remaining = self._parse_int_header(
                        response.headers,
                        "x-ratelimit-remaining",
                    )
                    if remaining == 0:
                        self._handle_rate_limit(response)

                if response.status_code == 429:
                    self._handle_rate_limit(response)

                if (
                    response.status_code in self.RETRYABLE_STATUS_CODES
                    and attempt < self.max_retries
                ):
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Retryable error from GitHub API",
                        extra={
                            "status_code": response.status_code,
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "delay": delay,
                            "path": path,
                        },
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code >= 400:
                    error_body = response.text
                    logger.error(
                        "GitHub API error",
                        extra={
                            "status_code": response.status_code,
                            "path": path,
                            "method": method,
                            "response_body": error_body[:500],
                        },
                    )
                    raise GitHubAPIError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        response_body=error_body,
                        request_url=str(response.request.url),
                    )

                return response

            if attempt < self.max_retries:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    reason,
                    extra={
                        "error": str(last_exception),
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)

        logger.error(
            "GitHub API request failed after all retries",
            extra={
                "path": path,
                "method": method,
                "max_retries": self.max_retries,
                "last_error": str(last_exception),
            },
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    async def get_issue(self, reference: IssueReference) -> Issue:
        """Get an issue with its current labels.

        Args:
            reference: The issue to fetch.

        Returns:
            The issue content.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{reference.owner}/{reference.repo}/issues/{reference.number}"

        logger.debug(
            "Getting issue details",
            extra={"issue_id": reference.issue_id},
        )

        response = await self._request(method="GET", path=path)
        return parse_issue(reference, response.json())

    async def list_labels(self, owner: str, repo: str) -> List[LabelTag]:
        """List every label defined in a repository.

        Pages are requested with per_page=page_size. A full page means
        more may follow; a short page is kept and ends the listing; an
        empty page ends the listing without adding anything.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.

        Returns:
            All catalog labels in the order GitHub returns them.

        Raises:
            GitHubAPIError: If any page request fails.
        """
        path = f"/repos/{owner}/{repo}/labels"
        labels: List[LabelTag] = []
        page = 1

        while True:
            response = await self._request(
                method="GET",
                path=path,
                params={"per_page": self.page_size, "page": page},
            )
            batch = response.json()
            if not batch:
                break

            labels.extend(parse_label(raw) for raw in batch)
            if len(batch) < self.page_size:
                break
            page += 1

        logger.info(
            "Repository labels listed",
            extra={
                "owner": owner,
                "repo": repo,
                "label_count": len(labels),
                "pages": page,
            },
        )
        return labels

    async def add_labels(
        self,
        reference: IssueReference,
        names: Sequence[str],
    ) -> List[LabelTag]:
        """Add labels to an issue.

        Args:
            reference: The issue to label.
            names: Label names to add.

        Returns:
            All labels on the issue after adding.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{reference.owner}/{reference.repo}/issues/{reference.number}/labels"

        logger.info(
            "Adding labels to issue",
            extra={"issue_id": reference.issue_id, "labels": list(names)},
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"labels": list(names)},
        )

        result = [parse_label(raw) for raw in response.json()]
        logger.info(
            "Labels added successfully",
            extra={
                "issue_id": reference.issue_id,
                "total_labels": len(result),
            },
        )
        return result
