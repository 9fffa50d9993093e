"""Unit tests for the GitHub client.

Uses httpx.MockTransport so the client's request, retry and pagination
logic runs against canned GitHub responses.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, List

import httpx
import pytest

from src.triage.github import GitHubAPIError, GitHubClient, RateLimitError
from src.triage.models import IssueReference, LabelTag


def run_async(coro):
    return asyncio.run(coro)


REFERENCE = IssueReference(owner="acme", repo="widgets", number=42)


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GitHubClient:
    kwargs.setdefault("base_delay", 0.0)
    return GitHubClient(
        token="ghp_test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _labels_page(start: int, count: int) -> List[dict]:
    return [
        {"name": f"label-{i}", "description": f"Label {i}" if i % 2 else None}
        for i in range(start, start + count)
    ]


class TestListLabelsPagination:
    """Label listing follows pages until a short or empty page."""

    def _paged_handler(self, page_sizes: List[int], requests: List[httpx.Request]):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            page = int(request.url.params["page"])
            start = sum(page_sizes[: page - 1])
            return httpx.Response(200, json=_labels_page(start, page_sizes[page - 1]))

        return handler

    def test_short_last_page_is_appended(self):
        requests: List[httpx.Request] = []
        client = _client(self._paged_handler([100, 100, 37], requests))

        labels = run_async(client.list_labels("acme", "widgets"))

        assert len(labels) == 237
        assert len(requests) == 3
        assert labels[0].name == "label-0"
        assert labels[-1].name == "label-236"
        assert [r.url.params["per_page"] for r in requests] == ["100"] * 3

    def test_empty_page_ends_listing(self):
        requests: List[httpx.Request] = []
        client = _client(self._paged_handler([100, 100, 0], requests))

        labels = run_async(client.list_labels("acme", "widgets"))

        assert len(labels) == 200
        assert len(requests) == 3

    def test_single_short_page(self):
        requests: List[httpx.Request] = []
        client = _client(self._paged_handler([5], requests))

        labels = run_async(client.list_labels("acme", "widgets"))

        assert len(labels) == 5
        assert len(requests) == 1
        assert labels[1] == LabelTag(name="label-1", description="Label 1")
        assert labels[0].description is None

    def test_custom_page_size(self):
        requests: List[httpx.Request] = []
        client = _client(self._paged_handler([10, 10, 3], requests), page_size=10)

        labels = run_async(client.list_labels("acme", "widgets"))

        assert len(labels) == 23
        assert requests[0].url.params["per_page"] == "10"

    def test_invalid_page_size_rejected(self):
        with pytest.raises(ValueError):
            GitHubClient(token="t", page_size=101)


class TestGetIssue:
    """Issue payloads are mapped to Issue records."""

    def test_maps_labels_and_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/acme/widgets/issues/42"
            assert request.headers["Authorization"] == "Bearer ghp_test"
            return httpx.Response(
                200,
                json={
                    "title": "Login broken",
                    "body": "",
                    "labels": ["bug", {"name": "ui", "description": "User interface"}, {}],
                },
            )

        issue = run_async(_client(handler).get_issue(REFERENCE))

        assert issue.title == "Login broken"
        assert issue.body is None
        assert issue.reference == REFERENCE
        assert issue.labels == (
            LabelTag(name="bug"),
            LabelTag(name="ui", description="User interface"),
            LabelTag(name=""),
        )

    def test_not_found_raises_api_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(_client(handler).get_issue(REFERENCE))
        assert exc_info.value.status_code == 404


class TestAddLabels:
    def test_posts_label_names(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/repos/acme/widgets/issues/42/labels"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=[{"name": "bug"}, {"name": "ui"}])

        applied = run_async(_client(handler).add_labels(REFERENCE, ["bug", "ui"]))

        assert bodies == [{"labels": ["bug", "ui"]}]
        assert [label.name for label in applied] == ["bug", "ui"]


class TestRetries:
    """Transient failures are retried; rate limits are surfaced."""

    def test_retries_server_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(502)
            return httpx.Response(200, json={"title": "t", "body": "b", "labels": []})

        issue = run_async(_client(handler, max_retries=3).get_issue(REFERENCE))

        assert issue.body == "b"
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(GitHubAPIError):
            run_async(_client(handler, max_retries=2).get_issue(REFERENCE))
        assert len(calls) == 3

    def test_transport_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        labels = run_async(_client(handler).list_labels("acme", "widgets"))

        assert labels == []
        assert len(calls) == 2

    def test_exhausted_rate_limit_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "0", "retry-after": "30"},
            )

        with pytest.raises(RateLimitError) as exc_info:
            run_async(_client(handler).get_issue(REFERENCE))
        assert exc_info.value.retry_after == 30


class TestLifecycle:
    def test_async_context_manager_closes_client(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[])

        async def scenario():
            async with _client(handler) as client:
                await client.list_labels("acme", "widgets")
                inner = client._client
            return client, inner

        client, inner = run_async(scenario())
        assert inner.is_closed
        assert client._client is None
