"""Tests for platform content sources and the source registry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.ingestion.adapters.hackernews_adapter import HackerNewsAdapter
from app.ingestion.adapters.reddit_adapter import RedditAdapter, build_query
from app.ingestion.adapters.static_adapter import StaticSource
from app.ingestion.base import retry_after_seconds
from app.ingestion.registry import get_source, is_supported, register_source
from app.pipeline.exceptions import (
    RetryableStageError,
    SourceNotConfiguredError,
    StageError,
)
from tests.factories import source_items


def _mock_response(status_code: int = 200, payload=None, headers=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.headers = headers or {}
    return response


def _patched_client(response: MagicMock | None = None, side_effect=None):
    """Patch httpx.Client so ``with httpx.Client(...) as c: c.get(...)`` returns ``response``."""
    patcher = patch("httpx.Client")
    mock_client_cls = patcher.start()
    mock_client = MagicMock()
    mock_client_cls.return_value.__enter__.return_value = mock_client
    if side_effect is not None:
        mock_client.get.side_effect = side_effect
    else:
        mock_client.get.return_value = response
    return patcher, mock_client


# ── Hacker News ─────────────────────────────────────────────────────


class TestHackerNewsAdapter:
    HITS = {
        "hits": [
            {
                "objectID": "101",
                "comment_text": "<p>Acme&#x27;s export is <i>broken</i></p>",
                "story_title": "Ask HN: CSV tools",
                "author": "pg",
                "created_at": "2026-01-10T08:00:00Z",
            },
            {"objectID": "102", "title": "Show HN: Acme 2.0", "url": "https://acme.test"},
            {"objectID": "103"},
        ],
        "nbPages": 2,
    }

    def test_maps_hits_and_sets_next_page(self) -> None:
        patcher, client = _patched_client(_mock_response(payload=self.HITS))
        try:
            page = HackerNewsAdapter().fetch_page(["Acme"], None, 20)
        finally:
            patcher.stop()

        assert [i.external_id for i in page.items] == ["101", "102"]
        first = page.items[0]
        assert first.content == "Acme's export is broken"
        assert first.title == "Ask HN: CSV tools"
        assert first.url == "https://news.ycombinator.com/item?id=101"
        assert first.posted_at.year == 2026
        assert first.metadata["search_term"] == "Acme"
        assert page.next_cursor == "0:1"
        params = client.get.call_args.kwargs["params"]
        assert params["query"] == "Acme"
        assert params["hitsPerPage"] == 20

    def test_last_page_moves_to_next_term(self) -> None:
        payload = {"hits": [], "nbPages": 2}
        patcher, client = _patched_client(_mock_response(payload=payload))
        try:
            page = HackerNewsAdapter().fetch_page(["Acme", "Acme App"], "0:1", 20)
        finally:
            patcher.stop()
        assert page.next_cursor == "1:0"

        patcher, client = _patched_client(_mock_response(payload=payload))
        try:
            page = HackerNewsAdapter().fetch_page(["Acme", "Acme App"], "1:1", 20)
        finally:
            patcher.stop()
        assert page.next_cursor is None
        assert client.get.call_args.kwargs["params"]["query"] == "Acme App"

    def test_cursor_past_last_term_is_empty(self) -> None:
        page = HackerNewsAdapter().fetch_page(["Acme"], "3:0", 20)
        assert page.items == []
        assert page.next_cursor is None

    def test_rate_limit_is_retryable_with_retry_after(self) -> None:
        patcher, _ = _patched_client(_mock_response(429, headers={"Retry-After": "30"}))
        try:
            with pytest.raises(RetryableStageError) as exc_info:
                HackerNewsAdapter().fetch_page(["Acme"], None, 20)
        finally:
            patcher.stop()
        assert exc_info.value.retry_after == 30.0

    def test_transport_error_is_retryable(self) -> None:
        patcher, _ = _patched_client(side_effect=httpx.ConnectError("refused"))
        try:
            with pytest.raises(RetryableStageError):
                HackerNewsAdapter().fetch_page(["Acme"], None, 20)
        finally:
            patcher.stop()

    def test_client_error_is_not_retryable(self) -> None:
        patcher, _ = _patched_client(_mock_response(400))
        try:
            with pytest.raises(StageError) as exc_info:
                HackerNewsAdapter().fetch_page(["Acme"], None, 20)
        finally:
            patcher.stop()
        assert exc_info.value.retryable is False

    def test_malformed_hit_is_skipped_and_oversized_fields_are_bounded(self) -> None:
        payload = {
            "hits": [
                {"objectID": "201", "comment_text": "Acme sync is slow"},
                {
                    "objectID": "202",
                    "story_text": "Acme lost my settings",
                    "url": "https://acme.test/" + "a" * 3000,
                    "author": "x" * 300,
                },
                {"objectID": "203", "story_text": "Acme again", "title": ["not", "a", "title"]},
                {"objectID": "204", "comment_text": "Acme pricing", "author": 42},
            ],
            "nbPages": 1,
        }
        patcher, _ = _patched_client(_mock_response(payload=payload))
        try:
            page = HackerNewsAdapter().fetch_page(["Acme"], None, 20)
        finally:
            patcher.stop()

        assert [i.external_id for i in page.items] == ["201", "202"]
        long_one = page.items[1]
        assert long_one.url == "https://news.ycombinator.com/item?id=202"
        assert len(long_one.author) == 255


# ── Reddit ──────────────────────────────────────────────────────────


class TestRedditAdapter:
    LISTING = {
        "data": {
            "children": [
                {
                    "data": {
                        "id": "abc",
                        "title": "Acme keeps logging me out",
                        "selftext": "Every morning. Is there a way to fix it?",
                        "author": "someone",
                        "permalink": "/r/saas/comments/abc/",
                        "created_utc": 1767600000,
                        "subreddit": "saas",
                    }
                },
                {"data": {"id": "def", "title": ""}},
            ],
            "after": "t3_abc",
        }
    }

    def test_build_query(self) -> None:
        assert build_query(["Acme", " Acme App ", ""]) == '"Acme" OR "Acme App"'

    def test_maps_posts_and_passes_cursor(self) -> None:
        patcher, client = _patched_client(_mock_response(payload=self.LISTING))
        try:
            page = RedditAdapter(user_agent="hunter-test/1.0").fetch_page(["Acme"], "t3_prev", 200)
        finally:
            patcher.stop()

        assert [i.external_id for i in page.items] == ["abc"]
        item = page.items[0]
        assert item.content.startswith("Acme keeps logging me out\n\nEvery morning.")
        assert item.url == "https://www.reddit.com/r/saas/comments/abc/"
        assert item.metadata["subreddit"] == "saas"
        assert page.next_cursor == "t3_abc"
        params = client.get.call_args.kwargs["params"]
        assert params["after"] == "t3_prev"
        assert params["limit"] == 100

    def test_server_error_is_retryable(self) -> None:
        patcher, _ = _patched_client(_mock_response(503))
        try:
            with pytest.raises(RetryableStageError) as exc_info:
                RedditAdapter(user_agent="hunter-test/1.0").fetch_page(["Acme"], None, 25)
        finally:
            patcher.stop()
        assert exc_info.value.retry_after is None

    def test_no_terms_no_request(self) -> None:
        with patch("httpx.Client") as mock_client_cls:
            page = RedditAdapter(user_agent="hunter-test/1.0").fetch_page([], None, 25)
        mock_client_cls.assert_not_called()
        assert page.items == []

    def test_malformed_post_is_skipped(self) -> None:
        listing = {
            "data": {
                "children": [
                    {"data": {"id": "p1", "title": "Acme is great", "created_utc": "yesterday"}},
                    {
                        "data": {
                            "id": "p2",
                            "title": "Acme export bug",
                            "url": "https://acme.test/" + "b" * 3000,
                        }
                    },
                ],
                "after": None,
            }
        }
        patcher, _ = _patched_client(_mock_response(payload=listing))
        try:
            page = RedditAdapter(user_agent="hunter-test/1.0").fetch_page(["Acme"], None, 25)
        finally:
            patcher.stop()

        assert [i.external_id for i in page.items] == ["p2"]
        assert page.items[0].url is None
        assert page.next_cursor is None


# ── Static source and registry ──────────────────────────────────────


def test_static_source_pages_by_offset() -> None:
    source = StaticSource("hackernews", items=source_items(5))
    first = source.fetch_page([], None, 2)
    assert [i.external_id for i in first.items] == ["item-000", "item-001"]
    assert first.next_cursor == "2"
    last = source.fetch_page([], "4", 2)
    assert [i.external_id for i in last.items] == ["item-004"]
    assert last.next_cursor is None


def test_registry_defaults_and_registration() -> None:
    # HUNTER_USE_STATIC_SOURCE=1 in tests
    assert isinstance(get_source("hackernews"), StaticSource)
    assert is_supported("reddit")
    assert not is_supported("mastodon")
    with pytest.raises(SourceNotConfiguredError):
        get_source("mastodon")

    custom = StaticSource("mastodon", items=[])
    register_source(custom)
    assert is_supported("mastodon")
    assert get_source("mastodon") is custom


def test_live_adapters_when_static_disabled(settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "hunter_use_static_source", False)
    assert isinstance(get_source("hackernews"), HackerNewsAdapter)
    assert isinstance(get_source("reddit"), RedditAdapter)


@pytest.mark.parametrize(
    ("headers", "expected"),
    [({"Retry-After": "12"}, 12.0), ({"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}, None), ({}, None)],
)
def test_retry_after_seconds(headers, expected) -> None:
    assert retry_after_seconds(headers) == expected
