"""Hacker News source via the Algolia search API.

Searches stories and comments for each search term, newest first. The cursor
is ``"<term_index>:<page>"`` so one collect job walks one page of one term and
the continuation job picks up from there. No API key required.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any

import httpx

from app.ingestion.base import (
    MAX_URL_LENGTH,
    PlatformSource,
    SourcePage,
    retry_after_seconds,
    to_source_items,
)
from app.pipeline.exceptions import RetryableStageError, StageError
from app.schemas.hunter import SourceItem

logger = logging.getLogger(__name__)

_ALGOLIA_SEARCH = "https://hn.algolia.com/api/v1/search_by_date"
_HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
_TAG_RE = re.compile(r"<[^>]+>")


def _parse_cursor(cursor: str | None) -> tuple[int, int]:
    if not cursor:
        return 0, 0
    try:
        term_idx, page = cursor.split(":", 1)
        return max(int(term_idx), 0), max(int(page), 0)
    except ValueError:
        logger.warning("Ignoring malformed hackernews cursor %r", cursor)
        return 0, 0


def _strip_html(text: str) -> str:
    text = _TAG_RE.sub(" ", text)
    for entity, char in (("&#x27;", "'"), ("&quot;", '"'), ("&gt;", ">"), ("&lt;", "<"), ("&amp;", "&")):
        text = text.replace(entity, char)
    return " ".join(text.split())


def _parse_created_at(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except ValueError:
        return None


def _hit_to_item(hit: dict, term: str) -> SourceItem | None:
    """Map an Algolia hit to SourceItem; None for hits without text."""
    object_id = hit.get("objectID")
    body = hit.get("comment_text") or hit.get("story_text") or ""
    title = hit.get("title") or hit.get("story_title")
    content = _strip_html(body) or (title or "")
    if not object_id or not content.strip():
        return None
    url = hit.get("url")
    if not url or len(url) > MAX_URL_LENGTH:
        url = _HN_ITEM_URL.format(id=object_id)
    return SourceItem(
        external_id=str(object_id)[:255],
        content=content,
        title=title[:512] if title else None,
        author=(hit.get("author") or "")[:255] or None,
        url=url,
        posted_at=_parse_created_at(hit.get("created_at")),
        metadata={
            "points": hit.get("points"),
            "num_comments": hit.get("num_comments"),
            "search_term": term,
        },
    )


class HackerNewsAdapter(PlatformSource):
    """Hacker News stories and comments mentioning the search terms."""

    def __init__(self, timeout: float = 15.0) -> None:
        self.timeout = timeout

    @property
    def platform(self) -> str:
        return "hackernews"

    def fetch_page(self, search_terms: list[str], cursor: str | None, limit: int) -> SourcePage:
        terms = [t for t in search_terms if t and t.strip()]
        term_idx, page = _parse_cursor(cursor)
        if term_idx >= len(terms):
            return SourcePage()

        term = terms[term_idx]
        params: dict[str, str | int] = {
            "query": term,
            "tags": "(story,comment)",
            "hitsPerPage": limit,
            "page": page,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(_ALGOLIA_SEARCH, params=params)
        except httpx.HTTPError as exc:
            raise RetryableStageError(f"hackernews request failed: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStageError(
                f"hackernews returned HTTP {response.status_code}",
                retry_after=retry_after_seconds(response.headers),
            )
        if response.status_code != 200:
            raise StageError(f"hackernews returned HTTP {response.status_code}")

        data = response.json()
        items = to_source_items(
            self.platform, data.get("hits") or [], lambda hit: _hit_to_item(hit, term)
        )
        nb_pages = int(data.get("nbPages") or 0)

        if page + 1 < nb_pages:
            next_cursor: str | None = f"{term_idx}:{page + 1}"
        elif term_idx + 1 < len(terms):
            next_cursor = f"{term_idx + 1}:0"
        else:
            next_cursor = None
        logger.info(
            "hackernews page: term=%r page=%d items=%d next=%s", term, page, len(items), next_cursor
        )
        return SourcePage(items=items, next_cursor=next_cursor)
