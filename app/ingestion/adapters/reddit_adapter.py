"""Reddit source via the public search JSON endpoint.

All search terms are OR-ed into one query; the cursor is Reddit's ``after``
token. Set REDDIT_USER_AGENT to something identifying, Reddit throttles the
default agents aggressively.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from app.config import get_settings
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

_REDDIT_SEARCH = "https://www.reddit.com/search.json"
_REDDIT_BASE = "https://www.reddit.com"


def build_query(search_terms: list[str]) -> str:
    """``["Acme", "Acme App"]`` -> ``"Acme" OR "Acme App"``."""
    quoted = [f'"{t.strip()}"' for t in search_terms if t and t.strip()]
    return " OR ".join(quoted)


def _post_to_item(post: dict) -> SourceItem | None:
    post_id = post.get("id")
    title = post.get("title") or ""
    body = post.get("selftext") or ""
    content = (f"{title}\n\n{body}" if body else title).strip()
    if not post_id or not content:
        return None
    created = post.get("created_utc")
    posted_at = datetime.fromtimestamp(float(created), tz=UTC) if created else None
    permalink = post.get("permalink")
    url = f"{_REDDIT_BASE}{permalink}" if permalink else post.get("url")
    if url and len(url) > MAX_URL_LENGTH:
        url = None
    return SourceItem(
        external_id=str(post_id)[:255],
        content=content,
        title=title[:512] or None,
        author=(post.get("author") or "")[:255] or None,
        url=url,
        posted_at=posted_at,
        metadata={
            "subreddit": post.get("subreddit"),
            "score": post.get("score"),
            "num_comments": post.get("num_comments"),
        },
    )


class RedditAdapter(PlatformSource):
    """Reddit posts mentioning any of the search terms, newest first."""

    def __init__(self, timeout: float = 15.0, user_agent: str | None = None) -> None:
        self.timeout = timeout
        self.user_agent = user_agent or get_settings().reddit_user_agent

    @property
    def platform(self) -> str:
        return "reddit"

    def fetch_page(self, search_terms: list[str], cursor: str | None, limit: int) -> SourcePage:
        query = build_query(search_terms)
        if not query:
            return SourcePage()

        params: dict[str, str | int] = {"q": query, "sort": "new", "limit": min(limit, 100)}
        if cursor:
            params["after"] = cursor
        try:
            with httpx.Client(
                timeout=self.timeout, headers={"User-Agent": self.user_agent}
            ) as client:
                response = client.get(_REDDIT_SEARCH, params=params)
        except httpx.HTTPError as exc:
            raise RetryableStageError(f"reddit request failed: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStageError(
                f"reddit returned HTTP {response.status_code}",
                retry_after=retry_after_seconds(response.headers),
            )
        if response.status_code != 200:
            raise StageError(f"reddit returned HTTP {response.status_code}")

        listing = (response.json() or {}).get("data") or {}
        posts = [child.get("data") or {} for child in listing.get("children") or []]
        items = to_source_items(self.platform, posts, _post_to_item)
        next_cursor = listing.get("after") or None
        logger.info("reddit page: items=%d next=%s", len(items), next_cursor)
        return SourcePage(items=items, next_cursor=next_cursor)
