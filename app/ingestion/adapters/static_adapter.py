"""Static source returning fixed items, for tests and local development."""

from __future__ import annotations

from datetime import UTC, datetime

from app.ingestion.base import PlatformSource, SourcePage
from app.schemas.hunter import SourceItem


def default_items(platform: str) -> list[SourceItem]:
    """A small canned backlog about "Acme": one bug, one request, one unrelated post."""
    return [
        SourceItem(
            external_id=f"{platform}-static-001",
            title="Export keeps crashing",
            content="The Acme CSV export crashes every time I pick more than a month of data.",
            author="alice",
            url=f"https://example.com/{platform}/1",
            posted_at=datetime(2026, 1, 5, 9, 0, tzinfo=UTC),
        ),
        SourceItem(
            external_id=f"{platform}-static-002",
            title="Slack integration?",
            content="I wish Acme had a Slack integration so the team sees new feedback.",
            author="bob",
            url=f"https://example.com/{platform}/2",
            posted_at=datetime(2026, 1, 6, 14, 30, tzinfo=UTC),
        ),
        SourceItem(
            external_id=f"{platform}-static-003",
            title="Weekend hiking photos",
            content="Some photos from the hike last weekend.",
            author="carol",
            url=f"https://example.com/{platform}/3",
            posted_at=datetime(2026, 1, 7, 18, 0, tzinfo=UTC),
        ),
    ]


class StaticSource(PlatformSource):
    """Serves ``items`` in order; the cursor is the integer offset."""

    def __init__(self, platform: str, items: list[SourceItem] | None = None) -> None:
        self._platform = platform
        self.items = list(items) if items is not None else default_items(platform)
        self.calls: list[tuple[str | None, int]] = []

    @property
    def platform(self) -> str:
        return self._platform

    def fetch_page(self, search_terms: list[str], cursor: str | None, limit: int) -> SourcePage:
        self.calls.append((cursor, limit))
        offset = int(cursor) if cursor else 0
        page = self.items[offset : offset + limit]
        end = offset + len(page)
        return SourcePage(items=page, next_cursor=str(end) if end < len(self.items) else None)
