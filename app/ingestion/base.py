"""Platform content source interface for the collect stage."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.schemas.hunter import SourceItem

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048


@dataclass
class SourcePage:
    """One page of candidates. ``next_cursor`` is None when the source is exhausted."""

    items: list[SourceItem] = field(default_factory=list)
    next_cursor: str | None = None


class PlatformSource(ABC):
    """Pull source for one platform.

    Sources return pages of SourceItem; the collect stage stores them and
    deduplicates on (scan, platform, external_id). Transport or rate-limit
    failures raise RetryableStageError so the collect job is retried later.
    """

    @property
    @abstractmethod
    def platform(self) -> str:
        """Platform identifier (e.g. 'hackernews', 'reddit')."""
        ...

    @abstractmethod
    def fetch_page(self, search_terms: list[str], cursor: str | None, limit: int) -> SourcePage:
        """Fetch up to ``limit`` items matching ``search_terms`` starting at ``cursor``."""
        ...


def retry_after_seconds(headers) -> float | None:
    """Seconds from a Retry-After header, when it is given as a number."""
    value = headers.get("Retry-After") if headers is not None else None
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def to_source_items(
    platform: str, raw_items: Iterable[dict], convert: Callable[[dict], SourceItem | None]
) -> list[SourceItem]:
    """Convert raw platform records, skipping the ones that are not valid items.

    A malformed record is logged and dropped; it never costs the rest of the page.
    """
    items: list[SourceItem] = []
    for raw in raw_items:
        try:
            item = convert(raw)
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning("Skipping malformed %s record %r: %s", platform, _record_id(raw), exc)
            continue
        if item is not None:
            items.append(item)
    return items


def _record_id(raw: Any) -> Any:
    if isinstance(raw, dict):
        return raw.get("objectID") or raw.get("id")
    return None
