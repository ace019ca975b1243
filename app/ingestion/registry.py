"""Platform -> content source lookup."""

from __future__ import annotations

import logging

from app.config import get_settings
from app.ingestion.base import PlatformSource
from app.pipeline.exceptions import SourceNotConfiguredError

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS: tuple[str, ...] = ("hackernews", "reddit")

# Explicit registrations win over the defaults (tests, custom deployments)
_registered: dict[str, PlatformSource] = {}


def register_source(source: PlatformSource) -> None:
    _registered[source.platform] = source


def clear_registered_sources() -> None:
    """Drop explicit registrations. Useful for testing."""
    _registered.clear()


def is_supported(platform: str) -> bool:
    return platform in SUPPORTED_PLATFORMS or platform in _registered


def get_source(platform: str) -> PlatformSource:
    """Return the content source for ``platform``.

    - Registered source for the platform, if any.
    - HUNTER_USE_STATIC_SOURCE=1: StaticSource with canned items.
    - Else the platform's live adapter.
    Raises SourceNotConfiguredError for unknown platforms.
    """
    if platform in _registered:
        return _registered[platform]

    if platform not in SUPPORTED_PLATFORMS:
        raise SourceNotConfiguredError(f"No content source for platform '{platform}'")

    if get_settings().hunter_use_static_source:
        from app.ingestion.adapters.static_adapter import StaticSource

        return StaticSource(platform)

    if platform == "hackernews":
        from app.ingestion.adapters.hackernews_adapter import HackerNewsAdapter

        return HackerNewsAdapter()

    from app.ingestion.adapters.reddit_adapter import RedditAdapter

    return RedditAdapter()
