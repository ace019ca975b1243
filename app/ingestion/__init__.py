"""Platform content sources consumed by the collect stage."""

from app.ingestion.base import PlatformSource, SourcePage
from app.ingestion.registry import SUPPORTED_PLATFORMS, get_source, register_source

__all__ = ["PlatformSource", "SourcePage", "SUPPORTED_PLATFORMS", "get_source", "register_source"]
