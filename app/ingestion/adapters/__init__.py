"""Platform content sources."""

from app.ingestion.adapters.hackernews_adapter import HackerNewsAdapter
from app.ingestion.adapters.reddit_adapter import RedditAdapter
from app.ingestion.adapters.static_adapter import StaticSource

__all__ = ["HackerNewsAdapter", "RedditAdapter", "StaticSource"]
