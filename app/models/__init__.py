"""SQLAlchemy models."""

from app.models.discovered_feedback import DiscoveredFeedback
from app.models.hunter_job import HunterJob
from app.models.hunter_platform_status import HunterPlatformStatus
from app.models.hunter_raw_item import HunterRawItem
from app.models.hunter_scan import HunterScan

__all__ = [
    "DiscoveredFeedback",
    "HunterJob",
    "HunterPlatformStatus",
    "HunterRawItem",
    "HunterScan",
]
