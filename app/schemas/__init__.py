"""Pydantic schemas for request/response validation."""

from app.schemas.hunter import (
    FEEDBACK_CLASSIFICATIONS,
    FeedbackClassification,
    PlatformStatusRead,
    RelevanceJudgment,
    ScanCreate,
    ScanSummary,
    SourceItem,
)

__all__ = [
    # Oracles and sources
    "FEEDBACK_CLASSIFICATIONS",
    "FeedbackClassification",
    "RelevanceJudgment",
    "SourceItem",
    # API
    "PlatformStatusRead",
    "ScanCreate",
    "ScanSummary",
]
