"""Hunter schemas: source items, oracle judgments and API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

FEEDBACK_CLASSIFICATIONS = (
    "bug",
    "feature_request",
    "usability_issue",
    "praise",
    "complaint",
    "comparison",
    "question",
    "churn_risk",
    "other",
)


# ── Collaborator payloads ──────────────────────────────────────────────────


class SourceItem(BaseModel):
    """One raw candidate returned by a platform content source.

    ``external_id`` is the platform's own id and the item's idempotency key.
    """

    external_id: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    title: Optional[str] = Field(None, max_length=512)
    author: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = Field(None, max_length=2048)
    posted_at: Optional[datetime] = None
    metadata: dict = Field(default_factory=dict)


class RelevanceJudgment(BaseModel):
    """Relevance oracle output for one item."""

    score: float = Field(..., ge=0, le=100)
    decision: Literal["include", "exclude", "human_review"]
    reason: str = ""


class FeedbackClassification(BaseModel):
    """Classification oracle output for one item."""

    classification: str = "other"
    confidence: float = Field(0.5, ge=0, le=1)
    urgency: int = Field(1, ge=1, le=5)
    sentiment: float = Field(0.0, ge=-1, le=1)
    tags: list[str] = Field(default_factory=list)
    quotable: Optional[str] = None
    action_needed: bool = False

    @field_validator("classification")
    @classmethod
    def _known_classification(cls, v: str) -> str:
        v = (v or "other").strip().lower()
        return v if v in FEEDBACK_CLASSIFICATIONS else "other"


# ── API ────────────────────────────────────────────────────────────────────


class ScanCreate(BaseModel):
    """Request body for starting a scan."""

    project_id: UUID
    platforms: list[str] = Field(..., min_length=1)
    search_terms: list[str] = Field(..., min_length=1)
    triggered_by: Optional[str] = Field(None, max_length=255)


class PlatformStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    platform: str
    status: str
    error: Optional[str] = None
    updated_at: datetime


class ScanSummary(BaseModel):
    """Scan row plus its platform statuses and job counts."""

    id: UUID
    project_id: UUID
    status: str
    platforms: list[PlatformStatusRead]
    search_terms: list[str]
    total_collected: int
    total_relevant: int
    total_classified: int
    jobs: dict[str, int]
    created_at: datetime
    completed_at: Optional[datetime] = None
