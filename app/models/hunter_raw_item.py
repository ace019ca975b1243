"""HunterRawItem model: a candidate fetched by the collect stage."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.pipeline.states import ItemStage


class HunterRawItem(Base):
    """Raw content is owned by collect; filter and classify only add judgments.

    Unique per (scan_id, platform, external_id) so a re-run collect page does
    not duplicate items.
    """

    __tablename__ = "hunter_raw_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    scan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hunter_scans.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    platform: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    raw_metadata: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    stage: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ItemStage.DISCOVERED.value
    )
    relevance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    relevance_decision: Mapped[str | None] = mapped_column(String(32), nullable=True)
    relevance_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    classification: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "scan_id", "platform", "external_id", name="uq_hunter_raw_items_scan_platform_ext"
        ),
        Index("ix_hunter_raw_items_batch", "scan_id", "platform", "stage"),
    )
