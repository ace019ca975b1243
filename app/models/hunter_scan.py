"""HunterScan model: one discovery run for one project across its platforms."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.pipeline.states import ScanStatus


class HunterScan(Base):
    """A scan fans out to one platform status row and one job chain per platform.

    ``status`` is written only by the completion checker; counters are
    incremented additively by stage workers.
    """

    __tablename__ = "hunter_scans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    platforms: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    search_terms: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ScanStatus.RUNNING.value
    )
    triggered_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_collected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_relevant: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_classified: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_hunter_scans_project_status", "project_id", "status"),)
