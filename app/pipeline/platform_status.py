"""Platform status tracker: monotonic per (scan, platform) status updates."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.hunter_platform_status import HunterPlatformStatus
from app.pipeline.states import PlatformStatus, platform_sources_for, values

logger = logging.getLogger(__name__)


def get_platform_status(db: Session, scan_id: UUID, platform: str) -> PlatformStatus | None:
    """Current status for (scan, platform), or None if the scan has no such platform."""
    raw = db.scalar(
        select(HunterPlatformStatus.status).where(
            HunterPlatformStatus.scan_id == scan_id,
            HunterPlatformStatus.platform == platform,
        )
    )
    return PlatformStatus(raw) if raw is not None else None


def get_platform_statuses(db: Session, scan_id: UUID) -> dict[str, PlatformStatus]:
    rows = db.execute(
        select(HunterPlatformStatus.platform, HunterPlatformStatus.status).where(
            HunterPlatformStatus.scan_id == scan_id
        )
    ).all()
    return {platform: PlatformStatus(status) for platform, status in rows}


def advance_platform_status(
    db: Session,
    scan_id: UUID,
    platform: str,
    new_status: PlatformStatus,
    error: str | None = None,
) -> bool:
    """Move (scan, platform) to ``new_status`` if that is a legal forward move.

    Single conditional UPDATE: backward moves and moves out of a terminal
    status match no row and are ignored. Re-asserting the current status is
    accepted. Returns True when a row was written.
    """
    stmt = (
        update(HunterPlatformStatus)
        .where(
            HunterPlatformStatus.scan_id == scan_id,
            HunterPlatformStatus.platform == platform,
            HunterPlatformStatus.status.in_(values(platform_sources_for(new_status))),
        )
        .values(status=new_status.value, updated_at=datetime.now(UTC))
    )
    if error is not None:
        stmt = stmt.values(error=error[:2000])
    result = db.execute(stmt)
    db.commit()
    if result.rowcount == 0:
        logger.debug(
            "Ignoring platform status move: scan_id=%s platform=%s -> %s",
            scan_id,
            platform,
            new_status.value,
        )
        return False
    return True


def mark_platform_failed(db: Session, scan_id: UUID, platform: str, reason: str) -> bool:
    """Absorbing failure; no-op once the platform is already terminal."""
    moved = advance_platform_status(db, scan_id, platform, PlatformStatus.FAILED, error=reason)
    if moved:
        logger.warning(
            "Platform failed: scan_id=%s platform=%s reason=%s", scan_id, platform, reason
        )
    return moved
