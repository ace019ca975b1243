"""Scan initializer and status summary."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.ingestion.registry import is_supported
from app.models.hunter_platform_status import HunterPlatformStatus
from app.models.hunter_scan import HunterScan
from app.pipeline.exceptions import UnsupportedPlatformError
from app.pipeline.job_store import count_jobs_by_status, create_job
from app.pipeline.rate_limits import check_project_scan_limit
from app.pipeline.states import JobType, PlatformStatus, ScanStatus
from app.schemas.hunter import PlatformStatusRead, ScanSummary

logger = logging.getLogger(__name__)


def _normalize(values: list[str]) -> list[str]:
    """Strip, drop blanks and duplicates, keep order."""
    seen: list[str] = []
    for value in values:
        v = (value or "").strip()
        if v and v not in seen:
            seen.append(v)
    return seen


def create_scan(
    db: Session,
    project_id: UUID,
    platforms: list[str],
    search_terms: list[str],
    triggered_by: str | None = None,
) -> HunterScan:
    """Create a running scan, a pending status row per platform and the first collect jobs.

    Raises:
        UnsupportedPlatformError: a platform has no content source (nothing is written).
        ScanLimitExceededError: the project is at its running-scan limit.
        ValueError: no platforms or no search terms after normalisation.
    """
    platforms = [p.lower() for p in _normalize(platforms)]
    search_terms = _normalize(search_terms)
    if not platforms:
        raise ValueError("At least one platform is required")
    if not search_terms:
        raise ValueError("At least one search term is required")

    unsupported = [p for p in platforms if not is_supported(p)]
    if unsupported:
        raise UnsupportedPlatformError(f"Unsupported platform(s): {', '.join(unsupported)}")

    check_project_scan_limit(db, project_id)

    scan = HunterScan(
        project_id=project_id,
        platforms=platforms,
        search_terms=search_terms,
        status=ScanStatus.RUNNING.value,
        triggered_by=triggered_by,
    )
    db.add(scan)
    db.flush()
    for platform in platforms:
        db.add(
            HunterPlatformStatus(
                scan_id=scan.id, platform=platform, status=PlatformStatus.PENDING.value
            )
        )
    db.commit()

    for platform in platforms:
        create_job(db, scan.id, project_id, JobType.COLLECT, platform)

    db.refresh(scan)
    logger.info(
        "Scan created: scan_id=%s project_id=%s platforms=%s terms=%d",
        scan.id,
        project_id,
        platforms,
        len(search_terms),
    )
    return scan


def get_scan_summary(db: Session, scan_id: UUID) -> ScanSummary | None:
    """Scan row with platform statuses and job counts, or None if unknown."""
    scan = db.get(HunterScan, scan_id, populate_existing=True)
    if scan is None:
        return None
    statuses = db.scalars(
        select(HunterPlatformStatus)
        .where(HunterPlatformStatus.scan_id == scan_id)
        .order_by(HunterPlatformStatus.platform)
    ).all()
    return ScanSummary(
        id=scan.id,
        project_id=scan.project_id,
        status=scan.status,
        platforms=[PlatformStatusRead.model_validate(s) for s in statuses],
        search_terms=list(scan.search_terms or []),
        total_collected=scan.total_collected,
        total_relevant=scan.total_relevant,
        total_classified=scan.total_classified,
        jobs=count_jobs_by_status(db, scan_id),
        created_at=scan.created_at,
        completed_at=scan.completed_at,
    )
