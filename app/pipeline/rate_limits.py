"""Per-project concurrency limit for scans."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.hunter_scan import HunterScan
from app.pipeline.exceptions import ScanLimitExceededError
from app.pipeline.states import ScanStatus

logger = logging.getLogger(__name__)


def count_running_scans(db: Session, project_id: UUID) -> int:
    return (
        db.scalar(
            select(func.count(HunterScan.id)).where(
                HunterScan.project_id == project_id,
                HunterScan.status == ScanStatus.RUNNING.value,
            )
        )
        or 0
    )


def check_project_scan_limit(db: Session, project_id: UUID) -> None:
    """Raise ScanLimitExceededError when the project is at its running-scan limit.

    Disabled when HUNTER_MAX_RUNNING_SCANS_PER_PROJECT is 0 or negative.
    """
    limit = get_settings().hunter_max_running_scans_per_project
    if limit <= 0:
        return

    running = count_running_scans(db, project_id)
    if running >= limit:
        logger.warning(
            "Scan limit exceeded: project_id=%s running=%d limit=%d",
            project_id,
            running,
            limit,
        )
        raise ScanLimitExceededError(
            f"Project {project_id} already has {running} running scan(s) (limit {limit})",
            current=running,
            limit=limit,
        )
