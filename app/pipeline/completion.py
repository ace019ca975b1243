"""Scan completion checker: fan-in of per-platform terminal states."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.hunter_scan import HunterScan
from app.pipeline.enrichment import run_non_critical
from app.pipeline.platform_status import get_platform_statuses
from app.pipeline.states import (
    PLATFORM_TERMINAL,
    SCAN_TRANSITIONS,
    PlatformStatus,
    ScanStatus,
    values,
)

logger = logging.getLogger(__name__)


def resolve_scan_status(statuses: dict[str, PlatformStatus]) -> ScanStatus:
    """Overall status implied by the platform statuses.

    RUNNING while any platform is non-terminal (or there are none), COMPLETE
    when all are terminal and at least one completed, FAILED when all failed.
    """
    if not statuses or any(s not in PLATFORM_TERMINAL for s in statuses.values()):
        return ScanStatus.RUNNING
    if any(s is PlatformStatus.COMPLETE for s in statuses.values()):
        return ScanStatus.COMPLETE
    return ScanStatus.FAILED


def check_scan_complete(db: Session, scan_id: UUID) -> bool:
    """Re-read every platform status and close the scan when all are terminal.

    Safe to call redundantly and concurrently: the write is
    ``UPDATE ... WHERE status = 'running'``, so only one caller performs the
    transition. Returns True for that caller only; it also sends the
    best-effort completion notification.
    """
    target = resolve_scan_status(get_platform_statuses(db, scan_id))
    if target is ScanStatus.RUNNING:
        return False

    result = db.execute(
        update(HunterScan)
        .where(
            HunterScan.id == scan_id,
            HunterScan.status.in_(values(SCAN_TRANSITIONS[target])),
        )
        .values(status=target.value, completed_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return False

    logger.info("Scan %s finished: status=%s", scan_id, target.value)
    run_non_critical("scan_complete_notification", notify_scan_complete, db, scan_id)
    return True


def notify_scan_complete(db: Session, scan_id: UUID) -> None:
    """Email the scan summary when HUNTER_NOTIFY_EMAIL_TO is configured."""
    settings = get_settings()
    if not settings.hunter_notify_email_to:
        return
    from app.services.email_service import send_scan_complete_email

    scan = db.get(HunterScan, scan_id, populate_existing=True)
    if scan is None:
        return
    statuses = {p: s.value for p, s in get_platform_statuses(db, scan_id).items()}
    send_scan_complete_email(scan, statuses, settings.hunter_notify_email_to, settings)
