"""Internal hunter endpoints for the external scheduler and scripts.

These endpoints are secured with a static token (X-Internal-Token header).
They are meant for automated triggers only. Worker endpoints accept GET and
POST because cron services differ in which one they send, and always answer
200 with a structured body so a failed tick never looks like a dead service.
"""

from __future__ import annotations

import logging
import secrets
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.session import get_db
from app.pipeline.exceptions import ScanLimitExceededError, UnsupportedPlatformError
from app.pipeline.executor import run_worker
from app.pipeline.recovery import recover_stale_jobs
from app.pipeline.scans import create_scan, get_scan_summary
from app.pipeline.states import JobType
from app.schemas.hunter import ScanCreate, ScanSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", include_in_schema=False)


# ── Token dependency ────────────────────────────────────────────────


def _require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the internal job token from the request header.

    Uses constant-time comparison to prevent timing attacks.
    Raises 403 if the token is empty or does not match the configured value.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Internal endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")


# ── Stage workers ───────────────────────────────────────────────────


def _run_stage_worker(db: Session, job_type: JobType, batch_size: int | None) -> dict:
    try:
        return run_worker(db, job_type, batch_size=batch_size)
    except Exception as exc:
        logger.exception("Hunter %s worker failed", job_type.value)
        return {"processed": 0, "error": str(exc)}


@router.api_route("/hunter/worker/collect", methods=["GET", "POST"])
def hunter_collect_worker(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    batch_size: int | None = Query(None, ge=1, le=100),
):
    """Fetch one page from one platform's source for one pending collect job."""
    return _run_stage_worker(db, JobType.COLLECT, batch_size)


@router.api_route("/hunter/worker/filter", methods=["GET", "POST"])
def hunter_filter_worker(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    batch_size: int | None = Query(None, ge=1, le=100),
):
    """Judge relevance for one batch of discovered items."""
    return _run_stage_worker(db, JobType.FILTER, batch_size)


@router.api_route("/hunter/worker/classify", methods=["GET", "POST"])
def hunter_classify_worker(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    batch_size: int | None = Query(None, ge=1, le=100),
):
    """Classify one batch of relevant items into discovered feedback."""
    return _run_stage_worker(db, JobType.CLASSIFY, batch_size)


@router.api_route("/hunter/recover_stale", methods=["GET", "POST"])
def hunter_recover_stale(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Fail and re-queue jobs whose worker died while holding the claim."""
    try:
        return {"recovered": recover_stale_jobs(db)}
    except Exception as exc:
        db.rollback()
        logger.exception("Stale job recovery failed")
        return {"recovered": 0, "error": str(exc)}


# ── Scans ───────────────────────────────────────────────────────────


@router.post("/hunter/scans", status_code=201, response_model=ScanSummary)
def hunter_create_scan(
    body: ScanCreate,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Start a scan: one collect job per platform.

    Returns 429 when the project already has its maximum of running scans and
    422 for platforms without a content source.
    """
    try:
        scan = create_scan(
            db,
            project_id=body.project_id,
            platforms=body.platforms,
            search_terms=body.search_terms,
            triggered_by=body.triggered_by,
        )
    except ScanLimitExceededError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from None
    except (UnsupportedPlatformError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    return get_scan_summary(db, scan.id)


@router.get("/hunter/scans/{scan_id}", response_model=ScanSummary)
def hunter_get_scan(
    scan_id: UUID,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Scan status, platform statuses, counters and job counts."""
    summary = get_scan_summary(db, scan_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Scan not found")
    return summary
