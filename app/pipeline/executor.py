"""Stage worker harness: one bounded invocation of collect, filter or classify.

An invocation claims at most one job, processes one bounded batch for the
job's (scan, platform), then either enqueues a continuation job or advances
the platform to the next stage. Invocations are triggered by an external
scheduler, so the harness tolerates being called zero, one or many times per
interval and concurrently with itself.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.hunter_job import HunterJob
from app.models.hunter_scan import HunterScan
from app.pipeline.completion import check_scan_complete
from app.pipeline.enrichment import ClassifyCompleted, trigger_post_classify_enrichment
from app.pipeline.exceptions import RetryableStageError, SourceNotConfiguredError, StageError
from app.pipeline.items import count_by_stage, increment_scan_counters
from app.pipeline.job_store import (
    claim_job,
    complete_job,
    create_job,
    fail_job,
    requeue_failed_job,
    retry_budget_left,
)
from app.pipeline.platform_status import (
    advance_platform_status,
    get_platform_status,
    mark_platform_failed,
)
from app.pipeline.stages import STAGE_REGISTRY, Batch, PipelineStage
from app.pipeline.states import (
    STAGE_IN_PROGRESS,
    ItemStage,
    JobType,
    PlatformStatus,
    next_stage,
    stage_accepts_jobs,
)

logger = logging.getLogger(__name__)


def run_worker(db: Session, job_type: JobType, *, batch_size: int | None = None) -> dict[str, Any]:
    """Run one invocation of the ``job_type`` stage worker.

    Never raises for store failures. A failure before any job is claimed is
    rolled back and returns ``{"processed": 0, "error": ...}``. After a claim
    the job is failed as retryable and re-queued under the retry policy; when
    the store is too far gone for that, stale-job recovery releases it.
    """
    try:
        job = claim_job(db, job_type)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s worker: store failure before claim", job_type.value)
        return {"processed": 0, "error": _store_error(exc)}
    if job is None:
        return {"processed": 0, "message": "No pending jobs"}

    stage = STAGE_REGISTRY[job_type]
    result: dict[str, Any] = {
        "processed": 1,
        "platform": job.platform,
        "job_id": str(job.id),
        **{name: 0 for name in stage.counters},
        "failed": 0,
        "continued": False,
    }
    try:
        _run(db, job, stage, result, batch_size)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "%s worker: store failure on job %s (platform=%s)",
            job_type.value,
            result["job_id"],
            result["platform"],
        )
        _fail_after_store_error(db, job, result["job_id"], exc)
        result["error"] = _store_error(exc)
    return result


def _store_error(exc: SQLAlchemyError) -> str:
    return f"store unavailable: {type(exc).__name__}"


def _fail_after_store_error(db: Session, job: HunterJob, job_id: str, exc: SQLAlchemyError) -> None:
    try:
        _handle_job_failure(db, job, RetryableStageError(_store_error(exc)))
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record failure of job %s; left to stale recovery", job_id)


def _run(
    db: Session,
    job: HunterJob,
    stage: PipelineStage,
    result: dict[str, Any],
    batch_size: int | None,
) -> None:
    settings = get_settings()
    job_type = stage.job_type

    status = get_platform_status(db, job.scan_id, job.platform)
    if status is None or not stage_accepts_jobs(status, job_type):
        # Duplicate or late job: the platform is terminal or past this stage
        complete_job(db, job.id)
        logger.info(
            "Skipping %s job %s: platform %s is %s",
            job_type.value,
            job.id,
            job.platform,
            status.value if status else "missing",
        )
        result["message"] = "Platform already past stage"
        return

    advance_platform_status(db, job.scan_id, job.platform, STAGE_IN_PROGRESS[job_type])

    try:
        scan = db.get(HunterScan, job.scan_id)
        if scan is None:
            raise StageError(f"Scan {job.scan_id} not found")

        limit = batch_size or stage.batch_size(settings)
        batch = stage.fetch_batch(db, job, scan, limit)

        if not batch.items:
            _finish_stage(db, job, stage)
            complete_job(db, job.id)
            logger.info(
                "%s worker: empty batch, stage finished scan_id=%s platform=%s",
                job_type.value,
                job.scan_id,
                job.platform,
            )
            return

        _process_batch(db, job, scan, stage, batch, settings, result)
    except SQLAlchemyError:
        raise
    except Exception as exc:
        db.rollback()
        _handle_job_failure(db, job, exc)
        result["error"] = str(exc)
        return

    complete_job(db, job.id)

    if stage.has_remaining(db, job, batch, settings):
        continuation = create_job(
            db,
            scan_id=job.scan_id,
            project_id=job.project_id,
            job_type=job_type,
            platform=job.platform,
            cursor=batch.next_cursor if job_type is JobType.COLLECT else None,
        )
        result["continued"] = continuation is not None
    else:
        _finish_stage(db, job, stage)

    logger.info(
        "%s worker done: job_id=%s scan_id=%s platform=%s counters=%s continued=%s",
        job_type.value,
        job.id,
        job.scan_id,
        job.platform,
        {k: result[k] for k in (*stage.counters, "failed")},
        result["continued"],
    )


def _process_batch(
    db: Session,
    job: HunterJob,
    scan: HunterScan,
    stage: PipelineStage,
    batch: Batch,
    settings,
    counters: dict[str, Any],
) -> None:
    """Process items one by one; a failing item is recorded and counted, never fatal.

    Each item's outcome commits together with its scan counter increment, so
    ``counters`` and the scan totals always cover exactly the committed items.
    """
    for item in batch.items:
        label = stage.item_label(item)
        try:
            outcome = stage.process_item(db, job, scan, item)
            if outcome:
                increment_scan_counters(db, job.scan_id, **stage.scan_increments({outcome: 1}))
            db.commit()
        except SQLAlchemyError:
            raise
        except Exception as exc:
            db.rollback()
            counters["failed"] += 1
            error = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "%s item %s failed (scan_id=%s platform=%s): %s",
                stage.job_type.value,
                label,
                job.scan_id,
                job.platform,
                error,
            )
            stage.record_failure(db, item, error, settings)
            continue
        if outcome:
            counters[outcome] = counters.get(outcome, 0) + 1


def _handle_job_failure(db: Session, job: HunterJob, exc: Exception) -> None:
    """Fail the job; re-queue retryable failures, fail the platform when that is final."""
    retryable = isinstance(exc, StageError) and exc.retryable
    reason = f"{type(exc).__name__}: {exc}"
    if not retryable and not isinstance(exc, StageError):
        logger.exception("%s job %s raised unexpectedly", job.job_type, job.id)
    fail_job(db, job.id, reason, retryable=retryable)

    if isinstance(exc, SourceNotConfiguredError):
        _fail_platform(db, job, reason)
        return
    if not retryable:
        # Platform stays in progress for an operator to inspect
        return

    db.refresh(job)
    if not retry_budget_left(job):
        _fail_platform(db, job, f"retry budget exhausted after {job.attempt} attempts: {reason}")
        return
    retry = requeue_failed_job(db, job, min_delay=getattr(exc, "retry_after", None))
    if retry is not None:
        logger.info(
            "Re-queued %s job for scan_id=%s platform=%s: attempt %d not before %s",
            job.job_type,
            job.scan_id,
            job.platform,
            retry.attempt,
            retry.not_before,
        )


def _fail_platform(db: Session, job: HunterJob, reason: str) -> None:
    mark_platform_failed(db, job.scan_id, job.platform, reason)
    check_scan_complete(db, job.scan_id)


def _finish_stage(db: Session, job: HunterJob, stage: PipelineStage) -> None:
    """No work remains: hand the platform to the next stage, or complete it."""
    following = next_stage(stage.job_type)
    if following is not None:
        advance_platform_status(db, job.scan_id, job.platform, STAGE_IN_PROGRESS[following])
        create_job(
            db,
            scan_id=job.scan_id,
            project_id=job.project_id,
            job_type=following,
            platform=job.platform,
        )
        logger.info(
            "Platform %s advanced to %s for scan_id=%s",
            job.platform,
            following.value,
            job.scan_id,
        )
        return

    advance_platform_status(db, job.scan_id, job.platform, PlatformStatus.COMPLETE)
    check_scan_complete(db, job.scan_id)
    classified = count_by_stage(db, job.scan_id, job.platform)[ItemStage.CLASSIFIED.value]
    trigger_post_classify_enrichment(
        db,
        ClassifyCompleted(
            scan_id=job.scan_id,
            project_id=job.project_id,
            platform=job.platform,
            classified_count=classified,
        ),
    )
