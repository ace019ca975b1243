"""Job store: the hunter_jobs table and its claim/complete/fail/create contract.

The job table is the only state shared between concurrent worker
invocations. Every status change is a single conditional UPDATE guarded by
the row's current status, so two workers can never both claim one job and a
duplicate complete/fail is a no-op instead of a corrupting write.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.hunter_job import HunterJob
from app.pipeline.platform_status import get_platform_status
from app.pipeline.states import JOB_TRANSITIONS, JobStatus, JobType, stage_accepts_jobs, values

logger = logging.getLogger(__name__)

# Candidates inspected per claim; losing a race moves to the next one
_CLAIM_CANDIDATES = 10


def _transition(db: Session, job_id: UUID, target: JobStatus, **fields) -> bool:
    """Conditionally move a job to ``target``. Returns True when this call moved it."""
    result = db.execute(
        update(HunterJob)
        .where(
            HunterJob.id == job_id,
            HunterJob.status.in_(values(JOB_TRANSITIONS[target])),
        )
        .values(status=target.value, **fields)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def claim_job(db: Session, job_type: JobType) -> HunterJob | None:
    """Claim the oldest claimable pending job of ``job_type``.

    Candidate ids are read without locking; ownership is decided by
    ``UPDATE ... WHERE id = :id AND status = 'pending'``. A zero-row update
    means another worker won that job, so the next candidate is tried.
    Returns None when nothing is claimable (including when every candidate
    was lost to a concurrent claimer).
    """
    now = datetime.now(UTC)
    candidate_ids = db.scalars(
        select(HunterJob.id)
        .where(
            HunterJob.status == JobStatus.PENDING.value,
            HunterJob.job_type == job_type.value,
            or_(HunterJob.not_before.is_(None), HunterJob.not_before <= now),
        )
        .order_by(HunterJob.created_at, HunterJob.id)
        .limit(_CLAIM_CANDIDATES)
    ).all()
    # Release the read snapshot before writing (SQLite upgrades read locks poorly)
    db.commit()

    for job_id in candidate_ids:
        if _transition(db, job_id, JobStatus.CLAIMED, claimed_at=datetime.now(UTC)):
            job = db.get(HunterJob, job_id, populate_existing=True)
            logger.info(
                "Claimed %s job %s scan_id=%s platform=%s attempt=%d",
                job_type.value,
                job_id,
                job.scan_id,
                job.platform,
                job.attempt,
            )
            return job
        logger.debug("Lost claim race for job %s", job_id)
    return None


def complete_job(db: Session, job_id: UUID) -> bool:
    """Mark a claimed job complete.

    Idempotent: completing an already-complete job (or any job that is not
    claimed) changes nothing and returns False.
    """
    moved = _transition(db, job_id, JobStatus.COMPLETE, completed_at=datetime.now(UTC))
    if not moved:
        current = db.scalar(select(HunterJob.status).where(HunterJob.id == job_id))
        if current != JobStatus.COMPLETE.value:
            logger.warning("complete_job ignored: job %s is %s", job_id, current)
    return moved


def fail_job(db: Session, job_id: UUID, reason: str, retryable: bool = False) -> bool:
    """Mark a claimed job failed and record why. Does not re-queue."""
    moved = _transition(
        db,
        job_id,
        JobStatus.FAILED,
        error=(reason or "")[:2000],
        retryable=retryable,
        completed_at=datetime.now(UTC),
    )
    if moved:
        logger.warning("Job %s failed (retryable=%s): %s", job_id, retryable, reason)
    else:
        logger.warning("fail_job ignored: job %s is not claimed", job_id)
    return moved


def create_job(
    db: Session,
    scan_id: UUID,
    project_id: UUID,
    job_type: JobType,
    platform: str,
    *,
    cursor: str | None = None,
    attempt: int = 1,
    not_before: datetime | None = None,
) -> HunterJob | None:
    """Insert a pending job for (scan, platform, stage).

    Refuses (returns None) when the platform is terminal or already past the
    stage, so a late duplicate worker cannot restart a finished stage.
    """
    status = get_platform_status(db, scan_id, platform)
    if status is not None and not stage_accepts_jobs(status, job_type):
        logger.info(
            "Not creating %s job: scan_id=%s platform=%s is %s",
            job_type.value,
            scan_id,
            platform,
            status.value,
        )
        return None

    job = HunterJob(
        scan_id=scan_id,
        project_id=project_id,
        job_type=job_type.value,
        platform=platform,
        status=JobStatus.PENDING.value,
        cursor=cursor,
        attempt=attempt,
        not_before=not_before,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.debug(
        "Created %s job %s scan_id=%s platform=%s attempt=%d",
        job_type.value,
        job.id,
        scan_id,
        platform,
        attempt,
    )
    return job


def retry_delay(attempt: int) -> timedelta:
    """Backoff before attempt ``attempt + 1``: base * 2^(attempt - 1) seconds."""
    base = get_settings().hunter_retry_backoff_seconds
    return timedelta(seconds=base * (2 ** max(attempt - 1, 0)))


def retry_budget_left(job: HunterJob) -> bool:
    return job.attempt < get_settings().hunter_job_max_attempts


def requeue_failed_job(
    db: Session, job: HunterJob, min_delay: float | None = None
) -> HunterJob | None:
    """Create the next attempt of a failed retryable job, if the budget allows.

    The new job is not claimable before the backoff delay, or ``min_delay``
    seconds when that is longer (e.g. a source's Retry-After). Returns the
    new pending job, or None when the job was not retryable or has used
    ``hunter_job_max_attempts`` attempts.
    """
    if not job.retryable or not retry_budget_left(job):
        return None
    delay = retry_delay(job.attempt)
    if min_delay and min_delay > delay.total_seconds():
        delay = timedelta(seconds=min_delay)
    return create_job(
        db,
        scan_id=job.scan_id,
        project_id=job.project_id,
        job_type=JobType(job.job_type),
        platform=job.platform,
        cursor=job.cursor,
        attempt=job.attempt + 1,
        not_before=datetime.now(UTC) + delay,
    )


def find_stale_jobs(db: Session, older_than: timedelta | None = None) -> list[HunterJob]:
    """Jobs claimed longer ago than the stale threshold (their worker died)."""
    if older_than is None:
        older_than = timedelta(seconds=get_settings().hunter_stale_job_seconds)
    cutoff = datetime.now(UTC) - older_than
    return list(
        db.scalars(
            select(HunterJob)
            .where(
                HunterJob.status == JobStatus.CLAIMED.value,
                HunterJob.claimed_at < cutoff,
            )
            .order_by(HunterJob.claimed_at)
        ).all()
    )


def count_jobs_by_status(db: Session, scan_id: UUID) -> dict[str, int]:
    counts: dict[str, int] = {s.value: 0 for s in JobStatus}
    for status in db.scalars(select(HunterJob.status).where(HunterJob.scan_id == scan_id)):
        counts[status] = counts.get(status, 0) + 1
    return counts
