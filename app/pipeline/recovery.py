"""Recovery of jobs whose worker died while holding the claim."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.pipeline.completion import check_scan_complete
from app.pipeline.job_store import (
    fail_job,
    find_stale_jobs,
    requeue_failed_job,
    retry_budget_left,
)
from app.pipeline.platform_status import mark_platform_failed

logger = logging.getLogger(__name__)

STALE_REASON = "stale claim"


def recover_stale_jobs(db: Session, older_than: timedelta | None = None) -> int:
    """Fail stale claimed jobs as retryable and re-queue them under the retry policy.

    A job whose retry budget is used up fails its platform, and the scan is
    re-checked for completion. Returns how many stale jobs this call failed;
    a job another recoverer got to first is not counted.
    """
    recovered = 0
    for job in find_stale_jobs(db, older_than):
        if not fail_job(db, job.id, STALE_REASON, retryable=True):
            continue
        recovered += 1
        db.refresh(job)
        retry = None
        if retry_budget_left(job):
            retry = requeue_failed_job(db, job)
        else:
            mark_platform_failed(
                db,
                job.scan_id,
                job.platform,
                f"{job.job_type} job stale after {job.attempt} attempt(s)",
            )
            check_scan_complete(db, job.scan_id)
        logger.warning(
            "Recovered stale %s job %s scan_id=%s platform=%s requeued=%s",
            job.job_type,
            job.id,
            job.scan_id,
            job.platform,
            retry is not None,
        )
    return recovered
