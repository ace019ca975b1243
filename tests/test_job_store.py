"""Tests for the job store: claim, complete, fail, create and retry policy."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.hunter_job import HunterJob
from app.pipeline.job_store import (
    claim_job,
    complete_job,
    create_job,
    fail_job,
    find_stale_jobs,
    requeue_failed_job,
    retry_delay,
)
from app.pipeline.platform_status import advance_platform_status, mark_platform_failed
from app.pipeline.states import JobStatus, JobType, PlatformStatus


def _collect_jobs(db: Session, scan_id) -> list[HunterJob]:
    return list(
        db.scalars(
            select(HunterJob).where(
                HunterJob.scan_id == scan_id, HunterJob.job_type == JobType.COLLECT.value
            )
        )
    )


class TestClaim:
    def test_claims_pending_job(self, db: Session, make_scan) -> None:
        scan = make_scan()
        job = claim_job(db, JobType.COLLECT)
        assert job is not None
        assert job.scan_id == scan.id
        assert job.status == JobStatus.CLAIMED.value
        assert job.claimed_at is not None

    def test_returns_none_when_nothing_pending(self, db: Session) -> None:
        assert claim_job(db, JobType.COLLECT) is None

    def test_only_claims_requested_type(self, db: Session, make_scan) -> None:
        make_scan()
        assert claim_job(db, JobType.FILTER) is None
        assert claim_job(db, JobType.COLLECT) is not None

    def test_claims_oldest_first(self, db: Session, make_scan) -> None:
        first = make_scan()
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        assert job.scan_id == first.id

    def test_claimed_job_is_not_claimed_again(self, db: Session, make_scan) -> None:
        make_scan()
        assert claim_job(db, JobType.COLLECT) is not None
        assert claim_job(db, JobType.COLLECT) is None

    def test_respects_not_before(self, db: Session, make_scan) -> None:
        scan = make_scan()
        pending = _collect_jobs(db, scan.id)[0]
        pending.not_before = datetime.now(UTC) + timedelta(minutes=5)
        db.commit()
        assert claim_job(db, JobType.COLLECT) is None

    def test_concurrent_claimers_get_distinct_jobs(
        self, db: Session, make_scan, session_factory
    ) -> None:
        """N claimers over M pending jobs claim exactly min(N, M) distinct jobs."""
        for _ in range(3):
            make_scan(platforms=("hackernews", "reddit"))  # 6 pending jobs
        claimers = 10
        barrier = threading.Barrier(claimers)
        claimed: list = []
        errors: list = []
        lock = threading.Lock()

        def worker() -> None:
            session = session_factory()
            try:
                barrier.wait()
                while True:
                    job = claim_job(session, JobType.COLLECT)
                    if job is None:
                        break
                    with lock:
                        claimed.append(job.id)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(claimers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert errors == []
        assert len(claimed) == 6
        assert len(set(claimed)) == 6


class TestCompleteAndFail:
    def test_complete_is_idempotent(self, db: Session, make_scan) -> None:
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        assert complete_job(db, job.id) is True
        assert complete_job(db, job.id) is False
        db.refresh(job)
        assert job.status == JobStatus.COMPLETE.value
        assert job.completed_at is not None

    def test_complete_pending_job_is_a_no_op(self, db: Session, make_scan) -> None:
        scan = make_scan()
        job = _collect_jobs(db, scan.id)[0]
        assert complete_job(db, job.id) is False
        db.refresh(job)
        assert job.status == JobStatus.PENDING.value

    def test_fail_records_reason_and_retryable(self, db: Session, make_scan) -> None:
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        assert fail_job(db, job.id, "source down", retryable=True) is True
        db.refresh(job)
        assert job.status == JobStatus.FAILED.value
        assert job.error == "source down"
        assert job.retryable is True

    def test_fail_does_not_create_jobs(self, db: Session, make_scan) -> None:
        scan = make_scan()
        job = claim_job(db, JobType.COLLECT)
        fail_job(db, job.id, "boom")
        assert len(_collect_jobs(db, scan.id)) == 1

    def test_completed_job_cannot_fail(self, db: Session, make_scan) -> None:
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        complete_job(db, job.id)
        assert fail_job(db, job.id, "late failure") is False
        db.refresh(job)
        assert job.status == JobStatus.COMPLETE.value


class TestCreate:
    def test_create_job_for_active_platform(self, db: Session, make_scan) -> None:
        scan = make_scan()
        job = create_job(db, scan.id, scan.project_id, JobType.COLLECT, "hackernews", cursor="2")
        assert job is not None
        assert job.status == JobStatus.PENDING.value
        assert job.cursor == "2"
        assert job.attempt == 1

    def test_refuses_terminal_platform(self, db: Session, make_scan) -> None:
        scan = make_scan()
        mark_platform_failed(db, scan.id, "hackernews", "gone")
        assert create_job(db, scan.id, scan.project_id, JobType.COLLECT, "hackernews") is None

    def test_refuses_stage_the_platform_has_passed(self, db: Session, make_scan) -> None:
        scan = make_scan()
        advance_platform_status(db, scan.id, "hackernews", PlatformStatus.FILTERING)
        assert create_job(db, scan.id, scan.project_id, JobType.COLLECT, "hackernews") is None
        assert create_job(db, scan.id, scan.project_id, JobType.CLASSIFY, "hackernews") is not None


class TestRetryPolicy:
    def test_retry_delay_doubles(self, settings, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "hunter_retry_backoff_seconds", 60)
        assert retry_delay(1) == timedelta(seconds=60)
        assert retry_delay(2) == timedelta(seconds=120)
        assert retry_delay(3) == timedelta(seconds=240)

    def test_requeue_creates_next_attempt_with_backoff(
        self, db: Session, make_scan, settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "hunter_retry_backoff_seconds", 60)
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        fail_job(db, job.id, "429", retryable=True)
        db.refresh(job)

        before = datetime.now(UTC)
        retry = requeue_failed_job(db, job)
        assert retry is not None
        assert retry.attempt == 2
        assert retry.status == JobStatus.PENDING.value
        # SQLite returns naive datetimes; compare without tzinfo
        not_before = retry.not_before.replace(tzinfo=None)
        assert not_before >= before.replace(tzinfo=None) + timedelta(seconds=59)
        assert claim_job(db, JobType.COLLECT) is None

    def test_min_delay_extends_backoff(
        self, db: Session, make_scan, settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "hunter_retry_backoff_seconds", 1)
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        fail_job(db, job.id, "429", retryable=True)
        db.refresh(job)
        before = datetime.now(UTC).replace(tzinfo=None)
        retry = requeue_failed_job(db, job, min_delay=300)
        assert retry.not_before.replace(tzinfo=None) >= before + timedelta(seconds=299)

    def test_non_retryable_is_not_requeued(self, db: Session, make_scan) -> None:
        make_scan()
        job = claim_job(db, JobType.COLLECT)
        fail_job(db, job.id, "bad request", retryable=False)
        db.refresh(job)
        assert requeue_failed_job(db, job) is None

    def test_attempts_are_capped(self, db: Session, make_scan, settings) -> None:
        make_scan()
        attempts = 0
        job = claim_job(db, JobType.COLLECT)
        while job is not None:
            attempts += 1
            fail_job(db, job.id, "timeout", retryable=True)
            db.refresh(job)
            requeue_failed_job(db, job)
            job = claim_job(db, JobType.COLLECT)
        assert attempts == settings.hunter_job_max_attempts


def test_find_stale_jobs(db: Session, make_scan) -> None:
    make_scan()
    job = claim_job(db, JobType.COLLECT)
    assert find_stale_jobs(db, older_than=timedelta(minutes=5)) == []
    job.claimed_at = datetime.now(UTC) - timedelta(hours=1)
    db.commit()
    assert [j.id for j in find_stale_jobs(db, older_than=timedelta(minutes=5))] == [job.id]
