"""Tests for scan creation, the per-project running-scan limit and the scan summary."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.hunter_job import HunterJob
from app.models.hunter_scan import HunterScan
from app.pipeline.completion import check_scan_complete
from app.pipeline.exceptions import ScanLimitExceededError, UnsupportedPlatformError
from app.pipeline.platform_status import get_platform_statuses, mark_platform_failed
from app.pipeline.rate_limits import count_running_scans
from app.pipeline.scans import create_scan, get_scan_summary
from app.pipeline.states import PlatformStatus


def test_create_scan_writes_statuses_and_collect_jobs(db: Session, project_id) -> None:
    scan = create_scan(
        db,
        project_id=project_id,
        platforms=["HackerNews", "reddit", "reddit"],
        search_terms=[" Acme ", "", "Acme App"],
        triggered_by="cron",
    )

    assert scan.status == "running"
    assert scan.platforms == ["hackernews", "reddit"]
    assert scan.search_terms == ["Acme", "Acme App"]
    assert get_platform_statuses(db, scan.id) == {
        "hackernews": PlatformStatus.PENDING,
        "reddit": PlatformStatus.PENDING,
    }
    jobs = db.scalars(select(HunterJob).where(HunterJob.scan_id == scan.id)).all()
    assert sorted((j.job_type, j.platform, j.status) for j in jobs) == [
        ("collect", "hackernews", "pending"),
        ("collect", "reddit", "pending"),
    ]


def test_unsupported_platform_writes_nothing(db: Session, project_id) -> None:
    with pytest.raises(UnsupportedPlatformError, match="myspace"):
        create_scan(db, project_id=project_id, platforms=["reddit", "myspace"], search_terms=["Acme"])
    assert db.scalars(select(HunterScan)).all() == []


@pytest.mark.parametrize(
    ("platforms", "terms"), [([], ["Acme"]), (["reddit"], []), ([" "], ["Acme"]), (["reddit"], [" "])]
)
def test_empty_inputs_rejected(db: Session, project_id, platforms, terms) -> None:
    with pytest.raises(ValueError):
        create_scan(db, project_id=project_id, platforms=platforms, search_terms=terms)


def test_running_scan_limit_per_project(db: Session, project_id) -> None:
    scan = create_scan(db, project_id=project_id, platforms=["reddit"], search_terms=["Acme"])

    with pytest.raises(ScanLimitExceededError) as exc_info:
        create_scan(db, project_id=project_id, platforms=["reddit"], search_terms=["Acme"])
    assert exc_info.value.current == 1
    assert exc_info.value.limit == 1

    # Other projects are unaffected
    create_scan(db, project_id=uuid.uuid4(), platforms=["reddit"], search_terms=["Acme"])

    # A finished scan frees the slot
    mark_platform_failed(db, scan.id, "reddit", "blocked")
    check_scan_complete(db, scan.id)
    assert count_running_scans(db, project_id) == 0
    create_scan(db, project_id=project_id, platforms=["reddit"], search_terms=["Acme"])


def test_limit_disabled_when_zero(db: Session, project_id, settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "hunter_max_running_scans_per_project", 0)
    for _ in range(3):
        create_scan(db, project_id=project_id, platforms=["reddit"], search_terms=["Acme"])
    assert count_running_scans(db, project_id) == 3


def test_scan_summary(db: Session, make_scan) -> None:
    scan = make_scan(platforms=("reddit", "hackernews"))
    summary = get_scan_summary(db, scan.id)

    assert summary.id == scan.id
    assert summary.status == "running"
    assert [p.platform for p in summary.platforms] == ["hackernews", "reddit"]
    assert summary.jobs["pending"] == 2
    assert summary.total_collected == 0
    assert get_scan_summary(db, uuid.uuid4()) is None
