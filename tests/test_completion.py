"""Tests for the scan completion checker (fan-in)."""

from __future__ import annotations

import itertools
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from app.models.hunter_scan import HunterScan
from app.pipeline.completion import check_scan_complete, resolve_scan_status
from app.pipeline.platform_status import advance_platform_status, mark_platform_failed
from app.pipeline.states import PlatformStatus, ScanStatus


def _scan_status(db: Session, scan_id) -> str:
    return db.get(HunterScan, scan_id, populate_existing=True).status


def test_resolve_scan_status() -> None:
    P = PlatformStatus
    assert resolve_scan_status({}) is ScanStatus.RUNNING
    assert resolve_scan_status({"a": P.COMPLETE, "b": P.FILTERING}) is ScanStatus.RUNNING
    assert resolve_scan_status({"a": P.COMPLETE, "b": P.FAILED}) is ScanStatus.COMPLETE
    assert resolve_scan_status({"a": P.FAILED, "b": P.FAILED}) is ScanStatus.FAILED


@pytest.mark.parametrize("order", list(itertools.permutations(["hackernews", "reddit", "extra"])))
def test_scan_completes_only_when_all_platforms_terminal(db: Session, make_scan, order) -> None:
    from app.ingestion.adapters.static_adapter import StaticSource
    from app.ingestion.registry import register_source

    register_source(StaticSource("extra"))
    scan = make_scan(platforms=("hackernews", "reddit", "extra"))

    for i, platform in enumerate(order):
        if platform == "reddit":
            mark_platform_failed(db, scan.id, platform, "blocked")
        else:
            advance_platform_status(db, scan.id, platform, PlatformStatus.COMPLETE)
        finished = check_scan_complete(db, scan.id)
        last = i == len(order) - 1
        assert finished is last
        expected = ScanStatus.COMPLETE.value if last else ScanStatus.RUNNING.value
        assert _scan_status(db, scan.id) == expected


def test_all_failed_marks_scan_failed(db: Session, make_scan) -> None:
    scan = make_scan(platforms=("hackernews", "reddit"))
    mark_platform_failed(db, scan.id, "hackernews", "x")
    mark_platform_failed(db, scan.id, "reddit", "y")
    assert check_scan_complete(db, scan.id) is True
    scan_row = db.get(HunterScan, scan.id, populate_existing=True)
    assert scan_row.status == ScanStatus.FAILED.value
    assert scan_row.completed_at is not None


def test_redundant_checks_transition_once(db: Session, make_scan) -> None:
    scan = make_scan()
    advance_platform_status(db, scan.id, "hackernews", PlatformStatus.COMPLETE)
    with patch("app.pipeline.completion.notify_scan_complete") as notify:
        results = [check_scan_complete(db, scan.id) for _ in range(3)]
    assert results == [True, False, False]
    notify.assert_called_once()


def test_notification_failure_does_not_undo_completion(db: Session, make_scan) -> None:
    scan = make_scan()
    advance_platform_status(db, scan.id, "hackernews", PlatformStatus.COMPLETE)
    with patch(
        "app.pipeline.completion.notify_scan_complete", side_effect=RuntimeError("smtp down")
    ):
        assert check_scan_complete(db, scan.id) is True
    assert _scan_status(db, scan.id) == ScanStatus.COMPLETE.value


def test_notification_sends_email_when_configured(
    db: Session, make_scan, settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "hunter_notify_email_to", "team@example.com")
    scan = make_scan(platforms=("hackernews", "reddit"))
    advance_platform_status(db, scan.id, "hackernews", PlatformStatus.COMPLETE)
    mark_platform_failed(db, scan.id, "reddit", "blocked")
    with patch("app.services.email_service.send_scan_complete_email") as send:
        assert check_scan_complete(db, scan.id) is True
    send.assert_called_once()
    args = send.call_args[0]
    assert args[1] == {"hackernews": "complete", "reddit": "failed"}
    assert args[2] == "team@example.com"
