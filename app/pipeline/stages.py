"""Per-stage adapters for the generic worker harness.

Each stage says how to fetch its bounded batch, how to process one item,
and whether work remains for (scan, platform) after the batch. The harness in
``app.pipeline.executor`` owns claiming, failure handling, continuations and
stage advancement.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.ingestion.registry import get_source
from app.models.hunter_job import HunterJob
from app.models.hunter_scan import HunterScan
from app.pipeline import items as item_store
from app.pipeline.exceptions import ItemTimeoutError
from app.pipeline.states import JobStatus, JobType
from app.services.feedback_classifier import classify_feedback
from app.services.relevance_filter import judge_relevance

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_timeout(fn: Callable[..., T], timeout: float, *args: Any, **kwargs: Any) -> T:
    """Run ``fn`` on a single worker thread; raise ItemTimeoutError after ``timeout`` seconds.

    The abandoned call keeps running in its thread until it returns, so ``fn``
    must not share the caller's database session. Oracle calls carry their own
    HTTP timeout within the same bound, so this only catches a call that
    stalls outside the request itself.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hunter-oracle")
    future = executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        name = getattr(fn, "__name__", "call")
        raise ItemTimeoutError(f"{name} exceeded timeout ({timeout}s)") from exc
    finally:
        executor.shutdown(wait=False)


@dataclass
class Batch:
    """Items one invocation will process. ``next_cursor`` is set by collect only."""

    items: list[Any] = field(default_factory=list)
    next_cursor: str | None = None


class PipelineStage(Protocol):
    """What the harness needs from a stage."""

    job_type: JobType
    counters: tuple[str, ...]

    def batch_size(self, settings: Settings) -> int: ...

    def fetch_batch(self, db: Session, job: HunterJob, scan: HunterScan, limit: int) -> Batch: ...

    def process_item(self, db: Session, job: HunterJob, scan: HunterScan, item: Any) -> str | None:
        """Process one item. Returns the counter to increment, or None."""
        ...

    def record_failure(self, db: Session, item: Any, error: str, settings: Settings) -> None: ...

    def item_label(self, item: Any) -> str: ...

    def scan_increments(self, counters: dict[str, int]) -> dict[str, int]: ...

    def has_remaining(self, db: Session, job: HunterJob, batch: Batch, settings: Settings) -> bool: ...


class CollectStage:
    """One page from the platform's content source per invocation."""

    job_type = JobType.COLLECT
    counters = ("collected", "duplicates")

    def batch_size(self, settings: Settings) -> int:
        return settings.hunter_collect_batch_size

    def fetch_batch(self, db: Session, job: HunterJob, scan: HunterScan, limit: int) -> Batch:
        source = get_source(job.platform)
        page = source.fetch_page(list(scan.search_terms or []), job.cursor, limit)
        return Batch(items=list(page.items), next_cursor=page.next_cursor)

    def process_item(self, db: Session, job: HunterJob, scan: HunterScan, item: Any) -> str | None:
        inserted = item_store.store_raw_item(db, job.scan_id, job.project_id, job.platform, item)
        return "collected" if inserted else "duplicates"

    def record_failure(self, db: Session, item: Any, error: str, settings: Settings) -> None:
        # The continuation job starts at the next cursor, so this item is not fetched again
        logger.warning("Dropped collected item %s: %s", item.external_id, error)

    def item_label(self, item: Any) -> str:
        return item.external_id

    def scan_increments(self, counters: dict[str, int]) -> dict[str, int]:
        return {"collected": counters.get("collected", 0)}

    def has_remaining(self, db: Session, job: HunterJob, batch: Batch, settings: Settings) -> bool:
        """More pages exist and the (scan, platform) page cap is not reached.

        Completed collect jobs are pages already fetched; the current job is
        complete by the time this runs, so it is included.
        """
        if not batch.next_cursor:
            return False
        pages_done = (
            db.scalar(
                select(func.count(HunterJob.id)).where(
                    HunterJob.scan_id == job.scan_id,
                    HunterJob.platform == job.platform,
                    HunterJob.job_type == JobType.COLLECT.value,
                    HunterJob.status == JobStatus.COMPLETE.value,
                )
            )
            or 0
        )
        if pages_done >= settings.hunter_collect_max_pages:
            logger.info(
                "Collect page cap reached: scan_id=%s platform=%s pages=%d",
                job.scan_id,
                job.platform,
                pages_done,
            )
            return False
        return True


class _StoredItemStage:
    """Shared behaviour for stages that read raw items back from the store."""

    job_type: JobType

    def fetch_batch(self, db: Session, job: HunterJob, scan: HunterScan, limit: int) -> Batch:
        return Batch(
            items=item_store.fetch_batch(db, job.scan_id, job.platform, self.job_type, limit)
        )

    def record_failure(self, db: Session, item: Any, error: str, settings: Settings) -> None:
        errored = item_store.record_item_failure(
            db, item.id, error, settings.hunter_item_max_attempts
        )
        if errored:
            logger.warning(
                "Item %s gave up after %d attempts: %s",
                item.id,
                settings.hunter_item_max_attempts,
                error,
            )

    def item_label(self, item: Any) -> str:
        return str(item.id)

    def has_remaining(self, db: Session, job: HunterJob, batch: Batch, settings: Settings) -> bool:
        return item_store.count_remaining(db, job.scan_id, job.platform, self.job_type) > 0


class FilterStage(_StoredItemStage):
    """Relevance oracle over ``discovered`` items."""

    job_type = JobType.FILTER
    counters = ("relevant", "excluded")

    def batch_size(self, settings: Settings) -> int:
        return settings.hunter_filter_batch_size

    def process_item(self, db: Session, job: HunterJob, scan: HunterScan, item: Any) -> str | None:
        judgment = call_with_timeout(
            judge_relevance,
            get_settings().hunter_item_timeout_seconds,
            item.content,
            list(scan.search_terms or []),
            title=item.title,
            platform=item.platform,
        )
        passed = item_store.apply_relevance(db, item, judgment)
        return "relevant" if passed else "excluded"

    def scan_increments(self, counters: dict[str, int]) -> dict[str, int]:
        return {"relevant": counters.get("relevant", 0)}


class ClassifyStage(_StoredItemStage):
    """Classification oracle over items that passed the filter; writes discovered feedback."""

    job_type = JobType.CLASSIFY
    counters = ("classified",)

    def batch_size(self, settings: Settings) -> int:
        return settings.hunter_classify_batch_size

    def process_item(self, db: Session, job: HunterJob, scan: HunterScan, item: Any) -> str | None:
        result = call_with_timeout(
            classify_feedback,
            get_settings().hunter_item_timeout_seconds,
            item.content,
            list(scan.search_terms or []),
            title=item.title,
            platform=item.platform,
        )
        item_store.mark_classified(db, item, result)
        return "classified"

    def scan_increments(self, counters: dict[str, int]) -> dict[str, int]:
        return {"classified": counters.get("classified", 0)}


# Registry: job_type -> stage adapter
STAGE_REGISTRY: dict[JobType, PipelineStage] = {
    JobType.COLLECT: CollectStage(),
    JobType.FILTER: FilterStage(),
    JobType.CLASSIFY: ClassifyStage(),
}
