"""Item store: raw discovered items, per-stage batches and the final feedback upsert.

Writes that can be repeated by a duplicate or retried invocation are
idempotent: raw items insert with ON CONFLICT DO NOTHING on
(scan, platform, external_id), discovered feedback upserts on
(project, platform, platform_id), and scan counters are additive.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from app.models.discovered_feedback import DiscoveredFeedback
from app.models.hunter_raw_item import HunterRawItem
from app.models.hunter_scan import HunterScan
from app.pipeline.states import ItemStage, JobType, RelevanceDecision
from app.schemas.hunter import FeedbackClassification, RelevanceJudgment, SourceItem

logger = logging.getLogger(__name__)

# Decisions that pass the filter stage
_PASSING_DECISIONS = (RelevanceDecision.INCLUDE.value, RelevanceDecision.HUMAN_REVIEW.value)


def _dialect_insert(db: Session):
    """INSERT construct with ON CONFLICT support for the session's database."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"ON CONFLICT upsert not supported for dialect '{dialect}'")
    return insert


def store_raw_item(
    db: Session,
    scan_id: UUID,
    project_id: UUID,
    platform: str,
    item: SourceItem,
) -> bool:
    """Insert one collected item. Returns False when (scan, platform, external_id) already exists."""
    insert = _dialect_insert(db)
    stmt = (
        insert(HunterRawItem)
        .values(
            scan_id=scan_id,
            project_id=project_id,
            platform=platform,
            external_id=item.external_id,
            external_url=item.url,
            title=item.title,
            content=item.content,
            author=item.author,
            posted_at=item.posted_at,
            raw_metadata=item.metadata or {},
            stage=ItemStage.DISCOVERED.value,
            attempts=0,
            created_at=datetime.now(UTC),
        )
        .on_conflict_do_nothing(index_elements=["scan_id", "platform", "external_id"])
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def _pending_clause(job_type: JobType):
    """Items a stage still has to process."""
    if job_type is JobType.FILTER:
        return (HunterRawItem.stage == ItemStage.DISCOVERED.value,)
    if job_type is JobType.CLASSIFY:
        return (
            HunterRawItem.stage == ItemStage.FILTERED.value,
            HunterRawItem.relevance_decision.in_(_PASSING_DECISIONS),
        )
    raise ValueError(f"{job_type.value} does not read from the item store")


def fetch_batch(
    db: Session, scan_id: UUID, platform: str, job_type: JobType, limit: int
) -> list[HunterRawItem]:
    """Oldest ``limit`` items for (scan, platform) that have not passed ``job_type``."""
    return list(
        db.scalars(
            select(HunterRawItem)
            .where(
                HunterRawItem.scan_id == scan_id,
                HunterRawItem.platform == platform,
                *_pending_clause(job_type),
            )
            .order_by(HunterRawItem.created_at, HunterRawItem.id)
            .limit(limit)
        ).all()
    )


def count_remaining(db: Session, scan_id: UUID, platform: str, job_type: JobType) -> int:
    return (
        db.scalar(
            select(func.count(HunterRawItem.id)).where(
                HunterRawItem.scan_id == scan_id,
                HunterRawItem.platform == platform,
                *_pending_clause(job_type),
            )
        )
        or 0
    )


def record_item_failure(db: Session, item_id: UUID, error: str, max_attempts: int) -> bool:
    """Count a failed attempt on an item; move it to ``errored`` once the cap is reached.

    Returns True when the item was moved to ``errored``.
    """
    db.execute(
        update(HunterRawItem)
        .where(HunterRawItem.id == item_id)
        .values(
            attempts=HunterRawItem.attempts + 1,
            last_error=(error or "")[:2000],
            stage=case(
                (HunterRawItem.attempts + 1 >= max_attempts, ItemStage.ERRORED.value),
                else_=HunterRawItem.stage,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    stage = db.scalar(select(HunterRawItem.stage).where(HunterRawItem.id == item_id))
    return stage == ItemStage.ERRORED.value


def apply_relevance(db: Session, item: HunterRawItem, judgment: RelevanceJudgment) -> bool:
    """Record the filter judgment. Returns True when the item passed the filter."""
    passed = judgment.decision in _PASSING_DECISIONS
    item.relevance_score = judgment.score
    item.relevance_decision = judgment.decision
    item.relevance_reason = judgment.reason
    item.stage = ItemStage.FILTERED.value if passed else ItemStage.EXCLUDED.value
    return passed


def upsert_discovered_feedback(
    db: Session, item: HunterRawItem, result: FeedbackClassification
) -> None:
    """Insert or overwrite the feedback row for (project, platform, external_id)."""
    insert = _dialect_insert(db)
    row = {
        "project_id": item.project_id,
        "platform": item.platform,
        "platform_id": item.external_id,
        "scan_id": item.scan_id,
        "platform_url": item.external_url,
        "title": item.title,
        "content": item.content,
        "author_username": item.author,
        "discovered_at": item.posted_at or item.created_at,
        "classification": result.classification,
        "classification_confidence": result.confidence,
        "classification_reason": result.quotable,
        "sentiment_score": result.sentiment,
        "urgency_score": result.urgency,
        "tags": list(result.tags),
        "needs_review": item.relevance_decision == RelevanceDecision.HUMAN_REVIEW.value,
        "processed_at": datetime.now(UTC),
    }
    stmt = insert(DiscoveredFeedback).values(**row)
    overwrite = {k: stmt.excluded[k] for k in row if k not in ("project_id", "platform", "platform_id")}
    db.execute(
        stmt.on_conflict_do_update(
            index_elements=["project_id", "platform", "platform_id"],
            set_=overwrite,
        )
    )


def mark_classified(db: Session, item: HunterRawItem, result: FeedbackClassification) -> None:
    """Upsert the feedback row and move the raw item to ``classified``."""
    upsert_discovered_feedback(db, item, result)
    item.classification = result.model_dump()
    item.stage = ItemStage.CLASSIFIED.value


def increment_scan_counters(
    db: Session,
    scan_id: UUID,
    *,
    collected: int = 0,
    relevant: int = 0,
    classified: int = 0,
) -> None:
    """Additive ``col = col + n`` update so concurrent workers never lose counts."""
    if not (collected or relevant or classified):
        return
    db.execute(
        update(HunterScan)
        .where(HunterScan.id == scan_id)
        .values(
            total_collected=HunterScan.total_collected + collected,
            total_relevant=HunterScan.total_relevant + relevant,
            total_classified=HunterScan.total_classified + classified,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()


def count_by_stage(db: Session, scan_id: UUID, platform: str | None = None) -> dict[str, int]:
    """Raw item counts per stage for a scan, optionally one platform."""
    stmt = (
        select(HunterRawItem.stage, func.count(HunterRawItem.id))
        .where(HunterRawItem.scan_id == scan_id)
        .group_by(HunterRawItem.stage)
    )
    if platform is not None:
        stmt = stmt.where(HunterRawItem.platform == platform)
    counts = {s.value: 0 for s in ItemStage}
    for stage, n in db.execute(stmt).all():
        counts[stage] = n
    return counts
