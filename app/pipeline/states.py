"""Status enums and the legal transitions for scans, jobs, platforms and items.

Every status column in the hunter tables is one of these enums (stored by
value). Writers move rows with conditional updates whose ``WHERE status IN``
clause comes from the tables below, so illegal or backward moves match zero
rows instead of being silently applied.
"""

from __future__ import annotations

from enum import Enum


class JobType(str, Enum):
    """Pipeline stage a job belongs to, in pipeline order."""

    COLLECT = "collect"
    FILTER = "filter"
    CLASSIFY = "classify"


class JobStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    COMPLETE = "complete"
    FAILED = "failed"


class ScanStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class PlatformStatus(str, Enum):
    """Per (scan, platform) progress. Ordered; FAILED is absorbing."""

    PENDING = "pending"
    COLLECTING = "collecting"
    FILTERING = "filtering"
    CLASSIFYING = "classifying"
    COMPLETE = "complete"
    FAILED = "failed"


class ItemStage(str, Enum):
    """How far a raw item has travelled through the pipeline."""

    DISCOVERED = "discovered"
    FILTERED = "filtered"
    EXCLUDED = "excluded"
    CLASSIFIED = "classified"
    ERRORED = "errored"


class RelevanceDecision(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"
    HUMAN_REVIEW = "human_review"


STAGE_ORDER: tuple[JobType, ...] = (JobType.COLLECT, JobType.FILTER, JobType.CLASSIFY)

# Job: claimed is the only state a worker moves out of
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.CLAIMED: frozenset({JobStatus.PENDING}),
    JobStatus.COMPLETE: frozenset({JobStatus.CLAIMED}),
    JobStatus.FAILED: frozenset({JobStatus.CLAIMED}),
}

SCAN_TRANSITIONS: dict[ScanStatus, frozenset[ScanStatus]] = {
    ScanStatus.COMPLETE: frozenset({ScanStatus.RUNNING}),
    ScanStatus.FAILED: frozenset({ScanStatus.RUNNING}),
}

_PLATFORM_RANK: dict[PlatformStatus, int] = {
    PlatformStatus.PENDING: 0,
    PlatformStatus.COLLECTING: 1,
    PlatformStatus.FILTERING: 2,
    PlatformStatus.CLASSIFYING: 3,
    PlatformStatus.COMPLETE: 4,
}

PLATFORM_TERMINAL: frozenset[PlatformStatus] = frozenset(
    {PlatformStatus.COMPLETE, PlatformStatus.FAILED}
)

# Stage -> platform status while the stage is running
STAGE_IN_PROGRESS: dict[JobType, PlatformStatus] = {
    JobType.COLLECT: PlatformStatus.COLLECTING,
    JobType.FILTER: PlatformStatus.FILTERING,
    JobType.CLASSIFY: PlatformStatus.CLASSIFYING,
}


def platform_sources_for(target: PlatformStatus) -> frozenset[PlatformStatus]:
    """Statuses a platform may move to ``target`` from.

    Forward moves (and re-asserting the current non-terminal status) are legal;
    FAILED is reachable from every non-terminal status; nothing leaves a
    terminal status.
    """
    if target is PlatformStatus.FAILED:
        return frozenset(s for s in _PLATFORM_RANK if s not in PLATFORM_TERMINAL)
    rank = _PLATFORM_RANK[target]
    return frozenset(
        s
        for s, r in _PLATFORM_RANK.items()
        if r <= rank and (s not in PLATFORM_TERMINAL or s is target)
    )


def can_transition_platform(current: PlatformStatus, target: PlatformStatus) -> bool:
    return current in platform_sources_for(target)


def next_stage(job_type: JobType) -> JobType | None:
    """Stage after ``job_type`` or None when it is the last one."""
    idx = STAGE_ORDER.index(job_type)
    return STAGE_ORDER[idx + 1] if idx + 1 < len(STAGE_ORDER) else None


def stage_accepts_jobs(status: PlatformStatus, job_type: JobType) -> bool:
    """True when a job of ``job_type`` may still be created for a platform in ``status``.

    Terminal platforms take no more jobs, and a platform that has moved past a
    stage takes no more jobs for that stage.
    """
    if status in PLATFORM_TERMINAL:
        return False
    return _PLATFORM_RANK[status] <= _PLATFORM_RANK[STAGE_IN_PROGRESS[job_type]]


def values(statuses) -> list[str]:
    """Enum members -> their stored string values (for IN clauses)."""
    return sorted(s.value for s in statuses)
