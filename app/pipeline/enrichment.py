"""Best-effort side effects that run after the core pipeline has done its work.

Nothing in this module may affect job, platform or scan state. Every hook runs
inside ``run_non_critical``, which logs and discards any exception, so the
core pipeline never depends on a downstream consumer being healthy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifyCompleted:
    """Payload for hooks fired when a platform's classify stage finishes."""

    scan_id: UUID
    project_id: UUID
    platform: str
    classified_count: int


PostClassifyHook = Callable[[Session, ClassifyCompleted], Any]

_post_classify_hooks: list[PostClassifyHook] = []


def register_post_classify_hook(hook: PostClassifyHook) -> PostClassifyHook:
    """Register ``hook`` to run after each platform's classify stage. Usable as a decorator."""
    if hook not in _post_classify_hooks:
        _post_classify_hooks.append(hook)
    return hook


def clear_post_classify_hooks() -> None:
    """Remove all hooks. Useful for testing."""
    _post_classify_hooks.clear()


def run_non_critical(name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """Call ``fn`` and swallow any failure. Returns True if it ran cleanly."""
    try:
        fn(*args, **kwargs)
        return True
    except Exception:
        logger.exception("Non-critical side effect %s failed (ignored)", name)
        return False


def trigger_post_classify_enrichment(db: Session, event: ClassifyCompleted) -> int:
    """Fire every registered hook for ``event``. Returns how many ran cleanly."""
    ok = 0
    for hook in list(_post_classify_hooks):
        name = getattr(hook, "__name__", repr(hook))
        if run_non_critical(name, hook, db, event):
            ok += 1
    if _post_classify_hooks:
        logger.info(
            "Post-classify enrichment: scan_id=%s platform=%s hooks_ok=%d/%d",
            event.scan_id,
            event.platform,
            ok,
            len(_post_classify_hooks),
        )
    return ok
