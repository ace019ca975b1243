"""Relevance oracle for the filter stage.

Scores how likely an item is genuine feedback about the scanned product and
maps the score to include / human_review / exclude using the configured
thresholds. Uses the LLM when LLM_API_KEY is set, otherwise a keyword
heuristic so the pipeline still runs in development.
"""

from __future__ import annotations

import logging
import re

from app.config import Settings, get_settings
from app.llm.router import ModelRole, get_llm_provider, llm_configured
from app.prompts.loader import render_prompt
from app.schemas.hunter import RelevanceJudgment

logger = logging.getLogger(__name__)

# Words that suggest the text is an opinion about a product rather than a passing mention
FEEDBACK_KEYWORDS = frozenset(
    {
        "bug",
        "broken",
        "crash",
        "crashes",
        "crashing",
        "error",
        "slow",
        "wish",
        "feature",
        "please add",
        "missing",
        "love",
        "hate",
        "annoying",
        "confusing",
        "switched",
        "switching",
        "cancel",
        "cancelled",
        "alternative",
        "vs",
        "better than",
        "worse than",
        "how do i",
        "doesn't work",
        "does not work",
    }
)

_SYSTEM_PROMPT = "You are a precise analyst. Respond with JSON only."


def decide(score: float, settings: Settings | None = None) -> str:
    """Score -> decision. score >= include threshold includes, >= review threshold asks a human."""
    if settings is None:
        settings = get_settings()
    if score >= settings.hunter_relevance_include_threshold:
        return "include"
    if score >= settings.hunter_relevance_review_threshold:
        return "human_review"
    return "exclude"


def _contains(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def heuristic_score(text: str, search_terms: list[str]) -> tuple[float, str]:
    """Keyword score: 60 for naming the product, 25 for sounding like feedback."""
    lowered = text.lower()
    terms = [t.strip().lower() for t in search_terms if t and t.strip()]
    term_hits = [t for t in terms if _contains(lowered, t)]
    feedback_hits = sorted(k for k in FEEDBACK_KEYWORDS if _contains(lowered, k))

    score = (60.0 if term_hits else 0.0) + (25.0 if feedback_hits else 0.0)
    if term_hits and len(feedback_hits) > 1:
        score += 10.0
    reason = (
        f"mentions {term_hits[:3] or 'none of the terms'}; "
        f"feedback words {feedback_hits[:3] or 'none'}"
    )
    return min(score, 100.0), reason


def judge_relevance(
    content: str,
    search_terms: list[str],
    *,
    title: str | None = None,
    platform: str = "",
) -> RelevanceJudgment:
    """Return the relevance judgment for one item.

    LLM failures propagate; the filter stage records them as item failures.
    """
    settings = get_settings()
    if llm_configured(settings):
        llm = get_llm_provider(ModelRole.RELEVANCE, settings)
        prompt = render_prompt(
            "relevance_filter_v1",
            SEARCH_TERMS=", ".join(search_terms),
            PLATFORM=platform or "unknown",
            TITLE=title or "",
            CONTENT=content[:6000],
        )
        data = llm.complete_json(prompt, system_prompt=_SYSTEM_PROMPT, temperature=0.0)
        score = max(0.0, min(100.0, float(data.get("score", 0))))
        reason = str(data.get("reason") or "")
    else:
        score, reason = heuristic_score(f"{title or ''}\n{content}", search_terms)

    return RelevanceJudgment(score=score, decision=decide(score, settings), reason=reason)
