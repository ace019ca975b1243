"""Classification oracle for the classify stage.

LLM-backed when LLM_API_KEY is set; otherwise a keyword heuristic with low
confidence. Output is always a validated FeedbackClassification.
"""

from __future__ import annotations

import logging
import re

from app.config import get_settings
from app.llm.router import ModelRole, get_llm_provider, llm_configured
from app.prompts.loader import render_prompt
from app.schemas.hunter import FeedbackClassification

logger = logging.getLogger(__name__)

# First match wins, so the more specific categories come first
_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("churn_risk", ("cancel", "cancelled", "switching to", "switched to", "moving away", "leaving")),
    ("bug", ("bug", "crash", "broken", "error", "doesn't work", "does not work", "fails")),
    ("feature_request", ("wish", "please add", "would love", "feature request", "it would be nice")),
    ("comparison", (" vs ", "versus", "better than", "worse than", "compared to", "alternative")),
    ("usability_issue", ("confusing", "hard to find", "unintuitive", "can't figure", "clunky")),
    ("question", ("how do i", "how to", "is there a way", "does anyone know")),
    ("complaint", ("hate", "annoying", "terrible", "awful", "slow", "frustrating")),
    ("praise", ("love", "great", "awesome", "amazing", "fantastic", "thank you")),
]

_POSITIVE = ("love", "great", "awesome", "amazing", "fantastic", "thank", "nice", "helpful")
_NEGATIVE = ("hate", "broken", "crash", "terrible", "awful", "slow", "annoying", "cancel", "bug")

_URGENCY = {"churn_risk": 4, "bug": 4, "complaint": 3, "usability_issue": 3}

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

_SYSTEM_PROMPT = "You are a product feedback analyst. Respond with JSON only."


def heuristic_classification(text: str) -> FeedbackClassification:
    lowered = f" {text.lower()} "
    category = "other"
    for name, keywords in _CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            category = name
            break

    pos = sum(lowered.count(w) for w in _POSITIVE)
    neg = sum(lowered.count(w) for w in _NEGATIVE)
    sentiment = 0.0 if pos + neg == 0 else round((pos - neg) / (pos + neg), 2)
    first_sentence = _SENTENCE_RE.split(text.strip(), maxsplit=1)[0][:500] if text.strip() else None

    return FeedbackClassification(
        classification=category,
        confidence=0.4 if category != "other" else 0.2,
        urgency=_URGENCY.get(category, 2),
        sentiment=sentiment,
        tags=[category] if category != "other" else [],
        quotable=first_sentence,
        action_needed=category in ("bug", "churn_risk"),
    )


def classify_feedback(
    content: str,
    search_terms: list[str],
    *,
    title: str | None = None,
    platform: str = "",
) -> FeedbackClassification:
    """Classify one relevant item. LLM and validation errors propagate to the caller."""
    settings = get_settings()
    if not llm_configured(settings):
        return heuristic_classification(f"{title or ''}. {content}" if title else content)

    llm = get_llm_provider(ModelRole.CLASSIFY, settings)
    prompt = render_prompt(
        "feedback_classification_v1",
        SEARCH_TERMS=", ".join(search_terms),
        PLATFORM=platform or "unknown",
        TITLE=title or "",
        CONTENT=content[:6000],
    )
    data = llm.complete_json(prompt, system_prompt=_SYSTEM_PROMPT, temperature=0.2)
    # Models sometimes return the tags as a comma-separated string
    tags = data.get("tags")
    if isinstance(tags, str):
        data["tags"] = [t.strip() for t in tags.split(",") if t.strip()]
    return FeedbackClassification.model_validate(data)
