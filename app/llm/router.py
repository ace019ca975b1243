"""
LLM provider router / factory.

Returns the LLMProvider for a pipeline role based on application settings.
Provider instances are cached per (provider_name, role) to reuse connections.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from app.llm.provider import LLMProvider

if TYPE_CHECKING:
    from app.config import Settings

logger = logging.getLogger(__name__)


class ModelRole(str, Enum):
    """Which oracle the provider serves."""

    RELEVANCE = "relevance"  # filter stage: is this item about the product?
    CLASSIFY = "classify"  # classify stage: category, urgency, sentiment


# Module-level cache: "provider_name:role" -> instance
_provider_cache: dict[str, LLMProvider] = {}


def llm_configured(settings: Settings | None = None) -> bool:
    """True when an API key is set, i.e. get_llm_provider() would succeed."""
    if settings is None:
        from app.config import get_settings

        settings = get_settings()
    return bool(settings.llm_api_key)


def oracle_request_timeout(settings: Settings) -> float:
    """Per-attempt HTTP timeout so all attempts of one call fit in the item bound.

    LLM_TIMEOUT caps it; HUNTER_ITEM_TIMEOUT_SECONDS is split across the
    first attempt and LLM_MAX_RETRIES SDK retries (the SDK's backoff sleeps
    between retries come on top).
    """
    attempts = max(settings.llm_max_retries, 0) + 1
    return min(settings.llm_timeout, settings.hunter_item_timeout_seconds / attempts)


def get_llm_provider(
    role: ModelRole = ModelRole.CLASSIFY,
    settings: Settings | None = None,
) -> LLMProvider:
    """Return an LLMProvider instance for the configured provider and role.

    Raises:
        ValueError: If the configured provider is not supported or API key is missing.
    """
    if settings is None:
        from app.config import get_settings

        settings = get_settings()

    provider_name = settings.llm_provider.lower()
    cache_key = f"{provider_name}:{role.value}"

    if cache_key in _provider_cache:
        return _provider_cache[cache_key]

    if provider_name == "openai":
        if not settings.llm_api_key:
            raise ValueError(
                "LLM_API_KEY is required for the OpenAI provider. "
                "Set it in your environment or .env file."
            )

        from app.llm.openai_provider import OpenAIProvider

        model = {
            ModelRole.RELEVANCE: settings.llm_model_relevance,
            ModelRole.CLASSIFY: settings.llm_model_classify,
        }[role]

        max_retries = max(settings.llm_max_retries, 0)
        provider = OpenAIProvider(
            api_key=settings.llm_api_key,
            model=model,
            timeout=oracle_request_timeout(settings),
            max_retries=max_retries,
        )
    else:
        raise ValueError(
            f"Unknown LLM provider: '{provider_name}'. "
            f"Supported providers: openai"
        )

    _provider_cache[cache_key] = provider
    logger.info("Created LLM provider: %s role=%s model=%s", provider_name, role.value, model)
    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache. Useful for testing."""
    _provider_cache.clear()
