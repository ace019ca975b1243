"""
OpenAI LLM provider for the relevance and classification oracles.

One synchronous client per provider. Retries are left to the SDK
(``max_retries`` on the client) and every request carries ``timeout``, so
the HTTP attempts of one oracle call share the bound the router derives
from HUNTER_ITEM_TIMEOUT_SECONDS. An item the stage gives up on does not
leave a request running long after it.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from openai import APIError, OpenAI

from app.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 100


class OpenAIProvider(LLMProvider):
    """Chat-completions provider. ``timeout`` is per HTTP attempt, in seconds."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
        max_retries: int = 0,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send one chat completion and return its text.

        Supported kwargs: ``temperature`` (default 0.3), ``max_tokens`` and
        ``response_format`` (``{"type": "json_object"}`` for JSON mode).
        API errors are logged and re-raised; the stage records them as item
        failures.
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.get("temperature", 0.3),
        }
        for key in ("max_tokens", "response_format"):
            if key in kwargs:
                request[key] = kwargs[key]

        start = time.monotonic()
        try:
            response = self._client.chat.completions.create(**request)
        except APIError as exc:
            logger.error(
                "OpenAI %s after %.2fs (model=%s): %s",
                type(exc).__name__,
                time.monotonic() - start,
                self.model,
                exc,
            )
            raise

        usage = response.usage
        preview = prompt if len(prompt) <= _PREVIEW_CHARS else prompt[:_PREVIEW_CHARS] + "..."
        logger.info(
            "LLM call: model=%s prompt_preview=%r tokens_in=%d tokens_out=%d latency=%.2fs",
            self.model,
            preview,
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
            time.monotonic() - start,
        )
        logger.debug("LLM prompt (full): %s", prompt)
        return response.choices[0].message.content or ""
