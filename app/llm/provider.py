"""
LLM provider abstraction.

The LLM is a judgment component only: it scores relevance and classifies
feedback text. It never claims jobs, touches the database or decides
pipeline control flow.
"""

import json
from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """Abstract base for LLM providers."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send prompt and return completion text."""
        ...

    def complete_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Complete in JSON mode and parse the reply. Raises ValueError on non-object JSON."""
        text = self.complete(
            prompt,
            system_prompt=system_prompt,
            response_format={"type": "json_object"},
            **kwargs,
        )
        data = json.loads(text or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data
