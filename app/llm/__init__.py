"""LLM provider abstraction. LLM is judgment only, never orchestration."""

from app.llm.openai_provider import OpenAIProvider
from app.llm.provider import LLMProvider
from app.llm.router import ModelRole, get_llm_provider, llm_configured

__all__ = ["LLMProvider", "ModelRole", "OpenAIProvider", "get_llm_provider", "llm_configured"]
