"""LLM provider adapters."""

from ragline.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
