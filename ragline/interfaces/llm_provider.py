"""Abstract base class for the completion (LLM) provider.

The pipeline treats language generation as a black box: it hands over a
system prompt carrying the retrieved context and the user's question, and
gets text back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ILLMProvider(ABC):
    """Contract for chat-completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        history: list[dict[str, str]] | None = None,
    ) -> str:
        """Generate a completion.

        Parameters
        ----------
        system_prompt:
            Instructions plus the document context.
        user_prompt:
            The user's question.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on response length.
        history:
            Earlier ``{"role", "content"}`` turns inserted between the
            system prompt and the question.

        Returns
        -------
        str
            The model's reply.

        Raises
        ------
        ragline.utils.errors.ProviderError
            If the API call fails or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
