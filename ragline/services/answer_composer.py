"""Compose an LLM answer from a retrieval result.

The retrieved context is embedded in the system prompt together with a
short list of instructions that name the documents in play, so follow-up
questions like "summarize the document" resolve to the right source.
Documents named in earlier assistant turns are kept in that list too.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from ragline.interfaces.llm_provider import ILLMProvider
from ragline.models.retrieval import ComposedAnswer, ComposerConfig, RetrievalResult
from ragline.services.document_references import build_references

logger = structlog.get_logger(logger_name=__name__)

_DOCUMENT_NAME_RE = re.compile(r"Document:\s*([^:\n]+)")

_INSTRUCTIONS = (
    "IMPORTANT INSTRUCTIONS:\n"
    "1. You have access to specific document content provided above. Use this content "
    "to answer questions directly and comprehensively.\n"
    "2. When users ask about \"the document\" or request summaries, always refer to the "
    "documents you have access to: {documents}.\n"
    "3. If you have document content, provide detailed answers based on that content. "
    "Include specific information, key points, and relevant details.\n"
    "4. If no specific content is available but documents exist, explain what documents "
    "are available and suggest the user ask more specific questions.\n"
    "5. Always be consistent - if you could access a document in previous messages, you "
    "should still be able to access it unless explicitly told otherwise.\n"
    "6. When summarizing, provide comprehensive summaries that cover the main topics, key "
    "points, and important details from the document content."
)


def extract_document_names(text: str) -> list[str]:
    """Distinct ``Document: <name>`` labels in *text*, in order of appearance."""
    names: dict[str, None] = {}
    for match in _DOCUMENT_NAME_RE.finditer(text):
        names.setdefault(match.group(1).strip(), None)
    return list(names)


def build_system_prompt(
    base_prompt: str,
    context_text: str,
    history: Sequence[dict[str, str]] | None = None,
) -> str:
    """Base prompt + document context + instructions naming the documents."""
    previous = " ".join(m.get("content", "") for m in history or [] if m.get("role") == "assistant")
    documents = list(
        dict.fromkeys([*extract_document_names(previous), *extract_document_names(context_text)])
    )
    named = ", ".join(documents) if documents else "the available documents"
    return (
        f"{base_prompt}\n\n"
        f"Document Context:\n{context_text}\n\n"
        f"{_INSTRUCTIONS.format(documents=named)}"
    )


class AnswerComposer:
    """Generates answers from retrieved context via an :class:`ILLMProvider`.

    Parameters
    ----------
    llm:
        Completion provider; retries transient failures itself.
    config:
        Base system prompt, sampling settings and excerpt length.
    """

    def __init__(self, llm: ILLMProvider, config: ComposerConfig | None = None) -> None:
        self._llm = llm
        self._config = config or ComposerConfig()

    async def compose(
        self,
        question: str,
        retrieval: RetrievalResult,
        history: list[dict[str, str]] | None = None,
    ) -> ComposedAnswer:
        """Answer *question* from *retrieval*'s context.

        Parameters
        ----------
        question:
            The user's question, sent as the user prompt.
        retrieval:
            Output of :meth:`RetrievalEngine.retrieve`.
        history:
            Earlier ``{"role", "content"}`` turns of the conversation.

        Returns
        -------
        ComposedAnswer
            The answer, the context it was based on and deduplicated
            references to the source documents.
        """
        system_prompt = build_system_prompt(self._config.system_prompt, retrieval.context_text, history)
        answer = await self._llm.complete(
            system_prompt,
            question,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            history=history,
        )
        references = build_references(retrieval.results, self._config.excerpt_length)

        logger.info(
            "answer_composed",
            provider=self._llm.get_provider_name(),
            strategy=retrieval.strategy.value,
            context_chars=len(retrieval.context_text),
            answer_chars=len(answer),
            references=len(references),
        )
        return ComposedAnswer(
            answer=answer,
            context_text=retrieval.context_text,
            references=references,
            strategy=retrieval.strategy,
        )
