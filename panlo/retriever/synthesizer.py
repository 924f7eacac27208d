"""
Synthesizer

Runs completion requests against the configured LLM provider.

The completion service is the one dependency an answer cannot do without:
if it is unavailable or errors, the request fails with UpstreamUnavailable
instead of degrading.
"""

import asyncio
import logging
from typing import Optional

from ..common.errors import UpstreamUnavailable
from ..common.language import language_name, resolve_language
from ..common.llm_client import LLMClient
from .prompts import CompletionRequest

logger = logging.getLogger("panlo.retriever.synthesizer")

SUMMARY_MAX_CHARS = 8000
SUMMARY_MAX_TOKENS = 150

SUMMARY_SYSTEM_PROMPT = """You are a helpful assistant that writes concise, informative summaries of documents.
Capture the key points, main topics and important details in 2-3 sentences.
Write the summary in {language}."""

SUMMARY_PROMPT = """Summarize the following content of the file "{filename}":

{text}"""


class Synthesizer:
    """Executes assembled prompts on the completion service."""

    def __init__(
        self,
        llm_client: LLMClient,
        max_tokens: int = 1024,
        temperature: Optional[float] = 0.3,
    ):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def is_available(self) -> bool:
        return self._llm.is_available

    async def complete(
        self,
        request: CompletionRequest,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Return the raw completion text for a (system, user) request"""
        if not self._llm.is_available:
            raise UpstreamUnavailable("completion service", "no LLM provider configured")

        try:
            raw = await asyncio.to_thread(
                self._llm.generate,
                request.user,
                system=request.system,
                max_tokens=max_tokens or self._max_tokens,
                temperature=self._temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.error("Completion request failed: %s", e, exc_info=True)
            raise UpstreamUnavailable("completion service", str(e)) from e

        logger.debug("Completion returned %d chars", len(raw))
        return raw


class DocumentSummarizer:
    """Short multilingual summaries of a document's text."""

    def __init__(self, synthesizer: Synthesizer):
        self._synthesizer = synthesizer

    async def summarize(self, text: str, filename: str, language: Optional[str] = None) -> str:
        """
        Summarize text in the requested language.

        Args:
            text: Document text; only the first 8000 characters are sent
            filename: Shown to the model for context
            language: Client language code; detected from text when omitted

        Returns:
            The summary text
        """
        code = resolve_language(language, text)
        truncated = text if len(text) <= SUMMARY_MAX_CHARS else text[:SUMMARY_MAX_CHARS] + "..."
        request = CompletionRequest(
            system=SUMMARY_SYSTEM_PROMPT.format(language=language_name(code)),
            user=SUMMARY_PROMPT.format(filename=filename, text=truncated),
        )
        return await self._synthesizer.complete(
            request, max_tokens=SUMMARY_MAX_TOKENS, temperature=0.3
        )
