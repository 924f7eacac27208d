"""
Retrieval Engine

The operations the request layer calls:
- retrieve_and_answer: retrieve, assemble a prompt, complete, extract citations
- find_matching_documents: retrieve and report the matching document ids
- get_transcript: reassemble a document from its fragments
- upsert_document_fragment: validate, normalize, embed and store one fragment

plus fragment maintenance (update, delete), chunked document ingestion and
document summaries.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from ..common.accounts import AccountStore
from ..common.chunking import split_text_into_chunks
from ..common.config import DEFAULT_EXPIRED_NOTICE, RetrieverConfig
from ..common.context import ClientContext
from ..common.errors import UpstreamUnavailable, ValidationError
from .citations import CitationExtractor, SynthesizedAnswer
from .filters import MATCH_ALL, QueryFilters, RetrievalFilter
from .memory import normalize_memory
from .prompts import AnswerMode, PromptAssembler
from .query_processor import QueryInterpreter
from .searcher import MultiNamespaceRetriever, NamespaceSearcher, RetrievalResult
from .synthesizer import DocumentSummarizer, Synthesizer
from .transcripts import ChunkReassembler, Transcript, chunk_id

logger = logging.getLogger("panlo.retriever.engine")

REQUIRED_METADATA_FIELDS = (
    "filename", "filepath", "fileType", "fileSize", "createdAt", "updatedAt", "folderName",
)
LOWERCASED_METADATA_FIELDS = ("folderName", "filename", "fileType")
CHUNK_SUFFIX_RE = re.compile(r"-\d+$")
EMBED_BATCH_SIZE = 96

FiltersArg = Union[QueryFilters, Dict[str, Any], None]


def document_id_from_chunk(record_id: str) -> str:
    """Strip the trailing "-<ordinal>" from a fragment id"""
    return CHUNK_SUFFIX_RE.sub("", record_id)


def normalize_metadata(metadata: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize fragment metadata.

    folderName, filename and fileType are lower-cased, as are smart folder
    names; filepath is kept verbatim. Fields set to None are dropped. Unless
    partial, every required field must be present.
    """
    if not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object", ["metadata"])

    if not partial:
        missing = [k for k in REQUIRED_METADATA_FIELDS if metadata.get(k) is None]
        if missing:
            raise ValidationError(
                f"Metadata fields ({', '.join(REQUIRED_METADATA_FIELDS)}) are required; "
                f"missing: {', '.join(missing)}",
                missing,
            )

    normalized = {k: v for k, v in metadata.items() if v is not None}
    for key in LOWERCASED_METADATA_FIELDS:
        if isinstance(normalized.get(key), str):
            normalized[key] = normalized[key].lower()
    smart = normalized.get("smartFolderNames")
    if isinstance(smart, list):
        normalized["smartFolderNames"] = [s.lower() if isinstance(s, str) else s for s in smart]
    return normalized


def _require_text(value: Optional[str], name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", [name])
    return value


class RetrievalEngine:
    """Multi-namespace retrieval and cited answer synthesis."""

    def __init__(
        self,
        context: ClientContext,
        config: Optional[RetrieverConfig] = None,
        account_store: Optional[AccountStore] = None,
        expired_notice: str = DEFAULT_EXPIRED_NOTICE,
    ):
        self._context = context
        self._config = config or RetrieverConfig()
        self._accounts = account_store
        self._expired_notice = expired_notice

        self._retriever = MultiNamespaceRetriever(
            context.embedding, NamespaceSearcher(context.vector_store)
        )
        self._assembler = PromptAssembler()
        self._extractor = CitationExtractor()
        self._synthesizer = Synthesizer(
            context.llm,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        self._summarizer = DocumentSummarizer(self._synthesizer)
        self._interpreter = QueryInterpreter(context.llm)
        self._reassembler = ChunkReassembler(context.vector_store)

    @property
    def config(self) -> RetrieverConfig:
        return self._config

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def retrieve(
        self,
        namespace: str,
        query_text: str,
        filters: FiltersArg = None,
        top_k: Optional[int] = None,
    ) -> RetrievalResult:
        """
        Ranked matches for a question.

        Without structured filters only the caller's namespace is searched.
        With them, the owner's selected folders and every shared namespace
        are searched concurrently.
        """
        namespace = _require_text(namespace, "namespace")
        query_text = _require_text(query_text, "query")
        parsed = filters if isinstance(filters, QueryFilters) else QueryFilters.from_dict(filters)
        if top_k is None:
            top_k = self._config.top_k
        elif top_k < 1:
            raise ValidationError("top_k must be a positive integer", ["topK"])
        threshold = self._config.score_threshold

        date_filter = await self._date_filter(query_text)
        if parsed is None:
            return await self._retriever.retrieve_unfiltered(
                namespace, query_text, threshold, top_k, extra_filter=date_filter
            )
        return await self._retriever.retrieve(
            namespace, query_text, threshold, top_k, parsed, extra_filter=date_filter
        )

    async def _date_filter(self, query_text: str) -> RetrievalFilter:
        if not self._config.interpret_dates:
            return MATCH_ALL
        return await self._interpreter.interpret(query_text)

    async def retrieve_and_answer(
        self,
        namespace: str,
        query_text: str,
        memory: Any = None,
        answer_mode: Union[AnswerMode, str] = AnswerMode.GENERAL,
        filters: FiltersArg = None,
    ) -> SynthesizedAnswer:
        """
        Answer a question from the caller's documents, with citations.

        Raises:
            ValidationError: missing namespace or query, unknown answer mode
            UpstreamUnavailable: the embedding or completion service failed
        """
        namespace = _require_text(namespace, "namespace")
        query_text = _require_text(query_text, "query")
        mode = AnswerMode.parse(answer_mode)
        conversation = normalize_memory(memory).window(self._config.memory_window)

        if self._accounts is not None and await self._accounts.is_expired(namespace):
            logger.info("Account %s expired; returning notice", namespace)
            return SynthesizedAnswer(answer_text=self._expired_notice, expired=True)

        result = await self.retrieve(namespace, query_text, filters)
        if result.failed_namespaces:
            logger.warning(
                "Answering with partial context; failed namespaces: %s",
                ", ".join(result.failed_namespaces),
            )

        request = self._assembler.assemble(result, conversation, mode, query_text)
        raw = await self._synthesizer.complete(request)
        answer = self._extractor.extract(raw)

        logger.info(
            "Answered in %s mode from %d matches, %d citations",
            mode.value, len(result), len(answer.cited_sources),
        )
        return SynthesizedAnswer(
            answer_text=answer.answer_text,
            cited_sources=answer.cited_sources,
            context=result.matches,
        )

    async def find_matching_documents(
        self,
        namespace: str,
        query_text: str,
        filters: FiltersArg = None,
    ) -> List[str]:
        """Ids of the documents whose fragments match, best match first"""
        result = await self.retrieve(namespace, query_text, filters)
        document_ids = []
        for match in result:
            document_id = document_id_from_chunk(match.id)
            if document_id not in document_ids:
                document_ids.append(document_id)
        return document_ids

    async def get_transcript(self, namespace: str, document_id: str, chunk_count: int) -> Transcript:
        """Reassemble a document's text from chunk_count fragments"""
        namespace = _require_text(namespace, "namespace")
        return await self._reassembler.reassemble(namespace, document_id, chunk_count)

    async def summarize_document(
        self,
        text: str,
        filename: str,
        language: Optional[str] = None,
    ) -> str:
        text = _require_text(text, "text")
        return await self._summarizer.summarize(text, filename or "document", language)

    # =========================================================================
    # Ingestion and maintenance
    # =========================================================================

    async def _embed_passages(self, texts: List[str]) -> List[List[float]]:
        vectors: List[List[float]] = []
        for start in range(0, len(texts), EMBED_BATCH_SIZE):
            batch = texts[start:start + EMBED_BATCH_SIZE]
            try:
                vectors.extend(
                    await asyncio.to_thread(self._context.embedding.embed, batch, "passage")
                )
            except Exception as e:
                logger.error("Passage embedding failed: %s", e, exc_info=True)
                raise UpstreamUnavailable("embedding service", str(e)) from e
        return vectors

    async def _write(self, operation: str, func, *args) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as e:
            logger.error("Vector store %s failed: %s", operation, e, exc_info=True)
            raise UpstreamUnavailable("vector store", str(e)) from e

    async def upsert_document_fragment(
        self,
        namespace: str,
        fragment_id: str,
        text: str,
        metadata: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Store one fragment.

        Returns:
            The normalized metadata that was stored

        Raises:
            ValidationError: missing id, text or required metadata fields
        """
        namespace = _require_text(namespace, "namespace")
        fragment_id = _require_text(fragment_id, "id")
        text = _require_text(text, "text")
        stored = normalize_metadata(metadata)
        stored["text"] = text

        vector = (await self._embed_passages([text]))[0]
        await self._write(
            "upsert",
            self._context.vector_store.upsert,
            namespace,
            [{"id": fragment_id, "values": vector, "metadata": stored}],
        )
        logger.info("Upserted fragment %s into %s", fragment_id, namespace)
        return stored

    async def upsert_document(
        self,
        namespace: str,
        document_id: str,
        text: str,
        metadata: Dict[str, Any],
    ) -> int:
        """
        Split a document into fragments and store them as <documentId>-<ordinal>.

        Returns:
            The number of fragments stored, i.e. the chunk count needed by
            get_transcript
        """
        namespace = _require_text(namespace, "namespace")
        document_id = _require_text(document_id, "documentId")
        base = normalize_metadata(metadata)
        chunks = split_text_into_chunks(text or "", self._config.chunk_size_bytes)
        if not chunks:
            raise ValidationError("text is required", ["text"])

        vectors = await self._embed_passages(chunks)
        records = [
            {
                "id": chunk_id(document_id, ordinal),
                "values": vector,
                "metadata": {**base, "text": chunk, "chunkIndex": ordinal, "totalChunks": len(chunks)},
            }
            for ordinal, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]
        await self._write("upsert", self._context.vector_store.upsert, namespace, records)
        logger.info("Upserted %s as %d fragments into %s", document_id, len(records), namespace)
        return len(records)

    async def update_fragment_metadata(
        self,
        namespace: str,
        fragment_id: str,
        metadata: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Overwrite some metadata fields of a stored fragment"""
        namespace = _require_text(namespace, "namespace")
        fragment_id = _require_text(fragment_id, "id")
        updates = normalize_metadata(metadata, partial=True)
        if not updates:
            raise ValidationError("metadata must contain at least one field", ["metadata"])

        await self._write(
            "update", self._context.vector_store.update_metadata, namespace, fragment_id, updates
        )
        return updates

    async def delete_document_fragments(self, namespace: str, ids: Sequence[str]) -> int:
        """Delete fragments by id. Returns how many ids were sent."""
        namespace = _require_text(namespace, "namespace")
        ids = [i for i in (ids or []) if isinstance(i, str) and i]
        if not ids:
            raise ValidationError("ids must be a non-empty list", ["ids"])

        await self._write("delete", self._context.vector_store.delete, namespace, ids)
        logger.info("Deleted %d fragments from %s", len(ids), namespace)
        return len(ids)
