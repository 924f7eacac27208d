"""
Transcripts

Rebuilds a long document's text from its stored fragments.

Fragments of one document are stored as "<documentId>-<ordinal>". All
ordinals are fetched concurrently and joined in ordinal order. Missing
fragments, fragments without text and fetches that fail are skipped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..common.errors import BranchFailure, NotFound, ValidationError
from ..common.vector_client import VectorStoreClient

logger = logging.getLogger("panlo.retriever.transcripts")


def chunk_id(document_id: str, ordinal: int) -> str:
    return f"{document_id}-{ordinal}"


@dataclass(frozen=True)
class TranscriptChunk:
    ordinal: int
    id: str
    text: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return bool(self.text and self.text.strip())


@dataclass(frozen=True)
class Transcript:
    """Reassembled document text and the fragments that contributed to it"""
    document_id: str
    text: str
    chunk_count: int
    contributing_ids: List[str] = field(default_factory=list)


class ChunkReassembler:
    """Concurrent fetch and ordered join of a document's fragments."""

    def __init__(self, vector_store: VectorStoreClient):
        self._store = vector_store

    async def _fetch_or_raise(self, namespace: str, record_id: str) -> Optional[str]:
        try:
            records = await asyncio.to_thread(self._store.fetch, namespace, [record_id])
        except Exception as e:
            raise BranchFailure(f"chunk {record_id}", e) from e
        metadata = records.get(record_id)
        if metadata is None:
            return None
        text = metadata.get("text")
        return text if isinstance(text, str) else None

    async def fetch_chunk(self, namespace: str, document_id: str, ordinal: int) -> TranscriptChunk:
        """Fetch one fragment; a missing or failed fetch yields an absent chunk"""
        record_id = chunk_id(document_id, ordinal)
        try:
            text = await self._fetch_or_raise(namespace, record_id)
        except BranchFailure as e:
            logger.warning("%s; skipping", e)
            text = None
        return TranscriptChunk(ordinal=ordinal, id=record_id, text=text)

    async def reassemble(self, namespace: str, document_id: str, chunk_count: int) -> Transcript:
        """
        Reassemble a transcript from chunk_count fragments.

        Raises:
            ValidationError: empty document id or negative chunk count
            NotFound: no fragment contributed any text
        """
        if not document_id:
            raise ValidationError("documentId is required", ["documentId"])
        if chunk_count < 0:
            raise ValidationError("chunkCount must not be negative", ["chunkCount"])

        chunks: Tuple[TranscriptChunk, ...] = tuple(
            await asyncio.gather(
                *(self.fetch_chunk(namespace, document_id, n) for n in range(chunk_count))
            )
        )
        present = [c for c in chunks if c.is_present]
        text = " ".join(c.text for c in present).strip()
        if not text:
            raise NotFound(f"No transcript content found for document {document_id}")

        logger.debug(
            "Reassembled %s from %d of %d chunks", document_id, len(present), chunk_count
        )
        return Transcript(
            document_id=document_id,
            text=text,
            chunk_count=len(present),
            contributing_ids=[c.id for c in present],
        )
