"""
Embedding Service

Turns text into vectors through the vector store's hosted inference.
Questions are embedded as queries, stored fragments as passages.
"""

import logging
from typing import List

from .vector_client import VectorStoreClient

logger = logging.getLogger("panlo.common.embedding_service")


class EmbeddingService:
    """Embedding generation bound to one hosted model."""

    def __init__(self, client: VectorStoreClient, model: str = "multilingual-e5-large"):
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client.is_configured

    def embed(self, texts: List[str], input_type: str = "passage") -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed
            input_type: "query" or "passage"

        Returns:
            One embedding vector per input text
        """
        if not texts:
            return []

        vectors = self._client.embed(self._model, texts, input_type)
        if len(vectors) != len(texts):
            raise RuntimeError(
                f"Embedding count mismatch: sent {len(texts)} texts, got {len(vectors)} vectors"
            )
        return vectors

    def embed_single(self, text: str, input_type: str = "query") -> List[float]:
        """Generate embedding for a single text"""
        vectors = self.embed([text], input_type=input_type)
        if not vectors or not vectors[0]:
            raise RuntimeError("Embedding service returned an empty vector")
        return vectors[0]
