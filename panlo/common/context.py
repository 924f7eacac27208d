"""
Client context.

Holds the vector store, embedding and completion handles for the lifetime of
the process. Built once at start-up and passed explicitly to the engine.
"""

import logging
from dataclasses import dataclass

from .config import PanloConfig
from .embedding_service import EmbeddingService
from .llm_client import LLMClient
from .vector_client import VectorStoreClient

logger = logging.getLogger("panlo.common.context")


@dataclass(frozen=True)
class ClientContext:
    """Shared read-only handles to the external collaborators"""
    vector_store: VectorStoreClient
    embedding: EmbeddingService
    llm: LLMClient


def build_context(config: PanloConfig) -> ClientContext:
    """Construct every external client from configuration"""
    vector_store = VectorStoreClient(
        api_key=config.pinecone.api_key,
        index_name=config.pinecone.index_name,
    )
    if not vector_store.is_configured:
        logger.warning("Pinecone is not configured; retrieval and ingestion will fail")

    embedding = EmbeddingService(vector_store, model=config.embedding.model)
    llm = LLMClient.from_config(config.llm)
    logger.info(
        "Client context ready (index=%s, embedding=%s, llm=%s/%s, llm_available=%s)",
        config.pinecone.index_name,
        config.embedding.model,
        llm.provider,
        llm.model,
        llm.is_available,
    )
    return ClientContext(vector_store=vector_store, embedding=embedding, llm=llm)
