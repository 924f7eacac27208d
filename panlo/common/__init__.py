"""
Panlo Common Module

Shared infrastructure for the retrieval engine and the HTTP server.
"""

from .config import PanloConfig, load_config
from .context import ClientContext, build_context
from .embedding_service import EmbeddingService
from .errors import BranchFailure, NotFound, PanloError, UpstreamUnavailable, ValidationError
from .llm_client import LLMClient
from .vector_client import VectorStoreClient

__all__ = [
    "PanloConfig",
    "load_config",
    "ClientContext",
    "build_context",
    "EmbeddingService",
    "LLMClient",
    "VectorStoreClient",
    "PanloError",
    "ValidationError",
    "BranchFailure",
    "UpstreamUnavailable",
    "NotFound",
]
