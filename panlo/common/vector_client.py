"""
Vector Store Client

Wraps the Pinecone SDK for namespaced query, fetch, upsert, update and delete,
plus the hosted inference endpoint used for embeddings.

All methods are synchronous. Async callers run them through asyncio.to_thread.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("panlo.common.vector_client")


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK response object or a plain dict"""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class VectorStoreClient:
    """
    Direct client to one Pinecone index.

    The SDK handle is created lazily on first use, so building the client
    at process start never performs network I/O.
    """

    def __init__(self, api_key: str, index_name: str):
        """
        Initialize the vector store client.

        Args:
            api_key: Pinecone API key
            index_name: Name of the index holding every namespace
        """
        self._api_key = api_key
        self._index_name = index_name
        self._pc = None
        self._index = None

    @property
    def index_name(self) -> str:
        return self._index_name

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._index_name)

    def _ensure_initialized(self) -> None:
        """Lazily create the SDK client and index handle"""
        if self._index is not None:
            return
        if not self.is_configured:
            raise RuntimeError("Pinecone API key or index name not configured")

        from pinecone import Pinecone

        self._pc = Pinecone(api_key=self._api_key)
        self._index = self._pc.Index(self._index_name)
        logger.info("Connected to Pinecone index %s", self._index_name)

    def query(
        self,
        namespace: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Scored nearest-neighbor query against one namespace.

        Returns:
            List of {"id", "score", "metadata"} dicts in store order
        """
        self._ensure_initialized()
        kwargs: Dict[str, Any] = {
            "namespace": namespace,
            "vector": vector,
            "top_k": top_k,
            "include_metadata": True,
        }
        if filter:
            kwargs["filter"] = filter

        response = self._index.query(**kwargs)
        return [
            {
                "id": _field(match, "id"),
                "score": float(_field(match, "score", 0.0) or 0.0),
                "metadata": dict(_field(match, "metadata") or {}),
            }
            for match in (_field(response, "matches") or [])
        ]

    def fetch(self, namespace: str, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch records by id. Returns id -> metadata for the ids that exist."""
        self._ensure_initialized()
        response = self._index.fetch(ids=ids, namespace=namespace)
        vectors = _field(response, "vectors") or {}
        return {
            record_id: dict(_field(record, "metadata") or {})
            for record_id, record in vectors.items()
        }

    def upsert(self, namespace: str, records: List[Dict[str, Any]]) -> int:
        """Upsert {"id", "values", "metadata"} records. Returns the upserted count."""
        self._ensure_initialized()
        response = self._index.upsert(vectors=records, namespace=namespace)
        return int(_field(response, "upserted_count", len(records)) or 0)

    def update_metadata(self, namespace: str, record_id: str, metadata: Dict[str, Any]) -> None:
        """Overwrite the given metadata fields of one record"""
        self._ensure_initialized()
        self._index.update(id=record_id, set_metadata=metadata, namespace=namespace)

    def delete(self, namespace: str, ids: List[str]) -> None:
        """Delete records by id"""
        self._ensure_initialized()
        self._index.delete(ids=ids, namespace=namespace)

    def embed(self, model: str, texts: List[str], input_type: str) -> List[List[float]]:
        """
        Embed texts with the index provider's hosted inference.

        Args:
            model: Hosted embedding model name
            texts: Strings to embed
            input_type: "query" for questions, "passage" for stored fragments
        """
        self._ensure_initialized()
        embeddings = self._pc.inference.embed(
            model=model,
            inputs=texts,
            parameters={"input_type": input_type, "truncate": "END"},
        )
        return [list(_field(item, "values") or []) for item in embeddings]
