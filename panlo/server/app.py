"""
Panlo Server

FastAPI surface over the retrieval engine.

Endpoints:
- POST /chat: Answer a question with citations
- POST /documents/search: Ids of documents matching a question
- GET /transcripts/{document_id}: Reassembled document text
- POST /fragments: Store one document fragment
- PATCH /fragments/{fragment_id}: Update fragment metadata
- POST /fragments/delete: Delete fragments
- POST /documents: Chunk and store a whole document
- POST /documents/summary: Summarize document text
- GET /health: Health check

Token verification happens in front of this service; the namespace is taken
from the request.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..common.accounts import InMemoryAccountStore
from ..common.config import PanloConfig, load_config
from ..common.context import build_context
from ..common.errors import NotFound, PanloError, UpstreamUnavailable, ValidationError
from ..retriever.engine import RetrievalEngine

logger = logging.getLogger("panlo.server.app")

# Global state
config: Optional[PanloConfig] = None
engine: Optional[RetrievalEngine] = None

STATUS_BY_ERROR = {
    ValidationError: 400,
    NotFound: 404,
    UpstreamUnavailable: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the client context and engine on startup"""
    global config, engine

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("PANLO_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting up...")

    config = load_config()
    if engine is None:
        context = build_context(config)
        engine = RetrievalEngine(
            context,
            config=config.retriever,
            account_store=InMemoryAccountStore(trial_days=config.accounts.trial_days),
            expired_notice=config.accounts.expired_notice,
        )
    logger.info("Engine ready (env: %s, top_k: %d)", config.env, config.retriever.top_k)

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Panlo",
    description="Multi-namespace document retrieval and cited answers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=load_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PanloError)
async def panlo_error_handler(request: Request, exc: PanloError):
    status = next(
        (code for cls, code in STATUS_BY_ERROR.items() if isinstance(exc, cls)), 500
    )
    body: Dict[str, Any] = {"error": exc.kind, "detail": str(exc)}
    if isinstance(exc, ValidationError) and exc.fields:
        body["fields"] = exc.fields
    return JSONResponse(status_code=status, content=body)


def _engine() -> RetrievalEngine:
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


# =============================================================================
# Request Models
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(_CamelModel):
    """Question to answer"""
    namespace: str
    query: str = Field(alias="userQuery")
    memory: Optional[Any] = None
    answer_mode: str = Field(default="general", alias="answerMode")
    filters: Optional[Dict[str, Any]] = None


class SearchRequest(_CamelModel):
    """Question to match documents against"""
    namespace: str
    query: str = Field(alias="userQuery")
    filters: Optional[Dict[str, Any]] = None


class FragmentRequest(_CamelModel):
    """One fragment to store"""
    namespace: str
    id: str
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FragmentUpdateRequest(_CamelModel):
    namespace: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FragmentDeleteRequest(_CamelModel):
    namespace: str
    ids: List[str]


class DocumentRequest(_CamelModel):
    """A whole document to chunk and store"""
    namespace: str
    document_id: str = Field(alias="documentId")
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SummaryRequest(_CamelModel):
    text: str
    filename: str = "document"
    language: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "panlo",
        "initialized": engine is not None,
        "env": config.env if config else None,
    }


@app.post("/chat")
async def chat(request: ChatRequest):
    """Answer a question from the caller's documents"""
    answer = await _engine().retrieve_and_answer(
        request.namespace,
        request.query,
        memory=request.memory,
        answer_mode=request.answer_mode,
        filters=request.filters,
    )
    return {
        "aiResponse": answer.answer_text,
        "citedSources": answer.cited_sources,
        "expired": answer.expired,
    }


@app.post("/documents/search")
async def search_documents(request: SearchRequest):
    """Ids of documents matching a question"""
    document_ids = await _engine().find_matching_documents(
        request.namespace, request.query, filters=request.filters
    )
    return {"documentIds": document_ids}


@app.get("/transcripts/{document_id}")
async def get_transcript(
    document_id: str,
    namespace: str,
    chunk_count: int = Query(alias="chunkCount"),
):
    """Reassembled document text"""
    transcript = await _engine().get_transcript(namespace, document_id, chunk_count)
    return {
        "documentId": transcript.document_id,
        "transcript": transcript.text,
        "chunkCount": transcript.chunk_count,
        "contributingIds": transcript.contributing_ids,
    }


@app.post("/fragments")
async def upsert_fragment(request: FragmentRequest):
    """Store one fragment"""
    stored = await _engine().upsert_document_fragment(
        request.namespace, request.id, request.text, request.metadata
    )
    return {"ok": True, "id": request.id, "metadata": stored}


@app.patch("/fragments/{fragment_id}")
async def update_fragment(fragment_id: str, request: FragmentUpdateRequest):
    """Update fragment metadata"""
    updated = await _engine().update_fragment_metadata(
        request.namespace, fragment_id, request.metadata
    )
    return {"ok": True, "id": fragment_id, "metadata": updated}


@app.post("/fragments/delete")
async def delete_fragments(request: FragmentDeleteRequest):
    """Delete fragments by id"""
    deleted = await _engine().delete_document_fragments(request.namespace, request.ids)
    return {"ok": True, "deleted": deleted}


@app.post("/documents")
async def upsert_document(request: DocumentRequest):
    """Chunk and store a whole document"""
    chunk_count = await _engine().upsert_document(
        request.namespace, request.document_id, request.text, request.metadata
    )
    return {"ok": True, "documentId": request.document_id, "chunkCount": chunk_count}


@app.post("/documents/summary")
async def summarize_document(request: SummaryRequest):
    """Summarize document text"""
    summary = await _engine().summarize_document(
        request.text, request.filename, request.language
    )
    return {"summary": summary}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Panlo server"""
    import uvicorn

    load_dotenv()
    server_config = load_config().server

    logger.info("Starting server on %s:%d", server_config.host, server_config.port)
    uvicorn.run(
        "panlo.server.app:app",
        host=server_config.host,
        port=server_config.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
