"""Tests for the FastAPI surface."""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from fastapi.testclient import TestClient

from panlo.common.errors import NotFound, UpstreamUnavailable, ValidationError
from panlo.retriever.citations import SynthesizedAnswer
from panlo.retriever.transcripts import Transcript


@pytest.fixture
def engine():
    mock = Mock()
    mock.retrieve_and_answer = AsyncMock(
        return_value=SynthesizedAnswer(answer_text="Answer.", cited_sources=["doc-0"])
    )
    mock.find_matching_documents = AsyncMock(return_value=["doc", "memo"])
    mock.get_transcript = AsyncMock(
        return_value=Transcript("doc", "Hello world", 2, ["doc-0", "doc-1"])
    )
    mock.upsert_document_fragment = AsyncMock(return_value={"folderName": "work", "text": "t"})
    mock.update_fragment_metadata = AsyncMock(return_value={"folderName": "archive"})
    mock.delete_document_fragments = AsyncMock(return_value=2)
    mock.upsert_document = AsyncMock(return_value=3)
    mock.summarize_document = AsyncMock(return_value="Summary.")
    return mock


@pytest.fixture
def client(engine):
    from panlo.server import app as server

    with patch.object(server, "engine", engine):
        yield TestClient(server.app)


class TestEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["initialized"] is True

    def test_chat(self, client, engine):
        response = client.post("/chat", json={
            "namespace": "owner",
            "userQuery": "What happened?",
            "answerMode": "precise",
            "memory": [{"user": "a", "ai": "b", "citedSources": []}],
            "filters": {"watchFolderNames": ["work"]},
        })

        assert response.status_code == 200
        assert response.json() == {"aiResponse": "Answer.", "citedSources": ["doc-0"], "expired": False}
        engine.retrieve_and_answer.assert_awaited_once_with(
            "owner",
            "What happened?",
            memory=[{"user": "a", "ai": "b", "citedSources": []}],
            answer_mode="precise",
            filters={"watchFolderNames": ["work"]},
        )

    def test_search_documents(self, client):
        response = client.post("/documents/search", json={"namespace": "owner", "userQuery": "q"})

        assert response.json() == {"documentIds": ["doc", "memo"]}

    def test_transcript(self, client, engine):
        response = client.get("/transcripts/doc", params={"namespace": "owner", "chunkCount": 2})

        assert response.status_code == 200
        assert response.json() == {
            "documentId": "doc",
            "transcript": "Hello world",
            "chunkCount": 2,
            "contributingIds": ["doc-0", "doc-1"],
        }
        engine.get_transcript.assert_awaited_once_with("owner", "doc", 2)

    def test_upsert_fragment(self, client):
        response = client.post("/fragments", json={
            "namespace": "owner", "id": "doc-0", "text": "t", "metadata": {"folderName": "Work"},
        })

        assert response.status_code == 200
        assert response.json()["metadata"]["folderName"] == "work"

    def test_update_fragment(self, client, engine):
        response = client.patch("/fragments/doc-0", json={
            "namespace": "owner", "metadata": {"folderName": "Archive"},
        })

        assert response.json()["metadata"] == {"folderName": "archive"}
        engine.update_fragment_metadata.assert_awaited_once_with(
            "owner", "doc-0", {"folderName": "Archive"}
        )

    def test_delete_fragments(self, client):
        response = client.post("/fragments/delete", json={"namespace": "owner", "ids": ["a-0", "a-1"]})

        assert response.json() == {"ok": True, "deleted": 2}

    def test_upsert_document(self, client):
        response = client.post("/documents", json={
            "namespace": "owner", "documentId": "notes", "text": "long text", "metadata": {},
        })

        assert response.json()["chunkCount"] == 3

    def test_summary(self, client):
        response = client.post("/documents/summary", json={"text": "body", "language": "en"})

        assert response.json() == {"summary": "Summary."}


class TestErrorMapping:

    @pytest.mark.parametrize("error, status, kind", [
        (ValidationError("answerMode is bad", ["answerMode"]), 400, "validation_error"),
        (NotFound("nothing"), 404, "not_found"),
        (UpstreamUnavailable("completion service"), 503, "upstream_unavailable"),
    ])
    def test_errors_map_to_status(self, client, engine, error, status, kind):
        engine.retrieve_and_answer.side_effect = error

        response = client.post("/chat", json={"namespace": "owner", "userQuery": "q"})

        assert response.status_code == status
        assert response.json()["error"] == kind

    def test_validation_error_lists_fields(self, client, engine):
        engine.retrieve_and_answer.side_effect = ValidationError("bad", ["answerMode"])

        response = client.post("/chat", json={"namespace": "owner", "userQuery": "q"})

        assert response.json()["fields"] == ["answerMode"]

    def test_uninitialized_engine(self):
        from panlo.server import app as server

        with patch.object(server, "engine", None):
            response = TestClient(server.app).post("/chat", json={"namespace": "o", "userQuery": "q"})

        assert response.status_code == 503
