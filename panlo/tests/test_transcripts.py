"""Tests for ChunkReassembler."""

import asyncio
import logging

import pytest
from unittest.mock import Mock

from panlo.common.errors import NotFound, ValidationError
from panlo.retriever.transcripts import ChunkReassembler, chunk_id


def _store(records, failing=(), delays=None):
    """Mock vector store whose fetch() returns {id: metadata} for known ids"""
    store = Mock()

    def fetch(namespace, ids):
        record_id = ids[0]
        if record_id in failing:
            raise TimeoutError(record_id)
        if delays and record_id in delays:
            import time
            time.sleep(delays[record_id])
        return {i: records[i] for i in ids if i in records}

    store.fetch.side_effect = fetch
    return store


class TestChunkReassembler:

    def test_chunk_id(self):
        assert chunk_id("doc", 3) == "doc-3"

    @pytest.mark.asyncio
    async def test_joins_in_ordinal_order(self):
        store = _store(
            {"doc-0": {"text": "one"}, "doc-1": {"text": "two"}, "doc-2": {"text": "three"}},
            delays={"doc-0": 0.05},
        )

        transcript = await ChunkReassembler(store).reassemble("ns", "doc", 3)

        assert transcript.text == "one two three"
        assert transcript.chunk_count == 3
        assert transcript.contributing_ids == ["doc-0", "doc-1", "doc-2"]

    @pytest.mark.asyncio
    async def test_missing_chunk_is_skipped(self):
        store = _store({"doc-0": {"text": "first"}, "doc-2": {"text": "third"}})

        transcript = await ChunkReassembler(store).reassemble("ns", "doc", 3)

        assert transcript.text == "first third"
        assert transcript.contributing_ids == ["doc-0", "doc-2"]
        assert transcript.chunk_count == 2

    @pytest.mark.asyncio
    async def test_chunk_without_text_is_skipped(self):
        store = _store({"doc-0": {"filename": "a"}, "doc-1": {"text": " body "}})

        transcript = await ChunkReassembler(store).reassemble("ns", "doc", 2)

        assert transcript.text == "body"
        assert transcript.contributing_ids == ["doc-1"]

    @pytest.mark.asyncio
    async def test_all_missing_is_not_found(self):
        store = _store({})

        with pytest.raises(NotFound):
            await ChunkReassembler(store).reassemble("ns", "doc", 3)

    @pytest.mark.asyncio
    async def test_zero_chunks_is_not_found(self):
        with pytest.raises(NotFound):
            await ChunkReassembler(_store({})).reassemble("ns", "doc", 0)

    @pytest.mark.asyncio
    async def test_whitespace_only_chunk_is_skipped(self):
        store = _store({"doc-0": {"text": "first"}, "doc-1": {"text": "  \n\t "}, "doc-2": {"text": "third"}})

        transcript = await ChunkReassembler(store).reassemble("ns", "doc", 3)

        assert transcript.text == "first third"
        assert transcript.contributing_ids == ["doc-0", "doc-2"]
        assert transcript.chunk_count == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_treated_as_absent(self, caplog):
        store = _store({"doc-0": {"text": "a"}, "doc-1": {"text": "b"}}, failing={"doc-1"})

        with caplog.at_level(logging.WARNING, logger="panlo.retriever.transcripts"):
            transcript = await ChunkReassembler(store).reassemble("ns", "doc", 2)

        assert transcript.text == "a"
        assert "chunk doc-1 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_fetches_every_ordinal_in_namespace(self):
        store = _store({"doc-0": {"text": "a"}})

        await ChunkReassembler(store).reassemble("ns", "doc", 4)

        fetched = sorted(call.args[1][0] for call in store.fetch.call_args_list)
        assert fetched == ["doc-0", "doc-1", "doc-2", "doc-3"]
        assert {call.args[0] for call in store.fetch.call_args_list} == {"ns"}

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self):
        records = {f"doc-{i}": {"text": str(i)} for i in range(5)}
        store = _store(records, delays={k: 0.2 for k in records})

        loop = asyncio.get_running_loop()
        started = loop.time()
        await ChunkReassembler(store).reassemble("ns", "doc", 5)

        assert loop.time() - started < 0.9

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document_id, count", [("", 2), ("doc", -1)])
    async def test_invalid_arguments(self, document_id, count):
        with pytest.raises(ValidationError):
            await ChunkReassembler(_store({})).reassemble("ns", document_id, count)
