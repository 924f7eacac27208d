"""Tests for date-range query interpretation."""

from datetime import date

import pytest
from unittest.mock import Mock

from panlo.retriever.filters import MATCH_ALL, And, Range
from panlo.retriever.query_processor import QueryInterpreter, filter_from_ranges, parse_timestamp

JAN_1_2024_MS = 1704067200000
JAN_31_2024_END_MS = 1706745599000


class TestParseTimestamp:
    @pytest.mark.parametrize("value, expected", [
        ("2024-01-01 00:00:00", JAN_1_2024_MS),
        ("2024-01-01", JAN_1_2024_MS),
        ("2024-01-01T00:00:00", JAN_1_2024_MS),
        ("2024-01-31 23:59:59", JAN_31_2024_END_MS),
    ])
    def test_formats(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yyyy-MM-dd HH:mm:ss", "last week", 17])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestFilterFromRanges:
    def test_created_range(self):
        result = filter_from_ranges({
            "createdAt": {"start": "2024-01-01 00:00:00", "end": "2024-01-31 23:59:59"}
        })

        assert result == Range("createdAt", gte=JAN_1_2024_MS, lte=JAN_31_2024_END_MS)

    def test_both_fields_are_anded(self):
        result = filter_from_ranges({
            "createdAt": {"start": "2024-01-01"},
            "updatedAt": {"end": "2024-01-31 23:59:59"},
        })

        assert result == And((
            Range("createdAt", gte=JAN_1_2024_MS),
            Range("updatedAt", lte=JAN_31_2024_END_MS),
        ))

    def test_nothing_usable_is_match_all(self):
        assert filter_from_ranges({}) is MATCH_ALL
        assert filter_from_ranges({"createdAt": {"start": ""}, "updatedAt": None}) is MATCH_ALL


class TestQueryInterpreter:

    @pytest.fixture
    def llm(self):
        client = Mock()
        client.is_available = True
        return client

    @pytest.mark.asyncio
    async def test_interprets_dates(self, llm):
        llm.generate.return_value = '```json\n{"updatedAt": {"start": "2024-01-01 00:00:00"}}\n```'
        interpreter = QueryInterpreter(llm, today=lambda: date(2024, 1, 8))

        result = await interpreter.interpret("what did I edit this week?")

        assert result == Range("updatedAt", gte=JAN_1_2024_MS)
        prompt = llm.generate.call_args.args[0]
        assert "Today's date is 2024-01-08" in prompt
        assert "what did I edit this week?" in prompt

    @pytest.mark.asyncio
    async def test_llm_failure_means_no_filter(self, llm):
        llm.generate.side_effect = RuntimeError("rate limited")

        assert await QueryInterpreter(llm).interpret("q") is MATCH_ALL

    @pytest.mark.asyncio
    async def test_unavailable_llm_skips_call(self, llm):
        llm.is_available = False

        assert await QueryInterpreter(llm).interpret("q") is MATCH_ALL
        llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_json_reply_means_no_filter(self, llm):
        llm.generate.return_value = "null"

        assert await QueryInterpreter(llm).interpret("q") is MATCH_ALL
