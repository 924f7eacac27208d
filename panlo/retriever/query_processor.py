"""
Query Processor

Optional date-range interpretation of a question.

"What did I change last week?" carries a constraint on the fragments'
timestamps. QueryInterpreter asks the completion service to pull createdAt /
updatedAt ranges out of the question as JSON and turns them into Range
predicates over the epoch-millisecond metadata fields.

Interpretation never fails a request: anything unusable means "no date filter".
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from .filters import MATCH_ALL, Range, RetrievalFilter, conjoin

logger = logging.getLogger("panlo.retriever.query_processor")

DATE_FIELDS = ("createdAt", "updatedAt")
_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")

DATE_RANGE_PROMPT = """Extract date ranges for when files were created and last updated from the query below.
Today's date is {today}.

Respond with ONLY a JSON object, no other text:
{{
    "createdAt": {{"start": "yyyy-MM-dd HH:mm:ss", "end": "yyyy-MM-dd HH:mm:ss"}},
    "updatedAt": {{"start": "yyyy-MM-dd HH:mm:ss", "end": "yyyy-MM-dd HH:mm:ss"}}
}}
Leave out any range, start or end the query does not imply. If the query implies no dates, respond with {{}}.

Query: "{query}"

JSON:"""


def parse_timestamp(value: Any) -> Optional[int]:
    """Parse a 'yyyy-MM-dd[ HH:mm:ss]' string (UTC) into epoch milliseconds"""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return int(parsed.timestamp() * 1000)
    return None


def filter_from_ranges(data: Dict[str, Any]) -> RetrievalFilter:
    """Turn {"createdAt": {"start", "end"}, ...} into Range predicates"""
    ranges = []
    for field_name in DATE_FIELDS:
        bounds = data.get(field_name)
        if not isinstance(bounds, dict):
            continue
        gte = parse_timestamp(bounds.get("start"))
        lte = parse_timestamp(bounds.get("end"))
        if gte is None and lte is None:
            continue
        ranges.append(Range(field_name, gte=gte, lte=lte))
    return conjoin(*ranges)


class QueryInterpreter:
    """Extracts date-range filters from a question with the completion service."""

    def __init__(
        self,
        llm_client: LLMClient,
        today: Callable[[], date] = lambda: datetime.now(timezone.utc).date(),
    ):
        self._llm = llm_client
        self._today = today

    async def interpret(self, query: str) -> RetrievalFilter:
        if not self._llm.is_available:
            return MATCH_ALL

        prompt = DATE_RANGE_PROMPT.format(today=self._today().isoformat(), query=query)
        try:
            raw = await asyncio.to_thread(
                self._llm.generate, prompt, max_tokens=150, temperature=0.0
            )
        except Exception as e:
            logger.warning("Date interpretation failed, searching without dates: %s", e)
            return MATCH_ALL

        result = filter_from_ranges(parse_llm_json(raw))
        if result is not MATCH_ALL:
            logger.info("Date filter from query: %s", result.to_store())
        return result
