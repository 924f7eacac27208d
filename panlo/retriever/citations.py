"""
Citation Extractor

Separates the prose answer from the trailing "**Sources**: id-1, id-2" line a
completion is asked to emit, and validates each cited id.

Completion output is untrusted. Only tokens made of letters, digits,
hyphens and underscores (shorter than 100 characters) are accepted as source
ids; anything else on the line is dropped and logged.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from .searcher import ScoredMatch

logger = logging.getLogger("panlo.retriever.citations")

# The marker must open its line, so prose like "resources:" never matches
SOURCES_LINE_RE = re.compile(
    r"^[ \t]*[*_]*Sources[*_]*:[ \t]*([^\n]*)", re.IGNORECASE | re.MULTILINE
)
SOURCE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_SOURCE_ID_LENGTH = 100
_STRIP_CHARS = str.maketrans("", "", "'\"[]`")


@dataclass(frozen=True)
class SynthesizedAnswer:
    """Answer text plus the validated ids of the sources it cites"""
    answer_text: str
    cited_sources: List[str] = field(default_factory=list)
    context: Tuple[ScoredMatch, ...] = ()
    expired: bool = False


def is_valid_source_id(token: str) -> bool:
    return bool(SOURCE_ID_RE.match(token)) and len(token) < MAX_SOURCE_ID_LENGTH


class CitationExtractor:
    """Parses and validates the citation line of a completion."""

    def extract(self, raw_text: str) -> SynthesizedAnswer:
        raw_text = raw_text or ""
        matches = list(SOURCES_LINE_RE.finditer(raw_text))
        if not matches:
            return SynthesizedAnswer(answer_text=raw_text.strip())

        # The citation line is the last one; earlier mentions are prose
        match = matches[-1]
        cited = []
        for token in match.group(1).split(","):
            cleaned = token.translate(_STRIP_CHARS).strip()
            if not cleaned:
                continue
            if not is_valid_source_id(cleaned):
                logger.warning("Dropping invalid source id from completion: %r", cleaned[:120])
                continue
            cited.append(cleaned)

        answer = (raw_text[:match.start()] + raw_text[match.end():]).strip()
        return SynthesizedAnswer(answer_text=answer, cited_sources=cited)
