"""
Conversation memory normalization.

Clients send memory in one of two shapes:
- legacy: a list of {user, ai, citedSources} interactions
- structured: {conversationHistory: [...], conversationContext: {...}, recentTopics: [...]}

normalize_memory() resolves either shape once, at the entry point, into a
ConversationMemory. Anything unrecognized becomes empty memory.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List

logger = logging.getLogger("panlo.retriever.memory")


@dataclass(frozen=True)
class Interaction:
    """One question/answer exchange"""
    user: str
    ai: str
    cited_sources: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConversationMemory:
    """Canonical ordered conversation memory"""
    interactions: List[Interaction] = field(default_factory=list)
    recent_topics: List[str] = field(default_factory=list)
    has_follow_ups: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.interactions and not self.recent_topics and not self.has_follow_ups

    def window(self, size: int) -> "ConversationMemory":
        """Keep only the last `size` interactions; 0 keeps everything"""
        if size <= 0 or len(self.interactions) <= size:
            return self
        return ConversationMemory(
            interactions=self.interactions[-size:],
            recent_topics=self.recent_topics,
            has_follow_ups=self.has_follow_ups,
        )


EMPTY_MEMORY = ConversationMemory()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _parse_interaction(entry: Any) -> Interaction:
    if not isinstance(entry, dict):
        return Interaction(user="", ai="")
    sources = entry.get("citedSources") or []
    if isinstance(sources, str):
        sources = [s.strip() for s in sources.split(",") if s.strip()]
    elif not isinstance(sources, list):
        sources = []
    return Interaction(
        user=_as_text(entry.get("user")),
        ai=_as_text(entry.get("ai")),
        cited_sources=[_as_text(s) for s in sources],
    )


def _parse_interactions(entries: Any) -> List[Interaction]:
    if not isinstance(entries, list):
        return []
    return [
        interaction
        for interaction in (_parse_interaction(e) for e in entries)
        if interaction.user or interaction.ai
    ]


def normalize_memory(raw: Any) -> ConversationMemory:
    """Resolve legacy or structured memory into a ConversationMemory"""
    if raw is None:
        return EMPTY_MEMORY

    if isinstance(raw, ConversationMemory):
        return raw

    if isinstance(raw, list):
        return ConversationMemory(interactions=_parse_interactions(raw))

    if isinstance(raw, dict):
        context = raw.get("conversationContext")
        topics = raw.get("recentTopics")
        return ConversationMemory(
            interactions=_parse_interactions(raw.get("conversationHistory")),
            recent_topics=[_as_text(t) for t in topics if t] if isinstance(topics, list) else [],
            has_follow_ups=bool(context.get("hasFollowUps")) if isinstance(context, dict) else False,
        )

    logger.warning("Unrecognized conversation memory shape: %s", type(raw).__name__)
    return EMPTY_MEMORY
