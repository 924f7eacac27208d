"""
Searcher

Scored nearest-neighbor search over one or many namespaces.

NamespaceSearcher runs one query against one namespace and applies the score
threshold. MultiNamespaceRetriever embeds the question once, fans that vector
out to the owner's namespace and every shared namespace concurrently, and
merges what comes back into one ranked, de-duplicated list.

A namespace that fails contributes nothing. Only the embedding call can fail
a retrieval.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..common.embedding_service import EmbeddingService
from ..common.errors import BranchFailure, UpstreamUnavailable
from ..common.vector_client import VectorStoreClient
from .filters import MATCH_ALL, QueryFilters, RetrievalFilter, conjoin

logger = logging.getLogger("panlo.retriever.searcher")

SHARED_FROM_KEY = "sharedFromOwnerId"


@dataclass(frozen=True)
class ScoredMatch:
    """A single match returned by the vector store"""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.metadata.get("text") or ""

    @property
    def shared_from(self) -> Optional[str]:
        return self.metadata.get(SHARED_FROM_KEY)


@dataclass(frozen=True)
class RetrievalResult:
    """
    Ranked retrieval output.

    Matches are in descending score order with unique ids. The namespace
    lists are diagnostics: which namespaces were queried and which of them
    failed and were treated as empty.
    """
    matches: Tuple[ScoredMatch, ...] = ()
    queried_namespaces: Tuple[str, ...] = ()
    failed_namespaces: Tuple[str, ...] = ()

    def __iter__(self) -> Iterator[ScoredMatch]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def ids(self) -> List[str]:
        return [m.id for m in self.matches]

    @property
    def is_empty(self) -> bool:
        return not self.matches


EMPTY_RESULT = RetrievalResult()


class NamespaceSearcher:
    """Runs scored queries against single namespaces."""

    def __init__(self, vector_store: VectorStoreClient):
        self._store = vector_store

    async def query_or_raise(
        self,
        namespace: str,
        embedding: List[float],
        top_k: int,
        filter: RetrievalFilter = MATCH_ALL,
        score_threshold: float = 0.0,
    ) -> List[ScoredMatch]:
        """Query one namespace, raising BranchFailure if the store call fails"""
        try:
            rows = await asyncio.to_thread(
                self._store.query,
                namespace,
                embedding,
                top_k,
                filter.to_store(),
            )
        except Exception as e:
            raise BranchFailure(f"namespace {namespace}", e) from e

        return [
            ScoredMatch(id=row["id"], score=row["score"], metadata=row.get("metadata") or {})
            for row in rows
            if row["score"] >= score_threshold
        ]

    async def query(
        self,
        namespace: str,
        embedding: List[float],
        top_k: int,
        filter: RetrievalFilter = MATCH_ALL,
        score_threshold: float = 0.0,
    ) -> List[ScoredMatch]:
        """Query one namespace. A failed query is logged and yields no matches."""
        try:
            return await self.query_or_raise(namespace, embedding, top_k, filter, score_threshold)
        except BranchFailure as e:
            logger.warning("%s; treating as empty", e)
            return []


def merge_matches(branch_results: Iterable[Sequence[ScoredMatch]], top_k: int) -> List[ScoredMatch]:
    """
    Merge per-namespace results into one ranked list.

    Concatenates in the given order, sorts by score descending (stable, so
    equal scores keep that order), keeps the first copy of each id and
    truncates to top_k.
    """
    combined = [match for matches in branch_results for match in matches]
    combined.sort(key=lambda m: m.score, reverse=True)

    merged = []
    seen_ids = set()
    for match in combined:
        if match.id in seen_ids:
            continue
        seen_ids.add(match.id)
        merged.append(match)
    return merged[:max(top_k, 0)]


@dataclass(frozen=True)
class _Branch:
    namespace: str
    filter: RetrievalFilter
    shared_from: Optional[str] = None


class MultiNamespaceRetriever:
    """
    Concurrent retrieval across the owner's namespace and shared namespaces.

    The own branch runs only when the structured filter selects at least one
    own folder or path. A filter that selects nothing of the caller's own
    content therefore searches shared namespaces only. Requests without any
    structured filter take retrieve_unfiltered() instead.

    Ties in score are ordered by branch completion, which varies from run to
    run when branches return concurrently.
    """

    def __init__(self, embedding_service: EmbeddingService, searcher: NamespaceSearcher):
        self._embedding = embedding_service
        self._searcher = searcher

    async def retrieve(
        self,
        owner_namespace: str,
        query_text: str,
        score_threshold: float,
        top_k: int,
        filters: QueryFilters,
        extra_filter: RetrievalFilter = MATCH_ALL,
    ) -> RetrievalResult:
        """
        Retrieve across namespaces selected by structured filters.

        Args:
            owner_namespace: The caller's own namespace
            query_text: Question to embed
            score_threshold: Minimum score a match must reach
            top_k: Maximum matches per namespace and in the merged result
            filters: Own and shared selectors
            extra_filter: Predicate ANDed into every branch (e.g. date ranges)
        """
        branches = []
        if filters.has_own_selection:
            branches.append(
                _Branch(owner_namespace, conjoin(filters.compile_own(), extra_filter))
            )
        else:
            logger.info("No own folders or paths selected; skipping namespace %s", owner_namespace)

        for selector in filters.shared:
            if not selector.is_valid:
                logger.warning("Skipping shared selector without ownerId")
                continue
            branches.append(
                _Branch(
                    selector.owner_id,
                    conjoin(selector.compile(), extra_filter),
                    shared_from=selector.owner_id,
                )
            )

        return await self._run(branches, query_text, score_threshold, top_k)

    async def retrieve_unfiltered(
        self,
        owner_namespace: str,
        query_text: str,
        score_threshold: float,
        top_k: int,
        extra_filter: RetrievalFilter = MATCH_ALL,
    ) -> RetrievalResult:
        """Single-namespace retrieval for requests that carry no structured filter"""
        return await self._run(
            [_Branch(owner_namespace, extra_filter)], query_text, score_threshold, top_k
        )

    async def _run(
        self,
        branches: List[_Branch],
        query_text: str,
        score_threshold: float,
        top_k: int,
    ) -> RetrievalResult:
        if not branches:
            return EMPTY_RESULT

        embedding = await self.embed_query(query_text)

        async def run_branch(branch: _Branch) -> Tuple[_Branch, List[ScoredMatch], bool]:
            try:
                matches = await self._searcher.query_or_raise(
                    branch.namespace, embedding, top_k, branch.filter, score_threshold
                )
            except BranchFailure as e:
                logger.warning("%s; treating as empty", e)
                return branch, [], False
            if branch.shared_from:
                matches = [_annotate_shared(m, branch.shared_from) for m in matches]
            return branch, matches, True

        arrived = []
        failed = []
        for next_done in asyncio.as_completed([run_branch(b) for b in branches]):
            branch, matches, ok = await next_done
            arrived.append(matches)
            if not ok:
                failed.append(branch.namespace)

        merged = merge_matches(arrived, top_k)
        logger.debug(
            "Merged %d matches from %d namespaces (%d failed)",
            len(merged), len(branches), len(failed),
        )
        return RetrievalResult(
            matches=tuple(merged),
            queried_namespaces=tuple(b.namespace for b in branches),
            failed_namespaces=tuple(failed),
        )

    async def embed_query(self, query_text: str) -> List[float]:
        """Embed the question once for every branch"""
        try:
            return await asyncio.to_thread(self._embedding.embed_single, query_text, "query")
        except Exception as e:
            logger.error("Query embedding failed: %s", e, exc_info=True)
            raise UpstreamUnavailable("embedding service", str(e)) from e


def _annotate_shared(match: ScoredMatch, owner_id: str) -> ScoredMatch:
    metadata = dict(match.metadata)
    metadata[SHARED_FROM_KEY] = owner_id
    return ScoredMatch(id=match.id, score=match.score, metadata=metadata)
