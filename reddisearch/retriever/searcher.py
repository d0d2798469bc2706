"""
Searcher

Multi-strategy forum search. Runs an ordered chain of strategies against the
forum client, merging unique-by-URL results until the requested count is
reached:

1. DirectQuery: query search in the target community
2. KeywordProbe: one search per significant term (when below limit/2)
3. RecentFilter: 3x limit newest posts, kept if they mention enough terms
4. AllScopeRetry: query search across all communities (when below 3)
5. BackupSources: hot listings of hinted and backup communities, paced
   (when below 3 and no community was requested)

Each strategy returns its documents plus a "should continue" signal, so the
chain policy can be tested strategy by strategy.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Union

from ..common.pacing import Pacer
from .documents import Document, RankingPolicy, dedupe_by_url, rank_documents
from .forum_client import ALL_COMMUNITIES, ForumClient, is_all_scope, normalize_community
from .query_processor import ParsedQuery, QueryProcessor

logger = logging.getLogger("reddisearch.retriever.searcher")

THIN_RESULT_COUNT = 3
BACKUP_LISTING_SIZE = 10


@dataclass
class SearchState:
    """Accumulated results for one search call"""
    parsed: ParsedQuery
    community: str
    limit: int
    requested_community: bool
    documents: List[Document] = field(default_factory=list)
    trace: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.documents)

    @property
    def satisfied(self) -> bool:
        return self.count >= self.limit

    def merge(self, documents: Sequence[Document]) -> int:
        """Add documents, keeping one per URL; returns how many were new"""
        before = self.count
        self.documents = dedupe_by_url([*self.documents, *documents])
        return self.count - before


@dataclass
class StrategyOutcome:
    """Partial result of one strategy"""
    documents: List[Document]
    should_continue: bool


class SearchStrategy(Protocol):
    name: str

    def applies(self, state: SearchState) -> bool: ...

    def run(self, state: SearchState) -> StrategyOutcome: ...


class DirectQuery:
    """Plain query search in the target community"""
    name = "direct"

    def __init__(self, client: ForumClient):
        self._client = client

    def applies(self, state: SearchState) -> bool:
        return True

    def run(self, state: SearchState) -> StrategyOutcome:
        docs = self._client.search_posts(state.parsed.cleaned, state.community, state.limit)
        state.merge(docs)
        return StrategyOutcome(docs, not state.satisfied)


class KeywordProbe:
    """One search per significant term, used when the direct search is thin"""
    name = "keyword_probe"

    def __init__(self, client: ForumClient):
        self._client = client

    def applies(self, state: SearchState) -> bool:
        return bool(state.parsed.terms) and state.count < state.limit / 2

    def run(self, state: SearchState) -> StrategyOutcome:
        found: List[Document] = []
        for term in state.parsed.terms:
            docs = self._client.search_posts(term, state.community, state.limit)
            found.extend(docs)
            state.merge(docs)
            if state.satisfied:
                break
        return StrategyOutcome(found, not state.satisfied)


class RecentFilter:
    """Newest posts in the community that mention enough query terms"""
    name = "recent_filter"

    def __init__(self, client: ForumClient, processor: QueryProcessor):
        self._client = client
        self._processor = processor

    def applies(self, state: SearchState) -> bool:
        return not state.satisfied

    def run(self, state: SearchState) -> StrategyOutcome:
        recent = self._client.list_recent(state.community, 3 * state.limit)
        matching = self._processor.filter_relevant(recent, state.parsed, require_terms=True)
        state.merge(matching)
        return StrategyOutcome(matching, not state.satisfied)


class AllScopeRetry:
    """Repeat the direct search across every community"""
    name = "all_scope"

    def __init__(self, client: ForumClient):
        self._client = client

    def applies(self, state: SearchState) -> bool:
        return state.count < THIN_RESULT_COUNT and not is_all_scope(state.community)

    def run(self, state: SearchState) -> StrategyOutcome:
        docs = self._client.search_posts(state.parsed.cleaned, ALL_COMMUNITIES, state.limit)
        state.merge(docs)
        return StrategyOutcome(docs, not state.satisfied)


class BackupSources:
    """
    Hot listings from the query's hinted community and the backup
    communities, fetched one at a time with a fixed pause in between.
    """
    name = "backup_sources"

    def __init__(
        self,
        client: ForumClient,
        processor: QueryProcessor,
        pacer: Pacer,
        delay: float = 0.5,
    ):
        self._client = client
        self._processor = processor
        self._pacer = pacer
        self._delay = delay

    def applies(self, state: SearchState) -> bool:
        return state.count < THIN_RESULT_COUNT and not state.requested_community

    def sources(self, state: SearchState) -> List[str]:
        names = []
        if state.parsed.community_hint:
            names.append(state.parsed.community_hint)
        names.extend(self._processor.lexicon.backup_communities)

        seen = {state.community.lower()}
        unique = []
        for name in names:
            if name.lower() not in seen:
                seen.add(name.lower())
                unique.append(name)
        return unique

    def run(self, state: SearchState) -> StrategyOutcome:
        found: List[Document] = []
        for i, community in enumerate(self.sources(state)):
            if i > 0:
                # InterruptedError propagates and aborts the whole query
                self._pacer.wait(self._delay)
            hot = self._client.list_hot(community, BACKUP_LISTING_SIZE)
            matching = self._processor.filter_relevant(hot, state.parsed, require_terms=True)
            found.extend(matching)
            state.merge(matching)
            if state.satisfied:
                break
        return StrategyOutcome(found, not state.satisfied)


class Searcher:
    """
    Searches the forum with a fallback chain of strategies.

    Features:
    - Keyword, recency, cross-community and backup-source fallbacks
    - Deduplication by URL (higher score wins)
    - Policy-selectable final ranking
    """

    def __init__(
        self,
        client: ForumClient,
        processor: Optional[QueryProcessor] = None,
        pacer: Optional[Pacer] = None,
        ranking: Union[RankingPolicy, str] = RankingPolicy.RAW_SCORE,
        backup_sources: bool = True,
        backup_delay: float = 0.5,
        strategies: Optional[Sequence[SearchStrategy]] = None,
    ):
        """
        Initialize searcher.

        Args:
            client: Forum client issuing the individual requests
            processor: Query processor for term extraction and filtering
            pacer: Shared pacer for delays between backup-source calls
            ranking: Default ordering of the final result list
            backup_sources: Whether the backup-source strategy is in the chain
            backup_delay: Pause between backup-source calls, in seconds
            strategies: Explicit strategy chain (overrides the default chain)
        """
        self._client = client
        self._processor = processor or QueryProcessor()
        self._pacer = pacer or Pacer()
        self._ranking = RankingPolicy(ranking)

        if strategies is not None:
            self._strategies = list(strategies)
        else:
            self._strategies = [
                DirectQuery(client),
                KeywordProbe(client),
                RecentFilter(client, self._processor),
                AllScopeRetry(client),
            ]
            if backup_sources:
                self._strategies.append(
                    BackupSources(client, self._processor, self._pacer, backup_delay)
                )

    @property
    def processor(self) -> QueryProcessor:
        return self._processor

    @property
    def strategies(self) -> List[SearchStrategy]:
        return list(self._strategies)

    def search(
        self,
        query: Union[str, ParsedQuery],
        community: Optional[str] = None,
        limit: int = 20,
        ranking: Optional[Union[RankingPolicy, str]] = None,
    ) -> List[Document]:
        """
        Search for posts relevant to query.

        Args:
            query: Raw query text or an already parsed query
            community: Target community ("r/" prefix allowed); blank means all
            limit: Maximum number of posts to return
            ranking: Override of the searcher's default ranking policy

        Returns:
            Up to limit unique posts, ordered by the ranking policy
        """
        parsed = query if isinstance(query, ParsedQuery) else self._processor.parse(query)
        state = SearchState(
            parsed=parsed,
            community=normalize_community(community),
            limit=max(1, limit),
            requested_community=not is_all_scope(community),
        )

        for strategy in self._strategies:
            if not strategy.applies(state):
                continue
            before = state.count
            outcome = strategy.run(state)
            state.trace.append(f"{strategy.name}:+{state.count - before}")
            if not outcome.should_continue:
                break

        policy = RankingPolicy(ranking) if ranking is not None else self._ranking
        results = rank_documents(state.documents, policy)[:state.limit]

        logger.info(
            "Search %r in r/%s -> %d posts [%s]",
            parsed.cleaned, state.community, len(results), ", ".join(state.trace),
        )
        return results
