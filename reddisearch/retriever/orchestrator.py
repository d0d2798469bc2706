"""
Retrieval Orchestrator

Answers a question from forum discussions in three sequential stages:

1. Broad discovery: search the requested community (or all) and keep posts
   that mention at least half of the query's significant terms
2. Community redirection: the most frequent community among those posts
   becomes the focus (frequency analysis only, no generative call)
3. Focused search: search the focus community, falling back to the
   discovery set when nothing comes back

The focused posts are then ranked by cosine similarity (term vectors served
through the vector cache), the top few become the generation context, and
the synthesizer produces the final answer.

Every failure mode ends in a SearchResult; nothing is raised to the caller.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..common.config import RetrieverConfig, normalize_retriever_config
from ..common.pacing import Pacer
from .cache import AnswerCache, VectorCache
from .documents import Document
from .forum_client import normalize_community
from .searcher import Searcher
from .synthesizer import Synthesizer
from .vector_scorer import TermVector, VectorScorer, Vocabulary, vectorize

logger = logging.getLogger("reddisearch.retriever.orchestrator")

NO_DISCUSSIONS_MESSAGE = (
    "I couldn't find relevant discussions. "
    "Try rephrasing your question or searching a different subreddit."
)
INTERRUPTED_MESSAGE = "The search was interrupted. Please try again."
ERROR_MESSAGE = "Sorry, I encountered an error while processing your query. Please try again."


@dataclass
class SearchResult:
    """Outcome of one query"""
    answer: str
    posts_found: int
    focus_community: Optional[str] = None
    used_fallback: bool = False
    cached: bool = False


def most_common_community(documents: Sequence[Document]) -> Optional[str]:
    """Most frequent community; ties go to the one seen first"""
    counts = Counter(doc.community for doc in documents if doc.community)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class RetrievalOrchestrator:
    """
    Runs the discovery -> redirection -> focused search pipeline.

    Usage:
        orchestrator = RetrievalOrchestrator(searcher, synthesizer, VectorScorer())
        result = orchestrator.answer("best laptop for programming students")
    """

    def __init__(
        self,
        searcher: Searcher,
        synthesizer: Synthesizer,
        scorer: Optional[VectorScorer] = None,
        config: Optional[RetrieverConfig] = None,
        vector_cache: Optional[VectorCache] = None,
        answer_cache: Optional[AnswerCache] = None,
        pacer: Optional[Pacer] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            searcher: Multi-strategy forum searcher
            synthesizer: Answer generation with extractive fallback
            scorer: Vector-space scorer (shares the searcher's lexicon by default)
            config: Stage sizes, context size and the pre-search delay
            vector_cache: Read-through cache for post term vectors
            answer_cache: Cache of final results
            pacer: Pacer for the pre-search delay (cancellable)
        """
        self._searcher = searcher
        self._synthesizer = synthesizer
        self._scorer = scorer or VectorScorer(searcher.processor.lexicon)
        self._config = normalize_retriever_config(config or RetrieverConfig())
        self._vector_cache = vector_cache
        self._answer_cache = answer_cache
        self._pacer = pacer or Pacer()

    @property
    def config(self) -> RetrieverConfig:
        return self._config

    def answer(self, query: str, community: Optional[str] = None) -> SearchResult:
        """
        Answer query from forum discussions.

        Args:
            query: The user's question
            community: Community to start discovery in (None or blank means all)

        Returns:
            SearchResult; degraded outcomes carry a message and posts_found == 0
        """
        if self._answer_cache is not None:
            cached = self._answer_cache.get_result(query, community)
            if cached is not None:
                logger.info("Answer for %r served from cache", query)
                return SearchResult(
                    answer=cached["answer"],
                    posts_found=cached["posts_found"],
                    cached=True,
                )

        try:
            self._pacer.wait(self._config.rate_limit_delay)
            result = self._run_pipeline(query, community)
        except InterruptedError:
            logger.warning("Search for %r was interrupted", query)
            return SearchResult(answer=INTERRUPTED_MESSAGE, posts_found=0)
        except Exception as e:
            logger.error("Error answering %r: %s", query, e, exc_info=True)
            return SearchResult(answer=ERROR_MESSAGE, posts_found=0)

        if self._answer_cache is not None and result.posts_found > 0:
            self._answer_cache.put_result(query, community, result.answer, result.posts_found)
        return result

    def _run_pipeline(self, query: str, community: Optional[str]) -> SearchResult:
        parsed = self._searcher.processor.parse(query)

        # Stage 1: broad discovery
        broad = self._searcher.search(parsed, community, self._config.broad_limit)
        discovered = self._searcher.processor.filter_relevant(broad, parsed)
        logger.info(
            "Stage 1: %d posts found, %d relevant in r/%s",
            len(broad), len(discovered), normalize_community(community),
        )
        if not discovered:
            return SearchResult(answer=NO_DISCUSSIONS_MESSAGE, posts_found=0)

        # Stage 2: community redirection
        focus = most_common_community(discovered) or normalize_community(community)
        logger.info("Stage 2: focusing on r/%s", focus)

        # Stage 3: focused search
        focused = self._searcher.search(parsed, focus, self._config.focused_limit)
        if not focused:
            logger.info("Stage 3: nothing in r/%s, keeping discovery set", focus)
            focused = discovered
        else:
            logger.info("Stage 3: %d posts in r/%s", len(focused), focus)

        context = self.select_context(parsed.cleaned, focused)
        synthesized = self._synthesizer.synthesize(parsed.cleaned, context, focused)

        return SearchResult(
            answer=synthesized.answer,
            posts_found=len(focused),
            focus_community=focus,
            used_fallback=synthesized.used_fallback,
        )

    def select_context(self, query: str, documents: Sequence[Document]) -> List[Document]:
        """Top-k posts by cosine similarity to query"""
        _, ranked = self._scorer.rank(query, documents, self._cached_vector)
        return [s.document for s in ranked[:self._config.top_k]]

    def _cached_vector(self, document: Document, vocabulary: Vocabulary) -> TermVector:
        """
        Read-through vector lookup.

        A cached vector is only used when all of its terms belong to the
        current vocabulary; otherwise it is recomputed and rewritten.
        """
        if self._vector_cache is None:
            return vectorize(document.combined_text, vocabulary)

        cached = self._vector_cache.get(document.community, document.title)
        if cached is not None and all(term in vocabulary for term in cached.weights):
            return cached

        vector = vectorize(document.combined_text, vocabulary)
        self._vector_cache.put(document.community, document.title, vector)
        return vector
