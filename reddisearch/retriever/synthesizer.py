"""
Synthesizer

Answer generation from ranked forum posts.

The top posts are rendered into a bounded prompt context and sent to the
generative service. When the service is unavailable, fails, or answers with
a known failure message, an extractive summary of the highest-scored posts
is composed instead, so the caller always gets an answer.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..common.llm_client import LLMClient
from ..common.llm_utils import is_failed_generation
from ..common.text import strip_trailers, truncate_excerpt
from .cache import AnswerCache
from .documents import Document, RankingPolicy, rank_documents

logger = logging.getLogger("reddisearch.retriever.synthesizer")

FALLBACK_HEADER = "Based on Reddit discussions about this topic:"
NO_CONSENSUS_MESSAGE = (
    "I found some related Reddit discussions, but there was no clear consensus "
    "to summarize. Try rephrasing your question or naming a specific subreddit."
)

FALLBACK_POSTS = 3
FALLBACK_EXCERPT_CHARS = 300
MIN_EXCERPT_CHARS = 20


@dataclass
class SynthesizedAnswer:
    """Answer text plus how it was produced"""
    answer: str
    used_fallback: bool
    sources: List[str] = field(default_factory=list)  # post URLs


# Synthesis prompt template
SYNTHESIS_PROMPT = """You are a helpful assistant that answers questions based on Reddit discussions.
Use the provided Reddit posts to answer the user's question. Be conversational and mention
when information comes from highly upvoted posts or active discussions.
If the context doesn't contain enough information, say so politely.

Question: {query}

Relevant Reddit posts:
{context}

Please provide a helpful answer based on this Reddit content:"""


class Synthesizer:
    """
    Synthesizes answers from ranked posts using an LLM.

    Falls back to an extractive bulleted summary if generation fails.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        answer_cache: Optional[AnswerCache] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        excerpt_chars: int = 400,
    ):
        """
        Initialize synthesizer.

        Args:
            llm_client: Generative client (None means extractive answers only)
            answer_cache: Memoizes generated text by (query, context)
            temperature: Sampling temperature for generation
            max_tokens: Output token cap for generation
            excerpt_chars: Body excerpt length per post in the prompt
        """
        self._llm = llm_client
        self._cache = answer_cache
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._excerpt_chars = excerpt_chars

    @property
    def has_llm(self) -> bool:
        """Check if LLM is available"""
        return self._llm is not None and self._llm.is_available

    def build_context(self, documents: Sequence[Document]) -> str:
        return "\n\n".join(doc.context_block(self._excerpt_chars) for doc in documents)

    def build_prompt(self, query: str, context: str) -> str:
        return SYNTHESIS_PROMPT.format(query=query, context=context)

    def synthesize(
        self,
        query: str,
        context_documents: Sequence[Document],
        considered: Optional[Sequence[Document]] = None,
    ) -> SynthesizedAnswer:
        """
        Produce an answer for query.

        Args:
            query: The user's question
            context_documents: Top-ranked posts used as generation context
            considered: Every post considered for the query, source for the
                extractive fallback (defaults to context_documents)

        Returns:
            SynthesizedAnswer, generated or extractive
        """
        pool = list(considered) if considered is not None else list(context_documents)
        context = self.build_context(context_documents)

        text = self._generate(query, context) if context_documents else None
        if not is_failed_generation(text):
            return SynthesizedAnswer(
                answer=text,
                used_fallback=False,
                sources=[d.url for d in context_documents],
            )

        logger.info("Generation unavailable for %r, using extractive fallback", query)
        return self.synthesize_fallback(pool)

    def _generate(self, query: str, context: str) -> Optional[str]:
        if self._cache is not None:
            cached = self._cache.get_generation(query, context)
            if cached and not is_failed_generation(cached):
                logger.debug("Generated answer served from cache")
                return cached

        if not self.has_llm:
            return None

        text = self._llm.generate(
            self.build_prompt(query, context),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        if self._cache is not None and not is_failed_generation(text):
            self._cache.put_generation(query, context, text)
        return text

    def synthesize_fallback(self, documents: Sequence[Document]) -> SynthesizedAnswer:
        """Bulleted excerpts of the highest-scored posts"""
        bullets = []
        sources = []
        for doc in rank_documents(documents, RankingPolicy.RAW_SCORE):
            excerpt = self.extract_excerpt(doc)
            if not excerpt:
                continue
            bullets.append(
                f"• {doc.title} (r/{doc.community}, {doc.score} upvotes, "
                f"{doc.comments} comments): {excerpt}"
            )
            sources.append(doc.url)
            if len(bullets) >= FALLBACK_POSTS:
                break

        if not bullets:
            return SynthesizedAnswer(answer=NO_CONSENSUS_MESSAGE, used_fallback=True)

        answer = FALLBACK_HEADER + "\n\n" + "\n\n".join(bullets)
        return SynthesizedAnswer(answer=answer, used_fallback=True, sources=sources)

    @staticmethod
    def extract_excerpt(document: Document, limit: int = FALLBACK_EXCERPT_CHARS) -> str:
        """Cleaned body excerpt, or "" when too little text remains"""
        cleaned = strip_trailers(document.body)
        if len(cleaned) < MIN_EXCERPT_CHARS:
            return ""
        return truncate_excerpt(cleaned, limit)
