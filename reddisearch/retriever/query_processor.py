"""
Query Processor

Derives the significant terms of a free-text question. Those terms drive
the keyword-probe search, the recency filter and the relevance filter
applied to discovered posts.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..common.lexicon import Lexicon, load_lexicon
from .documents import Document
from .vector_scorer import tokenize

MIN_SIGNIFICANT_LENGTH = 4
MAX_TERMS = 15


@dataclass
class ParsedQuery:
    """Parsed representation of a user query"""
    original: str
    cleaned: str
    terms: List[str] = field(default_factory=list)
    community_hint: Optional[str] = None

    @property
    def required_matches(self) -> int:
        return required_matches(self.terms)


def required_matches(terms: List[str]) -> int:
    """At least half of the terms, and at least one."""
    return max(1, math.ceil(len(terms) / 2))


class QueryProcessor:
    """
    Processes user queries for forum search.

    Responsibilities:
    1. Clean and normalize query text
    2. Extract significant terms (longer than three characters, not stop words)
    3. Look up a community hinted by the query's wording
    4. Judge whether a post mentions enough of the query's terms
    """

    def __init__(self, lexicon: Optional[Lexicon] = None):
        self._lexicon = lexicon or load_lexicon()

    @property
    def lexicon(self) -> Lexicon:
        return self._lexicon

    def parse(self, query: str) -> ParsedQuery:
        cleaned = self._clean_query(query)
        return ParsedQuery(
            original=query,
            cleaned=cleaned,
            terms=self.extract_terms(cleaned),
            community_hint=self._lexicon.suggest_community(cleaned),
        )

    def extract_terms(self, query: str) -> List[str]:
        """Significant terms in first-appearance order, deduplicated"""
        terms = [
            w for w in tokenize(query)
            if len(w) >= MIN_SIGNIFICANT_LENGTH and not self._lexicon.is_stop_word(w)
        ]
        return list(dict.fromkeys(terms))[:MAX_TERMS]

    def count_matches(self, document: Document, terms: Iterable[str]) -> int:
        text = document.combined_text.lower()
        return sum(1 for term in terms if term in text)

    def is_relevant(self, document: Document, parsed: ParsedQuery, require_terms: bool = False) -> bool:
        """
        True when the post mentions at least half of the query's terms.

        With no significant terms every post passes, unless require_terms
        is set, in which case none does.
        """
        if not parsed.terms:
            return not require_terms
        return self.count_matches(document, parsed.terms) >= parsed.required_matches

    def filter_relevant(
        self,
        documents: Iterable[Document],
        parsed: ParsedQuery,
        require_terms: bool = False,
    ) -> List[Document]:
        return [d for d in documents if self.is_relevant(d, parsed, require_terms)]

    def _clean_query(self, query: str) -> str:
        """Clean and normalize query text"""
        cleaned = (query or "").strip()
        cleaned = re.sub(r"\s+", " ", cleaned)
        # Remove trailing punctuation (but keep question marks)
        cleaned = re.sub(r"[.!,;:]+$", "", cleaned)
        return cleaned
