"""
Vector Scorer

Lightweight vector-space relevance ranking for forum posts.

Pipeline (per request):
1. Build a vocabulary from the query and every candidate post
2. Convert query and posts to normalized term-frequency vectors
3. Rank posts with non-zero magnitude by cosine similarity to the query

The vocabulary is a value passed through the pipeline, never shared between
requests, so concurrent queries cannot interfere with each other's scoring.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..common.lexicon import Lexicon, load_lexicon
from .documents import Document

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")

MIN_TERM_LENGTH = 3


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase, drop everything outside [a-z0-9 whitespace], split on whitespace."""
    if not text:
        return []
    return _NON_ALNUM_RE.sub(" ", text.lower()).split()


@dataclass(frozen=True)
class Vocabulary:
    """Request-scoped term -> index mapping"""
    index: Dict[str, int]

    def __contains__(self, term: str) -> bool:
        return term in self.index

    def __len__(self) -> int:
        return len(self.index)

    @property
    def terms(self) -> FrozenSet[str]:
        return frozenset(self.index)


@dataclass(frozen=True)
class TermVector:
    """Sparse normalized term frequencies with a precomputed magnitude"""
    weights: Dict[str, float] = field(default_factory=dict)
    magnitude: float = 0.0

    @classmethod
    def from_weights(cls, weights: Dict[str, float]) -> "TermVector":
        clean = {t: float(w) for t, w in weights.items() if w > 0}
        return cls(weights=clean, magnitude=math.sqrt(sum(w * w for w in clean.values())))

    @property
    def is_empty(self) -> bool:
        return self.magnitude == 0.0


@dataclass
class ScoredDocument:
    """A post paired with its vector and similarity to the query"""
    document: Document
    vector: TermVector
    similarity: float = 0.0


def build_vocabulary(
    query: str,
    documents: Iterable[Document],
    lexicon: Optional[Lexicon] = None,
) -> Vocabulary:
    """
    Build the vocabulary from the query and all candidate posts.

    Stop words and terms shorter than three characters are excluded.
    Indices follow first appearance (query terms first).
    """
    lexicon = lexicon or load_lexicon()
    index: Dict[str, int] = {}

    def _add(text: str) -> None:
        for token in tokenize(text):
            if len(token) < MIN_TERM_LENGTH or lexicon.is_stop_word(token):
                continue
            if token not in index:
                index[token] = len(index)

    _add(query)
    for doc in documents:
        _add(doc.combined_text)

    return Vocabulary(index=index)


def vectorize(text: Optional[str], vocabulary: Vocabulary) -> TermVector:
    """
    Term-frequency vector of text under vocabulary.

    weight(term) = occurrences of term / total occurrences of vocabulary terms.
    Text with no vocabulary terms yields an empty vector.
    """
    counts: Dict[str, int] = {}
    for token in tokenize(text):
        if token in vocabulary:
            counts[token] = counts.get(token, 0) + 1

    total = sum(counts.values())
    if total == 0:
        return TermVector()

    return TermVector.from_weights({term: n / total for term, n in counts.items()})


def cosine_similarity(a: TermVector, b: TermVector) -> float:
    """Cosine similarity in [0, 1]; 0.0 if either vector is empty."""
    if a.is_empty or b.is_empty:
        return 0.0

    # Iterate the smaller vector
    small, large = (a, b) if len(a.weights) <= len(b.weights) else (b, a)
    dot = sum(w * large.weights.get(term, 0.0) for term, w in small.weights.items())

    similarity = dot / (a.magnitude * b.magnitude)
    return max(0.0, min(1.0, similarity))


def rank_by_similarity(
    query_vector: TermVector,
    scored: Sequence[ScoredDocument],
) -> List[ScoredDocument]:
    """
    Drop zero-magnitude posts and sort the rest by similarity, descending.

    The sort is stable, so ties keep their incoming order.
    """
    candidates = [s for s in scored if not s.vector.is_empty]
    for s in candidates:
        s.similarity = cosine_similarity(query_vector, s.vector)
    return sorted(candidates, key=lambda s: s.similarity, reverse=True)


class VectorScorer:
    """
    Ranks posts against a query.

    Document vectors may be served from a read-through lookup (the vector
    cache); the query vector is always computed fresh.
    """

    def __init__(self, lexicon: Optional[Lexicon] = None):
        self._lexicon = lexicon or load_lexicon()

    def rank(
        self,
        query: str,
        documents: Sequence[Document],
        vector_lookup: Optional[Callable[[Document, Vocabulary], TermVector]] = None,
    ) -> Tuple[TermVector, List[ScoredDocument]]:
        """
        Score and rank documents for query.

        Args:
            query: User query
            documents: Candidate posts
            vector_lookup: Optional (document, vocabulary) -> TermVector
                provider, used instead of direct vectorization

        Returns:
            (query_vector, ranked documents with non-zero magnitude)
        """
        vocabulary = build_vocabulary(query, documents, self._lexicon)
        query_vector = vectorize(query, vocabulary)

        scored = []
        for doc in documents:
            if vector_lookup is not None:
                vector = vector_lookup(doc, vocabulary)
            else:
                vector = vectorize(doc.combined_text, vocabulary)
            scored.append(ScoredDocument(document=doc, vector=vector))

        return query_vector, rank_by_similarity(query_vector, scored)
