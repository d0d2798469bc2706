"""
Retriever - Question answering from forum discussions

Key Components:
- ForumClient: Read-only access to the forum's listing endpoints
- QueryProcessor: Significant-term extraction and relevance filtering
- Searcher: Fallback chain of search strategies
- VectorScorer: Term-frequency vectors and cosine ranking
- Synthesizer: LLM answer synthesis with extractive fallback
- RetrievalOrchestrator: Discovery -> redirection -> focused search

Pipeline:
1. Search the requested community and keep relevant posts
2. Pick the community where those posts concentrate
3. Search that community, rank posts against the query
4. Synthesize an answer from the top posts
"""

from .cache import AnswerCache, VectorCache
from .documents import Document, RankingPolicy
from .forum_client import ForumClient
from .orchestrator import RetrievalOrchestrator, SearchResult
from .query_processor import ParsedQuery, QueryProcessor
from .searcher import Searcher
from .synthesizer import SynthesizedAnswer, Synthesizer
from .vector_scorer import TermVector, VectorScorer

__all__ = [
    "AnswerCache",
    "VectorCache",
    "Document",
    "RankingPolicy",
    "ForumClient",
    "RetrievalOrchestrator",
    "SearchResult",
    "ParsedQuery",
    "QueryProcessor",
    "Searcher",
    "SynthesizedAnswer",
    "Synthesizer",
    "TermVector",
    "VectorScorer",
]
