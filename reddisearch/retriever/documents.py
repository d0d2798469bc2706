"""
Documents

Forum posts as retrieved from the read API, plus the ranking policies and
de-duplication shared by every search path.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List

from ..common.text import truncate_excerpt


@dataclass(frozen=True)
class Document:
    """A single forum post"""
    title: str
    body: str
    url: str  # permanent URL, unique within a result set
    community: str
    score: int = 0
    comments: int = 0

    @property
    def combined_text(self) -> str:
        return f"{self.title}\n\n{self.body}"

    @property
    def engagement(self) -> int:
        return self.score + 2 * self.comments

    def context_block(self, excerpt_chars: int = 400) -> str:
        """Render the post for a generation prompt, body cut to excerpt_chars"""
        body = self.body if len(self.body) <= excerpt_chars else truncate_excerpt(self.body, excerpt_chars)
        return (
            f"Post from r/{self.community} (Score: {self.score}, Comments: {self.comments}):\n"
            f"Title: {self.title}\n"
            f"Content: {body}\n"
            f"---"
        )


class RankingPolicy(str, Enum):
    """How posts from one search call are ordered"""
    RAW_SCORE = "raw_score"  # score, descending
    WEIGHTED_ENGAGEMENT = "weighted_engagement"  # score + 2 * comments, descending


_SORT_KEYS: Dict[RankingPolicy, Callable[[Document], int]] = {
    RankingPolicy.RAW_SCORE: lambda d: d.score,
    RankingPolicy.WEIGHTED_ENGAGEMENT: lambda d: d.engagement,
}


def rank_documents(
    documents: Iterable[Document],
    policy: RankingPolicy = RankingPolicy.RAW_SCORE,
) -> List[Document]:
    """Sort posts by the policy's key, descending (stable for ties)."""
    return sorted(documents, key=_SORT_KEYS[RankingPolicy(policy)], reverse=True)


def dedupe_by_url(documents: Iterable[Document]) -> List[Document]:
    """
    Keep one post per URL, preferring the higher score.

    The surviving copy takes the position of the first occurrence.
    """
    by_url: Dict[str, Document] = {}
    for doc in documents:
        existing = by_url.get(doc.url)
        if existing is None or doc.score > existing.score:
            by_url[doc.url] = doc
    return list(by_url.values())
