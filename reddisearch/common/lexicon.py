"""
Lexicon

Static word tables used by keyword extraction, vocabulary construction and
community hinting. Loaded once from data/lexicon.json.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

LEXICON_PATH = Path(__file__).parent.parent / "data" / "lexicon.json"


@dataclass(frozen=True)
class Lexicon:
    """Immutable word tables"""
    stop_words: FrozenSet[str]
    community_hints: Tuple[Tuple[str, str], ...]  # (keyword, community), file order
    backup_communities: Tuple[str, ...]

    def is_stop_word(self, word: str) -> bool:
        return word in self.stop_words

    def suggest_community(self, query: str) -> Optional[str]:
        """
        Return the community hinted by the first matching keyword.

        Matching is a plain substring test on the lower-cased query, so
        "programmer" also hints the programming community.
        """
        lowered = (query or "").lower()
        for keyword, community in self.community_hints:
            if keyword in lowered:
                return community
        return None


def parse_lexicon(data: Dict) -> Lexicon:
    """Build a Lexicon from its JSON form"""
    hints = data.get("community_hints", {})
    return Lexicon(
        stop_words=frozenset(w.lower() for w in data.get("stop_words", [])),
        community_hints=tuple((k.lower(), v) for k, v in hints.items()),
        backup_communities=tuple(data.get("backup_communities", [])),
    )


@lru_cache(maxsize=None)
def load_lexicon(path: Optional[str] = None) -> Lexicon:
    """
    Load the lexicon file.

    Args:
        path: Alternative lexicon file (defaults to the packaged one)

    Returns:
        Lexicon shared by every caller passing the same path
    """
    lexicon_path = Path(path) if path else LEXICON_PATH
    if not lexicon_path.exists():
        raise FileNotFoundError(f"Lexicon file not found: {lexicon_path}")

    with open(lexicon_path, encoding="utf-8") as f:
        return parse_lexicon(json.load(f))
