"""Shared utilities for judging generative-service responses."""

from __future__ import annotations

import re
from typing import Optional

# Phrases a backend returns in place of an answer when it could not produce one
FAILURE_SENTINELS = (
    "quota exceeded",
    "quota exhausted",
    "resource has been exhausted",
    "resource_exhausted",
    "rate limit exceeded",
    "couldn't generate",
    "could not generate",
    "unable to generate",
    "couldn't connect to the ai service",
    "error calling",
)

_WS_RE = re.compile(r"\s+")


def is_failed_generation(raw: Optional[str]) -> bool:
    """Return True for a missing, blank or sentinel generation.

    Only the opening of the text is checked, so an answer that merely
    quotes one of the phrases later on is kept.
    """
    if raw is None:
        return True

    text = _WS_RE.sub(" ", raw).strip().lower()
    if not text:
        return True

    head = text[:160]
    return any(sentinel in head for sentinel in FAILURE_SENTINELS)


def strip_code_fences(raw: str) -> str:
    """Drop markdown code fence lines some models wrap plain answers in."""
    if not raw.lstrip().startswith("```"):
        return raw
    lines = [l for l in raw.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines).strip()
