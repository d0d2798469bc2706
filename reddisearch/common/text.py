"""Markdown cleanup and excerpting for forum post text."""

import re

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*", re.DOTALL)
_ITALIC_RE = re.compile(r"\*(.*?)\*", re.DOTALL)
_STRIKE_RE = re.compile(r"~~(.*?)~~", re.DOTALL)
_LINK_RE = re.compile(r"\[(.*?)\]\(.*?\)")
_BARE_LINK_RE = re.compile(r"\(?https?://\S+\)?")
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILER_RE = re.compile(r"(?is)\b(?:source|link to post)\s*:.*$")

MAX_POST_CHARS = 1000


def clean_post_text(text: str, max_chars: int = MAX_POST_CHARS) -> str:
    """Strip inline markdown, collapse blank runs and cap the length."""
    if not text:
        return ""

    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _STRIKE_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _EXTRA_NEWLINES_RE.sub("\n\n", text).strip()

    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def strip_trailers(text: str) -> str:
    """Remove markdown links, bare URLs and 'source:' / 'link to post:' trailers."""
    if not text:
        return ""
    text = _LINK_RE.sub(r"\1", text)
    text = _TRAILER_RE.sub("", text)
    text = _BARE_LINK_RE.sub("", text)
    return " ".join(text.split())


def truncate_excerpt(text: str, limit: int) -> str:
    """
    Cut text at the last word boundary at or before limit.

    Falls back to a hard cut when the first word alone exceeds the limit.
    """
    if len(text) <= limit:
        return text

    cut = text[:limit]
    boundary = cut.rfind(" ")
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip(" ,;:-") + "..."
