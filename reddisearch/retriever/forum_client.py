"""
Forum Client

Read-only access to the public forum JSON API.

Endpoints:
- GET /r/{community}/search.json  (query search inside a community)
- GET /r/{community}/new.json     (most recent posts)
- GET /r/{community}/top.json     (top posts in a time window)
- GET /r/{community}/hot.json     (currently popular posts)

Each call issues exactly one request. Transport failures, error statuses and
malformed bodies are logged and returned as an empty list; nothing is raised
to the caller.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..common.config import ForumConfig
from ..common.text import clean_post_text
from .documents import Document

logger = logging.getLogger("reddisearch.retriever.forum_client")

ALL_COMMUNITIES = "all"
REMOVED_MARKERS = frozenset({"[deleted]", "[removed]"})
TIME_WINDOWS = ("hour", "day", "week", "month", "year", "all")


def normalize_community(community: Optional[str]) -> str:
    """Strip a leading "r/" (or "/r/"); blank means every community."""
    name = (community or "").strip()
    for prefix in ("/r/", "r/"):
        if name.lower().startswith(prefix):
            name = name[len(prefix):]
            break
    name = name.strip("/ ")
    return name or ALL_COMMUNITIES


def is_all_scope(community: Optional[str]) -> bool:
    return normalize_community(community).lower() == ALL_COMMUNITIES


def parse_listing(payload: Any, base_url: str, fallback_community: str = "") -> List[Document]:
    """
    Convert a listing response into Documents.

    A post is dropped when its title or body is "[deleted]"/"[removed]".
    It is kept when the title is non-empty and it has a positive score,
    any comments, or a body.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"listing is {type(payload).__name__}, expected object")

    listing = payload.get("data")
    if not isinstance(listing, dict):
        raise ValueError("listing has no data object")
    children = listing.get("children") or []
    if not isinstance(children, list):
        raise ValueError("listing children is not a list")
    documents = []

    for child in children:
        data = child.get("data") if isinstance(child, dict) else None
        if not isinstance(data, dict):
            continue

        title = data.get("title") or ""
        raw_body = data.get("selftext") or ""
        permalink = data.get("permalink") or ""
        if not all(isinstance(v, str) for v in (title, raw_body, permalink)):
            logger.debug("Skipping listing item with non-text fields")
            continue

        title = title.strip()
        raw_body = raw_body.strip()
        if title in REMOVED_MARKERS or raw_body in REMOVED_MARKERS:
            continue
        if not title or not permalink:
            continue

        community = data.get("subreddit")
        if not isinstance(community, str) or not community:
            community = fallback_community

        score = _as_int(data.get("score"))
        comments = max(0, _as_int(data.get("num_comments")))
        body = clean_post_text(raw_body)

        if not (score > 0 or comments > 0 or body):
            continue

        documents.append(Document(
            title=title,
            body=body,
            url=f"{base_url.rstrip('/')}{permalink}",
            community=community,
            score=score,
            comments=comments,
        ))

    return documents


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class ForumClient:
    """
    Thin client over the forum's listing endpoints.

    Usage:
        client = ForumClient(ForumConfig())
        posts = client.search_posts("best budget laptop", "laptops", limit=10)
        client.close()
    """

    def __init__(self, config: Optional[ForumConfig] = None, http_client: Optional[httpx.Client] = None):
        """
        Args:
            config: Forum settings (base URL, user agent, per-request limit, timeout)
            http_client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self._config = config or ForumConfig()
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(self._config.timeout))

    @property
    def config(self) -> ForumConfig:
        return self._config

    def close(self) -> None:
        self._http.close()

    def clamp_limit(self, limit: int) -> int:
        return max(1, min(int(limit), self._config.max_limit))

    def search_posts(self, query: str, community: Optional[str] = None, limit: int = 25) -> List[Document]:
        """Relevance-sorted query search restricted to one community."""
        name = normalize_community(community)
        params = {
            "q": query,
            "restrict_sr": 1,
            "sort": "relevance",
            "limit": self.clamp_limit(limit),
        }
        return self._fetch(name, "search", params)

    def list_recent(self, community: Optional[str] = None, limit: int = 25) -> List[Document]:
        name = normalize_community(community)
        return self._fetch(name, "new", {"limit": self.clamp_limit(limit)})

    def list_top(self, community: Optional[str] = None, limit: int = 25, time_window: str = "week") -> List[Document]:
        name = normalize_community(community)
        if time_window not in TIME_WINDOWS:
            logger.warning("Unknown time window %r, using 'week'", time_window)
            time_window = "week"
        return self._fetch(name, "top", {"t": time_window, "limit": self.clamp_limit(limit)})

    def list_hot(self, community: Optional[str] = None, limit: int = 25) -> List[Document]:
        name = normalize_community(community)
        return self._fetch(name, "hot", {"limit": self.clamp_limit(limit)})

    def _fetch(self, community: str, listing: str, params: Dict[str, Any]) -> List[Document]:
        url = f"{self._config.base_url.rstrip('/')}/r/{community}/{listing}.json"
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }

        try:
            response = self._http.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Forum %s timed out for r/%s: %s", listing, community, e)
            return []
        except httpx.ConnectError as e:
            logger.warning("Forum %s connect failed for r/%s: %s", listing, community, e)
            return []
        except httpx.HTTPError as e:
            logger.warning("Forum %s transport error for r/%s: %s", listing, community, e)
            return []

        if response.status_code != 200:
            logger.warning(
                "Forum %s for r/%s returned HTTP %s", listing, community, response.status_code,
            )
            return []

        try:
            documents = parse_listing(response.json(), self._config.base_url, community)
        except ValueError as e:
            logger.warning("Malformed forum %s response for r/%s: %s", listing, community, e)
            return []

        logger.debug("Forum %s r/%s -> %d posts", listing, community, len(documents))
        return documents
