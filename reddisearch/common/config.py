"""
Configuration Management for ReddiSearch

Loads configuration from ~/.reddisearch/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

logger = logging.getLogger("reddisearch.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".reddisearch"
CONFIG_PATH = CONFIG_DIR / "config.json"

RANKING_POLICIES = ("raw_score", "weighted_engagement")


@dataclass
class ForumConfig:
    """Public forum read API"""
    base_url: str = "https://www.reddit.com"
    user_agent: str = "ReddiSearch/1.0"
    max_limit: int = 25  # per-request clamp
    timeout: float = 10.0
    backup_delay: float = 0.5  # pause between backup-source calls
    backup_sources: bool = True


@dataclass
class LLMConfig:
    """Generative answering backend"""
    provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    ollama_endpoint: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: float = 30.0

    @property
    def model(self) -> str:
        """Model name for the selected provider"""
        return {
            "gemini": self.gemini_model,
            "ollama": self.ollama_model,
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
        }.get(self.provider, "")


@dataclass
class CacheConfig:
    """Vector and answer cache settings (TTLs in seconds)"""
    backend: str = "memory"  # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"
    vector_ttl: float = 24 * 3600
    answer_ttl: float = 10 * 60
    generation_ttl: float = 3600


@dataclass
class RetrieverConfig:
    """Three-stage pipeline settings"""
    rate_limit_delay: float = 1.0
    broad_limit: int = 20
    focused_limit: int = 15
    top_k: int = 4  # documents used as generation context (3-5)
    excerpt_chars: int = 400  # body excerpt per context document (200-400)
    ranking: str = "raw_score"


@dataclass
class ServerConfig:
    """HTTP query endpoint"""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class ReddiSearchConfig:
    """Main configuration"""
    forum: ForumConfig = field(default_factory=ForumConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _section(section_cls, raw: Dict[str, Any]):
    """Build a config section from a dict, ignoring unknown keys"""
    defaults = section_cls()
    known = {k: v for k, v in raw.items() if hasattr(defaults, k)}
    unknown = set(raw) - set(known)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", section_cls.__name__, sorted(unknown))
    return section_cls(**known)


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section, clamping values to their supported ranges"""
    retriever = _section(RetrieverConfig, data.get("retriever", {}))
    return normalize_retriever_config(retriever)


def normalize_retriever_config(retriever: RetrieverConfig) -> RetrieverConfig:
    retriever.top_k = min(5, max(3, int(retriever.top_k)))
    retriever.excerpt_chars = min(400, max(200, int(retriever.excerpt_chars)))
    if retriever.ranking not in RANKING_POLICIES:
        logger.warning("Unknown ranking policy %r, using raw_score", retriever.ranking)
        retriever.ranking = "raw_score"
    return retriever


def _env_override(target: Any, attr: str, env_var: str, cast: Callable[[str], Any] = str) -> None:
    """Apply one environment variable to a config attribute if set and parseable"""
    raw = os.getenv(env_var)
    if not raw:
        return
    try:
        setattr(target, attr, cast(raw))
    except ValueError:
        logger.warning("Ignoring %s=%r: not a valid %s", env_var, raw, cast.__name__)


def load_config() -> ReddiSearchConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.reddisearch/config.json)
    3. Default values
    """
    config = ReddiSearchConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.forum = _section(ForumConfig, data.get("forum", {}))
            config.llm = _section(LLMConfig, data.get("llm", {}))
            config.cache = _section(CacheConfig, data.get("cache", {}))
            config.retriever = _parse_retriever_config(data)
            config.server = _section(ServerConfig, data.get("server", {}))
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    _env_override(config.forum, "user_agent", "REDDISEARCH_USER_AGENT")
    _env_override(config.forum, "max_limit", "REDDISEARCH_MAX_POSTS", int)

    _env_override(config.retriever, "rate_limit_delay", "REDDISEARCH_RATE_LIMIT_DELAY", float)
    _env_override(config.retriever, "ranking", "REDDISEARCH_RANKING")

    _env_llm_map = {
        "REDDISEARCH_LLM_PROVIDER": "provider",
        "GOOGLE_API_KEY": "gemini_api_key",
        "GEMINI_API_KEY": "gemini_api_key",
        "GEMINI_MODEL": "gemini_model",
        "OLLAMA_ENDPOINT": "ollama_endpoint",
        "OLLAMA_MODEL": "ollama_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
    }
    for env_var, attr in _env_llm_map.items():
        _env_override(config.llm, attr, env_var)
    config.llm.provider = config.llm.provider.lower()

    _env_override(config.cache, "backend", "REDDISEARCH_CACHE_BACKEND")
    _env_override(config.cache, "redis_url", "REDIS_URL")
    _env_override(config.cache, "vector_ttl", "REDDISEARCH_VECTOR_TTL", float)
    _env_override(config.cache, "answer_ttl", "REDDISEARCH_ANSWER_TTL", float)

    _env_override(config.server, "port", "REDDISEARCH_PORT", int)

    config.retriever = normalize_retriever_config(config.retriever)
    return config
