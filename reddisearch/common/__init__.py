"""
ReddiSearch Common Module

Shared infrastructure: configuration, static lexicon, pacing, key-value
stores, text cleaning and the generative answering client.
"""

from .config import ReddiSearchConfig, load_config
from .kv_store import InMemoryStore, KeyValueStore, RedisStore, create_store
from .lexicon import Lexicon, load_lexicon
from .llm_client import LLMClient
from .pacing import Pacer

__all__ = [
    "ReddiSearchConfig",
    "load_config",
    "InMemoryStore",
    "KeyValueStore",
    "RedisStore",
    "create_store",
    "Lexicon",
    "load_lexicon",
    "LLMClient",
    "Pacer",
]
