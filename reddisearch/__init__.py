"""
ReddiSearch

Answers free-text questions from public Reddit discussions.

Pipeline:
- Broad discovery across the requested subreddit (or all of Reddit)
- Redirection to the subreddit where the discussion concentrates
- Focused search, vector-space ranking and answer synthesis

Usage:
    from reddisearch.common import load_config
    from reddisearch.retriever import ForumClient, Searcher, RetrievalOrchestrator
    from reddisearch.server import run_server
"""

__version__ = "0.1.0"
