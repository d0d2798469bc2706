"""
ReddiSearch Server

FastAPI server answering questions from forum discussions.

Endpoints:
- POST /api/search: Answer a question ({query, subreddit?})
- GET /api/search: Same, as ?q=&subreddit=
- GET /api/health: Health check (plain text)
- GET /: Landing page with a search form

Search handlers are plain (sync) functions, so FastAPI runs each query in
its worker threadpool and concurrent queries proceed in parallel.
"""

import logging
from contextlib import asynccontextmanager
from html import escape
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .common.config import ReddiSearchConfig, load_config
from .common.kv_store import create_store
from .common.lexicon import load_lexicon
from .common.llm_client import LLMClient
from .common.pacing import Pacer, monotonic_ms
from .retriever.cache import AnswerCache, VectorCache
from .retriever.forum_client import ForumClient
from .retriever.orchestrator import ERROR_MESSAGE, RetrievalOrchestrator
from .retriever.query_processor import QueryProcessor
from .retriever.searcher import Searcher
from .retriever.synthesizer import Synthesizer
from .retriever.vector_scorer import VectorScorer

logger = logging.getLogger("reddisearch.server")


# Global state
config: Optional[ReddiSearchConfig] = None
pacer: Optional[Pacer] = None
forum_client: Optional[ForumClient] = None
llm_client: Optional[LLMClient] = None
orchestrator: Optional[RetrievalOrchestrator] = None


def create_orchestrator(
    cfg: ReddiSearchConfig,
    shared_pacer: Pacer,
    client: ForumClient,
    llm: LLMClient,
) -> RetrievalOrchestrator:
    """Wire store -> caches -> searcher -> synthesizer -> orchestrator"""
    store = create_store(cfg.cache)
    vector_cache = VectorCache(store, ttl=cfg.cache.vector_ttl)
    answer_cache = AnswerCache(
        store,
        result_ttl=cfg.cache.answer_ttl,
        generation_ttl=cfg.cache.generation_ttl,
    )

    lexicon = load_lexicon()
    searcher = Searcher(
        client,
        processor=QueryProcessor(lexicon),
        pacer=shared_pacer,
        ranking=cfg.retriever.ranking,
        backup_sources=cfg.forum.backup_sources,
        backup_delay=cfg.forum.backup_delay,
    )
    synthesizer = Synthesizer(
        llm_client=llm,
        answer_cache=answer_cache,
        temperature=cfg.llm.temperature,
        max_tokens=cfg.llm.max_tokens,
        excerpt_chars=cfg.retriever.excerpt_chars,
    )
    return RetrievalOrchestrator(
        searcher,
        synthesizer,
        scorer=VectorScorer(lexicon),
        config=cfg.retriever,
        vector_cache=vector_cache,
        answer_cache=answer_cache,
        pacer=shared_pacer,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, pacer, forum_client, llm_client, orchestrator

    print("[ReddiSearch] Starting up...")
    load_dotenv()

    config = load_config()
    print(f"[ReddiSearch] Loaded config (cache: {config.cache.backend}, ranking: {config.retriever.ranking})")

    pacer = Pacer()
    forum_client = ForumClient(config.forum)
    llm_client = LLMClient.from_config(config.llm)
    if llm_client.is_available:
        print(f"[ReddiSearch] LLM ready ({llm_client.provider}/{llm_client.model})")
    else:
        print("[ReddiSearch] LLM not available (extractive answers only)")

    orchestrator = create_orchestrator(config, pacer, forum_client, llm_client)
    print("[ReddiSearch] Ready to answer queries")

    yield

    # Cleanup
    print("[ReddiSearch] Shutting down...")
    pacer.cancel()
    forum_client.close()
    llm_client.close()


app = FastAPI(
    title="ReddiSearch",
    description="Answers questions from Reddit discussions",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class QueryRequest(BaseModel):
    """Search request"""
    query: str = ""
    subreddit: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("subreddit", "community"),
    )


class QueryResponse(BaseModel):
    """Search response"""
    model_config = ConfigDict(populate_by_name=True)

    query: str
    answer: str
    processing_time_ms: int = Field(alias="processingTimeMs")
    posts_found: int = Field(alias="postsFound")


# =============================================================================
# Endpoints
# =============================================================================

def run_query(query: str, subreddit: Optional[str]):
    """Shared handler for GET and POST searches"""
    query = (query or "").strip()
    if not query:
        return JSONResponse({"query": query, "error": "Query must not be empty"}, status_code=400)

    if orchestrator is None:
        return JSONResponse({"query": query, "error": "Server not initialized"}, status_code=503)

    started = monotonic_ms()
    try:
        result = orchestrator.answer(query, subreddit or None)
    except Exception as e:
        logger.error("Unhandled error for %r: %s", query, e, exc_info=True)
        return JSONResponse({"query": query, "error": ERROR_MESSAGE}, status_code=500)

    elapsed = monotonic_ms() - started
    logger.info("Answered %r in %d ms (%d posts)", query, elapsed, result.posts_found)
    return QueryResponse(
        query=query,
        answer=result.answer,
        processing_time_ms=elapsed,
        posts_found=result.posts_found,
    )


@app.post("/api/search", response_model=QueryResponse)
def search(request: QueryRequest):
    return run_query(request.query, request.subreddit)


@app.get("/api/search", response_model=QueryResponse)
def search_get(q: str = "", subreddit: Optional[str] = None):
    return run_query(q, subreddit)


@app.get("/api/health", response_class=PlainTextResponse)
def health():
    """Health check endpoint"""
    return "ReddiSearch is running" if orchestrator is not None else "ReddiSearch is starting"


LANDING_PAGE = """<!DOCTYPE html>
<html>
<head><title>ReddiSearch</title></head>
<body>
  <h1>ReddiSearch</h1>
  <p>Ask a question and get an answer drawn from Reddit discussions.</p>
  <form action="/api/search" method="get">
    <input type="text" name="q" placeholder="Your question" size="60" value="{query}">
    <input type="text" name="subreddit" placeholder="Subreddit (optional)">
    <button type="submit">Search</button>
  </form>
</body>
</html>
"""


@app.get("/", response_class=HTMLResponse)
def landing(q: str = ""):
    return LANDING_PAGE.format(query=escape(q))


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the ReddiSearch server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    cfg = load_config()

    print(f"[ReddiSearch] Starting server on port {cfg.server.port}")
    uvicorn.run(
        "reddisearch.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
