"""Search Assistant — FastAPI server.

Answers a natural-language query with the OpenAI web-search tool, cleans up
the answer, optionally extracts chart data, and records the search.

Endpoints
---------
- ``GET  /health``               — health check
- ``POST /api/ask``              — answer a query
- ``GET  /api/recent-searches``  — the 5 most recent searches, newest first
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from openai import AsyncOpenAI

from search_assistant.config import config
from search_assistant.models import (
    AskRequest,
    AskResponse,
    HealthResponse,
    RecentSearchesResponse,
)
from search_assistant.search_store import SearchStore
from search_assistant.text import normalize_answer
from search_assistant.visualization import extract_visualization, needs_visualization
from search_assistant.web_search import DEGRADED_ANSWER, create_openai_client, search_web

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
for _name in ("azure.core", "azure.cosmos", "azure.identity", "httpx", "openai"):
    logging.getLogger(_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global state (initialised in lifespan)
# ---------------------------------------------------------------------------

openai_client: AsyncOpenAI | None = None
search_store: SearchStore | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the OpenAI client and the search store once per process."""
    global openai_client, search_store

    logger.info("[SEARCH-API] Server starting up...")
    openai_client = create_openai_client()
    search_store = SearchStore()
    logger.info("[SEARCH-API] Ready (history enabled: %s)", search_store.enabled)

    yield

    logger.info("[SEARCH-API] Server shutting down...")
    await openai_client.close()


app = FastAPI(
    title="Search Assistant",
    description="Web-search answers with citations and charts",
    version="0.1.0",
    lifespan=lifespan,
)


def get_openai_client() -> AsyncOpenAI:
    if openai_client is None:
        raise RuntimeError("OpenAI client not initialised")
    return openai_client


def get_search_store() -> SearchStore:
    if search_store is None:
        raise RuntimeError("Search store not initialised")
    return search_store


# ---------------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy")


@app.post("/api/ask", response_model=AskResponse)
async def ask(
    background_tasks: BackgroundTasks,
    client: AsyncOpenAI = Depends(get_openai_client),
    store: SearchStore = Depends(get_search_store),
    request: AskRequest | None = None,
):
    """Answer *query* with web search results and optional chart data.

    A search timeout is answered with a fixed apology (status 200, no
    results, no chart).  The search is saved after the response is sent.
    """
    if request is None or not request.query:
        raise HTTPException(status_code=400, detail="Query is required")

    query = request.query
    logger.info("[SEARCH-API] Processing query: %s", query[:100])

    try:
        outcome = await search_web(client, query)
        if outcome is None:
            return AskResponse(answer=DEGRADED_ANSWER)

        answer = normalize_answer(outcome.answer, len(outcome.results))

        chart = None
        if needs_visualization(query):
            chart = await extract_visualization(client, query, answer)

        background_tasks.add_task(store.save_search, query, answer)

        return AskResponse(
            results=outcome.results,
            answer=answer,
            visualization_data=chart,
        )
    except Exception as e:
        logger.error("[SEARCH-API] Error processing query: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process request")


@app.get(
    "/api/recent-searches",
    response_model=RecentSearchesResponse,
    response_model_exclude_none=True,
)
def recent_searches(store: SearchStore = Depends(get_search_store)):
    """List the most recent searches. Never fails; empty on store errors."""
    return RecentSearchesResponse(searches=store.recent_searches())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Launch the Search Assistant API server."""
    logger.info("[SEARCH-API] Starting server on port %d", config.port)
    logger.info("[SEARCH-API] Health:  http://localhost:%d/health", config.port)
    logger.info("[SEARCH-API] Ask:     http://localhost:%d/api/ask", config.port)

    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level="info")


if __name__ == "__main__":
    main()
