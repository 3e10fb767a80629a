"""Web search through the OpenAI Responses API.

One bounded ``responses.create`` call per query with the hosted
``web_search_preview`` tool enabled.  The answer text and its
``url_citation`` annotations are pulled out of the ``message`` output item
and turned into ``SearchResult`` objects numbered 1..N in annotation order.

No placeholder sources are ever synthesised: an answer without citations
yields an empty result list.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from search_assistant.config import config
from search_assistant.models import SearchResult
from search_assistant.text import strip_query_string

logger = logging.getLogger(__name__)

DEGRADED_ANSWER = "The search is taking longer than expected. Please try again in a moment."
NO_ANSWER = "I couldn't generate an answer based on the search results."
DEFAULT_SOURCE_TITLE = "Web Source"


@dataclass
class SearchOutcome:
    """Raw answer text plus the citations extracted from it."""

    answer: str
    results: list[SearchResult] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------

def create_openai_client() -> AsyncOpenAI:
    """Create the process-wide OpenAI client.

    ``max_retries=0`` keeps every call one-shot; the per-call timeout is
    enforced by the caller.
    """
    client = AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        max_retries=0,
    )
    logger.info("OpenAI client created (search model: %s)", config.search_model)
    return client


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _first_message_block(response: Any) -> Any | None:
    """Return the first content block of the first ``message`` output item."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "message":
            content = getattr(item, "content", None) or []
            return content[0] if content else None
    return None


def extract_answer(response: Any) -> SearchOutcome:
    """Pull the answer text and URL citations out of a Responses API result.

    Each citation's snippet is the exact ``text[start_index:end_index]``
    span and its URL has the query string removed.
    """
    block = _first_message_block(response)
    text = getattr(block, "text", None) if block is not None else None
    if not text:
        logger.warning("Web search returned no message text")
        return SearchOutcome(answer=NO_ANSWER)

    results: list[SearchResult] = []
    for annotation in getattr(block, "annotations", None) or []:
        if getattr(annotation, "type", None) != "url_citation":
            continue
        results.append(
            SearchResult(
                title=getattr(annotation, "title", None) or DEFAULT_SOURCE_TITLE,
                url=strip_query_string(annotation.url),
                snippet=text[annotation.start_index:annotation.end_index],
                source_id=len(results) + 1,
            )
        )
    return SearchOutcome(answer=text, results=results)


# ---------------------------------------------------------------------------
# Search call
# ---------------------------------------------------------------------------

async def search_web(client: AsyncOpenAI, query: str) -> SearchOutcome | None:
    """Run the web search for *query*.

    Returns ``None`` when the call times out or the provider fails; the
    caller answers with ``DEGRADED_ANSWER`` in that case.
    """
    try:
        response = await asyncio.wait_for(
            client.responses.create(
                model=config.search_model,
                tools=[{
                    "type": "web_search_preview",
                    "search_context_size": config.search_context_size,
                }],
                input=query,
            ),
            timeout=config.search_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Web search timed out after %.1fs for '%s'",
            config.search_timeout_seconds,
            query[:80],
        )
        return None
    except OpenAIError as e:
        logger.warning("Web search failed for '%s': %s", query[:80], e)
        return None

    outcome = extract_answer(response)
    logger.info(
        "Web search for '%s' → %d chars, %d citations",
        query[:80],
        len(outcome.answer),
        len(outcome.results),
    )
    return outcome
