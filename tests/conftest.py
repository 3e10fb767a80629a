"""Shared test fixtures for search assistant tests.

Environment variables MUST be set at module level (before any
``search_assistant`` modules are imported) because ``search_assistant.config``
evaluates ``_load_config()`` at import time.
"""

import os

# Set required env vars before any app code is imported
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("API_ENDPOINT", "http://search-api.test")

from types import SimpleNamespace  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402


@pytest.fixture
def make_citation():
    """Factory for ``url_citation`` annotations as returned by the Responses API."""

    def _make(start: int, end: int, url: str, title: str | None = None):
        return SimpleNamespace(
            type="url_citation",
            start_index=start,
            end_index=end,
            url=url,
            title=title,
        )

    return _make


@pytest.fixture
def make_response():
    """Factory for a Responses API result: a web_search_call item then a message."""

    def _make(text: str | None, annotations: list | None = None):
        block = SimpleNamespace(type="output_text", text=text, annotations=annotations or [])
        return SimpleNamespace(
            output=[
                SimpleNamespace(type="web_search_call", status="completed"),
                SimpleNamespace(type="message", role="assistant", content=[block]),
            ]
        )

    return _make


@pytest.fixture
def make_completion():
    """Factory for a Chat Completions result carrying *content*."""

    def _make(content: str | None):
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
        )

    return _make


@pytest.fixture
def openai_client():
    """A mock ``AsyncOpenAI`` with async ``responses.create`` and ``chat.completions.create``."""
    client = MagicMock()
    client.responses.create = AsyncMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client
