"""FastAPI endpoint tests for the search API.

These tests use httpx.AsyncClient + FastAPI's ASGITransport so they
exercise the real HTTP layer (routing, serialisation, error handling)
without a running server. The OpenAI client and the search store are
mocked.  ASGITransport runs background tasks before returning, so the
persistence write is observable in the same test.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from azure.core.exceptions import ServiceRequestError
from azure.cosmos.exceptions import CosmosHttpResponseError
from httpx import ASGITransport, AsyncClient

from search_assistant.config import config
from search_assistant.search_store import SearchStore
from search_assistant.web_search import DEGRADED_ANSWER

_ANSWER = (
    "Tesla is the most valuable carmaker with a market cap near $800 billion. "
    "Toyota follows at roughly $250 billion according to recent data. "
    "Ford trails at about $50 billion."
)

_CHART = json.dumps({
    "chart_type": "bar",
    "title": "Carmaker market caps",
    "data_source": "companiesmarketcap.com",
    "data_points": [
        {"name": "Tesla", "value": 800},
        {"name": "Toyota", "value": 250},
        {"name": "Ford", "value": 50},
    ],
})


@pytest.fixture
def mock_store():
    return MagicMock(spec=SearchStore)


@pytest.fixture(autouse=True)
def _patch_globals(monkeypatch, openai_client, mock_store):
    """Replace the lifespan-created singletons with mocks for every test."""
    import search_assistant.main as _mod

    monkeypatch.setattr(_mod, "openai_client", openai_client)
    monkeypatch.setattr(_mod, "search_store", mock_store)


@pytest.fixture
def transport():
    """ASGI transport wrapping the FastAPI app (no lifespan events)."""
    from search_assistant.main import app

    return ASGITransport(app=app)


@pytest_asyncio.fixture
async def client(transport):
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def cited_response(make_response, make_citation):
    return make_response(_ANSWER, [
        make_citation(0, 72, "https://companiesmarketcap.com/tesla?utm_source=openai", "Tesla market cap"),
        make_citation(73, 138, "https://example.com/toyota", "Toyota"),
    ])


# -----------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}


# -----------------------------------------------------------------------
# Query intake
# -----------------------------------------------------------------------


class TestQueryIntake:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": None}])
    async def test_missing_query_returns_400(self, client, openai_client, mock_store, body):
        resp = await client.post("/api/ask", json=body)

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Query is required"
        openai_client.responses.create.assert_not_called()
        openai_client.chat.completions.create.assert_not_called()
        mock_store.save_search.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_body_returns_400(self, client, openai_client):
        resp = await client.post("/api/ask")
        assert resp.status_code == 400
        openai_client.responses.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_passed_through_unmodified(self, client, openai_client, make_response):
        openai_client.responses.create.return_value = make_response("ok")

        await client.post("/api/ask", json={"query": "  who wrote Hamlet?  "})

        assert openai_client.responses.create.call_args.kwargs["input"] == "  who wrote Hamlet?  "


# -----------------------------------------------------------------------
# Answers
# -----------------------------------------------------------------------


class TestAsk:

    @pytest.mark.asyncio
    async def test_response_shape(self, client, openai_client, cited_response, make_completion):
        openai_client.responses.create.return_value = cited_response
        openai_client.chat.completions.create.return_value = make_completion(_CHART)

        resp = await client.post("/api/ask", json={"query": "Compare carmaker market caps"})

        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"results", "answer", "visualizationData"}
        assert body["results"][0] == {
            "title": "Tesla market cap",
            "url": "https://companiesmarketcap.com/tesla",
            "snippet": _ANSWER[0:72],
            "sourceId": 1,
        }
        assert body["results"][1]["sourceId"] == 2
        assert body["visualizationData"]["type"] == "bar"
        assert body["visualizationData"]["dataSource"] == "companiesmarketcap.com"
        assert len(body["visualizationData"]["data"]) == 3

    @pytest.mark.asyncio
    async def test_answer_is_normalized(self, client, openai_client, make_response, make_citation):
        text = "**Bold** claim about Tesla and its market value today. " + _ANSWER
        openai_client.responses.create.return_value = make_response(
            text, [make_citation(0, 10, "https://a.com")]
        )

        body = (await client.post("/api/ask", json={"query": "tell me about tesla"})).json()

        assert "**" not in body["answer"]
        assert body["answer"].startswith("Bold claim about Tesla and its market value today [1].")

    @pytest.mark.asyncio
    async def test_markers_resolve_to_sources(self, client, openai_client, cited_response):
        openai_client.responses.create.return_value = cited_response

        body = (await client.post("/api/ask", json={"query": "tell me about carmakers"})).json()

        source_ids = {r["sourceId"] for r in body["results"]}
        for n in range(1, 10):
            if f"[{n}]" in body["answer"]:
                assert n in source_ids

    @pytest.mark.asyncio
    async def test_non_chart_query_skips_extraction(self, client, openai_client, cited_response):
        openai_client.responses.create.return_value = cited_response

        body = (await client.post("/api/ask", json={"query": "who founded tesla"})).json()

        assert body["visualizationData"] is None
        openai_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_two_point_chart_is_dropped(self, client, openai_client, cited_response, make_completion):
        openai_client.responses.create.return_value = cited_response
        two = json.dumps({
            "chart_type": "bar", "title": "t", "data_source": "s",
            "data_points": [{"name": "a", "value": 1}, {"name": "b", "value": 2}],
        })
        openai_client.chat.completions.create.return_value = make_completion(two)

        body = (await client.post("/api/ask", json={"query": "compare a and b"})).json()

        assert body["visualizationData"] is None
        assert body["results"]

    @pytest.mark.asyncio
    async def test_chart_failure_keeps_answer(self, client, openai_client, cited_response, make_completion):
        openai_client.responses.create.return_value = cited_response
        openai_client.chat.completions.create.return_value = make_completion("not json")

        resp = await client.post("/api/ask", json={"query": "compare carmakers"})

        assert resp.status_code == 200
        assert resp.json()["visualizationData"] is None
        assert len(resp.json()["results"]) == 2

    @pytest.mark.asyncio
    async def test_no_citations_no_fabricated_sources(self, client, openai_client, make_response):
        openai_client.responses.create.return_value = make_response(_ANSWER)

        body = (await client.post("/api/ask", json={"query": "carmakers"})).json()

        assert body["results"] == []
        assert "[1]" not in body["answer"]


# -----------------------------------------------------------------------
# Degraded search
# -----------------------------------------------------------------------


class TestSearchTimeout:

    @pytest.mark.asyncio
    async def test_timeout_returns_degraded_answer(self, client, openai_client, mock_store):
        async def _slow(**kwargs):
            await asyncio.sleep(5)

        openai_client.responses.create = _slow
        fast = dataclasses.replace(config, search_timeout_seconds=0.05)

        with patch("search_assistant.web_search.config", fast):
            resp = await client.post("/api/ask", json={"query": "compare everything"})

        assert resp.status_code == 200
        assert resp.json() == {
            "results": [],
            "answer": DEGRADED_ANSWER,
            "visualizationData": None,
        }
        openai_client.chat.completions.create.assert_not_called()
        mock_store.save_search.assert_not_called()


# -----------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------


class TestPersistence:

    @pytest.mark.asyncio
    async def test_search_is_saved(self, client, openai_client, mock_store, cited_response):
        openai_client.responses.create.return_value = cited_response

        body = (await client.post("/api/ask", json={"query": "who founded tesla"})).json()

        mock_store.save_search.assert_called_once_with("who founded tesla", body["answer"])

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_change_response(
        self, client, openai_client, cited_response, monkeypatch
    ):
        import search_assistant.main as _mod

        openai_client.responses.create.return_value = cited_response

        with patch("search_assistant.search_store._get_cosmos_client") as mock_client:
            container = MagicMock()
            mock_client.return_value.get_database_client.return_value.get_container_client.return_value = container
            monkeypatch.setattr(_mod, "search_store", SearchStore())

        ok = await client.post("/api/ask", json={"query": "who founded tesla"})

        container.create_item.side_effect = CosmosHttpResponseError(message="down")
        broken = await client.post("/api/ask", json={"query": "who founded tesla"})

        assert broken.status_code == ok.status_code == 200
        assert broken.json() == ok.json()
        assert container.create_item.call_count == 2

    @pytest.mark.asyncio
    async def test_unreachable_store_at_startup(self, client, openai_client, cited_response):
        import search_assistant.main as _mod

        openai_client.responses.create.return_value = cited_response
        unreachable = dataclasses.replace(config, cosmos_endpoint="https://127.0.0.1:9/", cosmos_key="key")

        with patch("search_assistant.search_store.config", unreachable), patch(
            "search_assistant.search_store.CosmosClient",
            side_effect=ServiceRequestError("connection refused"),
        ), patch("search_assistant.main.create_openai_client", return_value=openai_client):
            async with _mod.lifespan(_mod.app):
                assert _mod.search_store.enabled is False
                ask = await client.post("/api/ask", json={"query": "who founded tesla"})
                recent = await client.get("/api/recent-searches")

        assert ask.status_code == 200
        assert len(ask.json()["results"]) == 2
        assert recent.status_code == 200
        assert recent.json() == {"searches": []}
        openai_client.close.assert_awaited_once()


# -----------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------


class TestErrorHandling:

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_500(self, client):
        with patch("search_assistant.main.search_web", AsyncMock(side_effect=RuntimeError("boom"))):
            resp = await client.post("/api/ask", json={"query": "hello"})

        assert resp.status_code == 500
        assert resp.json()["detail"] == "Failed to process request"


# -----------------------------------------------------------------------
# Recent searches
# -----------------------------------------------------------------------


class TestRecentSearches:

    @pytest.mark.asyncio
    async def test_lists_searches_without_answers(self, client, mock_store):
        from search_assistant.models import SearchRecord

        mock_store.recent_searches.return_value = [
            SearchRecord(id="2", query="newer", created_at="2025-01-02T00:00:00+00:00"),
            SearchRecord(id="1", query="older", created_at="2025-01-01T00:00:00+00:00"),
        ]

        resp = await client.get("/api/recent-searches")

        assert resp.status_code == 200
        assert resp.json() == {"searches": [
            {"id": "2", "query": "newer", "created_at": "2025-01-02T00:00:00+00:00"},
            {"id": "1", "query": "older", "created_at": "2025-01-01T00:00:00+00:00"},
        ]}

    @pytest.mark.asyncio
    async def test_unreachable_store_returns_empty_list(self, client, monkeypatch):
        import search_assistant.main as _mod

        with patch("search_assistant.search_store._get_cosmos_client") as mock_client:
            container = MagicMock()
            container.query_items.side_effect = CosmosHttpResponseError(message="unreachable")
            mock_client.return_value.get_database_client.return_value.get_container_client.return_value = container
            monkeypatch.setattr(_mod, "search_store", SearchStore())

        resp = await client.get("/api/recent-searches")

        assert resp.status_code == 200
        assert resp.json() == {"searches": []}
