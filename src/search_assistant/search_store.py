"""Search history store backed by Azure Cosmos DB.

Every completed search is inserted once into the ``searches`` container as
``{id, query, answer, created_at}``; records are never updated or deleted.
The only read is the "recent searches" listing.

Neither operation raises: a failed write is logged and dropped, a failed
read returns an empty list.  Without ``COSMOS_ENDPOINT`` the store runs in
degraded mode (writes skipped, listing empty).
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from azure.cosmos import CosmosClient
from azure.identity import DefaultAzureCredential

from search_assistant.config import config
from search_assistant.models import SearchRecord

logger = logging.getLogger(__name__)

RECENT_SEARCHES_LIMIT = 5

_RECENT_QUERY = (
    "SELECT c.id, c.query, c.created_at FROM c "
    "ORDER BY c.created_at DESC OFFSET 0 LIMIT @limit"
)


def _get_cosmos_client() -> CosmosClient | None:
    """Create a Cosmos client, or ``None`` when no endpoint is configured.

    Uses the account key when ``COSMOS_KEY`` is set, otherwise
    ``DefaultAzureCredential``.
    """
    if not config.cosmos_endpoint:
        return None
    credential = config.cosmos_key or DefaultAzureCredential()
    return CosmosClient(config.cosmos_endpoint, credential=credential)


class SearchStore:
    """Insert-only search history."""

    def __init__(self) -> None:
        self._container = None
        # CosmosClient() contacts the account on construction
        try:
            client = _get_cosmos_client()
            if client is None:
                logger.info("Cosmos DB not configured — search history disabled")
                return
            database = client.get_database_client(config.cosmos_database_name)
            self._container = database.get_container_client(config.cosmos_container_name)
        except Exception:
            logger.error(
                "Could not connect to Cosmos DB at %s — search history disabled",
                config.cosmos_endpoint,
                exc_info=True,
            )
            return
        logger.info(
            "Search history: %s/%s",
            config.cosmos_database_name,
            config.cosmos_container_name,
        )

    @property
    def enabled(self) -> bool:
        return self._container is not None

    def save_search(self, query: str, answer: str) -> None:
        """Insert a search record. Failures are logged, never raised."""
        if self._container is None:
            logger.debug("Search history disabled — not saving '%s'", query[:80])
            return

        record = {
            "id": uuid.uuid4().hex,
            "query": query,
            "answer": answer,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._container.create_item(body=record)
        except Exception:
            logger.error("Failed to save search '%s'", query[:80], exc_info=True)
            return
        logger.info("Saved search %s", record["id"])

    def recent_searches(self, limit: int = RECENT_SEARCHES_LIMIT) -> list[SearchRecord]:
        """Return up to *limit* records, newest first. Empty on any failure."""
        if self._container is None:
            return []

        try:
            items = self._container.query_items(
                query=_RECENT_QUERY,
                parameters=[{"name": "@limit", "value": limit}],
                enable_cross_partition_query=True,
            )
            records = [
                SearchRecord(
                    id=item["id"],
                    query=item["query"],
                    created_at=item["created_at"],
                )
                for item in items
            ]
        except Exception:
            logger.error("Failed to load recent searches", exc_info=True)
            return []

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]
