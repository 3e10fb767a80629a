"""Search assistant configuration — loads environment variables and validates required settings.

Usage:
    from search_assistant.config import config
    print(config.search_model)
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _find_env_file() -> Path | None:
    """Search for .env file at the project root, then the working directory."""
    project_root = Path(__file__).resolve().parent.parent.parent  # repo root (src layout)
    candidates = [
        project_root / ".env",
        Path.cwd() / ".env",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    # OpenAI — web search + structured extraction
    openai_api_key: str
    openai_base_url: str | None
    search_model: str
    extraction_model: str
    search_context_size: str

    # Outbound call bounds (seconds)
    search_timeout_seconds: float
    visualization_timeout_seconds: float

    # Max answer characters sent to the extraction call
    visualization_max_chars: int

    # Cosmos DB — search history
    cosmos_endpoint: str
    cosmos_key: str
    cosmos_database_name: str
    cosmos_container_name: str

    # API base URL used by the Chainlit UI
    api_endpoint: str
    port: int


def _load_config() -> Config:
    """Load and validate configuration from environment."""
    env_file = _find_env_file()
    if env_file:
        load_dotenv(env_file, override=False)

    required = {
        "OPENAI_API_KEY": "openai_api_key",
    }

    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(
            f"Error: Missing required environment variables: {', '.join(missing)}\n"
            f"Copy .env.sample to .env and fill in values.",
            file=sys.stderr,
        )
        sys.exit(1)

    return Config(
        openai_api_key=os.environ["OPENAI_API_KEY"],
        openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
        search_model=os.environ.get("SEARCH_MODEL", "gpt-4o-mini"),
        extraction_model=os.environ.get("EXTRACTION_MODEL", "gpt-4o-mini"),
        search_context_size=os.environ.get("SEARCH_CONTEXT_SIZE", "low"),
        search_timeout_seconds=float(os.environ.get("SEARCH_TIMEOUT_SECONDS", "15")),
        visualization_timeout_seconds=float(os.environ.get("VISUALIZATION_TIMEOUT_SECONDS", "8")),
        visualization_max_chars=int(os.environ.get("VISUALIZATION_MAX_CHARS", "6000")),
        cosmos_endpoint=os.environ.get("COSMOS_ENDPOINT", ""),
        cosmos_key=os.environ.get("COSMOS_KEY", ""),
        cosmos_database_name=os.environ.get("COSMOS_DATABASE_NAME", "search-assistant"),
        cosmos_container_name=os.environ.get("COSMOS_CONTAINER_NAME", "searches"),
        api_endpoint=os.environ.get("API_ENDPOINT", "http://localhost:8000"),
        port=int(os.environ.get("PORT", "8000")),
    )


# Singleton — imported as `from search_assistant.config import config`
config = _load_config()
