"""Chart extraction — keyword gate plus a strict-JSON Chat Completions call.

``needs_visualization`` is a plain substring test against a fixed keyword
list; false positives just cost one extra bounded call.  The extraction
call asks the model for real numbers found in the answer and returns
``chart_type = "none"`` otherwise.  Any failure degrades to "no chart".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from search_assistant.config import config
from search_assistant.models import ChartData, ChartDatum

logger = logging.getLogger(__name__)

CHART_KEYWORDS = (
    "compare", "comparison", "vs", "versus", "top", "ranking", "largest",
    "biggest", "most", "best", "market cap", "gdp", "population",
    "stock price", "trend", "trends", "growth", "market share", "percentage",
    "statistics", "stats", "data", "revenue", "sales", "show me", "list",
)

MIN_DATA_POINTS = 3
MAX_DATA_POINTS = 15
CHART_DESCRIPTION = "Data visualization based on search results"

_SYSTEM_PROMPT = """\
Extract REAL numerical data from the web search results for visualization.
CRITICAL: ONLY include data if you find actual numbers in the search results \
— no estimates, approximations, or made-up data.

If real numerical data is found:
- Set chart_type to "bar" (comparisons/rankings), "line" (trends over time) \
  or "pie" (shares/percentages)
- Provide a descriptive title
- Include the data source
- Extract 3-15 real data points

If NO real numerical data is found:
- Set chart_type to "none"
- Set title and data_source to empty strings
- Set data_points to an empty array
"""

_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "visualization_extraction",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "chart_type": {
                    "type": "string",
                    "enum": ["bar", "line", "pie", "none"],
                    "description": "Chart type or 'none' if no real data found",
                },
                "title": {
                    "type": "string",
                    "description": "Chart title or empty string if no data",
                },
                "data_source": {
                    "type": "string",
                    "description": "Where the data came from or empty string if no data",
                },
                "data_points": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string", "description": "Label for this data point"},
                            "value": {"type": "number", "description": "Actual numerical value"},
                        },
                        "required": ["name", "value"],
                        "additionalProperties": False,
                    },
                    "description": "Real data points, empty if no data found",
                },
            },
            "required": ["chart_type", "title", "data_source", "data_points"],
            "additionalProperties": False,
        },
    },
}


class DataPoint(BaseModel):
    name: str
    value: float


class VisualizationExtraction(BaseModel):
    """Shape of the strict JSON object returned by the extraction call."""

    chart_type: Literal["bar", "line", "pie", "none"]
    title: str
    data_source: str
    data_points: list[DataPoint]


def needs_visualization(query: str) -> bool:
    """Return True if *query* contains any chart keyword (case-insensitive)."""
    lowered = query.lower()
    return any(keyword in lowered for keyword in CHART_KEYWORDS)


def to_chart_data(extraction: VisualizationExtraction) -> ChartData | None:
    """Apply the acceptance rule: a real chart type and at least 3 points."""
    if extraction.chart_type == "none" or len(extraction.data_points) < MIN_DATA_POINTS:
        return None
    return ChartData(
        type=extraction.chart_type,
        title=extraction.title,
        description=CHART_DESCRIPTION,
        data_source=extraction.data_source or None,
        data=[
            ChartDatum(name=p.name, value=p.value)
            for p in extraction.data_points[:MAX_DATA_POINTS]
        ],
    )


async def extract_visualization(client: AsyncOpenAI, query: str, answer: str) -> ChartData | None:
    """Ask the model for chart data grounded in *answer*.

    Returns ``None`` on timeout, provider error, empty or malformed output,
    or when the result fails the acceptance rule.
    """
    user_content = (
        f"Web search results: {answer[:config.visualization_max_chars]}\n\n"
        f"Query: {query}\n\n"
        "Extract real numerical data for visualization if it exists."
    )
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=config.extraction_model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": user_content},
                ],
                response_format=_RESPONSE_FORMAT,
            ),
            timeout=config.visualization_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Visualization extraction timed out after %.1fs",
            config.visualization_timeout_seconds,
        )
        return None
    except OpenAIError as e:
        logger.warning("Visualization extraction failed: %s", e)
        return None

    content = response.choices[0].message.content if response.choices else None
    if not content:
        logger.info("Visualization extraction returned no content")
        return None

    try:
        extraction = VisualizationExtraction.model_validate_json(content)
    except ValidationError as e:
        logger.warning("Could not parse visualization data: %s", e)
        return None

    chart = to_chart_data(extraction)
    if chart is None:
        logger.info(
            "No chart for '%s' (chart_type=%s, %d points)",
            query[:80],
            extraction.chart_type,
            len(extraction.data_points),
        )
    else:
        logger.info("Extracted %s chart: %s (%d points)", chart.type, chart.title, len(chart.data))
    return chart
