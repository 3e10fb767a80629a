"""Search Assistant — Chainlit entry point.

The UI is a thin Chainlit client over the search API (``POST /api/ask``,
``GET /api/recent-searches``).  It renders the answer with citation links,
a numbered source list and, when the API returns chart data, a Plotly chart.

Run with::

    chainlit run src/search_assistant/ui.py
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

import chainlit as cl
import httpx
import plotly.graph_objects as go
from pydantic import ValidationError

from search_assistant.config import config
from search_assistant.models import AskResponse, ChartData, RecentSearchesResponse, SearchResult

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
for _name in ("httpx", "watchfiles"):
    logging.getLogger(_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Something went wrong. Please try again."

DEFAULT_COLORS = [
    "#60a5fa", "#34d399", "#fbbf24", "#f472b6", "#a78bfa",
    "#fb7185", "#22d3ee", "#fcd34d", "#86efac", "#c084fc",
]

# Matches numbered citation markers like [1], [12]
_CITATION_MARKER_RE = re.compile(r"\[(\d+)\]")

# Room for the search call, the chart call and the API's own overhead
_API_TIMEOUT = config.search_timeout_seconds + config.visualization_timeout_seconds + 10


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def _source_element_name(source_id: int) -> str:
    return f"Source #{source_id}"


def _link_citation_markers(text: str, results: list[SearchResult]) -> str:
    """Rewrite ``[n]`` to ``Source #n`` for every marker with a matching source.

    Chainlit auto-links element names that appear literally in the message
    content, so the rewritten marker becomes a link to the source element.
    Markers without a matching source stay as plain ``[n]`` text.
    """
    known = {r.source_id for r in results}

    def _replace(m: re.Match) -> str:
        source_id = int(m.group(1))
        if source_id in known:
            return _source_element_name(source_id)
        return m.group(0)

    return _CITATION_MARKER_RE.sub(_replace, text)


def _hostname(url: str) -> str:
    return urlparse(url).hostname or url


def _build_source_content(result: SearchResult) -> str:
    """Build Markdown content for a source side-panel element."""
    lines = [
        f"### {_source_element_name(result.source_id)} — {result.title}",
        f"[{_hostname(result.url)}]({result.url})",
    ]
    if result.snippet:
        lines += ["", f"> {result.snippet}"]
    return "\n".join(lines)


def _build_source_list(results: list[SearchResult]) -> str:
    """Numbered Markdown source list; empty string when there are no sources."""
    if not results:
        return ""
    lines = ["**Sources**", ""]
    for r in results:
        lines.append(f"{r.source_id}. [{r.title}]({r.url}) — *{_hostname(r.url)}*")
        if r.snippet:
            lines.append(f"   {r.snippet}")
    return "\n".join(lines)


def _build_chart_figure(chart: ChartData) -> go.Figure:
    """Build a Plotly bar / line / pie figure from chart data."""
    colors = chart.colors or DEFAULT_COLORS
    names = [d.name for d in chart.data]
    values = [d.value for d in chart.data]

    if chart.type == "bar":
        trace = go.Bar(x=names, y=values, marker_color=colors[0], name="value")
    elif chart.type == "line":
        trace = go.Scatter(
            x=names,
            y=values,
            mode="lines+markers",
            line={"color": colors[0], "width": 3},
            name="value",
        )
    else:
        trace = go.Pie(
            labels=names,
            values=values,
            marker={"colors": [colors[i % len(colors)] for i in range(len(values))]},
            textinfo="label+percent",
        )

    subtitle: list[str] = []
    if chart.description:
        subtitle.append(chart.description)
    if chart.data_source:
        subtitle.append(f"Source: {chart.data_source}")
    title = chart.title
    if subtitle:
        title = f"{title}<br><sup>{' · '.join(subtitle)}</sup>"

    fig = go.Figure(data=[trace])
    fig.update_layout(title=title, template="plotly_dark")
    if chart.type != "pie":
        fig.update_layout(xaxis_title=chart.x_axis_label, yaxis_title=chart.y_axis_label)
    return fig


def _render_answer(payload: AskResponse) -> tuple[str, list]:
    """Turn an API payload into message content plus Chainlit elements."""
    content = _link_citation_markers(payload.answer, payload.results)
    source_list = _build_source_list(payload.results)
    if source_list:
        content = f"{content}\n\n{source_list}"

    elements: list = [
        cl.Text(
            name=_source_element_name(r.source_id),
            content=_build_source_content(r),
            display="side",
        )
        for r in payload.results
    ]
    if payload.visualization_data is not None:
        elements.append(cl.Plotly(
            name="chart",
            figure=_build_chart_figure(payload.visualization_data),
            display="inline",
        ))
    return content, elements


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

def _create_api_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=config.api_endpoint.rstrip("/"), timeout=_API_TIMEOUT)


async def _ask(query: str) -> AskResponse | None:
    """Call ``POST /api/ask``. Returns ``None`` on any HTTP or payload error."""
    try:
        async with _create_api_client() as client:
            resp = await client.post("/api/ask", json={"query": query})
            resp.raise_for_status()
            return AskResponse.model_validate(resp.json())
    except (httpx.HTTPError, ValidationError, ValueError) as e:
        logger.error("Search API call failed: %s", e)
        return None


async def _recent_queries() -> list[str]:
    """Queries of the most recent searches; empty when the API is unreachable."""
    try:
        async with _create_api_client() as client:
            resp = await client.get("/api/recent-searches")
            resp.raise_for_status()
            payload = RecentSearchesResponse.model_validate(resp.json())
    except (httpx.HTTPError, ValidationError, ValueError) as e:
        logger.warning("Could not load recent searches: %s", e)
        return []
    return [s.query for s in payload.searches]


# ---------------------------------------------------------------------------
# Chainlit lifecycle hooks
# ---------------------------------------------------------------------------

_DEFAULT_STARTERS = [
    ("Tech giants", "Compare the market cap of the top 5 tech companies"),
    ("Population", "Show me population trends in Japan"),
    ("Explain", "How do solid-state batteries work?"),
]


@cl.set_starters
async def set_starters() -> list[cl.Starter]:
    """Offer the recent searches as starters, or fixed examples if none."""
    recent = await _recent_queries()
    if recent:
        return [cl.Starter(label=q[:40], message=q) for q in recent]
    return [cl.Starter(label=label, message=message) for label, message in _DEFAULT_STARTERS]


@cl.on_message
async def on_message(message: cl.Message) -> None:
    """Answer the user's query through the search API."""
    msg = cl.Message(content="")
    await msg.send()  # renders the bubble with the thinking indicator

    payload = await _ask(message.content)
    if payload is None:
        msg.content = ERROR_MESSAGE
        await msg.update()
        return

    content, elements = _render_answer(payload)
    msg.content = content
    if elements:
        msg.elements = elements  # type: ignore[assignment]
        logger.info("Attached %d elements to message", len(elements))
    await msg.update()
