"""Shared data models for the search API and the UI.

Field names follow the wire format (``sourceId``, ``visualizationData``,
``dataSource``) through aliases; Python code uses the snake_case names.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SearchResult(_WireModel):
    """A web source cited by the generated answer."""

    title: str
    url: str
    snippet: str = ""
    source_id: int = Field(alias="sourceId")


class ChartDatum(BaseModel):
    """One named numeric point. Extra keys are passed through to the chart."""

    model_config = ConfigDict(extra="allow")

    name: str
    value: float


class ChartData(_WireModel):
    """Chart payload extracted from an answer. Never persisted."""

    type: Literal["bar", "line", "pie"]
    title: str
    description: str | None = None
    data_source: str | None = Field(default=None, alias="dataSource")
    data: list[ChartDatum]
    x_axis_label: str | None = Field(default=None, alias="xAxisLabel")
    y_axis_label: str | None = Field(default=None, alias="yAxisLabel")
    colors: list[str] | None = None


class AskRequest(BaseModel):
    """Request body for ``POST /api/ask``."""

    query: str | None = None


class AskResponse(_WireModel):
    """Response body for ``POST /api/ask``."""

    results: list[SearchResult] = []
    answer: str
    visualization_data: ChartData | None = Field(default=None, alias="visualizationData")


class SearchRecord(BaseModel):
    """A persisted query/answer pair. ``answer`` is omitted from listings."""

    id: str
    query: str
    answer: str | None = None
    created_at: str


class RecentSearchesResponse(BaseModel):
    searches: list[SearchRecord] = []


class HealthResponse(BaseModel):
    status: str
