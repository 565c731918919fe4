"""
Human-readable summaries of Prometheus query results.

The summary is a lossy, best-effort rendering; the structured result
returned next to it stays the source of truth.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import ValidationError

from grafana_mcp_gateway.models import (
    MatrixData,
    QueryResult,
    ScalarData,
    StringData,
    VectorData,
)

NO_DATA_MESSAGE = "No data found for this query"
MISSING_VALUE = "N/A"

GIB = 2**30
MIB = 2**20


def _series_values(result: QueryResult) -> list[str]:
    """One display value per series, in result order."""
    data = result.data
    if data is None:
        return []
    if isinstance(data, VectorData):
        return [series.value[1] for series in data.result]
    if isinstance(data, MatrixData):
        # Range series are summarized by their latest sample.
        return [
            series.values[-1][1] if series.values else MISSING_VALUE
            for series in data.result
        ]
    if isinstance(data, (ScalarData, StringData)):
        return [data.result[1]]
    return []


def _scale_memory(value: str) -> Optional[str]:
    try:
        number = float(value)
    except ValueError:
        return None
    if number > GIB:
        return f"{number / GIB:.2f}GB"
    if number > MIB:
        return f"{number / MIB:.2f}MB"
    if 0 < number < 100:
        return f"{number:.2f}%"
    return None


def _coerce(result: Union[QueryResult, dict[str, Any], None]) -> Optional[QueryResult]:
    if result is None or isinstance(result, QueryResult):
        return result
    try:
        return QueryResult.model_validate(result)
    except ValidationError:
        return None


def summarize(
    result: Union[QueryResult, dict[str, Any], None],
    hint: Optional[str] = None,
) -> str:
    """
    Summarize a query result in one line.

    Matrix results are summarized by each series' latest sample rather
    than reported as N/A.

    Args:
        result: Typed result or raw Prometheus envelope
        hint: Free-text description; "memory" enables byte/percent scaling

    Returns:
        Summary string; never raises
    """
    parsed = _coerce(result)
    values = _series_values(parsed) if parsed is not None else []

    if not values:
        return NO_DATA_MESSAGE

    if len(values) > 1:
        return f"Found {len(values)} results: {', '.join(values)}"

    value = values[0]
    if hint and "memory" in hint.lower():
        scaled = _scale_memory(value)
        if scaled is not None:
            return scaled

    if hint:
        return f"{value} ({hint})"
    return value
