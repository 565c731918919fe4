"""
Time parameter normalization for Prometheus queries.

Decides instant vs. range and converts time expressions into the epoch
seconds the Prometheus HTTP API expects.
"""

from __future__ import annotations

import re
import time as _time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from grafana_mcp_gateway.models import QueryRequest

DEFAULT_STEP = "1m"

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31536000,
}

# now, now-1h, now+30m, now-7d
_NOW_RELATIVE = re.compile(r"^now(?:\s*([+-])\s*(\d+)([smhdwy]))?$")
# bare lookback: 30s, 5m, 1h, 7d
_LOOKBACK = re.compile(r"^(\d+)([smhdwy])$")


class QueryMode(str, Enum):
    INSTANT = "instant"
    RANGE = "range"


@dataclass(frozen=True)
class NormalizedQuery:
    mode: QueryMode
    params: dict[str, Any]

    @property
    def path(self) -> str:
        if self.mode is QueryMode.RANGE:
            return "/api/v1/query_range"
        return "/api/v1/query"


def classify(request: QueryRequest) -> QueryMode:
    """Range iff both start and end are present."""
    return QueryMode.RANGE if request.is_range else QueryMode.INSTANT


def _format_epoch(seconds: float) -> str:
    return str(round(seconds, 3))


def to_backend_time(
    value: Union[str, datetime, None],
    now: Optional[float] = None,
) -> Optional[str]:
    """
    Convert a time expression to Prometheus format.

    Supports:
    - datetime objects
    - Unix timestamps (passed through)
    - Grafana relative expressions: "now", "now-1h", "now+5m"
    - Bare lookbacks meaning "ago": "30m", "1h", "7d"
    - ISO 8601 (naive values are taken as UTC)

    Anything else is returned unchanged for Prometheus to accept or reject.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return _format_epoch(value.timestamp())

    text = str(value).strip()
    if not text:
        return None
    current = _time.time() if now is None else now

    try:
        float(text)
        return text
    except ValueError:
        pass

    lowered = text.lower()
    match = _NOW_RELATIVE.match(lowered)
    if match:
        sign, amount, unit = match.groups()
        if sign is None:
            return _format_epoch(current)
        offset = int(amount) * _UNIT_SECONDS[unit]
        return _format_epoch(current - offset if sign == "-" else current + offset)

    match = _LOOKBACK.match(lowered)
    if match:
        amount, unit = match.groups()
        return _format_epoch(current - int(amount) * _UNIT_SECONDS[unit])

    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError):
        return text
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _format_epoch(parsed.timestamp())


def normalize(
    request: QueryRequest,
    default_step: str = DEFAULT_STEP,
    now: Optional[float] = None,
) -> NormalizedQuery:
    """
    Build the Prometheus API parameters for a request.

    ``end < start`` is not checked; Prometheus reports it.
    """
    mode = classify(request)
    params: dict[str, Any] = {"query": request.query}

    if mode is QueryMode.RANGE:
        params["start"] = to_backend_time(request.start, now=now)
        params["end"] = to_backend_time(request.end, now=now)
        params["step"] = request.step or default_step
    elif request.time:
        params["time"] = to_backend_time(request.time, now=now)

    return NormalizedQuery(mode=mode, params=params)
