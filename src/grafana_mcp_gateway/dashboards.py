"""Helpers for walking Grafana dashboard models."""

from __future__ import annotations

from typing import Any, Iterator, Optional


def iter_panels(dashboard: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every panel, including those nested in collapsed rows."""
    for panel in dashboard.get("panels") or []:
        yield panel
        # Collapsed rows carry their children in their own 'panels' list.
        for child in panel.get("panels") or []:
            yield child


def find_panel(dashboard: dict[str, Any], panel_id: int) -> Optional[dict[str, Any]]:
    for panel in iter_panels(dashboard):
        if panel.get("id") == panel_id:
            return panel
    return None


def panel_info(panel: dict[str, Any]) -> dict[str, Any]:
    info = {
        "id": panel.get("id"),
        "title": panel.get("title", ""),
        "type": panel.get("type", ""),
    }
    if panel.get("description"):
        info["description"] = panel["description"]
    return info


def summarize_dashboard(payload: dict[str, Any]) -> dict[str, Any]:
    """Compact view of a /api/dashboards/uid response for agents."""
    dashboard = payload.get("dashboard", {})
    meta = payload.get("meta", {})

    panels = []
    for panel in iter_panels(dashboard):
        if panel.get("type") == "row":
            continue
        entry = panel_info(panel)
        entry["targets"] = [
            {"refId": t.get("refId"), "expr": t.get("expr") or t.get("query")}
            for t in panel.get("targets") or []
        ]
        panels.append(entry)

    return {
        "id": dashboard.get("id"),
        "uid": dashboard.get("uid"),
        "title": dashboard.get("title"),
        "description": dashboard.get("description") or "",
        "tags": dashboard.get("tags") or [],
        "url": meta.get("url"),
        "folder": meta.get("folderTitle"),
        "version": dashboard.get("version"),
        "time": dashboard.get("time"),
        "panel_count": len(panels),
        "panels": panels,
    }


def summarize_search_hit(hit: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": hit.get("id"),
        "uid": hit.get("uid"),
        "title": hit.get("title"),
        "url": hit.get("url"),
        "tags": hit.get("tags") or [],
        "folder": hit.get("folderTitle"),
    }
