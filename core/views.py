"""JSON views translating Grafana panels into Chart.js configurations."""

from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.charting.dashboard import DashboardRenderer, parse_dashboard
from core.charting.engine import CanvasSurface
from core.charting.errors import ChartInitializationError, PanelRenderError
from core.charting.renderer import PanelRenderer

logger = logging.getLogger(__name__)

REQUEST_OPTION_KEYS = ("prometheusUrl", "theme", "timeRange", "refreshInterval")


def _default_options() -> dict[str, Any]:
    """Return renderer options from `settings.PANEL_RENDERER`."""

    config = getattr(settings, "PANEL_RENDERER", {})
    return {
        "prometheusUrl": config.get("PROMETHEUS_URL") or "",
        "theme": config.get("THEME", "light"),
        "refreshInterval": config.get("REFRESH_INTERVAL"),
    }


def _request_options(body: dict[str, Any]) -> dict[str, Any]:
    options = _default_options()
    overrides = body.get("options")
    if isinstance(overrides, dict):
        options.update({key: overrides[key] for key in REQUEST_OPTION_KEYS if key in overrides})
    return options


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    try:
        body = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _error(message: str, *, status: int = 400) -> JsonResponse:
    return JsonResponse({"error": message}, status=status)


@csrf_exempt
@require_POST
def panel_config(request: HttpRequest) -> JsonResponse:
    """Return the themed Chart.js configuration for a posted panel.

    Body: `{"panel": {...}, "canvas": "cpu", "options": {...}}`.
    """

    body = _json_body(request)
    if body is None:
        return _error("Request body must be a JSON object.")

    panel = body.get("panel")
    panel_id = panel.get("id") if isinstance(panel, dict) else None
    canvas = str(body.get("canvas") or f"panel-{panel_id or 'chart'}")
    try:
        renderer = PanelRenderer(CanvasSurface(element_id=canvas), _request_options(body))
        result = renderer.render(panel)
    except ChartInitializationError as exc:
        logger.info("Rejected panel: %s", exc)
        return _error(str(exc))
    except (PanelRenderError, ValueError) as exc:
        return _error(str(exc))

    chart = result.chart
    payload = chart.as_json() if hasattr(chart, "as_json") else {"config": result.config}
    renderer.destroy()
    return JsonResponse(payload)


@csrf_exempt
@require_POST
def dashboard_config(request: HttpRequest) -> JsonResponse:
    """Return grid layout plus per-panel configurations for a posted dashboard.

    Body: `{"dashboard": {"panels": [...], "time": {...}}, "options": {...}}`.
    Panels that fail to render are reported with an `error` entry.
    """

    body = _json_body(request)
    if body is None:
        return _error("Request body must be a JSON object.")

    try:
        dashboard = parse_dashboard(body.get("dashboard"))
        renderer = DashboardRenderer(_request_options(body))
        entries = renderer.render_all(dashboard)
    except (PanelRenderError, ValueError) as exc:
        return _error(str(exc))

    panels: list[dict[str, Any]] = []
    for entry in entries:
        item: dict[str, Any] = {"panelId": entry.panel_id, "placement": entry.placement}
        if entry.result is not None and hasattr(entry.result.chart, "as_json"):
            item.update(entry.result.chart.as_json())
        else:
            item["error"] = entry.error
        panels.append(item)

    columns, rows = renderer.layout()
    renderer.destroy_all()
    return JsonResponse({"title": dashboard.title, "columns": columns, "rows": rows, "panels": panels})
