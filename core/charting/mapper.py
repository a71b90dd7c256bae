"""Mapping of normalized panels onto Chart.js configuration objects.

The produced configuration mirrors what Chart.js and
`chartjs-plugin-datasource-prometheus` expect: datasets start empty and are
filled by the datasource plugin when the chart is drawn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final

from .datasource import DATASOURCE_PLUGIN_ID, DEFAULT_BASE_URL, PROMETHEUS_DATASOURCE_PLUGIN
from .schema import (
    DEFAULT_LOOKBACK_MS,
    DEFAULT_STEP,
    ChartType,
    NormalizedPanel,
    PanelKind,
    QueryHandler,
    RenderOptions,
)

logger = logging.getLogger(__name__)

CHART_TYPE_MAPPING: Final[dict[PanelKind, ChartType]] = {
    "timeseries": "line",
    "graph": "line",
    "stat": "doughnut",
    "gauge": "doughnut",
    # Tables need a dedicated renderer; a bar chart is the closest stand-in.
    "table": "bar",
}

DEFAULT_AXIS_TITLE: Final[str] = "Value"

TIME_DISPLAY_FORMATS: Final[dict[str, str]] = {
    "minute": "HH:mm",
    "hour": "HH:mm",
    "day": "MMM dd",
}


@dataclass(frozen=True, slots=True)
class BoundQueryHandler:
    """A custom query handler bound to a single PromQL expression.

    The datasource plugin calls it with only the time window and step.

    Args:
        expr: PromQL expression passed to the handler.
        handler: Async callable `(expr, start, end, step) -> payload`.
    """

    expr: str
    handler: QueryHandler

    async def __call__(self, start: datetime, end: datetime, step: int) -> Any:
        try:
            return await self.handler(self.expr, start, end, step)
        except Exception:
            logger.exception("Error executing custom query handler for %r", self.expr)
            raise


def make_query_handler(expr: str, handler: QueryHandler | None) -> BoundQueryHandler | str:
    """Return the datasource query: a bound handler, or the raw expression."""

    if handler is None:
        return expr
    return BoundQueryHandler(expr=expr, handler=handler)


def get_chart_type(kind: PanelKind) -> ChartType:
    """Return the Chart.js chart type used for a panel kind."""

    return CHART_TYPE_MAPPING.get(kind, "line")


def resolve_time_range(options: RenderOptions) -> dict[str, Any]:
    """Build the datasource `timeRange` section.

    An explicit time range is emitted as an absolute window. Without one, the
    window is relative to draw time: one hour back (`start=-3600000`) up to
    now (`end=0`).

    Args:
        options: Render options.

    Returns:
        Dict with `type`, `start`, `end`, and `step`.
    """

    time_range = options.time_range
    if time_range is None:
        return {"type": "relative", "start": -DEFAULT_LOOKBACK_MS, "end": 0, "step": DEFAULT_STEP}
    return {
        "type": "absolute",
        "start": time_range.start,
        "end": time_range.end,
        "step": time_range.step if time_range.step is not None else DEFAULT_STEP,
    }


def get_scales_config(panel: NormalizedPanel, chart_type: ChartType) -> dict[str, Any]:
    """Return the `options.scales` section for a chart type."""

    axis_title = panel.unit or DEFAULT_AXIS_TITLE
    if chart_type == "line":
        return {
            "x": {
                "type": "time",
                "time": {"displayFormats": dict(TIME_DISPLAY_FORMATS)},
                "title": {"display": True, "text": "Time"},
            },
            "y": {
                "title": {"display": True, "text": axis_title},
                "beginAtZero": False,
            },
        }

    return {
        "y": {
            "beginAtZero": True,
            "title": {"display": True, "text": axis_title},
        },
    }


def map_to_config(panel: NormalizedPanel, options: RenderOptions) -> dict[str, Any]:
    """Map a normalized panel to a Chart.js configuration.

    Only the first query target is bound to the datasource; further targets
    are not drawn.

    Args:
        panel: Normalized panel.
        options: Render options providing the backend and time window.

    Returns:
        Chart.js configuration dict owned by the caller.
    """

    chart_type = get_chart_type(panel.kind)
    first = panel.targets[0] if panel.targets else None
    if len(panel.targets) > 1:
        logger.debug("Panel %s has %d targets; only refId %s is drawn.", panel.id, len(panel.targets), first.ref_id)

    datasource: dict[str, Any] = {
        "prometheus": {"endpoint": options.prometheus_url, "baseURL": DEFAULT_BASE_URL},
        "query": make_query_handler(first.expr if first else "", options.query_handler),
        "timeRange": resolve_time_range(options),
    }
    if first is not None and first.legend_format:
        datasource["legendFormat"] = first.legend_format

    return {
        "type": chart_type,
        "data": {"datasets": []},
        "plugins": [PROMETHEUS_DATASOURCE_PLUGIN],
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "plugins": {
                "title": {"display": True, "text": panel.title},
                "legend": {"display": True, "position": "bottom"},
                DATASOURCE_PLUGIN_ID: datasource,
            },
            "scales": get_scales_config(panel, chart_type),
        },
    }
