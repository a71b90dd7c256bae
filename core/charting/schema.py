"""Schema types for Grafana panel rendering.

Panel descriptions arrive as untrusted JSON-compatible mappings. The pipeline
converts them into the frozen dataclasses below before any chart configuration
is produced, so the mapping and theming stages never look at raw input.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final, Literal

PanelKind = Literal["timeseries", "graph", "stat", "gauge", "table"]

ChartType = Literal["line", "doughnut", "bar"]

Theme = Literal["light", "dark"]

QueryHandler = Callable[[str, datetime, datetime, int], Awaitable[Any]]
"""Async callable executing `(expr, start, end, step)` against a backend."""

DEFAULT_REF_ID: Final[str] = "A"
DEFAULT_THEME: Final[Theme] = "light"
DEFAULT_REFRESH_INTERVAL_MS: Final[int] = 30_000
DEFAULT_LOOKBACK_MS: Final[int] = 60 * 60 * 1000
DEFAULT_STEP: Final[int] = 60


@dataclass(frozen=True, slots=True)
class QueryTarget:
    """A single PromQL query attached to a panel.

    Args:
        expr: PromQL expression.
        ref_id: Grafana reference identifier for the query.
        legend_format: Optional legend template such as `{{instance}}`.
        interval: Optional sampling interval string such as `30s`.
    """

    expr: str
    ref_id: str = DEFAULT_REF_ID
    legend_format: str | None = None
    interval: str | None = None


def _grid_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True, slots=True)
class GridPos:
    """Dashboard grid position for a panel (Grafana `gridPos`)."""

    x: int | None = None
    y: int | None = None
    w: int | None = None
    h: int | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> GridPos:
        """Build a GridPos; values that are not integers (or integer strings) become None."""

        return cls(
            x=_grid_int(raw.get("x")),
            y=_grid_int(raw.get("y")),
            w=_grid_int(raw.get("w")),
            h=_grid_int(raw.get("h")),
        )

    def as_json(self) -> dict[str, int | None]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(frozen=True, slots=True)
class NormalizedPanel:
    """Validated, defaulted internal form of a panel description.

    Args:
        id: Grafana panel identifier (non-zero).
        title: Panel title.
        kind: Supported panel kind; unknown input kinds are stored as `timeseries`.
        targets: Query targets carrying an expression, in input order.
        unit: Optional unit from `fieldConfig.defaults.unit`.
        display_name: Optional display name from `fieldConfig.defaults.displayName`.
        grid_pos: Optional dashboard grid position.
    """

    id: int
    title: str
    kind: PanelKind
    targets: tuple[QueryTarget, ...] = ()
    unit: str | None = None
    display_name: str | None = None
    grid_pos: GridPos | None = None


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Absolute time window in epoch milliseconds.

    Args:
        start: Window start instant (ms).
        end: Window end instant (ms).
        step: Optional query resolution step in seconds.
    """

    start: int
    end: int
    step: int | None = None


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Options bundle controlling how a panel is rendered.

    Args:
        prometheus_url: Prometheus backend base URL.
        query_handler: Optional async callable replacing direct backend queries.
        time_range: Optional absolute time window; defaults to the last hour.
        theme: Palette name applied to the chart configuration.
        refresh_interval: Advisory refresh interval in milliseconds. The
            embedding UI schedules refreshes; the pipeline only carries it.
    """

    prometheus_url: str
    query_handler: QueryHandler | None = None
    time_range: TimeRange | None = None
    theme: Theme = DEFAULT_THEME
    refresh_interval: int | None = DEFAULT_REFRESH_INTERVAL_MS
