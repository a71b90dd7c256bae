"""Dashboard-level helpers: shared time window, grid layout, one renderer per panel."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Final

from .engine import CanvasSurface, ChartEngine
from .errors import ChartInitializationError, InvalidPanelError
from .options import build_render_options
from .renderer import PanelRenderer, RendererResult
from .schema import DEFAULT_LOOKBACK_MS, GridPos, RenderOptions, TimeRange

logger = logging.getLogger(__name__)

GRID_MIN_COLUMNS: Final[int] = 24
GRID_MIN_ROWS: Final[int] = 8
DEFAULT_PANEL_WIDTH: Final[int] = 12
DEFAULT_PANEL_HEIGHT: Final[int] = 8

_RELATIVE_TIME = re.compile(r"^now-(\d+)([smhdw])$")
_UNIT_MS: Final[dict[str, int]] = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
}


@dataclass(frozen=True, slots=True)
class DashboardTime:
    """Grafana dashboard `time` block (`from`/`to` are relative expressions)."""

    from_: str = "now-1h"
    to: str = "now"
    step: int | None = None


@dataclass(frozen=True, slots=True)
class Dashboard:
    """An ordered collection of panel descriptions sharing a time window."""

    title: str | None
    panels: tuple[Mapping[str, Any], ...]
    time: DashboardTime | None = None


@dataclass(slots=True)
class DashboardPanel:
    """A rendered (or failed) dashboard panel."""

    panel_id: Any
    surface: CanvasSurface
    placement: dict[str, str]
    renderer: PanelRenderer
    grid_pos: GridPos | None = None
    result: RendererResult | None = None
    error: str | None = None


def parse_dashboard(payload: Any) -> Dashboard:
    """Parse a Grafana dashboard description.

    Args:
        payload: Dashboard JSON mapping with `panels` and optional `time`.

    Returns:
        Dashboard with panel descriptions kept as-is for the renderer.

    Raises:
        InvalidPanelError: When the payload is not a mapping.
    """

    if not isinstance(payload, Mapping):
        raise InvalidPanelError("Invalid Grafana dashboard JSON provided")

    panels_raw = payload.get("panels")
    panels = tuple(panels_raw) if isinstance(panels_raw, list) else ()

    time_raw = payload.get("time")
    dashboard_time = None
    if isinstance(time_raw, Mapping):
        step = time_raw.get("step")
        dashboard_time = DashboardTime(
            from_=str(time_raw.get("from") or "now-1h"),
            to=str(time_raw.get("to") or "now"),
            step=int(step) if step is not None else None,
        )
    return Dashboard(title=payload.get("title"), panels=panels, time=dashboard_time)


def _relative_offset_ms(expression: str) -> int:
    match = _RELATIVE_TIME.match(expression.strip())
    if match is None:
        logger.warning("Unsupported relative time %r; using the last hour.", expression)
        return DEFAULT_LOOKBACK_MS
    return int(match.group(1)) * _UNIT_MS[match.group(2)]


def resolve_dashboard_time_range(dashboard_time: DashboardTime, *, now_ms: int | None = None) -> TimeRange:
    """Resolve a relative dashboard time window against the current time.

    Args:
        dashboard_time: Dashboard `time` block.
        now_ms: Override for the current time (epoch ms).

    Returns:
        Absolute TimeRange ending now.
    """

    now = int(time.time() * 1000) if now_ms is None else now_ms
    return TimeRange(start=now - _relative_offset_ms(dashboard_time.from_), end=now, step=dashboard_time.step)


def _grid_pos(panel: Mapping[str, Any]) -> GridPos:
    raw = panel.get("gridPos")
    return GridPos.from_mapping(raw) if isinstance(raw, Mapping) else GridPos()


def grid_dimensions(grid_positions: Iterable[GridPos | None]) -> tuple[int, int]:
    """Return `(columns, rows)` needed to fit every panel on the grid."""

    columns = GRID_MIN_COLUMNS
    rows = GRID_MIN_ROWS
    for pos in grid_positions:
        pos = pos or GridPos()
        columns = max(columns, (pos.x or 0) + (pos.w or DEFAULT_PANEL_WIDTH))
        rows = max(rows, (pos.y or 0) + (pos.h or DEFAULT_PANEL_HEIGHT))
    return columns, rows


def panel_placement(grid_pos: GridPos | None) -> dict[str, str]:
    """Return CSS grid `gridColumn`/`gridRow` lines for a panel (1-based)."""

    pos = grid_pos or GridPos()
    x = pos.x or 0
    y = pos.y or 0
    w = pos.w or DEFAULT_PANEL_WIDTH
    h = pos.h or DEFAULT_PANEL_HEIGHT
    return {"gridColumn": f"{x + 1} / {x + w + 1}", "gridRow": f"{y + 1} / {y + h + 1}"}


@dataclass(slots=True)
class DashboardRenderer:
    """Renders every panel of a dashboard with its own PanelRenderer.

    A panel that fails to render is recorded with its error; the remaining
    panels still render.
    """

    options: Mapping[str, Any] | RenderOptions
    engine: ChartEngine | None = None
    panels: list[DashboardPanel] = field(default_factory=list)

    def _panel_options(self, dashboard: Dashboard, now_ms: int | None) -> RenderOptions:
        options = build_render_options(self.options)
        if options.time_range is None and dashboard.time is not None:
            options = replace(options, time_range=resolve_dashboard_time_range(dashboard.time, now_ms=now_ms))
        return options

    def render_all(self, dashboard: Dashboard, *, now_ms: int | None = None) -> list[DashboardPanel]:
        """Render all panels of `dashboard`, replacing any previous render."""

        self.destroy_all()
        options = self._panel_options(dashboard, now_ms)
        for index, panel in enumerate(dashboard.panels):
            panel_id = panel.get("id") if isinstance(panel, Mapping) else None
            surface = CanvasSurface(element_id=f"panel-{panel_id if panel_id is not None else index}")
            renderer = PanelRenderer(surface, options, engine=self.engine)
            grid_pos = _grid_pos(panel) if isinstance(panel, Mapping) else None
            entry = DashboardPanel(
                panel_id=panel_id,
                surface=surface,
                placement=panel_placement(grid_pos),
                renderer=renderer,
                grid_pos=grid_pos,
            )
            try:
                entry.result = renderer.render(panel)
            except ChartInitializationError as exc:
                logger.warning("Panel %s failed to render: %s", panel_id, exc)
                entry.error = str(exc)
            self.panels.append(entry)
        return self.panels

    def layout(self) -> tuple[int, int]:
        """Return `(columns, rows)` of the grid holding the rendered panels."""

        return grid_dimensions(entry.grid_pos for entry in self.panels)

    def destroy_all(self) -> None:
        for entry in self.panels:
            entry.renderer.destroy()
        self.panels.clear()
