"""Panel renderer: runs the normalize → map → theme pipeline and owns the chart.

A renderer is bound to one drawing surface. It holds at most one live chart
handle and moves between two states:

- `UNINITIALIZED`: no chart (after construction or `destroy()`).
- `RENDERED`: a chart handle exists (after `render()`).

`render()` on a rendered instance mounts the new chart first and then destroys
the previous handle. A failed re-render leaves the old chart in place; a
successful one never leaves two charts on the surface. `update()` re-runs the
map and theme stages from the retained normalized panel and swaps the result
into the live configuration, so theme and time-window changes always apply.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from .engine import CanvasSurface, ChartEngine, ChartHandle, ChartJsEngine
from .errors import ChartInitializationError, MissingBackendUrlError, SurfaceInvalidError
from .mapper import map_to_config
from .normalizer import normalize_panel
from .options import build_render_options, merge_render_options
from .schema import NormalizedPanel, RenderOptions
from .theme import apply_theme

logger = logging.getLogger(__name__)

SURFACE_INVALID_MESSAGE: Final[str] = "Canvas element not found or invalid"
MISSING_BACKEND_URL_MESSAGE: Final[str] = "Prometheus URL is required"
CHART_INIT_FAILED_MESSAGE: Final[str] = "Failed to initialize Chart.js instance"


class RendererState(str, Enum):
    """Lifecycle state of a PanelRenderer."""

    UNINITIALIZED = "uninitialized"
    RENDERED = "rendered"


@dataclass(frozen=True, slots=True)
class RendererResult:
    """Handle returned by `PanelRenderer.render`.

    Args:
        chart: The live chart handle.
        config: The themed chart configuration mounted on the surface.
        destroy: Tears down the chart.
        update: Merges partial options and redraws.
    """

    chart: ChartHandle
    config: dict[str, Any]
    destroy: Callable[[], None]
    update: Callable[..., None]


def build_chart_config(panel: NormalizedPanel, options: RenderOptions) -> dict[str, Any]:
    """Map a normalized panel and apply the configured theme."""

    return apply_theme(map_to_config(panel, options), options.theme)


class PanelRenderer:
    """Renders Grafana panels onto a single canvas surface."""

    def __init__(
        self,
        surface: CanvasSurface,
        options: Mapping[str, Any] | RenderOptions,
        *,
        engine: ChartEngine | None = None,
    ) -> None:
        if not isinstance(surface, CanvasSurface) or not surface.is_valid():
            raise SurfaceInvalidError(SURFACE_INVALID_MESSAGE)

        resolved = build_render_options(options)
        if not resolved.prometheus_url:
            raise MissingBackendUrlError(MISSING_BACKEND_URL_MESSAGE)

        self.surface = surface
        self.options = resolved
        self.engine: ChartEngine = engine if engine is not None else ChartJsEngine()
        self.chart: ChartHandle | None = None
        self.panel: NormalizedPanel | None = None

    @property
    def state(self) -> RendererState:
        return RendererState.RENDERED if self.chart is not None else RendererState.UNINITIALIZED

    @property
    def config(self) -> dict[str, Any] | None:
        return self.chart.config if self.chart is not None else None

    def render(self, panel: Any) -> RendererResult:
        """Render a Grafana panel description onto the surface.

        Args:
            panel: Panel description (JSON-compatible mapping).

        Returns:
            RendererResult exposing the chart and its lifecycle controls.

        Raises:
            ChartInitializationError: When any pipeline stage or the engine
                fails; the original exception is chained as `__cause__` and a
                previously rendered chart stays mounted.
        """

        try:
            normalized = normalize_panel(panel)
            config = build_chart_config(normalized, self.options)
            chart = self.engine.create(self.surface, config)
        except Exception as exc:
            raise ChartInitializationError(f"{CHART_INIT_FAILED_MESSAGE}: {exc}") from exc

        if self.chart is not None:
            logger.info("Replacing existing chart on %s.", self.surface.element_id)
            self.chart.destroy()
        self.panel = normalized
        self.chart = chart
        logger.debug("Rendered panel %s (%s) on %s", normalized.id, config["type"], self.surface.element_id)
        return RendererResult(chart=chart, config=chart.config, destroy=self.destroy, update=self.update)

    def update(self, new_options: Mapping[str, Any] | None = None) -> None:
        """Merge partial options and redraw the existing chart.

        A no-op (with a warning) when nothing has been rendered.

        Args:
            new_options: Partial camelCase option mapping.

        Raises:
            MissingBackendUrlError: When the merge would clear the backend URL;
                the current options are kept.
        """

        if self.chart is None or self.panel is None:
            logger.warning("No chart instance to update")
            return

        merged = merge_render_options(self.options, new_options)
        if not merged.prometheus_url:
            raise MissingBackendUrlError(MISSING_BACKEND_URL_MESSAGE)
        self.options = merged
        rebuilt = build_chart_config(self.panel, self.options)
        self.chart.config.clear()
        self.chart.config.update(rebuilt)
        self.chart.update()

    def destroy(self) -> None:
        """Destroy the chart instance; repeated calls are no-ops."""

        if self.chart is None:
            logger.debug("No chart instance to destroy on %s", self.surface.element_id)
            return
        self.chart.destroy()
        self.chart = None
        self.panel = None


def render_panel(
    surface: CanvasSurface,
    panel: Any,
    options: Mapping[str, Any] | RenderOptions,
    *,
    engine: ChartEngine | None = None,
) -> RendererResult:
    """Construct a renderer for `surface` and render `panel` in one call."""

    return PanelRenderer(surface, options, engine=engine).render(panel)
