"""Chart engine collaborator used by the panel renderer.

The browser draws the chart; on the server a chart "engine" binds a
configuration to a drawing surface and hands out a handle exposing `update()`
and `destroy()`. `ChartJsEngine` is the default engine: its handles keep the
configuration attached to a canvas surface, load data through the
configuration's plugins, and serialize to the payload the page passes to
`new Chart(canvas, config)`.

Chart types and plugins must be registered once at process startup through
`register_defaults()`; `CoreConfig.ready()` does this for the Django project.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Final, Protocol

import httpx

from .codec import encode_chart_config
from .datasource import PROMETHEUS_DATASOURCE_PLUGIN
from .errors import ChartInitializationError

logger = logging.getLogger(__name__)

DEFAULT_CHART_TYPES: Final[tuple[str, ...]] = ("line", "bar", "doughnut")


@dataclass(slots=True)
class CanvasSurface:
    """A drawing surface (canvas element) a single chart is mounted on.

    Args:
        element_id: DOM id of the canvas element.
        width: Optional CSS width.
        height: Optional CSS height.
    """

    element_id: str
    width: str | None = None
    height: str | None = None
    chart_id: str | None = field(default=None, compare=False)

    def is_valid(self) -> bool:
        return bool(self.element_id and self.element_id.strip())


class ChartHandle(Protocol):
    """Handle to a live chart instance."""

    config: dict[str, Any]

    def update(self) -> None: ...

    def destroy(self) -> None: ...


class ChartEngine(Protocol):
    """Factory creating chart handles for a surface and configuration."""

    def create(self, surface: CanvasSurface, config: dict[str, Any]) -> ChartHandle: ...


class ChartRegistry:
    """Registered chart types and plugins."""

    def __init__(self) -> None:
        self._chart_types: set[str] = set()
        self._plugins: dict[str, Any] = {}

    def register_chart_type(self, *chart_types: str) -> None:
        self._chart_types.update(chart_types)

    def register_plugin(self, plugin: Any) -> None:
        self._plugins[plugin.id] = plugin

    def has_chart_type(self, chart_type: str) -> bool:
        return chart_type in self._chart_types

    def has_plugin(self, plugin_id: str) -> bool:
        return plugin_id in self._plugins

    @property
    def is_empty(self) -> bool:
        return not self._chart_types and not self._plugins

    def clear(self) -> None:
        self._chart_types.clear()
        self._plugins.clear()


default_registry = ChartRegistry()


def register_defaults(registry: ChartRegistry | None = None) -> ChartRegistry:
    """Register the built-in chart types and the Prometheus datasource plugin.

    Safe to call more than once.

    Args:
        registry: Registry to populate; defaults to the process-wide registry.

    Returns:
        The populated registry.
    """

    target = default_registry if registry is None else registry
    target.register_chart_type(*DEFAULT_CHART_TYPES)
    target.register_plugin(PROMETHEUS_DATASOURCE_PLUGIN)
    return target


class ChartJsChart:
    """A chart configuration mounted on a canvas surface."""

    def __init__(self, surface: CanvasSurface, config: dict[str, Any], *, timeout: float) -> None:
        self.id = f"chart-{uuid.uuid4().hex[:12]}"
        self.surface = surface
        self.config = config
        self.revision = 0
        self.destroyed = False
        self._timeout = timeout
        surface.chart_id = self.id

    def __repr__(self) -> str:
        return f"<ChartJsChart id={self.id!r} surface={self.surface.element_id!r} revision={self.revision}>"

    def update(self) -> None:
        """Mark the chart for redraw with its current configuration."""

        if self.destroyed:
            logger.warning("Ignoring update on destroyed chart %s", self.id)
            return
        self.revision += 1

    def destroy(self) -> None:
        """Detach the chart from its surface."""

        if self.destroyed:
            return
        self.destroyed = True
        if self.surface.chart_id == self.id:
            self.surface.chart_id = None

    async def refresh(self, *, client: httpx.AsyncClient | None = None) -> list[dict[str, Any]]:
        """Load data through every plugin exposing `load` and redraw.

        Args:
            client: Optional HTTP client shared across plugin requests.

        Returns:
            The datasets now stored on the configuration.
        """

        if self.destroyed:
            logger.warning("Ignoring refresh on destroyed chart %s", self.id)
            return []

        if client is None:
            async with httpx.AsyncClient(timeout=self._timeout) as owned:
                await self._load_plugins(owned)
        else:
            await self._load_plugins(client)
        self.update()
        return list(self.config.get("data", {}).get("datasets", []))

    async def _load_plugins(self, client: httpx.AsyncClient) -> None:
        for plugin in self.config.get("plugins") or []:
            load = getattr(plugin, "load", None)
            if load is not None:
                await load(self.config, client=client)

    def as_json(self) -> dict[str, Any]:
        """Return the JSON-safe payload handed to the browser."""

        return {
            "id": self.id,
            "canvas": self.surface.element_id,
            "revision": self.revision,
            "config": encode_chart_config(self.config),
        }


class ChartJsEngine:
    """Default chart engine producing `ChartJsChart` handles."""

    def __init__(self, *, registry: ChartRegistry | None = None, timeout: float = 10.0) -> None:
        self.registry = default_registry if registry is None else registry
        self.timeout = timeout

    def create(self, surface: CanvasSurface, config: dict[str, Any]) -> ChartJsChart:
        """Mount `config` on `surface`.

        Raises:
            ChartInitializationError: When the chart type or a plugin was never
                registered.
        """

        chart_type = config.get("type")
        if not self.registry.has_chart_type(str(chart_type)):
            raise ChartInitializationError(
                f'"{chart_type}" is not a registered chart type; call register_defaults() at startup.'
            )
        for plugin in config.get("plugins") or []:
            if not self.registry.has_plugin(plugin.id):
                raise ChartInitializationError(f'Plugin "{plugin.id}" is not registered.')
        return ChartJsChart(surface, config, timeout=self.timeout)
