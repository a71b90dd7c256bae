"""Tests for the PanelRenderer lifecycle (render, update, destroy)."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from core.charting.datasource import DATASOURCE_PLUGIN_ID
from core.charting.engine import CanvasSurface, ChartJsChart, ChartJsEngine, ChartRegistry
from core.charting.errors import (
    ChartInitializationError,
    InvalidPanelError,
    MissingBackendUrlError,
    SurfaceInvalidError,
)
from core.charting.renderer import PanelRenderer, RendererState, render_panel

pytestmark = pytest.mark.unit


class RecordingEngine:
    """Chart engine double recording every handle it creates."""

    def __init__(self) -> None:
        self.handles: list[RecordingHandle] = []

    def create(self, surface: CanvasSurface, config: dict[str, Any]) -> RecordingHandle:
        handle = RecordingHandle(config)
        self.handles.append(handle)
        return handle


class RecordingHandle:
    def __init__(self, config: dict[str, Any]) -> None:
        self.config = config
        self.updates = 0
        self.destroyed = 0

    def update(self) -> None:
        self.updates += 1

    def destroy(self) -> None:
        self.destroyed += 1


class FailingEngine:
    def create(self, surface: CanvasSurface, config: dict[str, Any]) -> Any:
        raise OSError("canvas context lost")


@pytest.mark.parametrize("bad_surface", [None, "cpu-canvas", CanvasSurface(element_id=""), CanvasSurface("  ")])
def test_construction_rejects_invalid_surface(bad_surface, render_options) -> None:
    """Reject surfaces that are missing or have a blank element id."""

    with pytest.raises(SurfaceInvalidError):
        PanelRenderer(bad_surface, render_options)


@pytest.mark.parametrize("options", [{}, {"prometheusUrl": ""}, {"theme": "dark"}])
def test_construction_requires_backend_url(surface, options) -> None:
    """Fail fast when no Prometheus URL is configured."""

    with pytest.raises(MissingBackendUrlError, match="Prometheus URL is required"):
        PanelRenderer(surface, options)


def test_render_runs_pipeline_and_mounts_chart(surface, cpu_panel, render_options, engine) -> None:
    """Render the CPU scenario: line chart, time axis, "Value" y axis, query "up"."""

    renderer = PanelRenderer(surface, render_options, engine=engine)
    result = renderer.render(cpu_panel)

    assert renderer.state is RendererState.RENDERED
    assert isinstance(result.chart, ChartJsChart)
    assert surface.chart_id == result.chart.id
    config = result.config
    assert config["type"] == "line"
    assert config["options"]["scales"]["x"]["type"] == "time"
    assert config["options"]["scales"]["y"]["title"]["text"] == "Value"
    assert config["options"]["plugins"][DATASOURCE_PLUGIN_ID]["query"] == "up"
    assert config["options"]["backgroundColor"] == "#ffffff"


def test_render_wraps_invalid_panel(surface, render_options, engine) -> None:
    """Wrap normalizer failures in ChartInitializationError."""

    renderer = PanelRenderer(surface, render_options, engine=engine)

    with pytest.raises(ChartInitializationError) as excinfo:
        renderer.render({"id": 1, "title": "No type"})

    assert isinstance(excinfo.value.__cause__, InvalidPanelError)
    assert renderer.state is RendererState.UNINITIALIZED


def test_render_wraps_engine_failure(surface, cpu_panel, render_options) -> None:
    """Wrap engine construction failures in ChartInitializationError."""

    renderer = PanelRenderer(surface, render_options, engine=FailingEngine())

    with pytest.raises(ChartInitializationError, match="canvas context lost") as excinfo:
        renderer.render(cpu_panel)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_render_requires_registered_chart_types(surface, cpu_panel, render_options) -> None:
    """An engine over an empty registry refuses to mount charts."""

    renderer = PanelRenderer(surface, render_options, engine=ChartJsEngine(registry=ChartRegistry()))

    with pytest.raises(ChartInitializationError, match="register_defaults"):
        renderer.render(cpu_panel)


def test_table_panel_renders_as_bar(surface, render_options, engine) -> None:
    """Render table panels with the bar chart fallback."""

    result = render_panel(
        surface,
        {"id": 5, "title": "Targets", "type": "table", "targets": [{"expr": "up"}]},
        render_options,
        engine=engine,
    )

    assert result.config["type"] == "bar"


def test_rerender_destroys_previous_chart(surface, cpu_panel, render_options) -> None:
    """Destroy the previous handle once the replacement is mounted."""

    engine = RecordingEngine()
    renderer = PanelRenderer(surface, render_options, engine=engine)

    renderer.render(cpu_panel)
    renderer.render({**cpu_panel, "title": "CPU v2"})

    first, second = engine.handles
    assert first.destroyed == 1
    assert second.destroyed == 0
    assert renderer.chart is second


def test_destroy_before_render_is_a_noop(surface, render_options) -> None:
    """Allow destroy before any render without raising."""

    renderer = PanelRenderer(surface, render_options)

    renderer.destroy()
    renderer.destroy()

    assert renderer.state is RendererState.UNINITIALIZED


def test_destroy_is_idempotent(surface, cpu_panel, render_options) -> None:
    """Tear the chart down once no matter how often destroy is called."""

    engine = RecordingEngine()
    renderer = PanelRenderer(surface, render_options, engine=engine)
    result = renderer.render(cpu_panel)

    result.destroy()
    renderer.destroy()

    assert engine.handles[0].destroyed == 1
    assert renderer.chart is None
    assert renderer.config is None


def test_update_before_render_is_a_noop(surface, render_options, caplog) -> None:
    """Warn and keep options unchanged when nothing is rendered."""

    renderer = PanelRenderer(surface, render_options)

    with caplog.at_level(logging.WARNING, logger="core.charting.renderer"):
        renderer.update({"theme": "dark"})

    assert renderer.chart is None
    assert renderer.options.theme == "light"
    assert any("No chart instance to update" in record.getMessage() for record in caplog.records)


def test_update_merges_options_and_rethemes_live_config(surface, cpu_panel, render_options) -> None:
    """Update swaps the rebuilt configuration into the mounted dict and redraws."""

    engine = RecordingEngine()
    renderer = PanelRenderer(surface, render_options, engine=engine)
    result = renderer.render(cpu_panel)
    live = result.config

    renderer.update({"theme": "dark", "timeRange": {"start": 1000, "end": 2000}})

    handle = engine.handles[0]
    assert handle.updates == 1
    assert handle.config is live
    assert live["options"]["backgroundColor"] == "#1f1f1f"
    assert live["options"]["plugins"][DATASOURCE_PLUGIN_ID]["timeRange"]["type"] == "absolute"
    assert renderer.options.theme == "dark"
    assert renderer.options.prometheus_url == "http://x"


def test_update_without_options_just_redraws(surface, cpu_panel, render_options) -> None:
    """Redraw with an unchanged configuration when no options are given."""

    engine = RecordingEngine()
    renderer = PanelRenderer(surface, render_options, engine=engine)
    renderer.render(cpu_panel)
    before = dict(renderer.config)

    renderer.update()

    assert engine.handles[0].updates == 1
    assert renderer.config == before


def test_result_update_delegates_to_renderer(surface, cpu_panel, render_options, engine) -> None:
    """Route RendererResult.update through the owning renderer."""

    renderer = PanelRenderer(surface, render_options, engine=engine)
    result = renderer.render(cpu_panel)

    result.update({"theme": "dark"})

    assert result.chart.revision == 1
    assert result.config["options"]["plugins"]["title"]["color"] == "#ffffff"


def test_failed_rerender_keeps_previous_chart(surface, cpu_panel, render_options, engine) -> None:
    """Leave the mounted chart untouched when a re-render fails."""

    renderer = PanelRenderer(surface, render_options, engine=engine)
    first = renderer.render(cpu_panel).chart

    with pytest.raises(ChartInitializationError):
        renderer.render({"id": 1, "title": "Broken"})

    assert renderer.state is RendererState.RENDERED
    assert renderer.chart is first
    assert first.destroyed is False
    assert surface.chart_id == first.id


def test_rerender_leaves_new_chart_attached(surface, cpu_panel, render_options, engine) -> None:
    """Attach the surface to the replacement chart after a re-render."""

    renderer = PanelRenderer(surface, render_options, engine=engine)
    first = renderer.render(cpu_panel).chart
    second = renderer.render({**cpu_panel, "title": "CPU v2"}).chart

    assert first.destroyed is True
    assert surface.chart_id == second.id


def test_update_rejects_clearing_backend_url(surface, cpu_panel, render_options) -> None:
    """Refuse an update that would drop the Prometheus URL."""

    engine = RecordingEngine()
    renderer = PanelRenderer(surface, render_options, engine=engine)
    renderer.render(cpu_panel)

    with pytest.raises(MissingBackendUrlError):
        renderer.update({"prometheusUrl": ""})

    assert renderer.options.prometheus_url == "http://x"
    assert engine.handles[0].updates == 0
