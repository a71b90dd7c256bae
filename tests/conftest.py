"""Pytest fixtures shared across panel rendering tests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from core.charting.engine import CanvasSurface, ChartJsEngine, ChartRegistry, register_defaults


@pytest.fixture
def registry() -> ChartRegistry:
    """Return a registry populated with the built-in chart types and plugins."""

    return register_defaults(ChartRegistry())


@pytest.fixture
def engine(registry: ChartRegistry) -> ChartJsEngine:
    """Return a ChartJsEngine bound to the test registry."""

    return ChartJsEngine(registry=registry)


@pytest.fixture
def surface() -> CanvasSurface:
    """Return a fresh canvas surface."""

    return CanvasSurface(element_id="cpu-canvas")


@pytest.fixture
def cpu_panel() -> dict[str, Any]:
    """Return a minimal timeseries panel querying `up`."""

    return {"id": 1, "title": "CPU", "type": "timeseries", "targets": [{"expr": "up", "refId": "A"}]}


@pytest.fixture
def render_options() -> dict[str, Any]:
    """Return the minimal renderer options."""

    return {"prometheusUrl": "http://x", "theme": "light"}


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    The suite is runnable by intent:
    - `unit`: pure, fast tests with no Django request cycle or HTTP client.
    - `integration`: tests touching Django views or HTTP transports.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
