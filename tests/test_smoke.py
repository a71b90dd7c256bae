"""Minimal smoke tests for the project scaffolding."""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.unit


def test_renderer_imports() -> None:
    """Import the renderer and verify the public entry points exist."""

    from core.charting.renderer import PanelRenderer, render_panel

    assert callable(PanelRenderer)
    assert callable(render_panel)


def test_django_project_loads() -> None:
    """Import and initialize Django to verify settings are valid."""

    import os

    import django
    from django.conf import settings

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "panelrender.settings")
    django.setup()
    assert "core.apps.CoreConfig" in settings.INSTALLED_APPS


def test_app_ready_registers_default_chart_types() -> None:
    """Chart types and the datasource plugin are registered at startup."""

    from core.charting.datasource import DATASOURCE_PLUGIN_ID
    from core.charting.engine import default_registry

    for chart_type in ("line", "bar", "doughnut"):
        assert default_registry.has_chart_type(chart_type)
    assert default_registry.has_plugin(DATASOURCE_PLUGIN_ID)
