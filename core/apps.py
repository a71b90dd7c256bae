"""App configuration for the core Django app."""

from __future__ import annotations

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuration for the `core` app.

    Chart types and the Prometheus datasource plugin are registered here, once,
    when Django starts.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"

    def ready(self) -> None:
        from core.charting.engine import register_defaults

        register_defaults()
