"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("api/panels/config/", views.panel_config, name="panel_config"),
    path("api/dashboards/config/", views.dashboard_config, name="dashboard_config"),
]
