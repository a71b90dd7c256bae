"""Grafana panel to Chart.js rendering pipeline.

Panels flow through three stages before a chart is mounted on a canvas:
`normalizer` validates the panel JSON, `mapper` produces the Chart.js
configuration with the Prometheus datasource section, and `theme` applies the
light/dark palette. `renderer.PanelRenderer` runs the stages and owns the
resulting chart handle.
"""
