"""Exception types raised by the panel rendering pipeline."""

from __future__ import annotations


class PanelRenderError(Exception):
    """Base class for panel rendering failures."""


class InvalidPanelError(PanelRenderError, ValueError):
    """Raised when a panel description is malformed or incomplete."""


class SurfaceInvalidError(PanelRenderError, TypeError):
    """Raised when a renderer is constructed without a usable drawing surface."""


class MissingBackendUrlError(PanelRenderError, ValueError):
    """Raised when render options do not name a Prometheus backend URL."""


class ChartInitializationError(PanelRenderError, RuntimeError):
    """Raised when the normalize/map/theme/instantiate chain fails.

    The underlying failure is always chained as `__cause__`.
    """


class DatasourceError(PanelRenderError, RuntimeError):
    """Raised when the Prometheus datasource cannot produce chart data."""
