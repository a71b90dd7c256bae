"""Prometheus datasource plugin.

This is the server-side counterpart of `chartjs-plugin-datasource-prometheus`:
given the `datasource-prometheus` section of a chart configuration it either
calls the bound custom query handler or queries the Prometheus HTTP API, then
turns the matrix result into Chart.js datasets.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Final

import httpx

from .errors import DatasourceError
from .schema import DEFAULT_LOOKBACK_MS, DEFAULT_STEP

logger = logging.getLogger(__name__)

DATASOURCE_PLUGIN_ID: Final[str] = "datasource-prometheus"
DEFAULT_BASE_URL: Final[str] = "/api/v1"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0

_LEGEND_TOKEN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)


def resolve_window(time_range: Mapping[str, Any] | None, *, now_ms: int | None = None) -> tuple[datetime, datetime, int]:
    """Resolve a datasource `timeRange` section into absolute instants.

    Relative windows carry millisecond offsets from "now"; absolute windows
    carry epoch milliseconds.

    Args:
        time_range: `timeRange` section of the datasource configuration.
        now_ms: Override for the current time (epoch ms).

    Returns:
        Tuple of `(start, end, step)`.
    """

    section = time_range or {}
    step = int(section.get("step") or DEFAULT_STEP)
    if section.get("type") == "absolute":
        return _to_datetime(int(section["start"])), _to_datetime(int(section["end"])), step

    now = _now_ms() if now_ms is None else now_ms
    start = now + int(section.get("start", -DEFAULT_LOOKBACK_MS))
    end = now + int(section.get("end", 0))
    return _to_datetime(start), _to_datetime(end), step


def query_range_url(endpoint: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Join the Prometheus endpoint and base URL into a `query_range` URL."""

    parts = [endpoint.rstrip("/"), base_url.strip("/"), "query_range"]
    return "/".join(part for part in parts if part)


def format_legend(metric: Mapping[str, str], legend_format: str | None) -> str:
    """Render a Grafana legend template (`{{label}}`) against series labels.

    Without a template the label is `name{k="v", ...}` in Prometheus notation.
    """

    if legend_format:
        return _LEGEND_TOKEN.sub(lambda match: str(metric.get(match.group(1), "")), legend_format)

    name = metric.get("__name__", "")
    labels = ", ".join(f'{key}="{value}"' for key, value in sorted(metric.items()) if key != "__name__")
    if not labels:
        return name or "{}"
    return f"{name}{{{labels}}}"


def parse_query_result(payload: Any, *, legend_format: str | None = None) -> list[dict[str, Any]]:
    """Convert a Prometheus query response into Chart.js datasets.

    Args:
        payload: Decoded Prometheus JSON response.
        legend_format: Optional legend template from the query target.

    Returns:
        One dataset per series, with `{x: epoch_ms, y: float}` points.

    Raises:
        DatasourceError: When the payload is not a successful matrix/vector response.
    """

    if not isinstance(payload, Mapping) or payload.get("status") != "success":
        error = payload.get("error") if isinstance(payload, Mapping) else None
        raise DatasourceError(f"Prometheus query failed: {error or 'unexpected response'}")

    data = payload.get("data") or {}
    result_type = data.get("resultType")
    datasets: list[dict[str, Any]] = []
    for series in data.get("result") or []:
        metric = series.get("metric") or {}
        if result_type == "matrix":
            samples = series.get("values") or []
        elif result_type == "vector":
            samples = [series["value"]] if series.get("value") else []
        else:
            raise DatasourceError(f"Unsupported Prometheus resultType: {result_type!r}")
        points = [{"x": int(float(ts) * 1000), "y": float(value)} for ts, value in samples]
        points.sort(key=lambda point: point["x"])
        datasets.append({"label": format_legend(metric, legend_format), "data": points})
    return datasets


class PrometheusDatasourcePlugin:
    """Loads chart data for configurations carrying a `datasource-prometheus` section."""

    id = DATASOURCE_PLUGIN_ID

    def __repr__(self) -> str:
        return f"<PrometheusDatasourcePlugin id={self.id!r}>"

    # Stateless: copies of a configuration share the plugin instance.
    def __copy__(self) -> PrometheusDatasourcePlugin:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> PrometheusDatasourcePlugin:
        return self

    async def fetch(
        self,
        section: Mapping[str, Any],
        *,
        client: httpx.AsyncClient | None = None,
        now_ms: int | None = None,
    ) -> Any:
        """Execute the configured query and return the raw response payload.

        Args:
            section: The `datasource-prometheus` configuration section.
            client: Optional HTTP client; one is created when omitted.
            now_ms: Override for the current time (epoch ms).

        Returns:
            Decoded response payload.

        Raises:
            DatasourceError: When the HTTP request fails.
        """

        start, end, step = resolve_window(section.get("timeRange"), now_ms=now_ms)
        query = section.get("query")
        if callable(query):
            return await query(start, end, step)

        prometheus = section.get("prometheus") or {}
        url = query_range_url(str(prometheus.get("endpoint") or ""), str(prometheus.get("baseURL") or DEFAULT_BASE_URL))
        params = {"query": query or "", "start": start.timestamp(), "end": end.timestamp(), "step": step}

        if client is None:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS) as owned:
                return await self._get(owned, url, params)
        return await self._get(client, url, params)

    async def _get(self, client: httpx.AsyncClient, url: str, params: dict[str, Any]) -> Any:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Prometheus request to %s failed: %s", url, exc)
            raise DatasourceError(f"Prometheus request failed: {exc}") from exc
        return response.json()

    async def load(
        self,
        config: dict[str, Any],
        *,
        client: httpx.AsyncClient | None = None,
        now_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch data for `config` and store it as `config["data"]["datasets"]`.

        Args:
            config: Chart.js configuration carrying this plugin's section.
            client: Optional HTTP client.
            now_ms: Override for the current time (epoch ms).

        Returns:
            The datasets written into the configuration.
        """

        section = (config.get("options") or {}).get("plugins", {}).get(self.id)
        if not section:
            logger.debug("Configuration has no %s section; nothing to load.", self.id)
            return []

        payload = await self.fetch(section, client=client, now_ms=now_ms)
        datasets = parse_query_result(payload, legend_format=section.get("legendFormat"))
        config.setdefault("data", {})["datasets"] = datasets
        return datasets


PROMETHEUS_DATASOURCE_PLUGIN: Final[PrometheusDatasourcePlugin] = PrometheusDatasourcePlugin()
