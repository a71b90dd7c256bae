"""Parsing and merging of renderer options.

Embedding code passes options using the camelCase keys of the JavaScript
renderer (`prometheusUrl`, `queryHandler`, `timeRange`, `theme`,
`refreshInterval`). These helpers translate them into `RenderOptions`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Final

from .schema import DEFAULT_REFRESH_INTERVAL_MS, DEFAULT_THEME, RenderOptions, TimeRange

logger = logging.getLogger(__name__)

OPTION_FIELDS: Final[dict[str, str]] = {
    "prometheusUrl": "prometheus_url",
    "queryHandler": "query_handler",
    "timeRange": "time_range",
    "theme": "theme",
    "refreshInterval": "refresh_interval",
}


def parse_time_range(raw: Mapping[str, Any] | TimeRange | None) -> TimeRange | None:
    """Parse a `{start, end, step?}` mapping into a TimeRange.

    Args:
        raw: Mapping with epoch-millisecond `start`/`end` and optional `step`.

    Returns:
        TimeRange, or None when `raw` is None.

    Raises:
        ValueError: When `start` or `end` is missing or not numeric.
    """

    if raw is None or isinstance(raw, TimeRange):
        return raw
    try:
        start = int(raw["start"])
        end = int(raw["end"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError("timeRange requires numeric `start` and `end` values.") from exc
    step_raw = raw.get("step")
    return TimeRange(start=start, end=end, step=int(step_raw) if step_raw is not None else None)


def _option_values(raw: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in raw.items():
        field = OPTION_FIELDS.get(key)
        if field is None and key in OPTION_FIELDS.values():
            field = key
        if field is None:
            logger.debug("Ignoring unknown renderer option %r", key)
            continue
        if field == "time_range":
            value = parse_time_range(value)
        values[field] = value
    return values


def build_render_options(raw: Mapping[str, Any] | RenderOptions) -> RenderOptions:
    """Build RenderOptions from a camelCase option mapping.

    Missing `theme` and `refreshInterval` take their defaults. The backend URL
    is not validated here; the renderer rejects a missing one.

    Args:
        raw: Option mapping (or an existing RenderOptions, returned unchanged).

    Returns:
        RenderOptions instance.
    """

    if isinstance(raw, RenderOptions):
        return raw
    values = _option_values(raw)
    values.setdefault("prometheus_url", "")
    if values.get("theme") is None:
        values["theme"] = DEFAULT_THEME
    if values.get("refresh_interval") is None:
        values["refresh_interval"] = DEFAULT_REFRESH_INTERVAL_MS
    return RenderOptions(**values)


def merge_render_options(options: RenderOptions, partial: Mapping[str, Any] | None) -> RenderOptions:
    """Shallow-merge a partial option mapping over existing options.

    Args:
        options: Current options.
        partial: Partial camelCase option mapping; None leaves options untouched.

    Returns:
        New RenderOptions with the supplied keys replaced.
    """

    if not partial:
        return options
    return replace(options, **_option_values(partial))
