"""JSON encoding helpers for chart configurations."""

from __future__ import annotations

from typing import Any

from .datasource import DATASOURCE_PLUGIN_ID


def _encode_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    plugin_id = getattr(value, "id", None)
    if isinstance(plugin_id, str):
        return plugin_id
    return str(value)


def encode_chart_config(config: dict[str, Any]) -> dict[str, Any]:
    """Encode a chart configuration into a JSON-serializable dictionary.

    Plugins are replaced by their ids. A custom query handler cannot cross the
    wire, so the datasource `query` becomes None and `customHandler` is set.

    Args:
        config: Chart.js configuration produced by the mapper.

    Returns:
        A new dict safe for `json.dumps` / `JsonResponse`.
    """

    plugins = (config.get("options") or {}).get("plugins") or {}
    section = plugins.get(DATASOURCE_PLUGIN_ID)
    custom_query = section is not None and callable(section.get("query"))

    payload = _encode_value(config)
    if custom_query:
        encoded_section = payload["options"]["plugins"][DATASOURCE_PLUGIN_ID]
        encoded_section["query"] = None
        encoded_section["customHandler"] = True
    return payload
