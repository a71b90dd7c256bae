"""Validation and normalization of Grafana panel descriptions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final

from .errors import InvalidPanelError
from .schema import DEFAULT_REF_ID, GridPos, NormalizedPanel, PanelKind, QueryTarget

logger = logging.getLogger(__name__)

PANEL_KIND_MAPPING: Final[dict[str, PanelKind]] = {
    "timeseries": "timeseries",
    "graph": "graph",
    "stat": "stat",
    "gauge": "gauge",
    "table": "table",
}

FALLBACK_PANEL_KIND: Final[PanelKind] = "timeseries"

INVALID_PANEL_MESSAGE: Final[str] = "Invalid Grafana panel JSON provided"


def map_panel_kind(kind: str) -> PanelKind:
    """Map a Grafana panel type onto a supported panel kind.

    Args:
        kind: Raw Grafana `type` value.

    Returns:
        The matching supported kind, or `timeseries` for anything unknown.
    """

    return PANEL_KIND_MAPPING.get(kind, FALLBACK_PANEL_KIND)


def _target_text(target: Mapping[str, Any], key: str) -> str | None:
    value = target.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidPanelError(f"{INVALID_PANEL_MESSAGE}: target `{key}` must be a string")
    return str(value)


def parse_targets(targets: Any) -> tuple[QueryTarget, ...]:
    """Parse Grafana query targets, keeping only those with an expression.

    Args:
        targets: Raw `targets` value from the panel description.

    Returns:
        QueryTargets in input order.

    Raises:
        InvalidPanelError: When `refId`, `legendFormat` or `interval` is not a
            scalar value.
    """

    if not isinstance(targets, list):
        return ()

    parsed: list[QueryTarget] = []
    for target in targets:
        if not isinstance(target, Mapping) or not target.get("expr"):
            continue
        parsed.append(
            QueryTarget(
                expr=str(target["expr"]),
                ref_id=_target_text(target, "refId") or DEFAULT_REF_ID,
                legend_format=_target_text(target, "legendFormat"),
                interval=_target_text(target, "interval"),
            )
        )

    seen: set[str] = set()
    for target in parsed:
        if target.ref_id in seen:
            logger.warning("Duplicate query refId %r; targets are not uniquely addressable.", target.ref_id)
        seen.add(target.ref_id)
    return tuple(parsed)


def normalize_panel(panel: Any) -> NormalizedPanel:
    """Validate a panel description and convert it into a NormalizedPanel.

    Args:
        panel: Untrusted panel description (JSON-compatible mapping).

    Returns:
        NormalizedPanel with defaults applied.

    Raises:
        InvalidPanelError: When the panel is not a mapping or lacks `id`,
            `title`, or `type`.
    """

    if not isinstance(panel, Mapping):
        raise InvalidPanelError(INVALID_PANEL_MESSAGE)

    if not panel.get("id") or not panel.get("title") or not panel.get("type"):
        raise InvalidPanelError(INVALID_PANEL_MESSAGE)

    kind = str(panel["type"])
    if kind not in PANEL_KIND_MAPPING:
        logger.warning('Panel type "%s" is not fully supported yet. Falling back to timeseries.', kind)

    field_config = panel.get("fieldConfig")
    defaults = field_config.get("defaults") if isinstance(field_config, Mapping) else None
    if not isinstance(defaults, Mapping):
        defaults = {}

    grid_pos_raw = panel.get("gridPos")
    grid_pos = GridPos.from_mapping(grid_pos_raw) if isinstance(grid_pos_raw, Mapping) else None

    return NormalizedPanel(
        id=panel["id"],
        title=str(panel["title"]),
        kind=map_panel_kind(kind),
        targets=parse_targets(panel.get("targets") or []),
        unit=defaults.get("unit"),
        display_name=defaults.get("displayName"),
        grid_pos=grid_pos,
    )


def validate_panel(panel: Any) -> bool:
    """Return True when `panel` normalizes without error."""

    try:
        normalize_panel(panel)
    except InvalidPanelError:
        return False
    return True
