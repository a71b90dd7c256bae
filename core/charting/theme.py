"""Light/dark palettes applied to Chart.js configurations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final

from .schema import DEFAULT_THEME, Theme

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ThemePalette:
    """Colors used when styling a chart."""

    background_color: str
    text_color: str
    grid_color: str


THEME_PALETTES: Final[dict[Theme, ThemePalette]] = {
    "light": ThemePalette(background_color="#ffffff", text_color="#333333", grid_color="#e0e0e0"),
    "dark": ThemePalette(background_color="#1f1f1f", text_color="#ffffff", grid_color="#404040"),
}


def get_palette(theme: str) -> ThemePalette:
    """Return the palette for `theme`, falling back to the light palette."""

    palette = THEME_PALETTES.get(theme)  # type: ignore[call-overload]
    if palette is None:
        logger.warning("Unknown theme %r; using %s.", theme, DEFAULT_THEME)
        return THEME_PALETTES[DEFAULT_THEME]
    return palette


def apply_theme(config: dict[str, Any], theme: str) -> dict[str, Any]:
    """Apply a theme palette to a chart configuration in place.

    Only sections that already exist are styled; nothing structural is added
    apart from the legend `labels`, which are replaced wholesale.

    Args:
        config: Chart.js configuration dict.
        theme: Theme name (`light` or `dark`).

    Returns:
        The same configuration object.
    """

    colors = get_palette(theme)
    options = config.get("options")
    if not isinstance(options, dict):
        return config

    options["backgroundColor"] = colors.background_color

    plugins = options.get("plugins")
    if isinstance(plugins, dict):
        if isinstance(plugins.get("title"), dict):
            plugins["title"]["color"] = colors.text_color
        if isinstance(plugins.get("legend"), dict):
            plugins["legend"]["labels"] = {"color": colors.text_color}

    scales = options.get("scales")
    if isinstance(scales, dict):
        for scale in scales.values():
            if not isinstance(scale, dict):
                continue
            if isinstance(scale.get("grid"), dict):
                scale["grid"]["color"] = colors.grid_color
            if isinstance(scale.get("ticks"), dict):
                scale["ticks"]["color"] = colors.text_color
            if isinstance(scale.get("title"), dict):
                scale["title"]["color"] = colors.text_color

    return config
