"""Carbon-style theme tokens with a brand colour override."""

from __future__ import annotations

import re
from typing import Dict

DEFAULT_THEME = "G100"
DARK_THEMES = ("G90", "G100")
_HEX_RE = re.compile(r"^#?(?:[0-9a-fA-F]{3}){1,2}$")

BASE_THEMES: Dict[str, Dict[str, str]] = {
    "White": {
        "background": "#ffffff",
        "layer-01": "#f4f4f4",
        "layer-02": "#ffffff",
        "text-primary": "#161616",
        "text-secondary": "#525252",
        "border-subtle-01": "#c6c6c6",
        "link-primary": "#0f62fe",
        "button-primary": "#0f62fe",
        "button-primary-hover": "#0353e9",
        "button-secondary": "#393939",
        "focus": "#0f62fe",
        "interactive": "#0f62fe",
        "highlight": "#d0e2ff",
    },
    "G10": {
        "background": "#f4f4f4",
        "layer-01": "#ffffff",
        "layer-02": "#f4f4f4",
        "text-primary": "#161616",
        "text-secondary": "#525252",
        "border-subtle-01": "#c6c6c6",
        "link-primary": "#0f62fe",
        "button-primary": "#0f62fe",
        "button-primary-hover": "#0353e9",
        "button-secondary": "#393939",
        "focus": "#0f62fe",
        "interactive": "#0f62fe",
        "highlight": "#d0e2ff",
    },
    "G90": {
        "background": "#262626",
        "layer-01": "#393939",
        "layer-02": "#525252",
        "text-primary": "#f4f4f4",
        "text-secondary": "#c6c6c6",
        "border-subtle-01": "#6f6f6f",
        "link-primary": "#78a9ff",
        "button-primary": "#0f62fe",
        "button-primary-hover": "#0353e9",
        "button-secondary": "#6f6f6f",
        "focus": "#ffffff",
        "interactive": "#4589ff",
        "highlight": "#0043ce",
    },
    "G100": {
        "background": "#161616",
        "layer-01": "#262626",
        "layer-02": "#393939",
        "text-primary": "#f4f4f4",
        "text-secondary": "#c6c6c6",
        "border-subtle-01": "#525252",
        "link-primary": "#78a9ff",
        "button-primary": "#0f62fe",
        "button-primary-hover": "#0353e9",
        "button-secondary": "#6f6f6f",
        "focus": "#ffffff",
        "interactive": "#4589ff",
        "highlight": "#002d9c",
    },
}


def adjust_brightness(hex_color: str, amount: int) -> str:
    """Shift every RGB channel of ``#rrggbb`` (or ``#rgb``) by ``amount``."""

    value = hex_color.lstrip("#")
    if len(value) == 3:
        value = "".join(char * 2 for char in value)
    number = int(value, 16)
    channels = [(number >> shift) & 0xFF for shift in (16, 8, 0)]
    red, green, blue = (min(255, max(0, channel + amount)) for channel in channels)
    return f"#{red:02x}{green:02x}{blue:02x}"


def theme_tokens(base_theme: str = DEFAULT_THEME, primary_color: str | None = None) -> Dict[str, str]:
    theme_name = base_theme if base_theme in BASE_THEMES else DEFAULT_THEME
    base = BASE_THEMES[theme_name]
    dark = theme_name in DARK_THEMES
    if primary_color:
        primary_color = f"#{primary_color.lstrip('#')}" if _HEX_RE.match(primary_color) else None
    primary = primary_color or base["interactive"]

    tokens = dict(base)
    tokens.update(
        {
            "interactive": primary,
            "link-primary": adjust_brightness(primary, 30) if dark else primary,
            "button-primary": primary,
            "button-primary-hover": adjust_brightness(primary, 15 if dark else -15),
            "focus": "#ffffff" if dark else primary,
            "highlight": adjust_brightness(primary, -80 if dark else 80),
            "brand-light": adjust_brightness(primary, -60 if dark else 60),
        }
    )
    return tokens
