"""Theme loader and resolver for slide themes written as CSS variables."""
import colorsys
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .models import SlideGeometry, Theme

logger = logging.getLogger(__name__)

THEMES_DIR = Path(__file__).parent / "themes"

DEFAULTS = {
    "background": "#0a0a0a",
    "surface": "#141414",
    "text": "#ffffff",
    "muted": "#a1a1aa",
    "accent": "#f59e0b",
    "font-display": "Inter",
    "font-body": "Inter",
    "font-mono": "JetBrains Mono",
}

# Semantic slot -> accepted variable names, first present wins.
SLOT_VARIABLES = {
    "background": ("background", "color-bg1", "slide-bg"),
    "surface": ("surface", "color-bg2", "slide-surface"),
    "text": ("text", "color-fg1", "slide-text"),
    "muted": ("muted", "color-fg2", "slide-muted"),
    "accent": ("accent", "slide-accent"),
    "font-display": ("font-display", "font-f1", "font-title"),
    "font-body": ("font-body", "font-f2"),
    "font-mono": ("font-mono",),
}

FONT_SLOTS = ("font-display", "font-body", "font-mono")

# Background effect colours; ``accent`` follows the theme.
EFFECT_COLORS = {
    "amber": "#f59e0b",
    "blue": "#3b82f6",
    "purple": "#a855f7",
    "rose": "#f43f5e",
    "emerald": "#10b981",
    "cyan": "#06b6d4",
    "orange": "#f97316",
    "pink": "#ec4899",
}

NAMED_COLORS = {
    "white": "#ffffff",
    "black": "#000000",
    "red": "#ff0000",
    "green": "#008000",
    "lime": "#00ff00",
    "blue": "#0000ff",
    "yellow": "#ffff00",
    "orange": "#ffa500",
    "purple": "#800080",
    "gray": "#808080",
    "grey": "#808080",
    "silver": "#c0c0c0",
    "navy": "#000080",
    "teal": "#008080",
    "maroon": "#800000",
}

GENERIC_FAMILIES = ("sans-serif", "serif", "monospace", "system-ui", "cursive", "fantasy",
                    "ui-sans-serif", "ui-serif", "ui-monospace")

_VARIABLE_RE = re.compile(r"--([\w-]+)\s*:\s*([^;}]+)")
_VAR_REF_RE = re.compile(r"^var\(\s*--([\w-]+)\s*(?:,[^)]*)?\)$")
_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_RGB_RE = re.compile(r"^rgba?\(\s*(\d+)\s*,?\s*(\d+)\s*,?\s*(\d+)")
_HSL_RE = re.compile(r"^hsla?\(\s*(\d+(?:\.\d+)?)(?:deg)?\s*,?\s*(\d+(?:\.\d+)?)%\s*,?\s*(\d+(?:\.\d+)?)%")
_PX_RE = re.compile(r"^(\d+(?:\.\d+)?)px$")


def get_css(theme: str = "default") -> str:
    """
    Load CSS content for a bundled theme.

    Args:
        theme: Theme name (default, light, ...)

    Returns:
        CSS content as string

    Raises:
        FileNotFoundError: If theme file doesn't exist
        ValueError: If theme name is invalid
    """
    # Validate theme name (security: prevent path traversal)
    if not theme.replace("_", "").replace("-", "").isalnum():
        raise ValueError(f"Invalid theme name: {theme}")

    theme_path = THEMES_DIR / f"{theme}.css"
    if not theme_path.exists():
        raise FileNotFoundError(
            f"Theme '{theme}' not found. Available themes: {list_available_themes()}"
        )

    with open(theme_path, "r", encoding="utf-8") as f:
        return f.read()


def list_available_themes() -> List[str]:
    """List all bundled theme names."""
    if not THEMES_DIR.exists():
        return []
    return sorted(f.stem for f in THEMES_DIR.glob("*.css") if f.is_file())


def validate_theme(theme: str) -> bool:
    """
    Check if a theme exists.

    Args:
        theme: Theme name to validate

    Returns:
        True if theme exists, False otherwise
    """
    try:
        get_css(theme)
        return True
    except (FileNotFoundError, ValueError):
        return False


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def extract_variables(css: str) -> Dict[str, str]:
    """All ``--name: value`` declarations; later declarations override earlier ones."""
    return {name: value.strip() for name, value in _VARIABLE_RE.findall(css or "")}


def parse_color(value: str) -> Optional[str]:
    """Normalise a CSS colour to ``#rrggbb``; ``None`` when unsupported."""
    if not value:
        return None
    value = value.strip().lower()

    hex_match = _HEX_RE.match(value)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits[:3])
        return "#" + digits[:6]

    rgb_match = _RGB_RE.match(value)
    if rgb_match:
        r, g, b = (min(int(c), 255) for c in rgb_match.groups())
        return f"#{r:02x}{g:02x}{b:02x}"

    hsl_match = _HSL_RE.match(value)
    if hsl_match:
        h = float(hsl_match.group(1)) % 360 / 360
        s = min(float(hsl_match.group(2)), 100) / 100
        lightness = min(float(hsl_match.group(3)), 100) / 100
        r, g, b = colorsys.hls_to_rgb(h, lightness, s)
        return "#" + "".join(f"{round(c * 255):02x}" for c in (r, g, b))

    return NAMED_COLORS.get(value)


def parse_font(value: str) -> Optional[str]:
    """First non-generic family of a ``font-family`` list."""
    if not value:
        return None
    for family in value.split(","):
        family = family.strip().strip("\"'").strip()
        if family and family.lower() not in GENERIC_FAMILIES and not family.startswith("var("):
            return family
    return None


def _parse_px(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _PX_RE.match(value.strip())
    if not match:
        return None
    px = int(float(match.group(1)))
    return px if px > 0 else None


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert ``#rrggbb`` to an RGB tuple."""
    hex_color = hex_color.lstrip("#")
    return int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)


def effect_color(color_name: str, accent: str) -> str:
    """Colour of a background effect; ``accent`` and unknown names use the theme accent."""
    return EFFECT_COLORS.get(color_name, accent)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _dereference(value: str, variables: Dict[str, str]) -> Optional[str]:
    """
    Resolve a single level of ``var(--name)``.

    A reference to a missing name, or to a value that is itself a reference,
    yields ``None`` so that the slot falls back to its default.
    """
    ref = _VAR_REF_RE.match(value.strip())
    if not ref:
        return value
    target = variables.get(ref.group(1))
    if target is None or _VAR_REF_RE.match(target.strip()):
        return None
    return target


def _resolve_slot(slot: str, variables: Dict[str, str]) -> str:
    parse = parse_font if slot in FONT_SLOTS else parse_color
    for name in SLOT_VARIABLES[slot]:
        raw = variables.get(name)
        if raw is None:
            continue
        value = _dereference(raw, variables)
        if value is None:
            logger.debug(f"--{name}: unresolved reference '{raw}', using default")
            return DEFAULTS[slot]
        parsed = parse(value)
        if parsed:
            return parsed
        logger.debug(f"--{name}: unusable value '{value}'")
    return DEFAULTS[slot]


def resolve(raw_theme_text: Optional[str]) -> Theme:
    """
    Resolve theme CSS into a concrete :class:`Theme`.

    Total and deterministic: every slot receives a value, falling back to the
    built-in dark palette for anything missing or unparseable.
    """
    variables = extract_variables(raw_theme_text or "")
    slots = {slot: _resolve_slot(slot, variables) for slot in SLOT_VARIABLES}

    default_geometry = SlideGeometry()
    geometry = SlideGeometry(
        width_px=_parse_px(variables.get("slide-width")) or default_geometry.width_px,
        height_px=_parse_px(variables.get("slide-height")) or default_geometry.height_px,
        padding_px=_parse_px(variables.get("slide-padding")) or default_geometry.padding_px,
    )

    return Theme(
        background=slots["background"],
        text=slots["text"],
        accent=slots["accent"],
        muted=slots["muted"],
        surface=slots["surface"],
        font_display=slots["font-display"],
        font_body=slots["font-body"],
        font_mono=slots["font-mono"],
        geometry=geometry,
    )


def load_theme(name: str = "default") -> Theme:
    """Resolve a bundled theme by name."""
    return resolve(get_css(name))


_STOP_RE = re.compile(r"^(.*?)(?:\s+(-?\d+(?:\.\d+)?)%)?$")


def parse_gradient_stop(stop: str) -> Tuple[Optional[str], Optional[float]]:
    """Split a gradient stop like ``#fff 40%`` into (hex colour, percent)."""
    match = _STOP_RE.match(stop.strip())
    color = parse_color(match.group(1))
    position = float(match.group(2)) if match.group(2) else None
    return color, position
