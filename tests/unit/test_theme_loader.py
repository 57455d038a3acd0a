"""Test theme loader and resolver functionality."""

import pytest

from slide_compiler.models import Slide, SlideGeometry
from slide_compiler.theme_loader import (
    DEFAULTS,
    effect_color,
    extract_variables,
    get_css,
    list_available_themes,
    load_theme,
    parse_color,
    parse_font,
    parse_gradient_stop,
    resolve,
    validate_theme,
)


def test_get_css_default():
    """Test that default theme loads and returns CSS content."""
    css = get_css("default")
    assert ":root" in css
    assert "--slide-accent" in css


def test_get_css_invalid_theme():
    """Test that invalid theme names raise appropriate errors."""
    with pytest.raises(FileNotFoundError):
        get_css("nonexistent")

    # Invalid characters (path traversal attempt)
    with pytest.raises(ValueError):
        get_css("../evil")

    with pytest.raises(ValueError):
        get_css("theme/../../evil")


def test_list_available_themes():
    themes = list_available_themes()
    assert "default" in themes
    assert "light" in themes
    assert themes == sorted(themes)


def test_validate_theme():
    assert validate_theme("default")
    assert validate_theme("light")
    assert not validate_theme("nonexistent")
    assert not validate_theme("../evil")


class TestResolve:
    def test_empty_css_gives_full_default_palette(self):
        theme = resolve("")
        assert theme.as_dict() == DEFAULTS
        assert theme.geometry == SlideGeometry()

    def test_none_is_accepted(self):
        assert resolve(None).as_dict() == DEFAULTS

    def test_default_theme_matches_defaults(self):
        theme = load_theme("default")
        assert theme.background == "#0a0a0a"
        assert theme.accent == "#f59e0b"
        assert theme.font_mono == "JetBrains Mono"

    def test_light_theme(self):
        theme = load_theme("light")
        assert theme.background == "#fafaf9"
        assert theme.text == "#18181b"
        assert theme.accent == "#2563eb"
        assert theme.font_display == "Space Grotesk"

    def test_direct_slot_variables(self):
        theme = resolve(":root { --background: #123456; --accent: rgb(255, 0, 0); --font-body: 'Lato', serif; }")
        assert theme.background == "#123456"
        assert theme.accent == "#ff0000"
        assert theme.font_body == "Lato"

    def test_one_level_indirection(self):
        theme = resolve(":root { --color-fg1: #abcdef; --slide-text: var(--color-fg1); }")
        assert theme.text == "#abcdef"

    def test_chained_indirection_falls_back_to_default(self):
        css = ":root { --base: #abcdef; --color-fg1: var(--base); --text: var(--color-fg1); }"
        assert resolve(css).text == DEFAULTS["text"]

    def test_missing_reference_falls_back_to_default(self):
        assert resolve(":root { --accent: var(--nope); }").accent == DEFAULTS["accent"]

    def test_unparseable_values_fall_through(self):
        theme = resolve(":root { --accent: not-a-colour; --slide-accent: #00ff00; }")
        assert theme.accent == "#00ff00"

    def test_geometry(self):
        theme = resolve(":root { --slide-width: 1280px; --slide-height: 720px; --slide-padding: 64px; }")
        assert theme.geometry == SlideGeometry(1280, 720, 64)

    def test_bad_geometry_uses_defaults(self):
        theme = resolve(":root { --slide-width: 50%; --slide-height: 0px; }")
        assert theme.geometry == SlideGeometry()

    def test_later_declarations_win(self):
        variables = extract_variables(":root { --accent: #111111; } .dark { --accent: #222222; }")
        assert variables["accent"] == "#222222"


class TestPalette:
    def test_section_slides_use_surface(self):
        theme = resolve("")
        palette = theme.palette_for(Slide(index=0, is_section=True))
        assert palette.background == theme.surface

    def test_effect_colour(self):
        assert effect_color("purple", "#f59e0b") == "#a855f7"
        assert effect_color("accent", "#123456") == "#123456"


@pytest.mark.parametrize("value,expected", [
    ("#fff", "#ffffff"),
    ("#FFAA00", "#ffaa00"),
    ("#11223344", "#112233"),
    ("rgba(10, 20, 30, 0.5)", "#0a141e"),
    ("hsl(0, 100%, 50%)", "#ff0000"),
    ("navy", "#000080"),
    ("transparent-ish", None),
    ("", None),
])
def test_parse_color(value, expected):
    assert parse_color(value) == expected


def test_parse_font_skips_generics():
    assert parse_font('"Inter", sans-serif') == "Inter"
    assert parse_font("system-ui, 'Fira Sans'") == "Fira Sans"
    assert parse_font("monospace") is None


def test_parse_gradient_stop():
    assert parse_gradient_stop("#fff 40%") == ("#ffffff", 40.0)
    assert parse_gradient_stop("rgb(0, 0, 255)") == ("#0000ff", None)
