"""Test line classification for the slide markdown dialect."""

import pytest

from slide_compiler.models import Alignment, Gradient, NamedEffect
from slide_compiler.tokenizer import (
    ClassifierState,
    LineKind,
    classify_line,
    classify_lines,
    parse_background,
)


def kind_of(line):
    return classify_line(line, 1, ClassifierState()).kind


@pytest.mark.parametrize("line,kind", [
    ("", LineKind.BLANK),
    ("   ", LineKind.BLANK),
    ("---", LineKind.SLIDE_BREAK),
    ("# Title", LineKind.HEADING),
    ("> a note", LineKind.SPEAKER_NOTE),
    ("**pause**", LineKind.PACING),
    ("[bg:glow-top-left]", LineKind.BACKGROUND),
    ("[image: a cat]", LineKind.IMAGE),
    ("[section]", LineKind.SECTION),
    ("[grid]", LineKind.GRID),
    ("[Grid]", LineKind.GRID),
    ("[space]", LineKind.SPACER),
    ("[left, top]", LineKind.ALIGNMENT),
    ("$<Footer text>", LineKind.FOOTER),
    ("<!-- Intro -->", LineKind.COMMENT),
    ("- item", LineKind.BULLET),
    ("* item", LineKind.BULLET),
    ("1. item", LineKind.BULLET),
    ("Just some text", LineKind.PROSE),
    ("[bg:sparkle]", LineKind.MALFORMED_DIRECTIVE),
])
def test_line_kinds(line, kind):
    """Each directive is recognised by its own kind."""
    assert kind_of(line) is kind


def test_heading_payload_with_animation_hint():
    line = classify_line("## Big reveal [anvil]", 3, ClassifierState())
    assert line.payload.level == 2
    assert line.payload.text == "Big reveal"
    assert line.payload.animation_hint == "anvil"
    assert line.line_number == 3


def test_unknown_hint_stays_in_heading_text():
    line = classify_line("# Table [draft]", 1, ClassifierState())
    assert line.payload.text == "Table [draft]"
    assert line.payload.animation_hint is None


def test_only_the_last_bracket_is_a_hint():
    line = classify_line("# [glow] then text [anvil] more", 1, ClassifierState())
    assert line.payload.animation_hint is None

    line = classify_line("# [glow] heading [shake]", 1, ClassifierState())
    assert line.payload.text == "[glow] heading"
    assert line.payload.animation_hint == "shake"


def test_long_whitespace_heading():
    text = "# a" + " " * 50_000 + "b [typewriter]"
    line = classify_line(text, 1, ClassifierState())
    assert line.payload.animation_hint == "typewriter"
    assert line.payload.text.endswith("b")


def test_image_payload_position():
    line = classify_line("[image: chart of sales, right]", 1, ClassifierState())
    assert line.payload.description == "chart of sales"
    assert line.payload.position == "right"

    line = classify_line("[image: apples, pears]", 1, ClassifierState())
    assert line.payload.description == "apples, pears"
    assert line.payload.position is None


def test_spacer_size():
    assert classify_line("[space:3]", 1, ClassifierState()).payload == 3
    assert classify_line("[space]", 1, ClassifierState()).payload == 1


def test_alignment_payload():
    line = classify_line("[right, bottom]", 1, ClassifierState())
    assert line.payload == Alignment("right", "bottom")


def test_bracketed_prose_is_not_alignment():
    assert kind_of("[foo, bar]") is LineKind.PROSE


def test_empty_footer_is_prose():
    assert kind_of("$<>") is LineKind.PROSE


def test_ordered_bullet_payload():
    line = classify_line("2. second", 1, ClassifierState())
    assert line.payload.ordered
    assert line.payload.text == "second"


class TestBackgrounds:
    def test_named_effect(self):
        assert parse_background("glow-bottom-left") == NamedEffect("glow", "bottom-left")

    def test_named_effect_with_colour(self):
        effect = parse_background("grid-center-purple")
        assert effect == NamedEffect("grid", "center", "purple")
        assert effect.effect_id == "grid-center-purple"

    def test_gradient(self):
        gradient = parse_background("gradient(45deg, #ff0000, rgb(0, 0, 255) 80%)")
        assert gradient == Gradient(45, ("#ff0000", "rgb(0, 0, 255) 80%"))

    def test_gradient_default_angle(self):
        assert parse_background("gradient(#000, #fff)").angle == 180

    @pytest.mark.parametrize("value", ["sparkle-center", "glow-middle", "glow-center-mauve", "gradient(#000)"])
    def test_unknown_values(self, value):
        assert parse_background(value) is None


class TestFences:
    def test_directives_inside_fence_are_code(self):
        lines = classify_lines("```python\n---\n# not a heading\n```\n---")
        assert [line.kind for line in lines] == [
            LineKind.FENCE, LineKind.CODE, LineKind.CODE, LineKind.FENCE, LineKind.SLIDE_BREAK,
        ]
        assert lines[0].payload.language == "python"
        assert lines[0].payload.opening
        assert not lines[3].payload.opening

    def test_unclosed_fence_is_reported(self):
        state = ClassifierState()
        lines = classify_lines("intro\n```\ncode\n---", state)
        assert state.unclosed_fence_line == 2
        assert lines[-1].kind is LineKind.CODE

    def test_closed_fence_leaves_no_state(self):
        state = ClassifierState()
        classify_lines("```\nx\n```", state)
        assert state.unclosed_fence_line is None


def test_line_numbers_start_offset():
    lines = classify_lines("a\nb", start=5)
    assert [line.line_number for line in lines] == [5, 6]


def test_crlf_is_normalised():
    lines = classify_lines("# A\r\n---\r\n# B")
    assert [line.kind for line in lines] == [LineKind.HEADING, LineKind.SLIDE_BREAK, LineKind.HEADING]
