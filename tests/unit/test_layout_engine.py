"""Test the shared layout engine used by both export backends."""

import pytest

from slide_compiler import parse
from slide_compiler.export.layout import (
    LayoutConfig,
    LayoutEngine,
    TextMeasurer,
    fit_image,
    wrap_runs,
)
from slide_compiler.inline import scan_inline
from slide_compiler.models import ResolvedAsset, SlideGeometry


@pytest.fixture
def engine():
    return LayoutEngine(SlideGeometry())


def layout(text, engine, images=None):
    return engine.layout_slide(parse(text).slides[0], images)


def test_heuristic_measurement():
    measurer = TextMeasurer()
    assert measurer.width("", "body", 24) == 0
    assert measurer.width("abcd", "body", 10) == pytest.approx(4 * 10 * 0.55)
    assert measurer.width("abcd", "mono", 10) == pytest.approx(4 * 10 * 0.6)


def test_wrap_keeps_short_text_on_one_line():
    lines = wrap_runs(scan_inline("Short line"), 800, 24, TextMeasurer(), "body")
    assert len(lines) == 1
    assert lines[0].text == "Short line"


def test_wrap_breaks_long_text():
    text = " ".join(["word"] * 60)
    lines = wrap_runs(scan_inline(text), 400, 24, TextMeasurer(), "body")
    assert len(lines) > 1
    assert all(line.width <= 400 for line in lines)
    assert " ".join(line.text.strip() for line in lines).split() == text.split()


def test_wrap_keeps_emphasis_segments():
    lines = wrap_runs(scan_inline("plain **bold** `code`"), 800, 24, TextMeasurer(), "body")
    segments = lines[0].segments
    assert any(s.emphasized and s.role == "body-bold" for s in segments)
    assert any(s.code and s.role == "mono" for s in segments)


def test_blocks_stack_without_overlap(engine):
    result = layout("# Title\nSome text\n- one\n- two\n```\ncode\n```", engine)
    blocks = result.blocks
    assert [b.kind for b in blocks] == ["heading", "paragraph", "list", "code"]
    for above, below in zip(blocks, blocks[1:]):
        assert above.y + above.height <= below.y
    assert not result.overflow


def test_vertical_alignment(engine):
    top = layout("[left, top]\n# T", engine)
    centered = layout("# T", engine)
    bottom = layout("[left, bottom]\n# T", engine)
    padding = SlideGeometry().padding_px
    assert top.blocks[0].y == pytest.approx(padding)
    assert top.blocks[0].y < centered.blocks[0].y < bottom.blocks[0].y
    assert top.alignment.horizontal == "left"


def test_overflow_is_flagged_and_clamped(engine):
    text = "\n".join(f"Paragraph number {n}" for n in range(30))
    result = layout(text, engine)
    assert result.overflow
    assert result.blocks[0].y == pytest.approx(SlideGeometry().padding_px)


def test_footer_position(engine):
    result = layout("# T\n$<Footer>", engine)
    assert result.footer_y is not None
    assert result.footer_y > result.blocks[0].y
    assert layout("# T", engine).footer_y is None


def test_image_box_uses_asset_aspect(engine):
    asset = ResolvedAsset(b"x", "hash", "image/png", 100, 100)
    result = layout("[image: square]", engine, {"square": asset})
    placed = result.blocks[0]
    x, y, w, h = placed.image_box
    assert w == pytest.approx(h)
    assert h == pytest.approx(placed.height)


def test_image_without_asset_keeps_default_box(engine):
    placed = layout("[image: missing]", engine).blocks[0]
    assert placed.asset is None
    assert placed.width / placed.height == pytest.approx(16 / 9)


def test_fit_image():
    assert fit_image((0, 0, 200, 100), 1.0) == (50, 0, 100, 100)
    assert fit_image((0, 0, 100, 100), 2.0) == (0, 25, 100, 50)


def test_list_items_are_offset(engine):
    placed = layout("- one\n- two\n- ## big", engine).blocks[0]
    offsets = [item.offset for item in placed.items]
    assert offsets == sorted(offsets)
    assert placed.items[2].font_size > placed.items[0].font_size
    assert [item.marker for item in placed.items] == ["•", "•", "•"]


def test_geometry_scales_type(engine):
    big = LayoutEngine(SlideGeometry(1920, 1080, 108))
    slide = parse("# T").slides[0]
    assert big.layout_slide(slide).blocks[0].font_size == pytest.approx(
        2 * engine.layout_slide(slide).blocks[0].font_size)


def test_config_overrides():
    config = LayoutConfig(body_size=30)
    result = LayoutEngine(SlideGeometry(), config=config).layout_slide(parse("text").slides[0])
    assert result.blocks[0].font_size == 30


def test_grid_cards_fill_columns_then_bands(engine):
    text = "[grid]\n" + "\n\n".join(f"- Card {n}" for n in range(5))
    result = layout(text, engine)
    placed = result.blocks[0]
    assert placed.kind == "grid"
    cards = placed.cards
    assert len(cards) == 5
    assert [card.x for card in cards[:4]] == sorted(card.x for card in cards[:4])
    assert cards[3].x + cards[3].width == pytest.approx(result.content_x + result.content_width)
    assert cards[4].x == pytest.approx(cards[0].x)
    assert cards[4].offset >= cards[0].offset + cards[0].height
    assert placed.height == pytest.approx(cards[4].offset + cards[4].height)


def test_grid_rows_keep_reveal_order(engine):
    placed = layout("[grid]\n- [icon: star]\n- ## Fast\n**pause**\n- Safe", engine).blocks[0]
    assert [card.reveal_order for card in placed.cards] == [0, 1]
    icon, heading = placed.cards[0].rows
    assert icon.kind == "icon"
    assert heading.role == "body-bold"
    assert heading.offset > icon.offset


@pytest.mark.parametrize("side", ["left", "right"])
def test_split_image_takes_one_side(engine, side):
    result = layout(f"[image: chart, {side}]\n# Beside", engine)
    width = SlideGeometry().width_px
    image = next(b for b in result.blocks if b.kind == "image")
    heading = next(b for b in result.blocks if b.kind == "heading")
    assert result.split == side
    assert image.width == pytest.approx(width * 0.38)
    if side == "left":
        assert image.x + image.width <= heading.x
    else:
        assert heading.x + heading.width <= image.x
    assert result.content_width < width - 2 * SlideGeometry().padding_px


def test_centered_image_stays_in_flow(engine):
    result = layout("[image: chart]\n# Below", engine)
    assert result.split is None
    assert result.blocks[0].y + result.blocks[0].height <= result.blocks[1].y


def test_slide_number_box(engine):
    result = layout("# T", engine)
    x, y, w, h = result.number_box
    assert result.number == "1"
    assert x + w <= SlideGeometry().width_px
    assert y + h <= SlideGeometry().height_px

    hidden = LayoutEngine(SlideGeometry(), config=LayoutConfig(show_slide_numbers=False))
    assert hidden.layout_slide(parse("# T").slides[0]).number_box is None
