"""
Shared slide layout for the export backends.

Positions are computed once, in CSS pixels on the theme's slide geometry, so
the PDF and PPTX renderers place the same blocks at the same heights.  Text is
measured with Pillow using the resolved font bytes when they are available and
with a fixed per-character estimate otherwise.
"""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from PIL import ImageFont

from ..models import (
    Alignment,
    BulletList,
    CardGrid,
    CodeBlock,
    Divider,
    FontEntry,
    GridCard,
    Heading,
    ImagePlaceholder,
    InlineRun,
    Paragraph,
    ResolvedAsset,
    Slide,
    SlideGeometry,
)

logger = logging.getLogger(__name__)

ICON_GLYPH = "●"

# Font roles requested for every export: role -> (theme slot, weight)
FONT_ROLES = {
    "display": ("font_display", 700),
    "body": ("font_body", 400),
    "body-bold": ("font_body", 700),
    "mono": ("font_mono", 400),
}


@dataclass(frozen=True)
class LayoutConfig:
    """Type scale and spacing in CSS px for a 960x540 slide."""
    heading_sizes: Tuple[float, ...] = (64, 43, 32, 27, 24, 21)
    body_size: float = 24
    list_size: float = 24
    list_item_sizes: Tuple[Tuple[str, float], ...] = (("title", 37), ("h1", 37), ("h2", 29))
    code_size: float = 18
    footer_size: float = 16
    heading_line_height: float = 1.2
    body_line_height: float = 1.5
    code_line_height: float = 1.4
    heading_gap: float = 16
    block_gap: float = 12
    item_gap: float = 8
    bullet_indent: float = 32
    code_padding: float = 16
    divider_unit: float = 24
    image_max_height: float = 240
    image_aspect: float = 16 / 9
    grid_columns: int = 4
    grid_gap: float = 19
    card_padding: float = 14
    grid_row_sizes: Tuple[Tuple[str, float], ...] = (("h1", 21), ("h2", 19), ("h3", 17))
    grid_body_size: float = 16
    icon_size: float = 32
    split_image_ratio: float = 0.38
    split_gap: float = 38
    show_slide_numbers: bool = True
    slide_number_size: float = 13
    proportional_char_width: float = 0.55
    bold_char_width: float = 0.58
    mono_char_width: float = 0.6

    def heading_size(self, level: int) -> float:
        return self.heading_sizes[min(max(level, 1), len(self.heading_sizes)) - 1]

    def item_size(self, style: str) -> float:
        return dict(self.list_item_sizes).get(style, self.list_size)

    def grid_row_size(self, level: str) -> float:
        return dict(self.grid_row_sizes).get(level, self.grid_body_size)


class TextMeasurer:
    """Measure text advance widths in px for each font role."""

    def __init__(self, fonts: Optional[Dict[str, FontEntry]] = None,
                 config: Optional[LayoutConfig] = None):
        self.fonts = fonts or {}
        self.config = config or LayoutConfig()
        self._faces: Dict[Tuple[str, int], Optional[ImageFont.FreeTypeFont]] = {}

    def _face(self, role: str, size: float) -> Optional[ImageFont.FreeTypeFont]:
        key = (role, max(1, round(size)))
        if key not in self._faces:
            entry = self.fonts.get(role)
            face = None
            if entry is not None and entry.data:
                try:
                    face = ImageFont.truetype(BytesIO(entry.data), key[1])
                except OSError as e:
                    logger.debug(f"Pillow could not load {entry.family}: {e}")
            self._faces[key] = face
        return self._faces[key]

    def width(self, text: str, role: str, size: float) -> float:
        if not text:
            return 0.0
        face = self._face(role, size)
        if face is not None:
            return face.getlength(text) * size / max(1, round(size))
        if role == "mono":
            factor = self.config.mono_char_width
        elif role in ("display", "body-bold"):
            factor = self.config.bold_char_width
        else:
            factor = self.config.proportional_char_width
        return len(text) * size * factor


# ---------------------------------------------------------------------------
# Placed geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Segment:
    text: str
    role: str            # display | body | body-bold | mono
    emphasized: bool = False
    code: bool = False


@dataclass(frozen=True)
class TextLine:
    segments: Tuple[Segment, ...]
    width: float

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.segments)


@dataclass(frozen=True)
class PlacedItem:
    """One list item; ``offset`` is relative to the top of its list."""
    marker: str
    lines: List[TextLine]
    font_size: float
    line_height: float
    offset: float
    style: str = "body"


@dataclass(frozen=True)
class PlacedRow:
    """One row of a grid card; ``offset`` is relative to the card's content top."""
    kind: str                    # text | icon | image
    lines: List[TextLine]
    font_size: float
    line_height: float
    offset: float
    role: str = "body"
    row: object = None


@dataclass(frozen=True)
class PlacedCard:
    """A grid card; ``x`` is absolute, ``offset`` is relative to the top of its grid."""
    x: float
    offset: float
    width: float
    height: float
    rows: List[PlacedRow]
    reveal_order: int = 0


@dataclass
class PlacedBlock:
    """A block positioned on the slide (px, origin top-left)."""
    kind: str                    # heading | paragraph | list | grid | code | image | divider
    x: float
    y: float
    width: float
    height: float
    font_size: float = 0
    line_height: float = 0
    lines: List[TextLine] = field(default_factory=list)
    items: List[PlacedItem] = field(default_factory=list)
    cards: List[PlacedCard] = field(default_factory=list)
    indent: float = 0
    padding: float = 0
    color: str = "text"          # palette slot
    block: object = None
    asset: Optional[ResolvedAsset] = None
    image_box: Optional[Tuple[float, float, float, float]] = None


@dataclass
class SlideLayout:
    slide: Slide
    blocks: List[PlacedBlock]
    alignment: Alignment
    content_x: float
    content_width: float
    footer_y: Optional[float] = None
    footer_size: float = 0
    overflow: bool = False
    split: Optional[str] = None
    # Slide number box (x, y, w, h)
    number_box: Optional[Tuple[float, float, float, float]] = None
    number_size: float = 0

    @property
    def number(self) -> str:
        return str(self.slide.index + 1)


def _tokens(runs: Tuple[InlineRun, ...], base_role: str):
    """Split runs into (word, role, emphasized, code, space_before) tokens."""
    tokens = []
    pending_space = False
    for run in runs:
        if run.is_code:
            role = "mono"
        elif run.is_emphasized and base_role == "body":
            role = "body-bold"
        else:
            role = base_role
        parts = run.text.split(" ")
        for i, part in enumerate(parts):
            if i > 0:
                pending_space = True
            if part:
                tokens.append((part, role, run.is_emphasized, run.is_code, pending_space and bool(tokens)))
                pending_space = False
    return tokens


def _merge(pieces: List[Segment]) -> Tuple[Segment, ...]:
    merged: List[Segment] = []
    for piece in pieces:
        if merged and (merged[-1].role, merged[-1].emphasized, merged[-1].code) == \
                (piece.role, piece.emphasized, piece.code):
            last = merged.pop()
            piece = Segment(last.text + piece.text, piece.role, piece.emphasized, piece.code)
        merged.append(piece)
    return tuple(merged)


def wrap_runs(runs: Tuple[InlineRun, ...], max_width: float, size: float,
              measurer: TextMeasurer, base_role: str = "body") -> List[TextLine]:
    """
    Greedy word wrap of inline runs.

    A word wider than *max_width* gets a line of its own rather than being
    broken.  Empty input gives no lines.
    """
    lines: List[TextLine] = []
    pieces: List[Segment] = []
    width = 0.0
    space_width = measurer.width(" ", base_role, size)

    for word, role, emphasized, code, space_before in _tokens(runs, base_role):
        word_width = measurer.width(word, role, size)
        gap = space_width if space_before and pieces else 0.0
        if pieces and width + gap + word_width > max_width:
            lines.append(TextLine(_merge(pieces), width))
            pieces, width, gap = [], 0.0, 0.0
        text = (" " if gap else "") + word
        pieces.append(Segment(text, role, emphasized, code))
        width += gap + word_width

    if pieces:
        lines.append(TextLine(_merge(pieces), width))
    return lines


def fit_image(box: Tuple[float, float, float, float], aspect: float) -> Tuple[float, float, float, float]:
    """Largest rectangle of *aspect* centred inside *box* (x, y, w, h)."""
    x, y, w, h = box
    if w <= 0 or h <= 0:
        return box
    if w / h > aspect:
        fitted_w, fitted_h = h * aspect, h
    else:
        fitted_w, fitted_h = w, w / aspect
    return x + (w - fitted_w) / 2, y + (h - fitted_h) / 2, fitted_w, fitted_h


class LayoutEngine:
    """Compute block positions for every slide of a deck."""

    def __init__(self, geometry: SlideGeometry, measurer: Optional[TextMeasurer] = None,
                 config: Optional[LayoutConfig] = None):
        self.geometry = geometry
        self.config = config or LayoutConfig()
        self.measurer = measurer or TextMeasurer(config=self.config)
        # Scale the type ramp with the slide width so themes with other
        # geometries keep the same proportions.
        self.scale = geometry.width_px / 960

    def _px(self, value: float) -> float:
        return value * self.scale

    def _card_rows(self, card: GridCard, width: float) -> Tuple[List[PlacedRow], float]:
        cfg = self.config
        rows = []
        height = 0.0
        for row in card.rows:
            if row.kind == "icon":
                size = self._px(cfg.icon_size)
                line_h = size * cfg.heading_line_height
                lines = [TextLine((Segment(ICON_GLYPH, "body"),), self.measurer.width(ICON_GLYPH, "body", size))]
                role = "body"
            else:
                size = self._px(cfg.grid_row_size(row.level))
                line_h = size * cfg.body_line_height
                role = "body" if row.level == "body" else "body-bold"
                runs = row.runs if row.kind == "text" else (InlineRun(f"[Image: {row.value}]"),)
                lines = wrap_runs(runs, width, size, self.measurer, role)
            rows.append(PlacedRow(row.kind, lines, size, line_h, height, role, row))
            height += max(len(lines), 1) * line_h
        return rows, height

    def _place_grid(self, block: CardGrid, x: float, width: float) -> PlacedBlock:
        """Cards fill up to ``grid_columns`` columns; each row of cards is as tall as its tallest card."""
        cfg = self.config
        cols = max(1, min(len(block.cards), cfg.grid_columns))
        gap = self._px(cfg.grid_gap)
        pad = self._px(cfg.card_padding)
        card_w = (width - gap * (cols - 1)) / cols
        measured = [self._card_rows(card, max(card_w - 2 * pad, 1)) for card in block.cards]

        cards = []
        top = 0.0
        for start in range(0, len(block.cards), cols):
            band = range(start, min(start + cols, len(block.cards)))
            band_h = max(measured[i][1] for i in band) + 2 * pad
            for column, i in enumerate(band):
                cards.append(PlacedCard(x + column * (card_w + gap), top, card_w, band_h,
                                        measured[i][0], block.cards[i].reveal_order))
            top += band_h + gap
        height = top - gap if cards else 0.0
        return PlacedBlock("grid", x, 0, width, height, cards=cards, padding=pad, block=block)

    def _place_block(self, block, x: float, width: float,
                     images: Dict[str, ResolvedAsset]) -> Tuple[PlacedBlock, float]:
        """Return the placed block (y relative to 0) and the gap after it."""
        cfg = self.config
        m = self.measurer

        if isinstance(block, Heading):
            size = self._px(cfg.heading_size(block.level))
            line_h = size * cfg.heading_line_height
            role = "display" if block.level <= 2 else "body-bold"
            lines = wrap_runs(block.runs, width, size, m, role)
            placed = PlacedBlock("heading", x, 0, width, max(len(lines), 1) * line_h, size, line_h,
                                 lines, color="text", block=block)
            return placed, self._px(cfg.heading_gap)

        if isinstance(block, Paragraph):
            size = self._px(cfg.body_size)
            line_h = size * cfg.body_line_height
            lines = wrap_runs(block.runs, width, size, m, "body")
            placed = PlacedBlock("paragraph", x, 0, width, max(len(lines), 1) * line_h, size, line_h,
                                 lines, color="muted", block=block)
            return placed, self._px(cfg.block_gap)

        if isinstance(block, BulletList):
            indent = self._px(cfg.bullet_indent)
            items = []
            height = 0.0
            for n, item in enumerate(block.items, 1):
                size = self._px(cfg.item_size(item.style))
                role = "body" if item.style == "body" else "display"
                item_lines = wrap_runs(item.runs, width - indent, size, m, role)
                marker = f"{n}." if block.ordered else "•"
                line_h = size * cfg.body_line_height
                items.append(PlacedItem(marker, item_lines, size, line_h, height, item.style))
                height += max(len(item_lines), 1) * line_h
                if n < len(block.items):
                    height += self._px(cfg.item_gap)
            placed = PlacedBlock("list", x, 0, width, height, self._px(cfg.list_size),
                                 self._px(cfg.list_size) * cfg.body_line_height,
                                 items=items, indent=indent, block=block)
            return placed, self._px(cfg.block_gap)

        if isinstance(block, CodeBlock):
            size = self._px(cfg.code_size)
            line_h = size * cfg.code_line_height
            raw_lines = block.raw_text.split("\n")
            lines = [TextLine((Segment(text, "mono", code=True),), m.width(text, "mono", size))
                     for text in raw_lines]
            pad = self._px(cfg.code_padding)
            placed = PlacedBlock("code", x, 0, width, len(lines) * line_h + 2 * pad, size, line_h,
                                 lines, padding=pad, block=block)
            return placed, self._px(cfg.block_gap)

        if isinstance(block, ImagePlaceholder):
            box_h = min(self._px(cfg.image_max_height), width / cfg.image_aspect)
            box_w = box_h * cfg.image_aspect
            box_x = x + (width - box_w) / 2
            asset = images.get(block.ref)
            placed = PlacedBlock("image", box_x, 0, box_w, box_h, block=block, asset=asset)
            return placed, self._px(cfg.block_gap)

        if isinstance(block, Divider):
            placed = PlacedBlock("divider", x, 0, width, self._px(cfg.divider_unit) * block.size, block=block)
            return placed, 0.0

        if isinstance(block, CardGrid):
            return self._place_grid(block, x, width), self._px(cfg.block_gap)

        raise TypeError(f"Unknown block type: {type(block).__name__}")

    def layout_slide(self, slide: Slide, images: Optional[Dict[str, ResolvedAsset]] = None) -> SlideLayout:
        images = images or {}
        g = self.geometry
        cfg = self.config
        padding = g.padding_px
        content_x = padding
        content_width = g.width_px - 2 * padding
        footer_space = self._px(cfg.footer_size) * 2 if slide.footer else 0
        content_top = padding
        content_height = g.height_px - 2 * padding - footer_space
        alignment = slide.alignment or Alignment()

        split = slide.split_image
        split_layout = None
        if split is not None:
            image_w = g.width_px * cfg.split_image_ratio
            image_h = image_w / cfg.image_aspect
            image_x = padding if split.position == "left" else g.width_px - padding - image_w
            split_layout = PlacedBlock("image", image_x, (g.height_px - image_h) / 2, image_w, image_h,
                                       block=split, asset=images.get(split.ref))
            content_width -= image_w + self._px(cfg.split_gap)
            if split.position == "left":
                content_x = g.width_px - padding - content_width

        flow = [block for block in slide.blocks if block is not split]
        placed: List[PlacedBlock] = []
        cursor = 0.0
        for i, block in enumerate(flow):
            block_layout, gap = self._place_block(block, content_x, content_width, images)
            block_layout.y = cursor
            placed.append(block_layout)
            cursor += block_layout.height
            if i < len(flow) - 1:
                cursor += gap
        total = cursor

        if alignment.vertical == "top":
            offset = content_top
        elif alignment.vertical == "bottom":
            offset = content_top + content_height - total
        else:
            offset = content_top + (content_height - total) / 2
        offset = max(offset, content_top)

        for block_layout in placed:
            block_layout.y += offset
        if split_layout is not None:
            placed.insert(0, split_layout)
        for block_layout in placed:
            if block_layout.kind == "image":
                aspect = block_layout.asset.aspect_ratio if block_layout.asset else cfg.image_aspect
                block_layout.image_box = fit_image(
                    (block_layout.x, block_layout.y, block_layout.width, block_layout.height), aspect)

        overflow = total > content_height
        if overflow:
            logger.debug(f"Slide {slide.index + 1}: content overflows by {total - content_height:.0f}px")

        number_box = None
        number_size = self._px(cfg.slide_number_size)
        if cfg.show_slide_numbers:
            number_w = self._px(40)
            number_box = (g.width_px - self._px(20) - number_w, g.height_px - self._px(38),
                          number_w, number_size * 1.5)

        footer_y = g.height_px - padding / 2 - self._px(cfg.footer_size) * 1.5 if slide.footer else None
        return SlideLayout(slide, placed, alignment, content_x, content_width, footer_y,
                           self._px(cfg.footer_size), overflow,
                           split=split.position if split is not None else None,
                           number_box=number_box, number_size=number_size)
