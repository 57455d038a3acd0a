"""
PowerPoint renderer for converting a Deck to PPTX bytes.
"""
import datetime
import io
import logging
import zipfile
from typing import Optional

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_LINE_DASH_STYLE, MSO_PATTERN
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.util import Inches, Pt

from ..models import BulletList, CodeBlock, Deck, Gradient, NamedEffect, SlidePalette
from ..theme_loader import hex_to_rgb, parse_gradient_stop
from .base import AssetBundle, ExportBackend
from .layout import PlacedBlock, SlideLayout

logger = logging.getLogger(__name__)

# Core properties and zip entry times are pinned so identical decks give identical bytes.
PINNED_TIME = datetime.datetime(2000, 1, 1, 0, 0, 0)
ZIP_TIME = (1980, 1, 1, 0, 0, 0)

BLANK_LAYOUT = 6

PATTERNS = {
    "grid": MSO_PATTERN.SMALL_GRID,
    "hatch": MSO_PATTERN.WIDE_UPWARD_DIAGONAL,
    "dashed": MSO_PATTERN.DASHED_HORIZONTAL,
}

# Linear gradient direction (python-pptx degrees, counter-clockwise from
# left-to-right) running away from where the glow sits.
GLOW_ANGLES = {
    "top-left": 315,
    "top-right": 225,
    "bottom-left": 45,
    "bottom-right": 135,
}

ALIGN = {"left": PP_ALIGN.LEFT, "center": PP_ALIGN.CENTER, "right": PP_ALIGN.RIGHT}


# Helper function to convert pixels to inches
def px(pixels):
    return Inches(pixels / 96)


def pt(pixels):
    return Pt(round(pixels * 0.75 * 2) / 2)  # half-point precision


def rgb(hex_color: str) -> RGBColor:
    return RGBColor(*hex_to_rgb(hex_color))


def mix(color: str, base: str, amount: float) -> str:
    """Blend *amount* of *color* over *base*."""
    c, b = hex_to_rgb(color), hex_to_rgb(base)
    return "#" + "".join(f"{round(b[i] + (c[i] - b[i]) * amount):02x}" for i in range(3))


def css_angle_to_pptx(angle: int) -> float:
    """CSS gradients run clockwise from 'to top'; python-pptx counter-clockwise from 'to right'."""
    return float((90 - angle) % 360)


def normalize_zip(data: bytes) -> bytes:
    """Rewrite the package with fixed entry timestamps."""
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as source, \
            zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            pinned = zipfile.ZipInfo(info.filename, date_time=ZIP_TIME)
            pinned.compress_type = zipfile.ZIP_DEFLATED
            pinned.external_attr = info.external_attr
            target.writestr(pinned, source.read(info.filename))
    return out.getvalue()


class PPTXRenderer(ExportBackend):
    """
    Renderer for converting a Deck to PowerPoint slides.

    Shapes are placed with the shared layout engine; PowerPoint re-flows
    text itself, so only block order and vertical rhythm are matched with
    the PDF output.
    """

    format_name = "pptx"

    # -- backgrounds -----------------------------------------------------
    def _apply_background(self, slide, palette: SlidePalette, directive):
        fill = slide.background.fill
        if isinstance(directive, Gradient):
            first, _ = parse_gradient_stop(directive.stops[0])
            last, _ = parse_gradient_stop(directive.stops[-1])
            fill.gradient()
            fill.gradient_angle = css_angle_to_pptx(directive.angle)
            stops = fill.gradient_stops
            stops[0].color.rgb = rgb(first or palette.accent)
            stops[0].position = 0.0
            stops[-1].color.rgb = rgb(last or palette.background)
            stops[-1].position = 1.0
            return

        if isinstance(directive, NamedEffect):
            if directive.effect == "glow" and directive.position in GLOW_ANGLES:
                fill.gradient()
                fill.gradient_angle = GLOW_ANGLES[directive.position]
                stops = fill.gradient_stops
                stops[0].color.rgb = rgb(mix(palette.effect_color, palette.background, 0.35))
                stops[0].position = 0.0
                stops[-1].color.rgb = rgb(palette.background)
                stops[-1].position = 1.0
                return
            if directive.effect == "glow":
                fill.solid()
                fill.fore_color.rgb = rgb(mix(palette.effect_color, palette.background, 0.15))
                return
            fill.patterned()
            fill.pattern = PATTERNS[directive.effect]
            fill.fore_color.rgb = rgb(mix(palette.effect_color, palette.background, 0.25))
            fill.back_color.rgb = rgb(palette.background)
            return

        fill.solid()
        fill.fore_color.rgb = rgb(palette.background)

    # -- text ------------------------------------------------------------
    def _text_frame(self, slide, placed: PlacedBlock):
        textbox = slide.shapes.add_textbox(px(placed.x), px(placed.y), px(placed.width), px(placed.height))
        text_frame = textbox.text_frame
        text_frame.clear()
        text_frame.margin_left = 0
        text_frame.margin_right = 0
        text_frame.margin_top = 0
        text_frame.margin_bottom = 0
        text_frame.word_wrap = True
        text_frame.vertical_anchor = MSO_ANCHOR.TOP
        return textbox, text_frame

    def _add_runs(self, paragraph, runs, size: float, font_name: str, color: str,
                  palette: SlidePalette, bold: bool = False):
        for inline in runs:
            run = paragraph.add_run()
            run.text = inline.text
            font = run.font
            font.size = pt(size)
            font.name = palette.font_mono if inline.is_code else font_name
            font.bold = bold or inline.is_emphasized
            font.color.rgb = rgb(palette.text if inline.is_emphasized else color)

    def _add_text_block(self, slide, placed: PlacedBlock, align: str, palette: SlidePalette):
        block = placed.block
        _, text_frame = self._text_frame(slide, placed)
        p = text_frame.paragraphs[0]
        p.alignment = ALIGN.get(align, PP_ALIGN.CENTER)
        p.line_spacing = Pt(placed.line_height * 0.75)
        if placed.kind == "heading":
            font_name = palette.font_display if block.level <= 2 else palette.font_body
            self._add_runs(p, block.runs, placed.font_size, font_name, palette.text, palette, bold=True)
        else:
            self._add_runs(p, block.runs, placed.font_size, palette.font_body, palette.muted, palette)

    def _add_list(self, slide, placed: PlacedBlock, palette: SlidePalette):
        block: BulletList = placed.block
        _, text_frame = self._text_frame(slide, placed)
        for n, (item, placed_item) in enumerate(zip(block.items, placed.items)):
            p = text_frame.paragraphs[0] if n == 0 else text_frame.add_paragraph()
            p.alignment = PP_ALIGN.LEFT
            p.line_spacing = Pt(placed_item.line_height * 0.75)
            if n > 0:
                p.space_before = pt(self.config.item_gap * placed.indent / self.config.bullet_indent)
            marker = p.add_run()
            marker.text = f"{placed_item.marker} "
            marker.font.size = pt(placed_item.font_size)
            marker.font.color.rgb = rgb(palette.accent)
            heading_style = item.style != "body"
            font_name = palette.font_display if heading_style else palette.font_body
            self._add_runs(p, item.runs, placed_item.font_size, font_name, palette.text, palette,
                           bold=heading_style)

    def _add_grid(self, slide, placed: PlacedBlock, palette: SlidePalette):
        pad = px(placed.padding)
        for card in placed.cards:
            shape = slide.shapes.add_shape(MSO_SHAPE.ROUNDED_RECTANGLE, px(card.x), px(placed.y + card.offset),
                                           px(card.width), px(card.height))
            shape.fill.solid()
            shape.fill.fore_color.rgb = rgb(palette.surface)
            shape.line.color.rgb = rgb(palette.muted)
            shape.line.width = Pt(0.75)
            text_frame = shape.text_frame
            text_frame.word_wrap = True
            text_frame.vertical_anchor = MSO_ANCHOR.TOP
            text_frame.margin_left = pad
            text_frame.margin_right = pad
            text_frame.margin_top = pad
            text_frame.margin_bottom = pad
            for n, row in enumerate(card.rows):
                p = text_frame.paragraphs[0] if n == 0 else text_frame.add_paragraph()
                p.alignment = PP_ALIGN.CENTER
                p.line_spacing = Pt(row.line_height * 0.75)
                if row.kind == "text":
                    self._add_runs(p, row.row.runs, row.font_size, palette.font_body, palette.text, palette,
                                   bold=row.role == "body-bold")
                    continue
                run = p.add_run()
                run.text = row.lines[0].text if row.kind == "icon" else f"[Image: {row.row.value}]"
                run.font.size = pt(row.font_size)
                run.font.name = palette.font_body
                run.font.color.rgb = rgb(palette.accent if row.kind == "icon" else palette.muted)

    def _add_code(self, slide, placed: PlacedBlock, palette: SlidePalette):
        block: CodeBlock = placed.block
        textbox, text_frame = self._text_frame(slide, placed)
        text_frame.word_wrap = False
        pad = px(placed.padding)
        text_frame.margin_left = pad
        text_frame.margin_right = pad
        text_frame.margin_top = pad
        text_frame.margin_bottom = pad
        textbox.fill.solid()
        textbox.fill.fore_color.rgb = rgb(palette.surface)
        for n, line in enumerate(block.raw_text.split("\n")):
            p = text_frame.paragraphs[0] if n == 0 else text_frame.add_paragraph()
            p.alignment = PP_ALIGN.LEFT
            p.line_spacing = Pt(placed.line_height * 0.75)
            run = p.add_run()
            run.text = line
            run.font.name = palette.font_mono
            run.font.size = pt(placed.font_size)
            run.font.color.rgb = rgb(palette.text)

    def _add_image(self, slide, placed: PlacedBlock, palette: SlidePalette):
        if placed.asset is not None:
            x, y, w, h = placed.image_box
            slide.shapes.add_picture(io.BytesIO(placed.asset.data), px(x), px(y), px(w), px(h))
            return
        shape = slide.shapes.add_shape(MSO_SHAPE.ROUNDED_RECTANGLE, px(placed.x), px(placed.y),
                                       px(placed.width), px(placed.height))
        shape.fill.background()
        shape.line.color.rgb = rgb(palette.muted)
        shape.line.dash_style = MSO_LINE_DASH_STYLE.DASH
        text_frame = shape.text_frame
        text_frame.word_wrap = True
        text_frame.vertical_anchor = MSO_ANCHOR.MIDDLE
        p = text_frame.paragraphs[0]
        p.alignment = PP_ALIGN.CENTER
        run = p.add_run()
        run.text = f"[Image: {placed.block.description}]"
        run.font.size = Pt(12)
        run.font.name = palette.font_body
        run.font.color.rgb = rgb(palette.muted)

    def _add_number(self, slide, layout: SlideLayout, palette: SlidePalette):
        x, y, w, h = layout.number_box
        textbox = slide.shapes.add_textbox(px(x), px(y), px(w), px(h))
        text_frame = textbox.text_frame
        text_frame.margin_left = 0
        text_frame.margin_right = 0
        text_frame.margin_top = 0
        text_frame.margin_bottom = 0
        p = text_frame.paragraphs[0]
        p.alignment = PP_ALIGN.RIGHT
        run = p.add_run()
        run.text = layout.number
        run.font.size = pt(layout.number_size)
        run.font.name = palette.font_mono
        run.font.color.rgb = rgb(palette.muted)

    def _add_footer(self, slide, layout: SlideLayout, palette: SlidePalette):
        textbox = slide.shapes.add_textbox(px(layout.content_x), px(layout.footer_y),
                                           px(layout.content_width), px(layout.footer_size * 1.5))
        text_frame = textbox.text_frame
        text_frame.margin_top = 0
        text_frame.margin_bottom = 0
        p = text_frame.paragraphs[0]
        p.alignment = PP_ALIGN.CENTER
        run = p.add_run()
        run.text = layout.slide.footer
        run.font.size = pt(layout.footer_size)
        run.font.name = palette.font_body
        run.font.color.rgb = rgb(palette.muted)

    # -- document --------------------------------------------------------
    def render_slide(self, prs, layout: SlideLayout, palette: SlidePalette):
        slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
        self._apply_background(slide, palette, layout.slide.background)

        for placed in layout.blocks:
            if placed.kind in ("heading", "paragraph"):
                self._add_text_block(slide, placed, layout.alignment.horizontal, palette)
            elif placed.kind == "list":
                self._add_list(slide, placed, palette)
            elif placed.kind == "grid":
                self._add_grid(slide, placed, palette)
            elif placed.kind == "code":
                self._add_code(slide, placed, palette)
            elif placed.kind == "image":
                self._add_image(slide, placed, palette)

        if layout.footer_y is not None:
            self._add_footer(slide, layout, palette)
        if layout.number_box is not None:
            self._add_number(slide, layout, palette)

        if layout.slide.speaker_notes:
            slide.notes_slide.notes_text_frame.text = layout.slide.speaker_notes
        return slide

    def render(self, deck: Deck, bundle: Optional[AssetBundle] = None) -> bytes:
        """
        Render every slide of *deck* to a PowerPoint package.

        Args:
            deck: Parsed deck
            bundle: Resolved fonts and images

        Returns:
            PPTX file content as bytes
        """
        bundle = bundle or AssetBundle()
        geometry = deck.theme.geometry

        prs = Presentation()
        prs.slide_width = px(geometry.width_px)
        prs.slide_height = px(geometry.height_px)

        master_fill = prs.slide_master.background.fill
        master_fill.solid()
        master_fill.fore_color.rgb = rgb(deck.theme.background)

        engine = self.layout_engine(deck, bundle)
        for slide in deck.slides:
            layout = engine.layout_slide(slide, bundle.images)
            self.render_slide(prs, layout, deck.theme.palette_for(slide))

        props = prs.core_properties
        props.title = deck.title or ""
        props.author = ""
        props.last_modified_by = ""
        props.revision = 1
        props.created = PINNED_TIME
        props.modified = PINNED_TIME
        props.last_printed = PINNED_TIME

        buffer = io.BytesIO()
        prs.save(buffer)
        data = normalize_zip(buffer.getvalue())
        logger.info(f"📊 Rendered {deck.total_slides} slides to PPTX ({len(data)} bytes)")
        return data
