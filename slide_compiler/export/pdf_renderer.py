"""
PDF renderer: lays slides out as absolutely positioned HTML and prints it
with WeasyPrint, one fixed-size page per slide.
"""
import base64
import html
import logging
import re
from typing import List, Optional

from weasyprint import CSS, HTML
from weasyprint.text.fonts import FontConfiguration

from ..models import Deck, Gradient, NamedEffect, SlidePalette
from ..theme_loader import hex_to_rgb, parse_gradient_stop
from .base import AssetBundle, ExportBackend
from .layout import PlacedBlock, SlideLayout, TextLine

logger = logging.getLogger(__name__)

FALLBACK_SANS = "Helvetica"
FALLBACK_MONO = "Courier"

# Embedded face names, one per font role
FACE_NAMES = {
    "display": ("SC Display", 700),
    "body": ("SC Body", 400),
    "body-bold": ("SC Body", 700),
    "mono": ("SC Mono", 400),
}

EFFECT_ORIGINS = {
    "top-left": ("0%", "0%"),
    "top-right": ("100%", "0%"),
    "bottom-left": ("0%", "100%"),
    "bottom-right": ("100%", "100%"),
    "center": ("50%", "50%"),
}


def rgba(hex_color: str, alpha: float) -> str:
    r, g, b = hex_to_rgb(hex_color)
    return f"rgba({r}, {g}, {b}, {alpha})"


def font_face_css(bundle: AssetBundle) -> str:
    """@font-face rules for every role that resolved to real font bytes."""
    rules = []
    for role, (face, weight) in FACE_NAMES.items():
        entry = bundle.fonts.get(role)
        if entry is None or not entry.data:
            continue
        data = base64.b64encode(entry.data).decode("ascii")
        rules.append(
            f'@font-face {{ font-family: "{face}"; font-weight: {weight}; font-style: normal; '
            f'src: url(data:font/ttf;base64,{data}); }}'
        )
    return "\n".join(rules)


def css_family(name: str) -> str:
    """Single-quoted family name, safe inside a double-quoted style attribute."""
    return "'" + re.sub(r"[\"'\\<>&;]", "", name) + "'"


def font_stack(role: str, bundle: AssetBundle, palette: SlidePalette) -> str:
    family = {
        "display": palette.font_display,
        "body": palette.font_body,
        "body-bold": palette.font_body,
        "mono": palette.font_mono,
    }[role]
    fallback = f"{FALLBACK_MONO}, monospace" if role == "mono" else f"{FALLBACK_SANS}, sans-serif"
    entry = bundle.fonts.get(role)
    if entry is not None and entry.data:
        return f"{css_family(FACE_NAMES[role][0])}, {css_family(family)}, {fallback}"
    return f"{css_family(family)}, {fallback}"


def background_effect_html(slide, palette: SlidePalette) -> str:
    """Markup painted under the content for the slide's background directive."""
    directive = slide.background
    if isinstance(directive, Gradient):
        stops = []
        for stop in directive.stops:
            color, position = parse_gradient_stop(stop)
            color = color or palette.accent
            stops.append(color if position is None else f"{color} {position:g}%")
        return (f'<div class="bg" style="background-image: linear-gradient('
                f'{directive.angle}deg, {", ".join(stops)});"></div>')

    if not isinstance(directive, NamedEffect):
        return ""

    color = palette.effect_color
    ox, oy = EFFECT_ORIGINS[directive.position]
    if directive.effect == "glow":
        style = (f"background-image: radial-gradient(circle at {ox} {oy}, "
                 f"{rgba(color, 0.35)} 0%, {rgba(color, 0.12)} 30%, transparent 65%);")
        return f'<div class="bg" style="{style}"></div>'

    line = rgba(color, 0.18)
    if directive.effect == "grid":
        image = (f"linear-gradient({line} 1px, transparent 1px), "
                 f"linear-gradient(90deg, {line} 1px, transparent 1px)")
        size = "40px 40px"
    elif directive.effect == "hatch":
        image = f"repeating-linear-gradient(45deg, {line} 0px, {line} 1px, transparent 1px, transparent 14px)"
        size = "auto"
    else:  # dashed
        image = (f"repeating-linear-gradient(90deg, transparent 0px, transparent 8px, "
                 f"{palette.background} 8px, {palette.background} 16px), "
                 f"repeating-linear-gradient(180deg, transparent 0px, transparent 23px, "
                 f"{line} 23px, {line} 24px)")
        size = "auto"

    # Patterns cover the 60% of the slide nearest their anchor.
    anchor = {
        "top-left": "left: 0; top: 0;",
        "top-right": "right: 0; top: 0;",
        "bottom-left": "left: 0; bottom: 0;",
        "bottom-right": "right: 0; bottom: 0;",
        "center": "left: 20%; top: 20%;",
    }[directive.position]
    return (f'<div class="pattern" style="{anchor} background-image: {image}; '
            f'background-size: {size};"></div>')


class PDFRenderer(ExportBackend):
    """Render a Deck to PDF bytes."""

    format_name = "pdf"

    # -- text ------------------------------------------------------------
    def _line_html(self, line: TextLine, bundle: AssetBundle, palette: SlidePalette) -> str:
        spans = []
        for segment in line.segments:
            styles = [f"font-family: {font_stack(segment.role, bundle, palette)}"]
            if segment.role in ("display", "body-bold"):
                styles.append("font-weight: 700")
            if segment.code:
                styles.append(f"background-color: {palette.surface}")
            if segment.emphasized:
                styles.append(f"color: {palette.text}")
            spans.append(f'<span style="{"; ".join(styles)}">{html.escape(segment.text)}</span>')
        return "".join(spans)

    def _text_block_html(self, placed: PlacedBlock, align: str, bundle: AssetBundle,
                         palette: SlidePalette) -> List[str]:
        color = palette.muted if placed.color == "muted" else palette.text
        out = []
        for n, line in enumerate(placed.lines):
            top = placed.y + n * placed.line_height
            out.append(
                f'<div class="line" style="left: {placed.x:.2f}px; top: {top:.2f}px; '
                f'width: {placed.width:.2f}px; height: {placed.line_height:.2f}px; '
                f'line-height: {placed.line_height:.2f}px; font-size: {placed.font_size:.2f}px; '
                f'text-align: {align}; color: {color};">'
                f'{self._line_html(line, bundle, palette)}</div>'
            )
        return out

    def _list_html(self, placed: PlacedBlock, bundle: AssetBundle, palette: SlidePalette) -> List[str]:
        out = []
        for item in placed.items:
            top = placed.y + item.offset
            role = "body" if item.style == "body" else "display"
            out.append(
                f'<div class="line" style="left: {placed.x:.2f}px; top: {top:.2f}px; '
                f'width: {placed.indent:.2f}px; height: {item.line_height:.2f}px; '
                f'line-height: {item.line_height:.2f}px; font-size: {item.font_size:.2f}px; '
                f'color: {palette.accent}; font-family: {font_stack(role, bundle, palette)};">'
                f'{html.escape(item.marker)}</div>'
            )
            for n, line in enumerate(item.lines):
                out.append(
                    f'<div class="line" style="left: {placed.x + placed.indent:.2f}px; '
                    f'top: {top + n * item.line_height:.2f}px; '
                    f'width: {placed.width - placed.indent:.2f}px; height: {item.line_height:.2f}px; '
                    f'line-height: {item.line_height:.2f}px; font-size: {item.font_size:.2f}px; '
                    f'color: {palette.text};">{self._line_html(line, bundle, palette)}</div>'
                )
        return out

    def _grid_html(self, placed: PlacedBlock, bundle: AssetBundle, palette: SlidePalette) -> List[str]:
        out = []
        pad = placed.padding
        for card in placed.cards:
            top = placed.y + card.offset
            out.append(
                f'<div class="card" style="left: {card.x:.2f}px; top: {top:.2f}px; '
                f'width: {card.width:.2f}px; height: {card.height:.2f}px; '
                f'background-color: {palette.surface}; border-color: {palette.muted};"></div>'
            )
            for row in card.rows:
                color = {"icon": palette.accent, "image": palette.muted}.get(row.kind, palette.text)
                for n, line in enumerate(row.lines):
                    out.append(
                        f'<div class="line" style="left: {card.x + pad:.2f}px; '
                        f'top: {top + pad + row.offset + n * row.line_height:.2f}px; '
                        f'width: {card.width - 2 * pad:.2f}px; height: {row.line_height:.2f}px; '
                        f'line-height: {row.line_height:.2f}px; font-size: {row.font_size:.2f}px; '
                        f'text-align: center; color: {color};">{self._line_html(line, bundle, palette)}</div>'
                    )
        return out

    def _code_html(self, placed: PlacedBlock, bundle: AssetBundle, palette: SlidePalette) -> str:
        pad = placed.padding
        rows = "\n".join(html.escape(line.text) for line in placed.lines)
        return (
            f'<div class="code" style="left: {placed.x:.2f}px; top: {placed.y:.2f}px; '
            f'width: {placed.width:.2f}px; height: {placed.height:.2f}px; padding: {pad:.2f}px; '
            f'background-color: {palette.surface}; color: {palette.text}; '
            f'font-family: {font_stack("mono", bundle, palette)}; '
            f'font-size: {placed.font_size:.2f}px; line-height: {placed.line_height:.2f}px;">'
            f'{rows}</div>'
        )

    def _image_html(self, placed: PlacedBlock, bundle: AssetBundle, palette: SlidePalette) -> str:
        if placed.asset is not None:
            x, y, w, h = placed.image_box
            data = base64.b64encode(placed.asset.data).decode("ascii")
            return (f'<img class="image" style="left: {x:.2f}px; top: {y:.2f}px; '
                    f'width: {w:.2f}px; height: {h:.2f}px;" '
                    f'src="data:{placed.asset.mime_type};base64,{data}">')
        label = html.escape(f"[Image: {placed.block.description}]")
        return (
            f'<div class="placeholder" style="left: {placed.x:.2f}px; top: {placed.y:.2f}px; '
            f'width: {placed.width:.2f}px; height: {placed.height:.2f}px; '
            f'line-height: {placed.height:.2f}px; border-color: {palette.muted}; '
            f'color: {palette.muted}; font-family: {font_stack("body", bundle, palette)};">'
            f'{label}</div>'
        )

    # -- pages -----------------------------------------------------------
    def slide_html(self, layout: SlideLayout, palette: SlidePalette, bundle: AssetBundle) -> str:
        parts = [f'<section class="slide" style="background-color: {palette.background};">']
        parts.append(background_effect_html(layout.slide, palette))
        for placed in layout.blocks:
            if placed.kind in ("heading", "paragraph"):
                parts.extend(self._text_block_html(placed, layout.alignment.horizontal, bundle, palette))
            elif placed.kind == "list":
                parts.extend(self._list_html(placed, bundle, palette))
            elif placed.kind == "grid":
                parts.extend(self._grid_html(placed, bundle, palette))
            elif placed.kind == "code":
                parts.append(self._code_html(placed, bundle, palette))
            elif placed.kind == "image":
                parts.append(self._image_html(placed, bundle, palette))
        if layout.footer_y is not None:
            size = layout.footer_size
            parts.append(
                f'<div class="line" style="left: {layout.content_x:.2f}px; top: {layout.footer_y:.2f}px; '
                f'width: {layout.content_width:.2f}px; font-size: {size:.2f}px; '
                f'line-height: {size * 1.5:.2f}px; text-align: center; '
                f'color: {palette.muted}; font-family: {font_stack("body", bundle, palette)};">'
                f'{html.escape(layout.slide.footer)}</div>'
            )
        if layout.number_box is not None:
            x, y, w, h = layout.number_box
            parts.append(
                f'<div class="line number" style="left: {x:.2f}px; top: {y:.2f}px; width: {w:.2f}px; '
                f'height: {h:.2f}px; line-height: {h:.2f}px; font-size: {layout.number_size:.2f}px; '
                f'text-align: right; color: {palette.muted}; '
                f'font-family: {font_stack("mono", bundle, palette)};">{layout.number}</div>'
            )
        parts.append("</section>")
        return "".join(parts)

    def document_html(self, deck: Deck, bundle: AssetBundle) -> str:
        engine = self.layout_engine(deck, bundle)
        pages = []
        for slide in deck.slides:
            layout = engine.layout_slide(slide, bundle.images)
            pages.append(self.slide_html(layout, deck.theme.palette_for(slide), bundle))
        title = html.escape(deck.title or "Slides")
        return (f'<!DOCTYPE html><html><head><meta charset="utf-8"><title>{title}</title></head>'
                f'<body>{"".join(pages)}</body></html>')

    def stylesheet(self, deck: Deck, bundle: AssetBundle) -> str:
        g = deck.theme.geometry
        return f"""
            {font_face_css(bundle)}
            @page {{ size: {g.width_px}px {g.height_px}px; margin: 0; }}
            html, body {{ margin: 0; padding: 0; }}
            .slide {{
                position: relative; overflow: hidden; box-sizing: border-box;
                width: {g.width_px}px; height: {g.height_px}px;
                page-break-after: always; page-break-inside: avoid;
            }}
            .slide:last-child {{ page-break-after: auto; }}
            .bg {{ position: absolute; left: 0; top: 0; width: 100%; height: 100%; }}
            .pattern {{ position: absolute; width: 60%; height: 60%; }}
            .line {{ position: absolute; white-space: pre; overflow: hidden; margin: 0; }}
            .code {{ position: absolute; white-space: pre; overflow: hidden; box-sizing: border-box;
                     border-radius: 8px; }}
            .image {{ position: absolute; }}
            .card {{ position: absolute; box-sizing: border-box; border: 1px solid; border-radius: 8px; }}
            .placeholder {{ position: absolute; box-sizing: border-box; border: 2px dashed;
                            border-radius: 8px; text-align: center; font-size: 16px;
                            overflow: hidden; white-space: nowrap; }}
        """

    def render(self, deck: Deck, bundle: Optional[AssetBundle] = None) -> bytes:
        bundle = bundle or AssetBundle()
        font_config = FontConfiguration()
        css = CSS(string=self.stylesheet(deck, bundle), font_config=font_config)
        document = HTML(string=self.document_html(deck, bundle))
        pdf_bytes = document.write_pdf(stylesheets=[css], font_config=font_config)
        logger.info(f"📄 Rendered {deck.total_slides} slides to PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes
