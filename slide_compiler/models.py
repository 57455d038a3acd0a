"""
Data models for the slide compiler.

Everything produced by :func:`slide_compiler.parse` is a frozen dataclass
holding tuples, so a Deck can be shared freely between export calls.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .errors import ParseDegraded


# ---------------------------------------------------------------------------
# Inline content
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InlineRun:
    """A span of text with uniform inline formatting."""
    text: str
    is_emphasized: bool = False
    is_code: bool = False


def runs_to_text(runs: Tuple[InlineRun, ...]) -> str:
    """Plain text of a run sequence, delimiters removed."""
    return "".join(run.text for run in runs)


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Heading:
    level: int
    runs: Tuple[InlineRun, ...]
    animation_hint: Optional[str] = None

    @property
    def text(self) -> str:
        return runs_to_text(self.runs)

    @property
    def inline_emphasis(self) -> bool:
        return any(run.is_emphasized or run.is_code for run in self.runs)


@dataclass(frozen=True)
class Paragraph:
    runs: Tuple[InlineRun, ...]

    @property
    def text(self) -> str:
        return runs_to_text(self.runs)


@dataclass(frozen=True)
class ListItem:
    runs: Tuple[InlineRun, ...]
    style: str = "body"  # body | title | h1 | h2

    @property
    def text(self) -> str:
        return runs_to_text(self.runs)


@dataclass(frozen=True)
class BulletList:
    items: Tuple[ListItem, ...]
    ordered: bool = False


@dataclass(frozen=True)
class CodeBlock:
    language: str
    raw_text: str


@dataclass(frozen=True)
class ImagePlaceholder:
    description: str
    position: Optional[str] = None
    asset_ref: Optional[str] = None  # URI from the deck's image manifest

    @property
    def ref(self) -> str:
        """What the image resolver should look up for this block."""
        return self.asset_ref or self.description


@dataclass(frozen=True)
class Divider:
    size: int = 1


@dataclass(frozen=True)
class GridRow:
    """One stacked row of a grid card."""
    kind: str = "text"  # text | icon | image
    runs: Tuple[InlineRun, ...] = ()
    level: str = "body"  # body | h1 | h2 | h3
    value: str = ""  # icon name or image description

    @property
    def text(self) -> str:
        return runs_to_text(self.runs) if self.kind == "text" else self.value


@dataclass(frozen=True)
class GridCard:
    rows: Tuple[GridRow, ...]
    reveal_order: int = 0


@dataclass(frozen=True)
class CardGrid:
    """
    Cards laid out in columns.

    ``reveal_order`` on each card counts the pauses seen since the grid
    started, so cards after a pause appear together on the next advance.
    """
    cards: Tuple[GridCard, ...]


ContentBlock = Union[Heading, Paragraph, BulletList, CodeBlock, ImagePlaceholder, Divider, CardGrid]

SPLIT_POSITIONS = ("left", "right")


# ---------------------------------------------------------------------------
# Background directives
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoBackground:
    pass


@dataclass(frozen=True)
class NamedEffect:
    effect: str      # glow | grid | hatch | dashed
    position: str    # top-left | top-right | bottom-left | bottom-right | center
    color: str = "accent"

    @property
    def effect_id(self) -> str:
        if self.color == "accent":
            return f"{self.effect}-{self.position}"
        return f"{self.effect}-{self.position}-{self.color}"


@dataclass(frozen=True)
class Gradient:
    angle: int
    stops: Tuple[str, ...]

    @property
    def spec(self) -> str:
        return f"gradient({self.angle}deg, {', '.join(self.stops)})"


BackgroundDirective = Union[NoBackground, NamedEffect, Gradient]

NO_BACKGROUND = NoBackground()


@dataclass(frozen=True)
class Alignment:
    horizontal: str = "center"
    vertical: str = "center"


# ---------------------------------------------------------------------------
# Slides and decks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Slide:
    """
    One page of a deck.

    ``pacing_breakpoints`` holds block indices; the block at each index is the
    first one revealed after the corresponding pause.
    """
    index: int
    blocks: Tuple[ContentBlock, ...] = ()
    background: BackgroundDirective = NO_BACKGROUND
    is_section: bool = False
    pacing_breakpoints: Tuple[int, ...] = ()
    speaker_notes: Optional[str] = None
    section_name: Optional[str] = None
    footer: Optional[str] = None
    alignment: Optional[Alignment] = None

    def reveal_stages(self) -> List[Tuple[ContentBlock, ...]]:
        """Split blocks into the groups revealed on each advance."""
        stages = []
        start = 0
        for breakpoint in self.pacing_breakpoints:
            stages.append(self.blocks[start:breakpoint])
            start = breakpoint
        stages.append(self.blocks[start:])
        return stages

    def image_blocks(self) -> List[ImagePlaceholder]:
        return [b for b in self.blocks if isinstance(b, ImagePlaceholder)]

    @property
    def split_image(self) -> Optional[ImagePlaceholder]:
        """First image pinned to the left or right; the other blocks flow beside it."""
        for block in self.blocks:
            if isinstance(block, ImagePlaceholder) and block.position in SPLIT_POSITIONS:
                return block
        return None


@dataclass(frozen=True)
class SlideGeometry:
    """Slide size in CSS pixels (96 per inch)."""
    width_px: int = 960
    height_px: int = 540
    padding_px: int = 54

    @property
    def width_pt(self) -> float:
        return self.width_px * 0.75

    @property
    def height_pt(self) -> float:
        return self.height_px * 0.75

    @property
    def padding_pt(self) -> float:
        return self.padding_px * 0.75


@dataclass(frozen=True)
class SlidePalette:
    """Concrete colours and fonts for rendering one slide."""
    background: str
    text: str
    accent: str
    muted: str
    surface: str
    effect_color: str
    font_display: str
    font_body: str
    font_mono: str


@dataclass(frozen=True)
class Theme:
    background: str
    text: str
    accent: str
    muted: str
    surface: str
    font_display: str
    font_body: str
    font_mono: str
    geometry: SlideGeometry = field(default_factory=SlideGeometry)

    def as_dict(self) -> Dict[str, str]:
        return {
            "background": self.background,
            "text": self.text,
            "accent": self.accent,
            "muted": self.muted,
            "surface": self.surface,
            "font-display": self.font_display,
            "font-body": self.font_body,
            "font-mono": self.font_mono,
        }

    def palette_for(self, slide: Slide) -> SlidePalette:
        from .theme_loader import effect_color  # avoid import cycle

        background = self.surface if slide.is_section else self.background
        if isinstance(slide.background, NamedEffect):
            effect = effect_color(slide.background.color, self.accent)
        else:
            effect = self.accent
        return SlidePalette(
            background=background,
            text=self.text,
            accent=self.accent,
            muted=self.muted,
            surface=self.surface,
            effect_color=effect,
            font_display=self.font_display,
            font_body=self.font_body,
            font_mono=self.font_mono,
        )


@dataclass(frozen=True)
class ImageManifestEntry:
    active: str = "generated"
    generated: Optional[str] = None
    uploaded: Optional[str] = None
    restyled: Optional[str] = None

    def active_url(self) -> Optional[str]:
        url = getattr(self, self.active, None) if self.active in ("generated", "uploaded", "restyled") else None
        return url or self.generated or self.uploaded or self.restyled


@dataclass(frozen=True)
class Deck:
    id: str
    slides: Tuple[Slide, ...]
    theme: Theme
    title: Optional[str] = None
    sections: Tuple[str, ...] = ()
    image_manifest: Tuple[Tuple[str, ImageManifestEntry], ...] = ()

    @property
    def total_slides(self) -> int:
        return len(self.slides)

    @property
    def image_count(self) -> int:
        return sum(len(slide.image_blocks()) for slide in self.slides)

    def manifest(self) -> Dict[str, ImageManifestEntry]:
        return dict(self.image_manifest)


@dataclass(frozen=True)
class ParseResult:
    deck: Deck
    warnings: Tuple[ParseDegraded, ...] = ()


# ---------------------------------------------------------------------------
# Export-time assets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedAsset:
    """Decoded image bytes ready for embedding; keyed by ``content_hash``."""
    data: bytes
    content_hash: str
    mime_type: str
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 16 / 9


@dataclass(frozen=True)
class FontEntry:
    family: str
    weight: int
    style: str
    data: Optional[bytes] = None
    is_fallback: bool = False

    @property
    def pool_key(self) -> str:
        return f"{self.family}|{self.weight}|{self.style}"
