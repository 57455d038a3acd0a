"""
Block parser: turns one slide's classified lines into content blocks.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ParseDegraded
from .inline import scan_inline
from .models import (
    NO_BACKGROUND,
    Alignment,
    BulletList,
    CardGrid,
    CodeBlock,
    ContentBlock,
    Divider,
    GridCard,
    GridRow,
    Heading,
    ImagePlaceholder,
    ListItem,
    Paragraph,
)
from .segmenter import SlideChunk
from .tokenizer import ClassifiedLine, LineKind

logger = logging.getLogger(__name__)

_LIST_ITEM_STYLES = (("### ", "h2"), ("## ", "h1"), ("# ", "title"))
_GRID_ROW_STYLES = (("### ", "h3"), ("## ", "h2"), ("# ", "h1"))
_GRID_ICON_RE = re.compile(r"^\[icon:\s*(.+?)\]$", re.IGNORECASE)
_GRID_IMAGE_RE = re.compile(r"^\[image:\s*(.+?)\]$", re.IGNORECASE)


@dataclass
class SlideDraft:
    """Mutable accumulator for one slide; frozen into a Slide by the assembler."""
    index: int
    blocks: List[ContentBlock] = field(default_factory=list)
    background: object = NO_BACKGROUND
    is_section: bool = False
    pacing_breakpoints: List[int] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    section_name: Optional[str] = None
    footer: Optional[str] = None
    alignment: Optional[Alignment] = None
    warnings: List[ParseDegraded] = field(default_factory=list)


def parse_list_item(text: str) -> ListItem:
    stripped = text.strip()
    for prefix, style in _LIST_ITEM_STYLES:
        if stripped.startswith(prefix):
            return ListItem(scan_inline(stripped[len(prefix):].strip()), style)
    return ListItem(scan_inline(stripped))


def parse_grid_row(text: str) -> GridRow:
    """One bullet of a grid card: an icon, an image, a heading or body text."""
    stripped = text.strip()
    icon = _GRID_ICON_RE.match(stripped)
    if icon:
        return GridRow("icon", value=icon.group(1).strip())
    image = _GRID_IMAGE_RE.match(stripped)
    if image:
        return GridRow("image", value=image.group(1).strip())
    for prefix, level in _GRID_ROW_STYLES:
        if stripped.startswith(prefix):
            return GridRow("text", scan_inline(stripped[len(prefix):].strip()), level)
    return GridRow("text", scan_inline(stripped))


class _BlockBuilder:
    def __init__(self, draft: SlideDraft, manifest: Dict[str, str]):
        self.draft = draft
        self.manifest = manifest
        self.list_items: List[ListItem] = []
        self.list_ordered = False
        self.code_lines: Optional[List[str]] = None
        self.code_language = ""
        # None outside [grid] mode
        self.grid_cards: Optional[List[GridCard]] = None
        self.card_rows: List[str] = []
        self.card_reveal = 0
        self.grid_stage = 0

    # -- open runs -------------------------------------------------------
    def close_list(self):
        if self.list_items:
            self.draft.blocks.append(BulletList(tuple(self.list_items), self.list_ordered))
            self.list_items = []

    def close_code(self):
        if self.code_lines is not None:
            self.draft.blocks.append(CodeBlock(self.code_language, "\n".join(self.code_lines)))
            self.code_lines = None
            self.code_language = ""

    def close_card(self):
        if self.card_rows:
            rows = tuple(parse_grid_row(text) for text in self.card_rows)
            self.grid_cards.append(GridCard(rows, self.card_reveal))
            self.card_rows = []

    def close_grid(self):
        if self.grid_cards is None:
            return
        self.close_card()
        if self.grid_cards:
            self.draft.blocks.append(CardGrid(tuple(self.grid_cards)))
        self.grid_cards = None

    def feed_grid(self, line: ClassifiedLine) -> bool:
        """Consume *line* as part of the open grid; False once the grid has ended."""
        kind = line.kind
        if kind is LineKind.BULLET and not line.payload.ordered:
            if not self.card_rows:
                self.card_reveal = self.grid_stage
            self.card_rows.append(line.payload.text)
        elif kind is LineKind.BLANK or kind is LineKind.GRID:
            self.close_card()
        elif kind is LineKind.PACING:
            self.close_card()
            self.grid_stage += 1
        else:
            self.close_grid()
            return False
        return True

    def add_block(self, block: ContentBlock):
        self.close_list()
        self.draft.blocks.append(block)

    # -- dispatch --------------------------------------------------------
    def feed(self, line: ClassifiedLine):
        kind = line.kind
        payload = line.payload

        if self.grid_cards is not None and self.feed_grid(line):
            return

        if kind is LineKind.FENCE:
            if payload.opening:
                self.close_list()
                self.code_lines = []
                self.code_language = payload.language
            else:
                self.close_code()
        elif kind is LineKind.CODE:
            if self.code_lines is None:
                # Only reachable when a chunk starts inside a fence.
                self.code_lines = []
            self.code_lines.append(payload)
        elif kind is LineKind.BLANK:
            pass
        elif kind is LineKind.HEADING:
            self.add_block(Heading(payload.level, scan_inline(payload.text), payload.animation_hint))
        elif kind is LineKind.BULLET:
            if self.list_items and self.list_ordered != payload.ordered:
                self.close_list()
            self.list_ordered = payload.ordered
            self.list_items.append(parse_list_item(payload.text))
        elif kind is LineKind.PROSE:
            self.add_block(Paragraph(scan_inline(payload)))
        elif kind is LineKind.IMAGE:
            self.add_block(ImagePlaceholder(payload.description, payload.position,
                                            self.manifest.get(payload.description)))
        elif kind is LineKind.SPACER:
            self.add_block(Divider(payload))
        elif kind is LineKind.PACING:
            self.close_list()
            self.draft.pacing_breakpoints.append(len(self.draft.blocks))
        elif kind is LineKind.SPEAKER_NOTE:
            self.draft.notes.append(payload)
        elif kind is LineKind.BACKGROUND:
            self.draft.background = payload
        elif kind is LineKind.SECTION:
            self.draft.is_section = True
        elif kind is LineKind.GRID:
            self.close_list()
            self.grid_cards = []
            self.card_rows = []
            self.grid_stage = 0
        elif kind is LineKind.ALIGNMENT:
            self.draft.alignment = payload
        elif kind is LineKind.FOOTER:
            self.draft.footer = payload
        elif kind is LineKind.COMMENT:
            if not payload.startswith("="):
                self.draft.section_name = payload
        elif kind is LineKind.MALFORMED_DIRECTIVE:
            self.draft.warnings.append(ParseDegraded(line.line_number, payload))
        else:
            raise AssertionError(f"unhandled line kind {kind}")

    def finish(self):
        self.close_grid()
        self.close_list()
        self.close_code()


def parse_blocks(chunk: SlideChunk, manifest: Optional[Dict[str, str]] = None,
                 section_name: Optional[str] = None) -> SlideDraft:
    """
    Build the blocks of one slide.

    Args:
        chunk: Lines of one slide from the segmenter
        manifest: Image description -> asset URI
        section_name: Section inherited from earlier slides

    Returns:
        SlideDraft with blocks in source order
    """
    draft = SlideDraft(index=chunk.index, section_name=section_name)
    builder = _BlockBuilder(draft, manifest or {})
    for line in chunk.lines:
        builder.feed(line)
    builder.finish()

    # Breakpoints past the last block mark a trailing pause; they reveal nothing.
    draft.pacing_breakpoints = sorted(set(b for b in draft.pacing_breakpoints
                                          if 0 < b < len(draft.blocks)))
    for warning in draft.warnings:
        logger.debug(f"Slide {chunk.index + 1}: {warning}")
    return draft
