"""Render a Deck back to canonical slide markdown."""
from typing import List, Optional

from .frontmatter import serialize_frontmatter
from .inline import serialize_runs
from .models import (
    BulletList,
    CardGrid,
    CodeBlock,
    Deck,
    Divider,
    Gradient,
    GridRow,
    Heading,
    ImagePlaceholder,
    ListItem,
    NamedEffect,
    Paragraph,
    Slide,
)
from .tokenizer import PACING_TOKEN

_ITEM_PREFIX = {"body": "", "title": "# ", "h1": "## ", "h2": "### "}
_ROW_PREFIX = {"body": "", "h1": "# ", "h2": "## ", "h3": "### "}
# Ignored comment that ends grid mode before a list, a pause or another grid.
GRID_END = "<!-- = -->"


def _item_line(item: ListItem, marker: str) -> str:
    return f"{marker} {_ITEM_PREFIX.get(item.style, '')}{serialize_runs(item.runs)}"


def _row_line(row: GridRow) -> str:
    if row.kind == "icon":
        return f"- [icon: {row.value}]"
    if row.kind == "image":
        return f"- [image: {row.value}]"
    return f"- {_ROW_PREFIX.get(row.level, '')}{serialize_runs(row.runs)}"


def _grid_lines(grid: CardGrid) -> List[str]:
    lines = ["[grid]"]
    stage = 0
    for n, card in enumerate(grid.cards):
        if card.reveal_order > stage:
            lines.extend([PACING_TOKEN] * (card.reveal_order - stage))
            stage = card.reveal_order
        elif n:
            lines.append("")
        lines.extend(_row_line(row) for row in card.rows)
    return lines


def block_to_lines(block) -> List[str]:
    if isinstance(block, Heading):
        parts = ["#" * block.level]
        text = serialize_runs(block.runs)
        if text:
            parts.append(text)
        if block.animation_hint:
            parts.append(f"[{block.animation_hint}]")
        return [" ".join(parts)]
    if isinstance(block, Paragraph):
        return [serialize_runs(block.runs)]
    if isinstance(block, BulletList):
        if block.ordered:
            return [_item_line(item, f"{n}.") for n, item in enumerate(block.items, 1)]
        return [_item_line(item, "-") for item in block.items]
    if isinstance(block, CodeBlock):
        return [f"```{block.language}", block.raw_text, "```"]
    if isinstance(block, ImagePlaceholder):
        if block.position:
            return [f"[image: {block.description}, {block.position}]"]
        return [f"[image: {block.description}]"]
    if isinstance(block, Divider):
        return ["[space]" if block.size == 1 else f"[space:{block.size}]"]
    if isinstance(block, CardGrid):
        return _grid_lines(block)
    raise TypeError(f"Unknown block type: {type(block).__name__}")


def slide_to_markdown(slide: Slide, previous_section: Optional[str] = None) -> str:
    lines = []
    if slide.section_name and slide.section_name != previous_section:
        lines.append(f"<!-- {slide.section_name} -->")
    if slide.is_section:
        lines.append("[section]")
    if isinstance(slide.background, NamedEffect):
        lines.append(f"[bg:{slide.background.effect_id}]")
    elif isinstance(slide.background, Gradient):
        lines.append(f"[bg:{slide.background.spec}]")
    if slide.alignment:
        lines.append(f"[{slide.alignment.horizontal}, {slide.alignment.vertical}]")

    breakpoints = set(slide.pacing_breakpoints)
    for i, block in enumerate(slide.blocks):
        if i in breakpoints:
            lines.append(PACING_TOKEN)
        lines.extend(block_to_lines(block))
        following = slide.blocks[i + 1] if i + 1 < len(slide.blocks) else None
        ends_grid = i + 1 in breakpoints or isinstance(following, (BulletList, CardGrid))
        if isinstance(block, CardGrid) and ends_grid:
            lines.append(GRID_END)

    if slide.footer:
        lines.append(f"$<{slide.footer}>")
    if slide.speaker_notes is not None:
        lines.extend(f"> {note}".rstrip() for note in slide.speaker_notes.split("\n"))
    return "\n".join(lines)


def to_markdown(deck: Deck) -> str:
    """
    Serialize *deck* so that parsing the result gives back the same slides.

    The image manifest, if any, is written as a trailing front-matter block.
    """
    parts = []
    previous_section = None
    for slide in deck.slides:
        parts.append(slide_to_markdown(slide, previous_section))
        previous_section = slide.section_name
    text = "\n---\n".join(parts)
    manifest = deck.manifest()
    if manifest:
        text += serialize_frontmatter(manifest)
    return text + "\n"
