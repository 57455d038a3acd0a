"""Combine per-slide drafts and the resolved theme into an immutable Deck."""
import hashlib
import logging
from typing import Dict, Iterable, List, Optional

from .block_parser import SlideDraft
from .errors import MalformedDocumentError
from .models import Deck, Heading, ImageManifestEntry, Slide, Theme

logger = logging.getLogger(__name__)


def deck_id_for(text: str) -> str:
    """Stable id derived from the source text."""
    return hashlib.sha1(text.encode("utf-8", "surrogatepass")).hexdigest()[:12]


def freeze_slide(draft: SlideDraft) -> Slide:
    notes = "\n".join(draft.notes) if draft.notes else None
    return Slide(
        index=draft.index,
        blocks=tuple(draft.blocks),
        background=draft.background,
        is_section=draft.is_section,
        pacing_breakpoints=tuple(draft.pacing_breakpoints),
        speaker_notes=notes,
        section_name=draft.section_name,
        footer=draft.footer,
        alignment=draft.alignment,
    )


def find_title(slides: Iterable[Slide]) -> Optional[str]:
    for slide in slides:
        for block in slide.blocks:
            if isinstance(block, Heading) and block.level == 1 and block.text:
                return block.text
    return None


def _check(slides: List[Slide]):
    for position, slide in enumerate(slides):
        if slide.index != position:
            raise MalformedDocumentError(f"Slide {slide.index} assembled at position {position}")
        previous = 0
        for breakpoint in slide.pacing_breakpoints:
            if not previous < breakpoint < len(slide.blocks):
                raise MalformedDocumentError(
                    f"Slide {slide.index}: pacing breakpoint {breakpoint} out of order")
            previous = breakpoint


def assemble(drafts: List[SlideDraft], theme: Theme,
             manifest: Optional[Dict[str, ImageManifestEntry]] = None,
             deck_id: str = "") -> Deck:
    """
    Freeze slide drafts into a :class:`Deck`.

    Raises:
        MalformedDocumentError: If the drafts violate slide ordering invariants
    """
    if not drafts:
        raise MalformedDocumentError("A deck needs at least one slide")

    slides = [freeze_slide(draft) for draft in drafts]
    _check(slides)

    sections = []
    for slide in slides:
        if slide.section_name and slide.section_name not in sections:
            sections.append(slide.section_name)

    deck = Deck(
        id=deck_id,
        slides=tuple(slides),
        theme=theme,
        title=find_title(slides),
        sections=tuple(sections),
        image_manifest=tuple((manifest or {}).items()),
    )
    logger.debug(f"Assembled deck {deck.id}: {deck.total_slides} slides, {deck.image_count} images")
    return deck
