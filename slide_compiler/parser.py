"""
Entry points for compiling slide markdown into a Deck.

Both functions are total: any string produces a Deck.  Problems in the input
surface as :class:`~slide_compiler.errors.ParseDegraded` warnings.
"""
import logging
from typing import Optional

from .assembler import assemble, deck_id_for
from .block_parser import parse_blocks
from .errors import ParseDegraded
from .frontmatter import extract_frontmatter
from .models import Deck, ParseResult
from .segmenter import segment
from .theme_loader import resolve
from .tokenizer import ClassifierState, classify_lines

logger = logging.getLogger(__name__)


def parse_with_warnings(text: str, theme_css: Optional[str] = None,
                        deck_id: Optional[str] = None) -> ParseResult:
    """
    Parse slide markdown, returning the deck together with parse warnings.

    Args:
        text: Slide markdown
        theme_css: Raw theme CSS; the built-in palette is used when omitted
        deck_id: Deck identifier; derived from the text when omitted

    Returns:
        ParseResult
    """
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    front = extract_frontmatter(text)
    warnings = list(front.warnings)

    state = ClassifierState()
    lines = classify_lines(front.body, state, start=front.line_offset + 1)
    if state.unclosed_fence_line is not None:
        warnings.append(ParseDegraded(
            state.unclosed_fence_line,
            "code fence is never closed; the rest of the document is treated as code"))

    manifest_refs = front.asset_refs()
    drafts = []
    section_name = None
    for chunk in segment(lines):
        draft = parse_blocks(chunk, manifest_refs, section_name)
        section_name = draft.section_name
        warnings.extend(draft.warnings)
        drafts.append(draft)

    deck = assemble(drafts, resolve(theme_css), front.images, deck_id or deck_id_for(text))
    for warning in warnings:
        logger.warning(f"⚠️ {warning}")
    return ParseResult(deck=deck, warnings=tuple(warnings))


def parse(text: str, theme_css: Optional[str] = None, deck_id: Optional[str] = None) -> Deck:
    """Parse slide markdown into a :class:`Deck`."""
    return parse_with_warnings(text, theme_css, deck_id).deck
