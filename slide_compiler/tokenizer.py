"""
Line classifier for the slide markdown dialect.

Every directive is parsed into a typed payload here, once, so that the
block parser and the renderers never have to look at bracket syntax again.
Classification is line-local apart from the code-fence toggle.
"""
import enum
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .models import Alignment, Gradient, NamedEffect


class LineKind(enum.Enum):
    BLANK = "blank"
    FENCE = "fence"
    CODE = "code"
    SLIDE_BREAK = "slide_break"
    HEADING = "heading"
    SPEAKER_NOTE = "speaker_note"
    PACING = "pacing"
    BACKGROUND = "background"
    IMAGE = "image"
    SECTION = "section"
    GRID = "grid"
    SPACER = "spacer"
    ALIGNMENT = "alignment"
    FOOTER = "footer"
    COMMENT = "comment"
    BULLET = "bullet"
    PROSE = "prose"
    MALFORMED_DIRECTIVE = "malformed_directive"


@dataclass(frozen=True)
class HeadingPayload:
    level: int
    text: str
    animation_hint: Optional[str] = None


@dataclass(frozen=True)
class FencePayload:
    language: str
    opening: bool


@dataclass(frozen=True)
class ImagePayload:
    description: str
    position: Optional[str] = None


@dataclass(frozen=True)
class BulletPayload:
    text: str
    ordered: bool = False


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    raw: str
    line_number: int
    payload: Any = None


@dataclass
class ClassifierState:
    """Fence state carried across lines; inspected once classification ends."""
    in_fence: bool = False
    fence_opened_at: Optional[int] = None

    @property
    def unclosed_fence_line(self) -> Optional[int]:
        return self.fence_opened_at if self.in_fence else None


PACING_TOKEN = "**pause**"

ANIMATION_HINTS = ("anvil", "typewriter", "glow", "shake")
BG_EFFECTS = ("glow", "grid", "hatch", "dashed")
BG_POSITIONS = ("top-left", "top-right", "bottom-left", "bottom-right", "center")
BG_COLORS = ("amber", "blue", "purple", "rose", "emerald", "cyan", "orange", "pink", "accent")
IMAGE_POSITIONS = ("left", "right", "top", "bottom")
H_ALIGN = ("left", "center", "right")
V_ALIGN = ("top", "center", "bottom")

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_HINT_RE = re.compile(r"\[(\w+)\]\s*")
_BG_RE = re.compile(r"^\[bg:(.+)\]$", re.IGNORECASE)
_GRADIENT_RE = re.compile(r"^(?:linear-)?gradient\((.+)\)$", re.IGNORECASE)
_IMAGE_RE = re.compile(r"^\[image:\s*(.+?)\]$", re.IGNORECASE)
_SPACE_RE = re.compile(r"^\[space(?::(\d+))?\]$", re.IGNORECASE)
_ALIGN_RE = re.compile(r"^\[(\w+)\s*,\s*(\w+)\]$")
_FOOTER_RE = re.compile(r"^\$<(.+)>$")
_COMMENT_RE = re.compile(r"^<!--\s*(.+?)\s*-->$")
_BULLET_RE = re.compile(r"^[-*]\s+(.+)$")
_ORDERED_RE = re.compile(r"^\d+\.\s+(.+)$")


def parse_background(value: str):
    """
    Parse the inside of ``[bg:...]``.

    Returns a :class:`NamedEffect`, a :class:`Gradient`, or ``None`` when the
    value is not part of the grammar.
    """
    value = value.strip()
    gradient_match = _GRADIENT_RE.match(value)
    if gradient_match:
        return _parse_gradient(gradient_match.group(1))

    lower = value.lower()
    effect, sep, rest = lower.partition("-")
    if not sep or effect not in BG_EFFECTS:
        return None
    for position in BG_POSITIONS:
        if rest == position:
            return NamedEffect(effect, position)
        if rest.startswith(position + "-"):
            color = rest[len(position) + 1:]
            if color not in BG_COLORS:
                return None
            return NamedEffect(effect, position, color)
    return None


def _parse_gradient(body: str) -> Optional[Gradient]:
    parts = [p.strip() for p in re.split(r",(?![^(]*\))", body) if p.strip()]
    angle = 180
    if parts and re.fullmatch(r"-?\d+deg", parts[0]):
        angle = int(parts.pop(0)[:-3]) % 360
    if len(parts) < 2:
        return None
    return Gradient(angle=angle, stops=tuple(parts))


def _split_hint(text: str) -> Tuple[str, Optional[str]]:
    # Only the last bracket can hold a trailing hint.
    bracket = text.rfind("[")
    match = _HINT_RE.fullmatch(text, bracket) if bracket >= 0 else None
    if match and match.group(1).lower() in ANIMATION_HINTS:
        return text[:bracket].strip(), match.group(1).lower()
    return text, None


def _parse_image(value: str) -> ImagePayload:
    head, sep, tail = value.rpartition(",")
    if sep and tail.strip().lower() in IMAGE_POSITIONS:
        return ImagePayload(head.strip(), tail.strip().lower())
    return ImagePayload(value.strip())


def classify_line(line: str, line_number: int, state: ClassifierState) -> ClassifiedLine:
    """Classify one line, updating the fence toggle in *state*."""
    stripped = line.strip()

    if stripped.startswith("```"):
        if state.in_fence:
            state.in_fence = False
            return ClassifiedLine(LineKind.FENCE, line, line_number, FencePayload("", opening=False))
        state.in_fence = True
        state.fence_opened_at = line_number
        return ClassifiedLine(LineKind.FENCE, line, line_number,
                              FencePayload(stripped[3:].strip(), opening=True))

    if state.in_fence:
        return ClassifiedLine(LineKind.CODE, line, line_number, line)

    if not stripped:
        return ClassifiedLine(LineKind.BLANK, line, line_number)

    if stripped == "---":
        return ClassifiedLine(LineKind.SLIDE_BREAK, line, line_number)

    heading = _HEADING_RE.match(stripped)
    if heading:
        text, hint = _split_hint(heading.group(2).strip())
        return ClassifiedLine(LineKind.HEADING, line, line_number,
                              HeadingPayload(len(heading.group(1)), text, hint))

    if stripped.startswith(">"):
        return ClassifiedLine(LineKind.SPEAKER_NOTE, line, line_number, stripped[1:].strip())

    if stripped == PACING_TOKEN:
        return ClassifiedLine(LineKind.PACING, line, line_number)

    bg = _BG_RE.match(stripped)
    if bg:
        directive = parse_background(bg.group(1))
        if directive is None:
            return ClassifiedLine(LineKind.MALFORMED_DIRECTIVE, line, line_number,
                                  f"unknown background '{bg.group(1)}'")
        return ClassifiedLine(LineKind.BACKGROUND, line, line_number, directive)

    image = _IMAGE_RE.match(stripped)
    if image:
        return ClassifiedLine(LineKind.IMAGE, line, line_number, _parse_image(image.group(1)))

    if stripped.lower() == "[section]":
        return ClassifiedLine(LineKind.SECTION, line, line_number)

    if stripped.lower() == "[grid]":
        return ClassifiedLine(LineKind.GRID, line, line_number)

    space = _SPACE_RE.match(stripped)
    if space:
        size = int(space.group(1)) if space.group(1) else 1
        return ClassifiedLine(LineKind.SPACER, line, line_number, max(size, 1))

    align = _ALIGN_RE.match(stripped)
    if align:
        h, v = align.group(1).lower(), align.group(2).lower()
        if h in H_ALIGN and v in V_ALIGN:
            return ClassifiedLine(LineKind.ALIGNMENT, line, line_number, Alignment(h, v))

    footer = _FOOTER_RE.match(stripped)
    if footer and footer.group(1).strip():
        return ClassifiedLine(LineKind.FOOTER, line, line_number, footer.group(1).strip())

    comment = _COMMENT_RE.match(stripped)
    if comment:
        return ClassifiedLine(LineKind.COMMENT, line, line_number, comment.group(1))

    bullet = _BULLET_RE.match(stripped)
    if bullet:
        return ClassifiedLine(LineKind.BULLET, line, line_number, BulletPayload(bullet.group(1)))

    ordered = _ORDERED_RE.match(stripped)
    if ordered:
        return ClassifiedLine(LineKind.BULLET, line, line_number,
                              BulletPayload(ordered.group(1), ordered=True))

    return ClassifiedLine(LineKind.PROSE, line, line_number, stripped)


def classify_lines(text: str, state: Optional[ClassifierState] = None,
                   start: int = 1) -> List[ClassifiedLine]:
    """
    Classify every line of *text*.

    Pass a :class:`ClassifierState` to find out afterwards whether a code
    fence was left open; the lines after an unclosed fence are all ``CODE``.
    *start* is the source line number of the first line of *text*.
    """
    state = state if state is not None else ClassifierState()
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return [classify_line(line, number, state)
            for number, line in enumerate(text.split("\n"), start)]
