"""
YAML front-matter holding the deck's image manifest.

The manifest can sit at the top of the document (``---`` / yaml / ``---``) or,
preferably, in one or more blocks at the end of it::

    ---
    v: 2
    images:
      a robot drawing:
        active: uploaded
        uploaded: https://cdn.example.com/robot.png
    ---

Only blocks that parse to a mapping with ``v`` or ``images`` keys are treated
as front-matter; anything else stays in the body as slides.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import yaml

from .errors import ParseDegraded
from .models import ImageManifestEntry

logger = logging.getLogger(__name__)

IMAGE_SLOTS = ("generated", "uploaded", "restyled")

_TOP_RE = re.compile(r"\A---\n((?:v:[ \t]*\d+[ \t]*(?=\n)|images:).*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_TAIL_RE = re.compile(r"\n---\n((?:v:[ \t]*\d+[ \t]*(?=\n)|images:).*?)\n---[ \t]*(?=\n|\Z)", re.DOTALL)
_FRONTMATTER_KEYS = ("v", "images")


@dataclass
class FrontMatter:
    body: str
    version: Optional[int] = None
    images: Dict[str, ImageManifestEntry] = field(default_factory=dict)
    warnings: List[ParseDegraded] = field(default_factory=list)
    # Source lines removed from the start of the document.
    line_offset: int = 0

    def asset_refs(self) -> Dict[str, str]:
        """Image description -> active asset URI."""
        refs = {}
        for description, entry in self.images.items():
            url = entry.active_url()
            if url:
                refs[description] = url
        return refs


def _entry_from_yaml(value) -> Optional[ImageManifestEntry]:
    if isinstance(value, str):
        return ImageManifestEntry(active="uploaded", uploaded=value)
    if not isinstance(value, dict):
        return None
    slots = {slot: str(value[slot]) for slot in IMAGE_SLOTS if value.get(slot)}
    active = str(value.get("active") or "generated")
    if active not in IMAGE_SLOTS:
        active = "generated"
    return ImageManifestEntry(active=active, **slots)


def _load_block(text: str, line_number: int, result: FrontMatter) -> bool:
    """Merge one YAML block into *result*; False if it is not front-matter."""
    try:
        data = yaml.safe_load(text)
    except (yaml.YAMLError, RecursionError) as e:
        # Deeply nested flow collections exhaust the composer's recursion.
        result.warnings.append(ParseDegraded(line_number, f"invalid front-matter ignored: {e}"))
        return True
    if not isinstance(data, dict) or not any(key in data for key in _FRONTMATTER_KEYS):
        return False

    if isinstance(data.get("v"), int):
        result.version = data["v"]
    images = data.get("images") or {}
    if not isinstance(images, dict):
        result.warnings.append(ParseDegraded(line_number, "front-matter 'images' is not a mapping"))
        return True
    for description, value in images.items():
        entry = _entry_from_yaml(value)
        if entry is None:
            result.warnings.append(
                ParseDegraded(line_number, f"ignoring image entry '{description}'"))
            continue
        result.images[str(description)] = entry
    return True


def extract_frontmatter(text: str) -> FrontMatter:
    """
    Split front-matter blocks from the slide body.

    Args:
        text: Full document text (newlines already normalised)

    Returns:
        FrontMatter with the remaining body and the merged image manifest
    """
    result = FrontMatter(body=text)
    body = text

    top = _TOP_RE.match(body)
    if top and _load_block(top.group(1), 2, result):
        body = body[top.end():]
        result.line_offset = text[:top.end()].count("\n")

    kept = []
    last = 0
    for match in _TAIL_RE.finditer(body):
        line_number = result.line_offset + body.count("\n", 0, match.start()) + 3
        if _load_block(match.group(1), line_number, result):
            kept.append(body[last:match.start()])
            last = match.end()
    kept.append(body[last:])
    result.body = "".join(kept)

    if result.images:
        logger.debug(f"Front-matter: {len(result.images)} image(s) in manifest")
    return result


def serialize_frontmatter(images: Dict[str, ImageManifestEntry], version: Optional[int] = 2) -> str:
    """Render a trailing front-matter block, or '' when there is nothing to write."""
    if not images and not version:
        return ""
    data = {}
    if version:
        data["v"] = version
    if images:
        data["images"] = {
            description: {k: v for k, v in (("active", entry.active),
                                            ("generated", entry.generated),
                                            ("uploaded", entry.uploaded),
                                            ("restyled", entry.restyled)) if v}
            for description, entry in images.items()
        }
    content = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=10_000)
    return f"\n---\n{content}---"


def update_image_in_manifest(text: str, description: str, slot: str, url: str,
                             set_active: bool = True) -> str:
    """Store *url* in *slot* for an image description and move the manifest to the end."""
    if slot not in IMAGE_SLOTS:
        raise ValueError(f"Unknown image slot: {slot}")
    fm = extract_frontmatter(text)
    current = fm.images.get(description, ImageManifestEntry(active=slot))
    values = {s: getattr(current, s) for s in IMAGE_SLOTS}
    values[slot] = url
    fm.images[description] = ImageManifestEntry(
        active=slot if set_active else current.active, **values)
    return fm.body.rstrip() + serialize_frontmatter(fm.images)


def set_active_image_slot(text: str, description: str, slot: str) -> str:
    if slot not in IMAGE_SLOTS:
        raise ValueError(f"Unknown image slot: {slot}")
    fm = extract_frontmatter(text)
    entry = fm.images.get(description)
    if entry is not None:
        fm.images[description] = ImageManifestEntry(
            slot, entry.generated, entry.uploaded, entry.restyled)
    return fm.body.rstrip() + serialize_frontmatter(fm.images)


def remove_image_from_manifest(text: str, description: str) -> str:
    fm = extract_frontmatter(text)
    fm.images.pop(description, None)
    return fm.body.rstrip() + serialize_frontmatter(fm.images, fm.version)
