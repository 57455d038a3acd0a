"""
Export orchestration.

Fonts and images for a deck are resolved concurrently, then the chosen
backend renders every slide in order.  A timeout or a set cancel event
aborts the export with :class:`ExportFailed`; partial output is never
returned.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Type

from ..assets.fonts import FontRegistry
from ..assets.images import ImageResolver
from ..errors import ExportFailed
from ..models import Deck
from .base import AssetBundle, ExportBackend
from .layout import FONT_ROLES, LayoutConfig
from .pdf_renderer import PDFRenderer
from .pptx_renderer import PPTXRenderer

logger = logging.getLogger(__name__)

BACKENDS: Dict[str, Type[ExportBackend]] = {
    "pdf": PDFRenderer,
    "pptx": PPTXRenderer,
}


@dataclass
class ExportAssets:
    """Caches used by an export; share one instance across exports to reuse fetched assets."""
    fonts: FontRegistry = field(default_factory=FontRegistry)
    images: ImageResolver = field(default_factory=ImageResolver)


async def resolve_assets(deck: Deck, assets: ExportAssets) -> AssetBundle:
    """Fetch every font face and distinct image the deck needs, concurrently."""
    theme = deck.theme
    roles = list(FONT_ROLES.items())
    refs = sorted({block.ref for slide in deck.slides for block in slide.image_blocks()})

    font_jobs = [assets.fonts.get_entry(getattr(theme, slot), weight) for _, (slot, weight) in roles]
    image_jobs = [assets.images.resolve(ref) for ref in refs]
    results = await asyncio.gather(*font_jobs, *image_jobs)

    fonts = {role: entry for (role, _), entry in zip(roles, results[:len(roles)])}
    images = {ref: asset for ref, asset in zip(refs, results[len(roles):]) if asset is not None}
    logger.debug(f"Resolved {sum(1 for e in fonts.values() if e.data)}/{len(fonts)} fonts, "
                 f"{len(images)}/{len(refs)} images")
    return AssetBundle(fonts=fonts, images=images)


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


async def _abandon(task: asyncio.Future):
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def _wait(task: asyncio.Future, deadline: Optional[float],
                cancel_event: Optional[asyncio.Event], fmt: str):
    """Await *task* unless the deadline passes or *cancel_event* is set first."""
    waiters = {task}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)
    try:
        done, _ = await asyncio.wait(waiters, timeout=_remaining(deadline),
                                     return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancel_waiter is not None:
            await _abandon(cancel_waiter)

    if task not in done:
        await _abandon(task)
        if cancel_event is not None and cancel_event.is_set():
            raise ExportFailed(f"{fmt} export cancelled", fmt)
        raise ExportFailed(f"{fmt} export timed out", fmt)
    return task.result()


async def export(deck: Deck, fmt: str, assets: Optional[ExportAssets] = None,
                 timeout: Optional[float] = None, cancel_event: Optional[asyncio.Event] = None,
                 config: Optional[LayoutConfig] = None, debug: bool = False) -> bytes:
    """
    Export *deck* to ``"pdf"`` or ``"pptx"`` bytes.

    Args:
        deck: Parsed deck; never modified
        fmt: Output format
        assets: Font and image caches; fresh empty ones when omitted
        timeout: Seconds for the whole export
        cancel_event: Aborts the export when set
        config: Layout settings shared by both backends

    Returns:
        The encoded document

    Raises:
        ExportFailed: On unknown format, timeout, cancellation or any backend error
    """
    backend_cls = BACKENDS.get(fmt)
    if backend_cls is None:
        raise ExportFailed(f"Unknown export format '{fmt}'. Available: {sorted(BACKENDS)}", fmt)
    if not deck.slides:
        raise ExportFailed("Deck has no slides", fmt)
    if cancel_event is not None and cancel_event.is_set():
        raise ExportFailed(f"{fmt} export cancelled", fmt)

    assets = assets or ExportAssets()
    deadline = time.monotonic() + timeout if timeout is not None else None
    backend = backend_cls(config=config, debug=debug)

    try:
        bundle = await _wait(asyncio.ensure_future(resolve_assets(deck, assets)),
                             deadline, cancel_event, fmt)
        # Rendering is synchronous; run it off the event loop so it can be abandoned.
        render = asyncio.ensure_future(asyncio.to_thread(backend.render, deck, bundle))
        data = await _wait(render, deadline, cancel_event, fmt)
    except ExportFailed:
        raise
    except Exception as e:
        raise ExportFailed(f"{fmt} export failed: {e}", fmt) from e

    if not data:
        raise ExportFailed(f"{fmt} backend produced no output", fmt)
    return data
