#!/usr/bin/env python3
"""
Main slide compiler module that ties together the parser and the export backends.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .assets.fonts import FontRegistry, GoogleFontsSource, StaticFontSource
from .assets.images import HttpAssetStore, ImageResolver
from .errors import SlideCompilerError
from .export.exporter import BACKENDS, ExportAssets, export
from .models import Deck
from .parser import parse_with_warnings
from .paths import output_paths
from .theme_loader import get_css

logger = logging.getLogger(__name__)


class SlideGenerator:
    """
    Compile slide markdown into PDF and PPTX files.
    """

    def __init__(
        self,
        *,
        theme: str = "default",
        theme_css: Optional[str] = None,
        base_dir: Optional[str] = None,
        offline: bool = False,
        debug: bool = False,
    ):
        """Create a new :class:`SlideGenerator`.

        Parameters
        ----------
        theme
            Name of a bundled theme (``default`` / ``light`` / …).
        theme_css
            Raw theme CSS; overrides *theme* when given.
        base_dir
            Base directory for resolving relative image paths in markdown.
            If None, defaults to current working directory.
        offline
            Skip web font downloads; layout falls back to metric estimates.
        debug
            Enable verbose logging.
        """
        self.debug = debug
        self.theme = theme
        self.theme_css = theme_css if theme_css is not None else get_css(theme)
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.offline = offline

        self.font_source = StaticFontSource() if offline else GoogleFontsSource()
        self.image_store = HttpAssetStore(base_dir=self.base_dir)
        self.assets = ExportAssets(
            fonts=FontRegistry(self.font_source),
            images=ImageResolver(self.image_store),
        )

    async def close(self):
        if isinstance(self.font_source, GoogleFontsSource):
            await self.font_source.close()
        await self.image_store.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def parse(self, markdown_text: str) -> Deck:
        result = parse_with_warnings(markdown_text, self.theme_css)
        if self.debug:
            logger.info(f"📄 Parsed {result.deck.total_slides} slides, "
                        f"{result.deck.image_count} images, {len(result.warnings)} warnings")
        return result.deck

    async def export(self, deck: Deck, fmt: str, timeout: Optional[float] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> bytes:
        return await export(deck, fmt, self.assets, timeout=timeout,
                            cancel_event=cancel_event, debug=self.debug)

    async def generate(self, markdown_text: str, outputs: Dict[str, Path],
                       timeout: Optional[float] = None) -> List[Path]:
        """
        Compile markdown and write one file per requested format.

        Args:
            markdown_text: Slide markdown
            outputs: Format name -> destination path
            timeout: Seconds allowed for each export

        Returns:
            list: Paths written, in the order of *outputs*
        """
        deck = self.parse(markdown_text)
        written = []
        for fmt, path in outputs.items():
            data = await self.export(deck, fmt, timeout=timeout)
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            written.append(path)
            if self.debug:
                logger.info(f"📊 {fmt.upper()} written to {path} ({len(data)} bytes)")
        return written


def _formats(choice: str) -> Sequence[str]:
    return list(BACKENDS) if choice == "both" else [choice]


def main():
    """Command-line entry point for the slide compiler."""
    import argparse
    import sys

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="slidec", description="Compile slide Markdown to themed PDF and PPTX files.")
        p.add_argument("markdown", type=Path, help="Markdown file to convert")
        p.add_argument("--output", "-o", type=Path, help="Destination file or directory (default: next to the markdown)")
        p.add_argument("--format", "-f", choices=["pdf", "pptx", "both"], default="pptx", help="Output format")
        p.add_argument("--theme", "-t", default="default", help="Bundled theme to use (default, light, …)")
        p.add_argument("--theme-css", type=Path, help="Custom theme CSS file; overrides --theme")
        p.add_argument("--asset-base", type=Path, help="Base directory for resolving relative asset paths (default: parent of markdown file)")
        p.add_argument("--timeout", type=float, help="Seconds allowed for each export")
        p.add_argument("--offline", action="store_true", help="Do not download web fonts")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        return p

    async def _generate_async(args) -> int:
        """Async wrapper for slide generation."""
        md_path: Path = args.markdown
        if not md_path.exists():
            logger.error(f"Markdown file '{md_path}' not found")
            return 1

        asset_base = args.asset_base if args.asset_base else md_path.parent
        theme_css = args.theme_css.read_text(encoding="utf-8") if args.theme_css else None
        markdown_text = md_path.read_text(encoding="utf-8")

        formats = _formats(args.format)
        outputs = dict(zip(formats, output_paths(md_path, args.output, formats)))

        try:
            async with SlideGenerator(
                theme=args.theme,
                theme_css=theme_css,
                base_dir=asset_base,
                offline=args.offline,
                debug=args.debug,
            ) as generator:
                written = await generator.generate(markdown_text, outputs, timeout=args.timeout)
        except (SlideCompilerError, FileNotFoundError, ValueError) as e:
            logger.error(f"❌ {e}")
            return 1

        for path in written:
            logger.info("✅ Presentation written to %s", path)
        return 0

    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format="%(levelname)s  %(message)s")

    sys.exit(asyncio.run(_generate_async(args)))


if __name__ == "__main__":
    main()
