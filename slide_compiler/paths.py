"""Helpers for resolving asset references and output file locations.

Every decision about where a local asset lives, or where an exported file is
written, goes through this module so the CLI and the asset stores agree.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


__all__ = ["is_remote", "resolve_asset", "output_paths"]

REMOTE_PREFIXES = ("http://", "https://", "data:")


def is_remote(src: str) -> bool:
    return src.startswith(REMOTE_PREFIXES)


def resolve_asset(src: str, *, base_dir: Optional[Path] = None) -> Optional[Path]:
    """Return the absolute local path for *src*, or ``None`` for remote URIs.

    Rules
    -----
    1. Remote and data-URIs are not local files.
    2. ``file://`` URLs are stripped to an absolute path first.
    3. Relative paths are resolved against *base_dir* (the current directory
       when omitted).
    """
    if is_remote(src):
        return None

    if src.startswith("file://"):
        return Path(src[7:]).expanduser().resolve()

    base = Path(base_dir) if base_dir is not None else Path.cwd()
    return (base / src).expanduser().resolve()


def output_paths(markdown_path: str | Path, output: Optional[str | Path],
                 formats: Iterable[str]) -> List[Path]:
    """Work out one output file per format.

    Parameters
    ----------
    markdown_path
        Source deck; its stem names the outputs when *output* is omitted.
    output
        A file path (single format) or a directory.  Directories are created.
    formats
        Export formats, e.g. ``["pdf", "pptx"]``.

    Returns
    -------
    list of absolute paths, in the order of *formats*
    """
    formats = list(formats)
    stem = Path(markdown_path).stem or "deck"

    if output is None:
        out_dir = Path(markdown_path).expanduser().resolve().parent
    else:
        out = Path(output).expanduser().resolve()
        if out.suffix:
            # A file name; each format gets its own suffix.
            out.parent.mkdir(parents=True, exist_ok=True)
            return [out.with_suffix(f".{fmt}") for fmt in formats]
        out_dir = out

    out_dir.mkdir(parents=True, exist_ok=True)
    return [out_dir / f"{stem}.{fmt}" for fmt in formats]
