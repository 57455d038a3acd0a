"""PDF and PPTX export of parsed decks."""
from .base import AssetBundle, ExportBackend
from .exporter import BACKENDS, ExportAssets, export, resolve_assets
from .layout import LayoutConfig, LayoutEngine, TextMeasurer
from .pdf_renderer import PDFRenderer
from .pptx_renderer import PPTXRenderer

__all__ = [
    "AssetBundle",
    "BACKENDS",
    "ExportAssets",
    "ExportBackend",
    "LayoutConfig",
    "LayoutEngine",
    "PDFRenderer",
    "PPTXRenderer",
    "TextMeasurer",
    "export",
    "resolve_assets",
]
