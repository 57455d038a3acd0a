"""
Slide Compiler Package

Compile a Markdown dialect for slides into a deck model, and export decks
to PDF and PowerPoint.
"""

from .errors import AssetUnresolved, ExportFailed, MalformedDocumentError, ParseDegraded, SlideCompilerError
from .export import ExportAssets, export
from .generator import SlideGenerator
from .models import Deck, Slide, Theme
from .parser import parse, parse_with_warnings
from .serializer import to_markdown
from .theme_loader import load_theme, resolve

__version__ = "0.3.0"

__all__ = [
    'AssetUnresolved', 'Deck', 'ExportAssets', 'ExportFailed', 'MalformedDocumentError',
    'ParseDegraded', 'Slide', 'SlideCompilerError', 'SlideGenerator', 'Theme',
    'export', 'load_theme', 'parse', 'parse_with_warnings', 'resolve', 'to_markdown',
]
