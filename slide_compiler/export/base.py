"""Backend interface and the asset bundle handed to it."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..models import Deck, FontEntry, ResolvedAsset
from .layout import LayoutConfig, LayoutEngine, TextMeasurer


@dataclass(frozen=True)
class AssetBundle:
    """
    Everything a backend may embed, resolved before rendering starts.

    ``fonts`` maps a font role (display, body, body-bold, mono) to its entry;
    ``images`` maps an image reference to its decoded asset.  Missing keys
    mean the backend falls back to built-in faces or placeholder boxes.
    """
    fonts: Dict[str, FontEntry] = field(default_factory=dict)
    images: Dict[str, ResolvedAsset] = field(default_factory=dict)

    def image_for(self, ref: str) -> Optional[ResolvedAsset]:
        return self.images.get(ref)


class ExportBackend(ABC):
    """Renders a Deck to bytes of one format.  Never mutates the Deck."""

    format_name = ""

    def __init__(self, config: Optional[LayoutConfig] = None, debug: bool = False):
        self.config = config or LayoutConfig()
        self.debug = debug

    def layout_engine(self, deck: Deck, bundle: AssetBundle) -> LayoutEngine:
        measurer = TextMeasurer(bundle.fonts, self.config)
        return LayoutEngine(deck.theme.geometry, measurer, self.config)

    @abstractmethod
    def render(self, deck: Deck, bundle: Optional[AssetBundle] = None) -> bytes:
        """Render every slide of *deck*, in order."""
