"""Font and image resolution for export."""
from .fonts import FontRegistry, FontSource, GoogleFontsSource, StaticFontSource
from .images import AssetStore, HttpAssetStore, ImageResolver, StaticAssetStore, decode_image

__all__ = [
    "AssetStore",
    "FontRegistry",
    "FontSource",
    "GoogleFontsSource",
    "HttpAssetStore",
    "ImageResolver",
    "StaticAssetStore",
    "StaticFontSource",
    "decode_image",
]
