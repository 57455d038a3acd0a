import sys
from io import BytesIO
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import slide_compiler` works
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def make_png(width=64, height=36, color=(245, 158, 11)):
    from PIL import Image

    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def offline_assets():
    """Export caches that never touch the network."""
    from slide_compiler.assets import FontRegistry, ImageResolver, StaticAssetStore, StaticFontSource
    from slide_compiler.export import ExportAssets

    return ExportAssets(
        fonts=FontRegistry(StaticFontSource()),
        images=ImageResolver(StaticAssetStore()),
    )


@pytest.fixture
def ttf_bytes():
    """A real TrueType face: the one Pillow bundles as its default font."""
    from PIL import ImageFont, features

    if not features.check("freetype2"):
        pytest.skip("Pillow built without FreeType")
    return ImageFont.load_default(size=16).font_bytes
