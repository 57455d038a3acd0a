"""Test the font registry and image resolver caches."""

import asyncio
import base64

import httpx
import pytest

from slide_compiler.assets import (
    FontRegistry,
    GoogleFontsSource,
    HttpAssetStore,
    ImageResolver,
    StaticAssetStore,
    StaticFontSource,
    decode_image,
)
from slide_compiler.errors import AssetUnresolved

from conftest import make_png

FAKE_TTF = b"\x00\x01\x00\x00" + b"\x00" * 60


class TestFontRegistry:
    @pytest.mark.asyncio
    async def test_fetches_once_and_caches(self):
        source = StaticFontSource({"Lato": FAKE_TTF})
        registry = FontRegistry(source)

        first = await registry.get_entry("Lato", 700)
        second = await registry.get_entry("Lato", 700)

        assert first is second
        assert first.data == FAKE_TTF
        assert not first.is_fallback
        assert source.requests == 1
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_pool_key_entries_take_priority(self):
        source = StaticFontSource({"Lato": FAKE_TTF, "Lato|700|normal": FAKE_TTF + b"bold"})
        registry = FontRegistry(source)
        assert (await registry.get_font("Lato", 700)).endswith(b"bold")
        assert await registry.get_font("Lato", 400) == FAKE_TTF

    @pytest.mark.asyncio
    async def test_unknown_family_falls_back_to_default(self):
        registry = FontRegistry(StaticFontSource({"Inter": FAKE_TTF}))
        entry = await registry.get_entry("Nope Sans")
        assert entry.is_fallback
        assert entry.family == "Nope Sans"
        assert entry.data == FAKE_TTF
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_nothing_available(self):
        registry = FontRegistry(StaticFontSource())
        entry = await registry.get_entry("Nope Sans")
        assert entry.is_fallback
        assert entry.data is None

    @pytest.mark.asyncio
    async def test_non_font_bytes_are_rejected(self):
        registry = FontRegistry(StaticFontSource({"Inter": b"<html>nope</html>"}))
        assert await registry.get_font("Inter") is None

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_entry(self):
        registry = FontRegistry(StaticFontSource({"Lato": FAKE_TTF}))
        entries = await asyncio.gather(*[registry.get_entry("Lato") for _ in range(8)])
        assert all(entry is entries[0] for entry in entries)
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_source_failure_is_not_raised(self):
        class Broken(StaticFontSource):
            async def get(self, family, weight=400, style="normal"):
                raise AssetUnresolved(family, "network down")

        entry = await FontRegistry(Broken()).get_entry("Lato")
        assert entry.data is None


class TestGoogleFonts:
    CSS = """
@font-face { font-family: 'Lato'; font-style: normal; font-weight: 400;
  src: url(https://fonts.example/lato-400.ttf) format('truetype'); }
@font-face { font-family: 'Lato'; font-style: normal; font-weight: 700;
  src: url(https://fonts.example/lato-700.ttf) format('truetype'); }
"""

    def test_pick_face_url(self):
        assert GoogleFontsSource.pick_face_url(self.CSS, 700, "normal") == "https://fonts.example/lato-700.ttf"
        assert GoogleFontsSource.pick_face_url(self.CSS, 600, "normal") == "https://fonts.example/lato-700.ttf"
        assert GoogleFontsSource.pick_face_url("", 400, "normal") is None

    @pytest.mark.asyncio
    async def test_get_with_mock_transport(self):
        def handler(request):
            if request.url.host == "fonts.googleapis.com":
                return httpx.Response(200, text=self.CSS)
            return httpx.Response(200, content=FAKE_TTF)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with GoogleFontsSource(client=client) as source:
            assert await source.get("Lato", 400) == FAKE_TTF

    @pytest.mark.asyncio
    async def test_unknown_family_returns_none(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(400)))
        async with GoogleFontsSource(client=client) as source:
            assert await source.get("Nope Sans") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        async with GoogleFontsSource(client=client) as source:
            with pytest.raises(AssetUnresolved):
                await source.get("Lato")


class TestImages:
    def test_decode_png(self, png_bytes):
        asset = decode_image(png_bytes)
        assert asset.mime_type == "image/png"
        assert (asset.width, asset.height) == (64, 36)
        assert asset.data == png_bytes
        assert asset.aspect_ratio == pytest.approx(64 / 36)

    def test_other_formats_become_png(self):
        from io import BytesIO
        from PIL import Image

        buffer = BytesIO()
        Image.new("RGB", (10, 20), (0, 0, 255)).save(buffer, format="GIF")
        asset = decode_image(buffer.getvalue())
        assert asset.mime_type == "image/png"
        assert asset.data.startswith(b"\x89PNG")

    def test_garbage_is_rejected(self):
        assert decode_image(b"definitely not an image") is None
        assert decode_image(b"") is None

    @pytest.mark.asyncio
    async def test_same_bytes_are_stored_once(self, png_bytes):
        store = StaticAssetStore({"a.png": png_bytes, "b.png": png_bytes, "c.png": make_png(8, 8)})
        resolver = ImageResolver(store)

        a, b, c = await asyncio.gather(*[resolver.resolve(uri) for uri in ("a.png", "b.png", "c.png")])

        assert a.content_hash == b.content_hash
        assert c.content_hash != a.content_hash
        assert len(resolver) == 2
        assert resolver.cached("b.png") is a

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store(self, png_bytes):
        store = StaticAssetStore({"a.png": png_bytes})
        resolver = ImageResolver(store)
        await resolver.resolve("a.png")
        await resolver.resolve("a.png")
        assert store.requests == 1

    @pytest.mark.asyncio
    async def test_missing_and_bad_images_give_none(self):
        resolver = ImageResolver(StaticAssetStore({"bad.png": b"nope"}))
        assert await resolver.resolve("missing.png") is None
        assert await resolver.resolve("bad.png") is None
        assert len(resolver) == 0


class TestHttpAssetStore:
    @pytest.mark.asyncio
    async def test_data_uri(self, png_bytes):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
        async with HttpAssetStore() as store:
            assert await store.get(uri) == png_bytes

    @pytest.mark.asyncio
    async def test_local_file_relative_to_base(self, tmp_path, png_bytes):
        (tmp_path / "pic.png").write_bytes(png_bytes)
        async with HttpAssetStore(base_dir=tmp_path) as store:
            assert await store.get("pic.png") == png_bytes
            assert await store.get("missing.png") is None

    @pytest.mark.asyncio
    async def test_http(self, png_bytes):
        def handler(request):
            if request.url.path == "/pic.png":
                return httpx.Response(200, content=png_bytes)
            return httpx.Response(404)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with HttpAssetStore(client=client) as store:
            assert await store.get("https://img.example/pic.png") == png_bytes
            assert await store.get("https://img.example/other.png") is None

    @pytest.mark.asyncio
    async def test_long_description_resolves_to_placeholder(self, tmp_path):
        resolver = ImageResolver(HttpAssetStore(base_dir=tmp_path))
        assert await resolver.resolve("a very long description " * 20) is None

    @pytest.mark.asyncio
    async def test_store_os_error_is_not_raised(self):
        class Flaky(StaticAssetStore):
            async def get(self, uri):
                raise PermissionError(13, "Permission denied", uri)

        assert await ImageResolver(Flaky()).resolve("locked.png") is None
