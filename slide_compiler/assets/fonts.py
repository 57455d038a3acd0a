"""
Font registry: resolves font families to embeddable TrueType/OpenType bytes.

Fonts are looked up through an injected :class:`FontSource` and cached in the
registry by ``family|weight|style``.  A registry can be shared by any number
of concurrent exports.
"""
import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional
from urllib.parse import quote_plus

import httpx

from ..errors import AssetUnresolved
from ..models import FontEntry

logger = logging.getLogger(__name__)

GOOGLE_FONTS_CSS = "https://fonts.googleapis.com/css"

# sfnt version tags: TrueType, OpenType/CFF, Apple TrueType
FONT_MAGIC = (b"\x00\x01\x00\x00", b"OTTO", b"true")

_FONT_FACE_RE = re.compile(r"@font-face\s*\{(.*?)\}", re.DOTALL)
_WEIGHT_RE = re.compile(r"font-weight:\s*(\d+)")
_STYLE_RE = re.compile(r"font-style:\s*(\w+)")
_TTF_URL_RE = re.compile(r"url\((https://[^)]+\.(?:ttf|otf))\)")


def is_font_data(data: Optional[bytes]) -> bool:
    return bool(data) and data[:4] in FONT_MAGIC


class FontSource(ABC):
    """Where font bytes come from."""

    @abstractmethod
    async def get(self, family: str, weight: int = 400, style: str = "normal") -> Optional[bytes]:
        """
        Fetch one font face.

        Returns:
            Font bytes, or None when the source does not have the face

        Raises:
            AssetUnresolved: If the source failed while fetching
        """


class StaticFontSource(FontSource):
    """
    Font faces from an in-memory table.

    Keys are either full pool keys (``"Inter|700|normal"``) or bare family
    names, which then serve every weight and style.
    """

    def __init__(self, table: Optional[Mapping[str, bytes]] = None):
        self.table = dict(table or {})
        self.requests = 0

    async def get(self, family, weight=400, style="normal"):
        self.requests += 1
        key = FontRegistry.pool_key(family, weight, style)
        return self.table.get(key, self.table.get(family))


class GoogleFontsSource(FontSource):
    """
    Fetch TTF files through the Google Fonts CSS API.

    The css API answers with ``.ttf`` URLs for clients that don't look like a
    browser, which is what httpx's default User-Agent gets us.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._external_client = client
        self._client: Optional[httpx.AsyncClient] = client
        self.timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self):
        if self._client is not None and self._client is not self._external_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    @staticmethod
    def css_url(family: str, weight: int, style: str) -> str:
        variant = f"{weight}italic" if style == "italic" else str(weight)
        return f"{GOOGLE_FONTS_CSS}?family={quote_plus(family)}:{variant}"

    @staticmethod
    def pick_face_url(css: str, weight: int, style: str) -> Optional[str]:
        """Choose the @font-face URL closest to the requested weight."""
        candidates = []
        for block in _FONT_FACE_RE.findall(css):
            url = _TTF_URL_RE.search(block)
            if not url:
                continue
            w = _WEIGHT_RE.search(block)
            s = _STYLE_RE.search(block)
            face_weight = int(w.group(1)) if w else 400
            face_style = s.group(1) if s else "normal"
            candidates.append((face_style != style, abs(face_weight - weight), url.group(1)))
        if not candidates:
            return None
        return min(candidates)[2]

    async def get(self, family, weight=400, style="normal"):
        client = await self._get_client()
        css_url = self.css_url(family, weight, style)
        try:
            response = await client.get(css_url)
            if response.status_code in (400, 404):
                return None
            response.raise_for_status()
            face_url = self.pick_face_url(response.text, weight, style)
            if face_url is None:
                return None
            font_response = await client.get(face_url)
            font_response.raise_for_status()
        except httpx.HTTPError as e:
            raise AssetUnresolved(f"{family} {weight} {style}", str(e)) from e

        data = font_response.content
        if not is_font_data(data):
            raise AssetUnresolved(f"{family} {weight} {style}", f"not a TrueType/OpenType file: {face_url}")
        logger.debug(f"🔤 Fetched {family} {weight} {style} ({len(data)} bytes)")
        return data


class FontRegistry:
    """
    Cache of resolved font faces.

    A family the source cannot supply falls back to ``default_family``; when
    that fails too the entry carries no bytes and renderers use their
    built-in faces.
    """

    def __init__(self, source: Optional[FontSource] = None, default_family: str = "Inter"):
        self.source = source
        self.default_family = default_family
        self._entries: Dict[str, FontEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def pool_key(family: str, weight: int = 400, style: str = "normal") -> str:
        return f"{family}|{weight}|{style}"

    def __len__(self):
        with self._lock:
            return len(self._entries)

    async def _fetch(self, family: str, weight: int, style: str) -> Optional[bytes]:
        if self.source is None:
            return None
        try:
            data = await self.source.get(family, weight, style)
        except AssetUnresolved as e:
            logger.warning(f"⚠️ {e}")
            return None
        if data is None:
            logger.warning(f"⚠️ {AssetUnresolved(f'{family} {weight} {style}', 'font not available')}")
            return None
        if not is_font_data(data):
            logger.warning(f"⚠️ {AssetUnresolved(f'{family} {weight} {style}', 'not a font file')}")
            return None
        return data

    async def get_entry(self, family: str, weight: int = 400, style: str = "normal") -> FontEntry:
        """Resolve one face, fetching it on a cache miss."""
        key = self.pool_key(family, weight, style)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return cached

        data = await self._fetch(family, weight, style)
        if data is not None:
            entry = FontEntry(family, weight, style, data)
        elif family != self.default_family:
            fallback = await self.get_entry(self.default_family, weight, style)
            entry = FontEntry(family, weight, style, fallback.data, is_fallback=True)
        else:
            entry = FontEntry(family, weight, style, None, is_fallback=True)

        # Two concurrent misses may both fetch; the first stored entry wins.
        with self._lock:
            return self._entries.setdefault(key, entry)

    async def get_font(self, family: str, weight: int = 400, style: str = "normal") -> Optional[bytes]:
        """Font bytes for a face, or None when only built-in faces are left."""
        return (await self.get_entry(family, weight, style)).data
