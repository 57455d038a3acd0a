"""
Image resolver: fetches, validates and caches slide images.

Decoded assets are cached by the SHA-256 of their embedded bytes, with a
second index from the requested URI to that hash, so the same picture
referenced from several slides or URIs is stored once.
"""
import asyncio
import base64
import binascii
import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Dict, Mapping, Optional

import httpx
from PIL import Image, UnidentifiedImageError

from ..errors import AssetUnresolved
from ..models import ResolvedAsset
from ..paths import resolve_asset

logger = logging.getLogger(__name__)

PASSTHROUGH_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg"}


def decode_image(data: bytes) -> Optional[ResolvedAsset]:
    """
    Validate image bytes with Pillow.

    PNG and JPEG are kept verbatim; any other format Pillow can read is
    re-encoded as PNG.  Undecodable data gives None.
    """
    if not data:
        return None
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            fmt = img.format
            width, height = img.size
            if fmt in PASSTHROUGH_FORMATS:
                payload, mime = data, PASSTHROUGH_FORMATS[fmt]
            else:
                if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                    img = img.convert("RGBA")
                out = BytesIO()
                img.save(out, format="PNG")
                payload, mime = out.getvalue(), "image/png"
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Could not decode image data: {e}")
        return None

    if not width or not height:
        return None
    return ResolvedAsset(
        data=payload,
        content_hash=hashlib.sha256(payload).hexdigest(),
        mime_type=mime,
        width=width,
        height=height,
    )


def decode_data_uri(uri: str) -> bytes:
    header, sep, body = uri.partition(",")
    if not sep:
        raise AssetUnresolved(uri[:40], "malformed data URI")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(body, validate=False)
        except (binascii.Error, ValueError) as e:
            raise AssetUnresolved(uri[:40], f"bad base64 payload: {e}") from e
    return body.encode("utf-8", "surrogatepass")


class AssetStore(ABC):
    """Where image bytes come from."""

    @abstractmethod
    async def get(self, uri: str) -> Optional[bytes]:
        """
        Fetch raw bytes for *uri*.

        Returns:
            Bytes, or None when the store has nothing under that URI

        Raises:
            AssetUnresolved: If fetching failed
        """


class StaticAssetStore(AssetStore):
    """Images from an in-memory table, keyed by URI or description."""

    def __init__(self, table: Optional[Mapping[str, bytes]] = None):
        self.table = dict(table or {})
        self.requests = 0

    async def get(self, uri):
        self.requests += 1
        return self.table.get(uri)


class HttpAssetStore(AssetStore):
    """
    Fetch images over http(s), decode ``data:`` URIs and read local files.

    Relative paths are resolved against *base_dir*.
    """

    def __init__(self, base_dir: Optional[Path] = None, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 15.0):
        self.base_dir = Path(base_dir) if base_dir is not None else None
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

    async def get(self, uri):
        if uri.startswith("data:"):
            return decode_data_uri(uri)

        if uri.startswith(("http://", "https://")):
            client = await self._get_client()
            try:
                response = await client.get(uri)
            except httpx.HTTPError as e:
                raise AssetUnresolved(uri, str(e)) from e
            if response.status_code == 404:
                return None
            if not response.is_success:
                raise AssetUnresolved(uri, f"HTTP {response.status_code}")
            return response.content

        try:
            path = resolve_asset(uri, base_dir=self.base_dir)
            if path is None or not path.is_file():
                return None
            return await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as e:
            raise AssetUnresolved(uri, str(e)) from e


class ImageResolver:
    """Resolve image references to decoded, deduplicated assets."""

    def __init__(self, store: Optional[AssetStore] = None):
        self.store = store
        self._assets: Dict[str, ResolvedAsset] = {}
        self._index: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self):
        """Number of distinct cached images."""
        with self._lock:
            return len(self._assets)

    def cached(self, uri: str) -> Optional[ResolvedAsset]:
        with self._lock:
            content_hash = self._index.get(uri)
            return self._assets.get(content_hash) if content_hash else None

    async def resolve(self, uri: str) -> Optional[ResolvedAsset]:
        """
        Resolve an image URI (or bare description) to an asset.

        Failures are logged and give None; the renderers then draw a
        placeholder box instead.
        """
        cached = self.cached(uri)
        if cached is not None:
            return cached
        if self.store is None:
            return None

        try:
            data = await self.store.get(uri)
        except AssetUnresolved as e:
            logger.warning(f"⚠️ {e}")
            return None
        except OSError as e:
            logger.warning(f"⚠️ {AssetUnresolved(uri, str(e))}")
            return None
        if data is None:
            logger.info(f"No image found for '{uri}', using placeholder")
            return None

        asset = decode_image(data)
        if asset is None:
            logger.warning(f"⚠️ {AssetUnresolved(uri, 'not a decodable image')}")
            return None

        with self._lock:
            asset = self._assets.setdefault(asset.content_hash, asset)
            self._index[uri] = asset.content_hash
        logger.debug(f"📷 Resolved image '{uri}' ({asset.width}x{asset.height}, {asset.mime_type})")
        return asset
