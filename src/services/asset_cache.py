"""Local file cache for remote render assets.

Every clip source referenced by a Timeline is downloaded once into the cache
directory. Concurrent requests for the same URL share one download task, and
files already on disk are reused across renders.
"""

import asyncio
import logging
import re
from pathlib import Path
from urllib.parse import urlparse

import httpx

from models.timeline import Clip

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.]")


class AssetCacheError(Exception):
    """Raised when an asset cannot be resolved to a local file."""

    pass


def cache_filename(clip_id: str, url: str) -> str:
    """Cache file name: ``<clip id>_<url basename>`` with unsafe characters replaced."""
    basename = Path(urlparse(url).path).name or "asset"
    return _UNSAFE_CHARS.sub("_", f"{clip_id}_{basename}")


def is_remote(src: str) -> bool:
    return src.startswith(("http://", "https://"))


class AssetCache:
    """Resolves clip sources to local files with per-URL download de-duplication."""

    def __init__(self, cache_dir: Path, client: httpx.AsyncClient | None = None):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.client = client or httpx.AsyncClient(timeout=300.0, follow_redirects=True)
        self._inflight: dict[str, asyncio.Task] = {}

    async def fetch(self, url: str, clip_id: str) -> Path:
        """Return the local path for ``url``, downloading it if needed.

        Raises:
            AssetCacheError: If the download fails or a local source is missing.
        """
        if not is_remote(url):
            path = Path(url.removeprefix("file://"))
            if not path.exists():
                raise AssetCacheError(f"Local asset not found: {url}")
            return path

        task = self._inflight.get(url)
        if task is None:
            destination = self.cache_dir / cache_filename(clip_id, url)
            task = asyncio.ensure_future(self._download(url, destination))
            self._inflight[url] = task

        try:
            return await task
        except AssetCacheError:
            if self._inflight.get(url) is task:
                del self._inflight[url]
            raise

    async def _download(self, url: str, destination: Path) -> Path:
        if destination.exists() and destination.stat().st_size > 0:
            logger.debug(f"Asset cache hit: {destination.name}")
            return destination

        partial = destination.with_name(destination.name + ".part")
        logger.info(f"Downloading asset: {url}")
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            partial.unlink(missing_ok=True)
            raise AssetCacheError(f"Download failed for {url}: {e}")

        partial.replace(destination)
        return destination

    async def resolve(self, clips: list[Clip]) -> dict[str, Path]:
        """Download every distinct clip source; returns ``{src: local path}``."""
        first_clip_for_src: dict[str, str] = {}
        for clip in clips:
            if clip.src and clip.src not in first_clip_for_src:
                first_clip_for_src[clip.src] = clip.id

        paths = await asyncio.gather(
            *(self.fetch(src, clip_id) for src, clip_id in first_clip_for_src.items())
        )
        return dict(zip(first_clip_for_src, paths))

    async def close(self) -> None:
        await self.client.aclose()
