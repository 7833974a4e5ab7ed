"""
Origin fetcher: copy the bytes behind a source URL into a local file.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

import aiofiles
import httpx

from .errors import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class SourceFetcher:
    """Downloads http(s) sources; local files only when explicitly allowed."""

    def __init__(
        self,
        timeout: float = 10.0,
        allow_local: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.allow_local = allow_local
        self.transport = transport

    async def fetch(self, url: str, destination: Path) -> int:
        """Write the source into `destination`; returns the byte count."""
        scheme = urlsplit(url).scheme.lower()
        if scheme in ("http", "https"):
            size = await self._fetch_http(url, destination)
        elif scheme in ("", "file"):
            size = await self._fetch_local(url, destination)
        else:
            raise FetchError(f"Unsupported source scheme {scheme!r} for {url}")
        logger.info("[fetcher] downloaded %s (%d bytes)", url, size)
        return size

    async def _fetch_http(self, url: str, destination: Path) -> int:
        size = 0
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self.transport
            ) as client:
                async with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    async with aiofiles.open(destination, "wb") as fh:
                        async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                            await fh.write(chunk)
                            size += len(chunk)
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"Copy {url} to {destination} failed: HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, OSError) as exc:
            raise FetchError(f"Copy {url} to {destination} failed: {exc}") from exc
        return size

    async def _fetch_local(self, url: str, destination: Path) -> int:
        if not self.allow_local:
            raise FetchError(f"Local sources are disabled: {url}")
        parts = urlsplit(url)
        source = Path(unquote(parts.path)) if parts.scheme else Path(url)
        try:
            await asyncio.to_thread(shutil.copyfile, source, destination)
            return destination.stat().st_size
        except OSError as exc:
            raise FetchError(f"Copy {source} to {destination} failed: {exc}") from exc
