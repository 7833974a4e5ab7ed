"""
Materialize transformations of a request's source image into the cache.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from ..core.cache_paths import cache_path, ensure_dir
from ..core.errors import ConversionError, StorageError
from ..core.fetcher import SourceFetcher
from ..core.processor import ImageProcessor
from ..core.transformations import TransformationRegistry
from ..models.request import RequestContext

logger = logging.getLogger(__name__)


class RenditionMaterializer:
    def __init__(
        self,
        storage_root: Union[str, Path],
        registry: TransformationRegistry,
        processor: ImageProcessor,
        fetcher: Optional[SourceFetcher] = None,
    ):
        self.storage_root = Path(storage_root)
        self.registry = registry
        self.processor = processor
        self.fetcher = fetcher or SourceFetcher()

    def artifact_path(self, transformation: str, ctx: RequestContext) -> Path:
        return cache_path(self.storage_root, transformation, ctx.identifier)

    async def fetch_source(self, ctx: RequestContext) -> None:
        """Download the source into the request's transient file (once per request)."""
        ensure_dir(ctx.tmp_file.parent)
        await self.fetcher.fetch(ctx.source_url, ctx.tmp_file)

    async def materialize(
        self,
        transformation: str,
        ctx: RequestContext,
        required: bool = True,
        destination: Optional[Path] = None,
    ) -> Path:
        """Produce `transformation` of the fetched source at its cache path,
        or at `destination` when given.

        A failed pass-through copy only raises when `required` (the primary
        transformation); conversion failures always raise.
        """
        logger.info("[renditions] process transformation %s", transformation)

        # Unknown names never reach the filesystem
        spec = self.registry.resolve(transformation)
        params = spec.params(transformation)

        destination = destination or self.artifact_path(transformation, ctx)
        ensure_dir(destination.parent)

        if not params:
            await self._copy(ctx.tmp_file, destination, required)
            return destination

        result = await asyncio.to_thread(self.processor.run, ctx.tmp_file, params, destination)
        if not result.ok:
            logger.error("[renditions] convert failed with message: %s", result.output)
            raise ConversionError(f"Convert failed with message: {result.output}", output=result.output)

        logger.info("[renditions] transformation %s success", transformation)
        return destination

    @staticmethod
    async def _copy(source: Path, destination: Path, required: bool) -> None:
        try:
            await asyncio.to_thread(shutil.copyfile, source, destination)
        except OSError as exc:
            logger.error("[renditions] copy tmp file to %s failed: %s", destination, exc)
            if required:
                raise StorageError(f"Copy tmp file to {destination} failed: {exc}") from exc
            return
        logger.info("[renditions] copy tmp file to %s success", destination)
