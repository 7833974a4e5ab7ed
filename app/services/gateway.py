"""
Request pipeline: obfuscated image path in, image (or fallback) out.

    {prefix}/{transformation}/{x}/{y}/{token}.{ext}

The token decrypts to the source URL; the transformation segment selects the
preset. Every failure ends in the fallback image and the transient download
is removed on every exit path.
"""

import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Sequence
from urllib.parse import urlsplit

from ..core.cache_paths import ensure_dir, shard_prefix
from ..core.config import Settings
from ..core.errors import GatewayError, InvalidRequest, UnsupportedMode
from ..core.fetcher import SourceFetcher
from ..core.processor import ImageProcessor, build_processor
from ..core.token_codec import TokenCodec
from ..core.transformations import TransformationRegistry, default_registry
from ..models.request import RequestContext
from .dispatcher import DispatchState, ResponseDispatcher
from .renditions import RenditionMaterializer

logger = logging.getLogger(__name__)

MIN_SEGMENTS = 4


class ImageGateway:
    def __init__(
        self,
        storage_root: str,
        codec: TokenCodec,
        registry: TransformationRegistry,
        processor: ImageProcessor,
        fetcher: Optional[SourceFetcher] = None,
        use_cache: bool = True,
        fallback_image: Optional[str] = None,
        additional_transformations: Sequence[str] = (),
    ):
        self.storage_root = Path(storage_root)
        self.codec = codec
        self.registry = registry
        self.processor = processor
        self.use_cache = use_cache
        self.fallback_image = fallback_image
        self.additional_transformations = tuple(additional_transformations)
        self.materializer = RenditionMaterializer(self.storage_root, registry, processor, fetcher)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        processor: Optional[ImageProcessor] = None,
        fetcher: Optional[SourceFetcher] = None,
        registry: Optional[TransformationRegistry] = None,
    ) -> "ImageGateway":
        return cls(
            storage_root=settings.STORAGE_ROOT,
            codec=TokenCodec(settings.CIPHER_KEY, settings.CIPHER_IV, settings.CIPHER),
            registry=registry or default_registry(),
            processor=processor or build_processor(
                settings.PROCESSOR, binary=settings.IMAGEMAGICK_BIN, timeout=settings.PROCESSOR_TIMEOUT
            ),
            fetcher=fetcher or SourceFetcher(
                timeout=settings.FETCH_TIMEOUT, allow_local=settings.ALLOW_LOCAL_SOURCES
            ),
            use_cache=settings.USE_CACHE,
            fallback_image=settings.FALLBACK_IMAGE,
            additional_transformations=settings.ADDITIONAL_TRANSFORMATIONS,
        )

    def parse_request(self, request_url: str, additional: Iterable[str] = ()) -> RequestContext:
        """Split the request path and decode its token into a RequestContext."""
        logger.info("[gateway] new request url: %s", request_url)

        parts = [part for part in urlsplit(request_url).path.split("/") if part]
        if len(parts) < MIN_SEGMENTS:
            raise InvalidRequest(f"Invalid request url {request_url!r}: expected at least {MIN_SEGMENTS} segments")

        identifier = parts[-1]
        shard_prefix(identifier)  # rejects identifiers too short to shard
        source_url = self.codec.decode(PurePosixPath(identifier).stem)

        try:
            source_path = urlsplit(source_url).path
        except ValueError as exc:
            raise InvalidRequest(f"Invalid input file {source_url!r}") from exc
        if not source_path:
            logger.error("[gateway] invalid input file %r", source_url)
            raise InvalidRequest(f"Invalid input file {source_url!r}")

        scratch = uuid.uuid4().hex[:12]
        ctx = RequestContext(
            request_url=request_url,
            source_url=source_url,
            identifier=identifier,
            transformation=parts[-4],
            tmp_file=self.storage_root / f"{identifier}.{scratch}.tmp",
            stream_file=None if self.use_cache else self.storage_root / f"{scratch}-{identifier}",
            use_cache=self.use_cache,
            additional=tuple(additional),
        )
        logger.info(
            "[gateway] source %s, transformation %s, tmp file %s",
            ctx.source_url,
            ctx.transformation,
            ctx.tmp_file,
        )
        return ctx

    def _cached(self, ctx: RequestContext) -> bool:
        return ctx.use_cache and all(
            self.materializer.artifact_path(name, ctx).is_file() for name in ctx.transformations
        )

    async def process(self, request_url: str, additional: Optional[Sequence[str]] = None) -> ResponseDispatcher:
        """Run one request end to end; the returned dispatcher holds the response."""
        dispatcher = ResponseDispatcher(use_cache=self.use_cache, fallback_image=self.fallback_image)
        additional = self.additional_transformations if additional is None else tuple(additional)
        ctx: Optional[RequestContext] = None
        try:
            if not self.use_cache and additional:
                raise UnsupportedMode("Additional transformations without cache are unsupported")

            ctx = self.parse_request(request_url, additional)

            if self._cached(ctx):
                logger.info("[gateway] cache hit for %s", ctx.identifier)
                dispatcher.send_cached(self.materializer.artifact_path(ctx.transformation, ctx))
                return dispatcher

            ensure_dir(self.storage_root)
            await self.materializer.fetch_source(ctx)

            for name in ctx.additional:
                await self.materializer.materialize(name, ctx, required=False)
            artifact = await self.materializer.materialize(ctx.transformation, ctx, destination=ctx.stream_file)

            dispatcher.serve(ctx.request_url, artifact)
        except GatewayError as exc:
            logger.error("[gateway] process failed (%s) for %s: %s", exc.kind.value, request_url, exc)
            dispatcher.fallback()
        except Exception:
            logger.exception("[gateway] process failed unexpectedly for %s", request_url)
            dispatcher.fallback()
        finally:
            if ctx is not None:
                self._clean_up(ctx.tmp_file)
                if ctx.stream_file is not None and dispatcher.state is DispatchState.FALLBACK:
                    self._clean_up(ctx.stream_file)
        return dispatcher

    @staticmethod
    def _clean_up(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("[gateway] delete file %s failed: %s", path, exc)
