"""
Turn a pipeline outcome into an HTTP response.

One dispatcher per request: PENDING -> SERVED | FALLBACK, both terminal.
"""

import base64
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from fastapi.responses import FileResponse, RedirectResponse, Response
from starlette.background import BackgroundTask

logger = logging.getLogger(__name__)

PLACEHOLDER_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")
PLACEHOLDER_MEDIA_TYPE = "image/gif"
FALLBACK_MEDIA_TYPE = "image/jpeg"


class DispatchState(str, Enum):
    PENDING = "pending"
    SERVED = "served"
    FALLBACK = "fallback"


def remove_artifact(path: Path) -> None:
    try:
        path.unlink()
        logger.info("[dispatcher] file %s deleted", path)
    except OSError as exc:
        logger.error("[dispatcher] delete file %s failed: %s", path, exc)


class ResponseDispatcher:
    def __init__(self, use_cache: bool = True, fallback_image: Optional[str] = None):
        self.use_cache = use_cache
        self.fallback_image = fallback_image
        self.state = DispatchState.PENDING
        self.response: Optional[Response] = None

    def _finish(self, state: DispatchState, response: Response) -> Response:
        if self.state is not DispatchState.PENDING:
            raise RuntimeError(f"Response already dispatched ({self.state.value})")
        self.state = state
        self.response = response
        return response

    def serve(self, request_url: str, artifact: Path) -> Response:
        """Redirect to the cached file, or stream it once and delete it."""
        if self.use_cache:
            logger.info("[dispatcher] redirect to %s", request_url)
            return self._finish(DispatchState.SERVED, RedirectResponse(request_url, status_code=302))

        logger.info("[dispatcher] sent file content %s", artifact)
        response = FileResponse(artifact, background=BackgroundTask(remove_artifact, artifact))
        return self._finish(DispatchState.SERVED, response)

    def send_cached(self, artifact: Path) -> Response:
        """Send an already cached file as is; it stays in the cache."""
        logger.info("[dispatcher] sent cached file %s", artifact)
        return self._finish(DispatchState.SERVED, FileResponse(artifact))

    def fallback(self) -> Response:
        """Configured JPEG if readable, otherwise the built-in 1x1 GIF. Never raises."""
        logger.info("[dispatcher] sent fallback image")
        if self.fallback_image:
            try:
                content = Path(self.fallback_image).read_bytes()
            except OSError as exc:
                logger.info("[dispatcher] fallback image %s not readable: %s", self.fallback_image, exc)
            else:
                return self._finish(DispatchState.FALLBACK, Response(content=content, media_type=FALLBACK_MEDIA_TYPE))

        logger.info("[dispatcher] sent default fallback image")
        return self._finish(
            DispatchState.FALLBACK, Response(content=PLACEHOLDER_GIF, media_type=PLACEHOLDER_MEDIA_TYPE)
        )
