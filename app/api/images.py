"""
Image gateway endpoint.
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from ..services.gateway import ImageGateway

router = APIRouter(tags=["images"])


def _request_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


@router.get("/{image_path:path}")
async def serve_image(request: Request, image_path: str) -> Response:
    gateway: ImageGateway = request.app.state.gateway
    dispatcher = await gateway.process(_request_url(request))
    return dispatcher.response
