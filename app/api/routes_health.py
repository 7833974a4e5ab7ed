from fastapi import APIRouter, Request, status
import asyncio
import tempfile
from pathlib import Path

from ..core.errors import GatewayError
from ..services.gateway import ImageGateway

router = APIRouter()

PROBE_URL = "https://example.com/health/probe.jpg"


def check_storage(root: Path) -> dict:
    """Storage root must exist (or be creatable) and accept writes."""
    try:
        root.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=root, prefix=".health-", delete=True):
            pass
        return {"status": "online", "last_error": None}
    except OSError as e:
        return {"status": "offline", "last_error": str(e)}


def check_processor(gateway: ImageGateway) -> dict:
    ok = gateway.processor.available()
    return {
        "status": "online" if ok else "offline",
        "backend": gateway.processor.name,
        "last_error": None if ok else "processor binary not found",
    }


def check_crypto(gateway: ImageGateway) -> dict:
    """Encode/decode a probe URL with the configured key and IV."""
    try:
        ok = gateway.codec.decode(gateway.codec.encode(PROBE_URL)) == PROBE_URL
        return {"status": "online" if ok else "offline", "last_error": None if ok else "round trip mismatch"}
    except GatewayError as e:
        return {"status": "offline", "last_error": str(e)}


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict:
    return {"status": "ok"}


@router.get("/health/detailed", status_code=status.HTTP_200_OK)
async def detailed_health(request: Request) -> dict:
    """Detailed health check with component status."""
    gateway: ImageGateway = request.app.state.gateway
    storage, processor = await asyncio.gather(
        asyncio.to_thread(check_storage, gateway.storage_root),
        asyncio.to_thread(check_processor, gateway),
    )
    crypto = check_crypto(gateway)

    services = {"storage": storage, "processor": processor, "crypto": crypto}
    online = [s["status"] == "online" for s in services.values()]
    system_status = "online"
    if not all(online):
        system_status = "degraded" if any(online) else "offline"

    return {"status": system_status, "services": services}
