from typing import Optional

from fastapi import FastAPI

from .api.routes_health import router as health_router
from .api.images import router as images_router
from .core.config import Settings, settings as default_settings
from .core.log_setup import install_logging
from .services.gateway import ImageGateway


def create_app(settings: Optional[Settings] = None, gateway: Optional[ImageGateway] = None) -> FastAPI:
    settings = settings or default_settings
    install_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    app = FastAPI(title="Image Gateway", description="Obfuscated image transformation and cache gateway")
    app.state.settings = settings
    app.state.gateway = gateway or ImageGateway.from_settings(settings)

    # Health first: the image route is a catch-all under its prefix
    app.include_router(health_router)
    app.include_router(images_router, prefix=settings.ROUTE_PREFIX.rstrip("/"))
    return app


app = create_app()
