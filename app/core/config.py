from pydantic_settings import BaseSettings
from typing import List, Literal, Optional

class Settings(BaseSettings):
    # Load env from .env file
    model_config = {"env_file": ".env"}

    # Storage (cache root, transient downloads)
    STORAGE_ROOT: str = "storage/images"

    # Identifier obfuscation
    CIPHER: str = "aes-256-cfb"
    CIPHER_KEY: str = ""
    CIPHER_IV: str = ""  # base64

    # Responses
    USE_CACHE: bool = True  # redirect to cached file instead of streaming it
    FALLBACK_IMAGE: Optional[str] = None  # JPEG served on failure
    ADDITIONAL_TRANSFORMATIONS: List[str] = []  # precomputed with every request (cache mode only)
    ROUTE_PREFIX: str = "/images"

    # Raster processor
    PROCESSOR: Literal["imagemagick", "pillow"] = "imagemagick"
    IMAGEMAGICK_BIN: str = "convert"
    PROCESSOR_TIMEOUT: float = 60.0

    # Origin
    FETCH_TIMEOUT: float = 10.0
    ALLOW_LOCAL_SOURCES: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

# Instantiate settings
settings = Settings()
