"""Shared test fixtures for the image gateway."""

import base64
from pathlib import Path

import httpx
import pytest
from PIL import Image

from app.core.cache_paths import image_name
from app.core.config import Settings
from app.core.fetcher import SourceFetcher
from app.core.processor import ProcessorResult
from app.core.token_codec import TokenCodec
from app.core.transformations import default_registry
from app.services.gateway import ImageGateway

TEST_KEY = "0123456789abcdef0123456789abcdef"
TEST_IV = base64.b64encode(b"fedcba9876543210").decode("ascii")
SOURCE_URL = "https://cdn.example.com/products/photo.jpg"


class RecordingProcessor:
    """Fake processor: records invocations and writes a marker file."""

    name = "recording"

    def __init__(self, returncode: int = 0, output: str = "", content: bytes = b"converted"):
        self.returncode = returncode
        self.output = output
        self.content = content
        self.calls = []

    def available(self) -> bool:
        return True

    def run(self, source, params, destination):
        self.calls.append((Path(source), list(params), Path(destination)))
        if self.returncode == 0:
            Path(destination).write_bytes(self.content)
        return ProcessorResult(returncode=self.returncode, output=self.output)


class CountingFetcher(SourceFetcher):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetched = []

    async def fetch(self, url, destination):
        self.fetched.append(url)
        return await super().fetch(url, destination)


def make_jpeg(path: Path, size=(800, 600), color=(200, 30, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, "JPEG")
    return path


def request_path(codec: TokenCodec, url: str, transformation: str, prefix: str = "/images") -> str:
    return f"{prefix}/{transformation}/{image_name(codec, url)}"


@pytest.fixture
def codec():
    return TokenCodec(TEST_KEY, TEST_IV)


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "storage"


@pytest.fixture
def settings(storage_root):
    return Settings(
        STORAGE_ROOT=str(storage_root),
        CIPHER_KEY=TEST_KEY,
        CIPHER_IV=TEST_IV,
        USE_CACHE=True,
        PROCESSOR="pillow",
        ADDITIONAL_TRANSFORMATIONS=[],
        FALLBACK_IMAGE=None,
        LOG_FILE=None,
    )


@pytest.fixture
def source_bytes(tmp_path):
    return make_jpeg(tmp_path / "origin" / "photo.jpg").read_bytes()


@pytest.fixture
def origin(source_bytes):
    """Mock origin serving SOURCE_URL; everything else is a 404."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        if str(request.url) == SOURCE_URL:
            return httpx.Response(200, content=source_bytes, headers={"Content-Type": "image/jpeg"})
        return httpx.Response(404)

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def processor():
    return RecordingProcessor()


@pytest.fixture
def fetcher(origin):
    return CountingFetcher(transport=origin)


@pytest.fixture
def make_gateway(storage_root, codec, processor, fetcher):
    def _make(**overrides):
        options = dict(
            storage_root=str(storage_root),
            codec=codec,
            registry=default_registry(),
            processor=processor,
            fetcher=fetcher,
            use_cache=True,
            fallback_image=None,
        )
        options.update(overrides)
        return ImageGateway(**options)

    return _make
