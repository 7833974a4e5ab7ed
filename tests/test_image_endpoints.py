"""
HTTP tests for the image route and health checks.
"""

import pytest
from fastapi.testclient import TestClient

from app.core.cache_paths import cache_path
from app.main import create_app
from app.services.dispatcher import PLACEHOLDER_GIF
from app.services.gateway import ImageGateway

from conftest import SOURCE_URL, request_path


@pytest.fixture
def make_client(settings, processor, fetcher):
    def _make(**overrides):
        app_settings = settings.model_copy(update=overrides)
        gateway = ImageGateway.from_settings(app_settings, processor=processor, fetcher=fetcher)
        return TestClient(create_app(app_settings, gateway))

    return _make


class TestImageRoute:
    def test_cache_mode_redirects_to_same_url(self, make_client, codec, storage_root):
        client = make_client()
        path = request_path(codec, SOURCE_URL, "thumb-100")

        response = client.get(path, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == path
        assert cache_path(storage_root, "thumb-100", path.rsplit("/", 1)[1]).is_file()

    def test_redirect_is_followed_to_the_cached_image(self, make_client, codec, processor, storage_root):
        client = make_client()
        path = request_path(codec, SOURCE_URL, "thumb-100")

        response = client.get(path)

        assert response.status_code == 200
        assert response.content == b"converted"
        assert response.headers["content-type"] == "image/jpeg"
        assert [r.status_code for r in response.history] == [302]
        assert len(processor.calls) == 1
        assert cache_path(storage_root, "thumb-100", path.rsplit("/", 1)[1]).is_file()

    def test_redirect_keeps_query_string(self, make_client, codec):
        path = request_path(codec, SOURCE_URL, "large") + "?v=2"
        response = make_client().get(path, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == path

    def test_stream_mode_sends_bytes_and_deletes_artifact(self, make_client, codec, storage_root):
        client = make_client(USE_CACHE=False)
        path = request_path(codec, SOURCE_URL, "large")

        response = client.get(path)

        assert response.status_code == 200
        assert response.content == b"converted"
        assert response.headers["content-type"] == "image/jpeg"
        assert not cache_path(storage_root, "large", path.rsplit("/", 1)[1]).exists()

    def test_repeated_stream_requests_each_get_bytes(self, make_client, codec, storage_root):
        client = make_client(USE_CACHE=False)
        path = request_path(codec, SOURCE_URL, "large")

        responses = [client.get(path) for _ in range(3)]

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert all(r.content == b"converted" for r in responses)
        assert [p for p in storage_root.iterdir() if p.is_file()] == []

    def test_failure_is_a_200_placeholder(self, make_client):
        response = make_client().get("/images/not/enough")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"
        assert response.content == PLACEHOLDER_GIF

    def test_failure_uses_configured_jpeg(self, make_client, tmp_path):
        fallback = tmp_path / "fallback.jpg"
        fallback.write_bytes(b"\xff\xd8fallback")
        response = make_client(FALLBACK_IMAGE=str(fallback)).get("/images/a/b/c/garbage!!.jpg")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == b"\xff\xd8fallback"

    def test_custom_route_prefix(self, make_client, codec):
        client = make_client(ROUTE_PREFIX="/cdn")
        path = request_path(codec, SOURCE_URL, "thumb-100", prefix="/cdn")
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302


class TestHealth:
    def test_health(self, make_client):
        response = make_client().get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_detailed_health_online(self, make_client):
        data = make_client().get("/health/detailed").json()
        assert data["status"] == "online"
        assert set(data["services"]) == {"storage", "processor", "crypto"}

    def test_detailed_health_reports_bad_key(self, settings, processor, fetcher):
        bad = settings.model_copy(update={"CIPHER_KEY": "too-short"})
        gateway = ImageGateway.from_settings(bad, processor=processor, fetcher=fetcher)
        data = TestClient(create_app(bad, gateway)).get("/health/detailed").json()
        assert data["status"] == "degraded"
        assert data["services"]["crypto"]["status"] == "offline"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
