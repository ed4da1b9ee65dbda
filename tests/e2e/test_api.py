# ABOUTME: End-to-end tests for the scan HTTP API.
# ABOUTME: Exercises POST /api/scan and GET /health through FastAPI's TestClient.

import pytest
from fastapi.testclient import TestClient

from shelfscan.api.app import create_app
from shelfscan.config import ScanSettings
from shelfscan.core.pipeline import build_pipeline
from shelfscan.core.service import ScanService
from tests.fixtures.provider_responses import (
    DUNE,
    FakeHttpClient,
    books_json,
    chat_completion,
    generate_content,
)


class DenyingQuota:
    """Quota collaborator that refuses every caller."""

    async def may_scan(self, user_id: str) -> bool:
        return False

    async def record_scan(self, user_id: str) -> None:
        return None


def _service(quota=None) -> ScanService:
    http = FakeHttpClient(
        router=lambda url, payload: (
            chat_completion(books_json(DUNE))
            if url.endswith("/chat/completions")
            else generate_content(books_json(DUNE))
        )
    )
    settings = ScanSettings(openai_api_key="sk", gemini_api_key="g", backoff_base=0.0)
    return ScanService(build_pipeline(settings, http_client=http, validate=False), quota)


@pytest.fixture
def client():
    with TestClient(create_app(_service())) as test_client:
        yield test_client


class TestScanApi:
    """Tests for POST /api/scan."""

    def test_scan_returns_books_and_diagnostics(self, client, image_data_url: str) -> None:
        """A valid image returns merged books and per-provider diagnostics."""
        response = client.post("/api/scan", json={"imageDataURL": image_data_url})

        assert response.status_code == 200
        body = response.json()
        assert [b["title"] for b in body["books"]] == ["Dune"]
        assert body["providerDiagnostics"]["openai"]["count"] == 1
        assert body["providerDiagnostics"]["gemini"]["count"] == 1

    def test_missing_image_is_400(self, client) -> None:
        """A request without an image is rejected."""
        response = client.post("/api/scan", json={})
        assert response.status_code == 400
        assert "imageDataURL required" in response.json()["detail"]

    def test_malformed_image_is_400(self, client) -> None:
        """A value that is not an image data URL is rejected."""
        response = client.post("/api/scan", json={"imageDataURL": "not a data url"})
        assert response.status_code == 400

    def test_quota_denial_is_429(self, image_data_url: str) -> None:
        """A caller over quota is refused."""
        app = create_app(_service(DenyingQuota()))
        with TestClient(app) as client:
            response = client.post(
                "/api/scan", json={"imageDataURL": image_data_url, "userId": "u1"}
            )
        assert response.status_code == 429

    def test_anonymous_scan_ignores_quota(self, image_data_url: str) -> None:
        """Without a userId the quota is not consulted."""
        app = create_app(_service(DenyingQuota()))
        with TestClient(app) as client:
            response = client.post("/api/scan", json={"imageDataURL": image_data_url})
        assert response.status_code == 200


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client) -> None:
        """The health endpoint reports healthy."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
