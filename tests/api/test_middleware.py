"""Tests for API middleware."""

from fastapi.testclient import TestClient

from catalog_migrator.infrastructure.config import settings
from catalog_migrator.main import app


class TestApiKeyMiddleware:
    """Tests for API key authentication."""

    def test_public_paths_skip_auth(self, client: TestClient) -> None:
        """Health and docs need no key."""
        assert client.get("/health").status_code == 200
        assert client.get("/openapi.json").status_code == 200

    def test_missing_header(self, client: TestClient, stub_service) -> None:
        """Protected paths require an Authorization header."""
        response = client.get("/migration/progress")

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_scheme(self, client: TestClient, stub_service) -> None:
        """Only the Bearer scheme is accepted."""
        response = client.get("/migration/progress", headers={"Authorization": "Basic abc"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_wrong_key(self, client: TestClient, stub_service) -> None:
        """A wrong key is rejected."""
        response = client.get(
            "/migration/progress", headers={"Authorization": "Bearer not-the-key"}
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_API_KEY"


class TestRequestIdMiddleware:
    """Tests for request ID correlation."""

    def test_generates_request_id(self, client: TestClient) -> None:
        """A request ID is generated when none is sent."""
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_echoes_request_id(self, auth_client: TestClient, stub_service) -> None:
        """A sent request ID is echoed in the header and error envelope."""
        response = auth_client.get("/migration/progress", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json()["request_id"] == "req-42"


class TestUnhandledErrors:
    """Tests for the 500 envelope on unhandled errors."""

    def test_internal_error_envelope(self, stub_service) -> None:
        """An exception escaping a route is rendered as INTERNAL_ERROR."""

        async def broken_stats():
            raise RuntimeError("image root unreadable")

        stub_service.image_stats = broken_stats
        client = TestClient(
            app,
            raise_server_exceptions=False,
            headers={"Authorization": f"Bearer {settings.migrator_api_key}"},
        )

        response = client.get("/migration/images/stats")

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "INTERNAL_ERROR"
        assert body["message"] == "An internal error occurred"
        assert "image root unreadable" not in response.text
