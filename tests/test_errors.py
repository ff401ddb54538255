"""Tests for error rendering and response headers."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from app.config import get_settings

TEST_PASSWORD = "Password1!"


def _failing_explorer() -> MagicMock:
    explorer = MagicMock()
    explorer.list_objects.side_effect = RuntimeError("driver said: table sys.secret is locked")
    return explorer


class TestUnhandledErrors:
    """Unexpected failures become a 500 envelope."""

    def test_default_environment_is_production(self):
        settings = get_settings()
        assert settings.APP_ENV == "production"
        assert settings.is_development is False

    def test_details_redacted_by_default(self, client: TestClient, test_user: dict):
        from main import app

        raw_client = TestClient(app, raise_server_exceptions=False)
        with patch("app.routers.db.get_explorer_service", return_value=_failing_explorer()):
            response = raw_client.get("/api/db/tables", headers=test_user["headers"])

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Internal server error"
        assert body["error"] == "Something went wrong"
        assert "sys.secret" not in response.text

    def test_details_shown_in_development(self, client: TestClient, test_user: dict):
        from main import app

        raw_client = TestClient(app, raise_server_exceptions=False)
        with patch("app.routers.db.get_explorer_service", return_value=_failing_explorer()):
            with patch.object(get_settings(), "APP_ENV", "development"):
                response = raw_client.get("/api/db/tables", headers=test_user["headers"])

        assert response.status_code == 500
        assert "sys.secret" in response.json()["error"]


class TestValidationErrors:
    """Malformed input is reported in the format of the surface that received it."""

    def test_api_gets_envelope(self, client: TestClient, test_user: dict):
        response = client.get("/api/db/tables/dbo.accounts/rows", params={"page": "abc"}, headers=test_user["headers"])
        assert response.status_code == 422
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["errors"][0]["field"] == "page"

    def test_web_route_gets_html(self, client: TestClient, test_user: dict):
        client.post("/login", data={"email": "test@example.com", "password": TEST_PASSWORD}, follow_redirects=False)
        response = client.get("/partials/table-rows/dbo.accounts", params={"page": "abc"})
        assert response.status_code == 422
        assert response.headers["content-type"].startswith("text/html")
        assert "page:" in response.text
        assert '"success"' not in response.text

    def test_web_error_page_escapes_input(self, client: TestClient, test_user: dict):
        client.post("/login", data={"email": "test@example.com", "password": TEST_PASSWORD}, follow_redirects=False)
        response = client.get("/partials/table-rows/dbo.accounts", params={"page": "<script>"})
        assert response.status_code == 422
        assert "<script>" not in response.text


class TestSecurityHeaders:
    """Headers added to every response."""

    def test_page_headers(self, client: TestClient):
        response = client.get("/login")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        csp = response.headers["Content-Security-Policy"]
        assert "frame-ancestors 'none'" in csp
        assert "https://unpkg.com" in csp
        assert response.headers["Cache-Control"] == "no-store"

    def test_api_responses_not_cached(self, client: TestClient):
        response = client.get("/api/health")
        assert response.headers["Cache-Control"] == "no-store"

    def test_static_assets_cacheable(self, client: TestClient):
        response = client.get("/static/app.css")
        assert response.status_code == 200
        assert response.headers.get("Cache-Control") != "no-store"
