"""Tests for app wiring: health check, error mapping and CORS."""

import pytest
from fastapi.testclient import TestClient
from pydantic_settings import BaseSettings

from app_config import ENV_FILE, Settings, load_settings
from app_server import SERVICE_NAME, create_app
from mongodb import create_mongo_client


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    def test_health_returns_200(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200

    def test_health_reports_dependencies(self, client):
        data = client.get("/api/health").json()

        assert data["status"] == "ok"
        assert data["service"] == SERVICE_NAME
        assert data["database"] in ("connected", "disconnected")
        assert data["cloudinary"] == "configured"

    def test_health_reports_unconfigured_store(self, settings, mongo_client, object_store):
        object_store.configured = False
        app = create_app(settings, mongo_client=mongo_client, object_store=object_store)

        with TestClient(app) as test_client:
            data = test_client.get("/api/health").json()

        assert data["cloudinary"] == "not configured"


class TestErrorHandling:
    """Tests for the fallback handlers."""

    def test_unknown_route_returns_404(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}

    def test_unhandled_error_returns_500(self, settings, mongo_client, object_store):
        app = create_app(settings, mongo_client=mongo_client, object_store=object_store)

        @app.get("/api/boom")
        async def boom():
            raise RuntimeError("boom")

        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/boom")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}

    def test_unhandled_error_keeps_cors_headers(self, settings, mongo_client, object_store):
        app = create_app(settings, mongo_client=mongo_client, object_store=object_store)

        @app.get("/api/boom")
        async def boom():
            raise RuntimeError("boom")

        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/boom", headers={"Origin": settings.frontend_url})

        assert response.status_code == 500
        assert response.headers["access-control-allow-origin"] == settings.frontend_url


class TestCors:
    def test_frontend_origin_allowed(self, client, settings):
        response = client.get("/api/health", headers={"Origin": settings.frontend_url})

        assert response.headers["access-control-allow-origin"] == settings.frontend_url
        assert response.headers["access-control-allow-credentials"] == "true"


class TestSettings:
    """Tests for app_config.load_settings."""

    def test_is_pydantic_settings(self):
        assert issubclass(Settings, BaseSettings)
        assert Settings.model_config["env_file"] == ENV_FILE

    def test_settings_read_environment_directly(self, monkeypatch):
        monkeypatch.setenv("FRONTEND_URL", "https://store.example.com")

        assert Settings(_env_file=None).frontend_url == "https://store.example.com"

    def test_defaults(self, monkeypatch):
        for name in ("PORT", "FRONTEND_URL", "MONGODB_URI", "MONGODB_DATABASE",
                     "CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings(env_file=None)

        assert settings.port == 5000
        assert settings.frontend_url == "http://localhost:5173"
        assert settings.mongodb_uri == "mongodb://localhost:27017"
        assert settings.missing_cloudinary() == [
            "CLOUDINARY_CLOUD_NAME",
            "CLOUDINARY_API_KEY",
            "CLOUDINARY_API_SECRET",
        ]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("MONGODB_DATABASE", "store")
        monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
        monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
        monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")

        settings = load_settings(env_file=None)

        assert settings.port == 8080
        assert settings.mongodb_database == "store"
        assert settings.missing_cloudinary() == []

    def test_loads_env_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MONGODB_URI", "unset")
        monkeypatch.delenv("MONGODB_URI")
        env_file = tmp_path / ".env"
        env_file.write_text("MONGODB_URI=mongodb://db.internal:27017\n")

        settings = load_settings(env_file=str(env_file))

        assert settings.mongodb_uri == "mongodb://db.internal:27017"

    @pytest.mark.parametrize("value", ["", None])
    def test_blank_credentials_count_as_missing(self, value):
        settings = Settings(cloudinary_cloud_name=value, cloudinary_api_key="k", cloudinary_api_secret="s")

        assert settings.missing_cloudinary() == ["CLOUDINARY_CLOUD_NAME"]


class TestMongoClient:
    async def test_client_returns_aware_datetimes(self):
        client = create_mongo_client("mongodb://localhost:27017")
        try:
            assert client.codec_options.tz_aware is True
        finally:
            client.close()
