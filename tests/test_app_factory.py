"""
Tests for api/app.py — create_app() factory

Verifies the FastAPI app is created with correct configuration, routers
are registered, and middleware and error handlers behave.
"""
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi.testclient import TestClient

from api.app import _JsonFormatter, create_app


class TestCreateApp:
    def test_creates_fastapi_instance(self, test_config):
        app = create_app(test_config)
        assert app.title == "Data Inclusion Explorer"
        assert app.version == "1.0.0"
        assert app.state.config is test_config

    def test_registers_api_routes(self, test_config):
        paths = {getattr(r, "path", "") for r in create_app(test_config).routes}
        for path in ("/api/services", "/api/data-inclusion", "/api/services/{service_id}",
                     "/api/sources", "/api/communes", "/api/filters",
                     "/health", "/", "/services/{service_id}"):
            assert path in paths, path

    def test_health(self, test_config):
        client = TestClient(create_app(test_config))
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["data_inclusion"].endswith("/api/v1")


class TestMiddleware:
    def test_request_id_header(self, app_client):
        resp = app_client.get("/api/filters")
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_security_headers(self, app_client):
        resp = app_client.get("/api/filters")
        assert "default-src 'self'" in resp.headers["Content-Security-Policy"]
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_requests_logged(self, app_client, caplog):
        with caplog.at_level(logging.INFO, logger="data_inclusion_explorer"):
            app_client.get("/api/filters")
        assert "path=/api/filters" in caplog.text

    def test_static_assets_served(self, app_client):
        resp = app_client.get("/static/js/filters.js")
        assert resp.status_code == 200
        assert "filters-form" in resp.text


class TestJsonFormatter:
    def test_extra_fields_included(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "request", None, None)
        record.path = "/api/services"
        record.status = 200
        data = json.loads(_JsonFormatter().format(record))
        assert data["message"] == "request"
        assert data["path"] == "/api/services"
        assert data["status"] == 200
        assert data["level"] == "INFO"
