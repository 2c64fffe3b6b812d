"""
Pytest fixtures for the Data Inclusion explorer tests.

Provides fake upstream clients (no network) and a TestClient wired to them
through ``app.dependency_overrides``:

    fake_data_inclusion   records forwarded params, serves canned services
    fake_geo              serves TOP_COMMUNES and a small by-code directory
    app_client            TestClient over create_app() with both fakes
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi.testclient import TestClient

from api.app import create_app
from api.upstream import (
    FETCH_ERROR,
    TOP_COMMUNES,
    get_data_inclusion_client,
    get_geo_client,
)
from utils.config import AppConfig
from utils.http import UpstreamError


SERVICE = {
    "id": "dora--atelier-cv",
    "nom": "Atelier CV",
    "presentation_resume": "Rédiger son CV avec un conseiller",
    "source": "dora",
    "frais": "gratuit",
    "commune": "Lyon",
    "code_postal": "69001",
    "score_qualite": 0.82,
    "publics": ["jeunes", "demandeurs-emploi"],
}

EXTRA_COMMUNES = {
    "01001": {"code": "01001", "nom": "L'Abergement-Clémenciat", "codeRegion": "84"},
}


class FakeDataInclusionClient:
    """Stand-in for DataInclusionClient; set ``error`` to make calls fail."""

    def __init__(self):
        self.search_calls: list[list[tuple[str, str]]] = []
        self.error: UpstreamError | None = None
        self.services = {SERVICE["id"]: SERVICE}

    def search_services(self, params):
        params = list(params)
        self.search_calls.append(params)
        if self.error is not None:
            raise self.error
        items = [{"service": s, "distance": None} for s in self.services.values()]
        return {"items": items, "total": len(items), "page": 1, "size": 50, "pages": 1}

    def get_service(self, service_id):
        if self.error is not None:
            raise self.error
        if service_id not in self.services:
            raise UpstreamError(404, FETCH_ERROR)
        return self.services[service_id]

    def list_sources(self):
        if self.error is not None:
            raise self.error
        return [{"slug": "dora", "nom": "DORA"}]


class FakeGeoClient:
    """Stand-in for GeoClient with an in-memory directory."""

    def __init__(self):
        self.search_calls: list[str] = []
        self.code_calls: list[str] = []
        self.error: UpstreamError | None = None

    def search(self, term):
        self.search_calls.append(term)
        if self.error is not None:
            raise self.error
        if len((term or "").strip()) < 2:
            return list(TOP_COMMUNES)
        term = term.lower()
        everything = list(TOP_COMMUNES) + list(EXTRA_COMMUNES.values())
        return [c for c in everything if term in c["nom"].lower()]

    def get_by_code(self, code):
        self.code_calls.append(code)
        for c in list(TOP_COMMUNES) + list(EXTRA_COMMUNES.values()):
            if c["code"] == code:
                return [c]
        return []


@pytest.fixture()
def fake_data_inclusion():
    return FakeDataInclusionClient()


@pytest.fixture()
def fake_geo():
    return FakeGeoClient()


@pytest.fixture()
def test_config(monkeypatch):
    """AppConfig with fast, deterministic settings."""
    monkeypatch.setenv("PAGE_SIZE", "20")
    monkeypatch.setenv("FILTER_DEBOUNCE_MS", "10")
    return AppConfig.from_env()


@pytest.fixture()
def app_client(test_config, fake_data_inclusion, fake_geo):
    """TestClient over a fresh app whose upstream clients are the fakes."""
    app = create_app(test_config)
    app.dependency_overrides[get_data_inclusion_client] = lambda: fake_data_inclusion
    app.dependency_overrides[get_geo_client] = lambda: fake_geo
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()
