"""
Upstream API clients for the explorer.

DataInclusionClient
    Data Inclusion REST API (``{base_url}/api/{version}{endpoint}``):
    service search, single service, source list.

GeoClient
    geo.api.gouv.fr commune lookup: name search and lookup by INSEE code.
    Searches shorter than two characters return ``TOP_COMMUNES`` without a
    network call; an unknown code returns an empty list, never an error.

Both clients raise ``UpstreamError`` (utils.http) for failed calls.  Route
handlers get their client through ``get_data_inclusion_client()`` /
``get_geo_client()`` so tests can swap in fakes via
``app.dependency_overrides``.
"""

import logging
from typing import Any, Iterable, Optional
from urllib.parse import quote

import requests

from utils.cache import TTLCache
from utils.config import AppConfig
from utils.http import SessionManager, UpstreamError

logger = logging.getLogger(__name__)

FETCH_ERROR = "Erreur lors de la récupération des données"
SERVER_ERROR = "Erreur serveur lors de la récupération des données"
COMMUNES_FETCH_ERROR = "Erreur lors de la récupération des communes"
COMMUNES_SERVER_ERROR = "Erreur serveur lors de la récupération des communes"

# Query parameters of the original proxy that selected the upstream; the
# upstream now comes from configuration only, so these are never forwarded.
RESERVED_PARAMS = frozenset({"baseUrl", "version"})

MIN_SEARCH_LENGTH = 2
COMMUNE_SEARCH_LIMIT = 50

# Pre-populated commune choices shown before the user searches.
TOP_COMMUNES: list[dict[str, str]] = [
    {"code": "75056", "nom": "Paris", "codeRegion": "75"},
    {"code": "13055", "nom": "Marseille", "codeRegion": "13"},
    {"code": "69123", "nom": "Lyon", "codeRegion": "69"},
    {"code": "31555", "nom": "Toulouse", "codeRegion": "31"},
    {"code": "06088", "nom": "Nice", "codeRegion": "06"},
    {"code": "59350", "nom": "Lille", "codeRegion": "59"},
    {"code": "33063", "nom": "Bordeaux", "codeRegion": "33"},
    {"code": "37261", "nom": "Tours", "codeRegion": "37"},
    {"code": "44109", "nom": "Nantes", "codeRegion": "44"},
    {"code": "67482", "nom": "Strasbourg", "codeRegion": "67"},
    {"code": "59183", "nom": "Lens", "codeRegion": "59"},
    {"code": "62041", "nom": "Arras", "codeRegion": "62"},
    {"code": "92012", "nom": "Boulogne-Billancourt", "codeRegion": "92"},
    {"code": "92050", "nom": "Neuilly-sur-Seine", "codeRegion": "92"},
    {"code": "92044", "nom": "Issy-les-Moulineaux", "codeRegion": "92"},
]


def forwardable_params(pairs: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop the reserved upstream-selection params, keep everything else."""
    return [(k, v) for k, v in pairs if k not in RESERVED_PARAMS]


class DataInclusionClient:
    """Blocking client for the Data Inclusion API."""

    def __init__(self, base_url: str, version: str = "v1",
                 session_manager: Optional[SessionManager] = None,
                 timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.session_manager = session_manager or SessionManager()
        self.timeout = timeout
        self._sources_cache = TTLCache(maxsize=1, ttl_seconds=3600)

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/api/{self.version}{endpoint}"

    def get_json(self, endpoint: str,
                 params: Optional[Iterable[tuple[str, str]]] = None) -> Any:
        """GET an endpoint and return the decoded JSON body.

        Args:
            endpoint: Path below ``/api/{version}``, starting with ``/``.
            params:   Query parameters forwarded as-is (repeats allowed).

        Raises:
            UpstreamError: non-2xx answer (upstream status) or transport
                failure / undecodable body (500).
        """
        url = self.url_for(endpoint)
        try:
            resp = self.session_manager.session.get(
                url, params=list(params or ()), timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error("data inclusion request failed url=%s: %s", url, exc)
            raise UpstreamError(500, SERVER_ERROR, str(exc)) from exc
        if not resp.ok:
            logger.warning("data inclusion answered %d url=%s", resp.status_code, url)
            raise UpstreamError(resp.status_code, FETCH_ERROR)
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("data inclusion returned invalid JSON url=%s", url)
            raise UpstreamError(500, SERVER_ERROR, str(exc)) from exc

    def search_services(self, params: Iterable[tuple[str, str]]) -> dict[str, Any]:
        return self.get_json("/search/services", forwardable_params(params))

    def get_service(self, service_id: str) -> dict[str, Any]:
        return self.get_json(f"/services/{quote(service_id, safe='')}")

    def list_sources(self) -> list[dict[str, Any]]:
        return self._sources_cache.get_or_load("sources", lambda: self.get_json("/sources"))

    def close(self) -> None:
        self.session_manager.close()


class GeoClient:
    """Blocking client for the geo.api.gouv.fr commune endpoints."""

    def __init__(self, base_url: str = "https://geo.api.gouv.fr",
                 session_manager: Optional[SessionManager] = None,
                 timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.session_manager = session_manager or SessionManager()
        self.timeout = timeout
        self._by_code_cache = TTLCache(maxsize=512, ttl_seconds=24 * 3600)

    def _get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session_manager.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("geo api request failed url=%s: %s", url, exc)
            raise UpstreamError(500, COMMUNES_SERVER_ERROR, str(exc)) from exc

    def search(self, term: str) -> list[dict[str, Any]]:
        """Communes whose name matches *term*; top communes for short terms."""
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return list(TOP_COMMUNES)
        resp = self._get("/communes", {"nom": term, "limit": str(COMMUNE_SEARCH_LIMIT)})
        if not resp.ok:
            logger.warning("geo api answered %d for search=%r", resp.status_code, term)
            raise UpstreamError(resp.status_code, COMMUNES_FETCH_ERROR)
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(500, COMMUNES_SERVER_ERROR, str(exc)) from exc
        return data if isinstance(data, list) else []

    def get_by_code(self, code: str) -> list[dict[str, Any]]:
        """Zero-or-one commune for an INSEE code."""
        code = (code or "").strip()
        if not code:
            return []
        return self._by_code_cache.get_or_load(("commune", code), lambda: self._fetch_code(code))

    def _fetch_code(self, code: str) -> list[dict[str, Any]]:
        resp = self._get(f"/communes/{quote(code, safe='')}")
        if not resp.ok:
            logger.debug("geo api answered %d for code=%s", resp.status_code, code)
            return []
        try:
            commune = resp.json()
        except ValueError:
            return []
        return [commune] if isinstance(commune, dict) and commune.get("code") else []

    def close(self) -> None:
        self.session_manager.close()


# ── FastAPI dependencies ──────────────────────────────────────────────────────

_data_inclusion: Optional[DataInclusionClient] = None
_geo: Optional[GeoClient] = None


def configure_clients(cfg: AppConfig) -> None:
    """(Re)build the shared clients from configuration."""
    global _data_inclusion, _geo
    shutdown_clients()
    _data_inclusion = DataInclusionClient(
        cfg.data_inclusion_base_url,
        cfg.data_inclusion_version,
        timeout=cfg.upstream_timeout,
    )
    _geo = GeoClient(cfg.geo_api_base_url, timeout=cfg.upstream_timeout)


def shutdown_clients() -> None:
    global _data_inclusion, _geo
    for client in (_data_inclusion, _geo):
        if client is not None:
            client.close()
    _data_inclusion = None
    _geo = None


def get_data_inclusion_client() -> DataInclusionClient:
    if _data_inclusion is None:
        configure_clients(AppConfig.from_env())
    return _data_inclusion


def get_geo_client() -> GeoClient:
    if _geo is None:
        configure_clients(AppConfig.from_env())
    return _geo
