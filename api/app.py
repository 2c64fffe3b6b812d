"""
FastAPI application factory for the Data Inclusion explorer.

Usage:
    python -m api.app                                   # Dev server on port 8000
    DATA_INCLUSION_BASE_URL=https://api.data.inclusion.beta.gouv.fr python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

The JSON endpoints under /api are thin proxies to the Data Inclusion API and
to geo.api.gouv.fr; the HTML explorer lives at / (see api/routes/frontend.py).

Logging: one stream handler, plain text by default or newline-delimited JSON
when APP_LOG_FORMAT=json.  APP_DEBUG=1 turns the ``filters`` loggers to
DEBUG, which reports dropped URL parameters and rejected filter values.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from api.routes import communes, filters as filter_routes, services
from api.routes import frontend as frontend_routes
from api.upstream import configure_clients, shutdown_clients
from utils.config import AppConfig
from utils.http import UpstreamError

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


_logger = logging.getLogger("data_inclusion_explorer")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)
if _cfg.debug:
    logging.getLogger("filters").setLevel(logging.DEBUG)

_SLOW_REQUEST_MS = 500


def create_app(cfg: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        cfg: Override the environment configuration (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = cfg or _cfg

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_clients(cfg)
        _logger.info(
            "upstreams data_inclusion=%s/api/%s geo=%s",
            cfg.data_inclusion_base_url, cfg.data_inclusion_version, cfg.geo_api_base_url,
        )
        yield
        shutdown_clients()

    app = FastAPI(
        title="Data Inclusion Explorer",
        summary="Browse and filter the Data Inclusion social services directory.",
        description=(
            "## Data Inclusion Explorer\n\n"
            "Proxies the public Data Inclusion API "
            "(https://api.data.inclusion.beta.gouv.fr/api/docs) and the "
            "geo.api.gouv.fr commune lookup.\n\n"
            "### Filters\n"
            "Each sidebar filter maps to one query parameter of "
            "`/api/services`: `sources`, `types`, `frais`, "
            "`score_qualite_minimum`, `publics`, `code_commune`, "
            "`modes_accueil`. See `/api/filters` for the full catalog."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "services", "description": "Service search, detail and sources (proxied)."},
            {"name": "communes", "description": "Commune lookup for the location filter."},
            {"name": "filters", "description": "Filter catalog of the explorer sidebar."},
            {"name": "meta", "description": "Health check."},
        ],
    )
    app.state.config = cfg

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with its duration and tag it with a request ID."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if path == "/health":
            return response
        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        if duration_ms > _SLOW_REQUEST_MS:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Security headers ──────────────────────────────────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add Content-Security-Policy, X-Content-Type-Options, and X-Frame-Options."""
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self';"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        """Relay upstream failures with the upstream status code."""
        return JSONResponse(
            status_code=exc.status_code if 400 <= exc.status_code <= 599 else 502,
            content={"error": exc.message, "detail": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK with the configured upstreams."""
        return {
            "status": "ok",
            "data_inclusion": f"{cfg.data_inclusion_base_url}/api/{cfg.data_inclusion_version}",
            "geo": cfg.geo_api_base_url,
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api"
    app.include_router(services.router,      prefix=prefix)
    app.include_router(communes.router,      prefix=prefix)
    app.include_router(filter_routes.router, prefix=prefix)

    # ── Static files + Jinja2 templates ───────────────────────────────────────
    _here = Path(__file__).parent.parent  # project root

    static_dir = _here / "static"
    templates_dir = _here / "templates"

    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    if templates_dir.exists():
        templates = Jinja2Templates(directory=str(templates_dir))

        def fmt_score(value) -> str:
            """Jinja filter: quality score with two decimals."""
            try:
                return f"{float(value):.2f}"
            except (TypeError, ValueError):
                return "—"

        def fmt_distance(value) -> str:
            """Jinja filter: distance in km, one decimal."""
            try:
                return f"{float(value):.1f} km"
            except (TypeError, ValueError):
                return ""

        templates.env.filters["fmt_score"] = fmt_score
        templates.env.filters["fmt_distance"] = fmt_distance

        # Wire templates into the frontend router
        frontend_routes.set_templates(templates)
        app.include_router(frontend_routes.router)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
