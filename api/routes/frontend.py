"""
Frontend HTML routes.

Serves the Jinja2 templates for the explorer:

Routes:
    GET /                  → index.html (filter sidebar + service cards)
    GET /services/{id}     → service_detail.html (one record + raw JSON)

The index builds a ``FilterController`` from the request query, loads the
commune options (restoring a commune code given in the URL even when it is
not among the top communes) and redirects to the canonical URL when the
request carried unknown parameters, invalid values or default values.  The
canonical vocabulary is the registered filter parameters plus ``page``.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from api.upstream import DataInclusionClient, GeoClient, get_data_inclusion_client, get_geo_client
from filters.catalog import COMMUNE_FILTER_ID, build_registry
from filters.codec import build_url, query_pairs
from filters.controller import FilterController
from filters.lookup import CommuneOptionLookup
from filters.schema import Filter, FilterType
from utils.config import AppConfig
from utils.http import UpstreamError

router = APIRouter(tags=["frontend"])

PAGE_PARAM = "page"
_PAGE_WINDOW = 2

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None


def set_templates(t: Jinja2Templates) -> None:
    global _templates
    _templates = t


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised; call set_templates() first")
    return _templates


def _config(request: Request) -> AppConfig:
    cfg = getattr(request.app.state, "config", None)
    return cfg if cfg is not None else AppConfig.from_env()


# ── Helpers ───────────────────────────────────────────────────────────────────

def _parse_page(raw: str | None) -> int:
    try:
        page = int(raw) if raw else 1
    except ValueError:
        return 1
    return max(1, page)


def _page_pairs(controller: FilterController, page: int) -> list[tuple[str, str]]:
    pairs = controller.current_pairs()
    if page > 1:
        pairs.append((PAGE_PARAM, str(page)))
    return pairs


def _page_url(controller: FilterController, page: int) -> str:
    return build_url(controller.base_path, _page_pairs(controller, page))


def _control_kind(f: Filter) -> str:
    if f.type is FilterType.NUMERIC:
        return "slider"
    if f.type is FilterType.BOOLEAN:
        return "boolean"
    if f.id != COMMUNE_FILTER_ID and len(f.options or ()) == 2:
        return "radio"
    return "select"


def _filter_views(controller: FilterController) -> list[dict[str, Any]]:
    """Template context for the sidebar, one entry per category."""
    state = controller.state
    pairs = controller.current_pairs()
    views = []
    for category in controller.registry.categories:
        controls = []
        for f in category.filters:
            if f.type is FilterType.RANGE:
                continue
            value = state.get(f.id)
            controls.append({
                "filter": f,
                "kind": _control_kind(f),
                "value": value.to_param() if value is not None else "",
                "is_set": value is not None,
                "searchable": f.id in controller.dynamic_filter_ids,
                "clear_url": build_url(
                    controller.base_path, [(k, v) for k, v in pairs if k != f.param_name]
                ),
            })
        views.append({"category": category, "controls": controls})
    return views


def _pagination(controller: FilterController, page: int, pages: int) -> dict[str, Any]:
    lo = max(1, page - _PAGE_WINDOW)
    hi = min(pages, page + _PAGE_WINDOW)
    return {
        "page": page,
        "pages": pages,
        "prev_url": _page_url(controller, page - 1) if page > 1 else None,
        "next_url": _page_url(controller, page + 1) if page < pages else None,
        "links": [(p, _page_url(controller, p)) for p in range(lo, hi + 1)],
    }


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(
    request: Request,
    client: DataInclusionClient = Depends(get_data_inclusion_client),
    geo: GeoClient = Depends(get_geo_client),
):
    """Explorer page: filters, results and pagination."""
    cfg = _config(request)
    controller = FilterController(
        build_registry(),
        navigate=lambda url: None,
        lookup=CommuneOptionLookup(geo),
        debounce_seconds=cfg.filter_debounce_seconds,
        page_param=PAGE_PARAM,
    )
    try:
        controller.load_query(request.query_params)
        await controller.mount()

        page = _parse_page(request.query_params.get(PAGE_PARAM))
        canonical = _page_pairs(controller, page)
        if query_pairs(request.url.query) != canonical:
            return RedirectResponse(build_url("/", canonical), status_code=302)

        params = [(PAGE_PARAM, str(page)), ("size", str(cfg.page_size)),
                  *controller.current_pairs()]
        error = None
        try:
            data = await run_in_threadpool(client.search_services, params)
        except UpstreamError as exc:
            error = exc.message
            data = {}

        total = int(data.get("total") or 0)
        pages = int(data.get("pages") or 0) or max(1, -(-total // cfg.page_size))

        return _tmpl().TemplateResponse(
            request,
            "index.html",
            {
                "categories":    _filter_views(controller),
                "filters_error": controller.error,
                "has_filters":   bool(controller.state),
                "debounce_ms":   cfg.filter_debounce_ms,
                "error":         error,
                "items":         data.get("items") or [],
                "total":         total,
                "pagination":    _pagination(controller, page, pages),
            },
        )
    finally:
        controller.close()


@router.get("/services/{service_id}", response_class=HTMLResponse, include_in_schema=False)
async def service_detail(
    service_id: str,
    request: Request,
    client: DataInclusionClient = Depends(get_data_inclusion_client),
):
    """Detail page of one service with its raw JSON record."""
    try:
        service = await run_in_threadpool(client.get_service, service_id)
    except UpstreamError as exc:
        status = 404 if exc.status_code == 404 else 502
        return _tmpl().TemplateResponse(
            request,
            "error.html",
            {"status_code": status, "message": exc.message},
            status_code=status,
        )
    return _tmpl().TemplateResponse(
        request,
        "service_detail.html",
        {
            "service":  service,
            "raw_json": json.dumps(service, indent=2, ensure_ascii=False),
            "back_url": "/",
        },
    )
