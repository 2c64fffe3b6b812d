"""
Data Inclusion proxy endpoints.

GET /api/services          → /search/services (all query params forwarded)
GET /api/data-inclusion    → same as /api/services (legacy path)
GET /api/services/{id}     → /services/{id}
GET /api/sources           → /sources

Responses are passed through unchanged.  Upstream failures surface as
``UpstreamError`` and are turned into ``ErrorResponse`` bodies by the
handler registered in ``api.app``.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ErrorResponse, ServiceOut, ServiceSearchResponse
from api.upstream import DataInclusionClient, get_data_inclusion_client

router = APIRouter(tags=["services"])

_ERRORS = {502: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@router.get(
    "/services",
    response_model=ServiceSearchResponse,
    responses=_ERRORS,
    summary="Search services",
)
def search_services(
    request: Request,
    client: DataInclusionClient = Depends(get_data_inclusion_client),
) -> JSONResponse:
    """Forward the query string to the Data Inclusion service search.

    Typical parameters: ``page``, ``size`` and every filter parameter
    (``sources``, ``types``, ``frais``, ``score_qualite_minimum``,
    ``publics``, ``code_commune``, ``modes_accueil``).
    """
    data = client.search_services(request.query_params.multi_items())
    return JSONResponse(content=data)


@router.get(
    "/data-inclusion",
    response_model=ServiceSearchResponse,
    responses=_ERRORS,
    summary="Search services (legacy path)",
    include_in_schema=False,
)
def search_services_legacy(
    request: Request,
    client: DataInclusionClient = Depends(get_data_inclusion_client),
) -> JSONResponse:
    data = client.search_services(request.query_params.multi_items())
    return JSONResponse(content=data)


@router.get(
    "/services/{service_id}",
    response_model=ServiceOut,
    responses={404: {"model": ErrorResponse}, **_ERRORS},
    summary="Get one service",
)
def get_service(
    service_id: str,
    client: DataInclusionClient = Depends(get_data_inclusion_client),
) -> JSONResponse:
    """Return a single service record; query parameters are not forwarded."""
    return JSONResponse(content=client.get_service(service_id))


@router.get("/sources", responses=_ERRORS, summary="List data sources")
def list_sources(
    client: DataInclusionClient = Depends(get_data_inclusion_client),
) -> JSONResponse:
    """Return the producers feeding the Data Inclusion dataset."""
    return JSONResponse(
        content=client.list_sources(),
        headers={"Cache-Control": "public, max-age=3600"},
    )
