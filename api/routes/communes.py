"""
Commune lookup endpoint.

GET /api/communes?code=75056     → [commune] or [] when the code is unknown
GET /api/communes?search=lyo     → communes matching the name (max 50)
GET /api/communes                → the pre-populated top communes
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.models import CommuneOut, ErrorResponse
from api.upstream import GeoClient, get_geo_client

router = APIRouter(tags=["communes"])


@router.get(
    "/communes",
    response_model=list[CommuneOut],
    responses={500: {"model": ErrorResponse}},
    summary="Search communes",
)
def list_communes(
    search: str | None = Query(None, description="Name fragment; under 2 characters returns the top communes"),
    code: str | None = Query(None, description="INSEE code; takes precedence over search"),
    geo: GeoClient = Depends(get_geo_client),
) -> JSONResponse:
    """Commune choices for the location filter."""
    if code:
        return JSONResponse(content=geo.get_by_code(code))
    return JSONResponse(content=geo.search(search or ""))
