"""
Filter catalog endpoint.

GET /api/filters → categories and filters of the sidebar, with the query
parameter each filter maps to.  The commune filter is listed with an empty
option list; its options come from GET /api/communes.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.models import FilterCategoryOut
from filters.catalog import build_registry

router = APIRouter(tags=["filters"])


@router.get(
    "/filters",
    response_model=list[FilterCategoryOut],
    summary="List filter categories",
)
def list_filters() -> JSONResponse:
    return JSONResponse(
        content=build_registry().to_list(),
        headers={"Cache-Control": "public, max-age=3600"},
    )
