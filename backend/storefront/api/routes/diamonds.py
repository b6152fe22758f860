"""Diamond listing endpoints: the collaborator contract for the storefront.

Query parameters follow the flat facet contract (repeated keys for set
facets, minX/maxX for ranges) plus offset, limit, sort and cursor. Fatal
inventory errors propagate to the app-level InventoryError handler.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from storefront.inventory.facets import decode_request
from storefront.inventory.query import QueryCompiler
from storefront.inventory.service import get_diamond, inventory_session, search_with_fallback
from storefront.models.contracts import CanonicalListing, ErrorResponse, ListingPage

logger = structlog.get_logger()

router = APIRouter(tags=["diamonds"])

_UPSTREAM_ERRORS = {502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


async def get_query_compiler() -> AsyncIterator[QueryCompiler]:
    async with inventory_session() as compiler:
        yield compiler


@router.get("/diamonds", response_model=ListingPage, responses=_UPSTREAM_ERRORS)
async def list_diamonds(
    request: Request,
    compiler: QueryCompiler = Depends(get_query_compiler),
) -> ListingPage:
    """One page of canonical listings for the facet filter in the query string.

    Serves the placeholder set instead of an error when USE_PLACEHOLDER_LISTINGS is on.
    """
    listing_request = decode_request(request.query_params.multi_items())
    return await search_with_fallback(compiler, listing_request)


@router.get(
    "/diamonds/{diamond_id:path}",
    response_model=CanonicalListing,
    responses={404: {"model": ErrorResponse}, **_UPSTREAM_ERRORS},
)
async def get_diamond_by_id(
    diamond_id: str,
    compiler: QueryCompiler = Depends(get_query_compiler),
):
    """A single diamond by provider id (bare or ``DIAMOND/<id>``)."""
    listing = await get_diamond(compiler, diamond_id)
    if listing is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(
                error="diamond_not_found",
                message=f"Diamond {diamond_id} not found",
                retryable=False,
            ).model_dump(),
        )
    return listing
