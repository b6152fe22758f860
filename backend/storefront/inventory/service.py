"""Request-scoped inventory orchestration: compile → execute → map.

Each call gets one caller-scoped budget (REQUEST_TIMEOUT_SECONDS) covering
authentication, the query and its single retry. A compiled query is a value,
so cancelling on timeout leaves nothing half-applied.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
import structlog

from storefront.config import settings
from storefront.inventory.errors import InventoryError, RequestTimedOut
from storefront.inventory.facets import ListingRequest
from storefront.inventory.mapper import map_item, map_items, placeholder_page
from storefront.inventory.provider import InventoryProvider
from storefront.inventory.query import QueryCompiler
from storefront.models.contracts import CanonicalListing, ListingPage

log = structlog.get_logger("inventory.service")

T = TypeVar("T")


@asynccontextmanager
async def inventory_session() -> AsyncIterator[QueryCompiler]:
    """A compiler bound to a fresh HTTP client, closed on exit."""
    async with httpx.AsyncClient() as http:
        yield QueryCompiler(InventoryProvider(http))


async def _within_budget(call: Awaitable[T], timeout: float | None, operation: str) -> T:
    budget = timeout or settings.request_timeout_seconds
    try:
        return await asyncio.wait_for(call, timeout=budget)
    except TimeoutError as exc:
        log.error("inventory_request_timeout", operation=operation, timeout=budget)
        raise RequestTimedOut(f"{operation} exceeded {budget:g}s") from exc


async def search_diamonds(
    compiler: QueryCompiler,
    request: ListingRequest,
    *,
    timeout: float | None = None,
) -> ListingPage:
    """Run one listing request. Fatal inventory errors propagate."""
    query = compiler.build(request)
    result = await _within_budget(compiler.execute(query), timeout, "search")
    page = map_items(
        result.items,
        offset=request.offset,
        limit=request.limit,
        total=result.total_count,
        degraded_field=result.dropped_field.value if result.dropped_field else None,
    )
    log.info(
        "inventory_search_completed",
        clauses=len(result.query.clauses),
        returned=len(page.listings),
        total=result.total_count,
        degraded=page.degraded_field,
    )
    return page


async def search_with_fallback(
    compiler: QueryCompiler,
    request: ListingRequest,
    *,
    use_placeholder: bool | None = None,
    timeout: float | None = None,
) -> ListingPage:
    """search_diamonds(), serving the placeholder set on a fatal error if enabled."""
    if use_placeholder is None:
        use_placeholder = settings.use_placeholder_listings
    try:
        return await search_diamonds(compiler, request, timeout=timeout)
    except InventoryError as exc:
        if not use_placeholder:
            raise
        log.warning(
            "inventory_placeholder_served",
            error_code=exc.error_code,
            error=str(exc),
        )
        return placeholder_page(request.limit, reason=f"{exc.error_code}: {exc}")


async def get_diamond(
    compiler: QueryCompiler,
    diamond_id: str,
    *,
    timeout: float | None = None,
) -> CanonicalListing | None:
    """Look one diamond up by provider id; None when the provider has none."""
    item = await _within_budget(compiler.fetch_by_id(diamond_id), timeout, "lookup")
    if item is None:
        log.info("inventory_diamond_not_found", diamond_id=diamond_id)
        return None
    return map_item(item)
