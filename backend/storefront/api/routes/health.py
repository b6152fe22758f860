"""Health check endpoint with a provider connectivity probe.

The probe authenticates against the inventory provider with a short timeout.
A provider reporting "disconnected" does not affect the overall status ("ok");
the endpoint always returns 200 so load balancers keep routing.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog
from fastapi import APIRouter

from storefront.config import settings
from storefront.inventory.errors import InventoryError
from storefront.inventory.provider import InventoryProvider

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

VERSION = "0.1.0"

_CHECK_TIMEOUT = 3.0  # seconds for the provider check


async def _check_provider() -> str:
    """Authenticate once; a cached token counts as connected."""
    async with httpx.AsyncClient() as http:
        provider = InventoryProvider(http, timeout=_CHECK_TIMEOUT)
        if not provider.configured:
            return "unconfigured"
        try:
            await asyncio.wait_for(provider.authenticate(), timeout=_CHECK_TIMEOUT)
            return "connected"
        except (InventoryError, TimeoutError) as exc:
            logger.debug("health_provider_failed", error=str(exc))
            return "disconnected"


@router.get("/health")
async def health_check() -> dict:
    """Confirms the API process is alive and reports provider reachability."""
    provider = await _check_provider()
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "provider": provider,
    }
