"""Catalog enrichment: grading attributes for externally sourced product records."""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from storefront.inventory.mapper import map_catalog_product
from storefront.models.contracts import CanonicalListing, CatalogProduct

logger = structlog.get_logger()

router = APIRouter(tags=["catalog"])


@router.post("/catalog/enrich", response_model=CanonicalListing)
async def enrich_catalog_product(body: CatalogProduct) -> CanonicalListing:
    """Extract grading from the record's title and description."""
    listing = map_catalog_product(body)
    logger.info(
        "catalog_product_enriched",
        product_id=body.id,
        fields=sorted(k for k, v in listing.grading.model_dump().items() if v is not None),
    )
    return listing
