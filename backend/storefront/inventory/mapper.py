"""Raw provider records → CanonicalListing, plus pagination accounting.

Provider items are loosely shaped: any nested object may be missing or null.
A missing nested field maps to None and the listing is still produced; only
an item without an id is dropped. Items that carry free text instead of a
structured certificate go through the heuristic extractor.
"""

from __future__ import annotations

import html
import math
from collections.abc import Iterable
from typing import Any
from urllib.parse import urlsplit

import structlog

from storefront.config import settings
from storefront.inventory.extract import clean_text, extract_attributes, parse_descriptor
from storefront.inventory.facets import format_number
from storefront.inventory.vocabulary import (
    CLARITY_GRADES,
    COLOR_GRADES,
    DiamondType,
    conform,
    normalize_cut,
)
from storefront.models.contracts import (
    CanonicalListing,
    CatalogProduct,
    GradingAttributes,
    ListingPage,
    PaginationWindow,
)

log = structlog.get_logger("inventory.mapper")

NO_SPEC_SHEET_HTML = "<p>Detailed diamond specifications available upon request.</p>"


# === Field helpers ===


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return format_number(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _object(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def resolve_media_url(url: Any, origin: str | None = None) -> str | None:
    """Absolute URLs pass through; bare paths get the provider origin."""
    text = url.strip() if isinstance(url, str) else ""
    if not text:
        return None
    if text.startswith("//"):
        return f"https:{text}"
    if urlsplit(text).scheme:
        return text
    base = (origin or settings.provider_origin).rstrip("/")
    return f"{base}/{text.lstrip('/')}"


def grading_from_certificate(certificate: dict[str, Any] | None) -> GradingAttributes:
    """Copy the provider certificate field for field; None when absent.

    Certificates carry no natural/lab-grown marker, so diamond_type stays None.
    """
    if certificate is None:
        return GradingAttributes()
    return GradingAttributes(
        color=_text(certificate.get("color")),
        clarity=_text(certificate.get("clarity")),
        cut=_text(certificate.get("cut")),
        carat=_text(certificate.get("carats")),
        shape=_text(certificate.get("shape")),
        certification_lab=_text(certificate.get("lab")),
        certificate_number=_text(certificate.get("certNumber")),
        polish=_text(certificate.get("polish")),
        symmetry=_text(certificate.get("symmetry")),
        fluorescence=_text(certificate.get("floInt")),
        girdle=_text(certificate.get("girdle")),
        length_mm=_number(certificate.get("length")),
        width_mm=_number(certificate.get("width")),
        depth_mm=_number(certificate.get("depth")),
        depth_percentage=_number(certificate.get("depthPercentage")),
        table_percentage=_number(certificate.get("table")),
    )


def build_title(grading: GradingAttributes, listing_id: str) -> str:
    carat = _number(grading.carat)
    shape = grading.shape
    if carat is not None and shape:
        return f"{carat:.2f}ct {shape} Diamond"
    if shape:
        return f"{shape} Diamond"
    if carat is not None:
        return f"{carat:.2f}ct Diamond"
    return f"Diamond {listing_id}"


def build_description_html(grading: GradingAttributes) -> str:
    """Spec sheet paragraph; polish and symmetry lines only when known."""
    carat = _number(grading.carat)
    rows = [
        ("Shape", grading.shape),
        ("Carat", f"{carat:.2f} ct" if carat is not None else "N/A ct"),
        ("Color", grading.color),
        ("Clarity", grading.clarity),
        ("Cut", grading.cut),
        ("Lab", grading.certification_lab),
        ("Certificate Number", grading.certificate_number),
    ]
    if grading.polish:
        rows.append(("Polish", grading.polish))
    if grading.symmetry:
        rows.append(("Symmetry", grading.symmetry))
    body = "".join(
        f"<strong>{label}:</strong> {html.escape(value or 'N/A')}<br/>" for label, value in rows
    )
    return f"<p>{body}</p>"


# === Provider items ===


def map_item(
    item: Any,
    *,
    currency: str | None = None,
    default_type: DiamondType | None = None,
) -> CanonicalListing | None:
    """One provider item → listing. Returns None (and logs) when it has no id."""
    raw = _object(item)
    listing_id = _text(raw.get("id")) if raw else None
    if raw is None or listing_id is None:
        log.warning(
            "inventory_item_dropped",
            reason="missing_id",
            item_type=type(item).__name__,
        )
        return None

    diamond = _object(raw.get("diamond")) or {}
    certificate = _object(diamond.get("certificate"))
    description = _text(raw.get("description")) or _text(diamond.get("description"))

    if certificate is None and description:
        grading = extract_attributes(None, description, default_type=default_type)
        description_html = description
    else:
        grading = grading_from_certificate(certificate)
        description_html = (
            build_description_html(grading) if certificate is not None else NO_SPEC_SHEET_HTML
        )

    price = _number(raw.get("price")) or 0.0
    availability = _text(diamond.get("availability"))

    return CanonicalListing(
        id=listing_id,
        title=build_title(grading, listing_id),
        price=max(price, 0.0),
        currency=currency or settings.currency,
        grading=grading,
        image_url=resolve_media_url(diamond.get("image")),
        video_url=resolve_media_url(diamond.get("video")),
        availability=(availability or "").upper() == "AVAILABLE",
        provenance="provider",
        supplier_stock_id=_text(diamond.get("supplierStockId")),
        description_html=description_html,
    )


def map_items(
    items: Iterable[Any],
    *,
    offset: int,
    limit: int,
    total: int,
    degraded_field: str | None = None,
    default_type: DiamondType | None = None,
) -> ListingPage:
    listings = []
    dropped = 0
    for item in items:
        listing = map_item(item, default_type=default_type)
        if listing is None:
            dropped += 1
            continue
        listings.append(listing)

    if dropped:
        log.info("inventory_items_mapped", mapped=len(listings), dropped=dropped)
    return ListingPage(
        listings=listings,
        window=PaginationWindow(offset=offset, limit=limit, total=total),
        degraded_field=degraded_field,
    )


# === Catalog records ===


def map_catalog_product(
    product: CatalogProduct,
    *,
    default_type: DiamondType | None = None,
) -> CanonicalListing:
    """Enrich an externally sourced record from its title and description.

    The heuristic extractor runs first; the descriptor parser then fills
    color, clarity and cut where the heuristic found nothing, conformed to
    the controlled vocabularies.
    """
    grading = extract_attributes(
        product.title, product.description_html, default_type=default_type
    )
    descriptor = parse_descriptor(clean_text(None, product.description_html))
    fills = {
        "color": grading.color or conform(descriptor.color, COLOR_GRADES),
        "clarity": grading.clarity or conform(descriptor.clarity, CLARITY_GRADES),
        "cut": grading.cut or normalize_cut(descriptor.cut),
    }
    grading = grading.model_copy(update=fills)

    return CanonicalListing(
        id=product.id,
        title=product.title.strip() or build_title(grading, product.id),
        price=product.price,
        currency=product.currency or settings.currency,
        grading=grading,
        image_url=product.image_url,
        availability=product.available,
        provenance="catalog",
        description_html=product.description_html or None,
    )


# === Placeholder set ===

PLACEHOLDER_ITEMS: tuple[dict[str, Any], ...] = (
    {
        "id": "mock-1",
        "price": 8500,
        "diamond": {
            "id": "mock-1",
            "image": "https://via.placeholder.com/800x800?text=Diamond+1.5ct",
            "video": None,
            "availability": "AVAILABLE",
            "supplierStockId": "MOCK-001",
            "certificate": {
                "shape": "ROUND",
                "carats": 1.5,
                "color": "D",
                "clarity": "VS1",
                "cut": "EX",
                "lab": "GIA",
                "certNumber": "2141234567",
                "polish": "EX",
                "symmetry": "EX",
            },
        },
    },
    {
        "id": "mock-2",
        "price": 15000,
        "diamond": {
            "id": "mock-2",
            "image": "https://via.placeholder.com/800x800?text=Diamond+2.0ct",
            "video": None,
            "availability": "AVAILABLE",
            "supplierStockId": "MOCK-002",
            "certificate": {
                "shape": "PRINCESS",
                "carats": 2.0,
                "color": "E",
                "clarity": "VVS2",
                "cut": "VG",
                "lab": "GIA",
                "certNumber": "5171234568",
                "polish": "VG",
                "symmetry": "VG",
            },
        },
    },
)


def placeholder_page(limit: int, reason: str) -> ListingPage:
    """The fixed fallback set, shown when the provider cannot be reached."""
    page = map_items(PLACEHOLDER_ITEMS, offset=0, limit=limit, total=len(PLACEHOLDER_ITEMS))
    return page.model_copy(update={"placeholder": True, "error": reason})
