"""Contract models shared by the inventory layer and the HTTP surface.

The presentation layer renders these shapes directly. Additive changes
(new optional fields) are safe; renames and removals are not.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from storefront.inventory.vocabulary import DiamondType

Provenance = Literal["provider", "catalog"]

# === Grading & listings ===


class GradingAttributes(BaseModel):
    """Gemological descriptors for one stone. Every field is optional."""

    model_config = ConfigDict(frozen=True)

    diamond_type: DiamondType | None = None
    color: str | None = None
    clarity: str | None = None
    cut: str | None = None
    carat: str | None = None  # decimal string, e.g. "1.20"
    shape: str | None = None
    certification_lab: str | None = None
    lab_grown_type: str | None = None

    # Passthrough fields, populated only from structured provider data
    certificate_number: str | None = None
    polish: str | None = None
    symmetry: str | None = None
    fluorescence: str | None = None
    girdle: str | None = None
    length_mm: float | None = None
    width_mm: float | None = None
    depth_mm: float | None = None
    depth_percentage: float | None = None
    table_percentage: float | None = None


class CanonicalListing(BaseModel):
    """Presentation-agnostic listing built once per raw record."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    price: float = Field(ge=0, default=0)
    currency: str = "USD"
    grading: GradingAttributes = GradingAttributes()
    image_url: str | None = None
    video_url: str | None = None
    availability: bool = False
    provenance: Provenance
    supplier_stock_id: str | None = None
    description_html: str | None = None


# === Pagination ===

_CURSOR_RE = re.compile(r"^offset=(\d+)$")


def encode_cursor(offset: int) -> str:
    return f"offset={offset}"


def decode_cursor(cursor: str | None) -> int | None:
    """Return the offset inside an ``offset=<n>`` cursor, or None."""
    if not cursor:
        return None
    match = _CURSOR_RE.match(cursor.strip())
    return int(match.group(1)) if match else None


class PaginationWindow(BaseModel):
    """Offset/limit/total triple with derived navigation flags.

    Cursors encode offsets only; they are not stable across filter changes.
    """

    offset: int = Field(ge=0)
    limit: int = Field(gt=0)
    total: int = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_next_page(self) -> bool:
        return self.offset + self.limit < self.total

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_previous_page(self) -> bool:
        return self.offset > 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def start_cursor(self) -> str | None:
        if not self.has_previous_page:
            return None
        return encode_cursor(max(0, self.offset - self.limit))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_cursor(self) -> str | None:
        if not self.has_next_page:
            return None
        return encode_cursor(self.offset + self.limit)


class ListingPage(BaseModel):
    listings: list[CanonicalListing] = []
    window: PaginationWindow
    degraded_field: str | None = None  # fragile clause dropped on retry
    placeholder: bool = False
    error: str | None = None


# === Catalog enrichment ===


class CatalogProduct(BaseModel):
    """Externally sourced catalog record whose grading lives in free text."""

    id: str = Field(min_length=1)
    title: str = ""
    description_html: str = ""
    price: float = Field(ge=0, default=0)
    currency: str | None = None
    image_url: str | None = None
    available: bool = True


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
