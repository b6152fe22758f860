"""Filter state → provider query, with one degrade-and-retry step.

The provider rejects some filter clauses intermittently (certificate number
lookups, lab filters). When a call fails and its diagnostic names one of
those clauses, the clause is dropped and the query reissued once. Which
clause may be dropped, and which diagnostic token points at it, is the
explicit FRAGILE_TOKENS table, checked in order.
"""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, NoReturn

import structlog

from storefront.inventory.errors import (
    InventoryError,
    MalformedResponse,
    ProviderCallFailed,
    ProviderTransportError,
    QueryRejected,
    QueryRejectedAfterRetry,
)
from storefront.inventory.facets import FacetFilterState, ListingRequest, format_number
from storefront.inventory.provider import InventoryProvider
from storefront.inventory.vocabulary import DEFAULT_SORT, PRICE_CEILING, SORT_ORDERS

log = structlog.get_logger("inventory.query")


class FragileField(str, Enum):
    CERTIFICATE_NUMBER = "certificate_number"
    CERTIFICATION_LAB = "certification_lab"


# Priority order: the first token found whose clause is present gets dropped.
FRAGILE_TOKENS: tuple[tuple[FragileField, str], ...] = (
    (FragileField.CERTIFICATE_NUMBER, "certificate_numbers"),
    (FragileField.CERTIFICATION_LAB, "lab"),
)

_FRAGILE_PATTERNS = {
    fragile: re.compile(rf"\b{re.escape(token)}\b") for fragile, token in FRAGILE_TOKENS
}

# Selection shared by the listing and by-id queries.
ITEM_SELECTION = """
id
diamond {
  id
  video
  image
  availability
  supplierStockId
  brown
  green
  milky
  eyeClean
  mine_of_origin
  certificate {
    id
    lab
    shape
    certNumber
    cut
    carats
    clarity
    polish
    symmetry
    color
    width
    length
    depth
    girdle
    floInt
    floCol
    depthPercentage
    table
  }
}
price
discount
""".strip()


def _indent(text: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(pad + line for line in text.splitlines())


DIAMOND_BY_ID_QUERY = (
    "query GetDiamondById($diamond_id: ID!) {\n"
    "  get_diamond_by_id(diamond_id: $diamond_id) {\n"
    f"{_indent(ITEM_SELECTION, 4)}\n"
    "  }\n"
    "}"
)


# === Clauses ===


@dataclass(frozen=True)
class Clause:
    """One filter in the provider's query object: ``<field>: <literal>``."""

    facet: str
    field: str
    literal: str

    def render(self) -> str:
        return f"{self.field}: {self.literal}"


_ENUM_RE = re.compile(r"^[A-Z_][A-Z0-9_]*$")


def _enum_values(values: Iterable[str]) -> list[str]:
    # Unquoted GraphQL enum literals; anything not identifier-shaped is skipped.
    cleaned = {"_".join(v.split()).upper() for v in values}
    return sorted(v for v in cleaned if _ENUM_RE.match(v))


def _enum_list(values: Iterable[str]) -> str | None:
    members = _enum_values(values)
    return f"[{', '.join(members)}]" if members else None


def _string_list(values: Iterable[str], *, upper: bool = False) -> str | None:
    cleaned = {" ".join(v.split()) for v in values}
    if upper:
        cleaned = {v.upper() for v in cleaned}
    members = sorted(v for v in cleaned if v)
    return f"[{', '.join(json.dumps(v) for v in members)}]" if members else None


def _span(lo: float, hi: float) -> str:
    return f"{{ from: {format_number(lo)}, to: {format_number(hi)} }}"


_PRICE_BUCKET_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:-\s*(\d+(?:\.\d+)?)|\+)\s*$")


def parse_price_bucket(bucket: str) -> tuple[float, float] | None:
    """``"500-1000"`` → (500, 1000); ``"5000+"`` → (5000, PRICE_CEILING)."""
    match = _PRICE_BUCKET_RE.match(bucket)
    if match is None:
        return None
    lo = float(match.group(1))
    hi = float(match.group(2)) if match.group(2) is not None else PRICE_CEILING
    return (lo, hi) if lo <= hi else (hi, lo)


def price_span(buckets: Iterable[str]) -> tuple[float, float] | None:
    spans = [span for span in map(parse_price_bucket, buckets) if span is not None]
    if not spans:
        return None
    return min(lo for lo, _ in spans), max(hi for _, hi in spans)


# (state attr, provider field) for range facets after the fixed leading block
_RANGE_FIELDS: tuple[tuple[str, str], ...] = (
    ("table", "table"),
    ("depth", "depth_percentage"),
    ("ratio", "ratio"),
    ("length", "length"),
    ("width", "width"),
    ("height", "depth"),
    ("crown_angle", "crown_angle"),
    ("pavilion_angle", "pavilion_angle"),
)

_ENUM_SET_FIELDS: tuple[tuple[str, str], ...] = (
    ("lab_grown_type", "labgrown_type"),
    ("polish", "polish"),
    ("symmetry", "symmetry"),
    ("fluorescence", "fluorescence"),
    ("girdle_thickness", "girdle"),
)

BASELINE_CLAUSES: tuple[Clause, ...] = (
    Clause("baseline", "has_image", "true"),
    Clause("baseline", "has_v360", "true"),
)


def compile_clauses(state: FacetFilterState) -> tuple[Clause, ...]:
    """One clause per active facet in a fixed order, then the baselines."""
    clauses: list[Clause] = []

    def add(facet: str, field: str, literal: str | None) -> None:
        if literal is not None:
            clauses.append(Clause(facet, field, literal))

    add("shape", "shapes", _string_list(state.shape, upper=True))
    carat = state.active_range("carat")
    if carat is not None:
        add("carat", "carats", f"[{_span(*carat)}]")
    add("color", "color", _enum_list(state.color))
    add("clarity", "clarity", _enum_list(state.clarity))
    add("cut", "cut", _enum_list(state.cut))
    add(FragileField.CERTIFICATION_LAB.value, "lab", _string_list(state.certification))
    if state.certificate_number:
        add(
            FragileField.CERTIFICATE_NUMBER.value,
            "certificate_numbers",
            f"[{json.dumps(state.certificate_number)}]",
        )
    price = price_span(state.price_range)
    if price is not None:
        add("price_range", "price_range", _span(*price))

    for attr, field in _ENUM_SET_FIELDS:
        add(attr, field, _enum_list(getattr(state, attr)))
    for attr, field in _RANGE_FIELDS:
        bounds = state.active_range(attr)
        if bounds is not None:
            add(attr, field, _span(*bounds))

    clauses.extend(BASELINE_CLAUSES)
    return tuple(clauses)


@dataclass(frozen=True)
class CompiledQuery:
    """Clauses plus ordering and window. A value: rendering is deterministic."""

    clauses: tuple[Clause, ...]
    sort: str = DEFAULT_SORT
    offset: int = 0
    limit: int = 20

    def has(self, facet: str) -> bool:
        return any(clause.facet == facet for clause in self.clauses)

    def without(self, facet: str) -> CompiledQuery:
        return dataclasses.replace(
            self, clauses=tuple(c for c in self.clauses if c.facet != facet)
        )

    def render(self) -> str:
        order_type, direction = SORT_ORDERS.get(self.sort, SORT_ORDERS[DEFAULT_SORT])
        filters = ",\n".join(f"      {clause.render()}" for clause in self.clauses)
        return (
            "query {\n"
            "  diamonds_by_query(\n"
            "    query: {\n"
            f"{filters}\n"
            "    },\n"
            f"    offset: {self.offset},\n"
            f"    limit: {self.limit},\n"
            f"    order: {{ type: {order_type}, direction: {direction} }}\n"
            "  ) {\n"
            "    items {\n"
            f"{_indent(ITEM_SELECTION, 6)}\n"
            "    }\n"
            "    total_count\n"
            "  }\n"
            "}"
        )


def degradable_field(diagnostic: str, query: CompiledQuery) -> FragileField | None:
    """The first fragile clause present in ``query`` whose token the diagnostic names."""
    for fragile, _token in FRAGILE_TOKENS:
        if query.has(fragile.value) and _FRAGILE_PATTERNS[fragile].search(diagnostic):
            return fragile
    return None


@dataclass(frozen=True)
class ProviderResult:
    items: list[Any]
    total_count: int
    query: CompiledQuery
    dropped_field: FragileField | None = None


def _listing_block(data: dict[str, Any]) -> tuple[list[Any], int]:
    block = data.get("diamonds_by_query")
    if not isinstance(block, dict):
        raise MalformedResponse("Provider response has no diamonds_by_query object")
    items = block.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise MalformedResponse("diamonds_by_query.items is not a list")
    try:
        total = int(block.get("total_count") or 0)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse("diamonds_by_query.total_count is not a number") from exc
    return items, max(total, 0)


def _raise_rejected(failure: ProviderCallFailed) -> NoReturn:
    # Transport failures keep their own (retryable) type.
    if isinstance(failure, ProviderTransportError):
        raise failure
    raise QueryRejected(failure) from failure


# === Compiler ===


class QueryCompiler:
    """Compiles listing requests and runs them against one provider."""

    def __init__(self, provider: InventoryProvider) -> None:
        self.provider = provider

    def compile(self, state: FacetFilterState) -> tuple[Clause, ...]:
        return compile_clauses(state)

    def build(self, request: ListingRequest) -> CompiledQuery:
        return CompiledQuery(
            clauses=self.compile(request.state),
            sort=request.sort,
            offset=request.offset,
            limit=request.limit,
        )

    async def execute(self, query: CompiledQuery) -> ProviderResult:
        """Authenticate, issue, and on a fragile-clause rejection retry once."""
        token = await self.provider.authenticate()

        try:
            data = await self.provider.execute(query.render(), token)
        except ProviderCallFailed as exc:
            failure = exc
        else:
            items, total = _listing_block(data)
            return ProviderResult(items, total, query)

        fragile = degradable_field(failure.diagnostic, query)
        if fragile is None:
            log.warning(
                "inventory_query_rejected",
                channel=failure.channel,
                status=failure.status_code,
                diagnostic=failure.diagnostic,
            )
            _raise_rejected(failure)

        degraded = query.without(fragile.value)
        log.warning(
            "inventory_query_degraded",
            dropped=fragile.value,
            channel=failure.channel,
            status=failure.status_code,
            diagnostic=failure.diagnostic,
        )
        try:
            data = await self.provider.execute(degraded.render(), token)
            items, total = _listing_block(data)
        except InventoryError as exc:
            error = QueryRejectedAfterRetry(fragile, failure, exc)
            log.error(
                "inventory_query_retry_failed",
                dropped=fragile.value,
                original_diagnostic=error.original_diagnostic,
                retry_diagnostic=error.retry_diagnostic,
            )
            raise error from exc

        return ProviderResult(items, total, degraded, dropped_field=fragile)

    async def fetch_by_id(self, diamond_id: str) -> dict[str, Any] | None:
        """One raw provider item, or None when the provider has no such diamond.

        Accepts the bare id or the ``DIAMOND/<id>`` form used in storefront links.
        """
        provider_id = diamond_id.strip().removeprefix("DIAMOND/")
        token = await self.provider.authenticate()
        try:
            data = await self.provider.execute(
                DIAMOND_BY_ID_QUERY, token, variables={"diamond_id": provider_id}
            )
        except ProviderCallFailed as exc:
            log.warning(
                "inventory_lookup_rejected",
                diamond_id=provider_id,
                channel=exc.channel,
                diagnostic=exc.diagnostic,
            )
            _raise_rejected(exc)

        item = data.get("get_diamond_by_id")
        if item is None:
            return None
        if not isinstance(item, dict):
            raise MalformedResponse("get_diamond_by_id is not an object")
        return item
