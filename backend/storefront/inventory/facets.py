"""Facet filter state and its flat key/value parameter codec.

encode() suppresses defaults: empty sets and range bounds that sit on the
facet's default produce no pairs, so a fresh state encodes to [].
decode() is forward-compatible: unknown keys and unparseable numbers are
skipped and the affected bound keeps its default.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from storefront.config import settings
from storefront.inventory.vocabulary import (
    CERTIFICATE_NUMBER_KEY,
    DEFAULT_SORT,
    PARAMETER_ORDER,
    RANGE_FACETS,
    SET_FACETS,
    SORT_ORDERS,
)
from storefront.models.contracts import decode_cursor

log = structlog.get_logger("inventory.facets")

Range = tuple[float, float]


def _range_default(attr: str) -> Range:
    return field(default=RANGE_FACETS[attr].default)


@dataclass(frozen=True)
class FacetFilterState:
    """One immutable filter: value sets, clamped ranges, certificate number.

    Construction normalizes: set members are stripped and blanks dropped,
    each range is clamped into its facet domain and reordered so min <= max,
    and a blank certificate number becomes None.
    """

    shape: frozenset[str] = frozenset()
    color: frozenset[str] = frozenset()
    clarity: frozenset[str] = frozenset()
    cut: frozenset[str] = frozenset()
    certification: frozenset[str] = frozenset()
    lab_grown_type: frozenset[str] = frozenset()
    polish: frozenset[str] = frozenset()
    symmetry: frozenset[str] = frozenset()
    fluorescence: frozenset[str] = frozenset()
    girdle_thickness: frozenset[str] = frozenset()
    price_range: frozenset[str] = frozenset()

    carat: Range = _range_default("carat")
    table: Range = _range_default("table")
    depth: Range = _range_default("depth")
    ratio: Range = _range_default("ratio")
    length: Range = _range_default("length")
    width: Range = _range_default("width")
    height: Range = _range_default("height")
    crown_angle: Range = _range_default("crown_angle")
    pavilion_angle: Range = _range_default("pavilion_angle")

    certificate_number: str | None = None

    def __post_init__(self) -> None:
        for attr in SET_FACETS:
            members = frozenset(
                v.strip() for v in getattr(self, attr) if isinstance(v, str) and v.strip()
            )
            object.__setattr__(self, attr, members)

        for attr, facet in RANGE_FACETS.items():
            lo, hi = (facet.clamp(float(v)) for v in getattr(self, attr))
            if lo > hi:
                lo, hi = hi, lo
            object.__setattr__(self, attr, (lo, hi))

        cert = (self.certificate_number or "").strip()
        object.__setattr__(self, "certificate_number", cert or None)

    def active_range(self, attr: str) -> Range | None:
        """The range for ``attr`` unless it equals the facet default."""
        value: Range = getattr(self, attr)
        return None if value == RANGE_FACETS[attr].default else value


def format_number(value: float) -> str:
    """Shortest exact text for a bound: ``10`` rather than ``10.0``."""
    number = float(value)
    return str(int(number)) if number.is_integer() else repr(number)


def _parse_number(raw: str) -> float | None:
    try:
        number = float(raw)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def encode(state: FacetFilterState) -> list[tuple[str, str]]:
    """Flatten a state into ordered (key, value) pairs, omitting defaults."""
    pairs: list[tuple[str, str]] = []
    for name in PARAMETER_ORDER:
        if name == CERTIFICATE_NUMBER_KEY:
            if state.certificate_number:
                pairs.append((CERTIFICATE_NUMBER_KEY, state.certificate_number))
        elif name in SET_FACETS:
            key = SET_FACETS[name].key
            pairs.extend((key, member) for member in sorted(getattr(state, name)))
        else:
            facet = RANGE_FACETS[name]
            lo, hi = getattr(state, name)
            if lo != facet.default[0]:
                pairs.append((facet.min_key, format_number(lo)))
            if hi != facet.default[1]:
                pairs.append((facet.max_key, format_number(hi)))
    return pairs


_SET_ATTR_BY_KEY = {facet.key: attr for attr, facet in SET_FACETS.items()}
_BOUND_BY_KEY: dict[str, tuple[str, int]] = {
    **{facet.min_key: (attr, 0) for attr, facet in RANGE_FACETS.items()},
    **{facet.max_key: (attr, 1) for attr, facet in RANGE_FACETS.items()},
}


def decode(pairs: Iterable[tuple[str, str]]) -> FacetFilterState:
    """Build a state from (key, value) pairs; unknown keys are ignored."""
    sets: dict[str, set[str]] = {attr: set() for attr in SET_FACETS}
    bounds: dict[str, list[float]] = {
        attr: list(facet.default) for attr, facet in RANGE_FACETS.items()
    }
    certificate_number: str | None = None

    for key, raw in pairs:
        value = (raw or "").strip()
        if not value:
            continue
        if key in _SET_ATTR_BY_KEY:
            sets[_SET_ATTR_BY_KEY[key]].add(value)
        elif key in _BOUND_BY_KEY:
            attr, index = _BOUND_BY_KEY[key]
            number = _parse_number(value)
            if number is None:
                log.debug("facet_bound_unparseable", key=key, value=value[:40])
                continue
            bounds[attr][index] = number
        elif key == CERTIFICATE_NUMBER_KEY:
            certificate_number = value

    return FacetFilterState(
        **{attr: frozenset(members) for attr, members in sets.items()},
        **{attr: (lo, hi) for attr, (lo, hi) in bounds.items()},
        certificate_number=certificate_number,
    )


# === Listing request (state + sort + window) ===


@dataclass(frozen=True)
class ListingRequest:
    state: FacetFilterState
    sort: str = DEFAULT_SORT
    offset: int = 0
    limit: int = 20


def _parse_int(raw: str | None) -> int | None:
    try:
        return int((raw or "").strip())
    except ValueError:
        return None


def decode_request(
    pairs: Iterable[tuple[str, str]],
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> ListingRequest:
    """Decode facets plus offset, limit, sort and an optional opaque cursor."""
    items = list(pairs)
    scalars = {key: value for key, value in reversed(items)}  # first occurrence wins

    default_limit = default_limit or settings.default_page_size
    max_limit = max_limit or settings.max_page_size

    offset = max(0, _parse_int(scalars.get("offset")) or 0)
    cursor_offset = decode_cursor(scalars.get("cursor"))
    if cursor_offset is not None:
        offset = cursor_offset

    limit = _parse_int(scalars.get("limit")) or default_limit
    limit = min(max(limit, 1), max_limit)

    sort = (scalars.get("sort") or "").strip()
    if sort not in SORT_ORDERS:
        sort = DEFAULT_SORT

    return ListingRequest(state=decode(items), sort=sort, offset=offset, limit=limit)
