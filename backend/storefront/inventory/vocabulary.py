"""Controlled vocabularies and per-facet tables for diamond inventory.

Everything here is built once at import and never mutated: tuples, frozen
dataclasses and read-only mappings shared by the codec, the query compiler,
the mapper and both attribute extractors.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

DiamondType = Literal["Natural", "Lab-Grown"]

# Canonical shape names, upper-case, as the provider spells them.
SHAPES: tuple[str, ...] = (
    "ROUND",
    "PRINCESS",
    "CUSHION",
    "CUSHION MODIFIED",
    "CUSHION BRILLIANT",
    "OVAL",
    "PEAR",
    "EMERALD",
    "SQUARE EMERALD",
    "MARQUISE",
    "ASSCHER",
    "RADIANT",
    "SQUARE RADIANT",
    "LONG RADIANT",
    "HEART",
    "BAGUETTE",
    "TAPERED BAGUETTE",
    "TRILLIANT",
    "TRILLION",
    "TRIANGLE",
    "SQUARE",
    "RECTANGLE",
    "OLD EUROPEAN",
    "OLD MINER",
    "EUROPEAN CUT",
    "ROSE CUT",
    "BRIOLETTE",
    "KITE",
    "SHIELD",
    "HALF MOON",
    "TRAPEZOID",
    "BULLET",
    "LOZENGE",
    "CADILLAC",
    "EPAULETTE",
    "FRENCH",
    "STAR",
    "FLANDERS",
    "CRISS CUT",
    "HEXAGONAL",
    "PENTAGONAL",
    "HEPTAGONAL",
    "OCTAGONAL",
    "NONAGONAL",
    "CALF",
)

# Colorless-to-near-colorless letters the storefront grades and extracts.
COLOR_GRADES: tuple[str, ...] = tuple("DEFGHIJ")

CLARITY_GRADES: tuple[str, ...] = (
    "FL",
    "IF",
    "VVS1",
    "VVS2",
    "VS1",
    "VS2",
    "SI1",
    "SI2",
    "I1",
    "I2",
    "I3",
)

CUT_CODES: tuple[str, ...] = ("EX", "VG", "G", "F", "P")

# Cut grade spellings → canonical code. Keys are upper-case, single-spaced.
CUT_SYNONYMS: MappingProxyType[str, str] = MappingProxyType(
    {
        "EXCELLENT": "EX",
        "VERY GOOD": "VG",
        "GOOD": "G",
        "FAIR": "F",
        "POOR": "P",
        "IDEAL": "EX",
        **{code: code for code in CUT_CODES},
    }
)

CERTIFICATION_LABS: tuple[str, ...] = ("GIA", "IGI", "GCAL")

LAB_GROWN_TYPES: tuple[str, ...] = ("HPHT", "CVD", "IIA")

# sort key → (provider order type, direction)
SORT_ORDERS: MappingProxyType[str, tuple[str, str]] = MappingProxyType(
    {
        "price-asc": ("price", "ASC"),
        "price-desc": ("price", "DESC"),
        "carat-asc": ("size", "ASC"),
        "carat-desc": ("size", "DESC"),
    }
)
DEFAULT_SORT = "price-asc"

PRICE_CEILING = 100000.0


@dataclass(frozen=True)
class SetFacet:
    """A multi-valued facet: state attribute and its repeated parameter key."""

    attr: str
    key: str


@dataclass(frozen=True)
class RangeFacet:
    """A numeric range facet with its clamp domain and default bounds."""

    attr: str
    min_key: str
    max_key: str
    domain: tuple[float, float]
    default: tuple[float, float]

    def clamp(self, value: float) -> float:
        lo, hi = self.domain
        return min(max(value, lo), hi)


SET_FACETS: MappingProxyType[str, SetFacet] = MappingProxyType(
    {
        f.attr: f
        for f in (
            SetFacet("shape", "shape"),
            SetFacet("certification", "certification"),
            SetFacet("lab_grown_type", "labGrownType"),
            SetFacet("color", "color"),
            SetFacet("clarity", "clarity"),
            SetFacet("cut", "cut"),
            SetFacet("price_range", "priceRange"),
            SetFacet("fluorescence", "fluorescence"),
            SetFacet("polish", "polish"),
            SetFacet("symmetry", "symmetry"),
            SetFacet("girdle_thickness", "girdleThickness"),
        )
    }
)

RANGE_FACETS: MappingProxyType[str, RangeFacet] = MappingProxyType(
    {
        f.attr: f
        for f in (
            RangeFacet("carat", "minCarat", "maxCarat", (0.0, 10.0), (0.0, 10.0)),
            RangeFacet("table", "minTable", "maxTable", (0.0, 100.0), (0.0, 100.0)),
            RangeFacet("depth", "minDepth", "maxDepth", (0.0, 100.0), (0.0, 100.0)),
            RangeFacet("ratio", "minRatio", "maxRatio", (0.0, 5.0), (0.0, 5.0)),
            RangeFacet("length", "minLength", "maxLength", (0.0, 30.0), (0.0, 30.0)),
            RangeFacet("width", "minWidth", "maxWidth", (0.0, 30.0), (0.0, 30.0)),
            RangeFacet("height", "minHeight", "maxHeight", (0.0, 30.0), (0.0, 30.0)),
            RangeFacet(
                "crown_angle", "minCrownAngle", "maxCrownAngle", (0.0, 90.0), (0.0, 90.0)
            ),
            RangeFacet(
                "pavilion_angle",
                "minPavilionAngle",
                "maxPavilionAngle",
                (0.0, 90.0),
                (0.0, 90.0),
            ),
        )
    }
)

CERTIFICATE_NUMBER_KEY = "certificateNumber"

# Flat parameter order shared with the presentation layer. Each entry is a
# set facet attr, a range facet attr (both bounds) or the certificate key.
PARAMETER_ORDER: tuple[str, ...] = (
    "shape",
    "certification",
    "lab_grown_type",
    CERTIFICATE_NUMBER_KEY,
    "color",
    "clarity",
    "cut",
    "price_range",
    "carat",
    "fluorescence",
    "table",
    "depth",
    "polish",
    "symmetry",
    "ratio",
    "length",
    "width",
    "height",
    "crown_angle",
    "pavilion_angle",
    "girdle_thickness",
)


# "VeryGood" and "Very  Good" both reach "VERYGOOD"
_CUT_SYNONYMS_COMPACT = {key.replace(" ", ""): code for key, code in CUT_SYNONYMS.items()}


def normalize_cut(value: str | None) -> str | None:
    """Map a cut grade spelling to its code; unknown spellings give None."""
    if not value:
        return None
    return _CUT_SYNONYMS_COMPACT.get("".join(value.split()).upper())


def conform(value: str | None, vocabulary: tuple[str, ...]) -> str | None:
    """Upper-case ``value`` if it belongs to ``vocabulary``, else None."""
    if not value:
        return None
    candidate = " ".join(value.split()).upper()
    return candidate if candidate in vocabulary else None
