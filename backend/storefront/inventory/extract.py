"""Grading attribute extraction from supplier text.

Two strategies over text that never went through the provider's structured
certificate:

1. extract_attributes(): heuristic matching over a title plus a
   markup-bearing description. Each attribute is an ordered tuple of Rules;
   the first rule (lowest tier) that matches wins and later tiers are not
   consulted.
2. parse_descriptor(): "Label: value" strings with a fixed label set. Values
   stop at the next known label, so label order does not matter.

Neither function raises on None or empty input. The heuristic extractor only
emits values from the controlled vocabularies; anything else is None.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from storefront.config import settings
from storefront.inventory.vocabulary import (
    CERTIFICATION_LABS,
    CLARITY_GRADES,
    COLOR_GRADES,
    SHAPES,
    DiamondType,
    normalize_cut,
)
from storefront.models.contracts import GradingAttributes

log = structlog.get_logger("inventory.extract")

_I = re.IGNORECASE


# === Rule machinery ===


@dataclass(frozen=True)
class Matched:
    value: str
    tier: int


@dataclass(frozen=True)
class Unmatched:
    pass


UNMATCHED = Unmatched()

RuleResult = Matched | Unmatched


def _collapse_upper(value: str) -> str | None:
    return " ".join(value.split()).upper() or None


def _strip(value: str) -> str | None:
    return value.strip() or None


def _lab_grown_type(value: str) -> str | None:
    upper = "".join(value.split()).upper()
    if "IIA" in upper:
        return "IIA"
    return upper or None


@dataclass(frozen=True)
class Rule:
    """One pattern at one precedence tier; group 1 carries the value."""

    pattern: re.Pattern[str]
    tier: int
    normalize: Callable[[str], str | None] = _collapse_upper

    def apply(self, text: str) -> RuleResult:
        match = self.pattern.search(text)
        if match is None:
            return UNMATCHED
        value = self.normalize(match.group(1))
        return Matched(value, self.tier) if value else UNMATCHED


def first_match(rules: Sequence[Rule], text: str) -> RuleResult:
    """Evaluate rules in order and return the first hit."""
    for rule in rules:
        result = rule.apply(text)
        if isinstance(result, Matched):
            return result
    return UNMATCHED


def _alternation(names: Sequence[str]) -> str:
    """Regex alternation, longest first, with flexible inner whitespace."""
    ordered = sorted(names, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(part) for part in name.split()) for name in ordered)


_SHAPE_ALT = _alternation(SHAPES)
_COLOR_CLASS = f"[{COLOR_GRADES[0]}-{COLOR_GRADES[-1]}]"

COLOR_RULES: tuple[Rule, ...] = (
    Rule(re.compile(rf"\bColou?r\b[:\s]*({_COLOR_CLASS})\b", _I), 1),
)

CLARITY_RULES: tuple[Rule, ...] = (
    Rule(re.compile(rf"\bClarity\b[:\s]*({'|'.join(CLARITY_GRADES)})\b", _I), 1),
)

CUT_RULES: tuple[Rule, ...] = (
    Rule(
        re.compile(
            r"\bCut\b[:\s]*(Excellent|Very\s*Good|Good|Fair|Poor|Ideal|EX|VG|G|F|P)\b", _I
        ),
        1,
        normalize_cut,
    ),
)

CARAT_RULES: tuple[Rule, ...] = (
    Rule(
        re.compile(r"\b(?<![\d.,])(\d+(?:\.\d+)?)\s*(?:cts?|carats?|karats?)\b", _I),
        1,
        _strip,
    ),
    Rule(re.compile(r"\bCarats?\b[:\s]*(\d+(?:\.\d+)?)", _I), 2, _strip),
)

SHAPE_RULES: tuple[Rule, ...] = (
    Rule(re.compile(rf"\bShape\b[:\s]*({_SHAPE_ALT})\b", _I), 1),
    Rule(re.compile(rf"\b({_SHAPE_ALT})\s*(?:Cut|Shape|Diamond)\b", _I), 2),
    Rule(re.compile(rf"\b({_SHAPE_ALT})\b", _I), 3),
)

CERTIFICATION_RULES: tuple[Rule, ...] = (
    Rule(
        re.compile(
            rf"\b({'|'.join(CERTIFICATION_LABS)})\b(?:\s*(?:Certified|Certificate|Report))?", _I
        ),
        1,
    ),
)

LAB_GROWN_TYPE_RULES: tuple[Rule, ...] = (
    Rule(re.compile(r"\b(HPHT|CVD|Type\s*IIa|IIa)\b", _I), 1, _lab_grown_type),
)

_LAB_GROWN_RE = re.compile(r"\b(?:lab|lab-grown|lab grown)\b", _I)


# === Heuristic free-text extraction ===

_TAG_RE = re.compile(r"<[^>]*>")
_WS_ENTITY_RE = re.compile(r"&(?:nbsp|ensp|emsp|thinsp|#160);", _I)
_WS_RE = re.compile(r"\s+")


def clean_text(title: str | None, description: str | None) -> str:
    """Description first, then title; markup and entity whitespace removed."""
    combined = f"{description or ''} {title or ''}"
    text = _TAG_RE.sub(" ", combined)
    text = _WS_ENTITY_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def _value(result: RuleResult) -> str | None:
    return result.value if isinstance(result, Matched) else None


def detect_diamond_type(text: str, default_type: DiamondType | None = None) -> DiamondType:
    """Lab-Grown on any whole-word lab keyword, otherwise the configured default.

    A lab-grown stone whose text never says "lab" is reported with the
    default, so callers that know better should pass ``default_type``.
    """
    if _LAB_GROWN_RE.search(text):
        return "Lab-Grown"
    return default_type or settings.default_diamond_type


def extract_attributes(
    title: str | None,
    description: str | None,
    *,
    default_type: DiamondType | None = None,
) -> GradingAttributes:
    """Pull grading attributes out of a title and an HTML description."""
    text = clean_text(title, description)
    if not text:
        return GradingAttributes()

    attributes = GradingAttributes(
        diamond_type=detect_diamond_type(text, default_type),
        color=_value(first_match(COLOR_RULES, text)),
        clarity=_value(first_match(CLARITY_RULES, text)),
        cut=_value(first_match(CUT_RULES, text)),
        carat=_value(first_match(CARAT_RULES, text)),
        shape=_value(first_match(SHAPE_RULES, text)),
        certification_lab=_value(first_match(CERTIFICATION_RULES, text)),
        lab_grown_type=_value(first_match(LAB_GROWN_TYPE_RULES, text)),
    )
    log.debug(
        "attributes_extracted",
        chars=len(text),
        fields=sorted(k for k, v in attributes.model_dump().items() if v is not None),
    )
    return attributes


# === Label-delimited descriptor extraction ===

DESCRIPTOR_LABELS: tuple[str, ...] = (
    "Color",
    "Colour",
    "Clarity",
    "Cut",
    "Shape",
    "Carats",
    "Polish",
    "Symmetry",
    "Fluorescence",
    "Measurements",
    "Table",
    "DepthPercentage",
    "Lab",
    "Intensity",
    "Overtone",
    "ColorShade",
    "Labgrowntype",
    "Fcolor",
    "Fovertone",
    "Fintensity",
    "FloInt",
    "Width",
    "Length",
    "DiamondType",
)

_NEXT_LABEL = "|".join(sorted(DESCRIPTOR_LABELS, key=len, reverse=True))


def _descriptor_pattern(label: str) -> re.Pattern[str]:
    return re.compile(
        rf"\b(?:{label})\s*:\s*(.*?)(?=\s*\b(?:{_NEXT_LABEL})\s*:|$)",
        re.IGNORECASE | re.DOTALL,
    )


_DESCRIPTOR_COLOR_RE = _descriptor_pattern("colour|color")
_DESCRIPTOR_CLARITY_RE = _descriptor_pattern("clarity")
_DESCRIPTOR_CUT_RE = _descriptor_pattern("cut")


@dataclass(frozen=True)
class DescriptorAttributes:
    """Raw values captured from a "Label: value" descriptor string."""

    color: str | None = None
    clarity: str | None = None
    cut: str | None = None


def _capture(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    if match is None:
        return None
    return match.group(1).strip() or None


def parse_descriptor(text: str | None) -> DescriptorAttributes:
    """Extract Color, Clarity and Cut from a label-delimited descriptor."""
    if not text:
        return DescriptorAttributes()

    cut = _capture(_DESCRIPTOR_CUT_RE, text)
    if cut is not None and cut.upper() == "N/A":
        cut = None

    return DescriptorAttributes(
        color=_capture(_DESCRIPTOR_COLOR_RE, text),
        clarity=_capture(_DESCRIPTOR_CLARITY_RE, text),
        cut=cut,
    )
