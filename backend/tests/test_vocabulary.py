"""Tests for the controlled vocabularies and facet tables."""

import pytest

from storefront.inventory.vocabulary import (
    CUT_SYNONYMS,
    PARAMETER_ORDER,
    RANGE_FACETS,
    SET_FACETS,
    SHAPES,
    SORT_ORDERS,
    conform,
    normalize_cut,
)


class TestVocabularies:
    def test_shapes_are_upper_case_and_unique(self):
        assert all(shape == shape.upper() for shape in SHAPES)
        assert len(set(SHAPES)) == len(SHAPES)

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            CUT_SYNONYMS["SUPERB"] = "EX"  # type: ignore[index]
        with pytest.raises(TypeError):
            SORT_ORDERS["newest"] = ("date", "DESC")  # type: ignore[index]

    def test_parameter_order_covers_every_facet(self):
        assert set(PARAMETER_ORDER) == set(SET_FACETS) | set(RANGE_FACETS) | {"certificateNumber"}

    def test_defaults_sit_inside_domains(self):
        for facet in RANGE_FACETS.values():
            lo, hi = facet.domain
            assert lo <= facet.default[0] <= facet.default[1] <= hi


class TestNormalizeCut:
    @pytest.mark.parametrize(
        ("raw", "code"),
        [
            ("excellent", "EX"),
            ("Very Good", "VG"),
            ("very  good", "VG"),
            ("Ideal", "EX"),
            ("p", "P"),
            ("Superb", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize(self, raw, code):
        assert normalize_cut(raw) == code


class TestConform:
    def test_member(self):
        assert conform(" vs1 ", ("VS1", "VS2")) == "VS1"

    def test_non_member(self):
        assert conform("Fancy Yellow", ("D", "E")) is None

    def test_empty(self):
        assert conform(None, ("D",)) is None
