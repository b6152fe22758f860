"""Tests for mapping raw provider items and catalog records to listings."""

from unittest.mock import patch

import pytest

from storefront.config import settings
from storefront.inventory.mapper import (
    NO_SPEC_SHEET_HTML,
    PLACEHOLDER_ITEMS,
    build_description_html,
    build_title,
    grading_from_certificate,
    map_catalog_product,
    map_item,
    map_items,
    placeholder_page,
    resolve_media_url,
)
from storefront.models.contracts import CatalogProduct, GradingAttributes, PaginationWindow


def _item(**overrides):
    item = {
        "id": "d-1",
        "price": 4200,
        "diamond": {
            "id": "d-1",
            "image": "https://cdn.example.com/d-1.jpg",
            "video": "/v360/d-1",
            "availability": "AVAILABLE",
            "supplierStockId": "STK-9",
            "certificate": {
                "shape": "OVAL",
                "carats": 1.2,
                "color": "F",
                "clarity": "VS2",
                "cut": "EX",
                "lab": "IGI",
                "certNumber": "LG555",
                "polish": "EX",
                "symmetry": "VG",
                "floInt": "NONE",
                "length": 8.1,
                "width": "5.9",
                "depthPercentage": 61.5,
                "table": None,
            },
        },
    }
    item.update(overrides)
    return item


# === Pagination ===


class TestPaginationWindow:
    def test_middle_page(self):
        window = PaginationWindow(offset=20, limit=20, total=50)
        assert window.has_next_page is True
        assert window.has_previous_page is True
        assert window.start_cursor == "offset=0"
        assert window.end_cursor == "offset=40"

    def test_last_partial_page(self):
        window = PaginationWindow(offset=40, limit=20, total=50)
        assert window.has_next_page is False
        assert window.has_previous_page is True
        assert window.end_cursor is None

    def test_first_page(self):
        window = PaginationWindow(offset=0, limit=20, total=50)
        assert window.has_next_page is True
        assert window.has_previous_page is False
        assert window.start_cursor is None

    def test_page_ending_exactly_at_total(self):
        window = PaginationWindow(offset=30, limit=20, total=50)
        assert window.has_next_page is False
        assert window.has_previous_page is True
        assert window.start_cursor == "offset=10"

    def test_empty_result(self):
        window = PaginationWindow(offset=0, limit=20, total=0)
        assert not window.has_next_page
        assert not window.has_previous_page

    def test_cursors_serialize(self):
        dumped = PaginationWindow(offset=20, limit=20, total=50).model_dump()
        assert dumped["end_cursor"] == "offset=40"
        assert dumped["has_next_page"] is True


# === Field helpers ===


class TestResolveMediaUrl:
    def test_absolute_url_unchanged(self):
        assert resolve_media_url("https://cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"

    def test_relative_path_gets_origin(self):
        assert resolve_media_url("/img/a.jpg", "https://provider.test") == (
            "https://provider.test/img/a.jpg"
        )

    def test_bare_path_gets_separator(self):
        assert resolve_media_url("img/a.jpg", "https://provider.test/") == (
            "https://provider.test/img/a.jpg"
        )

    def test_protocol_relative(self):
        assert resolve_media_url("//cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"

    @pytest.mark.parametrize("raw", [None, "", "   ", 42.5])
    def test_missing(self, raw):
        assert resolve_media_url(raw) is None

    def test_default_origin_from_settings(self):
        with patch.object(settings, "provider_origin", "https://origin.test"):
            assert resolve_media_url("/x.png") == "https://origin.test/x.png"


class TestBuildTitle:
    def test_carat_and_shape(self):
        grading = GradingAttributes(carat="1.5", shape="ROUND")
        assert build_title(grading, "x") == "1.50ct ROUND Diamond"

    def test_shape_only(self):
        assert build_title(GradingAttributes(shape="PEAR"), "x") == "PEAR Diamond"

    def test_carat_only(self):
        assert build_title(GradingAttributes(carat="2"), "x") == "2.00ct Diamond"

    def test_unparseable_carat_is_absent(self):
        grading = GradingAttributes(carat="about one", shape="OVAL")
        assert build_title(grading, "x") == "OVAL Diamond"

    def test_nothing_known(self):
        assert build_title(GradingAttributes(), "abc") == "Diamond abc"


class TestDescriptionHtml:
    def test_polish_and_symmetry_only_when_present(self):
        html = build_description_html(GradingAttributes(shape="ROUND", carat="1.5"))
        assert "<strong>Carat:</strong> 1.50 ct<br/>" in html
        assert "<strong>Color:</strong> N/A<br/>" in html
        assert "Polish" not in html
        html = build_description_html(GradingAttributes(polish="EX"))
        assert "<strong>Polish:</strong> EX<br/>" in html

    def test_values_are_escaped(self):
        html = build_description_html(GradingAttributes(shape="<b>ROUND</b>"))
        assert "&lt;b&gt;ROUND&lt;/b&gt;" in html


# === Provider items ===


class TestMapItem:
    def test_full_item(self):
        listing = map_item(_item())
        assert listing.id == "d-1"
        assert listing.title == "1.20ct OVAL Diamond"
        assert listing.price == 4200
        assert listing.currency == settings.currency
        assert listing.availability is True
        assert listing.provenance == "provider"
        assert listing.supplier_stock_id == "STK-9"
        assert listing.image_url == "https://cdn.example.com/d-1.jpg"
        assert listing.video_url == f"{settings.provider_origin.rstrip('/')}/v360/d-1"
        grading = listing.grading
        assert (grading.color, grading.clarity, grading.cut) == ("F", "VS2", "EX")
        assert grading.carat == "1.2"
        assert grading.certification_lab == "IGI"
        assert grading.certificate_number == "LG555"
        assert grading.fluorescence == "NONE"
        assert grading.length_mm == 8.1
        assert grading.width_mm == 5.9
        assert grading.table_percentage is None
        assert "<strong>Certificate Number:</strong> LG555" in listing.description_html

    def test_missing_id_is_dropped(self):
        assert map_item({"price": 10, "diamond": {}}) is None
        assert map_item({"id": "", "diamond": {}}) is None
        assert map_item("not a dict") is None

    def test_missing_certificate_gives_null_grading(self):
        listing = map_item({"id": "d-2", "diamond": {"certificate": None}})
        assert listing.grading == GradingAttributes()
        assert listing.title == "Diamond d-2"
        assert listing.description_html == NO_SPEC_SHEET_HTML

    def test_missing_diamond_object(self):
        listing = map_item({"id": "d-3", "diamond": None, "price": None})
        assert listing.price == 0
        assert listing.availability is False
        assert listing.image_url is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("available", True), ("AVAILABLE", True), ("On Hold", False), (None, False)],
    )
    def test_availability(self, raw, expected):
        diamond = {"availability": raw, "certificate": None}
        assert map_item({"id": "d", "diamond": diamond}).availability is expected

    def test_description_without_certificate_uses_extractor(self):
        item = {
            "id": "d-4",
            "description": "<p>Lab Grown Cushion Diamond, 2.01 ct, Color: G, Clarity: VS1, CVD</p>",
            "diamond": {},
        }
        listing = map_item(item)
        assert listing.grading.shape == "CUSHION"
        assert listing.grading.carat == "2.01"
        assert listing.grading.color == "G"
        assert listing.grading.diamond_type == "Lab-Grown"
        assert listing.grading.lab_grown_type == "CVD"
        assert listing.title == "2.01ct CUSHION Diamond"

    def test_negative_price_is_floored(self):
        assert map_item(_item(price=-5)).price == 0

    def test_structured_values_are_copied_verbatim(self):
        item = _item()
        item["diamond"]["certificate"]["cut"] = "Very Good"
        assert map_item(item).grading.cut == "Very Good"

    def test_certificate_leaves_diamond_type_unset(self):
        """Certificates carry no type marker, so no Natural/Lab-Grown guess is made."""
        item = {"id": "x", "diamond": {"certificate": {"shape": "ROUND", "carats": 1}}}
        assert map_item(item).grading.diamond_type is None
        assert map_item(item, default_type="Lab-Grown").grading.diamond_type is None
        assert grading_from_certificate({"lab": "GIA"}).diamond_type is None


class TestMapItems:
    def test_drops_items_without_id_and_keeps_window(self):
        page = map_items(
            [_item(), {"price": 1}, _item(id="d-9")],
            offset=40,
            limit=20,
            total=50,
        )
        assert [listing.id for listing in page.listings] == ["d-1", "d-9"]
        assert page.window.has_next_page is False
        assert page.window.has_previous_page is True
        assert page.placeholder is False

    def test_degraded_field_is_reported(self):
        page = map_items([], offset=0, limit=20, total=0, degraded_field="certificate_number")
        assert page.degraded_field == "certificate_number"


class TestPlaceholderPage:
    def test_two_fixed_diamonds(self):
        page = placeholder_page(20, reason="provider_auth_failed: nope")
        assert page.placeholder is True
        assert page.error == "provider_auth_failed: nope"
        assert [listing.id for listing in page.listings] == ["mock-1", "mock-2"]
        assert page.window.total == len(PLACEHOLDER_ITEMS)
        first = page.listings[0]
        assert first.title == "1.50ct ROUND Diamond"
        assert first.price == 8500
        assert first.grading.certificate_number == "2141234567"
        assert page.listings[1].price == 15000


# === Catalog records ===


class TestMapCatalogProduct:
    def test_heuristic_extraction(self):
        product = CatalogProduct(
            id="gid://shopify/Product/1",
            title="1.01 Carat Round Lab Grown Diamond",
            description_html="<p>Color: E<br>Clarity: VVS2<br>Cut: Ideal<br>IGI Certified</p>",
            price=1999,
        )
        listing = map_catalog_product(product)
        assert listing.provenance == "catalog"
        assert listing.title == product.title
        assert listing.price == 1999
        grading = listing.grading
        assert grading.shape == "ROUND"
        assert grading.carat == "1.01"
        assert grading.color == "E"
        assert grading.clarity == "VVS2"
        assert grading.cut == "EX"
        assert grading.certification_lab == "IGI"
        assert grading.diamond_type == "Lab-Grown"

    def test_descriptor_fills_gaps(self):
        """Values the heuristic cannot read come from the label-delimited parse."""
        product = CatalogProduct(
            id="p-2",
            title="Oval",
            description_html="Shape: Oval Colour: f Clarity: si1 Cut: Very Good",
        )
        with (
            patch("storefront.inventory.extract.COLOR_RULES", ()),
            patch("storefront.inventory.extract.CLARITY_RULES", ()),
            patch("storefront.inventory.extract.CUT_RULES", ()),
        ):
            grading = map_catalog_product(product).grading
        assert grading.color == "F"
        assert grading.clarity == "SI1"
        assert grading.cut == "VG"
        assert grading.shape == "OVAL"

    def test_heuristic_value_wins_over_descriptor(self):
        product = CatalogProduct(id="p-5", description_html="Color: G Colour: E")
        assert map_catalog_product(product).grading.color == "G"

    def test_descriptor_values_outside_vocabulary_are_dropped(self):
        product = CatalogProduct(
            id="p-3", title="", description_html="Color: Fancy Yellow Clarity: ??? Cut: N/A"
        )
        listing = map_catalog_product(product)
        assert listing.grading.color is None
        assert listing.grading.clarity is None
        assert listing.grading.cut is None
        assert listing.title == "Diamond p-3"

    def test_currency_defaults_from_settings(self):
        listing = map_catalog_product(CatalogProduct(id="p-4"))
        assert listing.currency == settings.currency
        assert listing.description_html is None
