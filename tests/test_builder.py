"""Tests for single-row, batch and sheet-object generation."""

import pytest

from bannerbuildr.errors import (
    InvalidArchiveError,
    MissingDynamicJsError,
    MissingEntryFileError,
    RowError,
    RowNotFoundError,
)
from bannerbuildr.generator.builder import BatchResult, VariationBuilder
from bannerbuildr.generator.locator import find_assignment
from bannerbuildr.generator.substitution import TIER_PATH
from bannerbuildr.schema.literals import parse_js_string
from bannerbuildr.schema.models import TemplateAssets, Tier


def _value(variation, path):
    """Decoded value assigned to ``path`` in a variation's Dynamic.js."""
    source = variation.files["Dynamic.js"].decode("utf-8")
    return parse_js_string(find_assignment(source, path).value)


@pytest.fixture
def builder(template, mapping):
    return VariationBuilder(template, mapping, "T1",
                            base_asset_path="https://cdn.example.com/")


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_tier_coerced(self, template, mapping):
        assert VariationBuilder(template, mapping, "t2").tier is Tier.T2

    def test_mapping_normalized(self, template):
        builder = VariationBuilder(template, {"a": "none", "b": " x.y ", "c": ""}, "T1")
        assert builder.mapping == {"b": "x.y"}

    def test_entry_file_required(self):
        template = TemplateAssets(files={"Dynamic.js": b""}, entry_file="index.html",
                                  dynamic_js_file="Dynamic.js")
        with pytest.raises(MissingEntryFileError):
            VariationBuilder(template, {}, "T1")

    def test_degraded_without_dynamic_js(self):
        template = TemplateAssets.from_files({"index.html": b"<html></html>",
                                              "a.css": b"x"})
        builder = VariationBuilder(template, {"headline": "x.y"}, "T1")
        assert builder.template_warnings
        variation = builder.build_one({"headline": "Hi"})
        assert dict(variation.files) == dict(template.files)
        assert "Template has no Dynamic.js" in variation.warnings[0]

    def test_dynamic_js_required(self):
        template = TemplateAssets.from_files({"index.html": b"<html></html>"})
        with pytest.raises(MissingDynamicJsError):
            VariationBuilder(template, {}, "T1", require_dynamic_js=True)

    def test_dynamic_js_not_utf8(self):
        template = TemplateAssets.from_files({
            "index.html": b"<html></html>",
            "Dynamic.js": "devDynamicContent.parent[0].headline = 'caf\u00e9';\n".encode("latin-1"),
        })
        with pytest.raises(InvalidArchiveError, match="not valid UTF-8"):
            VariationBuilder(template, {}, "T1")


# ---------------------------------------------------------------------------
# build_one
# ---------------------------------------------------------------------------

class TestBuildOne:
    def test_values_written(self, builder, rows):
        variation = builder.build_one(rows[0])
        assert _value(variation, "devDynamicContent.parent[0].headline") == "Big Sale"
        assert _value(variation, "devDynamicContent.parent[0].custom_offer") == "20% off"
        assert _value(variation, "devDynamicContent.parent[0].image.Url") == \
            "https://cdn.example.com/hero.jpg"
        assert _value(variation, "devDynamicContent.creative_data[0].cta") == "Buy"
        assert _value(variation, TIER_PATH) == "T1"

    def test_quote_in_value(self, builder, rows):
        variation = builder.build_one(rows[2], index=2)
        assert _value(variation, "devDynamicContent.parent[0].headline") == "It's here"

    def test_name(self, builder, rows):
        variation = builder.build_one(rows[0], index=0)
        assert variation.name.startswith("Variation_1_101_20off_")

    def test_no_warnings_for_clean_row(self, builder, rows):
        assert builder.build_one(rows[0]).warnings == ()

    def test_field_warnings_attached(self, template):
        builder = VariationBuilder(template, {"x": "devDynamicContent.parent[0].nope"}, "T1")
        variation = builder.build_one({"x": "1"})
        assert variation.warnings == (
            'Could not find "devDynamicContent.parent[0].nope" in Dynamic.js to replace.',
        )

    def test_non_mapping_row(self, builder):
        with pytest.raises(RowError):
            builder.build_one(["not", "a", "row"])

    def test_substitute_result(self, builder, rows):
        result = builder.substitute(rows[0])
        assert TIER_PATH in result.changed_paths


# ---------------------------------------------------------------------------
# build_batch
# ---------------------------------------------------------------------------

class TestBuildBatch:
    def test_tier_filter(self, builder, rows):
        batch = builder.build_batch(rows)
        assert isinstance(batch, BatchResult)
        assert [v.row_index for v in batch.variations] == [0, 2]
        assert batch.skipped == [1]
        assert batch.ok
        assert "1 row(s) have no 'custom_offer'" in batch.warnings[0]

    def test_t2_rows(self, template, mapping, rows):
        batch = VariationBuilder(template, mapping, "T2").build_batch(rows)
        assert [v.row_index for v in batch.variations] == [1]
        assert _value(batch.variations[0], TIER_PATH) == "T2"

    def test_no_filter(self, builder, rows):
        batch = builder.build_batch(rows, filter_tier=False)
        assert len(batch.variations) == 3
        assert batch.skipped == []

    def test_threaded_matches_sequential(self, builder, rows):
        many = [dict(rows[0], id=str(n), headline=f"Headline {n}") for n in range(25)]
        sequential = builder.build_batch(many)
        threaded = builder.build_batch(many, max_workers=8)
        assert [v.row_index for v in threaded.variations] == list(range(25))
        for a, b in zip(sequential.variations, threaded.variations):
            assert a.files["Dynamic.js"] == b.files["Dynamic.js"]

    def test_ids_unique(self, builder, rows):
        batch = builder.build_batch([rows[0]] * 10, max_workers=4)
        assert len({v.variation_id for v in batch.variations}) == 10

    def test_bad_row_recorded(self, builder, rows):
        batch = builder.build_batch([rows[0], "oops", rows[2]])
        assert [v.row_index for v in batch.variations] == [0, 2]
        assert len(batch.failures) == 1
        assert batch.failures[0].index == 1
        assert not batch.ok
        assert str(batch.failures[0]).startswith("row 2:")

    def test_bad_row_fail_fast(self, builder, rows):
        with pytest.raises(RowError):
            builder.build_batch([rows[0], "oops"], fail_fast=True)

    def test_empty(self, builder):
        batch = builder.build_batch([])
        assert batch.variations == []
        assert batch.warnings == []


# ---------------------------------------------------------------------------
# build_for_ids
# ---------------------------------------------------------------------------

class TestBuildForIds:
    def test_selected(self, builder, rows):
        batch = builder.build_for_ids(rows, ["103", 101])
        names = [v.name for v in batch.variations]
        assert names[0].startswith("Variation_1_103_")
        assert names[1].startswith("Variation_2_101_")

    def test_missing_id_raises(self, builder, rows):
        with pytest.raises(RowNotFoundError) as exc_info:
            builder.build_for_ids(rows, ["999"])
        assert "id = '999'" in str(exc_info.value)

    def test_missing_id_recorded(self, builder, rows):
        batch = builder.build_for_ids(rows, ["999", "101"], fail_fast=False)
        assert len(batch.variations) == 1
        assert batch.failures[0].key == "999"
        assert str(batch.failures[0]).startswith("request (999):")

    def test_key_field(self, builder):
        data = [{"sku": "A", "custom_offer": "x"}, {"sku": "B", "custom_offer": "y"}]
        batch = builder.build_for_ids(data, ["B"], key_field="sku")
        assert _value(batch.variations[0],
                      "devDynamicContent.parent[0].custom_offer") == "y"


# ---------------------------------------------------------------------------
# Sheet objects
# ---------------------------------------------------------------------------

class TestSheetObjects:
    def test_build_from_objects(self, builder):
        variation = builder.build_from_objects({
            "parent": {"id": "5", "headline": "From sheet"},
            "creative_data": {"cta": "Tap"},
        })
        assert _value(variation, "devDynamicContent.parent[0].headline") == "From sheet"
        assert _value(variation, "devDynamicContent.parent[0].id") == "5"
        assert _value(variation, "devDynamicContent.creative_data[0].cta") == "Tap"
        assert _value(variation, TIER_PATH) == "T1"
        assert variation.name.startswith("Preview_1_5_")

    def test_objects_ignore_column_mapping(self, builder):
        variation = builder.build_from_objects({"parent": {"custom_offer": "Sheet offer"}})
        assert _value(variation, "devDynamicContent.parent[0].custom_offer") == "Sheet offer"
        assert _value(variation, "devDynamicContent.parent[0].headline") == "Default headline"

    def test_sheet_tabs(self, builder):
        tabs = {
            "parent": [{"id": "1", "headline": "One"}, {"id": "2", "headline": "Two"}],
            "creative_data": [{"id": "2", "cta": "Two cta"}],
        }
        batch = builder.build_from_sheet_tabs(tabs, ["2", "1"])
        assert len(batch.variations) == 2
        first, second = batch.variations
        assert _value(first, "devDynamicContent.parent[0].headline") == "Two"
        assert _value(first, "devDynamicContent.creative_data[0].cta") == "Two cta"
        assert _value(second, "devDynamicContent.creative_data[0].cta") == "Shop now"
        assert batch.warnings == ["No 'creative_data' row for id '1'; template defaults kept."]

    def test_sheet_tabs_parent_required(self, builder):
        with pytest.raises(RowNotFoundError):
            builder.build_from_sheet_tabs({"parent": [{"id": "1"}]}, ["2"])

    def test_sheet_tabs_without_parent(self, builder):
        with pytest.raises(RowError):
            builder.build_from_sheet_tabs({"creative_data": []}, ["1"])
