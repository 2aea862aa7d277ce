from __future__ import annotations

import pytest

from attr_import.csvio.reader import CsvRow, HeaderMap
from attr_import.db.catalog import CatalogError
from attr_import.db.memory import DEFAULT_SET_ID, InMemoryCatalog
from attr_import.services.attribute_set_reconciler import (
    assign_to_attribute_sets,
    collect_unique_set_names,
    delete_attribute_sets,
    parse_optional_int,
)
from attr_import.services.store_resolver import StoreResolver

HEADER = ["attribute_code", "attribute_set", "attribute_set_order", "group", "group_order", "sort_order"]


@pytest.fixture()
def saved(catalog):
    catalog.save_attribute("color", {"label": "Color"})
    return catalog


def _ctx(make_ctx, attribute_set="", set_order="", group="", group_order="", sort_order="", verbose=False):
    return make_ctx(HEADER, ["color", attribute_set, set_order, group, group_order, sort_order], verbose=verbose)


def test_parse_optional_int():
    assert parse_optional_int(" 12 ") == 12
    assert parse_optional_int("") is None
    assert parse_optional_int("1.5") is None
    assert parse_optional_int(None) is None


class TestAssignToAttributeSets:
    def test_blank_set_uses_default_set_and_group(self, make_ctx, saved):
        assign_to_attribute_sets(_ctx(make_ctx, sort_order="30"))
        default_group = saved.default_group_id(DEFAULT_SET_ID)
        assert saved.assignments["color"] == {DEFAULT_SET_ID: (default_group, 30)}

    def test_missing_set_created_from_default_skeleton(self, make_ctx, saved):
        ctx = _ctx(make_ctx, attribute_set="Clothing", group="Details", group_order="3", verbose=True)
        assign_to_attribute_sets(ctx)
        clothing = saved.get_attribute_set("clothing")
        assert clothing is not None
        assert ("create_attribute_set", "Clothing", None, DEFAULT_SET_ID) in saved.calls
        group_id, _ = saved.assignments["color"][clothing.attribute_set_id]
        assert saved.group_name(group_id) == "Details"
        assert any("created automatically" in w for w in ctx.result.warnings)
        # skeleton の General グループも複製される
        assert [g.name for g in saved.groups[clothing.attribute_set_id]] == ["General", "Details"]

    def test_single_set_order_applies_to_every_set(self, make_ctx, saved):
        assign_to_attribute_sets(_ctx(make_ctx, attribute_set="Clothing;Shoes", set_order="7"))
        assert saved.get_attribute_set("Clothing").sort_order == 7
        assert saved.get_attribute_set("Shoes").sort_order == 7

    def test_positional_set_orders(self, make_ctx, saved):
        assign_to_attribute_sets(_ctx(make_ctx, attribute_set="Default;Shoes", set_order="2;9"))
        assert ("update_attribute_set_sort_order", DEFAULT_SET_ID, 2) in saved.calls
        assert saved.get_attribute_set("Shoes").sort_order == 9

    def test_order_count_mismatch_notice(self, make_ctx, saved):
        ctx = _ctx(make_ctx, attribute_set="Clothing;Shoes;Bags", set_order="1;2", verbose=True)
        assign_to_attribute_sets(ctx)
        assert any("does not match" in w for w in ctx.result.warnings)
        assert len(saved.assignments["color"]) == 3

    def test_unknown_numeric_set_skipped(self, make_ctx, saved):
        ctx = _ctx(make_ctx, attribute_set="99", verbose=True)
        assign_to_attribute_sets(ctx)
        assert "color" not in saved.assignments
        assert ctx.result.warnings == ["The attribute set ID '99' does not exist; skipping"]

    def test_blank_sort_order_keeps_assigned_order(self, make_ctx, saved):
        assign_to_attribute_sets(_ctx(make_ctx, sort_order="40"))
        assign_to_attribute_sets(_ctx(make_ctx))
        assert saved.assignments["color"][DEFAULT_SET_ID][1] == 40

    def test_same_set_processed_once(self, make_ctx, saved):
        assign_to_attribute_sets(_ctx(make_ctx, attribute_set=f"Default;default;{DEFAULT_SET_ID}"))
        assert len([c for c in saved.calls if c[0] == "add_attribute_to_set"]) == 1

    def test_group_failure_falls_back_to_default_group(self, make_ctx):
        class NoGroups(InMemoryCatalog):
            def ensure_attribute_group(self, set_id, name, sort_order):
                raise CatalogError("locked")

        catalog = NoGroups()
        catalog.save_attribute("color", {})
        ctx = _ctx(make_ctx, group="Details", verbose=True)
        ctx.catalog = catalog
        assign_to_attribute_sets(ctx)
        assert catalog.assignments["color"] == {DEFAULT_SET_ID: (catalog.default_group_id(DEFAULT_SET_ID), None)}
        assert any("using default group" in w for w in ctx.result.warnings)

    def test_set_creation_failure_counts_error(self, make_ctx):
        class NoCreate(InMemoryCatalog):
            def create_attribute_set(self, name, sort_order, skeleton_set_id):
                raise CatalogError("denied")

        catalog = NoCreate()
        catalog.save_attribute("color", {})
        ctx = _ctx(make_ctx, attribute_set="Clothing")
        ctx.catalog = catalog
        assign_to_attribute_sets(ctx)
        assert ctx.result.errors == 1
        assert ctx.result.error_records[0].error_type == "ATTRIBUTE_SET_CREATE_ERROR"


def _rows(*values: str) -> list[CsvRow]:
    header_map = HeaderMap(["attribute_set"])
    return [CsvRow(line, [value], header_map) for line, value in enumerate(values, start=2)]


def _delete(catalog, *values: str, verbose=False):
    targets = collect_unique_set_names(_rows(*values))
    return delete_attribute_sets(
        targets, catalog, StoreResolver(catalog), file_name="sets.csv", verbose=verbose
    )


class TestDeleteAttributeSets:
    def test_unique_names_case_insensitive_first_casing_wins(self):
        targets = collect_unique_set_names(_rows("Shoes;Bags", "shoes", "BAGS;Hats"))
        assert [(t.name, t.row.line_number) for t in targets] == [("Shoes", 2), ("Bags", 2), ("Hats", 4)]

    @pytest.mark.parametrize("name", ["Default", "default", "DEFAULT", str(DEFAULT_SET_ID)])
    def test_default_set_is_never_deleted(self, catalog, name):
        results = _delete(catalog, name)
        assert results[0].skipped == 1
        assert results[0].deleted == 0
        assert catalog.get_attribute_set(DEFAULT_SET_ID) is not None
        assert not any(c[0] == "remove_attribute_set" for c in catalog.calls)

    def test_default_protected_by_configured_name(self):
        catalog = InMemoryCatalog(default_set_name="Base")
        targets = collect_unique_set_names(_rows("base"))
        results = delete_attribute_sets(
            targets, catalog, StoreResolver(catalog), file_name="sets.csv", default_set_name="Base"
        )
        assert results[0].skipped == 1

    def test_set_named_default_protected_with_other_configured_default(self):
        catalog = InMemoryCatalog(default_set_name="Main")
        catalog.create_attribute_set("Default", None, DEFAULT_SET_ID)
        targets = collect_unique_set_names(_rows("default"))
        results = delete_attribute_sets(
            targets, catalog, StoreResolver(catalog), file_name="sets.csv", default_set_name="Main"
        )
        assert results[0].skipped == 1
        assert results[0].deleted == 0
        assert catalog.get_attribute_set("Default") is not None
        assert not any(c[0] == "remove_attribute_set" for c in catalog.calls)

    def test_existing_set_deleted(self, catalog):
        set_id = catalog.create_attribute_set("Shoes", None, DEFAULT_SET_ID)
        results = _delete(catalog, "shoes")
        assert results[0].deleted == 1
        assert catalog.get_attribute_set(set_id) is None

    def test_missing_set_skipped_with_warning(self, catalog):
        results = _delete(catalog, "Nope")
        assert results[0].skipped == 1
        assert results[0].errors == 0
        assert results[0].warnings == ["The attribute set 'Nope' does not exist; skipping"]

    def test_delete_failure_recorded(self):
        class Sticky(InMemoryCatalog):
            def remove_attribute_set(self, set_id):
                raise CatalogError("in use")

        catalog = Sticky()
        catalog.create_attribute_set("Shoes", None, DEFAULT_SET_ID)
        results = _delete(catalog, "Shoes")
        record = results[0].error_records[0]
        assert record.error_type == "ATTRIBUTE_SET_DELETE_ERROR"
        assert record.file == "sets.csv"
        assert record.entity == "Shoes"
        assert record.row == 2
