from __future__ import annotations

import copy
import dataclasses

import pytest

from sheet2sql.excel.context import build_context
from sheet2sql.models.lookup import (
    LookupErrorKind,
    LookupSourceType,
    SheetLookup,
    VLookupConfig,
    VLookupSet,
)
from sheet2sql.models.sheet import Sheet
from sheet2sql.vlookup.engine import (
    apply_vlookups,
    apply_vlookups_to_sheets,
    build_output_headers,
    create_cross_sheet_lookup,
    create_inline_lookup,
    parse_target_cell,
    TargetCellError,
)


def _product_lookup(**kwargs) -> VLookupConfig:
    params = dict(
        id="product_name",
        source_column="ProductCode",
        source_type=LookupSourceType.SHEET,
        target_column="ProductName",
        sheet_lookup=SheetLookup("Products", "Code", "Name"),
    )
    params.update(kwargs)
    return VLookupConfig(**params)


@pytest.fixture()
def context(orders_sheet, products_sheet):
    return build_context([orders_sheet, products_sheet], "Orders")


def test_cross_sheet_lookup_scenario(orders_sheet, context):
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup()]), context)

    assert result.headers == ["OrderID", "ProductCode", "Qty", "ProductName"]
    assert [r[3] for r in result.rows] == ["Widget", "Gadget", None, None]
    assert result.errors == []
    (stats,) = result.stats
    assert (stats.matched, stats.unmatched, stats.null_inputs, stats.total_rows) == (2, 1, 1, 4)
    assert (stats.source_column, stats.target_column) == ("ProductCode", "ProductName")


def test_input_sheet_is_not_mutated(orders_sheet, context):
    before = copy.deepcopy(orders_sheet.rows)
    apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup()]), context)
    assert orders_sheet.rows == before
    assert orders_sheet.headers == ["OrderID", "ProductCode", "Qty"]


def test_apply_is_idempotent(orders_sheet, context):
    lookup_set = VLookupSet(enabled=True, lookups=[_product_lookup(default_value="?")])
    first = apply_vlookups(orders_sheet, lookup_set, context)
    second = apply_vlookups(orders_sheet, lookup_set, context)
    assert first == second


@pytest.mark.parametrize(
    "lookup_set, disabled",
    [
        (VLookupSet(enabled=False, lookups=[_product_lookup()]), False),
        (VLookupSet(enabled=True, lookups=[]), False),
        (VLookupSet(enabled=True, lookups=[_product_lookup()]), True),
    ],
)
def test_pass_through(orders_sheet, context, lookup_set, disabled):
    result = apply_vlookups(orders_sheet, lookup_set, context, disabled=disabled)
    assert result.rows == orders_sheet.rows
    assert result.headers == orders_sheet.headers
    assert result.stats == [] and result.errors == []


def test_default_value_for_null_and_unmatched(orders_sheet, context):
    result = apply_vlookups(
        orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup(default_value="N/A")]), context
    )
    assert [r[3] for r in result.rows] == ["Widget", "Gadget", "N/A", "N/A"]


def test_in_place_replacement_when_target_column_omitted(orders_sheet, context):
    result = apply_vlookups(
        orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup(target_column=None)]), context
    )
    assert result.headers == orders_sheet.headers
    assert [r[1] for r in result.rows] == ["Widget", "Gadget", None, None]


def test_fail_fast_missing_sheet_returns_only_errors(orders_sheet, context):
    lookup = _product_lookup(sheet_lookup=SheetLookup("Catalog", "Code", "Name"))
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[lookup]), context, fail_fast=True)
    assert result.rows == [] and result.headers == [] and result.stats == []
    (err,) = result.errors
    assert err.kind is LookupErrorKind.MISSING_SHEET
    assert err.lookup_id == "product_name"
    assert 'Sheet "Catalog" not found' in err.message


def test_missing_column_is_collected_without_fail_fast(orders_sheet, context):
    broken = _product_lookup(id="broken", sheet_lookup=SheetLookup("Products", "Code", "Price"), target_column="Price")
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[broken, _product_lookup()]), context)

    (err,) = result.errors
    assert err.kind is LookupErrorKind.MISSING_COLUMN
    # the healthy lookup still runs
    assert [s.lookup_id for s in result.stats] == ["product_name"]
    assert result.headers == ["OrderID", "ProductCode", "Qty", "Price", "ProductName"]
    assert result.rows[0][4] == "Widget"
    assert result.rows[0][3] is None


def test_missing_source_column(orders_sheet, context):
    result = apply_vlookups(
        orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup(source_column="SKU")]), context
    )
    assert result.errors[0].kind is LookupErrorKind.MISSING_COLUMN


def test_sheet_lookup_without_context_is_a_parse_error(orders_sheet):
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup()]))
    assert result.errors[0].kind is LookupErrorKind.PARSE_ERROR


def test_file_source_is_unsupported(orders_sheet, context):
    lookup = VLookupConfig(id="f", source_column="ProductCode", source_type=LookupSourceType.FILE)
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[lookup]), context)
    (err,) = result.errors
    assert err.kind is LookupErrorKind.PARSE_ERROR
    assert "Unsupported lookup source type: file" in err.message


def test_inline_lookup_normalizes_keys():
    sheet = Sheet(name="S", headers=["code"], rows=[[" p100 "], ["P200"], ["p300"]])
    lookup = create_inline_lookup("code", {"P100": "Widget", "p200 ": "Gadget"}, id="inline", target_column="name")
    result = apply_vlookups(sheet, VLookupSet(enabled=True, lookups=[lookup]))
    assert [r[1] for r in result.rows] == ["Widget", "Gadget", None]


def test_case_sensitive_and_untrimmed_keys():
    sheet = Sheet(name="S", headers=["code"], rows=[["P100"], ["p100"], [" P100"]])
    lookup = create_inline_lookup(
        "code", {"P100": "Widget"}, id="cs", target_column="name", case_sensitive=True, trim_keys=False
    )
    result = apply_vlookups(sheet, VLookupSet(enabled=True, lookups=[lookup]))
    assert [r[1] for r in result.rows] == ["Widget", None, None]
    assert result.stats[0].unmatched == 2


def test_numeric_keys_match_their_text_form():
    sheet = Sheet(name="S", headers=["id"], rows=[[1.0], [2]])
    lookup = create_inline_lookup("id", {"1": "one", "2": "two"}, id="num", target_column="label")
    result = apply_vlookups(sheet, VLookupSet(enabled=True, lookups=[lookup]))
    assert [r[1] for r in result.rows] == ["one", "two"]


def test_duplicate_keys_last_occurrence_wins(orders_sheet):
    products = Sheet(name="Products", headers=["Code", "Name"], rows=[["P100", "Old"], ["p100", "New"], [None, "x"]])
    context = build_context([orders_sheet, products], "Orders")
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[_product_lookup()]), context)
    assert result.rows[0][3] == "New"


def test_rows_are_extended_never_truncated(context):
    sheet = Sheet(name="Orders", headers=["OrderID", "ProductCode", "Qty"], rows=[["A1", "P100"], ["A2", "P200", 1, "extra"]])
    result = apply_vlookups(sheet, VLookupSet(enabled=True, lookups=[_product_lookup()]), context)
    assert result.rows[0] == ["A1", "P100", None, "Widget"]
    assert result.rows[1] == ["A2", "P200", 1, "Gadget"]


def test_output_headers_are_deduplicated():
    lookups = [
        create_inline_lookup("a", {}, id="1", target_column="x"),
        create_inline_lookup("b", {}, id="2", target_column="x"),
        create_inline_lookup("c", {}, id="3", target_column="a"),
    ]
    assert build_output_headers(["a", "b"], lookups) == ["a", "b", "x"]


def test_target_cell_writes_into_existing_column_from_its_row(orders_sheet, context):
    lookup = _product_lookup(target_column=None, target_cell="C3")
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[lookup]), context)
    assert result.headers == orders_sheet.headers
    # C3 -> third column, second data row
    assert [r[2] for r in result.rows] == [2, "Gadget", None, None]
    assert result.stats[0].total_rows == 3


@pytest.mark.parametrize("cell", ["ZZ2", "C1", "3C", "!"])
def test_invalid_target_cell(orders_sheet, context, cell):
    lookup = _product_lookup(target_cell=cell)
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[lookup]), context)
    assert result.errors[0].kind is LookupErrorKind.INVALID_TARGET_CELL


def test_parse_target_cell():
    assert parse_target_cell("A2") == (0, 2)
    assert parse_target_cell("aa10") == (26, 10)
    with pytest.raises(TargetCellError):
        parse_target_cell("A0")


def test_overwrite_refused_when_not_allowed(orders_sheet, context):
    lookup = _product_lookup(target_column="Qty", allow_overwrite=False)
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[lookup]), context)
    assert result.errors[0].kind is LookupErrorKind.OVERWRITE

    allowed = _product_lookup(target_column="Qty", allow_overwrite=True)
    result = apply_vlookups(orders_sheet, VLookupSet(enabled=True, lookups=[allowed]), context)
    assert result.errors == []
    assert result.rows[0][2] == "Widget"


def test_apply_vlookups_to_sheets_routes_by_target_sheet(orders_sheet, products_sheet):
    to_orders = create_cross_sheet_lookup(
        "ProductCode", "Products", "Code", "Name", id="name", target_column="ProductName"
    )
    to_products = create_inline_lookup("Code", {"P100": "yes"}, id="flag", target_column="Featured")
    to_products = dataclasses.replace(to_products, target_sheet="Products")

    result = apply_vlookups_to_sheets(
        [orders_sheet, products_sheet], "Orders", VLookupSet(enabled=True, lookups=[to_orders, to_products])
    )
    orders, products = result.sheets
    assert orders.headers[-1] == "ProductName"
    assert orders.rows[0][-1] == "Widget"
    assert products.headers == ["Code", "Name", "Featured"]
    assert [r[2] for r in products.rows] == ["yes", None]
    assert result.errors == []
    assert [s.lookup_id for s in result.stats] == ["name", "flag"]


def test_apply_vlookups_to_sheets_leaves_untargeted_sheets(orders_sheet, products_sheet):
    lookup = create_cross_sheet_lookup("ProductCode", "Products", "Code", "Name", target_column="ProductName")
    result = apply_vlookups_to_sheets([orders_sheet, products_sheet], "Orders", VLookupSet(enabled=True, lookups=[lookup]))
    assert result.sheets[1] is products_sheet


def test_factories_defaults():
    lk = create_cross_sheet_lookup("ProductCode", "Products", "Code", "Name")
    assert lk.source_type is LookupSourceType.SHEET
    assert lk.output_column == "ProductCode"
    assert lk.default_value is None
    assert not lk.case_sensitive and lk.trim_keys
    assert lk.id.startswith("lookup_")
    assert create_cross_sheet_lookup("a", "b", "c", "d").id != lk.id
