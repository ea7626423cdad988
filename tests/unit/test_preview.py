from __future__ import annotations

from datetime import date

import pytest

from sheet2sql.models.sheet import Sheet
from sheet2sql.preview import (
    analyze_columns_for_preview,
    build_multi_sheet_preview,
    build_preview_data,
    render_preview,
)


@pytest.fixture()
def mixed_sheet() -> Sheet:
    return Sheet(
        name="Mixed",
        headers=["n", "d", "flag", "mix", "name"],
        rows=[
            [1, date(2024, 1, 1), True, "1", "a"],
            ["2", date(2024, 1, 2), False, "x", None],
            [None, None, True, 3, ""],
            [4.5],
        ],
    )


def test_column_type_hints_and_nulls(mixed_sheet):
    cols = {c.name: c for c in analyze_columns_for_preview(mixed_sheet)}
    assert cols["n"].type_hint == "number"
    assert cols["n"].samples == [1, "2", 4.5]
    assert cols["n"].null_count == 1
    assert cols["d"].type_hint == "date"
    assert cols["flag"].type_hint == "boolean"
    assert cols["mix"].type_hint == "mixed"
    assert cols["name"].type_hint == "text"
    assert cols["name"].null_count == 3


def test_samples_are_capped(mixed_sheet):
    cols = analyze_columns_for_preview(mixed_sheet, sample_count=1)
    assert cols[0].samples == [1]


def test_preview_data(mixed_sheet):
    preview = build_preview_data(mixed_sheet, sample_rows=2)
    assert preview.row_count == 4
    assert len(preview.sample_rows) == 2
    assert preview.sheets == ["Mixed"] and preview.active_sheet == "Mixed"


def test_multi_sheet_preview(orders_sheet, products_sheet):
    preview = build_multi_sheet_preview([orders_sheet, products_sheet], "Products")
    assert preview.active_sheet == "Products"
    assert preview.sheets == ["Orders", "Products"]

    fallback = build_multi_sheet_preview([orders_sheet, products_sheet], "Nope")
    assert fallback.active_sheet == "Orders"

    with pytest.raises(ValueError):
        build_multi_sheet_preview([], "Orders")


def test_render_preview(products_sheet):
    lines = render_preview(build_preview_data(products_sheet), max_rows=1)
    assert lines == [
        "SHEET: Products rows=2",
        "  [0] Code (text) nulls=0 samples=[P100, P200]",
        "  [1] Name (text) nulls=0 samples=[Widget, Gadget]",
        "    P100 | Widget",
    ]
