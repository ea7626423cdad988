from __future__ import annotations

import pytest

from sheet2sql.excel.export import build_workbook_bytes
from sheet2sql.excel.reader import SheetHeaderError, get_sheet_names, read_workbook
from sheet2sql.logging.init import setup_logging
from sheet2sql.models.sheet import Sheet


def test_reads_every_sheet_in_workbook_order(sample_workbook):
    orders, products = read_workbook(sample_workbook)
    assert orders.name == "Orders"
    assert orders.headers == ["OrderID", "ProductCode", "Qty"]
    assert orders.rows == [["A1", "P100", 2], ["A2", "P200", 1], ["A3", "P999", 4]]
    assert orders.row_count == 3
    assert products.rows == [["P100", "Widget"], ["P200", "Gadget"]]


def test_sheet_selection_and_names(sample_workbook):
    (products,) = read_workbook(sample_workbook, sheet_names=["Products"])
    assert products.name == "Products"
    assert get_sheet_names(sample_workbook) == ["Orders", "Products"]


def test_reads_from_bytes(sample_workbook):
    sheets = read_workbook(sample_workbook.read_bytes())
    assert [s.name for s in sheets] == ["Orders", "Products"]


def test_blank_headers_and_blank_rows(temp_workdir, build_workbook):
    path = build_workbook(
        temp_workdir / "data" / "gaps.xlsx",
        {"S": [["id", None, "name"], [1, "x", "a"], [None, None, None], [2, None, "b"]]},
    )
    (sheet,) = read_workbook(path)
    assert sheet.headers == ["id", "Column_2", "name"]
    assert sheet.rows == [[1, "x", "a"], [2, None, "b"]]


def test_max_rows_caps_data_rows(temp_workdir, build_workbook):
    path = build_workbook(temp_workdir / "data" / "big.xlsx", {"S": [["n"]] + [[i] for i in range(10)]})
    (sheet,) = read_workbook(path, max_rows=4)
    assert [r[0] for r in sheet.rows] == [0, 1, 2, 3]


def test_max_rows_logs_dropped_rows(temp_workdir, build_workbook, capsys):
    path = build_workbook(temp_workdir / "data" / "big.xlsx", {"S": [["n"]] + [[i] for i in range(10)] + [[None]]})
    setup_logging()
    read_workbook(path, max_rows=4)
    assert "WARN sheet 'S': 10 data rows exceed max_rows=4; 6 rows dropped" in capsys.readouterr().out

    read_workbook(path, max_rows=10)
    assert "exceed max_rows" not in capsys.readouterr().out


def test_header_row_offset(temp_workdir, build_workbook):
    path = build_workbook(
        temp_workdir / "data" / "titled.xlsx",
        {"S": [["Monthly report", None], ["id", "name"], [1, "a"]]},
    )
    (sheet,) = read_workbook(path, header_row=1)
    assert sheet.headers == ["id", "name"]
    assert sheet.rows == [[1, "a"]]

    with pytest.raises(SheetHeaderError):
        read_workbook(path, header_row=5)


def test_keep_na_strings(temp_workdir, build_workbook):
    path = build_workbook(temp_workdir / "data" / "na.xlsx", {"S": [["code"], ["NA"], ["x"]]})
    (default,) = read_workbook(path)
    assert default.rows == [["x"]]
    (kept,) = read_workbook(path, keep_na_strings=["NA"])
    assert kept.rows == [["NA"], ["x"]]


def test_export_round_trip_pads_short_rows():
    enriched = Sheet(name="Orders", headers=["OrderID", "ProductName"], rows=[["A1"], ["A2", "Gadget"]])
    data = build_workbook_bytes([enriched])
    (sheet,) = read_workbook(data)
    assert sheet.headers == ["OrderID", "ProductName"]
    assert sheet.rows == [["A1", None], ["A2", "Gadget"]]


def test_export_names_missing_headers():
    data = build_workbook_bytes([Sheet(name="S", headers=[], rows=[[1, 2, 3]])])
    (sheet,) = read_workbook(data)
    assert sheet.headers == ["Column_1", "Column_2", "Column_3"]


def test_export_requires_a_sheet():
    with pytest.raises(ValueError):
        build_workbook_bytes([])
