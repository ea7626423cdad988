# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from sheet2sql.logging.init import reset_logging
from sheet2sql.models.sheet import Sheet


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("SHEET2SQL_CONFIG", raising=False)
        yield p


@pytest.fixture()
def build_workbook() -> Callable[[Path, dict[str, list[list[Any]]]], Path]:
    """Write ``{sheet_name: [header, *rows]}`` to an .xlsx file with pandas."""

    def _build(path: Path, sheets: dict[str, list[list[Any]]]) -> Path:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, data in sheets.items():
                pd.DataFrame(data).to_excel(writer, sheet_name=name, header=False, index=False)
        return path

    return _build


@pytest.fixture()
def orders_sheet() -> Sheet:
    return Sheet(
        name="Orders",
        headers=["OrderID", "ProductCode", "Qty"],
        rows=[["A1", "P100", 2], ["A2", "P200", 1], ["A3", "P999", 4], ["A4", "", 3]],
    )


@pytest.fixture()
def products_sheet() -> Sheet:
    return Sheet(name="Products", headers=["Code", "Name"], rows=[["P100", "Widget"], ["P200", "Gadget"]])


@pytest.fixture()
def sample_workbook(temp_workdir: Path, build_workbook) -> Path:
    return build_workbook(
        temp_workdir / "data" / "orders.xlsx",
        {
            "Orders": [
                ["OrderID", "ProductCode", "Qty"],
                ["A1", "P100", 2],
                ["A2", "P200", 1],
                ["A3", "P999", 4],
            ],
            "Products": [["Code", "Name"], ["P100", "Widget"], ["P200", "Gadget"]],
        },
    )


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/orders.xlsx
output_directory: ./out
database: postgresql
batch_size: 1000
sheets:
  - name: Orders
    table: orders
    mode: UPSERT
    conflict_keys: [order_id]
    columns:
      OrderID:
        target: order_id
        primary_key: true
vlookups:
  enabled: true
  lookups:
    - id: product_name
      source_column: ProductCode
      target_column: ProductName
      source_type: sheet
      sheet_lookup:
        sheet_name: Products
        key_column: Code
        value_column: Name
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sheet2sql.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
