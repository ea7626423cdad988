from __future__ import annotations

import json
import re
from datetime import date

import pytest

from sheet2sql.logging.error_log import ErrorLogBuffer
from sheet2sql.models.error_record import ErrorRecord
from sheet2sql.models.lookup import LookupErrorKind, VLookupError
from sheet2sql.models.validation import Severity, ValidationError

KEYS = ["timestamp", "file", "sheet", "row", "column", "error_type", "message", "severity", "value"]


def test_record_json_line_has_fixed_keys():
    record = ErrorRecord.create("book.xlsx", "Orders", 3, "VALIDATION_ERROR", "bad", column="qty", value=date(2024, 1, 2))
    data = json.loads(record.to_json_line())
    assert list(data) == KEYS
    assert data["value"] == "2024-01-02"
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}.*Z$", data["timestamp"])


def test_record_from_validation_error():
    warning = ValidationError(row=4, column="qty", value="x", message="Expected INTEGER", severity=Severity.WARNING)
    record = ErrorRecord.from_validation_error("book.xlsx", "Orders", warning)
    assert (record.row, record.column, record.error_type, record.severity) == (
        4, "qty", "VALIDATION_WARNING", "warning",
    )


def test_record_from_lookup_error():
    err = VLookupError(lookup_id="product_name", kind=LookupErrorKind.MISSING_SHEET, message='Sheet "X" not found')
    record = ErrorRecord.from_lookup_error("book.xlsx", "Orders", err)
    assert record.error_type == "LOOKUP_MISSING_SHEET"
    assert record.row == -1
    assert record.message == '[product_name] Sheet "X" not found'


@pytest.mark.parametrize("kind", list(LookupErrorKind))
def test_every_lookup_kind_has_an_error_type(kind):
    record = ErrorRecord.from_lookup_error("book.xlsx", "Orders", VLookupError(lookup_id="l", kind=kind, message="m"))
    assert record.error_type == "LOOKUP_" + kind.value.upper()


def test_lookup_error_kinds_are_closed():
    assert {k.value for k in LookupErrorKind} == {
        "missing_sheet", "missing_column", "missing_key", "empty_result",
        "invalid_target_cell", "overwrite", "parse_error",
    }


def test_flush_without_records_writes_nothing(tmp_path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_appends_json_lines_to_one_file(tmp_path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("b.xlsx", "S", 2, "VALIDATION_ERROR", "one"))
    first = buf.flush()
    buf.extend([ErrorRecord.create("b.xlsx", "S", 3, "VALIDATION_ERROR", "two")])
    second = buf.flush()

    assert first == second
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", first.name)
    lines = first.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["one", "two"]
    assert buf.written == 2
    # nothing new, but the run did produce a log
    assert buf.flush() == first
