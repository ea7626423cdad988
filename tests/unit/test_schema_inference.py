from __future__ import annotations

import uuid

from sheet2sql.models.types import DataType
from sheet2sql.schema.inference import (
    ColumnOverride,
    analyze_columns,
    build_mappings,
    infer_column_type,
    infer_schema,
    is_primary_key_candidate,
    suggest_constraints,
)


def test_all_uuid_column_is_uuid_with_full_confidence():
    values = [str(uuid.uuid4()) for _ in range(25)] + [str(uuid.uuid4()).upper()]
    assert infer_column_type(values) == (DataType.UUID, 1.0)


def test_empty_column_is_text():
    assert infer_column_type([None, "", "   "]) == (DataType.TEXT, 1.0)


def test_narrowest_numeric_type_wins():
    assert infer_column_type(["10", "20", "-5"])[0] is DataType.INTEGER
    assert infer_column_type(["10", "3000000000"])[0] is DataType.BIGINT
    assert infer_column_type(["1.5", "2", "3e2"])[0] is DataType.DECIMAL


def test_boolean_tokens_take_priority_over_integers():
    assert infer_column_type(["1", "0", "1"])[0] is DataType.BOOLEAN
    assert infer_column_type(["Yes", "no", "T"])[0] is DataType.BOOLEAN


def test_float_cells_read_through_pandas_look_like_integers():
    assert infer_column_type([1.0, 2.0, 3.0])[0] is DataType.INTEGER


def test_temporal_and_json_types():
    assert infer_column_type(["2024-01-02", "2023-12-31"])[0] is DataType.DATE
    assert infer_column_type(["2024-01-02 10:00:00", "2024-01-02T11:30:00Z"])[0] is DataType.TIMESTAMPTZ
    assert infer_column_type(["12:30:00", "08:00:00"])[0] is DataType.TIME
    assert infer_column_type(['{"a": 1}', "[1, 2]"])[0] is DataType.JSONB


def test_json_primitives_are_not_jsonb():
    assert infer_column_type(['"text"', "null"])[0] is DataType.TEXT


def test_confidence_threshold_tolerates_a_few_outliers():
    values = [str(i) for i in range(39)] + ["n/a"]
    data_type, confidence = infer_column_type(values)
    assert data_type is DataType.INTEGER
    assert confidence == 39 / 40


def test_below_threshold_falls_back_to_text():
    data_type, _ = infer_column_type(["1", "2", "abc", "def"])
    assert data_type is DataType.TEXT


def test_sample_size_limits_inspected_values():
    values = ["1", "2", "3"] + ["word"] * 100
    assert infer_column_type(values, sample_size=3)[0] is DataType.INTEGER


def test_analyze_columns_counts_nulls_and_uniques():
    cols = analyze_columns(["id", "name"], [[1, "a"], [2, ""], [3]])
    id_col, name_col = cols
    assert id_col.index == 0 and id_col.detected_type is DataType.INTEGER
    assert id_col.null_count == 0 and id_col.total_count == 3
    assert name_col.null_count == 1  # ragged row -> None
    assert name_col.empty_string_count == 1


def test_primary_key_candidate_rules():
    id_col, dup_col, null_col = analyze_columns(
        ["id", "dup", "maybe"], [[1, "x", None], [2, "x", "a"], [3, "y", "b"]]
    )
    assert is_primary_key_candidate(id_col)
    assert not is_primary_key_candidate(dup_col)
    assert not is_primary_key_candidate(null_col)


def test_unique_values_compare_display_text():
    (col,) = analyze_columns(["code"], [[True], [1], [2]])
    assert col.unique_values == {"true", "1", "2"}
    assert is_primary_key_candidate(col)

    (floats,) = analyze_columns(["n"], [[1], [1.0]])
    assert floats.unique_values == {"1"}
    assert not is_primary_key_candidate(floats)


def test_decimal_column_is_not_a_primary_key_candidate():
    (col,) = analyze_columns(["price"], [["1.5"], ["2.5"]])
    assert col.detected_type is DataType.DECIMAL
    assert not is_primary_key_candidate(col)


def test_infer_schema_quality_and_suggested_key():
    schema = infer_schema(["id", "name", "note"], [[1, "a", None], [2, "b", "x"]])
    assert schema.suggested_primary_key == "id"
    assert schema.quality_score == 83  # 5 / 6 non-null


def test_infer_schema_empty_sheet():
    schema = infer_schema(["a"], [])
    assert schema.quality_score == 100
    assert schema.columns[0].detected_type is DataType.TEXT


def test_suggest_constraints():
    (flag,) = analyze_columns(["active"], [["true"], ["false"]])
    assert suggest_constraints(flag) == {"nullable": False, "unique": True, "default": "false"}


def test_build_mappings_uses_suggested_key_and_sanitized_names():
    schema = infer_schema(["Order ID", "Total Amount"], [[1, "1.5"], [2, "2.5"]])
    pk, total = build_mappings(schema)
    assert pk.target_column == "order_id" and pk.is_primary_key
    assert not pk.is_nullable and pk.is_unique
    assert total.target_column == "total_amount" and total.data_type is DataType.DECIMAL
    assert total.is_nullable and not total.is_primary_key
    assert (pk.source_index, total.source_index) == (0, 1)


def test_build_mappings_overrides():
    schema = infer_schema(["id", "code", "memo"], [[1, "A", "x"], [2, "B", "y"]])
    mappings = build_mappings(
        schema,
        {
            "code": ColumnOverride(target="product_code", primary_key=True, data_type=DataType.VARCHAR),
            "memo": ColumnOverride(skip=True),
        },
    )
    by_source = {m.source_column: m for m in mappings}
    assert not by_source["id"].is_primary_key  # explicit key replaces the suggestion
    assert by_source["code"].target_column == "product_code"
    assert by_source["code"].is_primary_key
    assert by_source["code"].data_type is DataType.VARCHAR
    assert not by_source["memo"].is_active
