"""Tests for the column data types."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from sqlspine.errors import DataBindingError
from sqlspine.types import (
    BooleanType,
    ClobType,
    DoubleType,
    FloatType,
    IntegerType,
    JsonType,
    LongType,
    SqlTypeCode,
    TimestampType,
    VarcharType,
    id_type,
)


class RecordingSink:
    """Collects what a data type binds."""

    def __init__(self):
        self.bound: dict[int, tuple[object, SqlTypeCode]] = {}

    def set_parameter(self, position, value, type_code):
        self.bound[position] = (value, type_code)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


# =========================================================================
# DDL rendering
# =========================================================================


class TestRender:
    @pytest.mark.parametrize(
        "data_type, expected",
        [
            (IntegerType(), "INTEGER"),
            (LongType(), "BIGINT"),
            (FloatType(), "REAL"),
            (DoubleType(), "DOUBLE"),
            (VarcharType(1024), "VARCHAR(1024)"),
            (ClobType(), "CLOB"),
            (JsonType(), "JSON"),
            (TimestampType(), "TIMESTAMP"),
            (BooleanType(), "BOOLEAN"),
        ],
    )
    def test_render(self, data_type, expected):
        assert data_type.render() == expected
        assert str(data_type) == expected

    def test_id_type(self):
        assert id_type() == VarcharType(1024)

    def test_varchar_length_must_be_positive(self):
        with pytest.raises(ValueError):
            VarcharType(0)

    def test_types_are_values(self):
        assert VarcharType(10) == VarcharType(10)
        assert VarcharType(10) != VarcharType(11)
        assert hash(JsonType()) == hash(JsonType())


# =========================================================================
# Binding
# =========================================================================


class TestBind:
    @pytest.mark.parametrize(
        "data_type, code",
        [
            (IntegerType(), SqlTypeCode.INTEGER),
            (LongType(), SqlTypeCode.BIGINT),
            (DoubleType(), SqlTypeCode.DOUBLE),
            (VarcharType(), SqlTypeCode.VARCHAR),
            (TimestampType(), SqlTypeCode.TIMESTAMP),
            (BooleanType(), SqlTypeCode.BOOLEAN),
        ],
    )
    def test_none_binds_typed_null(self, sink, data_type, code):
        data_type.bind(sink, 0, None)
        assert sink.bound[0] == (None, code)

    def test_integer_binds_int(self, sink):
        IntegerType().bind(sink, 2, 7)
        assert sink.bound[2] == (7, SqlTypeCode.INTEGER)

    def test_integer_rejects_bool_and_text(self, sink):
        with pytest.raises(DataBindingError) as exc_info:
            IntegerType().bind(sink, 0, "7")
        assert exc_info.value.value == "7"
        assert exc_info.value.type_name == "INTEGER"
        with pytest.raises(DataBindingError):
            IntegerType().bind(sink, 0, True)

    def test_float_accepts_int(self, sink):
        DoubleType().bind(sink, 0, 3)
        assert sink.bound[0] == (3.0, SqlTypeCode.DOUBLE)

    def test_varchar_converts_to_text(self, sink):
        VarcharType().bind(sink, 0, 42)
        assert sink.bound[0] == ("42", SqlTypeCode.VARCHAR)

    def test_clob_requires_text(self, sink):
        with pytest.raises(DataBindingError):
            ClobType().bind(sink, 0, b"bytes")

    def test_json_serializes_documents(self, sink):
        JsonType().bind(sink, 0, {"a": [1, 2]})
        assert sink.bound[0] == ('{"a": [1, 2]}', SqlTypeCode.OTHER)

    def test_json_passes_text_through(self, sink):
        JsonType().bind(sink, 0, '{"a": 1}')
        assert sink.bound[0][0] == '{"a": 1}'

    def test_timestamp_native_and_iso_text(self, sink):
        moment = datetime(2024, 3, 1, 12, 30, 15)
        TimestampType().bind(sink, 0, moment)
        TimestampType(iso_text=True).bind(sink, 1, moment)
        assert sink.bound[0][0] == moment
        assert sink.bound[1][0] == "2024-03-01 12:30:15"

    def test_timestamp_accepts_date(self, sink):
        TimestampType().bind(sink, 0, date(2024, 3, 1))
        assert sink.bound[0][0] == datetime(2024, 3, 1)

    def test_boolean_requires_bool(self, sink):
        with pytest.raises(DataBindingError):
            BooleanType().bind(sink, 0, 1)


# =========================================================================
# Extraction
# =========================================================================


class TestExtract:
    def test_null_stays_none(self):
        assert IntegerType().extract((None,), 0) is None
        assert TimestampType().extract((None,), 0) is None

    def test_boolean_from_integer(self):
        assert BooleanType().extract((1, 0), 0) is True
        assert BooleanType().extract((1, 0), 1) is False

    def test_timestamp_from_text(self):
        assert TimestampType().extract(("2024-03-01 12:30:15",), 0) == datetime(2024, 3, 1, 12, 30, 15)

    def test_clob_from_bytes(self):
        assert ClobType().extract((b"text",), 0) == "text"

    def test_json_from_decoded_document(self):
        assert JsonType().extract(({"a": 1},), 0) == '{"a": 1}'

    def test_bad_value_raises_binding_error(self):
        with pytest.raises(DataBindingError) as exc_info:
            IntegerType().extract(("not a number",), 0)
        assert exc_info.value.value == "not a number"
        assert isinstance(exc_info.value.cause, ValueError)


# =========================================================================
# Logging
# =========================================================================


class TestLogText:
    def test_null(self):
        assert LongType().log_text(None) == "null"
        assert VarcharType().log_text(None) == "null"

    def test_strings_are_quoted(self):
        assert VarcharType().log_text("bob") == "'bob'"
        assert ClobType().log_text("text") == "'text'"
        assert JsonType().log_text({"a": 1}) == "'{\"a\": 1}'"

    def test_numbers_and_booleans(self):
        assert IntegerType().log_text(5) == "5"
        assert DoubleType().log_text(1.5) == "1.5"
        assert BooleanType().log_text(True) == "true"

    def test_timestamp_iso(self):
        assert TimestampType().log_text(datetime(2024, 3, 1, 12, 0)) == "2024-03-01T12:00:00"

    def test_numeric_types_align_right(self):
        assert IntegerType().is_right_aligned()
        assert LongType().is_right_aligned()
        assert DoubleType().is_right_aligned()
        assert not VarcharType().is_right_aligned()
        assert not BooleanType().is_right_aligned()


class TestPlaceholder:
    def test_default_marker(self):
        assert VarcharType().placeholder("?") == "?"
        assert VarcharType().placeholder("%s") == "%s"

    def test_json_template_wraps_marker(self):
        assert JsonType(placeholder_template="to_json({}::json)").placeholder("%s") == "to_json(%s::json)"
