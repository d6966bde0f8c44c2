from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from tablescan.converter import RecordConverter, coercer_for
from tablescan.decoders.abstract import PhysicalColumn, PhysicalSchema
from tablescan.domain import (
    ROW_POSITION,
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    IntegerType,
    LongType,
    Schema,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
    optional_field,
    required_field,
)
from tablescan.errors import TypeMismatchError
from tablescan.reconciler import map_physical, resolve

SAMPLE_UUID = UUID("12345678-1234-5678-1234-567812345678")


def _converter(read: Schema, physical_types, constants=None) -> RecordConverter:
    physical = PhysicalSchema(
        columns=tuple(
            PhysicalColumn(position=i, name=f"c{field_id}", field_id=field_id, field_type=field_type)
            for i, (field_id, field_type) in enumerate(physical_types)
        )
    )
    return RecordConverter(map_physical(read, physical, constants=constants), read, path="/tmp/f.avro")


class TestCoercers:
    @pytest.mark.parametrize(
        "field_type, value, expected",
        [
            (BooleanType(), True, True),
            (IntegerType(), 2**31 - 1, 2**31 - 1),
            (LongType(), -(2**63), -(2**63)),
            (DoubleType(), 3, 3.0),
            (DoubleType(), 1.5, 1.5),
            (DecimalType(precision=5, scale=2), Decimal("123.45"), Decimal("123.45")),
            (DateType(), date(2020, 3, 20), date(2020, 3, 20)),
            (TimeType(), time(10, 30), time(10, 30)),
            (StringType(), "x", "x"),
            (UUIDType(), SAMPLE_UUID.bytes, SAMPLE_UUID),
            (UUIDType(), str(SAMPLE_UUID), SAMPLE_UUID),
            (BinaryType(), bytearray(b"ab"), b"ab"),
            (FixedType(length=2), b"ab", b"ab"),
        ],
    )
    def test_accepted_values(self, field_type, value, expected):
        assert coercer_for(field_type)(value) == expected

    def test_timestamp_is_normalized_to_naive_utc(self):
        aware = datetime(2020, 3, 20, 12, tzinfo=timezone(timedelta(hours=2)))
        assert coercer_for(TimestampType())(aware) == datetime(2020, 3, 20, 10)

    def test_timestamptz_is_normalized_to_aware_utc(self):
        aware = datetime(2020, 3, 20, 12, tzinfo=timezone(timedelta(hours=2)))
        normalized = coercer_for(TimestamptzType())(aware)
        assert normalized == datetime(2020, 3, 20, 10, tzinfo=timezone.utc)
        assert normalized.utcoffset() == timedelta(0)
        assert coercer_for(TimestamptzType())(datetime(2020, 1, 1)).tzinfo is timezone.utc


class TestRecordConverter:
    def test_physical_constant_default_and_position(self):
        read = resolve(
            Schema(
                required_field(1, "data", StringType()),
                optional_field(2, "id", LongType()),
                optional_field(3, "dt", StringType()),
                optional_field(4, "score", DoubleType(), initial_default="1.5"),
            ),
            [1, 2, 3, 4, ROW_POSITION.field_id],
        )
        converter = _converter(read, [(1, StringType()), (2, IntegerType())], constants={3: "2020-03-20"})

        record = converter.convert(("a", 7), position=12)

        assert record.to_dict() == {"data": "a", "id": 7, "dt": "2020-03-20", "score": 1.5, "_pos": 12}
        assert record.schema == read

    @pytest.mark.parametrize(
        "field_type, value",
        [
            (IntegerType(), 2**31),
            (IntegerType(), True),
            (LongType(), "1"),
            (DoubleType(), "1.0"),
            (DecimalType(precision=5, scale=2), Decimal("1.5")),
            (DecimalType(precision=4, scale=2), Decimal("123.45")),
            (DecimalType(precision=5, scale=2), 1.5),
            (DateType(), datetime(2020, 1, 1)),
            (StringType(), b"bytes"),
            (UUIDType(), b"short"),
            (FixedType(length=3), b"ab"),
            (BooleanType(), 1),
        ],
    )
    def test_values_that_do_not_fit_are_type_mismatches(self, field_type, value):
        read = Schema(optional_field(1, "value", field_type))
        converter = _converter(read, [(1, field_type)])

        with pytest.raises(TypeMismatchError, match="'value'"):
            converter.convert((value,), position=0)

    def test_null_in_required_field_is_a_type_mismatch(self):
        read = Schema(required_field(1, "value", StringType()))
        converter = _converter(read, [(1, StringType())])

        assert converter.convert(("x",), position=0)["value"] == "x"
        with pytest.raises(TypeMismatchError, match="null value"):
            converter.convert((None,), position=1)

    def test_null_in_optional_field_is_kept(self):
        read = Schema(optional_field(1, "value", LongType()))
        assert _converter(read, [(1, LongType())]).convert((None,), position=0)["value"] is None

    def test_bad_constant_fails_before_any_row(self):
        read = Schema(optional_field(1, "value", LongType()))
        with pytest.raises(TypeMismatchError):
            _converter(read, [], constants={1: 2**64})

    def test_mapping_must_match_schema(self):
        read = Schema(optional_field(1, "value", LongType()))
        mapping = map_physical(read, PhysicalSchema(columns=()))
        with pytest.raises(ValueError):
            RecordConverter(mapping, Schema(optional_field(2, "other", LongType()), optional_field(3, "x", LongType())))
