from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest
from pydantic import ValidationError

from tablescan.converter import coercer_for
from tablescan.domain import (
    FILE_PATH,
    ROW_POSITION,
    BinaryType,
    DecimalType,
    DoubleType,
    FileFormat,
    FileSplit,
    FixedType,
    FloatType,
    IntegerType,
    LongType,
    NestedField,
    Record,
    Schema,
    StringType,
    TimestampType,
    TimestamptzType,
    UUIDType,
    can_promote,
    is_metadata_column,
    optional_field,
    parse_literal,
    parse_type,
    required_field,
)
from tablescan.errors import UnresolvedFieldError

SCHEMA_JSON = {
    "type": "struct",
    "schema-id": 3,
    "fields": [
        {"id": 1, "name": "data", "required": True, "type": "string"},
        {"id": 2, "name": "id", "required": True, "type": "long"},
        {"id": 4, "name": "price", "required": False, "type": "decimal(9, 2)", "initial-default": "1.5"},
    ],
}


@pytest.mark.parametrize(
    "text, expected",
    [
        ("string", StringType()),
        (" LONG ", LongType()),
        ("decimal(9,2)", DecimalType(precision=9, scale=2)),
        ("decimal(38, 0)", DecimalType(precision=38, scale=0)),
        ("fixed[16]", FixedType(length=16)),
        ("timestamptz", TimestamptzType()),
    ],
)
def test_parse_type(text, expected):
    assert parse_type(text) == expected


@pytest.mark.parametrize("text", ["varchar", "decimal(39, 2)", "fixed[]", "list<int>"])
def test_parse_type_rejects_unknown(text):
    with pytest.raises(ValueError):
        parse_type(text)


def test_type_string_forms_round_trip():
    for field_type in (DecimalType(precision=9, scale=2), FixedType(length=3), UUIDType(), LongType()):
        assert parse_type(str(field_type)) == field_type


def test_distinct_types_are_not_equal():
    assert IntegerType() != LongType()
    assert DecimalType(precision=9, scale=2) != DecimalType(precision=10, scale=2)


@pytest.mark.parametrize(
    "physical, declared",
    [
        (IntegerType(), LongType()),
        (FloatType(), DoubleType()),
        (DecimalType(precision=9, scale=2), DecimalType(precision=18, scale=2)),
        (FixedType(length=4), BinaryType()),
        (FixedType(length=16), UUIDType()),
        (StringType(), UUIDType()),
        (BinaryType(), UUIDType()),
        (StringType(), StringType()),
    ],
)
def test_allowed_promotions(physical, declared):
    assert can_promote(physical, declared)


@pytest.mark.parametrize(
    "physical, declared",
    [
        (LongType(), IntegerType()),
        (DoubleType(), FloatType()),
        (DecimalType(precision=9, scale=1), DecimalType(precision=18, scale=2)),
        (DecimalType(precision=18, scale=2), DecimalType(precision=9, scale=2)),
        (FixedType(length=8), UUIDType()),
        (IntegerType(), StringType()),
        (IntegerType(), DoubleType()),
    ],
)
def test_rejected_promotions(physical, declared):
    assert not can_promote(physical, declared)


def test_parse_literal_converts_strings():
    assert parse_literal(LongType(), "42") == 42
    assert parse_literal(DecimalType(precision=9, scale=2), "1.5") == Decimal("1.50")
    assert parse_literal(parse_type("date"), "2020-03-20") == date(2020, 3, 20)
    assert parse_literal(TimestamptzType(), "2020-03-20T10:00:00") == datetime(2020, 3, 20, 10, tzinfo=timezone.utc)
    assert parse_literal(TimestampType(), "2020-03-20T10:00:00") == datetime(2020, 3, 20, 10)
    assert parse_literal(TimestampType(), "2020-03-20T10:00:00+02:00") == datetime(2020, 3, 20, 8)
    assert parse_literal(UUIDType(), "12345678-1234-5678-1234-567812345678") == UUID(
        "12345678-1234-5678-1234-567812345678"
    )
    assert parse_literal(BinaryType(), "cafe") == b"\xca\xfe"
    assert parse_literal(parse_type("boolean"), "TRUE") is True


def test_parse_literal_leaves_typed_values_alone():
    assert parse_literal(LongType(), 7) == 7
    assert parse_literal(StringType(), None) is None


def test_parse_literal_rejects_bad_boolean():
    with pytest.raises(ValueError):
        parse_literal(parse_type("boolean"), "yes")


class TestSchema:
    def test_from_json_parses_types_and_defaults(self):
        schema = Schema.from_json(json.dumps(SCHEMA_JSON))

        assert schema.schema_id == 3
        assert schema.column_names == ("data", "id", "price")
        price = schema.find_field("price")
        assert price.field_type == DecimalType(precision=9, scale=2)
        assert price.initial_default == Decimal("1.50")
        assert price.optional

    def test_to_json_uses_table_layout(self):
        schema = Schema.from_json(SCHEMA_JSON)

        payload = json.loads(schema.to_json())

        assert payload["type"] == "struct"
        assert payload["schema-id"] == 3
        assert payload["fields"][0] == {
            "id": 1,
            "name": "data",
            "type": "string",
            "required": True,
            "doc": None,
            "initial-default": None,
        }
        assert Schema.from_json(payload) == schema

    def test_duplicate_ids_are_rejected(self):
        with pytest.raises(ValidationError):
            Schema(required_field(1, "a", StringType()), optional_field(1, "b", LongType()))

    def test_duplicate_names_are_rejected(self):
        with pytest.raises(ValidationError):
            Schema(required_field(1, "a", StringType()), optional_field(2, "a", LongType()))

    def test_find_field_by_id_and_name(self):
        schema = Schema.from_json(SCHEMA_JSON)

        assert schema.find_field(2).name == "id"
        assert schema.find_field("ID", case_sensitive=False).field_id == 2
        assert schema.find_field_or_none("ID") is None
        with pytest.raises(UnresolvedFieldError):
            schema.find_field("missing")
        with pytest.raises(UnresolvedFieldError):
            schema.position_of(99)

    def test_select_keeps_schema_order(self):
        schema = Schema.from_json(SCHEMA_JSON)

        selected = schema.select("price", "data")

        assert selected.column_names == ("data", "price")
        assert schema.select_ids([4, 1]) == selected

    def test_schema_is_immutable(self):
        schema = Schema.from_json(SCHEMA_JSON)
        with pytest.raises(ValidationError):
            schema.schema_id = 9

    def test_str_lists_fields(self):
        schema = Schema(required_field(1, "data", StringType()))
        assert str(schema) == "table {1: data: required string}"


def test_metadata_columns_have_reserved_ids():
    assert is_metadata_column(FILE_PATH.field_id)
    assert is_metadata_column(ROW_POSITION.field_id)
    assert not is_metadata_column(1)
    assert ROW_POSITION.field_type == LongType()


class TestFileSplit:
    def test_for_file_infers_format(self):
        split = FileSplit.for_file("/warehouse/t/part-0.PARQUET", partition={3: "2020-03-20"})

        assert split.file_format is FileFormat.PARQUET
        assert split.partition == {3: "2020-03-20"}
        assert split.end is None
        assert split.contains_offset(10_000)

    def test_for_file_rejects_unknown_extension(self):
        with pytest.raises(ValueError):
            FileSplit.for_file("/warehouse/t/part-0.csv")

    def test_metadata_json_is_tagged_metadata(self):
        assert FileFormat.from_path("v1.metadata.json") is FileFormat.METADATA

    def test_byte_range(self):
        split = FileSplit(path="f.parquet", file_format="parquet", start=100, length=50)

        assert split.end == 150
        assert not split.contains_offset(99)
        assert split.contains_offset(100)
        assert split.contains_offset(149)
        assert not split.contains_offset(150)

    def test_start_past_file_size_is_rejected(self):
        with pytest.raises(ValidationError):
            FileSplit(path="f.avro", file_format="avro", start=10, file_size_in_bytes=5)

    def test_partition_keys_are_coerced_to_ids(self):
        split = FileSplit(path="f.orc", file_format="orc", partition={"3": "x"})
        assert split.partition == {3: "x"}

    def test_splits_are_hashable(self):
        split = FileSplit.for_file("f.avro")
        assert split in {split}


class TestRecord:
    @pytest.fixture
    def schema(self) -> Schema:
        return Schema(required_field(1, "data", StringType()), optional_field(2, "id", LongType()))

    def test_access_by_position_name_and_id(self, schema):
        record = Record(schema, ["a", 1])

        assert record[0] == "a"
        assert record["id"] == 1
        assert record.get_by_id(2) == 1
        assert record.get("missing", "fallback") == "fallback"
        assert record.to_dict() == {"data": "a", "id": 1}
        assert record.as_tuple() == ("a", 1)
        assert list(record) == ["a", 1]

    def test_wrong_arity_is_rejected(self, schema):
        with pytest.raises(ValueError):
            Record(schema, ["a"])

    def test_equality_uses_field_ids_and_values(self, schema):
        assert Record(schema, ["a", 1]) == Record.from_dict(schema, {"id": 1, "data": "a"})
        assert Record(schema, ["a", 1]) != Record(schema, ["a", 2])

    def test_select_narrows_record(self, schema):
        record = Record(schema, ["a", None])
        narrowed = record.select(schema.select("data"))

        assert narrowed.to_dict() == {"data": "a"}
        assert repr(narrowed) == "Record(data='a')"


def test_nested_field_accepts_aliases():
    field = NestedField.model_validate({"id": 7, "name": "x", "type": "int", "required": True})
    assert field.field_id == 7
    assert field.field_type == IntegerType()
    assert str(field) == "7: x: required int"


def test_timestamp_literal_agrees_with_converter():
    moment = datetime(2020, 3, 20, 10, tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=2)))
    assert parse_literal(TimestampType(), moment.isoformat()) == coercer_for(TimestampType())(moment)
