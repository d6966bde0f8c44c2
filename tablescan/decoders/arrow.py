"""
Helpers shared by the Arrow-backed decoders (Parquet and ORC).
"""

from __future__ import annotations

from typing import List, Optional

import pyarrow as pa

from tablescan.decoders.abstract import PhysicalColumn, PhysicalSchema
from tablescan.domain.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    LongType,
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
)
from tablescan.errors import TypeMismatchError

FIELD_ID_KEY = b"PARQUET:field_id"

# Exceptions pyarrow raises for unreadable files (ArrowIOError is an OSError
# and is classified by errno before these are consulted).
ARROW_CORRUPT_ERRORS = (pa.ArrowException, ValueError, EOFError)


def logical_type(arrow_type: pa.DataType) -> Optional[PrimitiveType]:
    """Logical type of an Arrow column, or None when it has no primitive counterpart."""
    if isinstance(arrow_type, pa.ExtensionType):
        arrow_type = arrow_type.storage_type
    if pa.types.is_boolean(arrow_type):
        return BooleanType()
    if pa.types.is_int8(arrow_type) or pa.types.is_int16(arrow_type) or pa.types.is_int32(arrow_type):
        return IntegerType()
    if pa.types.is_uint8(arrow_type) or pa.types.is_uint16(arrow_type):
        return IntegerType()
    if pa.types.is_int64(arrow_type) or pa.types.is_uint32(arrow_type):
        return LongType()
    if pa.types.is_float32(arrow_type):
        return FloatType()
    if pa.types.is_float64(arrow_type):
        return DoubleType()
    if pa.types.is_decimal(arrow_type):
        return DecimalType(precision=arrow_type.precision, scale=arrow_type.scale)
    if pa.types.is_date(arrow_type):
        return DateType()
    if pa.types.is_time(arrow_type):
        return TimeType()
    if pa.types.is_timestamp(arrow_type):
        return TimestamptzType() if arrow_type.tz is not None else TimestampType()
    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return StringType()
    if pa.types.is_fixed_size_binary(arrow_type):
        return FixedType(length=arrow_type.byte_width)
    if pa.types.is_binary(arrow_type) or pa.types.is_large_binary(arrow_type):
        return BinaryType()
    return None


def field_id(field: pa.Field) -> Optional[int]:
    metadata = field.metadata or {}
    raw = metadata.get(FIELD_ID_KEY)
    return int(raw) if raw is not None else None


def physical_schema(arrow_schema: pa.Schema) -> PhysicalSchema:
    columns: List[PhysicalColumn] = []
    for position, field in enumerate(arrow_schema):
        columns.append(
            PhysicalColumn(
                position=position,
                name=field.name,
                field_id=field_id(field),
                field_type=logical_type(field.type),
                required=not field.nullable,
            )
        )
    return PhysicalSchema(columns=tuple(columns))


def _to_micros(array: pa.Array, target: pa.DataType, name: str, path: Optional[str]) -> pa.Array:
    try:
        return array.cast(target, safe=True)
    except pa.ArrowInvalid as exc:
        raise TypeMismatchError(name, f"nanosecond values cannot be read as microseconds: {exc}", path=path) from exc


def to_python(array: pa.Array, name: str, path: Optional[str] = None) -> list:
    """
    Python values of an Arrow column.

    Nanosecond timestamps and times are brought to microseconds, the finest
    unit Python's datetime types hold. A value with a sub-microsecond part
    raises `TypeMismatchError` rather than being truncated.
    """
    if isinstance(array, pa.ChunkedArray):
        array = array.combine_chunks()
    if isinstance(array.type, pa.ExtensionType):
        array = array.storage
    if pa.types.is_timestamp(array.type) and array.type.unit == "ns":
        array = _to_micros(array, pa.timestamp("us", tz=array.type.tz), name, path)
    elif pa.types.is_time64(array.type) and array.type.unit == "ns":
        array = _to_micros(array, pa.time64("us"), name, path)
    return array.to_pylist()


__all__ = ["ARROW_CORRUPT_ERRORS", "FIELD_ID_KEY", "field_id", "logical_type", "physical_schema", "to_python"]
