"""
Record conversion: physical records in, self-describing records out.

The converter applies a `FieldMapping` to each physical tuple and checks every
value against the declared logical type. Representation differences between
decoders (timezone objects, 16-byte vs string UUIDs, integral floats) are
normalized here so that the same rows read from different formats compare
equal. Anything that does not fit the declared type is a `TypeMismatchError`.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, List, Optional
from uuid import UUID

from tablescan.decoders.abstract import PhysicalRecord
from tablescan.domain.record import Record
from tablescan.domain.schema import NestedField, Schema
from tablescan.domain.types import (
    INT_MAX,
    INT_MIN,
    LONG_MAX,
    LONG_MIN,
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
    UUIDType,
)
from tablescan.errors import TypeMismatchError
from tablescan.reconciler import AccessorKind, FieldMapping

Coercer = Callable[[Any], Any]


class _Mismatch(Exception):
    """Raised by coercers; wrapped with field and path by the converter."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _integer(low: int, high: int) -> Coercer:
    def coerce(value: Any) -> Any:
        if not _is_int(value):
            raise _Mismatch(f"expected an integer, got {type(value).__name__}")
        if not low <= value <= high:
            raise _Mismatch(f"value {value} out of range [{low}, {high}]")
        return value

    return coerce


def _floating(value: Any) -> Any:
    if isinstance(value, float):
        return value
    if _is_int(value):
        return float(value)
    raise _Mismatch(f"expected a float, got {type(value).__name__}")


def _decimal(field_type: DecimalType) -> Coercer:
    def coerce(value: Any) -> Any:
        if not isinstance(value, Decimal):
            raise _Mismatch(f"expected a Decimal, got {type(value).__name__}")
        sign, digits, exponent = value.as_tuple()
        if exponent != -field_type.scale:
            raise _Mismatch(f"decimal {value} does not have scale {field_type.scale}")
        if len(digits) > field_type.precision:
            raise _Mismatch(f"decimal {value} exceeds precision {field_type.precision}")
        return value

    return coerce


def _boolean(value: Any) -> Any:
    if not isinstance(value, bool):
        raise _Mismatch(f"expected a bool, got {type(value).__name__}")
    return value


def _date(value: Any) -> Any:
    if not isinstance(value, date) or isinstance(value, datetime):
        raise _Mismatch(f"expected a date, got {type(value).__name__}")
    return value


def _time(value: Any) -> Any:
    if not isinstance(value, time):
        raise _Mismatch(f"expected a time, got {type(value).__name__}")
    return value


def _timestamp(value: Any) -> Any:
    if not isinstance(value, datetime):
        raise _Mismatch(f"expected a datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _timestamptz(value: Any) -> Any:
    if not isinstance(value, datetime):
        raise _Mismatch(f"expected a datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _string(value: Any) -> Any:
    if not isinstance(value, str):
        raise _Mismatch(f"expected a str, got {type(value).__name__}")
    return value


def _uuid(value: Any) -> Any:
    if isinstance(value, UUID):
        return value
    try:
        if isinstance(value, (bytes, bytearray)):
            return UUID(bytes=bytes(value))
        if isinstance(value, str):
            return UUID(value)
    except ValueError as exc:
        raise _Mismatch(f"invalid UUID {value!r}") from exc
    raise _Mismatch(f"expected a UUID, got {type(value).__name__}")


def _binary(value: Any) -> Any:
    if not isinstance(value, (bytes, bytearray)):
        raise _Mismatch(f"expected bytes, got {type(value).__name__}")
    return bytes(value)


def _fixed(field_type: FixedType) -> Coercer:
    def coerce(value: Any) -> Any:
        value = _binary(value)
        if len(value) != field_type.length:
            raise _Mismatch(f"expected {field_type.length} bytes, got {len(value)}")
        return value

    return coerce


def coercer_for(field_type: PrimitiveType) -> Coercer:
    """Check-and-normalize function for non-null values of `field_type`."""
    if isinstance(field_type, BooleanType):
        return _boolean
    if isinstance(field_type, IntegerType):
        return _integer(INT_MIN, INT_MAX)
    if isinstance(field_type, LongType):
        return _integer(LONG_MIN, LONG_MAX)
    if isinstance(field_type, (FloatType, DoubleType)):
        return _floating
    if isinstance(field_type, DecimalType):
        return _decimal(field_type)
    if isinstance(field_type, DateType):
        return _date
    if isinstance(field_type, TimeType):
        return _time
    if isinstance(field_type, TimestampType):
        return _timestamp
    if isinstance(field_type, TimestamptzType):
        return _timestamptz
    if isinstance(field_type, StringType):
        return _string
    if isinstance(field_type, UUIDType):
        return _uuid
    if isinstance(field_type, FixedType):
        return _fixed(field_type)
    if isinstance(field_type, BinaryType):
        return _binary
    raise ValueError(f"No converter for type {field_type}")


class RecordConverter:
    """
    Converts physical records of one split into `Record`s of the read schema.

    Parameters
    ----------
    mapping : FieldMapping
        Result of `map_physical` for the split's file.
    read_schema : Schema
        Schema of the produced records; must be the schema `mapping` was built from.
    path : str, optional
        File path for error messages.
    """

    def __init__(self, mapping: FieldMapping, read_schema: Schema, path: Optional[str] = None) -> None:
        if len(mapping) != len(read_schema):
            raise ValueError("Field mapping does not match the read schema")
        self.mapping = mapping
        self.read_schema = read_schema
        self.path = path
        self._coercers: List[Coercer] = [coercer_for(accessor.field.field_type) for accessor in mapping]
        # Constants and defaults are the same for every row: check them once.
        self._fixed_values: List[Any] = [
            self._check(accessor.field, coerce, accessor.value)
            if accessor.kind in (AccessorKind.CONSTANT, AccessorKind.DEFAULT)
            else None
            for accessor, coerce in zip(mapping, self._coercers)
        ]

    def _check(self, field: NestedField, coerce: Coercer, value: Any) -> Any:
        if value is None:
            if field.required:
                raise TypeMismatchError(field.name, "null value in a required field", path=self.path)
            return None
        try:
            return coerce(value)
        except _Mismatch as exc:
            raise TypeMismatchError(field.name, str(exc), path=self.path) from None

    def convert(self, physical: PhysicalRecord, position: int) -> Record:
        """
        Build the output record for one physical record.

        Parameters
        ----------
        physical : tuple
            Values aligned to `mapping.physical_columns`.
        position : int
            Row ordinal of the record within its file.
        """
        values = []
        for accessor, coerce, fixed in zip(self.mapping.accessors, self._coercers, self._fixed_values):
            kind = accessor.kind
            if kind is AccessorKind.PHYSICAL:
                values.append(self._check(accessor.field, coerce, physical[accessor.index]))
            elif kind is AccessorKind.ROW_POSITION:
                values.append(position)
            else:
                values.append(fixed)
        return Record(self.read_schema, values)


__all__ = ["RecordConverter", "coercer_for"]
