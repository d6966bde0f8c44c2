"""
Logical primitive types of a table schema.

Types are immutable pydantic models so they can be embedded in schema models,
compared, hashed, and round-tripped through their string form
(e.g. "long", "decimal(9, 2)", "fixed[16]").
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, ClassVar, Dict, Type
from uuid import UUID

from pydantic import BaseModel, Field

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1
LONG_MIN = -(2**63)
LONG_MAX = 2**63 - 1

_DECIMAL_RE = re.compile(r"^decimal\(\s*(\d+)\s*,\s*(\d+)\s*\)$")
_FIXED_RE = re.compile(r"^fixed\[\s*(\d+)\s*\]$")


class PrimitiveType(BaseModel):
    """
    Base class for logical primitive types.
    """

    type_name: ClassVar[str] = ""

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return self.type_name

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class BooleanType(PrimitiveType):
    type_name: ClassVar[str] = "boolean"


class IntegerType(PrimitiveType):
    """Signed 32-bit integer."""

    type_name: ClassVar[str] = "int"


class LongType(PrimitiveType):
    """Signed 64-bit integer."""

    type_name: ClassVar[str] = "long"


class FloatType(PrimitiveType):
    type_name: ClassVar[str] = "float"


class DoubleType(PrimitiveType):
    type_name: ClassVar[str] = "double"


class DateType(PrimitiveType):
    type_name: ClassVar[str] = "date"


class TimeType(PrimitiveType):
    """Time of day, microsecond precision, no zone."""

    type_name: ClassVar[str] = "time"


class TimestampType(PrimitiveType):
    """Timestamp without zone, microsecond precision."""

    type_name: ClassVar[str] = "timestamp"


class TimestamptzType(PrimitiveType):
    """Timestamp with zone, stored as UTC, microsecond precision."""

    type_name: ClassVar[str] = "timestamptz"


class StringType(PrimitiveType):
    type_name: ClassVar[str] = "string"


class UUIDType(PrimitiveType):
    type_name: ClassVar[str] = "uuid"


class BinaryType(PrimitiveType):
    type_name: ClassVar[str] = "binary"


class FixedType(PrimitiveType):
    type_name: ClassVar[str] = "fixed"

    length: int = Field(..., gt=0)

    def __str__(self) -> str:
        return f"fixed[{self.length}]"

    def __repr__(self) -> str:
        return f"FixedType(length={self.length})"


class DecimalType(PrimitiveType):
    type_name: ClassVar[str] = "decimal"

    precision: int = Field(..., gt=0, le=38)
    scale: int = Field(..., ge=0)

    def __str__(self) -> str:
        return f"decimal({self.precision}, {self.scale})"

    def __repr__(self) -> str:
        return f"DecimalType(precision={self.precision}, scale={self.scale})"


_SIMPLE_TYPES: Dict[str, Type[PrimitiveType]] = {
    cls.type_name: cls
    for cls in (
        BooleanType,
        IntegerType,
        LongType,
        FloatType,
        DoubleType,
        DateType,
        TimeType,
        TimestampType,
        TimestamptzType,
        StringType,
        UUIDType,
        BinaryType,
    )
}


def parse_type(text: str) -> PrimitiveType:
    """
    Parse the string form of a primitive type.

    Raises
    ------
    ValueError
        If the string does not name a supported primitive type.
    """
    normalized = text.strip().lower()
    simple = _SIMPLE_TYPES.get(normalized)
    if simple is not None:
        return simple()
    match = _DECIMAL_RE.match(normalized)
    if match:
        return DecimalType(precision=int(match.group(1)), scale=int(match.group(2)))
    match = _FIXED_RE.match(normalized)
    if match:
        return FixedType(length=int(match.group(1)))
    raise ValueError(f"Unsupported type: {text!r}")


def can_promote(physical: PrimitiveType, declared: PrimitiveType) -> bool:
    """
    Whether values written as `physical` may be read as `declared`.

    Only widening promotions are allowed; anything that could truncate is not.
    """
    if physical == declared:
        return True
    if isinstance(declared, LongType):
        return isinstance(physical, IntegerType)
    if isinstance(declared, DoubleType):
        return isinstance(physical, FloatType)
    if isinstance(declared, DecimalType) and isinstance(physical, DecimalType):
        return physical.scale == declared.scale and physical.precision <= declared.precision
    if isinstance(declared, BinaryType):
        return isinstance(physical, FixedType)
    if isinstance(declared, UUIDType):
        if isinstance(physical, FixedType):
            return physical.length == 16
        return isinstance(physical, (StringType, BinaryType))
    return False


def parse_literal(field_type: PrimitiveType, value: Any) -> Any:
    """
    Convert a JSON-friendly literal (as found in schema defaults or CLI
    arguments) into the Python value of `field_type`.

    Values that already have a non-string Python form are returned unchanged;
    the record converter validates them later.
    """
    if value is None or not isinstance(value, str):
        return value
    if isinstance(field_type, BooleanType):
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"Invalid boolean literal: {value!r}")
        return lowered == "true"
    if isinstance(field_type, (IntegerType, LongType)):
        return int(value)
    if isinstance(field_type, (FloatType, DoubleType)):
        return float(value)
    if isinstance(field_type, DecimalType):
        return Decimal(value).quantize(Decimal(1).scaleb(-field_type.scale))
    if isinstance(field_type, DateType):
        return date.fromisoformat(value)
    if isinstance(field_type, TimeType):
        return time.fromisoformat(value)
    if isinstance(field_type, TimestampType):
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    if isinstance(field_type, TimestamptzType):
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    if isinstance(field_type, UUIDType):
        return UUID(value)
    if isinstance(field_type, (BinaryType, FixedType)):
        return bytes.fromhex(value)
    return value


__all__ = [
    "INT_MIN",
    "INT_MAX",
    "LONG_MIN",
    "LONG_MAX",
    "PrimitiveType",
    "BooleanType",
    "IntegerType",
    "LongType",
    "FloatType",
    "DoubleType",
    "DateType",
    "TimeType",
    "TimestampType",
    "TimestamptzType",
    "StringType",
    "UUIDType",
    "BinaryType",
    "FixedType",
    "DecimalType",
    "parse_type",
    "can_promote",
    "parse_literal",
]
