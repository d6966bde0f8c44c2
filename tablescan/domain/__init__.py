"""
Domain package for the table-scan reader.

Exports the schema, type, split and record models shared by the reconciler,
decoders, converter and reader. Keep this package focused on data definitions
and validation concerns.
"""

from tablescan.domain.record import Record
from tablescan.domain.schema import (
    FILE_PATH,
    METADATA_COLUMNS,
    ROW_POSITION,
    NestedField,
    Schema,
    is_metadata_column,
    optional_field,
    required_field,
)
from tablescan.domain.split import FileFormat, FileSplit
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
    UUIDType,
    can_promote,
    parse_literal,
    parse_type,
)

__all__ = [
    # Types
    "PrimitiveType",
    "BooleanType",
    "IntegerType",
    "LongType",
    "FloatType",
    "DoubleType",
    "DecimalType",
    "DateType",
    "TimeType",
    "TimestampType",
    "TimestamptzType",
    "StringType",
    "UUIDType",
    "BinaryType",
    "FixedType",
    "parse_type",
    "parse_literal",
    "can_promote",
    # Schema
    "NestedField",
    "Schema",
    "required_field",
    "optional_field",
    "FILE_PATH",
    "ROW_POSITION",
    "METADATA_COLUMNS",
    "is_metadata_column",
    # Splits and records
    "FileFormat",
    "FileSplit",
    "Record",
]
