"""
Avro decoder: self-describing row format, read record by record with fastavro.

Field ids come from the `field-id` attribute that table writers attach to each
record field in the embedded writer schema. Avro files carry no column
statistics, so no pushdown is applied.

Avro splits cover whole files: a split starting past byte 0 yields no rows.
"""

from __future__ import annotations

import json
import zlib
from typing import Any, Dict, Iterator, List, Optional, Tuple

import fastavro

from tablescan.decoders.abstract import DecoderHandle, FormatDecoder, PhysicalColumn, PhysicalRecord, PhysicalSchema
from tablescan.domain.split import FileFormat
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
)
from tablescan.utils.logging import get_logger

log = get_logger(__name__)

_PRIMITIVES: Dict[str, PrimitiveType] = {
    "boolean": BooleanType(),
    "int": IntegerType(),
    "long": LongType(),
    "float": FloatType(),
    "double": DoubleType(),
    "string": StringType(),
    "bytes": BinaryType(),
    "enum": StringType(),
}


def _strip_null(avro_type: Any) -> Tuple[Any, bool]:
    """Unwrap an optional union; returns (inner type, required)."""
    if isinstance(avro_type, list):
        branches = [branch for branch in avro_type if branch != "null"]
        if len(branches) != 1:
            return None, False
        return branches[0], len(branches) == len(avro_type)
    return avro_type, True


def _logical_type(avro_type: Any, named: Dict[str, Any]) -> Optional[PrimitiveType]:
    if isinstance(avro_type, str):
        if avro_type in _PRIMITIVES:
            return _PRIMITIVES[avro_type]
        resolved = named.get(avro_type)
        return _logical_type(resolved, named) if resolved is not None else None
    if not isinstance(avro_type, dict):
        return None

    base = avro_type.get("type")
    if base in ("record", "fixed", "enum") and "name" in avro_type:
        named[avro_type["name"]] = avro_type
    logical = avro_type.get("logicalType")

    if logical == "decimal":
        return DecimalType(precision=avro_type["precision"], scale=avro_type.get("scale", 0))
    if logical == "uuid":
        return UUIDType()
    if logical == "date":
        return DateType()
    if logical in ("time-millis", "time-micros"):
        return TimeType()
    if logical in ("timestamp-millis", "timestamp-micros"):
        return TimestamptzType() if avro_type.get("adjust-to-utc", True) else TimestampType()
    if logical in ("local-timestamp-millis", "local-timestamp-micros"):
        return TimestampType()
    if base == "fixed":
        return FixedType(length=avro_type["size"])
    if isinstance(base, str) and base in _PRIMITIVES:
        return _PRIMITIVES[base]
    return None


def _physical_schema(writer_schema: Dict[str, Any]) -> PhysicalSchema:
    named: Dict[str, Any] = {}
    columns: List[PhysicalColumn] = []
    for position, field in enumerate(writer_schema.get("fields", [])):
        inner, required = _strip_null(field["type"])
        field_id = field.get("field-id")
        columns.append(
            PhysicalColumn(
                position=position,
                name=field["name"],
                field_id=int(field_id) if field_id is not None else None,
                field_type=_logical_type(inner, named) if inner is not None else None,
                required=required,
            )
        )
    return PhysicalSchema(columns=tuple(columns))


class _AvroHandle(DecoderHandle):
    corrupt_errors = (ValueError, EOFError, KeyError, IndexError, TypeError, zlib.error)

    def _read_physical_schema(self) -> PhysicalSchema:
        self._reader = fastavro.reader(self._stream)
        raw_schema = self._reader.metadata.get("avro.schema")
        writer_schema = json.loads(raw_schema) if raw_schema else self._reader.writer_schema
        if not isinstance(writer_schema, dict) or writer_schema.get("type") != "record":
            raise ValueError("Avro data file does not hold records")
        return _physical_schema(writer_schema)

    def _iter_rows(self, columns: Tuple[int, ...]) -> Iterator[Tuple[int, PhysicalRecord]]:
        if self.split.start > 0:
            log.debug("Avro split does not start the file; nothing to read", extra={"path": self.split.path})
            return
        names = [self.physical_schema.columns[position].name for position in columns]
        for position, datum in enumerate(self._reader):
            yield position, tuple(datum[name] for name in names)


class AvroDecoder(FormatDecoder):
    """Decoder for Avro object container files."""

    file_format = FileFormat.AVRO
    handle_class = _AvroHandle


__all__ = ["AvroDecoder"]
