"""
Sample data generation for the table-scan reader.

Writes the same deterministic pseudo-random rows as Avro, Parquet and ORC
files so that scans over different formats can be compared. Avro and Parquet
files carry field ids the way table writers embed them (`field-id` in the
Avro schema, `PARQUET:field_id` in the Parquet schema); ORC files are written
through pyarrow and carry names only.
"""

from __future__ import annotations

import json
import random
import sys
import time as time_module
import uuid
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import fastavro
import pyarrow as pa
import pyarrow.parquet as pq
import typer
from pyarrow import orc

from tablescan.domain.schema import NestedField, Schema, optional_field, required_field
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

app = typer.Typer(help="Generate sample Avro, Parquet and ORC data files.")

SAMPLE_SCHEMA = Schema(
    required_field(1, "data", StringType()),
    required_field(2, "id", LongType()),
    optional_field(3, "category", StringType()),
    optional_field(4, "amount", DecimalType(precision=10, scale=2)),
    optional_field(5, "created_at", TimestampType()),
)

_CATEGORIES = ["alpha", "beta", "gamma", "delta"]
_EPOCH = datetime(2020, 1, 1)


def arrow_type(field_type: PrimitiveType) -> pa.DataType:
    if isinstance(field_type, BooleanType):
        return pa.bool_()
    if isinstance(field_type, IntegerType):
        return pa.int32()
    if isinstance(field_type, LongType):
        return pa.int64()
    if isinstance(field_type, FloatType):
        return pa.float32()
    if isinstance(field_type, DoubleType):
        return pa.float64()
    if isinstance(field_type, DecimalType):
        return pa.decimal128(field_type.precision, field_type.scale)
    if isinstance(field_type, DateType):
        return pa.date32()
    if isinstance(field_type, TimeType):
        return pa.time64("us")
    if isinstance(field_type, TimestamptzType):
        return pa.timestamp("us", tz="UTC")
    if isinstance(field_type, TimestampType):
        return pa.timestamp("us")
    if isinstance(field_type, StringType):
        return pa.string()
    if isinstance(field_type, UUIDType):
        return pa.binary(16)
    if isinstance(field_type, FixedType):
        return pa.binary(field_type.length)
    if isinstance(field_type, BinaryType):
        return pa.binary()
    raise ValueError(f"No Arrow type for {field_type}")


def avro_type(field: NestedField) -> Any:
    field_type = field.field_type
    if isinstance(field_type, BooleanType):
        base: Any = "boolean"
    elif isinstance(field_type, IntegerType):
        base = "int"
    elif isinstance(field_type, LongType):
        base = "long"
    elif isinstance(field_type, FloatType):
        base = "float"
    elif isinstance(field_type, DoubleType):
        base = "double"
    elif isinstance(field_type, DecimalType):
        base = {"type": "bytes", "logicalType": "decimal", "precision": field_type.precision, "scale": field_type.scale}
    elif isinstance(field_type, DateType):
        base = {"type": "int", "logicalType": "date"}
    elif isinstance(field_type, TimeType):
        base = {"type": "long", "logicalType": "time-micros"}
    elif isinstance(field_type, TimestamptzType):
        base = {"type": "long", "logicalType": "timestamp-micros", "adjust-to-utc": True}
    elif isinstance(field_type, TimestampType):
        base = {"type": "long", "logicalType": "local-timestamp-micros"}
    elif isinstance(field_type, StringType):
        base = "string"
    elif isinstance(field_type, UUIDType):
        base = {"type": "string", "logicalType": "uuid"}
    elif isinstance(field_type, FixedType):
        base = {"type": "fixed", "name": f"fixed_{field.field_id}", "size": field_type.length}
    elif isinstance(field_type, BinaryType):
        base = "bytes"
    else:
        raise ValueError(f"No Avro type for {field_type}")
    return base if field.required else ["null", base]


def arrow_schema(schema: Schema, field_ids: bool = True) -> pa.Schema:
    fields = []
    for field in schema.fields:
        metadata = {b"PARQUET:field_id": str(field.field_id).encode()} if field_ids else None
        fields.append(pa.field(field.name, arrow_type(field.field_type), nullable=not field.required, metadata=metadata))
    return pa.schema(fields)


def avro_schema(schema: Schema, name: str = "table") -> Dict[str, Any]:
    return {
        "type": "record",
        "name": name,
        "fields": [
            {"name": field.name, "type": avro_type(field), "field-id": field.field_id} for field in schema.fields
        ],
    }


def _arrow_value(field_type: PrimitiveType, value: Any) -> Any:
    if isinstance(field_type, UUIDType) and isinstance(value, uuid.UUID):
        return value.bytes
    return value


def arrow_table(schema: Schema, rows: Sequence[Dict[str, Any]], field_ids: bool = True) -> pa.Table:
    columns = [
        [_arrow_value(field.field_type, row.get(field.name)) for row in rows] for field in schema.fields
    ]
    target = arrow_schema(schema, field_ids=field_ids)
    arrays = [pa.array(values, type=target.field(i).type) for i, values in enumerate(columns)]
    return pa.Table.from_arrays(arrays, schema=target)


def write_parquet(path: Path, schema: Schema, rows: Sequence[Dict[str, Any]], row_group_size: Optional[int] = None) -> Path:
    pq.write_table(arrow_table(schema, rows), str(path), row_group_size=row_group_size)
    return path


def write_orc(path: Path, schema: Schema, rows: Sequence[Dict[str, Any]], stripe_size: Optional[int] = None) -> Path:
    kwargs = {"stripe_size": stripe_size} if stripe_size else {}
    orc.write_table(arrow_table(schema, rows, field_ids=False), str(path), **kwargs)
    return path


def write_avro(path: Path, schema: Schema, rows: Sequence[Dict[str, Any]], codec: str = "null") -> Path:
    parsed = fastavro.parse_schema(avro_schema(schema))
    records = [{field.name: row.get(field.name) for field in schema.fields} for row in rows]
    with Path(path).open("wb") as fo:
        fastavro.writer(fo, parsed, records, codec=codec)
    return path


WRITERS = {
    "avro": write_avro,
    "parquet": write_parquet,
    "orc": write_orc,
}


def write_file(path: Path, schema: Schema, rows: Sequence[Dict[str, Any]]) -> Path:
    """Write `rows` in the format named by the extension of `path`."""
    suffix = Path(path).suffix.lstrip(".")
    if suffix not in WRITERS:
        raise ValueError(f"Cannot write files with extension {suffix!r}")
    return WRITERS[suffix](Path(path), schema, rows)


def _random_value(rng: random.Random, field: NestedField, index: int) -> Any:
    field_type = field.field_type
    if not field.required and rng.random() < 0.1:
        return None
    if isinstance(field_type, BooleanType):
        return rng.choice([True, False])
    if isinstance(field_type, IntegerType):
        return rng.randint(-1000, 1000)
    if isinstance(field_type, LongType):
        return index
    if isinstance(field_type, (FloatType, DoubleType)):
        # Halves are exact in 32-bit floats, so every format round-trips them.
        return rng.randint(0, 20_000) / 2
    if isinstance(field_type, DecimalType):
        quantum = Decimal(1).scaleb(-field_type.scale)
        bound = min(10 ** field_type.precision - 1, 10**8)
        return (Decimal(rng.randint(-bound, bound)) * quantum).quantize(quantum)
    if isinstance(field_type, DateType):
        return _EPOCH.date() + timedelta(days=rng.randint(0, 1000))
    if isinstance(field_type, TimeType):
        return time(rng.randint(0, 23), rng.randint(0, 59), rng.randint(0, 59), rng.randint(0, 999_999))
    if isinstance(field_type, TimestamptzType):
        return (_EPOCH + timedelta(seconds=rng.randint(0, 10**8))).replace(tzinfo=timezone.utc)
    if isinstance(field_type, TimestampType):
        return _EPOCH + timedelta(seconds=rng.randint(0, 10**8), microseconds=rng.randint(0, 999_999))
    if isinstance(field_type, StringType):
        if field.name == "category":
            return rng.choice(_CATEGORIES)
        return f"{field.name}-{index}-{rng.randint(0, 10**6)}"
    if isinstance(field_type, UUIDType):
        return uuid.UUID(int=rng.getrandbits(128))
    if isinstance(field_type, FixedType):
        return bytes(rng.getrandbits(8) for _ in range(field_type.length))
    if isinstance(field_type, BinaryType):
        return bytes(rng.getrandbits(8) for _ in range(rng.randint(0, 16)))
    raise ValueError(f"Cannot generate values of type {field_type}")


def generate_rows(schema: Schema, rows: int, seed: int = 42) -> List[Dict[str, Any]]:
    """Deterministic pseudo-random rows for `schema`; long fields hold the row index."""
    rng = random.Random(seed)
    return [{field.name: _random_value(rng, field, index) for field in schema.fields} for index in range(rows)]


@app.command()
def main(
    out_dir: Path = typer.Option(Path("data"), "--out-dir", "-o", help="Directory for generated files."),
    rows: int = typer.Option(10_000, "--rows", "-r", min=0, help="Rows per file."),
    formats: List[str] = typer.Option(["avro", "parquet", "orc"], "--format", "-f", help="Formats to write."),
    seed: int = typer.Option(42, "--seed", help="Random seed for deterministic data."),
    schema_path: Optional[Path] = typer.Option(None, "--schema", help="Table schema JSON (default: sample schema)."),
) -> None:
    """
    Write the same generated rows once per format, plus the schema as JSON.
    """
    schema = Schema.from_json(schema_path.read_text(encoding="utf-8")) if schema_path else SAMPLE_SCHEMA
    unknown = [fmt for fmt in formats if fmt not in WRITERS]
    if unknown:
        typer.echo(f"Unknown format(s): {', '.join(unknown)}", err=True)
        sys.exit(1)

    out_dir.mkdir(parents=True, exist_ok=True)
    data = generate_rows(schema, rows, seed=seed)
    (out_dir / "schema.json").write_text(json.dumps(json.loads(schema.to_json()), indent=2), encoding="utf-8")

    for fmt in formats:
        started = time_module.perf_counter()
        path = write_file(out_dir / f"sample.{fmt}", schema, data)
        elapsed = time_module.perf_counter() - started
        typer.echo(f"Wrote {rows:,} rows to {path} ({path.stat().st_size:,} bytes) in {elapsed:.2f}s")


if __name__ == "__main__":
    app()
