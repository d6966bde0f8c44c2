from __future__ import annotations

import itertools
import sys
from pathlib import Path
from typing import Dict, List, Optional

import typer

from tablescan.config import get_settings
from tablescan.decoders import available_formats
from tablescan.domain.schema import METADATA_COLUMNS, Schema
from tablescan.domain.split import FileFormat, FileSplit
from tablescan.domain.types import parse_literal
from tablescan.errors import TableScanError
from tablescan.reader import ReaderFunction
from tablescan.reporter import print_profile, print_records, record_to_json
from tablescan.scan import BoundedScan, SplitFailure
from tablescan.utils.logging import configure_logging
from tablescan.utils.profiler import profile_block

app = typer.Typer(help="Table-scan reader CLI: read Avro, Parquet and ORC data files through a table schema.")


def _load_schema(path: Path) -> Schema:
    try:
        return Schema.from_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot load schema from {path}: {exc}", param_hint="--schema") from exc


def _projection(schema: Schema, names: List[str], case_sensitive: bool) -> Optional[List[int]]:
    if not names:
        return None
    metadata = {field.name: field_id for field_id, field in METADATA_COLUMNS.items()}
    ids = []
    for name in names:
        if name in metadata and schema.find_field_or_none(name) is None:
            ids.append(metadata[name])
        else:
            ids.append(schema.find_field(name, case_sensitive=case_sensitive).field_id)
    return ids


def _partition(schema: Schema, pairs: List[str], case_sensitive: bool) -> Dict[int, object]:
    partition: Dict[int, object] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected name=value, got {pair!r}", param_hint="--partition")
        field = schema.find_field(name.strip(), case_sensitive=case_sensitive)
        try:
            partition[field.field_id] = parse_literal(field.field_type, value)
        except ValueError as exc:
            raise typer.BadParameter(f"Invalid value for {field.name}: {exc}", param_hint="--partition") from exc
    return partition


def _splits(paths: List[Path], file_format: Optional[str], partition: Dict[int, object]) -> List[FileSplit]:
    try:
        fmt = FileFormat(file_format.lower()) if file_format else None
        return [FileSplit.for_file(str(path), file_format=fmt, partition=partition) for path in paths]
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--format") from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"env={settings.app_env} log_level={settings.log_level} json_logs={settings.log_json} | "
        f"batch={settings.batch_size} parallelism={settings.scan_parallelism} "
        f"max_attempts={settings.split_max_attempts} case_sensitive={settings.case_sensitive}"
    )


@app.command()
def formats() -> None:
    """
    List the file formats that have a registered decoder.
    """
    typer.echo("Available formats: " + ", ".join(fmt.value for fmt in available_formats()))


@app.command()
def read(
    paths: List[Path] = typer.Argument(..., help="Data files to read, in order."),
    schema_path: Path = typer.Option(..., "--schema", help="Table schema as JSON."),
    select: List[str] = typer.Option([], "--select", "-s", help="Field to read (repeatable; default all)."),
    partition: List[str] = typer.Option([], "--partition", "-p", help="Partition value name=value (repeatable)."),
    file_format: Optional[str] = typer.Option(None, "--format", "-f", help="Format of every file (default: from extension)."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Stop after N records."),
    tolerant: bool = typer.Option(False, "--tolerant", help="Skip splits that fail instead of aborting."),
    json_output: bool = typer.Option(False, "--json", help="Print JSON lines instead of a table."),
    profile: bool = typer.Option(False, "--profile", help="Report duration, throughput, memory and CPU."),
) -> None:
    """
    Read data files through a table schema and print the records.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    table_schema = _load_schema(schema_path)
    try:
        reader = ReaderFunction(
            table_schema,
            projection=_projection(table_schema, select, settings.case_sensitive),
        )
        splits = _splits(paths, file_format, _partition(table_schema, partition, settings.case_sensitive))
        scan = BoundedScan(reader, splits, failure_policy="tolerant" if tolerant else "strict")

        failures: List[SplitFailure] = []
        with profile_block("read") as stats:
            if limit is not None:
                records = list(itertools.islice(scan, limit))
            else:
                result = scan.collect()
                records, failures = result.records, result.failures
            stats.rows = len(records)
    except TableScanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if json_output:
        for record in records:
            typer.echo(record_to_json(record))
    else:
        print_records(records, reader.read_schema)
    for failure in failures:
        typer.echo(f"Skipped {failure.split.path}: {failure.error}", err=True)
    if profile:
        print_profile(stats, len(splits), failures)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
