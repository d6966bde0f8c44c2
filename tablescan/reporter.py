from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any, List, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tablescan.domain.record import Record
from tablescan.domain.schema import Schema
from tablescan.scan import SplitFailure
from tablescan.utils.profiler import ProfileStats


def format_value(value: Any) -> str:
    """
    Render one field value for terminal output.
    """
    if value is None:
        return "[dim]null[/dim]"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return escape(str(value))


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def record_to_json(record: Record) -> str:
    return json.dumps(record.to_dict(), default=_json_default)


def print_records(records: Sequence[Record], schema: Schema, title: str = "Scan Results") -> None:
    """
    Render records as a rich table, one column per field of `schema`.
    """
    console = Console()

    if not records:
        console.print("[yellow]No records matched.[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=f"{len(records):,} record(s)",
    )
    for field in schema.fields:
        header = f"{field.name}\n[dim]{field.field_type}[/dim]"
        table.add_column(header, style="cyan" if field.required else None, overflow="fold")

    for record in records:
        table.add_row(*[format_value(value) for value in record])

    console.print(table)


def print_profile(stats: ProfileStats, splits: int, failures: List[SplitFailure]) -> None:
    """
    Render the profile of a scan: rows, duration, throughput, peak memory and CPU.
    """
    console = Console()

    table = Table(title=f"Scan Profile: {stats.label}", box=box.ROUNDED)
    table.add_column("Splits", justify="right", style="blue")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Throughput (rows/s)", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("CPU %", justify="right", style="red")

    throughput = stats.rows_per_second
    mem_bytes = stats.peak_rss_bytes or 0
    table.add_row(
        str(splits),
        str(len(failures)),
        f"{stats.rows:,}",
        f"{stats.duration_seconds:.3f}",
        f"{throughput:,.2f}" if throughput is not None else "N/A",
        f"{mem_bytes / (1024 * 1024):.2f}",
        f"{stats.cpu_percent or 0.0:.1f}",
    )
    console.print(table)
