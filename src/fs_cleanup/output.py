"""Render result rows as a rich table, JSON or CSV."""

from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from typing import IO, Any

from rich.console import Console
from rich.table import Table

Row = dict[str, Any]


def write_json(rows: Sequence[Row], stream: IO[str]) -> None:
    """Write rows as an indented JSON array."""
    json.dump(list(rows), stream, indent=2, default=str)
    stream.write("\n")


def write_csv(rows: Sequence[Row], headers: Sequence[str], stream: IO[str]) -> None:
    """Write rows as CSV with a header line. Missing values become empty cells."""
    writer = csv.writer(stream)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])


def print_table(console: Console, title: str, rows: Sequence[Row], headers: Sequence[str]) -> None:
    """Print rows as a rich table."""
    table = Table(title=title)
    for i, header in enumerate(headers):
        table.add_column(header.replace("_", " ").title(), style="cyan" if i == 0 else "green")
    for row in rows:
        table.add_row(*("" if row.get(h) is None else str(row.get(h)) for h in headers))
    console.print(table)


def emit(
    rows: Sequence[Row],
    headers: Sequence[str],
    *,
    output_format: str,
    stream: IO[str] | None = None,
    console: Console | None = None,
    title: str = "",
) -> None:
    """Send rows to the requested destination.

    Args:
        rows: Result rows keyed by header.
        headers: Column order.
        output_format: ``json``, ``csv`` or empty for a console table.
        stream: Destination for JSON/CSV.
        console: Destination for the table.
        title: Table title.

    """
    if output_format == "json":
        if stream is not None:
            write_json(rows, stream)
    elif output_format == "csv":
        if stream is not None:
            write_csv(rows, headers, stream)
    elif console is not None and rows:
        print_table(console, title, rows, headers)
