# Overview: CSV export of flat row dicts, and the download response wrapper.

from __future__ import annotations

import csv
import io
import re

from flask import Response


class ExportError(Exception):
    """Raised when there is nothing to export or rows are not flat."""
    pass


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_csv(rows: list[dict]) -> str:
    """
    Render flat dicts as CSV text.

    The header comes from the first row's keys, in insertion order; later
    rows are written in that column order (missing keys as empty cells).
    N rows produce N+1 lines. Line terminator is "\\n".
    """
    if not rows:
        raise ExportError("No data to export")

    if not all(isinstance(row, dict) for row in rows):
        raise ExportError("Rows must be dicts")

    columns = list(rows[0].keys())
    for row in rows:
        extra = [k for k in row.keys() if k not in columns]
        if extra:
            raise ExportError(f"Unexpected columns: {', '.join(extra)}")
        for value in row.values():
            if isinstance(value, (dict, list, tuple, set)):
                raise ExportError("Rows must be flat (no nested values)")

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, lineterminator="\n", restval="")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: _cell(v) for k, v in row.items()})
    return buf.getvalue()


def safe_filename(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_.-]+", "_", name.strip())
    return cleaned.strip("._") or "export"


def csv_response(rows: list[dict], filename: str) -> Response:
    """CSV download; filename gets a .csv suffix."""
    body = to_csv(rows)
    name = safe_filename(filename)
    if not name.lower().endswith(".csv"):
        name = f"{name}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )
