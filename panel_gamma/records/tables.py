"""Operator tables and sample tables.

File layouts (comma separated, one header line):

    graylevels.csv       Gray,Brightness
    measurements.csv     Index,Lv,x,y,T,duv                 (single mode)
    measured_rgbw.csv    Index,Channel,Gray,Lv,x,y,T,duv    (multi mode)
    targetxy.csv         SKU,x_min,x_max,y_min,y_max

Single-mode Lv is written as ``123.45f`` because the panel bring-up code
pastes the column straight into C sources.  Every reader tolerates that
suffix.

Writes are atomic (``src.utils.fs.atomic_write_text``); every row read is
validated through ``src.utils.validators``.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Iterable, Sequence

from src.utils import fs, validators

from panel_gamma.analysis.validation import WhitePointSpecTable
from panel_gamma.models.results import WhitePointWindow
from panel_gamma.models.samples import Channel, GrayLevel, MalformedInput, Sample

logger = logging.getLogger(__name__)

# Excel-exported tables start with a BOM
ENCODING = "utf-8-sig"

GRAY_PLAN_HEADER = "Gray,Brightness"
SINGLE_SAMPLE_HEADER = ["Index", "Lv", "x", "y", "T", "duv"]
MULTI_SAMPLE_HEADER = ["Index", "Channel", "Gray", "Lv", "x", "y", "T", "duv"]
SPEC_TABLE_COLUMNS = ("SKU", "x_min", "x_max", "y_min", "y_max")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def read_csv_rows(path: str | Path) -> tuple[list[str], list[tuple[int, list[str]]]]:
    """Return ``(header, [(line_no, cells), ...])`` skipping blank lines."""
    lines = fs.read_text_lines(path, encoding=ENCODING)
    if not lines:
        raise MalformedInput(f"{path} is empty")
    reader = csv.reader(lines)
    header = [c.strip() for c in next(reader)]
    rows = []
    for line_no, cells in enumerate(reader, start=2):
        if not any(c.strip() for c in cells):
            continue
        rows.append((line_no, [c.strip() for c in cells]))
    return header, rows


def render_csv(header: Sequence[str] | str, rows: Iterable[Sequence[object]]) -> str:
    """Render a table; a str *header* is written verbatim as the first line."""
    buf = io.StringIO()
    if isinstance(header, str):
        buf.write(header + "\n")
    writer = csv.writer(buf, lineterminator="\n")
    if not isinstance(header, str):
        writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def _fmt(value: float | None, pattern: str) -> str:
    return "" if value is None else format(value, pattern)


# ---------------------------------------------------------------------------
# Gray-level plan
# ---------------------------------------------------------------------------


def read_gray_plan(path: str | Path) -> tuple[str, list[GrayLevel]]:
    """Read the operator's gray-level plan.

    Returns
    -------
    tuple[str, list[GrayLevel]]
        The header line verbatim (so it can be written back unchanged) and
        the plan in file order.

    Raises
    ------
    ValueError
        If a row is not a valid gray level.
    """
    lines = fs.read_text_lines(path, encoding=ENCODING)
    if not lines:
        raise MalformedInput(f"{path} is empty")
    header = lines[0].strip()

    plan = []
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        parts = line.split(",")
        row = validators.validate_row(
            validators.GrayLevelRow,
            {
                "gray": parts[0].strip(),
                "brightness": parts[1] if len(parts) > 1 else "",
            },
            source=path,
            line=line_no,
        )
        plan.append(GrayLevel(gray=row.gray, brightness=row.brightness))
    logger.info("Loaded %d gray levels from %s", len(plan), path)
    return header, plan


def write_gray_plan(
    path: str | Path, plan: Sequence[GrayLevel], header: str = GRAY_PLAN_HEADER,
) -> None:
    """Write the plan back, keeping the operator's header line."""
    fs.atomic_write_text(
        path, render_csv(header, ((g.gray, g.brightness) for g in plan)),
    )
    logger.info("Updated %s (%d levels)", path, len(plan))


# ---------------------------------------------------------------------------
# Sample tables
# ---------------------------------------------------------------------------


def write_single_samples(path: str | Path, samples: Sequence[Sample]) -> None:
    """Write a single-mode sample table (``Index,Lv,x,y,T,duv``)."""
    rows = (
        (
            i,
            f"{s.luminance:.2f}f",
            f"{s.x:.4f}",
            f"{s.y:.4f}",
            _fmt(s.cct, ".0f"),
            _fmt(s.duv, ".4f"),
        )
        for i, s in enumerate(samples)
    )
    fs.atomic_write_text(path, render_csv(SINGLE_SAMPLE_HEADER, rows))
    logger.info("Saved %d samples to %s", len(samples), path)


def write_multi_samples(path: str | Path, samples: Sequence[Sample]) -> None:
    """Write a multi-mode sample table (``Index,Channel,Gray,Lv,...``)."""
    rows = (
        (
            i,
            s.channel.value,
            s.gray,
            f"{s.luminance:.2f}",
            f"{s.x:.4f}",
            f"{s.y:.4f}",
            _fmt(s.cct, ".0f"),
            _fmt(s.duv, ".4f"),
        )
        for i, s in enumerate(samples)
    )
    fs.atomic_write_text(path, render_csv(MULTI_SAMPLE_HEADER, rows))
    logger.info("Saved %d samples to %s", len(samples), path)


def read_samples(
    path: str | Path, grays: Sequence[int] | None = None,
) -> list[Sample]:
    """Read either sample table back into Samples.

    Parameters
    ----------
    path : str | Path
        ``measurements.csv`` or ``measured_rgbw.csv``.
    grays : Sequence[int] | None
        Gray level per row index.  Required for the single-mode table,
        which does not store the level.

    Returns
    -------
    list[Sample]
        Samples in file order.  Rows whose Lv does not parse are skipped
        with a warning.

    Raises
    ------
    MalformedInput
        If the header lacks required columns, or a single-mode table is
        read without *grays* (or with too few of them).
    """
    header, rows = read_csv_rows(path)
    col = {name: i for i, name in enumerate(header)}
    for name in ("Lv", "x", "y"):
        if name not in col:
            raise MalformedInput(f"{path}: missing column {name!r}")

    has_gray = "Gray" in col
    if not has_gray and grays is None:
        raise MalformedInput(
            f"{path} has no Gray column; pass the gray-level plan"
        )

    def cell(cells: list[str], name: str) -> str | None:
        i = col.get(name)
        return cells[i] if i is not None and i < len(cells) else None

    samples = []
    for position, (line_no, cells) in enumerate(rows):
        lv = cell(cells, "Lv")
        try:
            float((lv or "").rstrip("fF"))
        except ValueError:
            logger.warning("%s:%d: unreadable Lv %r, row skipped", path, line_no, lv)
            continue

        if has_gray:
            gray = cell(cells, "Gray")
        else:
            if position >= len(grays):
                raise MalformedInput(
                    f"{path}: row {line_no} has no matching gray level "
                    f"(plan has {len(grays)})"
                )
            gray = grays[position]

        row = validators.validate_row(
            validators.SampleRow,
            {
                "channel": cell(cells, "Channel") or Channel.GRAY.value,
                "gray": gray,
                "luminance": lv,
                "x": cell(cells, "x"),
                "y": cell(cells, "y"),
                "cct": cell(cells, "T"),
                "duv": cell(cells, "duv"),
            },
            source=path,
            line=line_no,
        )
        samples.append(Sample(
            channel=Channel.parse(row.channel),
            gray=row.gray,
            luminance=row.luminance,
            x=row.x,
            y=row.y,
            cct=row.cct,
            duv=row.duv,
        ))
    logger.info("Read %d samples from %s", len(samples), path)
    return samples


# ---------------------------------------------------------------------------
# White-point spec table
# ---------------------------------------------------------------------------


def read_spec_table(path: str | Path) -> WhitePointSpecTable:
    """Load ``targetxy.csv``; columns are located by header name.

    Raises
    ------
    MalformedInput
        If a required column is missing.
    ValueError
        If a row is not a valid window.
    """
    header, rows = read_csv_rows(path)
    missing = [c for c in SPEC_TABLE_COLUMNS if c not in header]
    if missing:
        raise MalformedInput(f"{path}: missing columns {missing}")
    idx = {c: header.index(c) for c in SPEC_TABLE_COLUMNS}

    windows = []
    for line_no, cells in rows:
        raw = {
            c.lower(): (cells[i] if i < len(cells) else "")
            for c, i in idx.items()
        }
        row = validators.validate_row(
            validators.WhitePointSpecRow, raw, source=path, line=line_no,
        )
        windows.append(WhitePointWindow(
            sku=row.sku,
            x_min=row.x_min,
            x_max=row.x_max,
            y_min=row.y_min,
            y_max=row.y_max,
        ))
    logger.info("Loaded %d white-point windows from %s", len(windows), path)
    return WhitePointSpecTable(windows)
