"""
Measured yield ratios from HEPData CSV exports.

A HEPData CSV export holds one or more table blocks:

    #: name: Table 36
    #: description: ...
    "$\\langle dN/d\\eta \\rangle$","...LOW","...HIGH","K/pi","stat +","stat -","sys +","sys -"
    19.5,18.1,20.9,0.062,0.001,-0.001,0.003,-0.003
    ...

Blocks are separated by blank lines. The first column is x (optionally
followed by LOW/HIGH columns), the next is the value, and the remaining
columns are "+"/"-" uncertainty pairs, combined in quadrature.

A directory of single-table exports (Table36.csv, ...) is also accepted.
"""

from __future__ import annotations

import csv
import math
import re
import warnings
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from analysis_strangeness.config.analysis_config import (
    RATIO_SPECIES,
    REFERENCE_SCALE_FACTORS,
    reference_table,
)


class ReferenceTableError(ValueError):
    pass


@dataclass(frozen=True)
class ReferencePoint:
    x: float
    y: float
    err_low: float
    err_high: float
    x_err: float = 0.0


@dataclass(frozen=True)
class ReferenceSeries:
    table: str
    label: str
    points: Tuple[ReferencePoint, ...]

    def __len__(self) -> int:
        return len(self.points)

    def scaled(self, factor: float) -> "ReferenceSeries":
        f = float(factor)
        return replace(
            self,
            points=tuple(
                replace(p, y=p.y * f, err_low=p.err_low * abs(f), err_high=p.err_high * abs(f)) for p in self.points
            ),
        )

    def aligned_to_classes(self, step: float = 1.0, start: float = 9.5) -> "ReferenceSeries":
        """Place point i at x = start - step*i with half-width step/2."""
        return replace(
            self,
            points=tuple(replace(p, x=start - step * i, x_err=0.5 * step) for i, p in enumerate(self.points)),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(self.table, p.x, p.x_err, p.y, p.err_low, p.err_high) for p in self.points],
            columns=["table", "x", "x_err", "y", "err_low", "err_high"],
        )


def _to_float(text: str) -> Optional[float]:
    s = str(text).strip().replace("\u2212", "-").rstrip("%")
    if s in ("", "-", "--"):
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _split_blocks(text: str) -> List[Tuple[Dict[str, str], List[str]]]:
    """Return (meta, data lines) per block."""
    blocks: List[Tuple[Dict[str, str], List[str]]] = []
    meta: Dict[str, str] = {}
    data: List[str] = []

    def flush():
        nonlocal meta, data
        if data:
            blocks.append((meta, data))
        meta, data = {}, []

    for line in text.splitlines():
        if not line.strip():
            flush()
            continue
        if line.startswith("#:"):
            if data:
                flush()
            body = line[2:].strip()
            if ":" in body:
                key, value = body.split(":", 1)
                meta[key.strip().lower()] = value.strip()
            continue
        if line.startswith("#"):
            continue
        data.append(line)
    flush()
    return blocks


def _parse_block(table: str, lines: List[str]) -> ReferenceSeries:
    rows = list(csv.reader(lines))
    header = [h.strip() for h in rows[0]]
    if len(header) < 2:
        raise ReferenceTableError(f"{table}: expected at least x and value columns, got {header}")

    col = 1
    if len(header) >= 3 and header[1].upper().endswith("LOW") and header[2].upper().endswith("HIGH"):
        col = 3
    if col >= len(header):
        raise ReferenceTableError(f"{table}: no value column in header {header}")
    value_col = col
    label = header[value_col]

    plus_cols = [i for i, h in enumerate(header) if i > value_col and h.rstrip().endswith("+")]
    minus_cols = [i for i, h in enumerate(header) if i > value_col and h.rstrip().endswith("-")]

    points: List[ReferencePoint] = []
    for r in rows[1:]:
        if len(r) != len(header):
            continue
        x = _to_float(r[0])
        y = _to_float(r[value_col])
        if x is None or y is None:
            continue
        x_err = 0.0
        if value_col == 3:
            lo, hi = _to_float(r[1]), _to_float(r[2])
            if lo is not None and hi is not None:
                x_err = 0.5 * (hi - lo)
        err_high = math.sqrt(sum((_to_float(r[i]) or 0.0) ** 2 for i in plus_cols))
        err_low = math.sqrt(sum((_to_float(r[i]) or 0.0) ** 2 for i in minus_cols))
        points.append(ReferencePoint(x=x, y=y, err_low=err_low, err_high=err_high, x_err=x_err))

    if not points:
        raise ReferenceTableError(f"{table}: no numeric rows")
    return ReferenceSeries(table=table, label=label, points=tuple(points))


def _table_file(directory: Path, table_name: str) -> Optional[Path]:
    compact = re.sub(r"\s+", "", table_name)
    for candidate in (f"{compact}.csv", f"{table_name}.csv", f"HEPData-{compact}.csv"):
        p = directory / candidate
        if p.exists():
            return p
    return None


def load_reference_table(path: Path, table_name: str) -> ReferenceSeries:
    """
    Load one table by name from a HEPData CSV export (file or directory).

    Raises FileNotFoundError when the path is missing and
    ReferenceTableError when the table is not in it.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reference data not found: {path}")

    if path.is_dir():
        table_path = _table_file(path, table_name)
        if table_path is None:
            raise ReferenceTableError(f"No file for '{table_name}' in {path}")
        path = table_path

    blocks = _split_blocks(path.read_text(encoding="utf-8", errors="replace"))
    if not blocks:
        raise ReferenceTableError(f"No table blocks in {path}")

    for meta, lines in blocks:
        if meta.get("name") == table_name:
            return _parse_block(table_name, lines)
    # single-table export without a name line
    if len(blocks) == 1 and "name" not in blocks[0][0]:
        return _parse_block(table_name, blocks[0][1])

    names = [m.get("name", "?") for m, _ in blocks]
    raise ReferenceTableError(f"Table '{table_name}' not found in {path}. Available: {', '.join(names)}")


def load_reference_ratios(
    path: Path,
    species: Sequence[str] = RATIO_SPECIES,
    scale_factors: Optional[Dict[str, float]] = None,
) -> Dict[str, ReferenceSeries]:
    """
    Reference series per species, aligned to the class axis and scaled.

    A missing table only drops that species (with a UserWarning); a missing
    path raises FileNotFoundError.
    """
    factors = REFERENCE_SCALE_FACTORS if scale_factors is None else scale_factors
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reference data not found: {path}")

    out: Dict[str, ReferenceSeries] = {}
    for name in species:
        table, step = reference_table(name)
        try:
            series = load_reference_table(path, table)
        except ReferenceTableError as exc:
            warnings.warn(f"Skipping reference for {name}: {exc}", UserWarning)
            continue
        out[name] = series.aligned_to_classes(step=step).scaled(factors.get(name, 1.0))
    return out
