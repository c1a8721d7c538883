"""
CSV codec for the calibration histogram and yield profiles.

Calibration file (one row per bin, plus underflow bin=-1 and overflow bin=n):
    name, bin, x_low, x_high, content, entries
Profile file (one row per species and class bin):
    name, bin, x_low, x_high, count, sum, sum_sq

Floats are written with repr precision and read back with pandas'
round-trip parser, so values survive a write/read cycle unchanged.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from analysis_strangeness.centrality.calibration import CalibrationHistogram
from analysis_strangeness.config.analysis_config import CALIBRATION_NAME
from analysis_strangeness.yields.profile import PROFILE_COLUMNS, ProfileSet

CALIBRATION_COLUMNS = ("name", "bin", "x_low", "x_high", "content", "entries")


class ArtifactError(ValueError):
    """Raised when a stored histogram or profile file is inconsistent."""


def _atomic_write(df: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(mode="w", dir=path.parent, suffix=".tmp", delete=False) as tmp:
        df.to_csv(tmp.name, index=False, float_format="%.17g")
    os.replace(tmp.name, path)
    return path


def _read_table(path: Path, required: Iterable[str], what: str) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    df = pd.read_csv(path, float_precision="round_trip", dtype={"name": str})
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ArtifactError(f"{what} {path} is missing required columns: {missing}")
    if len(df) == 0:
        raise ArtifactError(f"{what} {path} is empty.")
    return df


def write_calibration(hist: CalibrationHistogram, path: Path) -> Path:
    edges = hist.edges
    bins = np.arange(-1, hist.n_bins + 1)
    x_low = np.concatenate(([-np.inf], edges))
    x_high = np.concatenate((edges, [np.inf]))
    content = np.concatenate(([hist.underflow], hist.contents, [hist.overflow]))
    df = pd.DataFrame(
        {
            "name": hist.name,
            "bin": bins,
            "x_low": x_low,
            "x_high": x_high,
            "content": content,
            "entries": hist.entries,
        },
        columns=list(CALIBRATION_COLUMNS),
    )
    return _atomic_write(df, path)


def read_calibration(path: Path, name: str = CALIBRATION_NAME) -> CalibrationHistogram:
    df = _read_table(path, CALIBRATION_COLUMNS, "Calibration file")
    part = df[df["name"] == name].sort_values("bin")
    if part.empty:
        names = sorted(df["name"].unique().tolist())
        raise ArtifactError(f"No histogram named '{name}' in {path}. Available: {names}")

    inner = part[(part["bin"] >= 0) & np.isfinite(part["x_low"]) & np.isfinite(part["x_high"])]
    n_bins = len(inner)
    if n_bins == 0 or not np.array_equal(inner["bin"].to_numpy(dtype=int), np.arange(n_bins)):
        raise ArtifactError(f"Histogram '{name}' in {path} has missing or non-contiguous bins")

    under = part.loc[part["bin"] == -1, "content"]
    over = part.loc[part["bin"] == n_bins, "content"]
    return CalibrationHistogram(
        name=name,
        n_bins=n_bins,
        x_min=float(inner["x_low"].iloc[0]),
        x_max=float(inner["x_high"].iloc[-1]),
        contents=inner["content"].to_numpy(dtype=float),
        underflow=float(under.iloc[0]) if len(under) else 0.0,
        overflow=float(over.iloc[0]) if len(over) else 0.0,
        entries=int(part["entries"].iloc[0]),
    )


def write_profiles(profiles: ProfileSet, path: Path) -> Path:
    return _atomic_write(profiles.to_frame(), path)


def read_profiles(path: Path, names: Optional[Iterable[str]] = None) -> ProfileSet:
    df = _read_table(path, PROFILE_COLUMNS, "Yield file")
    if names is not None:
        names = list(names)
        absent = [n for n in names if n not in set(df["name"])]
        if absent:
            raise ArtifactError(f"Yield file {path} has no profiles named {absent}")
        df = df[df["name"].isin(names)]
    try:
        return ProfileSet.from_frame(df)
    except ValueError as exc:
        raise ArtifactError(f"Yield file {path}: {exc}") from exc
