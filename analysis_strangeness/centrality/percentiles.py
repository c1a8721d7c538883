from __future__ import annotations

from typing import List, Sequence

import numpy as np

from analysis_strangeness.centrality.calibration import CalibrationHistogram
from analysis_strangeness.config.analysis_config import PERCENTILES_ALICE

PERCENTILE_METHODS = ("binary", "linear")


def _validate_thresholds(thresholds: Sequence[float]) -> np.ndarray:
    arr = np.asarray(thresholds, dtype=float)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError("Threshold list must be a non-empty 1D sequence")
    if np.any(arr <= 0.0) or np.any(arr > 100.0):
        raise ValueError(f"Thresholds must lie in (0, 100], got {arr.tolist()}")
    if np.any(np.diff(arr) < 0.0):
        raise ValueError(f"Thresholds must be ascending, got {arr.tolist()}")
    return arr


def _last_bin_reaching(tail: np.ndarray, target: float) -> int:
    """Highest bin k with tail[k] >= target (binary search), -1 if none."""
    low, high = 0, tail.size - 1
    while low <= high:
        mid = (low + high) // 2
        if tail[mid] >= target:
            low = mid + 1
        else:
            high = mid - 1
    return high


def _last_bin_reaching_linear(tail: np.ndarray, target: float) -> int:
    for k in range(tail.size - 1, -1, -1):
        if tail[k] >= target:
            return k
    return -1


def find_percentiles(
    hist: CalibrationHistogram,
    thresholds: Sequence[float] = PERCENTILES_ALICE,
    method: str = "binary",
) -> List[float]:
    """
    Multiplicity boundaries for ascending percentage thresholds.

    For each threshold p, target = p/100 * integral; the boundary is the center
    of the highest bin whose upper-tail integral still reaches the target. The
    upper tail shrinks as the start bin moves up, so the search is monotone and
    the returned boundaries are non-increasing. If no bin qualifies (floating
    point at p=100) the lowest bin's center is used.
    """
    if method not in PERCENTILE_METHODS:
        raise ValueError(f"Unknown percentile method '{method}'. Expected one of: {', '.join(PERCENTILE_METHODS)}")
    pct = _validate_thresholds(thresholds)

    tail = hist.upper_tail(width=True)
    total = float(tail[0])
    if total <= 0.0:
        raise ValueError(f"Histogram '{hist.name}' has zero integral; cannot extract percentiles")

    search = _last_bin_reaching if method == "binary" else _last_bin_reaching_linear
    boundaries: List[float] = []
    for p in pct:
        k = search(tail, p / 100.0 * total)
        boundaries.append(hist.bin_center(max(k, 0)))
    return boundaries
