"""
Forward-multiplicity calibration.

Functions:
  forward_mask(event, policy)      -> boolean mask of forward tracks
  count_forward(event, policy)     -> number of forward tracks
  fill_calibration(events, ...)    -> raw CalibrationHistogram (mergeable)
  calibrate(events, ...)           -> normalized CalibrationHistogram

The histogram mirrors a fixed-width 1D histogram: entries outside
[x_min, x_max) go to underflow/overflow and do not enter the integral.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from tqdm import tqdm

from analysis_strangeness.config.analysis_config import (
    CALIB_N_BINS,
    CALIB_X_MAX,
    CALIB_X_MIN,
    CALIBRATION_NAME,
    DEFAULT_FORWARD_POLICY,
    FORWARD_ETA_WINDOWS,
    FORWARD_POLICIES,
    FORWARD_PT_MIN_GEV,
    progress_enabled,
)
from analysis_strangeness.events.model import Event


def forward_mask(event: Event, policy: str = DEFAULT_FORWARD_POLICY) -> np.ndarray:
    """
    Tracks inside the forward acceptance.

    policy="charged-hadron" requires charged hadrons, policy="charged" only
    charged tracks. pT must be strictly above FORWARD_PT_MIN_GEV.
    """
    if policy not in FORWARD_POLICIES:
        raise ValueError(f"Unknown forward policy '{policy}'. Expected one of: {', '.join(FORWARD_POLICIES)}")

    mask = event.is_charged & (event.pt > FORWARD_PT_MIN_GEV)
    if policy == "charged-hadron":
        mask &= event.is_hadron

    in_window = np.zeros(len(event), dtype=bool)
    for lo, hi in FORWARD_ETA_WINDOWS:
        in_window |= (event.eta > lo) & (event.eta < hi)
    return mask & in_window


def count_forward(event: Event, policy: str = DEFAULT_FORWARD_POLICY) -> int:
    return int(np.count_nonzero(forward_mask(event, policy)))


@dataclass
class CalibrationHistogram:
    name: str = CALIBRATION_NAME
    n_bins: int = CALIB_N_BINS
    x_min: float = CALIB_X_MIN
    x_max: float = CALIB_X_MAX
    contents: Optional[np.ndarray] = None
    underflow: float = 0.0
    overflow: float = 0.0
    entries: int = 0

    def __post_init__(self):
        if self.n_bins <= 0:
            raise ValueError(f"n_bins must be positive, got {self.n_bins}")
        if not self.x_max > self.x_min:
            raise ValueError(f"Invalid histogram range [{self.x_min}, {self.x_max})")
        if self.contents is None:
            self.contents = np.zeros(self.n_bins, dtype=float)
        else:
            self.contents = np.asarray(self.contents, dtype=float)
            if self.contents.shape != (self.n_bins,):
                raise ValueError(f"Expected {self.n_bins} bin contents, got shape {self.contents.shape}")

    @property
    def bin_width(self) -> float:
        return (self.x_max - self.x_min) / self.n_bins

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.x_min, self.x_max, self.n_bins + 1)

    def bin_center(self, index: int) -> float:
        """Center of bin ``index`` (0-based)."""
        return float(self.x_min + (index + 0.5) * self.bin_width)

    def find_bin(self, value: float) -> int:
        """0-based bin index; -1 for underflow, n_bins for overflow."""
        if value < self.x_min:
            return -1
        if value >= self.x_max:
            return self.n_bins
        return min(int((value - self.x_min) / self.bin_width), self.n_bins - 1)

    def fill(self, value: float, weight: float = 1.0) -> None:
        idx = self.find_bin(value)
        if idx < 0:
            self.underflow += weight
        elif idx >= self.n_bins:
            self.overflow += weight
        else:
            self.contents[idx] += weight
        self.entries += 1

    def integral(self, first: int = 0, last: Optional[int] = None, width: bool = False) -> float:
        """Sum of bins first..last inclusive, optionally multiplied by the bin width."""
        last = self.n_bins - 1 if last is None else last
        total = float(self.contents[first : last + 1].sum())
        return total * self.bin_width if width else total

    def upper_tail(self, width: bool = True) -> np.ndarray:
        """tail[k] = integral from bin k to the last bin."""
        tail = np.cumsum(self.contents[::-1])[::-1]
        return tail * self.bin_width if width else tail

    def normalized(self) -> "CalibrationHistogram":
        """Copy scaled so that sum(content * width) == 1."""
        total = self.integral(width=True)
        if total <= 0.0:
            raise ValueError(
                f"Cannot normalize histogram '{self.name}': integral is {total} "
                f"({self.entries} entries, empty calibration sample?)"
            )
        return CalibrationHistogram(
            name=self.name,
            n_bins=self.n_bins,
            x_min=self.x_min,
            x_max=self.x_max,
            contents=self.contents / total,
            underflow=self.underflow / total,
            overflow=self.overflow / total,
            entries=self.entries,
        )

    def merged(self, other: "CalibrationHistogram") -> "CalibrationHistogram":
        if (self.n_bins, self.x_min, self.x_max) != (other.n_bins, other.x_min, other.x_max):
            raise ValueError(
                f"Cannot merge histograms with different binning: "
                f"({self.n_bins}, {self.x_min}, {self.x_max}) vs ({other.n_bins}, {other.x_min}, {other.x_max})"
            )
        return CalibrationHistogram(
            name=self.name,
            n_bins=self.n_bins,
            x_min=self.x_min,
            x_max=self.x_max,
            contents=self.contents + other.contents,
            underflow=self.underflow + other.underflow,
            overflow=self.overflow + other.overflow,
            entries=self.entries + other.entries,
        )


def fill_calibration(
    events: Iterable[Event],
    policy: str = DEFAULT_FORWARD_POLICY,
    n_bins: int = CALIB_N_BINS,
    x_min: float = CALIB_X_MIN,
    x_max: float = CALIB_X_MAX,
    use_event_weight: bool = False,
    progress: Optional[bool] = None,
    total: Optional[int] = None,
) -> CalibrationHistogram:
    """Fill the raw forward-multiplicity histogram, one entry per event."""
    hist = CalibrationHistogram(n_bins=n_bins, x_min=x_min, x_max=x_max)
    show = progress_enabled() if progress is None else progress
    for event in tqdm(events, desc="Calibration", total=total, disable=not show, leave=False):
        weight = event.weight if use_event_weight else 1.0
        hist.fill(count_forward(event, policy), weight)
    return hist


def calibrate(events: Iterable[Event], **kwargs) -> CalibrationHistogram:
    """Fill and normalize by width. Raises ValueError on an empty sample."""
    return fill_calibration(events, **kwargs).normalized()
