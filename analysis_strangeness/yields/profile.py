"""
Per-class running statistics of per-event particle counts.

A YieldProfile keeps, for each class bin, the summed event weight (count), the
weighted sum of per-event yields and the weighted sum of their squares. With
unit weights this is the usual (N, sum, sum of squares) triple. All updates
are sums, so partial profiles filled on disjoint event sets merge exactly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from analysis_strangeness.config.analysis_config import N_CLASSES

PROFILE_COLUMNS = ("name", "bin", "x_low", "x_high", "count", "sum", "sum_sq")


@dataclass
class YieldProfile:
    name: str
    n_bins: int = N_CLASSES
    x_min: float = 0.0
    x_max: float = float(N_CLASSES)
    counts: Optional[np.ndarray] = None
    sums: Optional[np.ndarray] = None
    sums_sq: Optional[np.ndarray] = None

    def __post_init__(self):
        for attr in ("counts", "sums", "sums_sq"):
            value = getattr(self, attr)
            if value is None:
                setattr(self, attr, np.zeros(self.n_bins, dtype=float))
            else:
                arr = np.asarray(value, dtype=float)
                if arr.shape != (self.n_bins,):
                    raise ValueError(f"Profile '{self.name}': {attr} has shape {arr.shape}, expected ({self.n_bins},)")
                setattr(self, attr, arr)

    @property
    def bin_width(self) -> float:
        return (self.x_max - self.x_min) / self.n_bins

    def find_bin(self, x: float) -> int:
        if not (self.x_min <= x < self.x_max):
            raise ValueError(f"Profile '{self.name}': class index {x} outside [{self.x_min}, {self.x_max})")
        return min(int((x - self.x_min) / self.bin_width), self.n_bins - 1)

    def fill(self, x: float, value: float, weight: float = 1.0) -> None:
        b = self.find_bin(x)
        self.counts[b] += weight
        self.sums[b] += weight * value
        self.sums_sq[b] += weight * value * value

    def mean(self, b: int) -> float:
        """Mean yield in bin b (0.0 for an empty bin)."""
        if self.counts[b] == 0:
            return 0.0
        return float(self.sums[b] / self.counts[b])

    def standard_error(self, b: int) -> float:
        """sqrt((sum_sq/count - mean^2) / count), 0.0 for an empty bin."""
        n = self.counts[b]
        if n == 0:
            return 0.0
        m = self.sums[b] / n
        variance = self.sums_sq[b] / n - m * m
        # rounding can push identical-sample variances slightly below zero
        return float(math.sqrt(max(variance, 0.0) / n))

    def same_binning(self, other: "YieldProfile") -> bool:
        return (self.n_bins, self.x_min, self.x_max) == (other.n_bins, other.x_min, other.x_max)

    def merged(self, other: "YieldProfile") -> "YieldProfile":
        if not self.same_binning(other):
            raise ValueError(f"Cannot merge profiles '{self.name}' and '{other.name}' with different binning")
        return YieldProfile(
            name=self.name,
            n_bins=self.n_bins,
            x_min=self.x_min,
            x_max=self.x_max,
            counts=self.counts + other.counts,
            sums=self.sums + other.sums,
            sums_sq=self.sums_sq + other.sums_sq,
        )

    def to_frame(self) -> pd.DataFrame:
        edges = self.x_min + np.arange(self.n_bins + 1) * self.bin_width
        return pd.DataFrame(
            {
                "name": self.name,
                "bin": np.arange(self.n_bins),
                "x_low": edges[:-1],
                "x_high": edges[1:],
                "count": self.counts,
                "sum": self.sums,
                "sum_sq": self.sums_sq,
            },
            columns=list(PROFILE_COLUMNS),
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "YieldProfile":
        missing = set(PROFILE_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"Missing required profile columns: {', '.join(sorted(missing))}")
        names = df["name"].unique()
        if len(names) != 1:
            raise ValueError(f"Expected rows of a single profile, got names {list(names)}")
        df = df.sort_values("bin")
        bins = df["bin"].to_numpy(dtype=int)
        if not np.array_equal(bins, np.arange(len(df))):
            raise ValueError(f"Profile '{names[0]}' has non-contiguous bins: {bins.tolist()}")
        return cls(
            name=str(names[0]),
            n_bins=len(df),
            x_min=float(df["x_low"].iloc[0]),
            x_max=float(df["x_high"].iloc[-1]),
            counts=df["count"].to_numpy(dtype=float),
            sums=df["sum"].to_numpy(dtype=float),
            sums_sq=df["sum_sq"].to_numpy(dtype=float),
        )


class ProfileSet:
    """Named YieldProfiles sharing one class binning."""

    def __init__(self, names: Iterable[str], n_bins: int = N_CLASSES, x_min: float = 0.0, x_max: Optional[float] = None):
        x_max = float(n_bins) if x_max is None else x_max
        self.profiles: Dict[str, YieldProfile] = {}
        for name in names:
            if name in self.profiles:
                raise ValueError(f"Duplicate profile name '{name}'")
            self.profiles[name] = YieldProfile(name=name, n_bins=n_bins, x_min=x_min, x_max=x_max)

    @classmethod
    def from_profiles(cls, profiles: Iterable[YieldProfile]) -> "ProfileSet":
        out = cls([])
        for p in profiles:
            if p.name in out.profiles:
                raise ValueError(f"Duplicate profile name '{p.name}'")
            out.profiles[p.name] = p
        return out

    @property
    def names(self) -> List[str]:
        return list(self.profiles)

    def __getitem__(self, name: str) -> YieldProfile:
        if name not in self.profiles:
            raise KeyError(f"No profile named '{name}'. Available: {', '.join(self.profiles)}")
        return self.profiles[name]

    def __contains__(self, name: str) -> bool:
        return name in self.profiles

    def __iter__(self):
        return iter(self.profiles.values())

    def fill_event(self, class_index: float, counts: Mapping[str, float], weight: float = 1.0) -> None:
        for name, value in counts.items():
            self[name].fill(class_index, value, weight)

    def merged(self, other: "ProfileSet") -> "ProfileSet":
        if self.names != other.names:
            raise ValueError(f"Cannot merge profile sets with different species: {self.names} vs {other.names}")
        return ProfileSet.from_profiles(self.profiles[n].merged(other.profiles[n]) for n in self.names)

    def to_frame(self) -> pd.DataFrame:
        if not self.profiles:
            return pd.DataFrame(columns=list(PROFILE_COLUMNS))
        return pd.concat([p.to_frame() for p in self], ignore_index=True)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "ProfileSet":
        if "name" not in df.columns:
            raise ValueError("Missing required profile columns: name")
        order = list(dict.fromkeys(df["name"].tolist()))
        return cls.from_profiles(YieldProfile.from_frame(df[df["name"] == n]) for n in order)
