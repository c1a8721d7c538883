"""
Species-to-pion ratios per centrality class.

ratio = s * mean_num / mean_den

error = |s| * sqrt(e_num^2 * mean_den^2 + e_den^2 * mean_num^2) / mean_den^2

which is |ratio| * sqrt((e_num/mean_num)^2 + (e_den/mean_den)^2) for a
nonzero numerator. Rows whose denominator has no entries or a zero mean are
NaN; they are never divided.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from analysis_strangeness.config.analysis_config import DENOMINATOR_SPECIES, RATIO_SPECIES, scale_factor
from analysis_strangeness.yields.profile import ProfileSet, YieldProfile

REPORT_COLUMNS = (
    "species",
    "denominator",
    "class_bin",
    "class_center",
    "scale_factor",
    "numerator_mean",
    "numerator_error",
    "denominator_mean",
    "denominator_error",
    "ratio",
    "error",
)


@dataclass(frozen=True)
class RatioEntry:
    species: str
    denominator: str
    class_bin: int
    class_center: float
    scale_factor: float
    numerator_mean: float
    numerator_error: float
    denominator_mean: float
    denominator_error: float
    ratio: float
    error: float

    @property
    def defined(self) -> bool:
        return not math.isnan(self.ratio)


def ratio_of_means(
    numerator: YieldProfile,
    denominator: YieldProfile,
    scale: float = 1.0,
) -> List[RatioEntry]:
    if not numerator.same_binning(denominator):
        raise ValueError(f"Profiles '{numerator.name}' and '{denominator.name}' have different binning")

    entries: List[RatioEntry] = []
    for b in range(numerator.n_bins):
        a, ea = numerator.mean(b), numerator.standard_error(b)
        d, ed = denominator.mean(b), denominator.standard_error(b)
        if denominator.counts[b] == 0 or d == 0.0:
            ratio = err = float("nan")
        else:
            ratio = scale * a / d
            err = abs(scale) * math.sqrt(ea * ea * d * d + ed * ed * a * a) / (d * d)
        entries.append(
            RatioEntry(
                species=numerator.name,
                denominator=denominator.name,
                class_bin=b,
                class_center=numerator.x_min + (b + 0.5) * numerator.bin_width,
                scale_factor=float(scale),
                numerator_mean=a,
                numerator_error=ea,
                denominator_mean=d,
                denominator_error=ed,
                ratio=ratio,
                error=err,
            )
        )
    return entries


def build_ratio_report(
    profiles: ProfileSet,
    pairs: Optional[Sequence[Tuple[str, str]]] = None,
    scale_overrides: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """
    One row per (numerator, class bin).

    ``pairs`` defaults to every ratio species over pions. Pairs whose profiles
    are absent from ``profiles`` are skipped.
    """
    if pairs is None:
        pairs = [(name, DENOMINATOR_SPECIES) for name in RATIO_SPECIES]
    rows = []
    for num, den in pairs:
        if num not in profiles or den not in profiles:
            print(f"[SKIP] No '{num}'/'{den}' profiles in yields; ratio not computed")
            continue
        factor = scale_factor(num, scale_overrides)
        rows.extend(asdict(e) for e in ratio_of_means(profiles[num], profiles[den], factor))
    return pd.DataFrame(rows, columns=list(REPORT_COLUMNS))


def format_profile_lines(profile: YieldProfile) -> List[str]:
    """Per-bin mean and error, bins numbered from 1."""
    return [
        f"Bin {b + 1}: Value = {profile.mean(b):.6g}, Error = {profile.standard_error(b):.6g}"
        for b in range(profile.n_bins)
    ]


def format_ratio_lines(report: pd.DataFrame) -> List[str]:
    lines: List[str] = []
    for species, part in report.groupby("species", sort=False):
        lines.append(f"{species}/{part['denominator'].iloc[0]} (x{part['scale_factor'].iloc[0]:g})")
        for row in part.itertuples(index=False):
            if math.isnan(row.ratio):
                lines.append(f"[SKIP] Bin {row.class_bin + 1}: denominator empty")
            else:
                lines.append(f"Bin {row.class_bin + 1}: Value = {row.ratio:.6g}, Error = {row.error:.6g}")
    return lines
