#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import math
import sys

import numpy as np
import pytest

HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.config.analysis_config import RATIO_SCALE_FACTORS
from analysis_strangeness.ratios.ratio import (
    build_ratio_report,
    format_profile_lines,
    format_ratio_lines,
    ratio_of_means,
)
from analysis_strangeness.yields.profile import ProfileSet, YieldProfile


def _profile(name: str, bin_index: int, count: float, total: float, total_sq: float) -> YieldProfile:
    prof = YieldProfile(name)
    prof.counts[bin_index] = count
    prof.sums[bin_index] = total
    prof.sums_sq[bin_index] = total_sq
    return prof


def test_scale_factors_are_fixed():
    assert RATIO_SCALE_FACTORS["pion"] == 1.0
    assert RATIO_SCALE_FACTORS["kaon"] == 2.0
    assert RATIO_SCALE_FACTORS["lambda"] == 2.0
    assert RATIO_SCALE_FACTORS["xi"] == 6.0
    assert RATIO_SCALE_FACTORS["omega"] == 16.0


def test_kaon_to_pion_ratio_with_scale_factor():
    kaon = _profile("kaon", 4, count=100, total=50, total_sq=50)
    pion = _profile("pion", 4, count=100, total=200, total_sq=600)
    entry = ratio_of_means(kaon, pion, scale=2.0)[4]
    assert entry.ratio == pytest.approx(0.5)
    assert entry.scale_factor == 2.0
    assert entry.defined


def test_error_adds_relative_errors_in_quadrature():
    kaon = _profile("kaon", 0, count=100, total=50, total_sq=50)
    pion = _profile("pion", 0, count=100, total=200, total_sq=600)
    entry = ratio_of_means(kaon, pion, scale=2.0)[0]

    rel_k = kaon.standard_error(0) / kaon.mean(0)
    rel_pi = pion.standard_error(0) / pion.mean(0)
    assert entry.error == pytest.approx(entry.ratio * math.sqrt(rel_k**2 + rel_pi**2))


def test_zero_numerator_has_defined_error():
    kaon = _profile("kaon", 0, count=10, total=0, total_sq=0)
    pion = _profile("pion", 0, count=10, total=40, total_sq=200)
    entry = ratio_of_means(kaon, pion)[0]
    assert entry.ratio == 0.0
    assert entry.error == 0.0


def test_degenerate_denominator_is_nan_not_error():
    kaon = _profile("kaon", 2, count=10, total=5, total_sq=5)
    pion = _profile("pion", 2, count=10, total=0, total_sq=0)
    entries = ratio_of_means(kaon, pion, scale=2.0)
    assert math.isnan(entries[2].ratio)
    assert math.isnan(entries[2].error)
    # empty classes are undefined too
    assert all(math.isnan(e.ratio) for e in entries if e.class_bin != 2)


def test_report_covers_all_ratio_species():
    profiles = ProfileSet(["pion", "kaon", "lambda", "xi", "omega"])
    profiles.fill_event(9.5, {"pion": 10, "kaon": 2, "lambda": 1, "xi": 1, "omega": 0})
    report = build_ratio_report(profiles)
    assert list(report["species"].unique()) == ["kaon", "lambda", "xi", "omega"]
    top = report[report["class_bin"] == 9].set_index("species")
    assert top.loc["kaon", "ratio"] == pytest.approx(0.4)
    assert top.loc["lambda", "ratio"] == pytest.approx(0.2)
    assert top.loc["xi", "ratio"] == pytest.approx(0.6)
    assert top.loc["omega", "ratio"] == 0.0
    assert report[report["class_bin"] != 9]["ratio"].isna().all()


def test_report_scale_override_and_missing_species(capsys):
    profiles = ProfileSet(["pion", "kaon"])
    profiles.fill_event(0.5, {"pion": 4, "kaon": 1})
    report = build_ratio_report(profiles, scale_overrides={"kaon": 1.0})
    assert set(report["species"]) == {"kaon"}
    assert report.loc[report["class_bin"] == 0, "ratio"].iloc[0] == pytest.approx(0.25)
    assert "[SKIP] No 'lambda'/'pion' profiles" in capsys.readouterr().out


def test_unknown_species_without_scale_factor_rejected():
    profiles = ProfileSet(["pion", "sigma"])
    with pytest.raises(ValueError, match="No ratio scale factor"):
        build_ratio_report(profiles, pairs=[("sigma", "pion")])


def test_printed_lines():
    prof = _profile("pion", 0, count=4, total=8, total_sq=16)
    lines = format_profile_lines(prof)
    assert len(lines) == 10
    assert lines[0] == "Bin 1: Value = 2, Error = 0"

    profiles = ProfileSet(["pion", "kaon"])
    profiles.fill_event(0.5, {"pion": 5, "kaon": 1})
    report = build_ratio_report(profiles, pairs=[("kaon", "pion")])
    out = format_ratio_lines(report)
    assert out[0] == "kaon/pion (x2)"
    assert out[1] == "Bin 1: Value = 0.4, Error = 0"
    assert out[2] == "[SKIP] Bin 2: denominator empty"


def test_ratio_requires_same_binning():
    with pytest.raises(ValueError, match="different binning"):
        ratio_of_means(YieldProfile("kaon"), YieldProfile("pion", n_bins=9, x_max=9.0))


def test_identical_events_have_zero_error():
    kaon, pion = YieldProfile("kaon"), YieldProfile("pion")
    for _ in range(1000):
        kaon.fill(0.5, 1.0)
        pion.fill(0.5, 5.0)
    entry = ratio_of_means(kaon, pion, scale=2.0)[0]
    assert entry.ratio == 0.4
    assert entry.error == 0.0
    np.testing.assert_array_equal(kaon.counts[1:], 0.0)
