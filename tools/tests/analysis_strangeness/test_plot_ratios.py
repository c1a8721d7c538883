#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import sys

import pandas as pd

HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parents[3]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.ratios.ratio import build_ratio_report
from analysis_strangeness.yields.profile import ProfileSet
from tools.plotting.plot_ratios import plot_ratios


def _report() -> pd.DataFrame:
    profiles = ProfileSet(["pion", "kaon", "omega"])
    for cls in (0.5, 4.5, 9.5):
        profiles.fill_event(cls, {"pion": 10, "kaon": 1, "omega": 0})
        profiles.fill_event(cls, {"pion": 12, "kaon": 2, "omega": 0})
    return build_ratio_report(profiles, pairs=[("kaon", "pion"), ("omega", "pion")])


def test_plot_written_with_reference(tmp_path: Path):
    reference = pd.DataFrame(
        {
            "species": ["kaon", "kaon"],
            "table": ["Table 36", "Table 36"],
            "x": [9.5, 8.5],
            "x_err": [0.5, 0.5],
            "y": [0.13, 0.12],
            "err_low": [0.01, 0.01],
            "err_high": [0.01, 0.02],
        }
    )
    out = plot_ratios(_report(), reference, tmp_path / "plots" / "ratios.png")
    assert out.exists()
    assert out.stat().st_size > 0


def test_species_without_defined_bins_is_skipped(tmp_path: Path, capsys):
    report = _report()
    report.loc[report["species"] == "kaon", "ratio"] = float("nan")
    plot_ratios(report[report["species"] == "kaon"], None, tmp_path / "empty.png")
    assert "[SKIP] kaon: no defined ratio bins" in capsys.readouterr().out
