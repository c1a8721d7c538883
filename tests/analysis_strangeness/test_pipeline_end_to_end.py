#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pandas as pd
import pytest

HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.centrality.classifier import PercentileThresholdPolicy
from analysis_strangeness.centrality.percentiles import find_percentiles
from analysis_strangeness.events.model import Event, Particle
import analysis_strangeness.run as run
from analysis_strangeness.run import run_analysis, run_calibration, run_report
from analysis_strangeness.storage.artifacts import read_calibration
from analysis_strangeness.yields.aggregator import standard_yields
from tools.events.event_csv_io import write_event_file


def _p(pid: int, eta: float = 0.0) -> Particle:
    return Particle(pid=pid, pt=1.0, eta=eta, y=eta, phi=0.0, is_hadron=True, is_charged=pid != 310)


def _identical_event() -> Event:
    central = [_p(211)] * 5 + [_p(310)]
    forward = [_p(211, eta=3.0)] * 3
    return Event.from_particles(central + forward)


def _write_runs(tmp_path: Path, n_files: int = 2, per_file: int = 500):
    paths = []
    for i in range(n_files):
        events = [_identical_event() for _ in range(per_file)]
        paths.append(write_event_file(events, tmp_path / "events" / f"pythiarun{i + 1}.csv"))
    return paths


def test_identical_events_fill_one_class(tmp_path: Path, capsys):
    paths = _write_runs(tmp_path)

    hist = run_calibration(paths, tmp_path / "calibration.csv", progress=False)
    assert hist.entries == 1000
    # every event has 3 forward tracks: one bin holds the whole normalized content
    assert hist.integral(width=True) == pytest.approx(1.0)
    assert np.count_nonzero(hist.contents) == 1

    boundaries = find_percentiles(read_calibration(tmp_path / "calibration.csv"))
    assert len(set(boundaries)) == 1

    analysis = standard_yields(kaon_convention="pythia", species=("pion", "kaon"))
    policy = PercentileThresholdPolicy(boundaries)
    profiles = run_analysis(paths, policy, analysis, tmp_path / "yields_standard.csv", progress=False)
    assert profiles["pion"].counts.sum() == 1000
    assert np.count_nonzero(profiles["pion"].counts) == 1
    assert profiles["pion"].mean(0) == 5.0
    assert profiles["kaon"].mean(0) == 1.0

    report = run_report(tmp_path / "yields_standard.csv", analysis, out_path=tmp_path / "ratios_standard.csv")
    row = report[report["class_bin"] == 0].iloc[0]
    assert row["species"] == "kaon"
    assert row["ratio"] == pytest.approx(0.4)
    assert row["error"] == 0.0
    assert report[report["class_bin"] != 0]["ratio"].isna().all()

    saved = pd.read_csv(tmp_path / "ratios_standard.csv")
    assert len(saved) == 10
    out = capsys.readouterr().out
    assert "Bin 1: Value = 0.4, Error = 0" in out


def test_parallel_matches_serial(tmp_path: Path):
    paths = _write_runs(tmp_path, n_files=3, per_file=40)
    serial = run_calibration(paths, tmp_path / "serial_cal.csv", progress=False)
    parallel = run_calibration(paths, tmp_path / "parallel_cal.csv", parallel=True, n_workers=2)
    np.testing.assert_array_equal(serial.contents, parallel.contents)

    analysis = standard_yields()
    policy = PercentileThresholdPolicy(find_percentiles(serial))
    a = run_analysis(paths, policy, analysis, tmp_path / "serial.csv", progress=False)
    b = run_analysis(paths, policy, analysis, tmp_path / "parallel.csv", parallel=True, n_workers=2)
    for name in analysis.species_names:
        np.testing.assert_array_equal(a[name].counts, b[name].counts)
        np.testing.assert_array_equal(a[name].sums, b[name].sums)
        np.testing.assert_array_equal(a[name].sums_sq, b[name].sums_sq)


def test_serial_stages_give_progress_bars_an_event_total(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    paths = _write_runs(tmp_path, n_files=2, per_file=7)
    totals = {}
    fill = run.fill_calibration
    aggregate = run.aggregate_yields

    def _fill(events, **kwargs):
        totals["calibrate"] = kwargs.get("total")
        return fill(events, **kwargs)

    def _aggregate(events, policy, analysis, **kwargs):
        totals["analyze"] = kwargs.get("total")
        return aggregate(events, policy, analysis, **kwargs)

    monkeypatch.setattr(run, "fill_calibration", _fill)
    monkeypatch.setattr(run, "aggregate_yields", _aggregate)

    hist = run_calibration(paths, tmp_path / "calibration.csv", progress=True)
    policy = PercentileThresholdPolicy(find_percentiles(hist))
    run_analysis(paths, policy, standard_yields(), tmp_path / "yields.csv", progress=True)
    assert totals == {"calibrate": 14, "analyze": 14}

    run_calibration(paths, tmp_path / "calibration.csv", progress=False)
    run_analysis(paths, policy, standard_yields(), tmp_path / "yields.csv", progress=False)
    assert totals == {"calibrate": None, "analyze": None}
