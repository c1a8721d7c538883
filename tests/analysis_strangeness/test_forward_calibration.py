#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.centrality.calibration import (
    CalibrationHistogram,
    calibrate,
    count_forward,
    fill_calibration,
    forward_mask,
)
from analysis_strangeness.events.model import Event, Particle


def _track(eta: float, pt: float = 1.0, pid: int = 211, hadron: bool = True, charged: bool = True) -> Particle:
    return Particle(pid=pid, pt=pt, eta=eta, y=eta, phi=0.0, is_hadron=hadron, is_charged=charged)


def _event_with_forward(n: int) -> Event:
    return Event.from_particles([_track(3.0) for _ in range(n)] + [_track(0.0)])


def test_forward_windows_are_open_intervals():
    ev = Event.from_particles(
        [
            _track(-3.7),
            _track(-3.69),
            _track(-1.71),
            _track(-1.7),
            _track(2.8),
            _track(2.81),
            _track(5.09),
            _track(5.1),
            _track(0.0),
        ]
    )
    assert forward_mask(ev).tolist() == [False, True, True, False, False, True, True, False, False]


def test_forward_pt_threshold_is_strict():
    ev = Event.from_particles([_track(3.0, pt=0.1), _track(3.0, pt=0.1000001)])
    assert count_forward(ev) == 1


def test_forward_policies_differ_on_charged_leptons():
    muon = _track(3.0, pid=13, hadron=False)
    neutral = _track(3.0, pid=2112, charged=False)
    ev = Event.from_particles([muon, neutral, _track(3.0)])
    assert count_forward(ev, "charged-hadron") == 1
    assert count_forward(ev, "charged") == 2


def test_unknown_forward_policy_rejected():
    with pytest.raises(ValueError, match="Unknown forward policy"):
        count_forward(_event_with_forward(1), "neutral")


def test_histogram_binning_and_overflow():
    hist = CalibrationHistogram()
    assert hist.n_bins == 100
    assert hist.bin_width == pytest.approx(2.0)
    hist.fill(0)
    hist.fill(1.999)
    hist.fill(2)
    hist.fill(250)
    assert hist.contents[0] == 2.0
    assert hist.contents[1] == 1.0
    assert hist.overflow == 1.0
    assert hist.entries == 4
    assert hist.integral() == 3.0


def test_calibration_normalizes_by_width():
    events = [_event_with_forward(n) for n in (0, 0, 3, 10, 10, 40)]
    hist = calibrate(events, progress=False)
    assert hist.name == "hCalib"
    assert hist.integral(width=True) == pytest.approx(1.0)
    assert hist.entries == 6
    assert hist.contents[0] == pytest.approx(2.0 / (6 * 2.0))


def test_raw_histogram_total_equals_event_count():
    events = [_event_with_forward(n) for n in range(25)]
    raw = fill_calibration(events, progress=False)
    assert raw.integral() == 25.0


def test_empty_calibration_sample_is_rejected():
    with pytest.raises(ValueError, match="integral is 0"):
        calibrate([], progress=False)


def test_partial_histograms_merge_to_single_pass():
    events = [_event_with_forward(n) for n in (0, 1, 5, 5, 8, 30, 30, 31)]
    full = fill_calibration(events, progress=False)
    merged = fill_calibration(events[:3], progress=False).merged(fill_calibration(events[3:], progress=False))
    np.testing.assert_array_equal(full.contents, merged.contents)
    assert merged.entries == full.entries


def test_merge_rejects_different_binning():
    with pytest.raises(ValueError, match="different binning"):
        CalibrationHistogram().merged(CalibrationHistogram(n_bins=50))
