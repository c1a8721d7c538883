#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import math
import sys

import pytest

HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.ratios.reference_data import (
    ReferenceTableError,
    load_reference_ratios,
    load_reference_table,
)

EXPORT = """\
#: name: Table 36
#: description: K/pi ratio vs multiplicity
"dN/deta","dN/deta LOW","dN/deta HIGH","K/pi","stat +","stat -","sys +","sys -"
21.3,20.0,22.6,0.070,0.003,-0.003,0.004,-0.004
16.5,15.5,17.5,0.066,0.001,-0.001,0.002,-0.002
2.5,2.0,3.0,0.050,0.001,-0.002,0.002,-0.002

#: name: Table 37
"dN/deta","Lambda/pi","stat +","stat -"
21.3,0.030,0.001,-0.001
16.5,0.028,0.001,-0.001
"""


def _write_export(tmp_path: Path) -> Path:
    path = tmp_path / "HEPData-ins1471838-v1.csv"
    path.write_text(EXPORT, encoding="utf-8")
    return path


def test_named_table_is_picked_from_multi_block_export(tmp_path: Path):
    series = load_reference_table(_write_export(tmp_path), "Table 36")
    assert series.label == "K/pi"
    assert len(series) == 3
    first = series.points[0]
    assert first.x == 21.3
    assert first.x_err == pytest.approx(1.3)
    assert first.y == 0.070
    assert first.err_high == pytest.approx(math.hypot(0.003, 0.004))
    assert first.err_low == pytest.approx(math.hypot(0.003, 0.004))
    # asymmetric errors stay asymmetric
    last = series.points[2]
    assert last.err_high == pytest.approx(math.hypot(0.001, 0.002))
    assert last.err_low == pytest.approx(math.hypot(0.002, 0.002))


def test_table_without_x_range_columns(tmp_path: Path):
    series = load_reference_table(_write_export(tmp_path), "Table 37")
    assert [p.y for p in series.points] == [0.030, 0.028]
    assert all(p.x_err == 0.0 for p in series.points)


def test_directory_of_single_table_files(tmp_path: Path):
    (tmp_path / "Table36.csv").write_text('"x","K/pi","err +","err -"\n5.0,0.06,0.01,-0.01\n', encoding="utf-8")
    series = load_reference_table(tmp_path, "Table 36")
    assert series.points[0].y == 0.06
    with pytest.raises(ReferenceTableError, match="No file for 'Table 38'"):
        load_reference_table(tmp_path, "Table 38")


def test_alignment_and_scaling(tmp_path: Path):
    series = load_reference_table(_write_export(tmp_path), "Table 36")
    aligned = series.aligned_to_classes(step=2.0).scaled(6.0)
    assert [p.x for p in aligned.points] == [9.5, 7.5, 5.5]
    assert all(p.x_err == 1.0 for p in aligned.points)
    assert aligned.points[0].y == pytest.approx(0.42)
    assert aligned.points[0].err_high == pytest.approx(6.0 * series.points[0].err_high)


def test_missing_table_and_path(tmp_path: Path):
    path = _write_export(tmp_path)
    with pytest.raises(ReferenceTableError, match="Table 'Table 99' not found.*Available: Table 36, Table 37"):
        load_reference_table(path, "Table 99")
    with pytest.raises(FileNotFoundError, match="Reference data not found"):
        load_reference_table(tmp_path / "missing.csv", "Table 36")
    with pytest.raises(FileNotFoundError, match="Reference data not found"):
        load_reference_ratios(tmp_path / "missing.csv")


def test_reference_ratios_skip_missing_tables_with_warning(tmp_path: Path):
    path = _write_export(tmp_path)
    with pytest.warns(UserWarning, match="Skipping reference for xi"):
        refs = load_reference_ratios(path)
    assert set(refs) == {"kaon", "lambda"}
    # kaon reference is not rescaled
    assert refs["kaon"].points[0].y == 0.070
    assert refs["kaon"].points[0].x == 9.5
    assert refs["lambda"].points[1].y == pytest.approx(0.056)
    assert refs["lambda"].points[1].x == 8.5


def test_reference_frame_columns(tmp_path: Path):
    frame = load_reference_table(_write_export(tmp_path), "Table 37").to_frame()
    assert list(frame.columns) == ["table", "x", "x_err", "y", "err_low", "err_high"]
    assert frame["table"].unique().tolist() == ["Table 37"]
