#!/usr/bin/env python
"""
Centrality-classified strange-hadron yield ratio driver.

Usage:
    python analysis_strangeness/run.py --input-dir events/ --pattern pythiarun
    python analysis_strangeness/run.py --stage calibrate --inputs run1.csv run2.csv
    python analysis_strangeness/run.py --stage analyze --analysis xi-pair-proximity --width 0.1 --input-dir events/
    python analysis_strangeness/run.py --stage report --reference data/HEPData-ins1471838.csv
    python analysis_strangeness/run.py --source fist --input-dir fist/ --pattern fist_data-
    python analysis_strangeness/run.py --parallel --workers 8 --input-dir events/

Stages run in order calibrate -> analyze -> report. The percentile policy
needs the calibration written by the first stage; the fixed-edge policy uses
the centrality carried by the events and skips it.
"""

from __future__ import annotations

import argparse
import sys
from concurrent.futures import ProcessPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter
from typing import Dict, List, Optional, Sequence

import pandas as pd

THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.centrality.calibration import CalibrationHistogram, fill_calibration
from analysis_strangeness.centrality.classifier import FixedEdgePolicy, PercentileThresholdPolicy
from analysis_strangeness.centrality.percentiles import PERCENTILE_METHODS, find_percentiles
from analysis_strangeness.config.analysis_config import (
    CENTRALITY_EDGE_TABLES,
    CENTRALITY_ESTIMATORS,
    DEFAULT_FORWARD_POLICY,
    FIST_SCALE_OVERRIDES,
    FORWARD_POLICIES,
    KAON_CODES,
    PERCENTILE_LISTS,
    PROXIMITY_WIDTHS,
    centrality_edges,
    output_dir,
    percentile_list,
    progress_enabled,
)
from analysis_strangeness.events.event_source import EventChain, discover_event_files
from analysis_strangeness.ratios.ratio import build_ratio_report, format_profile_lines, format_ratio_lines
from analysis_strangeness.ratios.reference_data import load_reference_ratios
from analysis_strangeness.storage.artifacts import (
    read_calibration,
    read_profiles,
    write_calibration,
    write_profiles,
)
from analysis_strangeness.yields.aggregator import ANALYSIS_PRESETS, AnalysisConfig, aggregate_yields, analysis_preset
from analysis_strangeness.yields.profile import ProfileSet

STAGES = ("calibrate", "analyze", "report", "all")
SOURCES = ("pythia", "fist")


@contextmanager
def _time_block(timing: Optional[Dict[str, float]], key: str):
    if timing is None:
        yield
        return
    start = perf_counter()
    try:
        yield
    finally:
        timing[key] = timing.get(key, 0.0) + (perf_counter() - start)


def _banner(title: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)


def _fold(parts: Sequence, what: str):
    if not parts:
        raise ValueError(f"No partial {what} to merge")
    out = parts[0]
    for part in parts[1:]:
        out = out.merged(part)
    return out


# ---------------------------------------------------------------------
# Per-file workers (top level so they pickle)
# ---------------------------------------------------------------------
def _calibrate_file(args) -> CalibrationHistogram:
    path, forward_policy = args
    return fill_calibration(EventChain([path]), policy=forward_policy, progress=False)


def _analyze_file(args) -> ProfileSet:
    path, policy, analysis = args
    return aggregate_yields(EventChain([path]), policy, analysis, progress=False)


def _progress_total(chain: EventChain, progress: Optional[bool]) -> Optional[int]:
    """Event count for the progress bar; skipped when bars are off."""
    show = progress_enabled() if progress is None else progress
    return chain.count_events() if show else None


def _map_files(worker, tasks: List[tuple], parallel: bool, n_workers: Optional[int]) -> list:
    if parallel and len(tasks) > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            # map() keeps task order
            return list(executor.map(worker, tasks))
    return [worker(t) for t in tasks]


# ---------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------
def run_calibration(
    paths: Sequence[Path],
    out_path: Path,
    forward_policy: str = DEFAULT_FORWARD_POLICY,
    parallel: bool = False,
    n_workers: Optional[int] = None,
    progress: Optional[bool] = None,
) -> CalibrationHistogram:
    """Fill, merge and normalize the forward-multiplicity histogram, then write it."""
    paths = [Path(p) for p in paths]
    if parallel:
        raw = _fold(_map_files(_calibrate_file, [(p, forward_policy) for p in paths], True, n_workers), "histograms")
    else:
        chain = EventChain(paths)
        raw = fill_calibration(chain, policy=forward_policy, progress=progress, total=_progress_total(chain, progress))
    print(f"  Calibration events: {raw.entries} (overflow {raw.overflow:g})")
    hist = raw.normalized()
    write_calibration(hist, out_path)
    print(f"  Saved: {out_path}")
    return hist


def run_analysis(
    paths: Sequence[Path],
    policy,
    analysis: AnalysisConfig,
    out_path: Path,
    parallel: bool = False,
    n_workers: Optional[int] = None,
    progress: Optional[bool] = None,
) -> ProfileSet:
    paths = [Path(p) for p in paths]
    if parallel:
        tasks = [(p, policy, analysis) for p in paths]
        profiles = _fold(_map_files(_analyze_file, tasks, True, n_workers), "profiles")
    else:
        chain = EventChain(paths)
        profiles = aggregate_yields(chain, policy, analysis, progress=progress, total=_progress_total(chain, progress))
    n_used = int(profiles[analysis.species_names[0]].counts.sum()) if analysis.species else 0
    print(f"  Events aggregated: {n_used} ({policy.name} policy)")
    write_profiles(profiles, out_path)
    print(f"  Saved: {out_path}")
    return profiles


def run_report(
    yields_path: Path,
    analysis: AnalysisConfig,
    out_path: Optional[Path] = None,
    scale_overrides: Optional[Dict[str, float]] = None,
    reference_path: Optional[Path] = None,
    reference_out: Optional[Path] = None,
) -> pd.DataFrame:
    """Print per-class yields and ratios; write the ratio table (and aligned reference points)."""
    profiles = read_profiles(yields_path)
    for profile in profiles:
        print(f"\n{profile.name}")
        for line in format_profile_lines(profile):
            print(f"  {line}")

    overrides = dict(analysis.scale_overrides)
    overrides.update(scale_overrides or {})
    report = build_ratio_report(profiles, pairs=analysis.ratio_pairs or None, scale_overrides=overrides)
    print()
    for line in format_ratio_lines(report):
        print(f"  {line}")

    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        report.to_csv(out_path, index=False)
        print(f"\nSaved: {out_path}")

    if reference_path is not None:
        series = load_reference_ratios(reference_path)
        frames = []
        for name, s in series.items():
            df = s.to_frame()
            df.insert(0, "species", name)
            frames.append(df)
        if frames and reference_out is not None:
            reference_out.parent.mkdir(parents=True, exist_ok=True)
            pd.concat(frames, ignore_index=True).to_csv(reference_out, index=False)
            print(f"Saved: {reference_out}")
    return report


# ---------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Centrality classes and strange-to-pion yield ratios")
    parser.add_argument("--stage", choices=STAGES, default="all", help="Pipeline stage to run (default: all)")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--inputs", nargs="+", type=Path, help="Event CSV files (chained in order)")
    src.add_argument("--input-dir", type=Path, help="Directory of event CSV files")
    parser.add_argument("--pattern", default="", help="Substring filter for --input-dir file names")
    parser.add_argument(
        "--calibration-dir",
        type=Path,
        default=None,
        help="Separate directory for the calibration sample (default: analysis inputs)",
    )
    parser.add_argument("--source", choices=SOURCES, default="pythia", help="Event source convention")
    parser.add_argument("--output-dir", type=Path, default=None, help="Output directory (default: output/strangeness)")
    parser.add_argument("--analysis", choices=ANALYSIS_PRESETS, default="standard")
    parser.add_argument(
        "--width",
        type=float,
        default=None,
        help="Proximity window |eta - eta_Xi| for xi-pair-proximity (studied: "
        + ", ".join(f"{w:g}" for w in PROXIMITY_WIDTHS)
        + ")",
    )
    parser.add_argument("--kaon-convention", choices=sorted(KAON_CODES), default=None)
    parser.add_argument("--forward-policy", choices=FORWARD_POLICIES, default=DEFAULT_FORWARD_POLICY)
    parser.add_argument("--percentiles", choices=sorted(PERCENTILE_LISTS), default="alice")
    parser.add_argument("--percentile-method", choices=PERCENTILE_METHODS, default="binary")
    parser.add_argument("--edges", choices=sorted(CENTRALITY_EDGE_TABLES), default="alice")
    parser.add_argument("--estimator", choices=CENTRALITY_ESTIMATORS, default="v0a")
    parser.add_argument("--reference", type=Path, default=None, help="HEPData CSV export (file or directory)")
    parser.add_argument("--parallel", action="store_true", help="Process input files in parallel")
    parser.add_argument("--workers", type=int, default=None, help="Number of workers (default: all CPU cores)")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    return parser


def _resolve_inputs(args, parser) -> List[Path]:
    if args.inputs:
        return list(args.inputs)
    if args.input_dir is not None:
        return discover_event_files(args.input_dir, args.pattern)
    parser.error(f"--stage {args.stage} needs --inputs or --input-dir")
    return []


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.analysis == "xi-pair-proximity" and args.width is None:
        parser.error("--analysis xi-pair-proximity requires --width")
    if args.width is not None and args.width <= 0.0:
        parser.error(f"--width must be positive, got {args.width}")
    if args.workers is not None and not args.parallel:
        parser.error("--workers requires --parallel")
    if args.workers is not None and args.workers < 1:
        parser.error(f"--workers must be >= 1, got {args.workers}")

    fist = args.source == "fist"
    kaon_convention = args.kaon_convention or ("fist" if fist else None)
    analysis = analysis_preset(
        args.analysis, kaon_convention=kaon_convention, width=args.width, exclude_forward=not fist
    )
    scale_overrides = dict(FIST_SCALE_OVERRIDES) if fist else {}

    out_dir = args.output_dir or output_dir()
    calibration_path = out_dir / "calibration.csv"
    yields_path = out_dir / f"yields_{analysis.name}.csv"
    report_path = out_dir / f"ratios_{analysis.name}.csv"
    reference_out = out_dir / "reference_ratios.csv"

    stages = ("calibrate", "analyze", "report") if args.stage == "all" else (args.stage,)
    progress = False if args.no_progress else None
    timing: Dict[str, float] = {}

    try:
        inputs: List[Path] = []
        if "calibrate" in stages or "analyze" in stages:
            inputs = _resolve_inputs(args, parser)

        if "calibrate" in stages:
            _banner("CALIBRATION")
            if fist:
                print("[SKIP] fixed-edge policy uses event centrality; no calibration needed")
            else:
                calib_inputs = discover_event_files(args.calibration_dir, args.pattern) if args.calibration_dir else inputs
                with _time_block(timing, "calibrate"):
                    run_calibration(
                        calib_inputs,
                        calibration_path,
                        forward_policy=args.forward_policy,
                        parallel=args.parallel,
                        n_workers=args.workers,
                        progress=progress,
                    )

        if "analyze" in stages:
            _banner(f"ANALYSIS: {analysis.name}")
            if fist:
                policy = FixedEdgePolicy(edges=centrality_edges(args.edges), estimator=args.estimator)
            else:
                hist = read_calibration(calibration_path)
                boundaries = find_percentiles(hist, percentile_list(args.percentiles), method=args.percentile_method)
                print("  Boundaries: " + ", ".join(f"{b:g}" for b in boundaries))
                policy = PercentileThresholdPolicy(tuple(boundaries), forward_policy=args.forward_policy)
            with _time_block(timing, "analyze"):
                run_analysis(
                    inputs,
                    policy,
                    analysis,
                    yields_path,
                    parallel=args.parallel,
                    n_workers=args.workers,
                    progress=progress,
                )

        if "report" in stages:
            _banner("REPORT")
            with _time_block(timing, "report"):
                run_report(
                    yields_path,
                    analysis,
                    out_path=report_path,
                    scale_overrides=scale_overrides,
                    reference_path=args.reference,
                    reference_out=reference_out,
                )
    except (FileNotFoundError, ValueError) as exc:
        print(f"[ERROR] {exc}")
        return 1

    if timing:
        print("\nTiming: " + ", ".join(f"{k} {v:.2f}s" for k, v in timing.items()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
