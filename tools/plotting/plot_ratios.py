#!/usr/bin/env python3
"""
Plot strange-to-pion ratios per centrality class, with measured points if given.

Usage:
    python tools/plotting/plot_ratios.py output/strangeness/ratios_standard.csv
    python tools/plotting/plot_ratios.py ratios.csv --reference output/strangeness/reference_ratios.csv --out ratios.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

MARKERS = {"kaon": "o", "lambda": "s", "xi": "^", "omega": "D"}
LABELS = {
    "kaon": r"$2K^0_S/\pi$",
    "lambda": r"$2\Lambda/\pi$",
    "xi": r"$6\Xi/\pi$",
    "omega": r"$16\Omega/\pi$",
}


def plot_ratios(report: pd.DataFrame, reference: Optional[pd.DataFrame], out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(8, 6))

    for species, part in report.groupby("species", sort=False):
        valid = part[part["ratio"].notna()]
        if len(valid) == 0:
            print(f"[SKIP] {species}: no defined ratio bins")
            continue
        marker = MARKERS.get(species, "o")
        line = ax.errorbar(
            valid["class_center"],
            valid["ratio"],
            yerr=valid["error"],
            xerr=0.5,
            marker=marker,
            linestyle="none",
            label=f"{LABELS.get(species, species)} (sim)",
        )
        if reference is not None:
            ref = reference[reference["species"] == species]
            if len(ref):
                ax.errorbar(
                    ref["x"],
                    ref["y"],
                    yerr=[ref["err_low"], ref["err_high"]],
                    xerr=ref["x_err"],
                    marker=marker,
                    markerfacecolor="none",
                    linestyle="none",
                    color=line[0].get_color(),
                    label=f"{LABELS.get(species, species)} (data)",
                )

    ax.set_xlim(0, 10)
    ax.set_xlabel("Centrality class", fontsize=14)
    ax.set_ylabel("Ratio to pions", fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend(fontsize=10)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(out_path, dpi=150)
    plt.close(fig)
    print(f"Saved: {out_path}")
    return out_path


def main() -> int:
    parser = argparse.ArgumentParser(description="Plot yield ratios per centrality class")
    parser.add_argument("report", type=Path, help="Ratio CSV written by analysis_strangeness/run.py")
    parser.add_argument("--reference", type=Path, default=None, help="Aligned reference CSV")
    parser.add_argument("--out", type=Path, default=None, help="Output image (default: next to the report)")
    args = parser.parse_args()

    if not args.report.exists():
        print(f"[ERROR] Ratio report not found: {args.report}")
        return 1
    reference = None
    if args.reference is not None:
        if not args.reference.exists():
            print(f"[ERROR] Reference file not found: {args.reference}")
            return 1
        reference = pd.read_csv(args.reference)

    out = args.out or args.report.with_suffix(".png")
    plot_ratios(pd.read_csv(args.report), reference, out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
