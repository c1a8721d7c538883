#!/usr/bin/env python3
"""
Generate minimum-bias pp events with Pythia 8 and write the event CSV schema.

Usage:
    python tools/generation/generate_pythia_events.py --nevents 10000 --seed 1
    python tools/generation/generate_pythia_events.py --preset rope --nevents 5000 --seed 2 --out-dir events/

Output: <out-dir>/pythiarun<seed>.csv (+ pythiarun<seed>_events.csv), final-state
particles only, strange hadrons kept stable.
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
from tqdm import tqdm

THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.config.analysis_config import output_dir
from analysis_strangeness.events.model import Event
from tools.events.event_csv_io import write_event_file

BASE_SETTINGS: Tuple[str, ...] = (
    "Beams:idA = 2212",
    "Beams:idB = 2212",
    "SoftQCD:nonDiffractive = on",
    # strange hadrons stable
    "310:onMode = off",
    "311:onMode = off",
    "3122:onMode = off",
    "3312:onMode = off",
    "3334:onMode = off",
    "3222:onMode = off",
    "3322:onMode = off",
    "3112:onMode = off",
    "Next:numberCount = 0",
)

ROPE_SETTINGS: Tuple[str, ...] = (
    "MultiPartonInteractions:pT0Ref = 2.15",
    "BeamRemnants:remnantMode = 1",
    "BeamRemnants:saturation = 5",
    "ColourReconnection:mode = 1",
    "ColourReconnection:allowDoubleJunRem = off",
    "ColourReconnection:m0 = 0.3",
    "ColourReconnection:allowJunctions = on",
    "ColourReconnection:junctionCorrection = 1.2",
    "ColourReconnection:timeDilationMode = 2",
    "ColourReconnection:timeDilationPar = 0.18",
    "Ropewalk:RopeHadronization = on",
    "Ropewalk:doShoving = on",
    "Ropewalk:tInit = 1.5",
    "Ropewalk:deltat = 0.05",
    "Ropewalk:tShove = 0.1",
    "Ropewalk:gAmplitude = 0.",
    "Ropewalk:doFlavour = on",
    "Ropewalk:r0 = 0.5",
    "Ropewalk:m0 = 0.2",
    "Ropewalk:beta = 0.1",
    "PartonVertex:setVertex = on",
    "PartonVertex:protonRadius = 0.7",
    "PartonVertex:emissionWidth = 0.1",
)

PRESETS: Dict[str, Tuple[str, ...]] = {
    "default": (),
    "rope": ROPE_SETTINGS,
}


@dataclass
class RunConfig:
    nevents: int
    seed: int
    ecm_GeV: float
    preset: str
    out_dir: Path
    prefix: str

    @property
    def out_path(self) -> Path:
        return self.out_dir / f"{self.prefix}{self.seed}.csv"


def pythia_settings(cfg: RunConfig) -> List[str]:
    if cfg.preset not in PRESETS:
        raise ValueError(f"Unknown preset '{cfg.preset}'. Expected one of: {', '.join(PRESETS)}")
    return [
        *BASE_SETTINGS,
        f"Beams:eCM = {cfg.ecm_GeV:g}",
        "Random:setSeed = on",
        f"Random:seed = {cfg.seed}",
        *PRESETS[cfg.preset],
    ]


def load_pythia() -> "pythia8.Pythia":
    try:
        import pythia8
    except ImportError as exc:
        raise ImportError(
            "Pythia8 Python bindings not found. "
            "Set PYTHONPATH to the directory containing pythia8*.so, "
            "or install a build with bindings enabled."
        ) from exc
    return pythia8.Pythia("", False)


def _final_state_event(pythia_event, event_id: int) -> Event:
    pid, pt, eta, y, phi, hadron, charged = [], [], [], [], [], [], []
    for i in range(pythia_event.size()):
        p = pythia_event[i]
        if not p.isFinal():
            continue
        pid.append(p.id())
        pt.append(p.pT())
        eta.append(p.eta())
        y.append(p.y())
        phi.append(p.phi())
        hadron.append(p.isHadron())
        charged.append(p.isCharged())
    return Event(
        pid=np.asarray(pid, dtype=np.int64),
        pt=np.asarray(pt, dtype=float),
        eta=np.asarray(eta, dtype=float),
        y=np.asarray(y, dtype=float),
        phi=np.asarray(phi, dtype=float),
        is_hadron=np.asarray(hadron, dtype=bool),
        is_charged=np.asarray(charged, dtype=bool),
        event_id=event_id,
    )


def generate(cfg: RunConfig) -> Path:
    pythia = load_pythia()
    for setting in pythia_settings(cfg):
        if not pythia.readString(setting):
            raise ValueError(f"Pythia rejected setting: {setting}")
    if not pythia.init():
        raise RuntimeError("Pythia initialization failed")

    events: List[Event] = []
    n_failed = 0
    for i in tqdm(range(cfg.nevents), desc="Generating"):
        if not pythia.next():
            n_failed += 1
            continue
        events.append(_final_state_event(pythia.event, i))
    if n_failed:
        print(f"[WARN] {n_failed} of {cfg.nevents} events failed generation and were skipped")

    path = write_event_file(events, cfg.out_path)
    print(f"Saved: {path} ({len(events)} events)")
    return path


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate Pythia 8 events for the strangeness analysis")
    parser.add_argument("--nevents", type=int, default=10000)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--ecm", type=float, default=7000.0, help="Centre-of-mass energy [GeV]")
    parser.add_argument("--preset", choices=sorted(PRESETS), default="default")
    parser.add_argument("--out-dir", type=Path, default=None)
    parser.add_argument("--prefix", default=os.environ.get("STRANGENESS_RUN_PREFIX", "pythiarun"))
    args = parser.parse_args()

    if args.nevents < 1:
        parser.error(f"--nevents must be >= 1, got {args.nevents}")
    if not 0 <= args.seed <= 900_000_000:
        parser.error(f"--seed must be in [0, 900000000], got {args.seed}")

    cfg = RunConfig(
        nevents=args.nevents,
        seed=args.seed,
        ecm_GeV=args.ecm,
        preset=args.preset,
        out_dir=args.out_dir or output_dir() / "events",
        prefix=args.prefix,
    )
    generate(cfg)
    return 0


if __name__ == "__main__":
    sys.exit(main())
