#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

import numpy as np
import pandas as pd

import sys

THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analysis_strangeness.events.event_source import PARTICLE_COLUMNS, sidecar_path
from analysis_strangeness.events.model import Event

PARTICLE_OUTPUT_COLUMNS = PARTICLE_COLUMNS + ("is_hadron",)
EVENT_OUTPUT_COLUMNS = ("event", "weight", "v0a", "v0c", "cl1")


def events_to_frames(events: Iterable[Event], first_event: int = 0) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Flatten events into (particles, per-event scalars) frames.

    Events are renumbered from ``first_event`` in iteration order. Centrality
    columns are NaN for events without estimators.
    """
    particle_parts: List[pd.DataFrame] = []
    scalar_rows = []
    for i, ev in enumerate(events):
        event_no = first_event + i
        particle_parts.append(
            pd.DataFrame(
                {
                    "event": np.full(len(ev), event_no, dtype=np.int64),
                    "pid": ev.pid,
                    "pt": ev.pt,
                    "eta": ev.eta,
                    "y": ev.y,
                    "phi": ev.phi,
                    "is_charged": ev.is_charged.astype(int),
                    "is_hadron": ev.is_hadron.astype(int),
                },
                columns=list(PARTICLE_OUTPUT_COLUMNS),
            )
        )
        c = ev.centrality
        scalar_rows.append(
            (
                event_no,
                ev.weight,
                np.nan if c is None else c.v0a,
                np.nan if c is None else c.v0c,
                np.nan if c is None else c.cl1,
            )
        )

    if particle_parts:
        particles = pd.concat(particle_parts, ignore_index=True)
    else:
        particles = pd.DataFrame(columns=list(PARTICLE_OUTPUT_COLUMNS))
    scalars = pd.DataFrame(scalar_rows, columns=list(EVENT_OUTPUT_COLUMNS))
    return particles, scalars


def write_event_file(events: Iterable[Event], path: Path, first_event: int = 0) -> Path:
    """Write a particle CSV and its ``_events`` sidecar. Returns the particle path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    particles, scalars = events_to_frames(events, first_event=first_event)
    if scalars[["v0a", "v0c", "cl1"]].isna().all().all():
        scalars = scalars[["event", "weight"]]
    particles.to_csv(path, index=False, float_format="%.17g")
    scalars.to_csv(sidecar_path(path), index=False, float_format="%.17g")
    return path
