"""
Event source over per-particle CSV files.

File layout
-----------
<name>.csv           one row per particle:
                     event, pid, pt, eta, y, phi, is_charged[, is_hadron]
<name>_events.csv    optional per-event scalars:
                     event[, weight, v0a, v0c, cl1]

Each file is read once into a columnar block sorted by event number. Events
are yielded as views into that block; the block is dropped when the iterator
moves on to the next file. Callers must not keep an Event past its iteration
step unless they call ``Event.copy()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import numpy as np
import pandas as pd

from analysis_strangeness.events.model import CentralityEstimators, Event

PARTICLE_COLUMNS = ("event", "pid", "pt", "eta", "y", "phi", "is_charged")
SIDECAR_SUFFIX = "_events"


def sidecar_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}{SIDECAR_SUFFIX}{path.suffix}")


def discover_event_files(directory: Path, pattern: str = "", suffix: str = ".csv") -> List[Path]:
    """
    List particle files in ``directory`` whose name contains ``pattern``.

    Sidecar files are skipped. Raises FileNotFoundError if the directory is
    missing or nothing matches.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Event directory not found: {directory}")
    files = sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.suffix == suffix
        and pattern in p.name
        and not p.stem.endswith(SIDECAR_SUFFIX)
    )
    if not files:
        raise FileNotFoundError(f"No event files matching '{pattern}' in {directory}")
    return files


@dataclass
class _EventBlock:
    """Columnar particle data of one file, sorted by event number."""

    event: np.ndarray
    pid: np.ndarray
    pt: np.ndarray
    eta: np.ndarray
    y: np.ndarray
    phi: np.ndarray
    is_hadron: np.ndarray
    is_charged: np.ndarray
    event_ids: np.ndarray
    weights: np.ndarray
    centrality: Optional[np.ndarray]  # shape (n_events, 3) or None


def _read_sidecar(path: Path) -> Optional[pd.DataFrame]:
    side = sidecar_path(path)
    if not side.exists():
        return None
    df = pd.read_csv(side, float_precision="round_trip")
    if "event" not in df.columns:
        raise ValueError(f"Missing required column 'event' in {side}")
    if df["event"].duplicated().any():
        raise ValueError(f"Duplicate event numbers in {side}")
    return df


def _load_block(path: Path) -> _EventBlock:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event file not found: {path}")

    df = pd.read_csv(path, float_precision="round_trip")
    missing = set(PARTICLE_COLUMNS) - set(df.columns)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ValueError(f"Missing required columns in {path.name}: {missing_str}")

    df = df.sort_values("event", kind="mergesort")
    pid = df["pid"].to_numpy(dtype=np.int64)
    if "is_hadron" in df.columns:
        is_hadron = df["is_hadron"].to_numpy(dtype=bool)
    else:
        is_hadron = np.abs(pid) > 100

    side = _read_sidecar(path)
    particle_events = df["event"].to_numpy(dtype=np.int64)
    if side is not None:
        event_ids = np.union1d(np.unique(particle_events), side["event"].to_numpy(dtype=np.int64))
        side = side.set_index("event").reindex(event_ids)
        if "weight" in side.columns:
            weights = side["weight"].fillna(1.0).to_numpy(dtype=float)
        else:
            weights = np.ones(len(event_ids))
        if all(c in side.columns for c in ("v0a", "v0c", "cl1")):
            centrality = side[["v0a", "v0c", "cl1"]].to_numpy(dtype=float)
        else:
            centrality = None
    else:
        event_ids = np.unique(particle_events)
        weights = np.ones(len(event_ids))
        centrality = None

    return _EventBlock(
        event=particle_events,
        pid=pid,
        pt=df["pt"].to_numpy(dtype=float),
        eta=df["eta"].to_numpy(dtype=float),
        y=df["y"].to_numpy(dtype=float),
        phi=df["phi"].to_numpy(dtype=float),
        is_hadron=is_hadron,
        is_charged=df["is_charged"].to_numpy(dtype=bool),
        event_ids=event_ids,
        weights=weights,
        centrality=centrality,
    )


def read_event_file(path: Path) -> Iterator[Event]:
    """Yield the events of one file in ascending event-number order."""
    block = _load_block(path)
    starts = np.searchsorted(block.event, block.event_ids, side="left")
    stops = np.searchsorted(block.event, block.event_ids, side="right")

    for i, event_id in enumerate(block.event_ids):
        sl = slice(int(starts[i]), int(stops[i]))
        centrality = None
        if block.centrality is not None and not np.isnan(block.centrality[i]).any():
            centrality = CentralityEstimators(*(float(v) for v in block.centrality[i]))
        yield Event(
            pid=block.pid[sl],
            pt=block.pt[sl],
            eta=block.eta[sl],
            y=block.y[sl],
            phi=block.phi[sl],
            is_hadron=block.is_hadron[sl],
            is_charged=block.is_charged[sl],
            weight=float(block.weights[i]),
            centrality=centrality,
            event_id=int(event_id),
        )


def count_file_events(path: Path) -> int:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event file not found: {path}")
    ids = set(pd.read_csv(path, usecols=["event"])["event"].unique().tolist())
    side = sidecar_path(path)
    if side.exists():
        ids.update(pd.read_csv(side, usecols=["event"])["event"].tolist())
    return len(ids)


class EventChain:
    """Several event files visited as one sequence, in the given order."""

    def __init__(self, paths: Iterable[Path]):
        self.paths: List[Path] = [Path(p) for p in paths]
        if not self.paths:
            raise FileNotFoundError("Event chain is empty: no input files given")
        for p in self.paths:
            if not p.exists():
                raise FileNotFoundError(f"Event file not found: {p}")

    def __iter__(self) -> Iterator[Event]:
        for path in self.paths:
            yield from read_event_file(path)

    def count_events(self) -> int:
        return sum(count_file_events(p) for p in self.paths)

    def __repr__(self) -> str:
        return f"EventChain({len(self.paths)} files)"
