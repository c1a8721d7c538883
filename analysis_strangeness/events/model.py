from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import numpy as np


@dataclass(frozen=True)
class Particle:
    pid: int
    pt: float
    eta: float
    y: float
    phi: float
    is_hadron: bool
    is_charged: bool


@dataclass(frozen=True)
class CentralityEstimators:
    """Precomputed centrality percentages carried by thermal-model events."""

    v0a: float
    v0c: float
    cl1: float

    def value(self, estimator: str) -> float:
        if estimator not in ("v0a", "v0c", "cl1"):
            raise ValueError(f"Unknown centrality estimator '{estimator}'")
        return float(getattr(self, estimator))


@dataclass(frozen=True)
class Event:
    """
    One collision event stored column-wise.

    The arrays are views into the block owned by the event source and are only
    valid for the current iteration step. Use ``copy()`` to keep an event.
    """

    pid: np.ndarray
    pt: np.ndarray
    eta: np.ndarray
    y: np.ndarray
    phi: np.ndarray
    is_hadron: np.ndarray
    is_charged: np.ndarray
    weight: float = 1.0
    centrality: Optional[CentralityEstimators] = None
    event_id: int = 0

    def __len__(self) -> int:
        return int(self.pid.shape[0])

    @property
    def abs_pid(self) -> np.ndarray:
        return np.abs(self.pid)

    def particles(self) -> Iterator[Particle]:
        for i in range(len(self)):
            yield Particle(
                pid=int(self.pid[i]),
                pt=float(self.pt[i]),
                eta=float(self.eta[i]),
                y=float(self.y[i]),
                phi=float(self.phi[i]),
                is_hadron=bool(self.is_hadron[i]),
                is_charged=bool(self.is_charged[i]),
            )

    def copy(self) -> "Event":
        return Event(
            pid=self.pid.copy(),
            pt=self.pt.copy(),
            eta=self.eta.copy(),
            y=self.y.copy(),
            phi=self.phi.copy(),
            is_hadron=self.is_hadron.copy(),
            is_charged=self.is_charged.copy(),
            weight=self.weight,
            centrality=self.centrality,
            event_id=self.event_id,
        )

    @classmethod
    def from_particles(
        cls,
        particles: Iterable[Particle],
        weight: float = 1.0,
        centrality: Optional[CentralityEstimators] = None,
        event_id: int = 0,
    ) -> "Event":
        plist = list(particles)
        return cls(
            pid=np.array([p.pid for p in plist], dtype=np.int64),
            pt=np.array([p.pt for p in plist], dtype=float),
            eta=np.array([p.eta for p in plist], dtype=float),
            y=np.array([p.y for p in plist], dtype=float),
            phi=np.array([p.phi for p in plist], dtype=float),
            is_hadron=np.array([p.is_hadron for p in plist], dtype=bool),
            is_charged=np.array([p.is_charged for p in plist], dtype=bool),
            weight=float(weight),
            centrality=centrality,
            event_id=int(event_id),
        )
