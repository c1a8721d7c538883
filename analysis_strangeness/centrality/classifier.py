"""
Centrality classification policies.

PercentileThresholdPolicy ("A")
    Forward-multiplicity count compared against the percentile boundaries.
    The index starts at 9.5 and is decremented by one for every boundary the
    count does not strictly exceed; the scan stops at the first boundary it
    exceeds. Indices are half-integers 0.5 ... 9.5.

FixedEdgePolicy ("B")
    A centrality percentage carried by the event is looked up in an ascending
    edge table (lower edge inclusive, upper edge exclusive). The interval index
    k is reversed: class = n_classes - 1 - k.

Both map into profile bins 0..9 via floor(index).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

from analysis_strangeness.centrality.calibration import count_forward
from analysis_strangeness.config.analysis_config import (
    CENTRALITY_EDGES_ALICE,
    CENTRALITY_ESTIMATORS,
    DEFAULT_CENTRALITY_ESTIMATOR,
    DEFAULT_FORWARD_POLICY,
)
from analysis_strangeness.events.model import Event

PERCENTILE_START_INDEX = 9.5
PERCENTILE_FALLBACK_INDEX = 0.5
FIXED_EDGE_FALLBACK_INDEX = 0


def percentile_class_index(count: float, boundaries: Sequence[float]) -> float:
    """
    Policy A. Counts that exceed no boundary fall back to 0.5, the lowest class.
    """
    index = PERCENTILE_START_INDEX
    for boundary in boundaries:
        if count > boundary:
            break
        index -= 1.0
    return max(index, PERCENTILE_FALLBACK_INDEX)


def fixed_edge_class_index(value: float, edges: Sequence[float] = CENTRALITY_EDGES_ALICE) -> int:
    """
    Policy B. Values outside [edges[0], edges[-1]) (or NaN) fall back to class 0.
    """
    n_classes = len(edges) - 1
    if n_classes < 1:
        raise ValueError(f"Need at least two edges, got {list(edges)}")
    for k in range(n_classes):
        if edges[k] <= value < edges[k + 1]:
            return n_classes - 1 - k
    return FIXED_EDGE_FALLBACK_INDEX


def _check_ascending(values: Sequence[float], what: str) -> Tuple[float, ...]:
    out = tuple(float(v) for v in values)
    if any(b < a for a, b in zip(out, out[1:])):
        raise ValueError(f"{what} must be ascending, got {list(out)}")
    return out


@dataclass(frozen=True)
class PercentileThresholdPolicy:
    """Policy A on the forward-track count of each event."""

    boundaries: Tuple[float, ...]
    forward_policy: str = DEFAULT_FORWARD_POLICY

    name = "percentile-threshold"

    def __post_init__(self):
        object.__setattr__(self, "boundaries", tuple(float(b) for b in self.boundaries))
        if not self.boundaries:
            raise ValueError("PercentileThresholdPolicy needs at least one boundary")

    def class_index(self, event: Event) -> float:
        return percentile_class_index(count_forward(event, self.forward_policy), self.boundaries)

    def class_bin(self, event: Event) -> int:
        return int(math.floor(self.class_index(event)))


@dataclass(frozen=True)
class FixedEdgePolicy:
    """Policy B on a centrality estimator carried by the event."""

    edges: Tuple[float, ...] = CENTRALITY_EDGES_ALICE
    estimator: str = DEFAULT_CENTRALITY_ESTIMATOR

    name = "fixed-edge"

    def __post_init__(self):
        object.__setattr__(self, "edges", _check_ascending(self.edges, "Centrality edges"))
        if len(self.edges) < 2:
            raise ValueError(f"Need at least two edges, got {list(self.edges)}")
        if self.estimator not in CENTRALITY_ESTIMATORS:
            raise ValueError(
                f"Unknown centrality estimator '{self.estimator}'. "
                f"Expected one of: {', '.join(CENTRALITY_ESTIMATORS)}"
            )

    @property
    def n_classes(self) -> int:
        return len(self.edges) - 1

    def class_index(self, event: Event) -> int:
        if event.centrality is None:
            raise ValueError(
                f"Event {event.event_id} carries no centrality estimators; "
                "FixedEdgePolicy needs v0a/v0c/cl1 in the event sidecar"
            )
        return fixed_edge_class_index(event.centrality.value(self.estimator), self.edges)

    def class_bin(self, event: Event) -> int:
        return self.class_index(event)
