"""
Per-class species yield aggregation.

One function, aggregate_yields(), runs every analysis variant. The variants
differ only in data:
  - SpeciesSpec: which codes count as a species, signed or by |pid|, and
    whether the species is counted near a reference particle.
  - TrackCut: the mid-rapidity window (|y| or |eta|), a pT floor and whether
    forward tracks are excluded.
  - PairRequirement: reference particles that must all be present (e.g. a
    Xi and an anti-Xi within |eta| <= 1) for the event to be used.
  - proximity_width: |eta - eta_ref| window for species with a reference.

Presets
-------
standard_yields()        pion, kaon, proton, lambda, xi, omega at |y| < 0.5
xi_pair_kaon_pion()      kaons and pions at |eta| <= 1 in Xi/anti-Xi events
xi_pair_proximity()      pions and K+ near the Xi, pions and K- near the anti-Xi
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from analysis_strangeness.centrality.calibration import forward_mask
from analysis_strangeness.config.analysis_config import (
    CENTRAL_ABS_ETA,
    DENOMINATOR_SPECIES,
    DEFAULT_FORWARD_POLICY,
    MIDRAPIDITY_ABS_Y,
    N_CLASSES,
    RATIO_SPECIES,
    STANDARD_SPECIES,
    progress_enabled,
    species_code,
)
from analysis_strangeness.events.model import Event
from analysis_strangeness.yields.profile import ProfileSet

XI_CODE = 3312
PION_CODE = 211
CHARGED_KAON_CODE = 321


@dataclass(frozen=True)
class SpeciesSpec:
    name: str
    codes: Tuple[int, ...]
    signed: bool = False
    near: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "codes", tuple(int(c) for c in self.codes))
        if not self.codes:
            raise ValueError(f"Species '{self.name}' has no particle codes")


@dataclass(frozen=True)
class TrackCut:
    variable: str = "y"
    abs_max: float = MIDRAPIDITY_ABS_Y
    inclusive: bool = False
    pt_min: float = 0.0
    exclude_forward: bool = True
    forward_policy: str = DEFAULT_FORWARD_POLICY

    def __post_init__(self):
        if self.variable not in ("y", "eta"):
            raise ValueError(f"TrackCut variable must be 'y' or 'eta', got '{self.variable}'")
        if self.abs_max <= 0.0:
            raise ValueError(f"TrackCut abs_max must be positive, got {self.abs_max}")

    def mask(self, event: Event) -> np.ndarray:
        values = np.abs(event.y if self.variable == "y" else event.eta)
        keep = values <= self.abs_max if self.inclusive else values < self.abs_max
        if self.pt_min > 0.0:
            keep &= event.pt > self.pt_min
        if self.exclude_forward:
            keep &= ~forward_mask(event, self.forward_policy)
        return keep


@dataclass(frozen=True)
class PairRequirement:
    """All ``codes`` (signed) must appear with |eta| <= abs_eta_max."""

    codes: Tuple[int, ...] = (XI_CODE, -XI_CODE)
    abs_eta_max: float = CENTRAL_ABS_ETA

    def reference_eta(self, event: Event) -> Dict[int, float]:
        """eta of the last accepted particle for each code present."""
        accepted = np.abs(event.eta) <= self.abs_eta_max
        out: Dict[int, float] = {}
        for code in self.codes:
            idx = np.flatnonzero(accepted & (event.pid == code))
            if idx.size:
                out[code] = float(event.eta[idx[-1]])
        return out

    def satisfied(self, refs: Dict[int, float]) -> bool:
        return all(code in refs for code in self.codes)


@dataclass(frozen=True)
class AnalysisConfig:
    name: str
    species: Tuple[SpeciesSpec, ...]
    cut: TrackCut = field(default_factory=TrackCut)
    pair: Optional[PairRequirement] = None
    proximity_width: Optional[float] = None
    # (numerator, denominator) profiles reported as ratios
    ratio_pairs: Tuple[Tuple[str, str], ...] = ()
    scale_overrides: Tuple[Tuple[str, float], ...] = ()

    def __post_init__(self):
        names = [s.name for s in self.species]
        for num, den in self.ratio_pairs:
            if num not in names or den not in names:
                raise ValueError(f"Ratio pair ({num}, {den}) refers to unknown species; have {names}")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate species names in analysis '{self.name}': {names}")
        needs_ref = [s.name for s in self.species if s.near is not None]
        if needs_ref and self.proximity_width is None:
            raise ValueError(f"Species {needs_ref} need a proximity_width")
        if self.proximity_width is not None and self.proximity_width <= 0.0:
            raise ValueError(f"proximity_width must be positive, got {self.proximity_width}")

    @property
    def species_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.species)


def count_species(
    event: Event,
    spec: SpeciesSpec,
    selected: np.ndarray,
    refs: Optional[Dict[int, float]] = None,
    proximity_width: Optional[float] = None,
) -> int:
    """Number of particles of ``spec`` among the ``selected`` tracks."""
    pid = event.pid if spec.signed else event.abs_pid
    mask = selected & np.isin(pid, spec.codes)
    if spec.near is not None:
        if refs is None or spec.near not in refs:
            return 0
        mask &= np.abs(event.eta - refs[spec.near]) < proximity_width
    return int(np.count_nonzero(mask))


def aggregate_yields(
    events: Iterable[Event],
    policy,
    analysis: AnalysisConfig,
    n_classes: int = N_CLASSES,
    use_event_weight: bool = False,
    progress: Optional[bool] = None,
    total: Optional[int] = None,
) -> ProfileSet:
    """
    Fill one profile per species over classes 0..n_classes.

    ``policy`` is a classifier policy exposing ``class_index(event)``. Events
    failing the pair requirement are skipped entirely. A policy with a fixed
    class count (``n_classes``) must match the profile binning.
    """
    policy_classes = getattr(policy, "n_classes", None)
    if policy_classes is not None and policy_classes != n_classes:
        raise ValueError(
            f"{policy.name} policy defines {policy_classes} classes but the profiles have {n_classes} bins"
        )
    profiles = ProfileSet(analysis.species_names, n_bins=n_classes)
    show = progress_enabled() if progress is None else progress

    for event in tqdm(events, desc=analysis.name, total=total, disable=not show, leave=False):
        refs = None
        if analysis.pair is not None:
            refs = analysis.pair.reference_eta(event)
            if not analysis.pair.satisfied(refs):
                continue
        class_index = policy.class_index(event)
        selected = analysis.cut.mask(event)
        counts = {
            spec.name: count_species(event, spec, selected, refs, analysis.proximity_width)
            for spec in analysis.species
        }
        profiles.fill_event(class_index, counts, event.weight if use_event_weight else 1.0)
    return profiles


# ---------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------
def standard_yields(
    kaon_convention: Optional[str] = None,
    species: Sequence[str] = STANDARD_SPECIES,
    cut: Optional[TrackCut] = None,
) -> AnalysisConfig:
    specs = tuple(SpeciesSpec(name, (species_code(name, kaon_convention),)) for name in species)
    pairs = tuple((name, DENOMINATOR_SPECIES) for name in RATIO_SPECIES if name in species)
    if DENOMINATOR_SPECIES not in species:
        pairs = ()
    return AnalysisConfig(name="standard", species=specs, cut=cut or TrackCut(), ratio_pairs=pairs)


def xi_pair_kaon_pion(kaon_convention: Optional[str] = None) -> AnalysisConfig:
    specs = (
        SpeciesSpec("kaon", (species_code("kaon", kaon_convention),)),
        SpeciesSpec("pion", (PION_CODE,)),
    )
    cut = TrackCut(variable="eta", abs_max=CENTRAL_ABS_ETA, inclusive=True, exclude_forward=False)
    return AnalysisConfig(
        name="xi-pair-k2pi",
        species=specs,
        cut=cut,
        pair=PairRequirement(),
        ratio_pairs=(("kaon", "pion"),),
    )


def xi_pair_proximity(width: float) -> AnalysisConfig:
    specs = (
        SpeciesSpec("pion_near_xi", (PION_CODE,), near=XI_CODE),
        SpeciesSpec("pion_near_antixi", (PION_CODE,), near=-XI_CODE),
        SpeciesSpec("kaon_near_xi", (CHARGED_KAON_CODE,), signed=True, near=XI_CODE),
        SpeciesSpec("kaon_near_antixi", (-CHARGED_KAON_CODE,), signed=True, near=-XI_CODE),
    )
    cut = TrackCut(variable="eta", abs_max=CENTRAL_ABS_ETA, inclusive=True, exclude_forward=False)
    return AnalysisConfig(
        name=f"xi-pair-proximity-{width:g}",
        species=specs,
        cut=cut,
        pair=PairRequirement(),
        proximity_width=float(width),
        ratio_pairs=(("kaon_near_xi", "pion_near_xi"), ("kaon_near_antixi", "pion_near_antixi")),
        scale_overrides=(("kaon_near_xi", 1.0), ("kaon_near_antixi", 1.0)),
    )


ANALYSIS_PRESETS = ("standard", "xi-pair-k2pi", "xi-pair-proximity")


def analysis_preset(
    name: str,
    kaon_convention: Optional[str] = None,
    width: Optional[float] = None,
    exclude_forward: bool = True,
) -> AnalysisConfig:
    """Build a named analysis. ``exclude_forward`` only affects the standard yields."""
    if name == "standard":
        return standard_yields(kaon_convention, cut=TrackCut(exclude_forward=exclude_forward))
    if name == "xi-pair-k2pi":
        return xi_pair_kaon_pion(kaon_convention)
    if name == "xi-pair-proximity":
        if width is None:
            raise ValueError("xi-pair-proximity needs a proximity width")
        return xi_pair_proximity(width)
    raise ValueError(f"Unknown analysis '{name}'. Expected one of: {', '.join(ANALYSIS_PRESETS)}")
