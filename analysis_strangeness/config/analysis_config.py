"""
Analysis constants for centrality classification and strange-hadron yields.

Forward acceptance
------------------
A "forward" track is charged (and hadronic, for the default predicate), has
pT > FORWARD_PT_MIN_GEV and a pseudorapidity inside one of FORWARD_ETA_WINDOWS.
The windows correspond to the two forward scintillator arrays.

Centrality thresholds
---------------------
Two threshold lists are in use. PERCENTILES_ALICE follows the published class
boundaries, PERCENTILES_ROUNDED the rounded variant used for quick studies.
The fixed-edge tables are used when the event source already carries a
centrality percentage (thermal-model events).

Species conventions
-------------------
The kaon code differs between event sources:
  pythia   -> 310 (K0S)
  fist     -> 311 (K0)
  charged  -> 321 (K+/-)

Scale factors
-------------
Strange-to-pion ratios are quoted with fixed multipliers (K x2, Lambda x2,
Xi x6, Omega x16) so that all four ratios fit on a common axis.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_OUTPUT_DIR = REPO_ROOT / "output" / "strangeness"

# ---------------------------------------------------------------------
# Forward acceptance
# ---------------------------------------------------------------------
FORWARD_ETA_WINDOWS: Tuple[Tuple[float, float], ...] = ((-3.7, -1.7), (2.8, 5.1))
FORWARD_PT_MIN_GEV = 0.1

FORWARD_POLICIES = ("charged-hadron", "charged")
DEFAULT_FORWARD_POLICY = "charged-hadron"

# ---------------------------------------------------------------------
# Calibration histogram
# ---------------------------------------------------------------------
CALIBRATION_NAME = "hCalib"
CALIB_N_BINS = 100
CALIB_X_MIN = 0.0
CALIB_X_MAX = 200.0

# ---------------------------------------------------------------------
# Centrality classes
# ---------------------------------------------------------------------
N_CLASSES = 10

PERCENTILES_ALICE: Tuple[float, ...] = (0.95, 4.7, 9.5, 14.0, 19.0, 28.0, 38.0, 48.0, 68.0, 100.0)
PERCENTILES_ROUNDED: Tuple[float, ...] = (1.0, 5.0, 10.0, 15.0, 20.0, 30.0, 40.0, 50.0, 70.0, 100.0)

PERCENTILE_LISTS: Dict[str, Tuple[float, ...]] = {
    "alice": PERCENTILES_ALICE,
    "rounded": PERCENTILES_ROUNDED,
}

# Fixed edges in centrality percent (ascending)
CENTRALITY_EDGES_ALICE: Tuple[float, ...] = (0.0,) + PERCENTILES_ALICE
CENTRALITY_EDGES_ROUNDED: Tuple[float, ...] = (0.0,) + PERCENTILES_ROUNDED

CENTRALITY_EDGE_TABLES: Dict[str, Tuple[float, ...]] = {
    "alice": CENTRALITY_EDGES_ALICE,
    "rounded": CENTRALITY_EDGES_ROUNDED,
}

CENTRALITY_ESTIMATORS = ("v0a", "v0c", "cl1")
DEFAULT_CENTRALITY_ESTIMATOR = "v0a"

# ---------------------------------------------------------------------
# Species
# ---------------------------------------------------------------------
KAON_CODES: Dict[str, int] = {
    "pythia": 310,
    "fist": 311,
    "charged": 321,
}
DEFAULT_KAON_CONVENTION = "pythia"

SPECIES_CODES: Dict[str, int] = {
    "pion": 211,
    "proton": 2212,
    "lambda": 3122,
    "xi": 3312,
    "omega": 3334,
}

STANDARD_SPECIES = ("pion", "kaon", "proton", "lambda", "xi", "omega")
RATIO_SPECIES = ("kaon", "lambda", "xi", "omega")
DENOMINATOR_SPECIES = "pion"

# Mid-rapidity windows
MIDRAPIDITY_ABS_Y = 0.5
CENTRAL_ABS_ETA = 1.0

PROXIMITY_WIDTHS: Tuple[float, ...] = (0.2, 0.1, 0.05, 0.02)

# ---------------------------------------------------------------------
# Ratios
# ---------------------------------------------------------------------
RATIO_SCALE_FACTORS: Dict[str, float] = {
    "pion": 1.0,
    "proton": 1.0,
    "kaon": 2.0,
    "lambda": 2.0,
    "xi": 6.0,
    "omega": 16.0,
}

# Thermal-model K/pi is quoted unscaled
FIST_SCALE_OVERRIDES: Dict[str, float] = {"kaon": 1.0}

# HEPData table name and class-axis step for each ratio
REFERENCE_TABLES: Dict[str, Tuple[str, float]] = {
    "kaon": ("Table 36", 1.0),
    "lambda": ("Table 37", 1.0),
    "xi": ("Table 38", 1.0),
    "omega": ("Table 39", 2.0),
}

# Reference K/pi is already on the unscaled axis
REFERENCE_SCALE_FACTORS: Dict[str, float] = {
    "kaon": 1.0,
    "lambda": 2.0,
    "xi": 6.0,
    "omega": 16.0,
}


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def progress_enabled() -> bool:
    """tqdm progress bars are on unless STRANGENESS_NO_PROGRESS is set."""
    return not _env_flag("STRANGENESS_NO_PROGRESS")


def output_dir() -> Path:
    """Output directory, overridable with STRANGENESS_OUTPUT_DIR."""
    override = os.environ.get("STRANGENESS_OUTPUT_DIR", "").strip()
    return Path(override) if override else DEFAULT_OUTPUT_DIR


def kaon_convention(convention: Optional[str] = None) -> str:
    """
    Resolve the kaon code convention.

    Explicit argument wins, then STRANGENESS_KAON_CONVENTION, then the default.
    """
    if convention is None:
        convention = os.environ.get("STRANGENESS_KAON_CONVENTION", "").strip().lower() or DEFAULT_KAON_CONVENTION
    if convention not in KAON_CODES:
        raise ValueError(
            f"Unknown kaon convention '{convention}'. Expected one of: {', '.join(sorted(KAON_CODES))}"
        )
    return convention


def species_code(species: str, convention: Optional[str] = None) -> int:
    """Return the (unsigned) PDG code for a species under a kaon convention."""
    if species == "kaon":
        return KAON_CODES[kaon_convention(convention)]
    try:
        return SPECIES_CODES[species]
    except KeyError:
        known = sorted(set(SPECIES_CODES) | {"kaon"})
        raise ValueError(f"Unknown species '{species}'. Expected one of: {', '.join(known)}") from None


def scale_factor(species: str, overrides: Optional[Mapping[str, float]] = None) -> float:
    if overrides and species in overrides:
        return float(overrides[species])
    if species not in RATIO_SCALE_FACTORS:
        raise ValueError(f"No ratio scale factor configured for species '{species}'")
    return RATIO_SCALE_FACTORS[species]


def reference_table(species: str) -> Tuple[str, float]:
    """Return (HEPData table name, class-axis step) for a ratio species."""
    if species not in REFERENCE_TABLES:
        raise ValueError(f"No reference table configured for species '{species}'")
    return REFERENCE_TABLES[species]


def percentile_list(name: str) -> Tuple[float, ...]:
    if name not in PERCENTILE_LISTS:
        raise ValueError(f"Unknown percentile list '{name}'. Expected one of: {', '.join(PERCENTILE_LISTS)}")
    return PERCENTILE_LISTS[name]


def centrality_edges(name: str) -> Tuple[float, ...]:
    if name not in CENTRALITY_EDGE_TABLES:
        raise ValueError(
            f"Unknown centrality edge table '{name}'. Expected one of: {', '.join(CENTRALITY_EDGE_TABLES)}"
        )
    return CENTRALITY_EDGE_TABLES[name]
