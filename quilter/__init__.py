"""Public interface for the quilter tile layout toolkit."""

from __future__ import annotations

from .config import (
    AnnealingSchedule,
    Descriptor,
    EnergyWeights,
    PatternType,
    QuiltConfig,
    TileEntry,
)
from .descriptor import build_descriptor, classify_pattern, extract_descriptor
from .energy import energy
from .errors import (
    CapacityMismatchError,
    DecodeFailure,
    InvalidLayoutError,
    MalformedInputError,
    QuiltError,
)
from .optimizer import LcgRandom, anneal, optimize_layout

__all__ = [
    "AnnealingSchedule",
    "CapacityMismatchError",
    "DecodeFailure",
    "Descriptor",
    "EnergyWeights",
    "InvalidLayoutError",
    "LcgRandom",
    "MalformedInputError",
    "PatternType",
    "QuiltConfig",
    "QuiltError",
    "TileEntry",
    "anneal",
    "build_descriptor",
    "classify_pattern",
    "energy",
    "extract_descriptor",
    "optimize_layout",
]
