"""Reference-data seed file adapter."""

from __future__ import annotations

from .loader import ReferenceSeedError, SeedReport, load_reference_seed, seed_references
from .schema import ReferenceSeed

__all__ = [
    "ReferenceSeed",
    "ReferenceSeedError",
    "SeedReport",
    "load_reference_seed",
    "seed_references",
]
