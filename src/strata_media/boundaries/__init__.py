"""Absorbing boundary layers."""

from strata_media.boundaries.absorbers import (
    AbsorbingLayer,
    ConductivityProfile,
    Side,
    quadratic_profile,
)

__all__ = [
    "AbsorbingLayer",
    "ConductivityProfile",
    "Side",
    "quadratic_profile",
]
