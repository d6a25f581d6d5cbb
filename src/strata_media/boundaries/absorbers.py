"""Scalar absorbing layers.

An absorbing layer adds an isotropic conductivity that grows from zero at
its inner edge toward the cell boundary, following a user profile P(u) on
u in [0, 1]. The profile is scaled so that a normally incident wave making
a round trip through the layer is attenuated to the requested reflection
coefficient:

    sigma(u) = -ln(R) / (4 * L * integral_0^1 P) * P(u)

The profile is sampled once, at the simulation's conductivity spacing, and
linearly interpolated at lookup time. Sampled arrays are read-only after
construction.

Example:
    >>> layer = ConductivityProfile.build(
    ...     axis=0, side=Side.HIGH, thickness=1.0, spacing=0.05, reflection=1e-8,
    ... )
    >>> layer.value(x=1.9, cell_center=0.0, cell_size=4.0) > 0
    True
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from strata_media.core.quadrature import integrate_real


class Side(Enum):
    LOW = "low"
    HIGH = "high"


def quadratic_profile(u: float) -> float:
    """Default absorber profile P(u) = u^2."""
    return u * u


@dataclass(frozen=True)
class AbsorbingLayer:
    """Absorbing layer parameters.

    Args:
        thickness: Layer thickness L
        axis: Axis index (0, 1 or 2) the layer is normal to
        side: Side of the cell, or None for both
        reflection: Target round-trip reflection coefficient R
        profile: Profile P(u) on [0, 1]
    """

    thickness: float
    axis: int
    side: Side | None = None
    reflection: float = 1e-15
    profile: Callable[[float], float] = quadratic_profile

    def __post_init__(self):
        if self.thickness <= 0:
            raise ValueError(f"Absorber thickness must be positive, got {self.thickness}")
        if self.axis not in (0, 1, 2):
            raise ValueError(f"Absorber axis must be 0, 1 or 2, got {self.axis}")
        if not 0 < self.reflection < 1:
            raise ValueError(f"reflection must lie in (0, 1), got {self.reflection}")

    @property
    def sides(self) -> tuple[Side, ...]:
        return (Side.LOW, Side.HIGH) if self.side is None else (self.side,)


@dataclass(frozen=True)
class ConductivityProfile:
    """Sampled conductivity profile for one (axis, side) of the cell."""

    axis: int
    side: Side
    thickness: float
    samples: NDArray[np.float64]

    @classmethod
    def build(
        cls,
        axis: int,
        side: Side,
        thickness: float,
        spacing: float,
        profile: Callable[[float], float] = quadratic_profile,
        reflection: float = 1e-15,
    ) -> ConductivityProfile:
        """Sample a profile.

        Args:
            axis: Axis index the layer is normal to
            side: Low or high side of the cell
            thickness: Layer thickness L
            spacing: Sample spacing (typically half a pixel)
            profile: Profile P(u)
            reflection: Target reflection coefficient R
        """
        n = max(1, int(thickness / spacing + 0.5))
        integral = integrate_real(profile, [0.0], [1.0], tol=1e-4, maxeval=50000, abstol=1e-9)
        if integral.value <= 0:
            raise ValueError("Absorber profile must have a positive integral over [0, 1]")
        prefactor = -math.log(reflection) / (4 * thickness * integral.value)
        samples = np.array([prefactor * profile(i / n) for i in range(n + 1)], dtype=np.float64)
        samples.setflags(write=False)
        return cls(axis, side, thickness, samples)

    @property
    def num_intervals(self) -> int:
        return len(self.samples) - 1

    def value(self, x: float, cell_center: float, cell_size: float) -> float:
        """Conductivity at coordinate ``x`` along the layer axis."""
        half = cell_size / 2
        if self.side is Side.HIGH:
            edge = cell_center + half - self.thickness
            depth = x - edge
        else:
            edge = cell_center - half + self.thickness
            depth = edge - x
        if depth < 0:
            return 0.0

        n = self.num_intervals
        ui = n * depth / self.thickness
        i = int(ui)
        if i >= n:
            return float(self.samples[n])
        di = ui - i
        return float(self.samples[i] * (1 - di) + self.samples[i + 1] * di)
