"""
Cell volumes and the Yee sampling lattice.

This module provides the small geometric containers the averaging engine
and adjoint kernel work with:

Classes:
    Volume: Axis-aligned box (a grid cell or a region of interest)
    YeeGrid: Uniform lattice with half-pixel staggered field components
    ComponentRegion: Samples of one field component inside a volume

Positions on the Yee lattice are expressed as integer vectors in units of
half a pixel, so a component staggered by half a cell along x has an odd
x index. Multiplying by ``0.5 / resolution`` gives the physical position.

Example:
    >>> from strata_media.core import Dimensionality, YeeGrid
    >>> grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1.0, 1.0, 0.0))
    >>> cell = grid.pixel((0.25, 0.25, 0.0))
    >>> cell.size
    array([0.1, 0.1, 0. ])
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import Component, Dimensionality


@dataclass
class Volume:
    """Axis-aligned box given by its minimum and maximum corners.

    Zero extent along an axis means the volume is flat in that direction
    (the usual situation for unused axes in 1-D, 2-D and cylindrical runs).

    Args:
        min_corner: (x_min, y_min, z_min)
        max_corner: (x_max, y_max, z_max)
    """

    min_corner: NDArray[np.float64]
    max_corner: NDArray[np.float64]

    def __post_init__(self):
        self.min_corner = np.asarray(self.min_corner, dtype=np.float64).reshape(3)
        self.max_corner = np.asarray(self.max_corner, dtype=np.float64).reshape(3)
        if np.any(self.max_corner < self.min_corner):
            raise ValueError(
                f"Volume max_corner {self.max_corner} is below min_corner {self.min_corner}"
            )

    @classmethod
    def centered(cls, center: ArrayLike, size: ArrayLike) -> Volume:
        """Create a volume from its center and size."""
        center = np.asarray(center, dtype=np.float64)
        half = np.asarray(size, dtype=np.float64) / 2
        return cls(center - half, center + half)

    @property
    def center(self) -> NDArray[np.float64]:
        return (self.min_corner + self.max_corner) / 2

    @property
    def size(self) -> NDArray[np.float64]:
        return self.max_corner - self.min_corner

    @property
    def diameter(self) -> float:
        """Length of the box diagonal."""
        return float(np.linalg.norm(self.size))

    @property
    def extended_axes(self) -> tuple[int, ...]:
        """Axes with nonzero extent."""
        return tuple(int(i) for i in np.flatnonzero(self.size > 0))

    def shifted(self, offset: ArrayLike) -> Volume:
        """Return the volume translated by ``-offset``."""
        offset = np.asarray(offset, dtype=np.float64)
        return Volume(self.min_corner - offset, self.max_corner - offset)

    def __repr__(self) -> str:
        return f"Volume(min={self.min_corner.tolist()}, max={self.max_corner.tolist()})"


@dataclass
class ComponentRegion:
    """Yee samples of one component covering a volume.

    Sample ``(i, j, k)`` sits at half-pixel index ``start + 2 * (i, j, k)``.

    Attributes:
        component: The sampled field component
        start: Half-pixel index of the first sample (3,)
        shape: Number of samples along each axis
        resolution: Pixels per unit length
    """

    component: Component
    start: tuple[int, int, int]
    shape: tuple[int, int, int]
    resolution: float

    @property
    def num_samples(self) -> int:
        return int(np.prod(self.shape))

    def half_index(self, index: tuple[int, int, int]) -> tuple[int, int, int]:
        """Half-pixel lattice index of a sample."""
        return tuple(s + 2 * i for s, i in zip(self.start, index))

    def sample_index(self, half_index: tuple[int, int, int]) -> tuple[int, int, int] | None:
        """Sample index of a half-pixel lattice position, or None if not sampled."""
        out = []
        for s, h, n in zip(self.start, half_index, self.shape):
            offset = h - s
            if offset % 2 != 0:
                return None
            i = offset // 2
            if i < 0 or i >= n:
                return None
            out.append(i)
        return tuple(out)

    def position(self, half_index: tuple[int, int, int]) -> NDArray[np.float64]:
        return np.asarray(half_index, dtype=np.float64) * (0.5 / self.resolution)

    def indices(self) -> Iterator[tuple[int, int, int]]:
        """Iterate sample indices in row-major order."""
        return iter(np.ndindex(*self.shape))


@dataclass
class YeeGrid:
    """Uniform Yee lattice over the simulation cell.

    Args:
        dim: Dimensionality of the simulation
        resolution: Pixels per unit length
        cell_size: Cell extent (x, y, z); unused axes may be 0
        center: Cell center

    Example:
        >>> grid = YeeGrid(Dimensionality.D3, resolution=20, cell_size=(1, 1, 1))
        >>> grid.yee_shift(Component.EX)
        (1, 0, 0)
    """

    dim: Dimensionality
    resolution: float
    cell_size: tuple[float, float, float] = (0.0, 0.0, 0.0)
    center: tuple[float, float, float] = field(default=(0.0, 0.0, 0.0))

    def __post_init__(self):
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        self.cell_size = tuple(float(s) for s in self.cell_size)
        self.center = tuple(float(c) for c in self.center)

    @property
    def spacing(self) -> float:
        """Pixel size."""
        return 1.0 / self.resolution

    def pixel(self, point: ArrayLike) -> Volume:
        """One-pixel volume centered on ``point`` along the active axes."""
        point = np.asarray(point, dtype=np.float64)
        size = np.zeros(3)
        for axis in self.dim.active_axes:
            size[axis] = self.spacing
        return Volume.centered(point, size)

    def yee_shift(self, component: Component) -> tuple[int, int, int]:
        """Half-pixel offset of a component relative to the dielectric lattice.

        Electric components are staggered along their own direction, magnetic
        components along the two other active axes.
        """
        axis = component.index
        active = self.dim.active_axes
        shift = [0, 0, 0]
        if component.letter in ("E", "D"):
            if axis in active:
                shift[axis] = 1
        else:
            for a in active:
                if a != axis:
                    shift[a] = 1
        return tuple(shift)

    def component_region(self, component: Component, where: Volume) -> ComponentRegion:
        """Samples of ``component`` that lie inside ``where``.

        Flat axes of ``where`` that are active in the grid still get the
        nearest sample, so a region always holds at least one point.
        """
        shift = self.yee_shift(component)
        two_a = 2.0 * self.resolution
        start = [0, 0, 0]
        shape = [1, 1, 1]
        for axis in self.dim.active_axes:
            s = shift[axis]
            lo = (where.min_corner[axis] * two_a - s) / 2
            hi = (where.max_corner[axis] * two_a - s) / 2
            k_lo = math.ceil(lo - 1e-9)
            k_hi = math.floor(hi + 1e-9)
            if k_hi < k_lo:
                k_lo = k_hi = int(round((lo + hi) / 2))
            start[axis] = s + 2 * k_lo
            shape[axis] = k_hi - k_lo + 1
        return ComponentRegion(component, tuple(start), tuple(shape), self.resolution)

    def __repr__(self) -> str:
        return (
            f"YeeGrid(dim={self.dim.name}, resolution={self.resolution}, "
            f"cell_size={self.cell_size})"
        )
