"""Scenes: prioritized geometric objects with their materials.

A scene owns its objects and their materials. Both are deep-copied when the
scene is built, so later changes to the caller's objects (or material grid
weights) do not leak into evaluation; use ``Scene.objects`` to reach the
owned copies. Objects that shared one material instance (for example
symmetric copies of a design grid) keep sharing its copy.

Example:
    >>> from strata_media.core import Dimensionality
    >>> from strata_media.geometry import Block, GeometricObject, Scene
    >>> from strata_media.materials import SILICON
    >>> scene = Scene(
    ...     objects=[GeometricObject(Block(center=(0, 0, 0), size=(1, 1, 0)), SILICON)],
    ...     cell_size=(4.0, 4.0, 0.0),
    ...     dim=Dimensionality.D2,
    ... )
    >>> scene.material_count
    1
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import Dimensionality
from strata_media.geometry.shapes import Shape
from strata_media.geometry.tree import ObjectTree
from strata_media.materials.base import Material, MaterialGrid, UniformMaterial


@dataclass
class GeometricObject:
    """A shape filled with a material."""

    shape: Shape
    material: Material

    def __repr__(self) -> str:
        return f"GeometricObject({self.shape!r}, {type(self.material).__name__})"


@dataclass
class Scene:
    """Geometric objects, default material and simulation cell.

    Objects later in the list take precedence where they overlap.

    Args:
        objects: Geometric objects in priority order
        default_material: Material outside all objects
        extra_materials: Materials referenced only by user callbacks; they
            take part in global property queries
        cell_size: Simulation cell size (0 along unused axes)
        center: Simulation cell center
        dim: Dimensionality of the simulation
        periodic: Replicate objects across the cell along these axes
    """

    objects: Sequence[GeometricObject] = field(default_factory=list)
    default_material: Material = field(default_factory=UniformMaterial)
    extra_materials: Sequence[Material] = field(default_factory=list)
    cell_size: tuple[float, float, float] = (0.0, 0.0, 0.0)
    center: tuple[float, float, float] = (0.0, 0.0, 0.0)
    dim: Dimensionality = Dimensionality.D3
    periodic: tuple[bool, bool, bool] = (False, False, False)

    def __post_init__(self):
        # One memo so objects sharing a material still share its copy
        self.objects, self.default_material, self.extra_materials = copy.deepcopy(
            (list(self.objects), self.default_material, list(self.extra_materials))
        )
        self.cell_size = tuple(float(s) for s in self.cell_size)
        self.center = tuple(float(c) for c in self.center)
        if len(self.cell_size) != 3 or any(s < 0 for s in self.cell_size):
            raise ValueError(f"cell_size must be three non-negative values, got {self.cell_size}")
        self.periodic = tuple(bool(p) for p in self.periodic)
        self._rebuild_tree()

    def _rebuild_tree(self) -> None:
        self.tree = ObjectTree(self.objects, self.cell_size, self.periodic)

    def add_object(self, shape: Shape, material: Material) -> int:
        """Append an object (highest priority) and return its index."""
        self.objects.append(GeometricObject(copy.deepcopy(shape), copy.deepcopy(material)))
        self._rebuild_tree()
        return len(self.objects) - 1

    def lattice_coordinates(self, point: ArrayLike) -> NDArray[np.float64]:
        """Map a point into [0, 1]^3 cell coordinates (0 along zero-size axes)."""
        point = np.asarray(point, dtype=np.float64)
        out = np.zeros(3)
        for axis in range(3):
            size = self.cell_size[axis]
            if size != 0:
                out[axis] = 0.5 + (point[axis] - self.center[axis]) / size
        return out

    def materials(self) -> Iterator[Material]:
        """Object materials, extra materials and the default material."""
        for obj in self.objects:
            yield obj.material
        yield from self.extra_materials
        yield self.default_material

    def material_grids(self) -> list[MaterialGrid]:
        return [m for m in self.materials() if isinstance(m, MaterialGrid)]

    @property
    def material_count(self) -> int:
        return len(self.objects)

    def __repr__(self) -> str:
        return (
            f"Scene(objects={len(self.objects)}, dim={self.dim.name}, "
            f"cell_size={self.cell_size}, default={type(self.default_material).__name__})"
        )
