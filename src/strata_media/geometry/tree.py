"""Point location among prioritized geometric objects.

``ObjectTree`` answers "which object contains this point" for a scene. Later
objects take precedence over earlier ones, and in periodic directions the
objects are replicated one lattice vector to either side so points near the
cell boundary see the neighboring images. Each hit reports the replica shift
that was applied, so callers can map the point back into the object's frame
with ``point - shift``.

The lookup is a linear scan over objects prefiltered by bounding box, which
is adequate for the modest object counts of design problems.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

if TYPE_CHECKING:
    from strata_media.geometry.scene import GeometricObject


@dataclass(frozen=True, eq=False)
class TreeHit:
    """An object found at a point.

    Attributes:
        object: The containing object
        shift: Replica translation applied to the object
        index: Priority of the object (its position in the scene)
    """

    object: GeometricObject
    shift: NDArray[np.float64]
    index: int

    def same_replica(self, index: int, shift: NDArray[np.float64]) -> bool:
        return self.index == index and np.array_equal(self.shift, shift)


class ObjectTree:
    """Prioritized point lookup over geometric objects.

    Args:
        objects: Objects in priority order (last wins)
        cell_size: Lattice vectors along x, y, z for periodic replication
        periodic: Which axes are periodic

    Example:
        >>> tree = ObjectTree(scene.objects)
        >>> hit = tree.object_at((0.0, 0.0, 0.0))
        >>> hit.index if hit else -1
    """

    def __init__(
        self,
        objects: Sequence[GeometricObject],
        cell_size: ArrayLike = (0.0, 0.0, 0.0),
        periodic: tuple[bool, bool, bool] = (False, False, False),
    ):
        self.objects = list(objects)
        cell_size = np.asarray(cell_size, dtype=np.float64)

        offsets = []
        for axis in range(3):
            if periodic[axis] and np.isfinite(cell_size[axis]) and cell_size[axis] > 0:
                offsets.append((0.0, -cell_size[axis], cell_size[axis]))
            else:
                offsets.append((0.0,))
        self.shifts = [np.array(s, dtype=np.float64) for s in itertools.product(*offsets)]

        self._boxes = [obj.shape.bounding_box for obj in self.objects]

    def _contains(self, index: int, point: NDArray[np.float64]) -> NDArray[np.float64] | None:
        lo, hi = self._boxes[index]
        shape = self.objects[index].shape
        for shift in self.shifts:
            q = point - shift
            if np.any(q < lo) or np.any(q > hi):
                continue
            if shape.contains_point(q):
                return shift
        return None

    def objects_at(self, point: ArrayLike) -> list[TreeHit]:
        """All objects containing ``point``, highest priority first."""
        point = np.asarray(point, dtype=np.float64)
        hits = []
        for index in range(len(self.objects) - 1, -1, -1):
            shift = self._contains(index, point)
            if shift is not None:
                hits.append(TreeHit(self.objects[index], shift, index))
        return hits

    def object_at(self, point: ArrayLike) -> TreeHit | None:
        """Highest-priority object containing ``point``, or None."""
        point = np.asarray(point, dtype=np.float64)
        for index in range(len(self.objects) - 1, -1, -1):
            shift = self._contains(index, point)
            if shift is not None:
                return TreeHit(self.objects[index], shift, index)
        return None

    @property
    def bounding_box(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Union of the object bounding boxes (unshifted)."""
        if not self._boxes:
            return np.zeros(3), np.zeros(3)
        lows = np.array([lo for lo, _ in self._boxes])
        highs = np.array([hi for _, hi in self._boxes])
        return lows.min(axis=0), highs.max(axis=0)

    def __len__(self) -> int:
        return len(self.objects)
