"""
Geometric shapes for material placement.

Shapes are described by a signed distance function (negative inside) and
provide the extra queries subpixel averaging needs:

- normal(): outward surface normal near a point
- chord_length(): length of an axis-aligned segment lying inside the shape
- to_local(): map a world point into normalized object coordinates [0, 1]^3
- local_vjp(): vector-Jacobian product of to_local, for chain-ruling
  material-grid gradients back to world coordinates

Classes:
    Shape: Abstract base class
    Sphere: Sphere with center and radius
    Block: Parallelepiped with center, size and (optionally skewed) axes
    Cylinder: Capped cylinder with arbitrary axis

Example:
    >>> from strata_media.geometry import Block, Sphere
    >>> block = Block(center=(0, 0, 0), size=(1.0, 2.0, 0.0))
    >>> block.to_local((0.25, 0.5, 0.0))
    array([0.75, 0.75, 0.5 ])
    >>> sphere = Sphere(center=(0, 0, 0), radius=0.5)
    >>> bool(sphere.contains_point((0.1, 0.1, 0.1)))
    True
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import ArrayLike, NDArray


def _as_points(points: ArrayLike) -> NDArray[np.float64]:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"points must be Nx3 array, got shape {points.shape}")
    return points


def _as_point(point: ArrayLike) -> NDArray[np.float64]:
    point = np.asarray(point, dtype=np.float64)
    if point.shape != (3,):
        raise ValueError(f"point must have shape (3,), got {point.shape}")
    return point


def _clip_interval(lo: float, hi: float, a: float, b: float) -> float:
    """Length of [lo, hi] intersected with [a, b]."""
    return max(0.0, min(hi, b) - max(lo, a))


class Shape(ABC):
    """Base class for shapes.

    Subclasses implement ``sdf``, ``bounding_box`` and ``chord_length``.
    ``normal`` defaults to the numerical gradient of the signed distance;
    ``to_local`` and ``local_vjp`` default to zero, meaning the shape has no
    normalized coordinate system (a material grid inside it is constant).
    """

    center: NDArray[np.float64]

    @abstractmethod
    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate signed distance at an Nx3 array of points."""
        pass

    @property
    @abstractmethod
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Return (min_corner, max_corner)."""
        pass

    @abstractmethod
    def chord_length(self, point: ArrayLike, axis: int, a: float, b: float) -> float:
        """Length of the segment ``point + t * e_axis, t in [a, b]`` inside the shape."""
        pass

    def contains(self, points: NDArray[np.floating]) -> NDArray[np.bool_]:
        return self.sdf(points) <= 0

    def contains_point(self, point: ArrayLike) -> bool:
        return bool(self.contains(_as_point(point)[np.newaxis, :])[0])

    def normal(self, point: ArrayLike) -> NDArray[np.float64]:
        """Outward normal at the surface point nearest ``point`` (not normalized)."""
        point = _as_point(point)
        lo, hi = self.bounding_box
        extent = np.where(np.isfinite(hi - lo), hi - lo, 1.0)
        h = 1e-6 * max(float(np.max(extent)), 1e-12)
        offsets = np.vstack([np.eye(3) * h, -np.eye(3) * h])
        d = self.sdf(point + offsets)
        return (d[:3] - d[3:]) / (2 * h)

    def to_local(self, point: ArrayLike) -> NDArray[np.float64]:
        return np.zeros(3)

    def local_vjp(self, v: ArrayLike) -> NDArray[np.float64]:
        return np.zeros(3)


class Sphere(Shape):
    """Sphere primitive.

    Local coordinates map the bounding cube of the sphere onto [0, 1]^3.

    Args:
        center: (x, y, z) center position
        radius: Sphere radius
    """

    def __init__(self, center: ArrayLike, radius: float):
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)

        if self.radius <= 0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        return np.linalg.norm(points - self.center, axis=1) - self.radius

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        r = np.full(3, self.radius)
        return self.center - r, self.center + r

    def normal(self, point: ArrayLike) -> NDArray[np.float64]:
        return _as_point(point) - self.center

    def chord_length(self, point: ArrayLike, axis: int, a: float, b: float) -> float:
        w = _as_point(point) - self.center
        rest = float(np.dot(w, w) - w[axis] ** 2)
        disc = self.radius**2 - rest
        if disc < 0:
            return 0.0
        s = math.sqrt(disc)
        return _clip_interval(-w[axis] - s, -w[axis] + s, a, b)

    def to_local(self, point: ArrayLike) -> NDArray[np.float64]:
        return 0.5 + (0.5 / self.radius) * (_as_point(point) - self.center)

    def local_vjp(self, v: ArrayLike) -> NDArray[np.float64]:
        return (0.5 / self.radius) * np.asarray(v, dtype=np.float64)

    def __repr__(self) -> str:
        return f"Sphere(center={self.center.tolist()}, radius={self.radius:g})"


class Block(Shape):
    """Parallelepiped with edges along ``e1``, ``e2``, ``e3``.

    A zero size along an axis makes the block flat in that direction (useful
    in lower-dimensional simulations, where points sit on the plane); an
    infinite size makes it unbounded.

    Args:
        center: (x, y, z) center position
        size: Edge lengths along e1, e2, e3
        e1, e2, e3: Edge directions (normalized internally)

    Example:
        >>> slab = Block(center=(0, 0, 0), size=(0.5, np.inf, np.inf))
    """

    def __init__(
        self,
        center: ArrayLike,
        size: ArrayLike,
        e1: ArrayLike = (1.0, 0.0, 0.0),
        e2: ArrayLike = (0.0, 1.0, 0.0),
        e3: ArrayLike = (0.0, 0.0, 1.0),
    ):
        self.center = np.array(center, dtype=np.float64)
        self.size = np.array(size, dtype=np.float64)
        if self.size.shape != (3,) or np.any(self.size < 0):
            raise ValueError(f"Block size must be three non-negative values, got {size}")

        axes = np.array([e1, e2, e3], dtype=np.float64).T
        norms = np.linalg.norm(axes, axis=0)
        if np.any(norms == 0):
            raise ValueError("Block axes must be nonzero vectors")
        self.axes = axes / norms
        if abs(np.linalg.det(self.axes)) < 1e-12:
            raise ValueError("Block axes must be linearly independent")
        self.projection_matrix = np.linalg.inv(self.axes)

    def _project(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        return (points - self.center) @ self.projection_matrix.T

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        q = np.abs(self._project(points)) - self.size / 2
        outside = np.linalg.norm(np.maximum(q, 0), axis=1)
        inside = np.minimum(np.max(q, axis=1), 0)
        return outside + inside

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        extent = np.abs(self.axes)
        with np.errstate(invalid="ignore"):
            half = 0.5 * np.where(extent > 0, extent * self.size, 0.0).sum(axis=1)
        return self.center - half, self.center + half

    def normal(self, point: ArrayLike) -> NDArray[np.float64]:
        """Normal of the face closest to ``point``."""
        proj = self._project(_as_point(point)[np.newaxis, :])[0]
        with np.errstate(invalid="ignore"):
            gap = np.abs(np.abs(proj) - self.size / 2)
        gap = np.where(np.isfinite(self.size) & (self.size > 0), gap, np.inf)
        if not np.any(np.isfinite(gap)):
            return np.zeros(3)
        i = int(np.argmin(gap))
        sign = 1.0 if proj[i] >= 0 else -1.0
        return sign * self.projection_matrix[i]

    def chord_length(self, point: ArrayLike, axis: int, a: float, b: float) -> float:
        proj = self._project(_as_point(point)[np.newaxis, :])[0]
        slope = self.projection_matrix[:, axis]
        lo, hi = a, b
        for i in range(3):
            half = self.size[i] / 2
            if slope[i] == 0:
                if abs(proj[i]) > half:
                    return 0.0
                continue
            t1 = (-half - proj[i]) / slope[i]
            t2 = (half - proj[i]) / slope[i]
            lo = max(lo, min(t1, t2))
            hi = min(hi, max(t1, t2))
        return max(0.0, hi - lo)

    def to_local(self, point: ArrayLike) -> NDArray[np.float64]:
        proj = self._project(_as_point(point)[np.newaxis, :])[0]
        scale = np.where(self.size != 0, self.size, 1.0)
        return 0.5 + proj / scale

    def local_vjp(self, v: ArrayLike) -> NDArray[np.float64]:
        v = np.asarray(v, dtype=np.float64)
        scale = np.where(self.size != 0, self.size, 1.0)
        return self.projection_matrix.T @ (v / scale)

    def __repr__(self) -> str:
        return f"Block(center={self.center.tolist()}, size={self.size.tolist()})"


class Cylinder(Shape):
    """Capped cylinder.

    Cylinders have no normalized coordinate system, so a material grid placed
    in one evaluates as a constant.

    Args:
        center: (x, y, z) center of the axis
        radius: Cylinder radius
        height: Length along the axis
        axis: Axis direction (normalized internally)

    Example:
        >>> pillar = Cylinder(center=(0, 0, 0), radius=0.2, height=1.0)
    """

    def __init__(
        self,
        center: ArrayLike,
        radius: float,
        height: float,
        axis: ArrayLike = (0.0, 0.0, 1.0),
    ):
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)
        self.height = float(height)

        if self.radius <= 0:
            raise ValueError(f"Cylinder radius must be positive, got {self.radius}")
        if self.height < 0:
            raise ValueError(f"Cylinder height must be non-negative, got {self.height}")

        axis = np.array(axis, dtype=np.float64)
        length = np.linalg.norm(axis)
        if length == 0:
            raise ValueError("Cylinder axis must be a nonzero vector")
        self.axis = axis / length

    def _split(self, points: NDArray[np.float64]) -> tuple[NDArray, NDArray]:
        w = points - self.center
        axial = w @ self.axis
        radial = np.linalg.norm(w - axial[:, np.newaxis] * self.axis, axis=1)
        return axial, radial

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        axial, radial = self._split(points)
        d = np.stack([radial - self.radius, np.abs(axial) - self.height / 2], axis=1)
        outside = np.linalg.norm(np.maximum(d, 0), axis=1)
        inside = np.minimum(np.max(d, axis=1), 0)
        return outside + inside

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        half_axis = np.abs(self.axis) * self.height / 2
        radial = self.radius * np.sqrt(np.clip(1.0 - self.axis**2, 0.0, 1.0))
        half = half_axis + radial
        return self.center - half, self.center + half

    def normal(self, point: ArrayLike) -> NDArray[np.float64]:
        """Radial or axial normal, whichever surface is closer."""
        point = _as_point(point)
        w = point - self.center
        axial = float(w @ self.axis)
        radial_vec = w - axial * self.axis
        radial = float(np.linalg.norm(radial_vec))
        if abs(radial - self.radius) < abs(abs(axial) - self.height / 2):
            if radial == 0:
                return np.zeros(3)
            return radial_vec / radial
        return self.axis * (1.0 if axial >= 0 else -1.0)

    def chord_length(self, point: ArrayLike, axis: int, a: float, b: float) -> float:
        w = _as_point(point) - self.center
        e = np.zeros(3)
        e[axis] = 1.0
        lo, hi = a, b

        # Caps: |(w + t e) . axis| <= h/2
        w_ax, e_ax = float(w @ self.axis), float(e @ self.axis)
        half = self.height / 2
        if e_ax == 0:
            if abs(w_ax) > half:
                return 0.0
        else:
            t1, t2 = (-half - w_ax) / e_ax, (half - w_ax) / e_ax
            lo, hi = max(lo, min(t1, t2)), min(hi, max(t1, t2))

        # Side: |perp(w + t e)|^2 <= r^2
        wp = w - w_ax * self.axis
        ep = e - e_ax * self.axis
        qa = float(ep @ ep)
        qb = 2.0 * float(wp @ ep)
        qc = float(wp @ wp) - self.radius**2
        if qa == 0:
            if qc > 0:
                return 0.0
        else:
            disc = qb * qb - 4 * qa * qc
            if disc < 0:
                return 0.0
            s = math.sqrt(disc)
            lo = max(lo, (-qb - s) / (2 * qa))
            hi = min(hi, (-qb + s) / (2 * qa))
        return max(0.0, hi - lo)

    def __repr__(self) -> str:
        return (
            f"Cylinder(center={self.center.tolist()}, radius={self.radius:g}, "
            f"height={self.height:g}, axis={self.axis.tolist()})"
        )
