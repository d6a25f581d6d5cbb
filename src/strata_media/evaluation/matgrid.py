"""Material-grid interpolation, projection and combination.

A material grid stores a density ``u`` on an ``nx x ny x nz`` lattice whose
cells tile the normalized cube [0, 1]^3; lattice value ``(i, j, k)`` sits
at the center of its cell. Values between lattice points are trilinear
interpolations, and coordinates just outside the cube are mirrored back in.

The interpolated density is thresholded by a tanh projection and used to
blend the grid's two bounding media. Where several grid objects overlap a
point, their densities are combined according to the grid's
``GridCombination`` policy.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import replace

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import Dimensionality
from strata_media.geometry.scene import Scene
from strata_media.geometry.shapes import Shape
from strata_media.geometry.tree import TreeHit
from strata_media.materials.base import (
    GridCombination,
    MaterialGrid,
    Medium,
    UnsupportedGridCombinationError,
)

Stencil = tuple[tuple[int, int, int], tuple[int, int, int], tuple[float, float, float]]


def map_coordinates(r: ArrayLike, size: Sequence[int], absolute: bool = True) -> Stencil:
    """Locate a normalized coordinate on the lattice.

    Args:
        r: Normalized coordinate (3,)
        size: Lattice size (nx, ny, nz)
        absolute: Return unsigned interpolation fractions

    Returns:
        ``(lo, hi, frac)``: the nearest lattice index, its neighbor toward
        ``r`` (equal to ``lo`` at the lattice edge), and the fractional
        distance from ``lo`` toward ``hi`` (signed if ``absolute`` is False,
        negative when the neighbor lies below).
    """
    lo, hi, frac = [], [], []
    for x, n in zip(np.asarray(r, dtype=np.float64), size):
        if x < 0.0:
            x = -x
        elif x > 1.0:
            x = 2.0 - x
        i = min(int(x * n), n - 1)
        d = x * n - i - 0.5
        j = i + 1 if d >= 0.0 else i - 1
        j = min(max(j, 0), n - 1)
        lo.append(i)
        hi.append(j)
        frac.append(abs(d) if absolute else d)
    return tuple(lo), tuple(hi), tuple(frac)


def stencil_corners(weights_shape: Sequence[int], r: ArrayLike) -> list[int]:
    """Distinct flat indices of the lattice points an interpolation touches."""
    (x1, y1, z1), (x2, y2, z2), _ = map_coordinates(r, weights_shape)
    ny, nz = weights_shape[1], weights_shape[2]
    corners = []
    for x in (x1, x2):
        for y in (y1, y2):
            for z in (z1, z2):
                idx = (x * ny + y) * nz + z
                if idx not in corners:
                    corners.append(idx)
    return corners


def interpolate(weights: NDArray[np.float64], r: ArrayLike) -> float:
    """Trilinear interpolation of a 3-D lattice at normalized coordinate ``r``."""
    (x1, y1, z1), (x2, y2, z2), (dx, dy, dz) = map_coordinates(r, weights.shape)
    D = weights
    return float(
        ((D[x1, y1, z1] * (1 - dx) + D[x2, y1, z1] * dx) * (1 - dy)
         + (D[x1, y2, z1] * (1 - dx) + D[x2, y2, z1] * dx) * dy) * (1 - dz)
        + ((D[x1, y1, z2] * (1 - dx) + D[x2, y1, z2] * dx) * (1 - dy)
           + (D[x1, y2, z2] * (1 - dx) + D[x2, y2, z2] * dx) * dy) * dz
    )


def local_gradient(weights: NDArray[np.float64], r: ArrayLike) -> NDArray[np.float64]:
    """Gradient of the interpolant with respect to the normalized coordinate."""
    size = weights.shape
    (x1, y1, z1), (x2, y2, z2), signed = map_coordinates(r, size, absolute=False)
    sx, sy, sz = (-1.0 if d < 0 else 1.0 for d in signed)
    dx, dy, dz = (abs(d) for d in signed)
    D = weights

    du_dx = sx * (
        ((-D[x1, y1, z1] + D[x2, y1, z1]) * (1 - dy)
         + (-D[x1, y2, z1] + D[x2, y2, z1]) * dy) * (1 - dz)
        + ((-D[x1, y1, z2] + D[x2, y1, z2]) * (1 - dy)
           + (-D[x1, y2, z2] + D[x2, y2, z2]) * dy) * dz
    )
    du_dy = sy * (
        (-(D[x1, y1, z1] * (1 - dx) + D[x2, y1, z1] * dx)
         + (D[x1, y2, z1] * (1 - dx) + D[x2, y2, z1] * dx)) * (1 - dz)
        + (-(D[x1, y1, z2] * (1 - dx) + D[x2, y1, z2] * dx)
           + (D[x1, y2, z2] * (1 - dx) + D[x2, y2, z2] * dx)) * dz
    )
    du_dz = sz * (
        -((D[x1, y1, z1] * (1 - dx) + D[x2, y1, z1] * dx) * (1 - dy)
          + (D[x1, y2, z1] * (1 - dx) + D[x2, y2, z1] * dx) * dy)
        + ((D[x1, y1, z2] * (1 - dx) + D[x2, y1, z2] * dx) * (1 - dy)
           + (D[x1, y2, z2] * (1 - dx) + D[x2, y2, z2] * dx) * dy)
    )
    return np.array([du_dx * size[0], du_dy * size[1], du_dz * size[2]])


def world_gradient(
    grid: MaterialGrid,
    local: ArrayLike,
    shape: Shape | None,
    cell_size: Sequence[float],
) -> NDArray[np.float64]:
    """Gradient of a grid's density with respect to world coordinates.

    Inside an object the local gradient is chain-ruled through the shape's
    coordinate map. For a grid used as the default material the local
    coordinates span the cell, so the gradient is divided by the cell size.
    """
    grad = local_gradient(grid.weights, local)
    if shape is not None:
        return shape.local_vjp(grad)
    out = np.zeros(3)
    for axis in range(3):
        if cell_size[axis] != 0:
            out[axis] = grad[axis] / cell_size[axis]
    return out


def tanh_projection(u: float, beta: float, eta: float) -> float:
    """Smooth threshold of ``u`` around ``eta`` with sharpness ``beta``.

    Returns ``u`` unchanged for ``beta == 0`` and exactly 0.5 at ``u == eta``.
    """
    if beta == 0:
        return u
    if u == eta:
        return 0.5
    tanh_beta_eta = math.tanh(beta * eta)
    return (tanh_beta_eta + math.tanh(beta * (u - eta))) / (
        tanh_beta_eta + math.tanh(beta * (1 - eta))
    )


def blend_media(grid: MaterialGrid, u: float) -> Medium:
    """Medium of a grid at projected density ``u``.

    Permittivity interpolates linearly. Susceptibilities of both bounding
    media are kept side by side, scaled by ``1 - u`` and ``u``. Electric
    conductivity interpolates and gains ``u (1 - u) damping``.
    """
    m1, m2 = grid.medium_1, grid.medium_2
    eps_diag = tuple(a + u * (b - a) for a, b in zip(m1.epsilon_diag, m2.epsilon_diag))
    eps_off = tuple(a + u * (b - a) for a, b in zip(m1.epsilon_offdiag, m2.epsilon_offdiag))
    susceptibilities = tuple(s.scaled(1 - u) for s in m1.E_susceptibilities) + tuple(
        s.scaled(u) for s in m2.E_susceptibilities
    )
    damping = u * (1 - u) * grid.damping
    conductivity = tuple(
        a + u * (b - a) + damping
        for a, b in zip(m1.D_conductivity_diag, m2.D_conductivity_diag)
    )
    return replace(
        Medium(),
        epsilon_diag=eps_diag,
        epsilon_offdiag=eps_off,
        E_susceptibilities=susceptibilities,
        D_conductivity_diag=conductivity,
    )


def fill_fraction(dim: Dimensionality, d: float, r: float, u: float, eta: float) -> float | None:
    """Solid fraction of a spherical cell cut by a planar grid interface.

    The interface lies at distance ``|d|`` from the cell center. The cap
    beyond it holds the side the center is not on, so the solid fraction
    grows monotonically with ``u`` through ``eta``.

    Args:
        dim: Dimensionality (sets whether the cell is a segment, disc or ball)
        d: Signed distance to the interface
        r: Cell radius
        u: Density at the cell center
        eta: Projection threshold

    Returns:
        Fill fraction of ``medium_2``, or None if the interface misses the cell
    """
    d, r = abs(d), abs(r)
    if not d <= r:
        return None
    if dim is Dimensionality.D1:
        cap = (r - d) / (2 * r)
    elif dim in (Dimensionality.D2, Dimensionality.CYLINDRICAL):
        cap = (r * r * math.acos(d / r) - d * math.sqrt(r * r - d * d)) / (math.pi * r * r)
    else:
        cap = (r - d) * (r - d) * (2 * r + d) / (4 * r * r * r)
    return cap if u <= eta else 1 - cap


def stacked_grids(hits: Sequence[TreeHit]) -> tuple[list[TreeHit], bool]:
    """Leading run of grid objects, and whether it reached the end of ``hits``."""
    run = []
    for hit in hits:
        if not isinstance(hit.object.material, MaterialGrid):
            return run, False
        run.append(hit)
    return run, True


def combined_value(
    scene: Scene,
    point: ArrayLike,
    hits: Sequence[TreeHit],
    grid: MaterialGrid,
) -> float:
    """Unprojected density at ``point`` from all overlapping grids.

    ``hits`` are the objects containing the point, highest priority first;
    the walk continues while they are material grids. A default material
    that is itself a grid joins the combination when the walk runs off the
    end of the stack.
    """
    point = np.asarray(point, dtype=np.float64)
    policy = grid.combination
    uprod, umin, usum, udefault = 1.0, 1.0, 0.0, 0.0
    count = 0

    run, exhausted = stacked_grids(hits)
    for hit in run:
        u = interpolate(hit.object.material.weights, hit.object.shape.to_local(point - hit.shift))
        if policy is GridCombination.DEFAULT:
            udefault = u
            exhausted = False
            break
        umin = min(umin, u)
        uprod *= u
        usum += u
        count += 1

    default = scene.default_material
    if exhausted and isinstance(default, MaterialGrid):
        u = interpolate(default.weights, scene.lattice_coordinates(point))
        if count == 0:
            udefault = u
        umin = min(umin, u)
        uprod *= u
        usum += u
        count += 1

    if policy is GridCombination.MIN:
        return umin
    if policy is GridCombination.PRODUCT:
        return uprod
    if policy is GridCombination.MEAN:
        return usum / count if count else 0.0
    return udefault


def combined_gradient(
    scene: Scene,
    point: ArrayLike,
    hits: Sequence[TreeHit],
    grid: MaterialGrid,
) -> NDArray[np.float64]:
    """World-space gradient of :func:`combined_value`.

    Raises:
        UnsupportedGridCombinationError: For MIN and PRODUCT policies
    """
    policy = grid.combination
    if policy in (GridCombination.MIN, GridCombination.PRODUCT):
        raise UnsupportedGridCombinationError(
            f"Gradients are not available for overlapping grids combined with {policy.value}"
        )

    point = np.asarray(point, dtype=np.float64)
    gradient = np.zeros(3)
    count = 0

    run, exhausted = stacked_grids(hits)
    for hit in run:
        obj = hit.object
        gradient += world_gradient(
            obj.material, obj.shape.to_local(point - hit.shift), obj.shape, scene.cell_size
        )
        if policy is GridCombination.DEFAULT:
            exhausted = False
            break
        count += 1

    default = scene.default_material
    if exhausted and isinstance(default, MaterialGrid):
        gradient += world_gradient(
            default, scene.lattice_coordinates(point), None, scene.cell_size
        )
        count += 1

    if policy is GridCombination.MEAN and count:
        gradient /= count
    return gradient
