"""
Subpixel averaging of material tensors.

A solver cell cut by a material interface is assigned a single anisotropic
effective tensor. When the cell holds two materials separated by a locally
flat interface the Kottke mixing rule is applied in closed form:
tangential components average arithmetically and the normal component
harmonically, in a frame aligned with the interface normal. Cells whose
content cannot be classified fall back to adaptive quadrature of epsilon
and 1/epsilon over the cell.

Classes:
    AveragingOptions: Quadrature tolerance, budget and diagnostic switches
    StencilSide: A material found by the neighbor stencil
    SubpixelAverager: Effective tensors and tensor rows for cells

Example:
    >>> averager = SubpixelAverager(evaluator)
    >>> cell = evaluator.grid.pixel((0.5, 0.0, 0.0))
    >>> averager.effective_row(Component.EX, cell)
    array([0.5555..., 0., 0.])
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import Component, Dimensionality, FieldType
from strata_media.core.grid import Volume
from strata_media.core.quadrature import integrate_real
from strata_media.evaluation.evaluator import MaterialEvaluator
from strata_media.evaluation.matgrid import (
    blend_media,
    combined_gradient,
    combined_value,
    fill_fraction,
    tanh_projection,
)
from strata_media.geometry.overlap import box_overlap
from strata_media.geometry.tree import TreeHit
from strata_media.materials.base import (
    EvaluatedMaterial,
    FileMaterial,
    Material,
    MaterialGrid,
    is_variable,
    material_equal,
)
from strata_media.tensors import SymmetricTensor, interface_frame

# Neighbor offsets, in units of the cell half-width, probed around the center
_STENCILS = {
    Dimensionality.D1: ((0, 0, 0), (0, 0, -1), (0, 0, 1)),
    Dimensionality.D2: ((0, 0, 0), (-1, -1, 0), (1, 1, 0), (-1, 1, 0), (1, -1, 0)),
    Dimensionality.CYLINDRICAL: ((0, 0, 0), (-1, 0, -1), (1, 0, 1), (-1, 0, 1), (1, 0, -1)),
    Dimensionality.D3: (
        (0, 0, 0),
        (1, 1, 1),
        (1, 1, -1),
        (1, -1, 1),
        (1, -1, -1),
        (-1, 1, 1),
        (-1, 1, -1),
        (-1, -1, 1),
        (-1, -1, -1),
    ),
}

# Gradients shorter than this carry no usable normal
_MIN_GRADIENT = 1e-8


@dataclass
class AveragingOptions:
    """Settings for subpixel averaging.

    Args:
        tol: Relative tolerance of the overlap and fallback integrals
        maxeval: Evaluation budget of each integral (0 disables averaging)
        use_anisotropic_averaging: Apply subpixel averaging at all
        check_positive_definite: Warn when a Kottke result is not positive definite
        warn_on_nonconvergence: Warn when an integral exhausts its budget
    """

    tol: float = 1e-4
    maxeval: int = 100000
    use_anisotropic_averaging: bool = True
    check_positive_definite: bool = False
    warn_on_nonconvergence: bool = False

    def __post_init__(self):
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.maxeval < 0:
            raise ValueError(f"maxeval must be non-negative, got {self.maxeval}")


@dataclass(frozen=True, eq=False)
class StencilSide:
    """A material seen by the neighbor stencil.

    Attributes:
        material: Material at ``point`` (the default material outside objects)
        point: Stencil point where the material was found
        index: Object priority, -1 for the default material
        shift: Periodic replica shift of the object
        hit: Tree hit of the object, None for the default material
    """

    material: Material
    point: NDArray[np.float64]
    index: int
    shift: NDArray[np.float64]
    hit: TreeHit | None

    def same_replica(self, index: int, shift: NDArray[np.float64]) -> bool:
        return self.index == index and np.array_equal(self.shift, shift)


def kottke_average(
    eps_front: SymmetricTensor,
    eps_behind: SymmetricTensor,
    fill: float,
    normal: ArrayLike,
) -> SymmetricTensor:
    """Effective tensor of two media separated by a flat interface.

    Args:
        eps_front: Tensor of the front medium
        eps_behind: Tensor of the behind medium
        fill: Volume fraction of the front medium
        normal: Unit interface normal

    Returns:
        Averaged tensor in world axes (not inverted)
    """
    rot = interface_frame(normal)
    a = eps_front.rotate(rot)
    b = eps_behind.rotate(rot)

    def avg(f) -> float:
        return fill * f(a) + (1 - fill) * f(b)

    d00 = avg(lambda e: -1 / e.m00)
    d11 = avg(lambda e: e.m11 - e.m01 * e.m01 / e.m00)
    d22 = avg(lambda e: e.m22 - e.m02 * e.m02 / e.m00)
    d01 = avg(lambda e: e.m01 / e.m00)
    d02 = avg(lambda e: e.m02 / e.m00)
    d12 = avg(lambda e: e.m12 - e.m02 * e.m01 / e.m00)

    mixed = SymmetricTensor(
        m00=-1 / d00,
        m11=d11 - d01 * d01 / d00,
        m22=d22 - d02 * d02 / d00,
        m01=-d01 / d00,
        m02=-d02 / d00,
        m12=d12 - d02 * d01 / d00,
    )
    return mixed.rotate(rot.T)


class SubpixelAverager:
    """Effective inverse tensors of solver cells.

    Args:
        evaluator: Point evaluator of the scene
        options: Averaging settings
    """

    def __init__(self, evaluator: MaterialEvaluator, options: AveragingOptions | None = None):
        self.evaluator = evaluator
        self.options = options or AveragingOptions()

    @property
    def scene(self):
        return self.evaluator.scene

    # =========================================================================
    # Stencil classification
    # =========================================================================

    def _stencil_side(self, point: NDArray[np.float64]) -> StencilSide:
        hit = self.scene.tree.object_at(point)
        if hit is None:
            return StencilSide(self.scene.default_material, point, -1, np.zeros(3), None)
        material = hit.object.material
        if isinstance(material, FileMaterial):
            material = self.scene.default_material
        return StencilSide(material, point, hit.index, hit.shift, hit)

    def front_object(self, volume: Volume) -> tuple[StencilSide, StencilSide] | None:
        """Classify the materials around a cell into front and behind.

        Probes the stencil of the scene's dimensionality and keeps the two
        highest-priority distinct (object, replica) pairs.

        Returns:
            ``(front, behind)``, equal when only one material is present, or
            None when more than two materials conflict
        """
        center = volume.center
        half = volume.size / 2
        first: StencilSide | None = None
        second: StencilSide | None = None

        for offset in _STENCILS[self.scene.dim]:
            side = self._stencil_side(center + np.asarray(offset) * half)
            if (first is not None and first.same_replica(side.index, side.shift)) or (
                second is not None and second.same_replica(side.index, side.shift)
            ):
                continue

            if first is None:
                first = side
            elif second is None or (
                side.index >= first.index
                and side.index >= second.index
                and (first.index == second.index or material_equal(first.material, second.material))
            ):
                second = side
            elif not (
                first.index < second.index
                and (first.index == side.index or material_equal(first.material, side.material))
            ) and not (
                second.index < first.index
                and (second.index == side.index or material_equal(second.material, side.material))
            ):
                return None

        if second is None:
            second = first
        if first.index >= second.index:
            return first, (first if first.index == second.index else second)
        return second, first

    # =========================================================================
    # Effective tensor
    # =========================================================================

    def _unaveraged(self, field_type: FieldType, point: NDArray[np.float64]) -> SymmetricTensor:
        return self.evaluator.evaluate(point).epsmu(field_type)[1]

    def _grid_interface(
        self, grid: MaterialGrid, volume: Volume
    ) -> tuple[float, NDArray[np.float64], float, float] | None:
        """Interface of a grid inside a cell.

        Returns:
            ``(fill, normal, u_front, u_behind)``: the fill fraction of the
            solid side, the unit density gradient and the projected densities
            blended on either side of the interface. The side densities reach
            0 and 1 only for interfaces that are sharp on the scale of the
            cell, and collapse to the point density as the interface leaves
            the cell or the density gradient vanishes. None when the cell
            needs no averaging.
        """
        radius = volume.diameter / 2
        if grid.beta == 0 or radius == 0:
            return None
        center = volume.center
        hits = self.evaluator.hits(center)
        gradient = combined_gradient(self.scene, center, hits, grid)
        norm = float(np.linalg.norm(gradient))
        if norm == 0:
            return None
        uval = combined_value(self.scene, center, hits, grid)
        d = (grid.eta - uval) / norm
        fill = fill_fraction(self.scene.dim, d, radius, uval, grid.eta)
        if fill is None:
            return None
        u = tanh_projection(uval, grid.beta, grid.eta)
        sharpness = (1 - abs(d) / radius) * math.tanh((grid.beta * norm * radius) ** 2)
        return fill, gradient / norm, u + sharpness * (1 - u), u * (1 - sharpness)

    def effective_matrix(
        self, field_type: FieldType, volume: Volume
    ) -> tuple[SymmetricTensor | None, bool]:
        """Inverse effective tensor of a cell.

        Args:
            field_type: Electric (epsilon) or magnetic (mu)
            volume: The cell

        Returns:
            ``(inverse_tensor, fallback)``; when ``fallback`` is True the cell
            needs numeric averaging and the tensor is None
        """
        opts = self.options
        center = volume.center
        if opts.maxeval == 0 or not opts.use_anisotropic_averaging:
            return self._unaveraged(field_type, center), False

        sides = self.front_object(volume)
        if sides is None:
            return None, True
        front, behind = sides
        mat, mat_behind = front.material, behind.material

        if (is_variable(mat, include_grids=False) and mat.do_averaging) or (
            is_variable(mat_behind, include_grids=False) and mat_behind.do_averaging
        ):
            return None, True

        if material_equal(mat, mat_behind):
            interface = None
            if isinstance(mat, MaterialGrid) and mat.do_averaging:
                interface = self._grid_interface(mat, volume)
            if interface is None:
                evaluated = self.evaluator.evaluate_material(mat, center)
                return evaluated.epsmu(field_type)[1], False
            fill, normal, u_front, u_behind = interface
            ev_front = EvaluatedMaterial(mat, blend_media(mat, u_front))
            ev_behind = EvaluatedMaterial(mat, blend_media(mat, u_behind))
        else:
            ev_front = self.evaluator.evaluate_material(mat, front.point)
            ev_behind = self.evaluator.evaluate_material(mat_behind, behind.point)
            if ev_front.same_medium(ev_behind):
                return ev_front.epsmu(field_type)[1], False
            fill = normal = None

        if ev_front.is_metal(field_type) or ev_behind.is_metal(field_type):
            return self._unaveraged(field_type, center), False

        if normal is None:
            if front.hit is None:
                return self._unaveraged(field_type, center), False
            shape = front.hit.object.shape
            normal = shape.normal(center - front.shift)
            norm = float(np.linalg.norm(normal))
            if norm == 0 or not math.isfinite(norm):
                return self._unaveraged(field_type, center), False
            normal = normal / norm
            overlap = box_overlap(volume.shifted(front.shift), shape, opts.tol, opts.maxeval)
            if opts.warn_on_nonconvergence and not overlap.converged:
                warnings.warn(
                    f"Overlap integral did not converge at {center.tolist()} "
                    f"(error estimate {overlap.error:.3g})",
                    UserWarning,
                    stacklevel=2,
                )
            fill = overlap.value

        eps_front, inv_front = ev_front.epsmu(field_type)
        eps_behind, inv_behind = ev_behind.epsmu(field_type)
        if fill >= 1.0:
            return inv_front, False
        if fill <= 0.0:
            return inv_behind, False

        mixed = kottke_average(eps_front, eps_behind, fill, normal)
        if opts.check_positive_definite and not mixed.is_positive_definite():
            warnings.warn(
                f"Averaged tensor at {center.tolist()} is not positive definite: {mixed!r}",
                UserWarning,
                stacklevel=2,
            )
        return mixed.inverse(), False

    def effective_row(self, component: Component, volume: Volume) -> NDArray[np.float64]:
        """Row of the inverse effective tensor used to update ``component``."""
        tensor, fallback = self.effective_matrix(component.field_type, volume)
        if fallback:
            return self.fallback_row(component, volume)
        return np.array(tensor.row(component.index))

    # =========================================================================
    # Numeric fallback
    # =========================================================================

    def _numeric_gradient(self, field_type: FieldType, volume: Volume) -> NDArray[np.float64]:
        """Central-difference gradient of the scalar trace across the cell."""
        center = volume.center
        gradient = np.zeros(3)
        for axis in volume.extended_axes:
            h = volume.size[axis] / 2
            step = np.zeros(3)
            step[axis] = h
            hi = self.evaluator.chi1p1(field_type, center + step)
            lo = self.evaluator.chi1p1(field_type, center - step)
            value = (hi - lo) / (2 * h)
            gradient[axis] = value if math.isfinite(value) else 0.0
        return gradient

    def _report(self, result, center: NDArray[np.float64]) -> None:
        if self.options.warn_on_nonconvergence and not result.converged:
            warnings.warn(
                f"Fallback averaging did not converge at {center.tolist()} "
                f"(error estimate {result.error:.3g})",
                UserWarning,
                stacklevel=3,
            )

    def _grid_means(
        self, grid: MaterialGrid, uval: float, slope: float, radius: float, center: NDArray[np.float64]
    ) -> tuple[float, float]:
        """Mean epsilon and mean 1/epsilon across a grid interface in a sphere.

        The density is linearized along the gradient and the sphere is cut
        into slices perpendicular to it.
        """
        dim = self.scene.dim
        opts = self.options
        eps1 = sum(grid.medium_1.epsilon_diag) / 3
        eps2 = sum(grid.medium_2.epsilon_diag) / 3

        def slice_weight(x: float) -> tuple[float, float]:
            u = tanh_projection(uval + slope * x, grid.beta, grid.eta)
            if dim is Dimensionality.D1:
                w = 1 / (2 * radius)
            elif dim in (Dimensionality.D2, Dimensionality.CYLINDRICAL):
                w = 2 * math.sqrt(max(radius * radius - x * x, 0.0)) / (math.pi * radius * radius)
            else:
                w = math.pi * (radius * radius - x * x) / (4 / 3 * math.pi * radius**3)
            return u, w

        def eps_func(x: float) -> float:
            u, w = slice_weight(x)
            return w * ((1 - u) * eps1 + u * eps2)

        def inveps_func(x: float) -> float:
            u, w = slice_weight(x)
            return w * ((1 - u) / eps1 + u / eps2)

        meps = integrate_real(eps_func, [-radius], [radius], opts.tol, opts.maxeval)
        minveps = integrate_real(inveps_func, [-radius], [radius], opts.tol, opts.maxeval)
        self._report(meps, center)
        self._report(minveps, center)
        return meps.value, minveps.value

    def _cell_means(self, field_type: FieldType, volume: Volume) -> tuple[float, float, bool]:
        """Mean epsilon and mean 1/epsilon over a cell, and whether epsilon went negative.

        Cylindrical cells are weighted by |r| (stored along x), so cells
        straddling the axis keep a positive volume.
        """
        opts = self.options
        axes = volume.extended_axes
        center = volume.center
        radial = self.scene.dim is Dimensionality.CYLINDRICAL and 0 in axes
        negative = False

        def sample(*coords: float) -> tuple[float, float]:
            nonlocal negative
            point = center.copy()
            for axis, x in zip(axes, coords):
                point[axis] = x
            ep = self.evaluator.chi1p1(field_type, point)
            if ep < 0:
                negative = True
            return ep, (abs(point[0]) if radial else 1.0)

        if not axes:
            ep, _ = sample()
            return ep, 1 / ep, negative

        def eps_func(*coords: float) -> float:
            ep, s = sample(*coords)
            return ep * s

        def inveps_func(*coords: float) -> float:
            ep, s = sample(*coords)
            return s / ep

        xmin = [volume.min_corner[a] for a in axes]
        xmax = [volume.max_corner[a] for a in axes]
        meps = integrate_real(eps_func, xmin, xmax, opts.tol, opts.maxeval)
        minveps = integrate_real(inveps_func, xmin, xmax, opts.tol, opts.maxeval)
        self._report(meps, center)
        self._report(minveps, center)

        vol = 1.0
        for lo, hi in zip(xmin, xmax):
            vol *= hi - lo
        if radial:
            r_lo, r_hi = xmin[0], xmax[0]
            vol *= (r_hi * abs(r_hi) - r_lo * abs(r_lo)) / (2 * (r_hi - r_lo))
        return meps.value / vol, minveps.value / vol, negative

    def fallback_row(self, component: Component, volume: Volume) -> NDArray[np.float64]:
        """Inverse-tensor row from numeric averaging over the cell.

        The mean of epsilon and of 1/epsilon are combined with a best-effort
        normal (the grid gradient for material grids, else the gradient of
        the scalar trace), giving ``1/<eps>`` tangentially and ``<1/eps>``
        along the normal.
        """
        field_type = component.field_type
        center = volume.center
        row = component.index
        material = self.evaluator.material_at(center)

        grid = material if isinstance(material, MaterialGrid) else None
        if grid is not None:
            hits = self.evaluator.hits(center)
            gradient = combined_gradient(self.scene, center, hits, grid)
            uval = combined_value(self.scene, center, hits, grid)
        else:
            gradient = self._numeric_gradient(field_type, volume)

        eps, eps_inv = self.evaluator.evaluate_material(material, center).epsmu(field_type)
        norm = float(np.linalg.norm(gradient))
        radius = volume.diameter / 2
        if not eps.is_isotropic or norm < _MIN_GRADIENT or radius == 0:
            return np.array(eps_inv.row(row))

        if grid is not None:
            meps, minveps = self._grid_means(grid, uval, norm, radius, center)
            negative = False
        else:
            meps, minveps, negative = self._cell_means(field_type, volume)
        if negative:
            meps = self.evaluator.chi1p1(field_type, center)
            minveps = 1 / meps

        n = gradient / norm
        out = n[row] * n * (minveps - 1 / meps)
        out[row] += 1 / meps
        return out

    def __repr__(self) -> str:
        return f"SubpixelAverager(tol={self.options.tol:g}, maxeval={self.options.maxeval})"
