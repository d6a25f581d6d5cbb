"""
Adjoint sensitivity of the effective tensor with respect to grid weights.

For a design density on a material grid, the objective gradient with
respect to weight ``u_k`` is the bilinear form ``-lambda^T (dA/du_k) x``,
where ``x`` is the forward field, ``lambda`` the adjoint field and ``A``
the inverse effective tensor. ``dA/du_k`` is estimated by central
differences: the weight is perturbed by ``+-du`` and the affected tensor
row is recomputed, so the derivative includes subpixel smoothing, grid
combination and projection. The truncation error is O(du^2).

Non-dispersive cells difference the subpixel-averaged row of a one-pixel
cell; cells with conductivity, damping or dispersion difference the row of
the inverted complex tensor at the point instead.

Example:
    >>> kernel = AdjointKernel(averager, evaluator.grid, du=1e-6)
    >>> gradient = np.zeros((1, design.num_weights))
    >>> kernel.accumulate_gradient(gradient, fields_a, fields_f, [1 / 1.55], design_region)
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import Component, Dimensionality, FieldType
from strata_media.core.grid import ComponentRegion, Volume, YeeGrid
from strata_media.evaluation.averaging import SubpixelAverager
from strata_media.evaluation.matgrid import (
    combined_value,
    interpolate,
    stacked_grids,
    stencil_corners,
    tanh_projection,
)
from strata_media.materials.base import (
    GridCombination,
    Material,
    MaterialGrid,
    UnsupportedGridCombinationError,
)


def _needs_restriction(material: Material) -> bool:
    """True when off-diagonal forward/adjoint pairs contribute at a point."""
    if material.do_averaging:
        return True
    if isinstance(material, MaterialGrid):
        return any(
            o.real != 0
            for o in material.medium_1.epsilon_offdiag + material.medium_2.epsilon_offdiag
        )
    return False


class AdjointKernel:
    """Finite-difference gradient accumulation for material grids.

    Args:
        averager: Subpixel averager of the scene holding the design grid
        grid: Yee lattice the fields were sampled on
        du: Central-difference step in weight units

    Raises:
        ValueError: If ``du`` is not positive
    """

    def __init__(self, averager: SubpixelAverager, grid: YeeGrid, du: float = 1e-6):
        if du <= 0:
            raise ValueError(f"du must be positive, got {du}")
        self.averager = averager
        self.grid = grid
        self.du = du

    @property
    def evaluator(self):
        return self.averager.evaluator

    # =========================================================================
    # Per-weight derivative
    # =========================================================================

    def material_gradient(
        self,
        point: ArrayLike,
        adjoint_c: Component,
        forward_c: Component,
        fwd: complex,
        frequency: float,
        design: MaterialGrid,
        index: int,
    ) -> complex:
        """``(dA/du)[adjoint row, forward column] * fwd`` for one weight.

        Args:
            point: Evaluation point
            adjoint_c: Adjoint field component (selects the tensor row)
            forward_c: Forward field component (selects the tensor column)
            fwd: Forward field value
            frequency: Frequency of the fields
            design: Grid owning the weight
            index: Flat index of the weight

        Returns:
            The derivative term, including the forward conductivity factor
            for non-trivial materials
        """
        if forward_c.field_type is not FieldType.ELECTRIC:
            raise ValueError(f"Forward component must be electric, got {forward_c.name}")
        point = np.asarray(point, dtype=np.float64)
        column = forward_c.index
        evaluated = self.evaluator.evaluate(point)

        if evaluated.trivial:
            cell = self.grid.pixel(point)
            with design.perturbed(index, -self.du):
                row_1 = self.averager.effective_row(adjoint_c, cell)
            with design.perturbed(index, self.du):
                row_2 = self.averager.effective_row(adjoint_c, cell)
            d_row = (row_1 - row_2) / (2 * self.du)
            return complex(d_row[column] * fwd)

        with design.perturbed(index, -self.du):
            row_1 = self.evaluator.dispersive_inverse_row(
                adjoint_c, self.evaluator.evaluate(point), frequency
            )
        with design.perturbed(index, self.du):
            row_2 = self.evaluator.dispersive_inverse_row(
                adjoint_c, self.evaluator.evaluate(point), frequency
            )
        d_row = (row_1 - row_2) / (2 * self.du)
        factor = self.evaluator.conductivity_factor(evaluated, forward_c, frequency)
        return complex(d_row[column] * fwd * factor)

    def add_interpolate_weights(
        self,
        buffer: NDArray[np.float64],
        design: MaterialGrid,
        local: ArrayLike,
        uval: float,
        scale: float,
        point: NDArray[np.float64],
        adjoint_c: Component,
        forward_c: Component,
        fwd: complex,
        adj: complex,
        frequency: float,
    ) -> None:
        """Add one point's sensitivity to every weight its interpolation touches.

        Each corner's finite difference already carries that corner's
        interpolation coefficient.
        """
        if design.num_weights > buffer.shape[-1]:
            raise ValueError(
                f"Gradient buffer holds {buffer.shape[-1]} weights, grid has {design.num_weights}"
            )
        u = interpolate(design.weights, local)
        if design.combination is GridCombination.MIN and u != uval:
            return
        if design.combination is GridCombination.PRODUCT and u != 0:
            scale *= uval / u

        for index in stencil_corners(design.grid_size, local):
            term = adj * self.material_gradient(
                point, adjoint_c, forward_c, fwd, frequency, design, index
            )
            buffer[index] += term.real * scale

    def accumulate_point(
        self,
        buffer: NDArray[np.float64],
        point: ArrayLike,
        scale: float,
        adjoint_c: Component,
        forward_c: Component,
        fwd: complex,
        adj: complex,
        frequency: float,
    ) -> None:
        """Accumulate the sensitivity of all grids overlapping ``point``.

        Args:
            buffer: Gradient row for one frequency, indexed by flat weight index
            point: Evaluation point
            scale: Overall scale factor
            adjoint_c, forward_c: Field components of the tensor entry
            fwd, adj: Forward and adjoint field values
            frequency: Frequency of the fields

        Raises:
            UnsupportedGridCombinationError: For overlapping grids combined
                with MIN or PRODUCT
        """
        scene = self.evaluator.scene
        point = np.asarray(point, dtype=np.float64)
        hits = self.evaluator.hits(point)
        run, exhausted = stacked_grids(hits)
        default = scene.default_material

        if hits:
            if not run:
                return
            design = run[0].object.material
            if design.combination in (GridCombination.MIN, GridCombination.PRODUCT):
                raise UnsupportedGridCombinationError(
                    "Gradient accumulation does not support overlapping grids combined "
                    f"with {design.combination.value}"
                )
        elif isinstance(default, MaterialGrid):
            design = default
        else:
            return

        policy = design.combination
        uval = tanh_projection(
            combined_value(scene, point, hits, design), design.beta, design.eta
        )
        with_default = isinstance(default, MaterialGrid) and (
            not hits or (exhausted and policy is not GridCombination.DEFAULT)
        )
        if policy is GridCombination.MEAN:
            scale /= len(run) + (1 if with_default else 0)

        args = (adjoint_c, forward_c, fwd, adj, frequency)
        for hit in run:
            local = hit.object.shape.to_local(point - hit.shift)
            self.add_interpolate_weights(
                buffer, hit.object.material, local, uval, scale, point, *args
            )
            if policy is GridCombination.DEFAULT:
                break
        if with_default:
            self.add_interpolate_weights(
                buffer, default, scene.lattice_coordinates(point), uval, scale, point, *args
            )

    # =========================================================================
    # Field loops
    # =========================================================================

    def component_regions(self, where: Volume) -> list[ComponentRegion]:
        """Sample regions of the electric components, in field-array order."""
        return [
            self.grid.component_region(c, where)
            for c in Component.electric_components(self.grid.dim)
        ]

    def _unit(self, component: Component) -> NDArray[np.int64]:
        unit = np.zeros(3, dtype=np.int64)
        if component.index in self.grid.dim.active_axes:
            unit[component.index] = 1
        return unit

    def accumulate_gradient(
        self,
        buffer: NDArray[np.float64],
        fields_a: Sequence[ArrayLike],
        fields_f: Sequence[ArrayLike],
        frequencies: Sequence[float],
        where: Volume,
        scale: float = 1.0,
    ) -> NDArray[np.float64]:
        """Accumulate ``-lambda^T A_u x`` over a design region into ``buffer``.

        Field arrays are given per electric component (the order of
        :meth:`component_regions`), each of shape ``(nfreq, *region.shape)``.
        Pairs of distinct components are only evaluated where the material
        averages or has off-diagonal permittivity; the adjoint value is then
        restricted, and the forward value interpolated, onto the two
        permittivity nodes between them.

        Args:
            buffer: Gradient of shape (nfreq, nweights), updated in place
            fields_a: Adjoint fields per component
            fields_f: Forward fields per component
            frequencies: Frequencies of the field arrays
            where: Design region
            scale: Overall scale factor

        Returns:
            ``buffer``
        """
        if buffer.ndim != 2 or buffer.shape[0] != len(frequencies):
            raise ValueError(
                f"Gradient buffer must have shape (nfreq={len(frequencies)}, nweights), "
                f"got {buffer.shape}"
            )
        components = Component.electric_components(self.grid.dim)
        regions = self.component_regions(where)
        fields_a = [np.asarray(f) for f in fields_a]
        fields_f = [np.asarray(f) for f in fields_f]
        for name, fields in (("fields_a", fields_a), ("fields_f", fields_f)):
            if len(fields) != len(components):
                raise ValueError(f"{name} needs {len(components)} components, got {len(fields)}")
            for f, region in zip(fields, regions):
                expected = (len(frequencies),) + region.shape
                if f.shape != expected:
                    raise ValueError(
                        f"{name} for {region.component.name} must have shape {expected}, got {f.shape}"
                    )

        cylindrical = self.grid.dim is Dimensionality.CYLINDRICAL

        for f_i, frequency in enumerate(frequencies):
            row = buffer[f_i]
            for a_i, (adjoint_c, region_a) in enumerate(zip(components, regions)):
                for idx in region_a.indices():
                    ip = np.asarray(region_a.half_index(idx))
                    p = region_a.position(ip)
                    adj = complex(fields_a[a_i][(f_i,) + idx])
                    evaluated = self.evaluator.evaluate(p)
                    if not evaluated.trivial:
                        adj *= self.evaluator.conductivity_factor(evaluated, adjoint_c, frequency)

                    for f_j, (forward_c, region_f) in enumerate(zip(components, regions)):
                        if forward_c is adjoint_c:
                            fwd = complex(fields_f[f_j][(f_i,) + idx])
                            cyl_scale = 2 * p[0] if cylindrical else 1.0
                            self.accumulate_point(
                                row, p, scale * cyl_scale, adjoint_c, forward_c, fwd, adj, frequency
                            )
                        elif _needs_restriction(evaluated.material):
                            self._accumulate_offdiagonal(
                                row, ip, region_f, fields_f[f_j][f_i], adjoint_c, forward_c,
                                adj, frequency, scale, cylindrical,
                            )
        return buffer

    def _accumulate_offdiagonal(
        self,
        row: NDArray[np.float64],
        ip: NDArray[np.int64],
        region_f: ComponentRegion,
        field_f: NDArray,
        adjoint_c: Component,
        forward_c: Component,
        adj: complex,
        frequency: float,
        scale: float,
        cylindrical: bool,
    ) -> None:
        def forward_at(half: NDArray[np.int64]) -> complex:
            idx = region_f.sample_index(tuple(int(h) for h in half))
            return 0j if idx is None else complex(field_f[idx])

        unit_a = self._unit(adjoint_c)
        unit_f = self._unit(forward_c)
        fwd_p = ip + np.asarray(self.grid.yee_shift(forward_c)) - np.asarray(
            self.grid.yee_shift(adjoint_c)
        )
        fwd_pa = fwd_p + 2 * unit_a
        fwd_pf = fwd_p - 2 * unit_f
        fwd_paf = fwd_pa - 2 * unit_f

        for corner, neighbor in ((fwd_p, fwd_pf), (fwd_pa, fwd_paf)):
            node = (corner + neighbor) // 2
            fwd_avg = 0.5 * forward_at(corner) + 0.5 * forward_at(neighbor)
            position = region_f.position(node)
            cyl_scale = position[0] if cylindrical else 1.0
            self.accumulate_point(
                row, position, scale * cyl_scale, adjoint_c, forward_c, fwd_avg, 0.5 * adj, frequency
            )

    def __repr__(self) -> str:
        return f"AdjointKernel(du={self.du:g}, grid={self.grid!r})"
