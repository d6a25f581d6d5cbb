"""
Point evaluation of scene materials.

``MaterialEvaluator`` turns a point of a continuous scene into concrete
constitutive parameters:

- resolves the highest-priority object at the point (or the default material)
- dereferences variable materials (grids, callbacks, file data) into a medium
- adds absorbing-layer conductivity profiles
- answers global questions about the scene (is anything dispersive,
  anisotropic, conducting, nonlinear?)

Evaluation never mutates a material. Each call returns a fresh
``EvaluatedMaterial`` owned by the caller, so evaluators may be shared by
concurrent readers as long as no grid weights are being updated.

Example:
    >>> from strata_media.evaluation import MaterialEvaluator
    >>> evaluator = MaterialEvaluator(scene, resolution=20)
    >>> evaluator.chi1p1(FieldType.ELECTRIC, (0.0, 0.0, 0.0))
    12.0
"""

from __future__ import annotations

import math
import warnings
from collections.abc import Iterator, Sequence
from dataclasses import replace
from typing import assert_never

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.boundaries.absorbers import AbsorbingLayer, ConductivityProfile
from strata_media.core.components import Component, FieldType
from strata_media.core.grid import YeeGrid
from strata_media.evaluation.matgrid import blend_media, combined_value, interpolate, tanh_projection
from strata_media.geometry.scene import Scene
from strata_media.geometry.tree import TreeHit
from strata_media.materials.base import (
    VACUUM_MEDIUM,
    EvaluatedMaterial,
    FileMaterial,
    Material,
    MaterialConfigurationError,
    MaterialGrid,
    Medium,
    PerfectConductor,
    UniformMaterial,
    UserMaterial,
)
from strata_media.materials.susceptibility import Susceptibility, SusceptibilityRegistry
from strata_media.tensors import invert_complex


class MaterialEvaluator:
    """Point evaluator and global property queries for a scene.

    Args:
        scene: Scene to evaluate
        resolution: Pixels per unit length of the solver grid
        absorbers: Absorbing layers whose conductivity is added everywhere

    Attributes:
        scene: The evaluated scene
        grid: Yee lattice of the solver
        profiles: Sampled absorber conductivity, keyed by (axis, side)
    """

    def __init__(
        self,
        scene: Scene,
        resolution: float,
        absorbers: Sequence[AbsorbingLayer] = (),
    ):
        self.scene = scene
        self.grid = YeeGrid(scene.dim, resolution, scene.cell_size, scene.center)
        self.profiles: dict[tuple, ConductivityProfile] = {}
        for layer in absorbers:
            self.set_conductivity_profile(layer)
        self._registries = {ft: self._collect_susceptibilities(ft) for ft in FieldType}

    # =========================================================================
    # Resolution
    # =========================================================================

    def set_conductivity_profile(self, layer: AbsorbingLayer) -> None:
        """Sample an absorbing layer, replacing any profile on the same sides.

        Profiles are sampled every half pixel.
        """
        spacing = 0.5 / self.grid.resolution
        for side in layer.sides:
            self.profiles[(layer.axis, side)] = ConductivityProfile.build(
                layer.axis,
                side,
                layer.thickness,
                spacing,
                profile=layer.profile,
                reflection=layer.reflection,
            )

    def hits(self, point: ArrayLike) -> list[TreeHit]:
        """Objects containing ``point``, highest priority first."""
        return self.scene.tree.objects_at(point)

    def material_at(self, point: ArrayLike) -> Material:
        """Unevaluated material of the highest-priority object at ``point``."""
        hit = self.scene.tree.object_at(point)
        return self.scene.default_material if hit is None else hit.object.material

    def evaluate(self, point: ArrayLike) -> EvaluatedMaterial:
        """Resolve ``point`` to its material and evaluate it there."""
        point = np.asarray(point, dtype=np.float64)
        return self.evaluate_material(self.material_at(point), point)

    def evaluate_material(self, material: Material, point: ArrayLike) -> EvaluatedMaterial:
        """Evaluate a given material at ``point``.

        Raises:
            MaterialConfigurationError: If a user callback returns something
                other than a Medium, or a tensor with complex off-diagonals
        """
        point = np.asarray(point, dtype=np.float64)
        match material:
            case UniformMaterial():
                return EvaluatedMaterial(material, material.medium)
            case PerfectConductor():
                return EvaluatedMaterial(material, VACUUM_MEDIUM)
            case MaterialGrid():
                u = combined_value(self.scene, point, self.hits(point), material)
                u = tanh_projection(u, material.beta, material.eta)
                return EvaluatedMaterial(material, blend_media(material, u))
            case FileMaterial():
                return self._evaluate_file(material, point)
            case UserMaterial():
                return EvaluatedMaterial(material, self._call_user(material, point))
            case _:
                assert_never(material)

    def _evaluate_file(self, material: FileMaterial, point: NDArray[np.float64]) -> EvaluatedMaterial:
        if material.data is None:
            default = self.scene.default_material
            if isinstance(default, FileMaterial):
                return EvaluatedMaterial(default, VACUUM_MEDIUM)
            warnings.warn(
                "File material has no epsilon data; using the default material",
                UserWarning,
                stacklevel=3,
            )
            return self.evaluate_material(default, point)
        eps = interpolate(material.data, self.scene.lattice_coordinates(point))
        return EvaluatedMaterial(material, replace(VACUUM_MEDIUM, epsilon_diag=(eps, eps, eps)))

    @staticmethod
    def _call_user(material: UserMaterial, point: NDArray[np.float64]) -> Medium:
        medium = material.func(point.copy())
        if not isinstance(medium, Medium):
            raise MaterialConfigurationError(
                f"User material callback must return a Medium, got {type(medium).__name__}"
            )
        for name in ("epsilon_offdiag", "mu_offdiag"):
            if any(v.imag != 0 for v in getattr(medium, name)):
                raise MaterialConfigurationError(
                    f"User material {name} must be real (Hermitian tensor), got {getattr(medium, name)}"
                )
        return medium

    # =========================================================================
    # Point properties
    # =========================================================================

    def chi1p1(self, field_type: FieldType, point: ArrayLike) -> float:
        """Trace average of epsilon (electric) or mu (magnetic) at ``point``."""
        return self.evaluate(point).chi1p1(field_type)

    def conductivity(self, component: Component, point: ArrayLike) -> float:
        """Conductivity seen by ``component`` at ``point``, absorbers included.

        Absorber conductivity is isotropic and applies to both field types.
        """
        point = np.asarray(point, dtype=np.float64)
        evaluated = self.evaluate(point)
        value = evaluated.medium.conductivity(component.field_type)[component.index]
        for (axis, _), profile in self.profiles.items():
            if axis in self.scene.dim.active_axes:
                value += profile.value(
                    point[axis], self.scene.center[axis], self.scene.cell_size[axis]
                )
        return value

    def chi(self, component: Component, point: ArrayLike, order: int) -> float:
        """Second- or third-order nonlinear coefficient at ``point``."""
        evaluated = self.evaluate(point)
        if isinstance(evaluated.material, (FileMaterial, PerfectConductor)):
            return 0.0
        return evaluated.medium.chi(component.field_type, order)[component.index]

    # =========================================================================
    # Global queries
    # =========================================================================

    def _media(self) -> Iterator[tuple[Material, Medium]]:
        """Every statically known medium of the scene."""
        for material in self.scene.materials():
            match material:
                case UniformMaterial():
                    yield material, material.medium
                case MaterialGrid():
                    yield material, material.medium_1
                    yield material, material.medium_2
                case UserMaterial() | FileMaterial() | PerfectConductor():
                    continue
                case _:
                    assert_never(material)

    def has_chi(self, component: Component, order: int) -> bool:
        ft = component.field_type
        return any(m.chi(ft, order)[component.index] != 0 for _, m in self._media())

    def has_nonlinearity(self, field_type: FieldType) -> bool:
        return any(any(m.chi(field_type, 2)) or any(m.chi(field_type, 3)) for _, m in self._media())

    def has_mu(self) -> bool:
        """True if any medium has non-unit permeability."""
        return any(
            any(d != 1 for d in m.mu_diag) or m.has_offdiagonal(FieldType.MAGNETIC)
            for _, m in self._media()
        )

    def has_conductivity(self, component: Component) -> bool:
        if self.profiles:
            return True
        ft = component.field_type
        for material, medium in self._media():
            if medium.conductivity(ft)[component.index] != 0:
                return True
            if ft is FieldType.ELECTRIC and isinstance(material, MaterialGrid) and material.damping != 0:
                return True
        return False

    def has_dispersion(self, field_type: FieldType) -> bool:
        return len(self._registries[field_type]) > 0

    def has_anisotropy(self, field_type: FieldType) -> bool:
        """True if any tensor has off-diagonal entries or unequal diagonal entries."""
        for _, medium in self._media():
            diag, _ = medium.epsmu(field_type)
            if medium.has_offdiagonal(field_type) or not diag[0] == diag[1] == diag[2]:
                return True
        return False

    # =========================================================================
    # Susceptibilities
    # =========================================================================

    def _collect_susceptibilities(self, field_type: FieldType) -> SusceptibilityRegistry:
        registry = SusceptibilityRegistry()
        for _, medium in self._media():
            for sus in medium.susceptibilities(field_type):
                registry.add(sus)
        return registry

    def susceptibilities(self, field_type: FieldType) -> SusceptibilityRegistry:
        """Distinct susceptibility models of the scene for ``field_type``."""
        return self._registries[field_type]

    def sigma_row(
        self, component: Component, point: ArrayLike, susceptibility: Susceptibility
    ) -> tuple[float, float, float]:
        """Strength-tensor row of ``susceptibility`` in the medium at ``point``.

        All terms of the local medium equivalent to ``susceptibility`` are
        summed; a medium without such a term gives zeros.
        """
        medium = self.evaluate(point).medium
        row = np.zeros(3)
        key = susceptibility.equivalence_key
        for sus in medium.susceptibilities(component.field_type):
            if sus.equivalence_key == key:
                row += sus.sigma_row(component.index)
        return tuple(float(v) for v in row)

    # =========================================================================
    # Frequency-domain tensors
    # =========================================================================

    @staticmethod
    def dispersive_tensor(evaluated: EvaluatedMaterial, frequency: float) -> NDArray[np.complex128]:
        """Complex permittivity tensor at ``frequency``.

        Each diagonal entry is multiplied by the conductivity factor
        ``1 + i sigma_D / (2 pi f)``; off-diagonal entries are Hermitian.
        At zero frequency the conductivity factor is omitted.
        """
        medium = evaluated.medium
        d, o = medium.epsilon_diag, medium.epsilon_offdiag
        tensor = np.array(
            [
                [d[0], o[0], o[1]],
                [o[0].conjugate(), d[1], o[2]],
                [o[1].conjugate(), o[2].conjugate(), d[2]],
            ],
            dtype=np.complex128,
        )
        for sus in medium.E_susceptibilities:
            for i in range(3):
                for j, sigma in enumerate(sus.sigma_row(i)):
                    tensor[i, j] += sus.chi1(frequency, sigma)
        if frequency != 0:
            for i in range(3):
                tensor[i, i] *= complex(1.0, medium.D_conductivity_diag[i] / (2 * math.pi * frequency))
        return tensor

    def dispersive_inverse_row(
        self, component: Component, evaluated: EvaluatedMaterial, frequency: float
    ) -> NDArray[np.complex128]:
        """Row of the inverse complex permittivity tensor for ``component``."""
        inverse = invert_complex(self.dispersive_tensor(evaluated, frequency))
        return inverse[component.index].copy()

    @staticmethod
    def conductivity_factor(
        evaluated: EvaluatedMaterial, component: Component, frequency: float
    ) -> complex:
        """``1 + i sigma_D / (2 pi f)`` for the direction of ``component``."""
        if frequency == 0:
            return complex(1.0, 0.0)
        sigma = evaluated.medium.D_conductivity_diag[component.index]
        return complex(1.0, sigma / (2 * math.pi * frequency))

    def epsilon_grid(
        self,
        x: ArrayLike,
        y: ArrayLike,
        z: ArrayLike,
        frequency: float = 0.0,
    ) -> NDArray[np.complex128]:
        """Scalar permittivity sampled on the tensor product of ``x``, ``y``, ``z``.

        Args:
            x, y, z: Coordinates along each axis (at least one value each)
            frequency: 0 for the instantaneous trace, else the trace of the
                dispersive tensor divided by 3

        Returns:
            Complex array of shape (len(x), len(y), len(z))
        """
        x, y, z = (np.atleast_1d(np.asarray(a, dtype=np.float64)) for a in (x, y, z))
        if x.size == 0 or y.size == 0 or z.size == 0:
            raise ValueError("epsilon_grid needs at least one coordinate along each axis")
        out = np.empty((x.size, y.size, z.size), dtype=np.complex128)
        for i, xi in enumerate(x):
            for j, yj in enumerate(y):
                for k, zk in enumerate(z):
                    evaluated = self.evaluate((xi, yj, zk))
                    if frequency == 0:
                        out[i, j, k] = evaluated.chi1p1(FieldType.ELECTRIC)
                    else:
                        out[i, j, k] = np.trace(self.dispersive_tensor(evaluated, frequency)) / 3
        return out

    def __repr__(self) -> str:
        return (
            f"MaterialEvaluator(scene={self.scene!r}, resolution={self.grid.resolution}, "
            f"absorbers={len(self.profiles)})"
        )
