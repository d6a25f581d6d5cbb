"""Electromagnetic media and material variants.

A ``Medium`` is the concrete set of constitutive parameters at one point:
permittivity and permeability tensors, nonlinear coefficients, conductivity
and dispersive susceptibilities. A material describes how to obtain a medium
at a point and is one of a closed set of variants:

- UniformMaterial: the same medium everywhere
- UserMaterial: a callback mapping a point to a medium
- MaterialGrid: a voxelized density field blended between two media
- FileMaterial: a scalar permittivity array loaded from a file
- PerfectConductor: an ideal electric conductor

Resolving a material at a point produces an ``EvaluatedMaterial``; the
material itself is never modified by evaluation.

Example:
    >>> from strata_media.materials import Medium, UniformMaterial
    >>> glass = UniformMaterial(Medium.isotropic(epsilon=2.25))
    >>> glass.medium.epsilon_diag
    (2.25, 2.25, 2.25)
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Union, assert_never

import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.core.components import FieldType
from strata_media.materials.susceptibility import Susceptibility
from strata_media.tensors import SymmetricTensor


class MaterialConfigurationError(ValueError):
    """Raised for a material description that cannot be evaluated."""

    pass


class UnsupportedGridCombinationError(MaterialConfigurationError):
    """Raised when a grid combination policy has no gradient."""

    pass


def _vec3(value, name: str, kind=float) -> tuple:
    out = tuple(kind(v) for v in value)
    if len(out) != 3:
        raise ValueError(f"{name} must have 3 entries, got {len(out)}")
    return out


@dataclass(frozen=True)
class Medium:
    """Constitutive parameters of a material at a point.

    Off-diagonal entries are ordered (xy, xz, yz) and may be complex for
    gyrotropic media; the averaging engine only uses their real parts.

    Args:
        epsilon_diag: Relative permittivity diagonal
        epsilon_offdiag: Relative permittivity off-diagonal
        mu_diag: Relative permeability diagonal
        mu_offdiag: Relative permeability off-diagonal
        E_susceptibilities: Dispersive terms of the permittivity
        H_susceptibilities: Dispersive terms of the permeability
        E_chi2_diag, E_chi3_diag: Electric nonlinear coefficients
        H_chi2_diag, H_chi3_diag: Magnetic nonlinear coefficients
        D_conductivity_diag: Electric conductivity
        B_conductivity_diag: Magnetic conductivity
    """

    epsilon_diag: tuple[float, float, float] = (1.0, 1.0, 1.0)
    epsilon_offdiag: tuple[complex, complex, complex] = (0j, 0j, 0j)
    mu_diag: tuple[float, float, float] = (1.0, 1.0, 1.0)
    mu_offdiag: tuple[complex, complex, complex] = (0j, 0j, 0j)
    E_susceptibilities: tuple[Susceptibility, ...] = field(default=())
    H_susceptibilities: tuple[Susceptibility, ...] = field(default=())
    E_chi2_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    E_chi3_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    H_chi2_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    H_chi3_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    D_conductivity_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    B_conductivity_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name.endswith("susceptibilities"):
                object.__setattr__(self, f.name, tuple(value))
            elif f.name.endswith("offdiag"):
                object.__setattr__(self, f.name, _vec3(value, f.name, complex))
            else:
                object.__setattr__(self, f.name, _vec3(value, f.name))

    @classmethod
    def isotropic(
        cls,
        epsilon: float = 1.0,
        mu: float = 1.0,
        D_conductivity: float = 0.0,
        **kwargs,
    ) -> Medium:
        """Create an isotropic medium."""
        return cls(
            epsilon_diag=(epsilon, epsilon, epsilon),
            mu_diag=(mu, mu, mu),
            D_conductivity_diag=(D_conductivity, D_conductivity, D_conductivity),
            **kwargs,
        )

    def epsmu(self, field_type: FieldType) -> tuple[tuple, tuple]:
        """Diagonal and off-diagonal of epsilon (electric) or mu (magnetic)."""
        if field_type is FieldType.ELECTRIC:
            return self.epsilon_diag, self.epsilon_offdiag
        return self.mu_diag, self.mu_offdiag

    def tensor(self, field_type: FieldType) -> SymmetricTensor:
        """Real symmetric epsilon or mu tensor."""
        diag, off = self.epsmu(field_type)
        return SymmetricTensor(
            diag[0], diag[1], diag[2], off[0].real, off[1].real, off[2].real
        )

    def susceptibilities(self, field_type: FieldType) -> tuple[Susceptibility, ...]:
        if field_type is FieldType.ELECTRIC:
            return self.E_susceptibilities
        return self.H_susceptibilities

    def chi(self, field_type: FieldType, order: int) -> tuple[float, float, float]:
        """Nonlinear coefficient diagonal of order 2 or 3."""
        if order not in (2, 3):
            raise ValueError(f"Nonlinear order must be 2 or 3, got {order}")
        if field_type is FieldType.ELECTRIC:
            return self.E_chi2_diag if order == 2 else self.E_chi3_diag
        return self.H_chi2_diag if order == 2 else self.H_chi3_diag

    def conductivity(self, field_type: FieldType) -> tuple[float, float, float]:
        if field_type is FieldType.ELECTRIC:
            return self.D_conductivity_diag
        return self.B_conductivity_diag

    def has_offdiagonal(self, field_type: FieldType) -> bool:
        _, off = self.epsmu(field_type)
        return any(o != 0 for o in off)

    def summary(self) -> str:
        lines = [
            f"epsilon: {self.epsilon_diag}",
            f"mu: {self.mu_diag}",
        ]
        if any(o != 0 for o in self.epsilon_offdiag):
            lines.append(f"epsilon offdiag: {self.epsilon_offdiag}")
        if any(c != 0 for c in self.D_conductivity_diag):
            lines.append(f"D conductivity: {self.D_conductivity_diag}")
        for sus in self.E_susceptibilities:
            lines.append(f"E {sus!r}")
        for sus in self.H_susceptibilities:
            lines.append(f"H {sus!r}")
        return "\n".join(lines)


VACUUM_MEDIUM = Medium()


class GridCombination(Enum):
    """How overlapping material grids at one point are combined.

    DEFAULT: Only the highest-priority grid contributes
    MEAN: Arithmetic mean of the grid values
    MIN: Minimum of the grid values (no gradient)
    PRODUCT: Product of the grid values (no gradient)
    """

    DEFAULT = "default"
    MEAN = "mean"
    MIN = "min"
    PRODUCT = "product"


@dataclass(frozen=True)
class UniformMaterial:
    """A position-independent medium."""

    medium: Medium = field(default_factory=Medium)

    @property
    def do_averaging(self) -> bool:
        return False


@dataclass(frozen=True, eq=False)
class UserMaterial:
    """A medium supplied point by point by a callback.

    The callback receives a (3,) point and returns a ``Medium``. Off-diagonal
    tensor entries must be real.

    Args:
        func: ``func(point) -> Medium``
        do_averaging: Average the callback numerically over each cell
    """

    func: Callable[[NDArray[np.float64]], Medium]
    do_averaging: bool = False


@dataclass(eq=False)
class MaterialGrid:
    """A density field on a regular lattice blended between two media.

    The weight at normalized coordinate ``(0..1)^3`` is trilinearly
    interpolated, smoothly thresholded with a tanh projection of sharpness
    ``beta`` around ``eta``, then used to interpolate between ``medium_1``
    (weight 0) and ``medium_2`` (weight 1).

    Args:
        weights: Array of shape (nx,), (nx, ny) or (nx, ny, nz) with values in [0, 1]
        medium_1: Medium at weight 0
        medium_2: Medium at weight 1
        beta: Projection sharpness (0 disables projection)
        eta: Projection threshold
        damping: Extra conductivity u(1-u)*damping for intermediate values
        combination: Policy for overlapping grids
        do_averaging: Smooth the grid interface inside a cell

    Example:
        >>> grid = MaterialGrid(
        ...     weights=np.full((10, 10), 0.5),
        ...     medium_1=Medium(),
        ...     medium_2=Medium.isotropic(epsilon=12.0),
        ...     beta=8.0,
        ... )
        >>> grid.grid_size
        (10, 10, 1)
    """

    weights: NDArray[np.float64]
    medium_1: Medium = field(default_factory=Medium)
    medium_2: Medium = field(default_factory=Medium)
    beta: float = 0.0
    eta: float = 0.5
    damping: float = 0.0
    combination: GridCombination = GridCombination.DEFAULT
    do_averaging: bool = True

    def __post_init__(self):
        weights = np.array(self.weights, dtype=np.float64)
        if weights.ndim == 0 or weights.ndim > 3 or weights.size == 0:
            raise MaterialConfigurationError(
                f"Material grid weights must be a non-empty 1-3D array, got shape {weights.shape}"
            )
        while weights.ndim < 3:
            weights = weights[..., np.newaxis]
        if np.any(weights < 0) or np.any(weights > 1):
            raise MaterialConfigurationError("Material grid weights must lie in [0, 1]")
        self.weights = np.ascontiguousarray(weights)

        if self.beta < 0:
            raise MaterialConfigurationError(f"beta must be non-negative, got {self.beta}")
        if not 0.0 <= self.eta <= 1.0:
            raise MaterialConfigurationError(f"eta must lie in [0, 1], got {self.eta}")
        if self.damping < 0:
            raise MaterialConfigurationError(f"damping must be non-negative, got {self.damping}")
        self.combination = GridCombination(self.combination)

    @property
    def grid_size(self) -> tuple[int, int, int]:
        return tuple(int(n) for n in self.weights.shape)

    @property
    def num_weights(self) -> int:
        return int(self.weights.size)

    def update_weights(self, weights: ArrayLike) -> None:
        """Replace the design weights, keeping the lattice shape."""
        weights = np.asarray(weights, dtype=np.float64).reshape(self.weights.shape)
        if np.any(weights < 0) or np.any(weights > 1):
            raise MaterialConfigurationError("Material grid weights must lie in [0, 1]")
        self.weights[...] = weights

    @contextlib.contextmanager
    def perturbed(self, index: int, delta: float) -> Iterator[None]:
        """Temporarily add ``delta`` to the flat weight ``index``.

        The original value is restored on exit. Not safe to use while the
        same grid is evaluated from another thread.
        """
        flat = self.weights.reshape(-1)
        original = flat[index]
        flat[index] = original + delta
        try:
            yield
        finally:
            flat[index] = original

    def same_as(self, other: MaterialGrid) -> bool:
        """Structural equality of two grids."""
        return self is other or (
            self.weights.shape == other.weights.shape
            and np.array_equal(self.weights, other.weights)
            and self.medium_1 == other.medium_1
            and self.medium_2 == other.medium_2
            and self.beta == other.beta
            and self.eta == other.eta
            and self.damping == other.damping
            and self.combination == other.combination
        )

    def __repr__(self) -> str:
        return (
            f"MaterialGrid(size={self.grid_size}, beta={self.beta:g}, eta={self.eta:g}, "
            f"damping={self.damping:g}, combination={self.combination.value})"
        )


@dataclass(eq=False)
class FileMaterial:
    """Scalar permittivity sampled on a lattice spanning the simulation cell.

    Args:
        data: Permittivity array, or None to fall back to the default material
    """

    data: NDArray[np.float64] | None = None

    def __post_init__(self):
        if self.data is not None:
            data = np.array(self.data, dtype=np.float64)
            if data.ndim == 0 or data.ndim > 3 or data.size == 0:
                raise MaterialConfigurationError(
                    f"Epsilon data must be a non-empty 1-3D array, got shape {data.shape}"
                )
            while data.ndim < 3:
                data = data[..., np.newaxis]
            self.data = np.ascontiguousarray(data)

    @property
    def do_averaging(self) -> bool:
        return False


@dataclass(frozen=True)
class PerfectConductor:
    """Ideal electric conductor: metallic for E, transparent identity for H."""

    @property
    def do_averaging(self) -> bool:
        return False


Material = Union[UniformMaterial, UserMaterial, MaterialGrid, FileMaterial, PerfectConductor]


def is_material_grid(material: Material) -> bool:
    return isinstance(material, MaterialGrid)


def is_variable(material: Material, include_grids: bool = True) -> bool:
    """True for materials whose medium depends on position."""
    match material:
        case UserMaterial() | FileMaterial():
            return True
        case MaterialGrid():
            return include_grids
        case UniformMaterial() | PerfectConductor():
            return False
        case _:
            assert_never(material)


def material_equal(a: Material, b: Material) -> bool:
    """Equality of material descriptions.

    Uniform media compare by value, callbacks by identity, grids
    structurally. File and perfect-conductor materials are equal to any
    material of the same kind.
    """
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    match a:
        case UniformMaterial():
            return a.medium == b.medium
        case UserMaterial():
            return a.func is b.func
        case MaterialGrid():
            return a.same_as(b)
        case FileMaterial() | PerfectConductor():
            return True
        case _:
            assert_never(a)


@dataclass(frozen=True, eq=False)
class EvaluatedMaterial:
    """A material resolved at a point.

    Attributes:
        material: The material that was evaluated
        medium: The medium at the evaluation point (vacuum for PerfectConductor)
    """

    material: Material
    medium: Medium

    @property
    def trivial(self) -> bool:
        """True when the medium has no dispersion and no grid damping."""
        if isinstance(self.material, MaterialGrid):
            m1, m2 = self.material.medium_1, self.material.medium_2
            return not (
                m1.E_susceptibilities or m2.E_susceptibilities or self.material.damping != 0
            )
        return not (self.medium.E_susceptibilities or self.medium.H_susceptibilities)

    def epsmu(self, field_type: FieldType) -> tuple[SymmetricTensor, SymmetricTensor]:
        """Tensor and inverse tensor for ``field_type``.

        A perfect conductor has -inf permittivity (inverse -0) and unit
        permeability.
        """
        if isinstance(self.material, PerfectConductor):
            if field_type is FieldType.ELECTRIC:
                inf = float("inf")
                return (
                    SymmetricTensor(-inf, -inf, -inf),
                    SymmetricTensor(-0.0, -0.0, -0.0),
                )
            return SymmetricTensor.identity(), SymmetricTensor.identity()
        tensor = self.medium.tensor(field_type)
        return tensor, tensor.inverse()

    def is_metal(self, field_type: FieldType) -> bool:
        """True if any diagonal entry of the tensor is negative."""
        if isinstance(self.material, PerfectConductor):
            return field_type is FieldType.ELECTRIC
        diag, _ = self.medium.epsmu(field_type)
        return any(d < 0 for d in diag)

    def chi1p1(self, field_type: FieldType) -> float:
        """Trace average of the epsilon or mu diagonal."""
        if isinstance(self.material, PerfectConductor):
            return float("-inf") if field_type is FieldType.ELECTRIC else 1.0
        diag, _ = self.medium.epsmu(field_type)
        return (diag[0] + diag[1] + diag[2]) / 3.0

    def same_medium(self, other: EvaluatedMaterial) -> bool:
        """Equality after evaluation: same kind and same medium (callbacks by identity)."""
        if type(self.material) is not type(other.material):
            return False
        if isinstance(self.material, UserMaterial) and self.material.func is not other.material.func:
            return False
        return self.medium == other.medium

    def with_medium(self, medium: Medium) -> EvaluatedMaterial:
        return replace(self, medium=medium)
