"""Real-symmetric 3x3 tensor algebra used by subpixel averaging.

Permittivity and permeability tensors of lossless, non-gyrotropic media are
real and symmetric, so they are stored as the six independent entries of the
upper triangle. Values are immutable; every operation returns a new tensor.

Example:
    >>> from strata_media.tensors import SymmetricTensor
    >>> eps = SymmetricTensor.diagonal(2.0, 3.0, 4.0)
    >>> eps.inverse().m00
    0.5
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray


class SingularTensorError(ArithmeticError):
    """Raised when a tensor with an exactly zero determinant is inverted."""

    pass


@dataclass(frozen=True)
class SymmetricTensor:
    """Symmetric 3x3 tensor stored by its upper triangle.

    Equality is exact floating-point comparison of the six entries.

    Args:
        m00, m11, m22: Diagonal entries
        m01, m02, m12: Off-diagonal entries

    Example:
        >>> t = SymmetricTensor(1.0, 2.0, 3.0, m01=0.5)
        >>> t.row(1)
        (0.5, 2.0, 0.0)
    """

    m00: float
    m11: float
    m22: float
    m01: float = 0.0
    m02: float = 0.0
    m12: float = 0.0

    @classmethod
    def diagonal(cls, d0: float, d1: float, d2: float) -> SymmetricTensor:
        """Create a diagonal tensor."""
        return cls(d0, d1, d2)

    @classmethod
    def identity(cls) -> SymmetricTensor:
        return cls(1.0, 1.0, 1.0)

    @classmethod
    def from_array(cls, a: ArrayLike) -> SymmetricTensor:
        """Create a tensor from the upper triangle of a 3x3 array."""
        a = np.asarray(a, dtype=np.float64)
        if a.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 array, got shape {a.shape}")
        return cls(
            float(a[0, 0]), float(a[1, 1]), float(a[2, 2]),
            float(a[0, 1]), float(a[0, 2]), float(a[1, 2]),
        )

    def to_array(self) -> NDArray[np.float64]:
        """Return the full 3x3 matrix."""
        return np.array(
            [
                [self.m00, self.m01, self.m02],
                [self.m01, self.m11, self.m12],
                [self.m02, self.m12, self.m22],
            ],
            dtype=np.float64,
        )

    @property
    def is_diagonal(self) -> bool:
        return self.m01 == 0.0 and self.m02 == 0.0 and self.m12 == 0.0

    @property
    def is_isotropic(self) -> bool:
        """True for a scalar multiple of the identity."""
        return self.is_diagonal and self.m00 == self.m11 == self.m22

    @property
    def trace(self) -> float:
        return self.m00 + self.m11 + self.m22

    @property
    def determinant(self) -> float:
        m00, m11, m22 = self.m00, self.m11, self.m22
        m01, m02, m12 = self.m01, self.m02, self.m12
        return (
            m00 * m11 * m22
            - m02 * m11 * m02
            + 2.0 * m01 * m12 * m02
            - m01 * m01 * m22
            - m12 * m12 * m00
        )

    def row(self, index: int) -> tuple[float, float, float]:
        """Return row ``index`` (0, 1 or 2) of the full matrix."""
        if index == 0:
            return (self.m00, self.m01, self.m02)
        if index == 1:
            return (self.m01, self.m11, self.m12)
        if index == 2:
            return (self.m02, self.m12, self.m22)
        raise IndexError(f"Tensor row index must be 0, 1 or 2, got {index}")

    def inverse(self) -> SymmetricTensor:
        """Closed-form cofactor inverse.

        Diagonal tensors are inverted entry by entry, which gives the same
        result as the cofactor expansion.

        Raises:
            SingularTensorError: If the determinant is exactly zero
        """
        m00, m11, m22 = self.m00, self.m11, self.m22
        m01, m02, m12 = self.m01, self.m02, self.m12

        if self.is_diagonal:
            if m00 == 0.0 or m11 == 0.0 or m22 == 0.0:
                raise SingularTensorError(f"Singular diagonal tensor {self!r}")
            return SymmetricTensor(1.0 / m00, 1.0 / m11, 1.0 / m22)

        det = self.determinant
        if det == 0.0:
            raise SingularTensorError(f"Singular tensor {self!r}")

        detinv = 1.0 / det
        return SymmetricTensor(
            m00=detinv * (m11 * m22 - m12 * m12),
            m11=detinv * (m00 * m22 - m02 * m02),
            m22=detinv * (m11 * m00 - m01 * m01),
            m01=detinv * (m12 * m02 - m01 * m22),
            m02=detinv * (m01 * m12 - m11 * m02),
            m12=detinv * (m01 * m02 - m00 * m12),
        )

    def rotate(self, rotation: ArrayLike) -> SymmetricTensor:
        """Return ``R^T M R`` for a 3x3 orthonormal rotation ``R``."""
        r = np.asarray(rotation, dtype=np.float64)
        if r.shape != (3, 3):
            raise ValueError(f"rotation must be 3x3, got shape {r.shape}")
        return SymmetricTensor.from_array(r.T @ self.to_array() @ r)

    def is_positive_definite(self) -> bool:
        """Sylvester's criterion on the leading principal minors."""
        det2 = self.m00 * self.m11 - self.m01 * self.m01
        return self.m00 > 0.0 and det2 > 0.0 and self.determinant > 0.0

    def __repr__(self) -> str:
        return (
            f"SymmetricTensor(m00={self.m00:g}, m11={self.m11:g}, m22={self.m22:g}, "
            f"m01={self.m01:g}, m02={self.m02:g}, m12={self.m12:g})"
        )


def interface_frame(normal: ArrayLike) -> NDArray[np.float64]:
    """Build a rotation whose first column is the unit interface normal.

    The third column is chosen perpendicular to the normal in the xy-plane
    unless the normal lies within 1e-2 of the z axis, in which case it is
    taken perpendicular in the yz-plane. The second column completes a
    right-handed frame.

    Args:
        normal: Unit normal vector (3,)

    Returns:
        (3, 3) orthonormal matrix
    """
    nx, ny, nz = (float(c) for c in np.asarray(normal, dtype=np.float64))
    rot = np.zeros((3, 3), dtype=np.float64)
    rot[:, 0] = (nx, ny, nz)

    if abs(nx) > 1e-2 or abs(ny) > 1e-2:
        rot[:, 2] = (ny, -nx, 0.0)
    else:
        rot[:, 2] = (0.0, -nz, ny)
    rot[:, 2] /= math.sqrt(float(np.dot(rot[:, 2], rot[:, 2])))

    rot[0, 1] = rot[1, 2] * rot[2, 0] - rot[2, 2] * rot[1, 0]
    rot[1, 1] = rot[2, 2] * rot[0, 0] - rot[0, 2] * rot[2, 0]
    rot[2, 1] = rot[0, 2] * rot[1, 0] - rot[1, 2] * rot[0, 0]
    return rot


def invert_complex(tensor: ArrayLike) -> NDArray[np.complex128]:
    """Invert a general complex 3x3 tensor.

    Raises:
        SingularTensorError: If the tensor is singular
    """
    a = np.asarray(tensor, dtype=np.complex128)
    if a.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 array, got shape {a.shape}")
    if np.linalg.det(a) == 0:
        raise SingularTensorError("Singular complex tensor")
    return np.linalg.inv(a)
