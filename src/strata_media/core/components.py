"""Field components, directions and dimensionality.

Points are always carried as 3-vectors (x, y, z). Lower-dimensional
simulations use a subset of the axes:

- D1: z only
- D2: x and y
- D3: x, y and z
- CYLINDRICAL: r stored in x, z in z (the azimuthal axis is not sampled)
"""

from __future__ import annotations

from enum import Enum


class FieldType(Enum):
    """Electric (E/D) or magnetic (H/B) field family."""

    ELECTRIC = "electric"
    MAGNETIC = "magnetic"


class Direction(Enum):
    """Component direction. R and P are the cylindrical radial/azimuthal axes."""

    X = "x"
    Y = "y"
    Z = "z"
    R = "r"
    P = "p"

    @property
    def index(self) -> int:
        """Tensor row/column index (R maps to 0, P to 1)."""
        return _DIRECTION_INDEX[self]


_DIRECTION_INDEX = {
    Direction.X: 0,
    Direction.Y: 1,
    Direction.Z: 2,
    Direction.R: 0,
    Direction.P: 1,
}


class Dimensionality(Enum):
    D1 = 1
    D2 = 2
    D3 = 3
    CYLINDRICAL = 4

    @property
    def active_axes(self) -> tuple[int, ...]:
        """Indices of the 3-vector axes that carry coordinates."""
        return _ACTIVE_AXES[self]

    @property
    def num_directions(self) -> int:
        return len(self.active_axes)


_ACTIVE_AXES = {
    Dimensionality.D1: (2,),
    Dimensionality.D2: (0, 1),
    Dimensionality.D3: (0, 1, 2),
    Dimensionality.CYLINDRICAL: (0, 2),
}


class Component(Enum):
    """Yee-lattice field component, named by field letter and direction."""

    EX = ("E", Direction.X)
    EY = ("E", Direction.Y)
    EZ = ("E", Direction.Z)
    ER = ("E", Direction.R)
    EP = ("E", Direction.P)
    DX = ("D", Direction.X)
    DY = ("D", Direction.Y)
    DZ = ("D", Direction.Z)
    DR = ("D", Direction.R)
    DP = ("D", Direction.P)
    HX = ("H", Direction.X)
    HY = ("H", Direction.Y)
    HZ = ("H", Direction.Z)
    HR = ("H", Direction.R)
    HP = ("H", Direction.P)
    BX = ("B", Direction.X)
    BY = ("B", Direction.Y)
    BZ = ("B", Direction.Z)
    BR = ("B", Direction.R)
    BP = ("B", Direction.P)

    @property
    def letter(self) -> str:
        return self.value[0]

    @property
    def direction(self) -> Direction:
        return self.value[1]

    @property
    def index(self) -> int:
        return self.direction.index

    @property
    def field_type(self) -> FieldType:
        return FieldType.ELECTRIC if self.letter in ("E", "D") else FieldType.MAGNETIC

    @classmethod
    def electric_components(cls, dim: Dimensionality) -> tuple[Component, ...]:
        """Electric-field components sampled in a simulation of dimension ``dim``."""
        if dim is Dimensionality.CYLINDRICAL:
            return (cls.ER, cls.EP, cls.EZ)
        if dim is Dimensionality.D1:
            return (cls.EX, cls.EY)
        return (cls.EX, cls.EY, cls.EZ)

    def __repr__(self) -> str:
        return f"Component.{self.name}"
