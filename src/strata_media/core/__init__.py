"""Core containers: components, volumes, the Yee lattice and quadrature."""

from strata_media.core.components import Component, Dimensionality, Direction, FieldType
from strata_media.core.grid import ComponentRegion, Volume, YeeGrid
from strata_media.core.quadrature import QuadratureResult, integrate_complex, integrate_real

__all__ = [
    "Component",
    "ComponentRegion",
    "Dimensionality",
    "Direction",
    "FieldType",
    "QuadratureResult",
    "Volume",
    "YeeGrid",
    "integrate_complex",
    "integrate_real",
]
