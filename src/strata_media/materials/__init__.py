"""Electromagnetic media, material variants and dispersive susceptibilities.

Material Types:
    - UniformMaterial: Position-independent medium
    - UserMaterial: Medium from a user callback
    - MaterialGrid: Voxelized design density between two media
    - FileMaterial: Scalar permittivity array from an HDF5 file
    - PerfectConductor: Ideal electric conductor

Example:
    >>> from strata_media.materials import MaterialGrid, Medium, SILICON
    >>> design = MaterialGrid(
    ...     weights=np.random.rand(20, 20),
    ...     medium_1=Medium(),
    ...     medium_2=SILICON.medium,
    ...     beta=16.0,
    ... )
"""

from .base import (
    VACUUM_MEDIUM,
    EvaluatedMaterial,
    FileMaterial,
    GridCombination,
    Material,
    MaterialConfigurationError,
    MaterialGrid,
    Medium,
    PerfectConductor,
    UniformMaterial,
    UnsupportedGridCombinationError,
    UserMaterial,
    is_material_grid,
    is_variable,
    material_equal,
)
from .library import (
    AIR,
    ALUMINA,
    GALLIUM_ARSENIDE,
    LITHIUM_NIOBATE,
    MATERIALS,
    PEC,
    SILICA,
    SILICON,
    SILICON_NITRIDE,
    VACUUM,
    drude_metal,
    get_material,
    list_categories,
    list_materials,
    lorentz_dielectric,
    material_summary,
)
from .susceptibility import (
    Susceptibility,
    SusceptibilityKind,
    SusceptibilityRegistry,
    Transition,
)

__all__ = [
    # Media and variants
    "Medium",
    "VACUUM_MEDIUM",
    "Material",
    "UniformMaterial",
    "UserMaterial",
    "MaterialGrid",
    "FileMaterial",
    "PerfectConductor",
    "GridCombination",
    "EvaluatedMaterial",
    "is_material_grid",
    "is_variable",
    "material_equal",
    # Errors
    "MaterialConfigurationError",
    "UnsupportedGridCombinationError",
    # Susceptibilities
    "Susceptibility",
    "SusceptibilityKind",
    "SusceptibilityRegistry",
    "Transition",
    # Library
    "VACUUM",
    "AIR",
    "SILICA",
    "SILICON",
    "SILICON_NITRIDE",
    "GALLIUM_ARSENIDE",
    "ALUMINA",
    "LITHIUM_NIOBATE",
    "PEC",
    "MATERIALS",
    "drude_metal",
    "lorentz_dielectric",
    "get_material",
    "list_materials",
    "list_categories",
    "material_summary",
]
