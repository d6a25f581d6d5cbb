"""
Strata Media - electromagnetic material evaluation for Yee-lattice solvers.

Main exports:
- Scene, GeometricObject: Objects, default material and cell
- Sphere, Block, Cylinder: Geometric shapes
- Medium, UniformMaterial, MaterialGrid, ...: Material variants
- MaterialEvaluator: Point evaluation and global material queries
- SubpixelAverager: Anisotropic subpixel averaging of the inverse permittivity
- AdjointKernel: Gradient of an objective with respect to material-grid weights
- AbsorbingLayer: Scalar absorbing boundary conductivity
"""

from strata_media.boundaries import AbsorbingLayer, ConductivityProfile, Side
from strata_media.core import (
    Component,
    Dimensionality,
    FieldType,
    Volume,
    YeeGrid,
)
from strata_media.evaluation import (
    AdjointKernel,
    AveragingOptions,
    MaterialEvaluator,
    SubpixelAverager,
    kottke_average,
)
from strata_media.geometry import Block, Cylinder, GeometricObject, Scene, Sphere
from strata_media.materials import (
    EvaluatedMaterial,
    FileMaterial,
    GridCombination,
    MaterialConfigurationError,
    MaterialGrid,
    Medium,
    PerfectConductor,
    UniformMaterial,
    UnsupportedGridCombinationError,
    UserMaterial,
)
from strata_media.tensors import SingularTensorError, SymmetricTensor

# Submodules for more specific imports
from . import boundaries, core, evaluation, geometry, io, materials, tensors

__version__ = "0.1.0"

__all__ = [
    # Scene
    "Scene",
    "GeometricObject",
    "Sphere",
    "Block",
    "Cylinder",
    # Materials
    "Medium",
    "UniformMaterial",
    "UserMaterial",
    "MaterialGrid",
    "FileMaterial",
    "PerfectConductor",
    "GridCombination",
    "EvaluatedMaterial",
    "MaterialConfigurationError",
    "UnsupportedGridCombinationError",
    # Evaluation
    "MaterialEvaluator",
    "SubpixelAverager",
    "AveragingOptions",
    "AdjointKernel",
    "kottke_average",
    # Lattice
    "Component",
    "Dimensionality",
    "FieldType",
    "Volume",
    "YeeGrid",
    # Boundaries
    "AbsorbingLayer",
    "ConductivityProfile",
    "Side",
    # Tensors
    "SymmetricTensor",
    "SingularTensorError",
    # Submodules
    "boundaries",
    "core",
    "evaluation",
    "geometry",
    "io",
    "materials",
    "tensors",
]
