"""Pytest configuration and shared scenes for the strata-media test suite."""

import numpy as np
import pytest

from strata_media.core import Dimensionality
from strata_media.evaluation import MaterialEvaluator
from strata_media.geometry import Block, GeometricObject, Scene
from strata_media.materials import MaterialGrid, Medium, UniformMaterial

# =============================================================================
# Materials
# =============================================================================


@pytest.fixture
def eps9():
    """Isotropic dielectric with epsilon 9."""
    return UniformMaterial(Medium.isotropic(epsilon=9.0))


@pytest.fixture
def design_grid():
    """2x2 material grid at weight 0.5 between epsilon 1 and 3."""
    return MaterialGrid(
        weights=np.full((2, 2), 0.5),
        medium_1=Medium(),
        medium_2=Medium.isotropic(epsilon=3.0),
    )


# =============================================================================
# Scenes
# =============================================================================


@pytest.fixture
def half_space_scene(eps9):
    """3-D cell whose x < 0 half is filled with epsilon 9 (vacuum elsewhere)."""
    slab = Block(center=(-1.0, 0.0, 0.0), size=(2.0, 10.0, 10.0))
    return Scene(
        objects=[GeometricObject(slab, eps9)],
        cell_size=(4.0, 4.0, 4.0),
        dim=Dimensionality.D3,
    )


@pytest.fixture
def half_space_evaluator(half_space_scene):
    return MaterialEvaluator(half_space_scene, resolution=10)


@pytest.fixture
def grid_scene(design_grid):
    """2-D unit cell whose default material is ``design_grid``."""
    return Scene(
        default_material=design_grid,
        cell_size=(1.0, 1.0, 0.0),
        dim=Dimensionality.D2,
    )
