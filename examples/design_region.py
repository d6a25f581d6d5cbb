"""
Example: Design Region - Material Grid with Absorbing Layers
============================================================
A 2-D silicon waveguide crossing a square design region whose density is
stored on a material grid. Absorbing layers line the x boundaries.

Usage:
    eps-sample examples/design_region.py -f 0 -f 0.65

Cell: 6 × 4 units @ 20 px/unit (2-D)
Design region: 2 × 2 units, 40 × 40 weights between silica and silicon
Absorbers: 1 unit thick on both x sides

Learning objectives:
- Defining a MaterialGrid with tanh projection
- Combining uniform objects with a design grid
- Adding absorbing-layer conductivity for sampling at a frequency
"""

import numpy as np

from strata_media import (
    AbsorbingLayer,
    Block,
    Dimensionality,
    GeometricObject,
    MaterialGrid,
    Scene,
)
from strata_media.materials import SILICA, SILICON

# Smooth initial guess: a bump in the middle of the design region
u = np.linspace(-1.0, 1.0, 40)
X, Y = np.meshgrid(u, u, indexing="ij")
weights = np.clip(1.0 - (X**2 + Y**2), 0.0, 1.0)

design = MaterialGrid(
    weights=weights,
    medium_1=SILICA.medium,
    medium_2=SILICON.medium,
    beta=4.0,
    eta=0.5,
)

waveguide = Block(center=(0, 0, 0), size=(np.inf, 0.5, 0.0))
region = Block(center=(0, 0, 0), size=(2.0, 2.0, 0.0))

scene = Scene(
    objects=[
        GeometricObject(waveguide, SILICON),
        GeometricObject(region, design),
    ],
    default_material=SILICA,
    cell_size=(6.0, 4.0, 0.0),
    dim=Dimensionality.D2,
)
resolution = 20
absorbers = [AbsorbingLayer(thickness=1.0, axis=0)]
