"""
Example: Dielectric Sphere - Subpixel-Averaged Permittivity
==========================================================
Defines a silicon sphere in air for the eps-sample command.

Usage:
    eps-sample examples/dielectric_sphere.py -o sphere.h5

Cell: 3 × 3 × 3 units @ 10 px/unit
Object: silicon sphere of radius 0.8 at the cell center

Learning objectives:
- Building a Scene from shapes and library materials
- Comparing point permittivity with the averaged tensor of an interface pixel
"""

from strata_media import (
    Component,
    Dimensionality,
    FieldType,
    GeometricObject,
    MaterialEvaluator,
    Scene,
    Sphere,
    SubpixelAverager,
)
from strata_media.materials import SILICON

scene = Scene(
    objects=[GeometricObject(Sphere(center=(0, 0, 0), radius=0.8), SILICON)],
    cell_size=(3.0, 3.0, 3.0),
    dim=Dimensionality.D3,
)
resolution = 10

evaluator = MaterialEvaluator(scene, resolution)
averager = SubpixelAverager(evaluator)

# A pixel straddling the sphere surface on the x axis
cell = evaluator.grid.pixel((0.8, 0.0, 0.0))
ex_row = averager.effective_row(Component.EX, cell)
ey_row = averager.effective_row(Component.EY, cell)

print(f"epsilon inside:  {evaluator.chi1p1(FieldType.ELECTRIC, (0, 0, 0)):.3f}")
print(f"epsilon outside: {evaluator.chi1p1(FieldType.ELECTRIC, (1.2, 0, 0)):.3f}")
# Normal (x) component averages harmonically, tangential (y) arithmetically
print(f"1/eps_xx at surface: {ex_row[0]:.4f} (eps {1 / ex_row[0]:.3f})")
print(f"1/eps_yy at surface: {ey_row[1]:.4f} (eps {1 / ey_row[1]:.3f})")
print(f"anisotropy ratio: {ex_row[0] / ey_row[1]:.3f}")
