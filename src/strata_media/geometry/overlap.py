"""Fraction of a box covered by a shape.

The box is swept by axis-aligned chords along its first extended axis; the
chord lengths inside the shape are integrated over the remaining extended
axes with adaptive quadrature.
"""

from __future__ import annotations

import numpy as np

from strata_media.core.grid import Volume
from strata_media.core.quadrature import QuadratureResult, integrate_real
from strata_media.geometry.shapes import Shape


def box_overlap(volume: Volume, shape: Shape, tol: float, maxeval: int) -> QuadratureResult:
    """Fraction of ``volume`` lying inside ``shape``.

    Args:
        volume: Box to test (flat axes are ignored)
        shape: Shape to intersect
        tol: Relative quadrature tolerance
        maxeval: Quadrature evaluation budget

    Returns:
        QuadratureResult whose value is the fill fraction in [0, 1]
    """
    axes = volume.extended_axes
    if not axes:
        inside = shape.contains_point(volume.center)
        return QuadratureResult(1.0 if inside else 0.0, 0.0, True)

    line_axis, *other_axes = axes
    length = float(volume.size[line_axis])
    base = volume.center.copy()
    base[line_axis] = volume.min_corner[line_axis]

    def chord(*coords: float) -> float:
        point = base.copy()
        for axis, x in zip(other_axes, coords):
            point[axis] = x
        return shape.chord_length(point, line_axis, 0.0, length)

    if not other_axes:
        return QuadratureResult(chord() / length, 0.0, True)

    xmin = [volume.min_corner[a] for a in other_axes]
    xmax = [volume.max_corner[a] for a in other_axes]
    result = integrate_real(chord, xmin, xmax, tol, maxeval)
    measure = length * float(np.prod([volume.size[a] for a in other_axes]))
    fraction = min(1.0, max(0.0, result.value / measure))
    return QuadratureResult(fraction, result.error / measure, result.converged)
