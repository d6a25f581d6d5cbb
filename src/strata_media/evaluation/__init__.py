"""Material evaluation: point evaluator, subpixel averaging and adjoint kernel."""

from strata_media.evaluation.adjoint import AdjointKernel
from strata_media.evaluation.averaging import (
    AveragingOptions,
    StencilSide,
    SubpixelAverager,
    kottke_average,
)
from strata_media.evaluation.evaluator import MaterialEvaluator
from strata_media.evaluation.matgrid import (
    blend_media,
    combined_gradient,
    combined_value,
    fill_fraction,
    interpolate,
    local_gradient,
    map_coordinates,
    stacked_grids,
    stencil_corners,
    tanh_projection,
    world_gradient,
)

__all__ = [
    "MaterialEvaluator",
    "AveragingOptions",
    "StencilSide",
    "SubpixelAverager",
    "kottke_average",
    "AdjointKernel",
    # Material grids
    "map_coordinates",
    "stencil_corners",
    "interpolate",
    "local_gradient",
    "world_gradient",
    "tanh_projection",
    "blend_media",
    "fill_fraction",
    "stacked_grids",
    "combined_value",
    "combined_gradient",
]
