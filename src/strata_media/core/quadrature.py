"""Adaptive multidimensional quadrature.

Thin wrappers around :func:`scipy.integrate.nquad` that report convergence
instead of raising or printing. QUADPACK signals trouble through
``IntegrationWarning``; those warnings are captured and turned into the
``converged`` flag of the result.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from scipy import integrate

# Points used by one adaptive Gauss-Kronrod subdivision step
_POINTS_PER_INTERVAL = 21


@dataclass(frozen=True)
class QuadratureResult:
    """Integral value with its error estimate and a convergence flag."""

    value: float | complex
    error: float
    converged: bool


def _subdivision_limit(maxeval: int, ndim: int) -> int:
    per_axis = max(maxeval, 1) ** (1.0 / ndim)
    return max(1, int(per_axis // _POINTS_PER_INTERVAL))


def integrate_real(
    func: Callable[..., float],
    xmin: Sequence[float],
    xmax: Sequence[float],
    tol: float,
    maxeval: int,
    abstol: float = 0.0,
) -> QuadratureResult:
    """Integrate a real function over a box.

    Args:
        func: Integrand called as ``func(x0, x1, ...)``
        xmin: Lower bounds, one per dimension
        xmax: Upper bounds, one per dimension
        tol: Relative tolerance
        maxeval: Evaluation budget; bounds the number of adaptive subdivisions
        abstol: Absolute tolerance

    Returns:
        QuadratureResult with ``converged=False`` if the budget ran out
    """
    if len(xmin) != len(xmax) or len(xmin) == 0:
        raise ValueError("xmin and xmax must be non-empty and of equal length")

    ranges = [(float(lo), float(hi)) for lo, hi in zip(xmin, xmax)]
    if any(lo == hi for lo, hi in ranges):
        return QuadratureResult(0.0, 0.0, True)

    opts = {
        "epsabs": abstol,
        "epsrel": tol,
        "limit": _subdivision_limit(maxeval, len(ranges)),
    }
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", integrate.IntegrationWarning)
        value, error = integrate.nquad(func, ranges, opts=opts)

    converged = not any(issubclass(w.category, integrate.IntegrationWarning) for w in caught)
    return QuadratureResult(float(value), float(error), converged)


def integrate_complex(
    func: Callable[..., complex],
    xmin: Sequence[float],
    xmax: Sequence[float],
    tol: float,
    maxeval: int,
    abstol: float = 0.0,
) -> QuadratureResult:
    """Integrate a complex function by integrating its real and imaginary parts."""
    re = integrate_real(lambda *x: complex(func(*x)).real, xmin, xmax, tol, maxeval, abstol)
    im = integrate_real(lambda *x: complex(func(*x)).imag, xmin, xmax, tol, maxeval, abstol)
    return QuadratureResult(
        complex(re.value, im.value),
        float(abs(complex(re.error, im.error))),
        re.converged and im.converged,
    )
