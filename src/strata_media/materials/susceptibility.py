"""Dispersive susceptibility descriptors.

A susceptibility adds a frequency-dependent term to the permittivity (or
permeability) of a medium. Each term has a resonance frequency, a damping
rate and a per-component strength tensor sigma:

    Lorentzian: chi(f) = sigma * f0^2 / (f0^2 - f^2 - i*gamma*f)
    Drude:      chi(f) = sigma * f0^2 / (-f^2 - i*gamma*f)

Gyrotropic, noisy and multilevel-atom variants carry extra parameters that
a time-domain solver needs; for the frequency-domain evaluation done here
they reduce to the Lorentzian/Drude form of their resonance (multilevel
atoms contribute no linear response).

Several media usually share the same physical model and differ only in
strength, so a scene keeps one registry entry per distinct model.

Example:
    >>> from strata_media.materials import Susceptibility
    >>> sus = Susceptibility(frequency=1.0, gamma=0.1, sigma_diag=(2.0, 2.0, 2.0))
    >>> sus.chi1(0.0, 2.0)
    (2+0j)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum


class SusceptibilityKind(Enum):
    LORENTZIAN = "lorentzian"
    DRUDE = "drude"
    NOISY = "noisy"
    GYROTROPIC_LORENTZIAN = "gyrotropic-lorentzian"
    GYROTROPIC_DRUDE = "gyrotropic-drude"
    GYROTROPIC_SATURATED = "gyrotropic-saturated"
    MULTILEVEL = "multilevel"


@dataclass(frozen=True)
class Transition:
    """One transition of a multilevel-atom model."""

    from_level: int
    to_level: int
    transition_rate: float = 0.0
    frequency: float = 0.0
    gamma: float = 0.0
    pumping_rate: float = 0.0
    sigma_diag: tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class Susceptibility:
    """A single dispersive term of a medium.

    Args:
        frequency: Resonance frequency f0
        gamma: Damping rate
        sigma_diag: Strength tensor diagonal
        sigma_offdiag: Strength tensor off-diagonal (xy, xz, yz)
        drude: Use the Drude form (no f0^2 in the denominator)
        alpha: Gyrotropic saturation parameter
        noise_amp: Noise amplitude of a noisy Lorentzian
        bias: Gyrotropic bias vector; nonzero makes the term gyrotropic
        saturated_gyrotropy: Landau-Lifshitz-Gilbert saturated gyrotropy
        is_file: Strength is supplied from a file
        transitions: Multilevel-atom transitions
        initial_populations: Multilevel-atom initial level populations
    """

    frequency: float = 0.0
    gamma: float = 0.0
    sigma_diag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    sigma_offdiag: tuple[float, float, float] = (0.0, 0.0, 0.0)
    drude: bool = False
    alpha: float = 0.0
    noise_amp: float = 0.0
    bias: tuple[float, float, float] = (0.0, 0.0, 0.0)
    saturated_gyrotropy: bool = False
    is_file: bool = False
    transitions: tuple[Transition, ...] = field(default=())
    initial_populations: tuple[float, ...] = field(default=())

    def __post_init__(self):
        for name in ("sigma_diag", "sigma_offdiag", "bias"):
            value = tuple(float(v) for v in getattr(self, name))
            if len(value) != 3:
                raise ValueError(f"{name} must have 3 entries, got {len(value)}")
            object.__setattr__(self, name, value)
        object.__setattr__(self, "transitions", tuple(self.transitions))
        object.__setattr__(
            self, "initial_populations", tuple(float(p) for p in self.initial_populations)
        )
        if self.gamma < 0:
            raise ValueError(f"gamma must be non-negative, got {self.gamma}")

    @property
    def kind(self) -> SusceptibilityKind:
        if self.transitions:
            return SusceptibilityKind.MULTILEVEL
        if self.saturated_gyrotropy:
            return SusceptibilityKind.GYROTROPIC_SATURATED
        if any(b != 0.0 for b in self.bias):
            if self.drude:
                return SusceptibilityKind.GYROTROPIC_DRUDE
            return SusceptibilityKind.GYROTROPIC_LORENTZIAN
        if self.noise_amp != 0.0:
            return SusceptibilityKind.NOISY
        return SusceptibilityKind.DRUDE if self.drude else SusceptibilityKind.LORENTZIAN

    @property
    def equivalence_key(self) -> tuple:
        """Physical parameters that identify the model, excluding strength."""
        return (
            self.bias,
            self.frequency,
            self.gamma,
            self.alpha,
            self.noise_amp,
            self.drude,
            self.saturated_gyrotropy,
            self.is_file,
            self.transitions,
            self.initial_populations,
        )

    def chi1(self, freq: float, sigma: float) -> complex:
        """Linear susceptibility at frequency ``freq`` for strength ``sigma``."""
        if self.kind is SusceptibilityKind.MULTILEVEL:
            return 0j
        w0sq = self.frequency * self.frequency
        if self.drude:
            denom = complex(-freq * freq, -self.gamma * freq)
        else:
            denom = complex(w0sq - freq * freq, -self.gamma * freq)
        if denom == 0:
            return 0j
        return sigma * w0sq / denom

    def sigma_row(self, index: int) -> tuple[float, float, float]:
        """Row ``index`` of the full strength tensor."""
        d, o = self.sigma_diag, self.sigma_offdiag
        rows = (
            (d[0], o[0], o[1]),
            (o[0], d[1], o[2]),
            (o[1], o[2], d[2]),
        )
        return rows[index]

    def scaled(self, factor: float) -> Susceptibility:
        """Copy with the strength tensor multiplied by ``factor``."""
        return replace(
            self,
            sigma_diag=tuple(factor * s for s in self.sigma_diag),
            sigma_offdiag=tuple(factor * s for s in self.sigma_offdiag),
        )

    def __repr__(self) -> str:
        return (
            f"Susceptibility({self.kind.value}, frequency={self.frequency:g}, "
            f"gamma={self.gamma:g}, sigma={self.sigma_diag})"
        )


class SusceptibilityRegistry:
    """Distinct susceptibility models of a scene, keyed on their physics.

    Example:
        >>> registry = SusceptibilityRegistry()
        >>> registry.add(Susceptibility(frequency=1.0, gamma=0.1))
        True
        >>> registry.add(Susceptibility(frequency=1.0, gamma=0.1, sigma_diag=(5, 5, 5)))
        False
        >>> len(registry)
        1
    """

    def __init__(self):
        self._models: dict[tuple, Susceptibility] = {}

    def add(self, susceptibility: Susceptibility) -> bool:
        """Register a model; returns False if an equivalent one exists."""
        key = susceptibility.equivalence_key
        if key in self._models:
            return False
        self._models[key] = susceptibility
        return True

    def find(self, susceptibility: Susceptibility) -> Susceptibility | None:
        return self._models.get(susceptibility.equivalence_key)

    def __contains__(self, susceptibility: object) -> bool:
        return (
            isinstance(susceptibility, Susceptibility)
            and susceptibility.equivalence_key in self._models
        )

    def __iter__(self) -> Iterator[Susceptibility]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def describe(self) -> list[str]:
        """One line per registered model."""
        lines = []
        for sus in self._models.values():
            line = f"{sus.kind.value} susceptibility: frequency={sus.frequency:g}, gamma={sus.gamma:g}"
            if sus.kind in (
                SusceptibilityKind.GYROTROPIC_LORENTZIAN,
                SusceptibilityKind.GYROTROPIC_DRUDE,
                SusceptibilityKind.GYROTROPIC_SATURATED,
            ):
                line += f", bias={sus.bias}"
            if sus.kind is SusceptibilityKind.NOISY:
                line += f", amp={sus.noise_amp:g}"
            lines.append(line)
        return lines
