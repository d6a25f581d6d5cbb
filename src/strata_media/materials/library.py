"""Pre-defined material library.

Common dielectrics at optical/near-infrared wavelengths plus helpers for
simple dispersive models. Materials are organized by category:

- Gases: vacuum and air
- Dielectrics: glasses, semiconductors, ceramics
- Conductors: perfect electric conductor

Permittivities are non-dispersive values near 1.55 um unless stated.

    >>> from strata_media.materials import SILICON, get_material
    >>> get_material("silicon") is SILICON
    True
"""

from __future__ import annotations

from .base import Material, Medium, PerfectConductor, UniformMaterial
from .susceptibility import Susceptibility

# =============================================================================
# Gases
# =============================================================================

VACUUM = UniformMaterial(Medium())
"""Vacuum, epsilon = mu = 1."""

AIR = UniformMaterial(Medium.isotropic(epsilon=1.00059))
"""Dry air at 1 atm."""

# =============================================================================
# Dielectrics
# =============================================================================

SILICA = UniformMaterial(Medium.isotropic(epsilon=1.444**2))
"""Fused silica (SiO2), n = 1.444."""

SILICON = UniformMaterial(Medium.isotropic(epsilon=3.476**2))
"""Crystalline silicon, n = 3.476."""

SILICON_NITRIDE = UniformMaterial(Medium.isotropic(epsilon=1.996**2))
"""Stoichiometric silicon nitride (Si3N4), n = 1.996."""

GALLIUM_ARSENIDE = UniformMaterial(Medium.isotropic(epsilon=3.374**2))
"""Gallium arsenide, n = 3.374."""

ALUMINA = UniformMaterial(Medium.isotropic(epsilon=1.746**2))
"""Aluminium oxide (Al2O3), ordinary index n = 1.746."""

LITHIUM_NIOBATE = UniformMaterial(
    Medium(epsilon_diag=(2.211**2, 2.211**2, 2.138**2))
)
"""Lithium niobate, uniaxial: n_o = 2.211, n_e = 2.138 along z."""

# =============================================================================
# Conductors
# =============================================================================

PEC = PerfectConductor()
"""Perfect electric conductor."""


def drude_metal(
    plasma_frequency: float,
    collision_rate: float,
    epsilon_inf: float = 1.0,
) -> UniformMaterial:
    """Drude metal, epsilon(f) = epsilon_inf - fp^2 / (f^2 + i*gamma*f).

    Args:
        plasma_frequency: Plasma frequency fp
        collision_rate: Collision rate gamma
        epsilon_inf: High-frequency permittivity

    Returns:
        UniformMaterial with a single Drude susceptibility
    """
    if plasma_frequency <= 0:
        raise ValueError(f"plasma_frequency must be positive, got {plasma_frequency}")
    term = Susceptibility(
        frequency=plasma_frequency,
        gamma=collision_rate,
        sigma_diag=(1.0, 1.0, 1.0),
        drude=True,
    )
    return UniformMaterial(Medium.isotropic(epsilon=epsilon_inf, E_susceptibilities=(term,)))


def lorentz_dielectric(
    epsilon_inf: float,
    delta_epsilon: float,
    resonance: float,
    linewidth: float,
) -> UniformMaterial:
    """Single-pole Lorentz dielectric.

    epsilon(f) = epsilon_inf + delta_epsilon * f0^2 / (f0^2 - f^2 - i*gamma*f)
    """
    if resonance <= 0:
        raise ValueError(f"resonance must be positive, got {resonance}")
    term = Susceptibility(
        frequency=resonance,
        gamma=linewidth,
        sigma_diag=(delta_epsilon, delta_epsilon, delta_epsilon),
    )
    return UniformMaterial(Medium.isotropic(epsilon=epsilon_inf, E_susceptibilities=(term,)))


# =============================================================================
# Material Registry
# =============================================================================

MATERIALS = {
    "gases": {
        "vacuum": VACUUM,
        "air": AIR,
    },
    "dielectrics": {
        "silica": SILICA,
        "silicon": SILICON,
        "silicon_nitride": SILICON_NITRIDE,
        "gallium_arsenide": GALLIUM_ARSENIDE,
        "alumina": ALUMINA,
        "lithium_niobate": LITHIUM_NIOBATE,
    },
    "conductors": {
        "pec": PEC,
    },
}


def get_material(name: str) -> Material:
    """Look up a material by name.

    Args:
        name: Material name (case-insensitive)

    Returns:
        Material instance

    Raises:
        KeyError: If material not found
    """
    name_lower = name.lower()
    for category in MATERIALS.values():
        for mat_name, material in category.items():
            if mat_name == name_lower:
                return material

    raise KeyError(f"Material '{name}' not found. Use list_materials() to see available materials.")


def list_materials(category: str | None = None) -> list[str]:
    """List available materials, optionally within one category."""
    if category is not None:
        if category not in MATERIALS:
            raise KeyError(f"Unknown category '{category}'. Available: {list(MATERIALS.keys())}")
        return list(MATERIALS[category].keys())

    all_materials = []
    for cat_materials in MATERIALS.values():
        all_materials.extend(cat_materials.keys())
    return all_materials


def list_categories() -> list[str]:
    return list(MATERIALS.keys())


def material_summary(name: str) -> str:
    """Multi-line summary of a library material."""
    material = get_material(name)
    if isinstance(material, PerfectConductor):
        return f"{name}: perfect electric conductor"
    return f"{name}:\n{material.medium.summary()}"
