"""Tests for point evaluation and global material queries."""

import math

import numpy as np
import pytest

from strata_media.boundaries import AbsorbingLayer
from strata_media.core import Component, Dimensionality, FieldType
from strata_media.evaluation import MaterialEvaluator
from strata_media.geometry import Block, GeometricObject, Scene, Sphere
from strata_media.materials import (
    PEC,
    FileMaterial,
    MaterialConfigurationError,
    MaterialGrid,
    Medium,
    Susceptibility,
    UniformMaterial,
    UserMaterial,
    drude_metal,
)

E = FieldType.ELECTRIC
H = FieldType.MAGNETIC


def _evaluator(*objects, dim=Dimensionality.D2, cell=(4.0, 4.0, 0.0), **kwargs):
    absorbers = kwargs.pop("absorbers", ())
    scene = Scene(
        objects=[GeometricObject(shape, material) for shape, material in objects],
        cell_size=cell,
        dim=dim,
        **kwargs,
    )
    return MaterialEvaluator(scene, resolution=10, absorbers=absorbers)


# =============================================================================
# Point Evaluation
# =============================================================================


class TestPointEvaluation:
    def test_uniform_objects(self, half_space_evaluator):
        assert half_space_evaluator.chi1p1(E, (-1.0, 0.0, 0.0)) == 9.0
        assert half_space_evaluator.chi1p1(E, (1.0, 0.0, 0.0)) == 1.0
        assert half_space_evaluator.chi1p1(H, (-1.0, 0.0, 0.0)) == 1.0

    def test_material_at_default(self, half_space_evaluator):
        material = half_space_evaluator.material_at((1.0, 0.0, 0.0))
        assert material is half_space_evaluator.scene.default_material

    def test_grid_default_material(self, grid_scene):
        evaluator = MaterialEvaluator(grid_scene, resolution=10)
        assert evaluator.chi1p1(E, (0.1, -0.2, 0.0)) == pytest.approx(2.0)

    def test_grid_without_dispersion(self):
        grid = MaterialGrid(
            weights=np.full((3, 3), 0.5),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=2.5),
        )
        evaluator = _evaluator((Block((0, 0, 0), (2, 2, 0)), grid))
        evaluated = evaluator.evaluate((0.0, 0.0, 0.0))
        assert evaluated.chi1p1(E) == pytest.approx(1.75)
        assert evaluated.trivial

    def test_grid_projection(self):
        grid = MaterialGrid(
            weights=np.full((3, 3), 0.6),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=3.0),
            beta=200.0,
        )
        evaluator = _evaluator((Block((0, 0, 0), (2, 2, 0)), grid))
        assert evaluator.chi1p1(E, (0.0, 0.0, 0.0)) == pytest.approx(3.0, abs=1e-6)

    def test_perfect_conductor(self):
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), PEC))
        assert evaluator.chi1p1(E, (0.0, 0.0, 0.0)) == float("-inf")
        assert evaluator.evaluate((0.0, 0.0, 0.0)).is_metal(E)

    def test_evaluation_does_not_mutate_material(self, grid_scene):
        evaluator = MaterialEvaluator(grid_scene, resolution=10)
        before = grid_scene.default_material.weights.copy()
        evaluator.evaluate((0.1, 0.1, 0.0))
        np.testing.assert_array_equal(grid_scene.default_material.weights, before)


class TestUserMaterial:
    def test_callback_receives_point(self):
        material = UserMaterial(lambda p: Medium.isotropic(epsilon=1.0 + p[0] ** 2))
        evaluator = _evaluator(default_material=material)
        assert evaluator.chi1p1(E, (1.5, 0.0, 0.0)) == pytest.approx(3.25)

    def test_wrong_return_type(self):
        evaluator = _evaluator(default_material=UserMaterial(lambda p: 2.0))
        with pytest.raises(MaterialConfigurationError, match="Medium"):
            evaluator.evaluate((0.0, 0.0, 0.0))

    def test_complex_offdiagonal_rejected(self):
        medium = Medium(epsilon_offdiag=(0.1j, 0, 0))
        evaluator = _evaluator(default_material=UserMaterial(lambda p: medium))
        with pytest.raises(MaterialConfigurationError, match="real"):
            evaluator.evaluate((0.0, 0.0, 0.0))


class TestFileMaterial:
    def test_constant_data(self):
        evaluator = _evaluator(default_material=FileMaterial(np.full((4, 4), 3.0)))
        assert evaluator.chi1p1(E, (1.0, -1.0, 0.0)) == pytest.approx(3.0)

    def test_interpolated_over_cell(self):
        data = np.linspace(1.0, 2.0, 5)
        evaluator = _evaluator(default_material=FileMaterial(data), cell=(1.0, 1.0, 0.0))
        assert evaluator.chi1p1(E, (-0.2, 0.0, 0.0)) == pytest.approx(1.25)

    def test_missing_data_uses_default(self):
        evaluator = _evaluator(
            (Sphere((0, 0, 0), 1.0), FileMaterial()),
            default_material=UniformMaterial(Medium.isotropic(epsilon=2.0)),
        )
        with pytest.warns(UserWarning, match="no epsilon data"):
            assert evaluator.chi1p1(E, (0.0, 0.0, 0.0)) == 2.0

    def test_missing_default_data_is_vacuum(self):
        evaluator = _evaluator(default_material=FileMaterial())
        assert evaluator.chi1p1(E, (0.0, 0.0, 0.0)) == 1.0


# =============================================================================
# Point Properties
# =============================================================================


class TestPointProperties:
    def test_medium_conductivity(self):
        conductor = UniformMaterial(Medium.isotropic(epsilon=2.0, D_conductivity=0.5))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), conductor))
        assert evaluator.conductivity(Component.EX, (0.0, 0.0, 0.0)) == 0.5
        assert evaluator.conductivity(Component.HX, (0.0, 0.0, 0.0)) == 0.0

    def test_absorber_conductivity(self):
        evaluator = _evaluator(absorbers=[AbsorbingLayer(1.0, axis=0)])
        assert evaluator.conductivity(Component.EX, (0.0, 0.0, 0.0)) == 0.0
        assert evaluator.conductivity(Component.EY, (1.9, 0.0, 0.0)) > 0.0
        assert evaluator.conductivity(Component.HZ, (-1.9, 0.0, 0.0)) > 0.0

    def test_absorber_on_inactive_axis_ignored(self):
        evaluator = _evaluator(absorbers=[AbsorbingLayer(1.0, axis=2)])
        assert evaluator.conductivity(Component.EX, (0.0, 0.0, 0.0)) == 0.0

    def test_nonlinear_coefficients(self):
        kerr = UniformMaterial(Medium(E_chi3_diag=(0.0, 0.0, 2.0)))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), kerr))
        assert evaluator.chi(Component.EZ, (0.0, 0.0, 0.0), 3) == 2.0
        assert evaluator.chi(Component.EZ, (0.0, 0.0, 0.0), 2) == 0.0

    def test_file_material_has_no_nonlinearity(self):
        evaluator = _evaluator(default_material=FileMaterial(np.ones(3)))
        assert evaluator.chi(Component.EX, (0.0, 0.0, 0.0), 3) == 0.0


# =============================================================================
# Global Queries
# =============================================================================


class TestGlobalQueries:
    def test_vacuum_scene(self):
        evaluator = _evaluator()
        assert not evaluator.has_dispersion(E)
        assert not evaluator.has_anisotropy(E)
        assert not evaluator.has_mu()
        assert not evaluator.has_conductivity(Component.EX)
        assert not evaluator.has_nonlinearity(E)

    def test_dispersion(self):
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), drude_metal(1.0, 0.1)))
        assert evaluator.has_dispersion(E)
        assert not evaluator.has_dispersion(H)

    def test_anisotropy(self):
        crystal = UniformMaterial(Medium(epsilon_diag=(1.0, 2.0, 3.0)))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), crystal))
        assert evaluator.has_anisotropy(E)
        assert not evaluator.has_anisotropy(H)

    def test_permeability(self):
        magnetic = UniformMaterial(Medium.isotropic(mu=2.0))
        assert _evaluator((Sphere((0, 0, 0), 1.0), magnetic)).has_mu()

    def test_grid_media_are_inspected(self):
        grid = MaterialGrid(
            weights=np.zeros(2),
            medium_2=Medium(E_chi2_diag=(1.0, 0.0, 0.0)),
            damping=0.1,
        )
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), grid))
        assert evaluator.has_chi(Component.EX, 2)
        assert not evaluator.has_chi(Component.EY, 2)
        assert evaluator.has_nonlinearity(E)
        assert evaluator.has_conductivity(Component.EX)
        assert not evaluator.has_conductivity(Component.HX)

    def test_absorbers_imply_conductivity(self):
        evaluator = _evaluator(absorbers=[AbsorbingLayer(1.0, axis=0)])
        assert evaluator.has_conductivity(Component.HY)

    def test_user_materials_only_through_extras(self):
        user = UserMaterial(lambda p: Medium.isotropic(mu=2.0))
        assert not _evaluator(default_material=user).has_mu()
        extra = UniformMaterial(Medium.isotropic(mu=2.0))
        assert _evaluator(default_material=user, extra_materials=[extra]).has_mu()


# =============================================================================
# Susceptibilities and Frequency-Domain Tensors
# =============================================================================


class TestSusceptibilities:
    def test_registry_deduplicates(self):
        weak = Susceptibility(frequency=1.0, gamma=0.1, sigma_diag=(1, 1, 1))
        strong = Susceptibility(frequency=1.0, gamma=0.1, sigma_diag=(5, 5, 5))
        evaluator = _evaluator(
            (Sphere((-1, 0, 0), 0.5), UniformMaterial(Medium(E_susceptibilities=(weak,)))),
            (Sphere((1, 0, 0), 0.5), UniformMaterial(Medium(E_susceptibilities=(strong,)))),
        )
        assert len(evaluator.susceptibilities(E)) == 1

    def test_sigma_row(self):
        sus = Susceptibility(frequency=1.0, sigma_diag=(2, 3, 4))
        evaluator = _evaluator(
            (Sphere((0, 0, 0), 1.0), UniformMaterial(Medium(E_susceptibilities=(sus,))))
        )
        model = next(iter(evaluator.susceptibilities(E)))
        assert evaluator.sigma_row(Component.EY, (0.0, 0.0, 0.0), model) == (0.0, 3.0, 0.0)
        assert evaluator.sigma_row(Component.EY, (1.5, 1.5, 0.0), model) == (0.0, 0.0, 0.0)


class TestDispersiveTensor:
    def test_conductivity_factor(self):
        conductor = UniformMaterial(Medium.isotropic(epsilon=2.0, D_conductivity=1.0))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), conductor))
        evaluated = evaluator.evaluate((0.0, 0.0, 0.0))
        tensor = evaluator.dispersive_tensor(evaluated, 1.0)
        assert tensor[0, 0] == pytest.approx(2.0 * complex(1.0, 1.0 / (2 * math.pi)))
        assert tensor[0, 1] == 0
        factor = evaluator.conductivity_factor(evaluated, Component.EX, 1.0)
        assert factor == pytest.approx(complex(1.0, 1.0 / (2 * math.pi)))

    def test_zero_frequency_omits_conductivity(self):
        conductor = UniformMaterial(Medium.isotropic(epsilon=2.0, D_conductivity=1.0))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), conductor))
        evaluated = evaluator.evaluate((0.0, 0.0, 0.0))
        assert evaluator.dispersive_tensor(evaluated, 0.0)[1, 1] == 2.0
        assert evaluator.conductivity_factor(evaluated, Component.EX, 0.0) == 1.0

    def test_susceptibility_adds_chi(self):
        sus = Susceptibility(frequency=1.0, gamma=0.0, sigma_diag=(2, 2, 2))
        material = UniformMaterial(Medium.isotropic(epsilon=1.0, E_susceptibilities=(sus,)))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), material))
        evaluated = evaluator.evaluate((0.0, 0.0, 0.0))
        tensor = evaluator.dispersive_tensor(evaluated, 0.5)
        assert tensor[2, 2] == pytest.approx(1.0 + 2.0 / 0.75)

    def test_hermitian_offdiagonal(self):
        gyro = UniformMaterial(Medium(epsilon_diag=(2, 2, 2), epsilon_offdiag=(0.5j, 0, 0)))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), gyro))
        tensor = evaluator.dispersive_tensor(evaluator.evaluate((0.0, 0.0, 0.0)), 1.0)
        np.testing.assert_allclose(tensor, tensor.conj().T)

    def test_inverse_row(self):
        material = UniformMaterial(Medium(epsilon_diag=(2.0, 4.0, 8.0)))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), material))
        evaluated = evaluator.evaluate((0.0, 0.0, 0.0))
        row = evaluator.dispersive_inverse_row(Component.EY, evaluated, 1.0)
        np.testing.assert_allclose(row, [0.0, 0.25, 0.0])


class TestEpsilonGrid:
    def test_shape_and_values(self, half_space_evaluator):
        values = half_space_evaluator.epsilon_grid([-1.0, 1.0], [0.0, 0.5, 1.0], [0.0])
        assert values.shape == (2, 3, 1)
        np.testing.assert_allclose(values[0], 9.0)
        np.testing.assert_allclose(values[1], 1.0)

    def test_scalar_coordinates(self, half_space_evaluator):
        assert half_space_evaluator.epsilon_grid(-1.0, 0.0, 0.0).shape == (1, 1, 1)

    def test_empty_axis_raises(self, half_space_evaluator):
        with pytest.raises(ValueError, match="at least one"):
            half_space_evaluator.epsilon_grid([], [0.0], [0.0])

    def test_lossy_medium_at_frequency(self):
        conductor = UniformMaterial(Medium.isotropic(epsilon=2.0, D_conductivity=1.0))
        evaluator = _evaluator((Sphere((0, 0, 0), 1.0), conductor))
        value = evaluator.epsilon_grid([0.0], [0.0], [0.0], frequency=1.0)[0, 0, 0]
        assert value.real == pytest.approx(2.0)
        assert value.imag == pytest.approx(2.0 / (2 * math.pi))
