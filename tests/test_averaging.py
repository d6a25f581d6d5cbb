"""Tests for subpixel averaging."""

import numpy as np
import pytest

from strata_media.core import Component, Dimensionality, FieldType, Volume
from strata_media.core.quadrature import QuadratureResult
from strata_media.evaluation import (
    AveragingOptions,
    MaterialEvaluator,
    SubpixelAverager,
    averaging,
    kottke_average,
)
from strata_media.geometry import Block, GeometricObject, Scene
from strata_media.materials import PEC, MaterialGrid, Medium, UniformMaterial, UserMaterial
from strata_media.tensors import SymmetricTensor

E = FieldType.ELECTRIC


def _cell(center, size=0.1, dim=Dimensionality.D3):
    extent = np.zeros(3)
    for axis in dim.active_axes:
        extent[axis] = size
    return Volume.centered(center, extent)


class TestAveragingOptions:
    def test_defaults(self):
        options = AveragingOptions()
        assert options.maxeval == 100000
        assert options.use_anisotropic_averaging

    def test_invalid_tolerance(self):
        with pytest.raises(ValueError, match="tol"):
            AveragingOptions(tol=0.0)

    def test_negative_budget(self):
        with pytest.raises(ValueError, match="maxeval"):
            AveragingOptions(maxeval=-1)


class TestKottkeAverage:
    def test_normal_along_x(self):
        mixed = kottke_average(
            SymmetricTensor.diagonal(9.0, 9.0, 9.0),
            SymmetricTensor.identity(),
            0.5,
            (1.0, 0.0, 0.0),
        )
        np.testing.assert_allclose(mixed.to_array(), np.diag([1.8, 5.0, 5.0]), atol=1e-12)

    def test_normal_along_z(self):
        mixed = kottke_average(
            SymmetricTensor.diagonal(4.0, 4.0, 4.0),
            SymmetricTensor.identity(),
            0.25,
            (0.0, 0.0, 1.0),
        )
        # Harmonic mean along z, arithmetic mean across it
        np.testing.assert_allclose(
            mixed.to_array(), np.diag([1.75, 1.75, 1.0 / (0.25 / 4 + 0.75)]), atol=1e-12
        )

    def test_full_fill_returns_front(self):
        front = SymmetricTensor(3.0, 2.0, 2.5, 0.1, 0.0, 0.2)
        mixed = kottke_average(front, SymmetricTensor.identity(), 1.0, (0.0, 1.0, 0.0))
        np.testing.assert_allclose(mixed.to_array(), front.to_array(), atol=1e-12)

    def test_result_is_symmetric_positive_definite(self):
        normal = np.array([1.0, 2.0, 2.0]) / 3.0
        mixed = kottke_average(
            SymmetricTensor.diagonal(12.0, 12.0, 12.0), SymmetricTensor.identity(), 0.3, normal
        )
        array = mixed.to_array()
        np.testing.assert_allclose(array, array.T)
        assert mixed.is_positive_definite()


class TestFrontObject:
    def test_half_space(self, half_space_evaluator):
        averager = SubpixelAverager(half_space_evaluator)
        front, behind = averager.front_object(_cell((0.0, 0.0, 0.0)))
        assert front.index == 0
        assert behind.index == -1
        assert behind.hit is None

    def test_uniform_cell(self, half_space_evaluator):
        averager = SubpixelAverager(half_space_evaluator)
        front, behind = averager.front_object(_cell((-1.0, 0.0, 0.0)))
        assert front is behind
        assert front.index == 0

    def test_three_materials_conflict(self):
        left = Block(center=(-1.0, 0.0, 0.0), size=(2.0, 4.0, 0.0))
        corner = Block(center=(1.0, 1.0, 0.0), size=(2.0, 2.0, 0.0))
        scene = Scene(
            objects=[
                GeometricObject(left, UniformMaterial(Medium.isotropic(epsilon=9.0))),
                GeometricObject(corner, UniformMaterial(Medium.isotropic(epsilon=4.0))),
            ],
            cell_size=(4.0, 4.0, 0.0),
            dim=Dimensionality.D2,
        )
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        cell = _cell((0.01, 0.01, 0.0), dim=Dimensionality.D2)
        assert averager.front_object(cell) is None
        assert averager.effective_matrix(E, cell) == (None, True)


class TestEffectiveTensor:
    @pytest.mark.parametrize("fill, side", [(0.0, (0.5, 0.0, 0.0)), (1.0, (-0.5, 0.0, 0.0))])
    def test_degenerate_fill_returns_side_tensor(
        self, half_space_evaluator, monkeypatch, fill, side
    ):
        monkeypatch.setattr(
            averaging, "box_overlap", lambda *args: QuadratureResult(fill, 0.0, True)
        )
        averager = SubpixelAverager(half_space_evaluator)
        tensor, fallback = averager.effective_matrix(E, _cell((0.0, 0.0, 0.0)))
        assert not fallback
        assert tensor == half_space_evaluator.evaluate(side).epsmu(E)[1]

    def test_interface_cell(self, half_space_evaluator):
        averager = SubpixelAverager(half_space_evaluator)
        cell = _cell((0.0, 0.0, 0.0))
        np.testing.assert_allclose(
            averager.effective_row(Component.EX, cell), [1 / 1.8, 0.0, 0.0], atol=1e-9
        )
        np.testing.assert_allclose(
            averager.effective_row(Component.EY, cell), [0.0, 0.2, 0.0], atol=1e-9
        )

    def test_uniform_cell(self, half_space_evaluator):
        averager = SubpixelAverager(half_space_evaluator)
        tensor, fallback = averager.effective_matrix(E, _cell((-1.0, 0.0, 0.0)))
        assert not fallback
        assert tensor.m00 == pytest.approx(1 / 9)

    def test_magnetic_cell_is_vacuum(self, half_space_evaluator):
        averager = SubpixelAverager(half_space_evaluator)
        row = averager.effective_row(Component.HZ, _cell((0.0, 0.0, 0.0)))
        np.testing.assert_allclose(row, [0.0, 0.0, 1.0])

    @pytest.mark.parametrize(
        "options",
        [AveragingOptions(maxeval=0), AveragingOptions(use_anisotropic_averaging=False)],
    )
    def test_averaging_disabled(self, half_space_evaluator, options):
        averager = SubpixelAverager(half_space_evaluator, options)
        inside = averager.effective_row(Component.EX, _cell((-0.02, 0.0, 0.0)))
        outside = averager.effective_row(Component.EX, _cell((0.02, 0.0, 0.0)))
        np.testing.assert_allclose(inside, [1 / 9, 0.0, 0.0])
        np.testing.assert_allclose(outside, [1.0, 0.0, 0.0])

    def test_metal_is_not_averaged(self):
        slab = Block(center=(-1.0, 0.0, 0.0), size=(2.0, 10.0, 10.0))
        scene = Scene(objects=[GeometricObject(slab, PEC)], cell_size=(4.0, 4.0, 4.0))
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        row = averager.effective_row(Component.EX, _cell((-0.02, 0.0, 0.0)))
        assert np.all(row == 0.0)

    def test_flat_grid_uses_point_value(self):
        grid = MaterialGrid(
            weights=np.full((3, 3), 0.5),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=2.5),
        )
        scene = Scene(default_material=grid, cell_size=(1.0, 1.0, 0.0), dim=Dimensionality.D2)
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        row = averager.effective_row(Component.EX, _cell((0.1, 0.1, 0.0), dim=Dimensionality.D2))
        np.testing.assert_allclose(row, [1 / 1.75, 0.0, 0.0])

    def test_grid_interface(self):
        ramp = MaterialGrid(
            weights=np.linspace(0.0, 1.0, 5),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=3.0),
            beta=1000.0,
        )
        scene = Scene(default_material=ramp, cell_size=(1.0, 1.0, 0.0), dim=Dimensionality.D2)
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.D2)
        # Sharp interface through the cell center: half filled, normal along x
        np.testing.assert_allclose(
            averager.effective_row(Component.EX, cell), [1 / 1.5, 0.0, 0.0], atol=1e-9
        )
        np.testing.assert_allclose(
            averager.effective_row(Component.EY, cell), [0.0, 0.5, 0.0], atol=1e-9
        )

    def test_unprojected_ramp_uses_point_value(self):
        ramp = MaterialGrid(
            weights=np.linspace(0.4, 0.6, 5),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=3.0),
        )
        scene = Scene(default_material=ramp, cell_size=(1.0, 1.0, 0.0), dim=Dimensionality.D2)
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.D2)
        np.testing.assert_allclose(
            averager.effective_row(Component.EX, cell), [0.5, 0.0, 0.0], atol=1e-12
        )
        np.testing.assert_allclose(
            averager.effective_row(Component.EY, cell), [0.0, 0.5, 0.0], atol=1e-12
        )

    def test_vanishing_gradient_relaxes_to_point_value(self):
        ramp = MaterialGrid(
            weights=np.linspace(0.5 - 1e-6, 0.5 + 1e-6, 5),
            medium_1=Medium(),
            medium_2=Medium.isotropic(epsilon=3.0),
            beta=8.0,
        )
        scene = Scene(default_material=ramp, cell_size=(1.0, 1.0, 0.0), dim=Dimensionality.D2)
        evaluator = MaterialEvaluator(scene, resolution=10)
        averager = SubpixelAverager(evaluator)
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.D2)
        point = evaluator.evaluate(cell.center).epsmu(E)[1]
        np.testing.assert_allclose(
            averager.effective_row(Component.EX, cell), point.row(0), atol=1e-9
        )


class TestFallback:
    @pytest.fixture
    def step_averager(self):
        material = UserMaterial(
            lambda p: Medium.isotropic(epsilon=4.0 if p[2] > 0 else 1.0), do_averaging=True
        )
        scene = Scene(default_material=material, cell_size=(0.0, 0.0, 4.0), dim=Dimensionality.D1)
        return SubpixelAverager(MaterialEvaluator(scene, resolution=10))

    def test_user_material_falls_back(self, step_averager):
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.D1)
        assert step_averager.effective_matrix(E, cell) == (None, True)

    def test_step_means(self, step_averager):
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.D1)
        # <1/eps> along the gradient, 1/<eps> across it
        ez = step_averager.effective_row(Component.EZ, cell)
        ey = step_averager.effective_row(Component.EY, cell)
        assert ez[2] == pytest.approx(0.625, rel=1e-3)
        assert ey[1] == pytest.approx(0.4, rel=1e-3)
        assert ez[0] == ez[1] == 0.0

    def test_smooth_callback_without_gradient(self, step_averager):
        cell = _cell((0.0, 0.0, -1.0), dim=Dimensionality.D1)
        np.testing.assert_allclose(step_averager.effective_row(Component.EX, cell), [1.0, 0.0, 0.0])

    def test_cylindrical_cell_on_axis(self):
        material = UserMaterial(
            lambda p: Medium.isotropic(epsilon=4.0 if p[2] > 0 else 1.0), do_averaging=True
        )
        scene = Scene(
            default_material=material, cell_size=(2.0, 0.0, 2.0), dim=Dimensionality.CYLINDRICAL
        )
        averager = SubpixelAverager(MaterialEvaluator(scene, resolution=10))
        cell = _cell((0.0, 0.0, 0.0), dim=Dimensionality.CYLINDRICAL)
        ez = averager.effective_row(Component.EZ, cell)
        er = averager.effective_row(Component.ER, cell)
        assert np.all(np.isfinite(ez)) and np.all(np.isfinite(er))
        assert ez[2] == pytest.approx(0.625, rel=1e-3)
        assert er[0] == pytest.approx(0.4, rel=1e-3)
