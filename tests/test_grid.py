"""Tests for components, volumes and the Yee lattice."""

import numpy as np
import pytest

from strata_media.core import Component, Dimensionality, Direction, FieldType, Volume, YeeGrid


class TestComponents:
    def test_direction_indices(self):
        assert Direction.R.index == 0
        assert Direction.P.index == 1
        assert Component.EZ.index == 2

    def test_field_types(self):
        assert Component.DX.field_type is FieldType.ELECTRIC
        assert Component.BY.field_type is FieldType.MAGNETIC

    def test_active_axes(self):
        assert Dimensionality.D1.active_axes == (2,)
        assert Dimensionality.D2.active_axes == (0, 1)
        assert Dimensionality.CYLINDRICAL.active_axes == (0, 2)
        assert Dimensionality.D3.num_directions == 3

    def test_electric_components(self):
        assert Component.electric_components(Dimensionality.CYLINDRICAL) == (
            Component.ER,
            Component.EP,
            Component.EZ,
        )
        assert len(Component.electric_components(Dimensionality.D3)) == 3


class TestVolume:
    def test_centered(self):
        volume = Volume.centered((1, 2, 3), (2, 0, 4))
        np.testing.assert_allclose(volume.min_corner, [0, 2, 1])
        np.testing.assert_allclose(volume.center, [1, 2, 3])
        assert volume.extended_axes == (0, 2)
        assert volume.diameter == pytest.approx(np.sqrt(20))

    def test_inverted_corners_raise(self):
        with pytest.raises(ValueError, match="below"):
            Volume((1, 0, 0), (0, 0, 0))

    def test_shifted(self):
        volume = Volume.centered((0, 0, 0), (1, 1, 1)).shifted((1, 0, 0))
        np.testing.assert_allclose(volume.center, [-1, 0, 0])


class TestYeeGrid:
    def test_invalid_resolution(self):
        with pytest.raises(ValueError, match="resolution"):
            YeeGrid(Dimensionality.D2, resolution=0)

    def test_pixel_only_spans_active_axes(self):
        grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1, 1, 0))
        np.testing.assert_allclose(grid.pixel((0.25, 0.25, 0.0)).size, [0.1, 0.1, 0.0])

    def test_yee_shifts(self):
        grid3 = YeeGrid(Dimensionality.D3, resolution=20)
        assert grid3.yee_shift(Component.EX) == (1, 0, 0)
        assert grid3.yee_shift(Component.HX) == (0, 1, 1)
        grid2 = YeeGrid(Dimensionality.D2, resolution=20)
        assert grid2.yee_shift(Component.EZ) == (0, 0, 0)
        assert grid2.yee_shift(Component.HZ) == (1, 1, 0)

    def test_component_region(self):
        grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1, 1, 0))
        region = grid.component_region(Component.EX, Volume((0, 0, 0), (0.2, 0.2, 0)))
        assert region.start == (1, 0, 0)
        assert region.shape == (2, 3, 1)
        assert region.num_samples == 6
        np.testing.assert_allclose(region.position(region.half_index((1, 2, 0))), [0.15, 0.2, 0])

    def test_sample_index(self):
        grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1, 1, 0))
        region = grid.component_region(Component.EX, Volume((0, 0, 0), (0.2, 0.2, 0)))
        assert region.sample_index((3, 2, 0)) == (1, 1, 0)
        assert region.sample_index((2, 0, 0)) is None
        assert region.sample_index((5, 0, 0)) is None

    def test_flat_region_keeps_one_sample(self):
        grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1, 1, 0))
        region = grid.component_region(Component.EX, Volume((0.03, 0, 0), (0.03, 0, 0)))
        assert region.shape == (1, 1, 1)
        assert region.start[0] == 1

    def test_indices_row_major(self):
        grid = YeeGrid(Dimensionality.D2, resolution=10, cell_size=(1, 1, 0))
        region = grid.component_region(Component.EY, Volume((0, 0, 0), (0.1, 0.1, 0)))
        assert region.shape == (2, 1, 1)
        assert list(region.indices()) == [(0, 0, 0), (1, 0, 0)]
