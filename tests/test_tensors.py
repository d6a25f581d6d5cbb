"""Tests for symmetric tensor algebra."""

import numpy as np
import pytest

from strata_media.tensors import (
    SingularTensorError,
    SymmetricTensor,
    interface_frame,
    invert_complex,
)

SPD = np.array(
    [
        [4.0, 1.0, 0.5],
        [1.0, 3.0, 0.2],
        [0.5, 0.2, 2.0],
    ]
)


class TestSymmetricTensor:
    """Tests for SymmetricTensor construction and inversion."""

    def test_diagonal_inverse(self):
        inv = SymmetricTensor.diagonal(2.0, 3.0, 4.0).inverse()
        assert inv.m00 == 0.5
        assert inv.m11 == pytest.approx(1 / 3)
        assert inv.m22 == 0.25
        assert inv.is_diagonal

    def test_general_inverse_matches_numpy(self):
        t = SymmetricTensor.from_array(SPD)
        np.testing.assert_allclose(t.inverse().to_array(), np.linalg.inv(SPD), rtol=1e-12)

    def test_inverse_round_trip(self):
        t = SymmetricTensor.from_array(SPD)
        np.testing.assert_allclose(t.inverse().inverse().to_array(), SPD, rtol=1e-12)

    def test_singular_diagonal_raises(self):
        with pytest.raises(SingularTensorError):
            SymmetricTensor(1.0, 1.0, 0.0).inverse()

    def test_singular_full_raises(self):
        with pytest.raises(SingularTensorError):
            SymmetricTensor(1.0, 1.0, 1.0, m01=1.0).inverse()

    def test_row_access(self):
        t = SymmetricTensor(1.0, 2.0, 3.0, m01=0.5, m02=0.25, m12=0.125)
        assert t.row(0) == (1.0, 0.5, 0.25)
        assert t.row(1) == (0.5, 2.0, 0.125)
        assert t.row(2) == (0.25, 0.125, 3.0)
        with pytest.raises(IndexError):
            t.row(3)

    def test_from_array_rejects_bad_shape(self):
        with pytest.raises(ValueError, match="3x3"):
            SymmetricTensor.from_array(np.eye(2))

    def test_trace_and_isotropy(self):
        assert SymmetricTensor.identity().is_isotropic
        assert SymmetricTensor.identity().trace == 3.0
        assert not SymmetricTensor(1.0, 1.0, 2.0).is_isotropic

    def test_positive_definite(self):
        assert SymmetricTensor.from_array(SPD).is_positive_definite()
        assert not SymmetricTensor(1.0, -1.0, 1.0).is_positive_definite()

    def test_equality_is_exact(self):
        assert SymmetricTensor(1.0, 2.0, 3.0) == SymmetricTensor(1.0, 2.0, 3.0)
        assert SymmetricTensor(1.0, 2.0, 3.0) != SymmetricTensor(1.0, 2.0, 3.0 + 1e-15)


class TestRotation:
    """Tests for interface frames and tensor rotation."""

    @pytest.mark.parametrize(
        "normal",
        [
            (1.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (0.0, 0.0, 1.0),
            (0.6, 0.8, 0.0),
            (1 / np.sqrt(3), 1 / np.sqrt(3), 1 / np.sqrt(3)),
        ],
    )
    def test_frame_is_orthonormal(self, normal):
        rot = interface_frame(normal)
        np.testing.assert_allclose(rot.T @ rot, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(rot[:, 0], normal, atol=1e-12)
        assert np.linalg.det(rot) == pytest.approx(1.0)

    def test_frame_near_z_axis(self):
        rot = interface_frame((0.0, 0.0, 1.0))
        assert rot[2, 2] == 0.0

    def test_rotate_round_trip(self):
        t = SymmetricTensor.from_array(SPD)
        rot = interface_frame((0.6, 0.0, 0.8))
        back = t.rotate(rot).rotate(rot.T)
        np.testing.assert_allclose(back.to_array(), SPD, atol=1e-12)

    def test_rotate_preserves_trace(self):
        t = SymmetricTensor.from_array(SPD)
        rot = interface_frame((0.6, 0.8, 0.0))
        assert t.rotate(rot).trace == pytest.approx(t.trace)

    def test_rotate_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            SymmetricTensor.identity().rotate(np.eye(2))


class TestInvertComplex:
    """Tests for complex tensor inversion."""

    def test_matches_numpy(self):
        a = SPD + 1j * np.diag([0.1, 0.2, 0.3])
        np.testing.assert_allclose(invert_complex(a), np.linalg.inv(a), rtol=1e-12)

    def test_singular_raises(self):
        with pytest.raises(SingularTensorError):
            invert_complex(np.zeros((3, 3)))
