"""Tests for HDF5 input and output."""

from pathlib import Path

import h5py
import numpy as np
import pytest

from strata_media.core import Dimensionality
from strata_media.evaluation import MaterialEvaluator
from strata_media.geometry import Block, GeometricObject, Scene
from strata_media.io import (
    EpsilonGridReader,
    EpsilonGridWriter,
    load_epsilon_file,
    load_weights,
    parse_file_spec,
    save_weights,
)
from strata_media.materials import (
    GridCombination,
    MaterialConfigurationError,
    MaterialGrid,
    Medium,
)


@pytest.fixture
def evaluator(eps9):
    slab = Block(center=(-1.0, 0.0, 0.0), size=(2.0, 4.0, 0.0))
    scene = Scene(
        objects=[GeometricObject(slab, eps9)],
        cell_size=(4.0, 4.0, 0.0),
        dim=Dimensionality.D2,
    )
    return MaterialEvaluator(scene, resolution=2)


class TestFileSpec:
    def test_path_and_dataset(self):
        path, dataset = parse_file_spec("data/eps.h5:core")
        assert str(path) == "data/eps.h5"
        assert dataset == "core"

    def test_path_only(self):
        assert parse_file_spec("eps.h5") == (Path("eps.h5"), None)

    @pytest.mark.parametrize("spec", ["", "eps.h5:", ":core"])
    def test_malformed(self, spec):
        with pytest.raises(MaterialConfigurationError, match="Malformed"):
            parse_file_spec(spec)


class TestEpsilonFile:
    def test_named_dataset(self, tmp_path):
        path = tmp_path / "eps.h5"
        with h5py.File(path, "w") as f:
            f.create_dataset("other", data=np.zeros(3))
            f.create_dataset("eps", data=np.full((4, 4), 2.25))

        material = load_epsilon_file(f"{path}:eps")
        assert material.data.shape == (4, 4, 1)
        np.testing.assert_allclose(material.data, 2.25)

    def test_first_dataset_by_default(self, tmp_path):
        path = tmp_path / "eps.h5"
        with h5py.File(path, "w") as f:
            f.create_dataset("eps", data=np.arange(1.0, 4.0))

        material = load_epsilon_file(str(path))
        np.testing.assert_allclose(material.data[:, 0, 0], [1.0, 2.0, 3.0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_epsilon_file(str(tmp_path / "missing.h5"))

    def test_missing_dataset(self, tmp_path):
        path = tmp_path / "eps.h5"
        with h5py.File(path, "w") as f:
            f.create_dataset("eps", data=np.ones(2))

        with pytest.raises(MaterialConfigurationError, match="not found"):
            load_epsilon_file(f"{path}:nope")

    def test_complex_data_rejected(self, tmp_path):
        path = tmp_path / "eps.h5"
        with h5py.File(path, "w") as f:
            f.create_dataset("eps", data=np.ones(2, dtype=complex))

        with pytest.raises(MaterialConfigurationError, match="real"):
            load_epsilon_file(f"{path}:eps")


class TestWeights:
    def test_round_trip(self, tmp_path):
        grid = MaterialGrid(
            weights=np.linspace(0.0, 1.0, 6).reshape(2, 3),
            medium_2=Medium.isotropic(epsilon=4.0),
            beta=8.0,
            combination=GridCombination.MEAN,
        )
        path = tmp_path / "design.h5"
        save_weights(path, grid)
        save_weights(path, grid, name="copy")

        np.testing.assert_allclose(load_weights(path), grid.weights)
        with h5py.File(path, "r") as f:
            assert f["weights"].attrs["beta"] == 8.0
            assert f["weights"].attrs["combination"] == "mean"

    def test_overwrite(self, tmp_path):
        path = tmp_path / "design.h5"
        save_weights(path, MaterialGrid(weights=np.zeros(4)))
        save_weights(path, MaterialGrid(weights=np.ones(2)))
        assert load_weights(path).shape == (2, 1, 1)

    def test_missing_name(self, tmp_path):
        path = tmp_path / "design.h5"
        save_weights(path, MaterialGrid(weights=np.zeros(4)))
        with pytest.raises(KeyError, match="weights"):
            load_weights(path, name="other")


class TestEpsilonGrid:
    def test_writer_structure(self, tmp_path, evaluator):
        path = tmp_path / "eps.h5"
        with EpsilonGridWriter(path, evaluator, script_content="# scene") as writer:
            writer.write_grid([-1.0, 1.0], [0.0], [0.0])

        with h5py.File(path, "r") as f:
            assert "metadata" in f
            assert "scene" in f
            assert f["metadata"].attrs["script_content"] == "# scene"
            assert len(f["metadata"].attrs["script_hash"]) == 64
            assert f["scene"].attrs["dimensionality"] == "D2"
            assert f["scene"].attrs["num_objects"] == 1
            assert "grid_0" in f["epsilon"]

    def test_round_trip(self, tmp_path, evaluator):
        path = tmp_path / "eps.h5"
        x = np.array([-1.5, -0.5, 0.5, 1.5])
        y = np.array([0.0, 1.0])
        with EpsilonGridWriter(path, evaluator, compression=None) as writer:
            writer.write_grid(x, y, [0.0])
            writer.write_grid(x, y, [0.0], frequency=0.5)

        with EpsilonGridReader(path) as reader:
            assert reader.get_num_grids() == 2
            metadata = reader.get_metadata()
            assert metadata["frequencies"] == [0.0, 0.5]
            assert "created_at" in metadata["metadata"]
            rx, ry, rz, values = reader.load_grid(0)

        np.testing.assert_allclose(rx, x)
        np.testing.assert_allclose(ry, y)
        np.testing.assert_allclose(rz, [0.0])
        assert values.shape == (4, 2, 1)
        np.testing.assert_allclose(values[:2].real, 9.0)
        np.testing.assert_allclose(values[2:].real, 1.0)

    def test_precomputed_values(self, tmp_path, evaluator):
        path = tmp_path / "eps.h5"
        with EpsilonGridWriter(path, evaluator) as writer:
            writer.write_grid([0.0], [0.0, 1.0], [0.0], values=np.full((1, 2, 1), 5.0))
            with pytest.raises(ValueError, match="shape"):
                writer.write_grid([0.0], [0.0], [0.0], values=np.ones((2, 2, 1)))

        with EpsilonGridReader(path) as reader:
            np.testing.assert_allclose(reader.load_grid(0)[3], 5.0)

    def test_finalize_metadata(self, tmp_path, evaluator):
        path = tmp_path / "eps.h5"
        writer = EpsilonGridWriter(path, evaluator)
        writer.finalize(runtime=1.5, note="test")
        writer.finalize()

        with EpsilonGridReader(path) as reader:
            metadata = reader.get_metadata()["metadata"]
            assert metadata["total_runtime_seconds"] == 1.5
            assert metadata["note"] == "test"

    def test_missing_grid(self, tmp_path, evaluator):
        path = tmp_path / "eps.h5"
        EpsilonGridWriter(path, evaluator).finalize()
        with EpsilonGridReader(path) as reader:
            assert reader.get_num_grids() == 0
            with pytest.raises(KeyError, match="Grid 3"):
                reader.load_grid(3)
