"""HDF5 input and output for material data.

This module reads and writes the arrays that feed or come out of material
evaluation:
- Scalar permittivity arrays for file materials ("file.h5:dataset")
- Material-grid design weights
- Sampled permittivity grids with reproducibility metadata
"""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import h5py
import numpy as np
from numpy.typing import ArrayLike, NDArray

from strata_media.materials.base import FileMaterial, MaterialConfigurationError, MaterialGrid

if TYPE_CHECKING:
    from strata_media.evaluation.evaluator import MaterialEvaluator


def parse_file_spec(spec: str) -> tuple[Path, str | None]:
    """Split ``"file.h5:dataset"`` into a path and dataset name.

    The dataset part is optional; without it the first dataset in the file
    is used.
    """
    path, sep, dataset = spec.rpartition(":")
    if not sep:
        if not spec:
            raise MaterialConfigurationError(f"Malformed epsilon file specifier: {spec!r}")
        return Path(spec), None
    if not path or not dataset:
        raise MaterialConfigurationError(f"Malformed epsilon file specifier: {spec!r}")
    return Path(path), dataset or None


def _first_dataset(group: h5py.Group) -> str | None:
    for name, item in group.items():
        if isinstance(item, h5py.Dataset):
            return name
    return None


def load_epsilon_file(spec: str) -> FileMaterial:
    """Load a scalar permittivity array as a file material.

    Args:
        spec: ``"file.h5:dataset"`` or ``"file.h5"``

    Returns:
        FileMaterial holding the array (up to 3 dimensions)

    Raises:
        FileNotFoundError: If the file does not exist
        MaterialConfigurationError: If the dataset is missing or not numeric
    """
    path, dataset = parse_file_spec(spec)
    if not path.exists():
        raise FileNotFoundError(f"Epsilon file not found: {path}")

    with h5py.File(path, "r") as f:
        name = dataset or _first_dataset(f)
        if name is None or name not in f:
            available = [k for k, v in f.items() if isinstance(v, h5py.Dataset)]
            raise MaterialConfigurationError(
                f"Dataset '{dataset}' not found in {path}. Available: {available}"
            )
        data = f[name][()]

    data = np.asarray(data)
    if not np.issubdtype(data.dtype, np.number) or np.iscomplexobj(data):
        raise MaterialConfigurationError(
            f"Epsilon data must be real numbers, got dtype {data.dtype}"
        )
    return FileMaterial(data.astype(np.float64))


def save_weights(filename: str | Path, grid: MaterialGrid, name: str = "weights") -> None:
    """Write a material grid's weights and projection parameters."""
    with h5py.File(filename, "a") as f:
        if name in f:
            del f[name]
        dataset = f.create_dataset(name, data=grid.weights)
        dataset.attrs["beta"] = grid.beta
        dataset.attrs["eta"] = grid.eta
        dataset.attrs["damping"] = grid.damping
        dataset.attrs["combination"] = grid.combination.value


def load_weights(filename: str | Path, name: str = "weights") -> NDArray[np.float64]:
    """Read design weights written by :func:`save_weights`."""
    with h5py.File(filename, "r") as f:
        if name not in f:
            raise KeyError(f"Weights '{name}' not found. Available: {list(f.keys())}")
        return np.asarray(f[name][()], dtype=np.float64)


class EpsilonGridWriter:
    """Writer for sampled permittivity grids.

    Creates an HDF5 file with:
    - Metadata (package version, creation time, source script and its hash)
    - Scene information (dimensionality, cell, resolution)
    - One group per sampled frequency with coordinates and complex epsilon

    Example:
        >>> with EpsilonGridWriter("eps.h5", evaluator, script_content) as writer:
        ...     writer.write_grid(x, y, z, frequency=0.0)
    """

    def __init__(
        self,
        filename: str | Path,
        evaluator: "MaterialEvaluator",
        script_content: str | None = None,
        compression: str | None = "gzip",
        compression_level: int = 4,
    ):
        """Initialize writer.

        Args:
            filename: Output file path
            evaluator: Evaluator of the sampled scene
            script_content: Source script for reproducibility
            compression: Compression algorithm ('gzip', 'lzf', None)
            compression_level: Compression level (0-9 for gzip)
        """
        self.filename = Path(filename)
        self.evaluator = evaluator
        self.file = h5py.File(filename, "w")
        self.compression = compression
        self.compression_opts = compression_level if compression == "gzip" else None
        self._num_grids = 0

        self._write_metadata(script_content)

    def _write_metadata(self, script_content: str | None):
        from strata_media import __version__

        meta = self.file.create_group("metadata")
        if script_content:
            meta.attrs["script_hash"] = hashlib.sha256(script_content.encode()).hexdigest()
            meta.attrs["script_content"] = script_content
        meta.attrs["created_at"] = datetime.now(timezone.utc).isoformat()
        meta.attrs["package_version"] = __version__

        scene = self.evaluator.scene
        scene_group = self.file.create_group("scene")
        scene_group.attrs["dimensionality"] = scene.dim.name
        scene_group.attrs["cell_size"] = list(scene.cell_size)
        scene_group.attrs["center"] = list(scene.center)
        scene_group.attrs["resolution"] = self.evaluator.grid.resolution
        scene_group.attrs["num_objects"] = len(scene.objects)
        scene_group.attrs["default_material"] = type(scene.default_material).__name__

        self.file.create_group("epsilon")

    def write_grid(
        self,
        x: ArrayLike,
        y: ArrayLike,
        z: ArrayLike,
        frequency: float = 0.0,
        values: NDArray[np.complex128] | None = None,
    ) -> NDArray[np.complex128]:
        """Sample and store epsilon on the tensor product of ``x``, ``y``, ``z``.

        Args:
            x, y, z: Sample coordinates along each axis
            frequency: Sampling frequency (0 for the instantaneous permittivity)
            values: Already sampled values, stored as given

        Returns:
            The sampled array
        """
        if values is None:
            values = self.evaluator.epsilon_grid(x, y, z, frequency)
        values = np.asarray(values, dtype=np.complex128)
        expected = tuple(np.atleast_1d(np.asarray(a)).size for a in (x, y, z))
        if values.shape != expected:
            raise ValueError(f"values shape {values.shape} does not match coordinates {expected}")
        group = self.file["epsilon"].create_group(f"grid_{self._num_grids}")
        group.attrs["frequency"] = frequency
        for axis, coords in zip("xyz", (x, y, z)):
            group.create_dataset(axis, data=np.atleast_1d(np.asarray(coords, dtype=np.float64)))
        group.create_dataset(
            "values",
            data=values,
            compression=self.compression,
            compression_opts=self.compression_opts,
        )
        self._num_grids += 1
        return values

    def finalize(self, runtime: float | None = None, **extra_metadata):
        """Write final metadata and close file."""
        if not self.file:
            return
        if runtime is not None:
            self.file["metadata"].attrs["total_runtime_seconds"] = runtime
        for key, value in extra_metadata.items():
            self.file["metadata"].attrs[key] = value
        self.file.flush()
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finalize()


class EpsilonGridReader:
    """Reader for files written by :class:`EpsilonGridWriter`.

    Example:
        >>> with EpsilonGridReader("eps.h5") as reader:
        ...     x, y, z, eps = reader.load_grid(0)
    """

    def __init__(self, filename: str | Path):
        self.filename = Path(filename)
        self.file = h5py.File(filename, "r")

    def get_metadata(self) -> dict[str, Any]:
        """Metadata and scene attributes."""
        metadata = {}
        if "metadata" in self.file:
            metadata["metadata"] = dict(self.file["metadata"].attrs)
        if "scene" in self.file:
            metadata["scene"] = dict(self.file["scene"].attrs)
        if "epsilon" in self.file:
            metadata["frequencies"] = [
                float(self.file[f"epsilon/{name}"].attrs["frequency"])
                for name in self.file["epsilon"]
            ]
        return metadata

    def get_num_grids(self) -> int:
        if "epsilon" not in self.file:
            return 0
        return len(self.file["epsilon"])

    def load_grid(self, index: int = 0) -> tuple[NDArray, NDArray, NDArray, NDArray]:
        """Coordinates and values of a stored grid.

        Returns:
            ``(x, y, z, values)``
        """
        key = f"epsilon/grid_{index}"
        if key not in self.file:
            raise KeyError(f"Grid {index} not found; file holds {self.get_num_grids()} grids")
        group = self.file[key]
        return group["x"][:], group["y"][:], group["z"][:], group["values"][:]

    def close(self):
        if self.file:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
