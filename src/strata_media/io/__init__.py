"""HDF5 input and output for permittivity files, design weights and sampled grids."""

from strata_media.io.hdf5 import (
    EpsilonGridReader,
    EpsilonGridWriter,
    load_epsilon_file,
    load_weights,
    parse_file_spec,
    save_weights,
)

__all__ = [
    "EpsilonGridReader",
    "EpsilonGridWriter",
    "load_epsilon_file",
    "load_weights",
    "parse_file_spec",
    "save_weights",
]
