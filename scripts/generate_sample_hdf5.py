#!/usr/bin/env python3
"""
Generate sample HDF5 material files.

This script creates small reference files that can be loaded as file
materials ("file.h5:dataset"), as material-grid design weights, or
inspected as sampled permittivity grids.

Usage:
    python scripts/generate_sample_hdf5.py --all
    python scripts/generate_sample_hdf5.py --sample graded-index
    python scripts/generate_sample_hdf5.py --list

Output files are written to samples/
"""

import argparse
import sys
from pathlib import Path

import h5py
import numpy as np

# Add src to path for local development
script_dir = Path(__file__).parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root / "src"))

from strata_media import (
    Block,
    Dimensionality,
    GeometricObject,
    MaterialEvaluator,
    MaterialGrid,
    Scene,
)
from strata_media.io import EpsilonGridWriter, save_weights
from strata_media.materials import SILICA, SILICON


def get_output_dir() -> Path:
    """Get the output directory for sample files."""
    output_dir = project_root / "samples"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def generate_graded_index() -> Path:
    """Generate a parabolic graded-index permittivity profile.

    Configuration:
    - 64x64 lattice spanning the cell
    - epsilon 2.25 on the axis falling to 2.09 at the edge

    Returns:
        Path to the generated file
    """
    print("Generating graded-index.h5...")
    print("  Lattice: 64x64")

    u = np.linspace(-1.0, 1.0, 64)
    X, Y = np.meshgrid(u, u, indexing="ij")
    eps = 2.25 - 0.16 * np.clip(X**2 + Y**2, 0.0, 1.0)

    output_path = get_output_dir() / "graded-index.h5"
    with h5py.File(output_path, "w") as f:
        dataset = f.create_dataset("eps", data=eps, compression="gzip")
        dataset.attrs["description"] = "Parabolic graded-index profile"

    file_size = output_path.stat().st_size
    print(f"  Output: {output_path}")
    print(f"  Size: {file_size / 1e3:.1f} kB")

    return output_path


def generate_design_weights() -> Path:
    """Generate random design weights for a 2-D material grid.

    Returns:
        Path to the generated file
    """
    print("Generating design-weights.h5...")
    print("  Lattice: 40x40, silica/silicon, beta=8")

    rng = np.random.default_rng(seed=1234)
    grid = MaterialGrid(
        weights=rng.uniform(0.0, 1.0, size=(40, 40)),
        medium_1=SILICA.medium,
        medium_2=SILICON.medium,
        beta=8.0,
    )

    output_path = get_output_dir() / "design-weights.h5"
    save_weights(output_path, grid)

    file_size = output_path.stat().st_size
    print(f"  Output: {output_path}")
    print(f"  Size: {file_size / 1e3:.1f} kB")

    return output_path


def generate_waveguide_epsilon() -> Path:
    """Sample the permittivity of a silicon strip waveguide.

    Configuration:
    - 2-D cell 4 x 2, resolution 16
    - 0.5 wide silicon strip along x on silica
    - Samples at pixel centers, instantaneous permittivity

    Returns:
        Path to the generated file
    """
    print("Generating waveguide-epsilon.h5...")
    print("  Cell: 4 x 2 @ 16 px/unit")

    strip = Block(center=(0.0, 0.0, 0.0), size=(np.inf, 0.5, 0.0))
    scene = Scene(
        objects=[GeometricObject(strip, SILICON)],
        default_material=SILICA,
        cell_size=(4.0, 2.0, 0.0),
        dim=Dimensionality.D2,
    )
    evaluator = MaterialEvaluator(scene, resolution=16)

    x = -2.0 + (np.arange(64) + 0.5) / 16
    y = -1.0 + (np.arange(32) + 0.5) / 16

    output_path = get_output_dir() / "waveguide-epsilon.h5"
    script_content = Path(__file__).read_text()
    with EpsilonGridWriter(output_path, evaluator, script_content=script_content) as writer:
        print("  Sampling 64 x 32 points...")
        writer.write_grid(x, y, [0.0])

    file_size = output_path.stat().st_size
    print(f"  Output: {output_path}")
    print(f"  Size: {file_size / 1e3:.1f} kB")

    return output_path


SAMPLES = {
    "graded-index": {
        "generator": generate_graded_index,
        "description": "Graded-index epsilon array for a file material",
    },
    "design-weights": {
        "generator": generate_design_weights,
        "description": "Random material-grid design weights",
    },
    "waveguide-epsilon": {
        "generator": generate_waveguide_epsilon,
        "description": "Sampled permittivity of a strip waveguide",
    },
}


def list_samples():
    """Print available sample configurations."""
    print("Available sample configurations:")
    print("-" * 50)
    for name, config in SAMPLES.items():
        print(f"  {name}: {config['description']}")
    print()
    print("Use --sample NAME to generate a specific sample")
    print("Use --all to generate all samples")


def main():
    parser = argparse.ArgumentParser(description="Generate sample HDF5 material files.")
    parser.add_argument(
        "--all",
        action="store_true",
        help="Generate all sample files",
    )
    parser.add_argument(
        "--sample",
        choices=list(SAMPLES.keys()),
        help="Generate a specific sample file",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available sample configurations",
    )

    args = parser.parse_args()

    if args.list:
        list_samples()
        return 0

    if not args.all and not args.sample:
        parser.print_help()
        print()
        list_samples()
        return 1

    print("=" * 60)
    print("Sample HDF5 Generator")
    print("=" * 60)
    print()

    generated = []

    if args.all:
        for name, config in SAMPLES.items():
            try:
                path = config["generator"]()
                generated.append((name, path))
                print()
            except Exception as e:
                print(f"  ERROR: {e}")
                print()
    elif args.sample:
        config = SAMPLES[args.sample]
        try:
            path = config["generator"]()
            generated.append((args.sample, path))
        except Exception as e:
            print(f"  ERROR: {e}")
            return 1

    print("=" * 60)
    print("Summary")
    print("=" * 60)
    for name, path in generated:
        size = path.stat().st_size
        print(f"  {name}: {path.name} ({size / 1e3:.1f} kB)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
