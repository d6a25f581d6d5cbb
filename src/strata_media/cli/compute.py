"""Command-line tool for sampling the permittivity of a scene script.

The eps-sample CLI tool executes a scene script, evaluates the scalar
permittivity at every pixel center of the cell, and writes the result to
an HDF5 file together with the script that produced it.
"""

import hashlib
import sys
import time
from pathlib import Path

import click
import numpy as np
from rich.console import Console

from strata_media.evaluation.evaluator import MaterialEvaluator
from strata_media.io.hdf5 import EpsilonGridWriter

from .executor import RestrictedImportError, execute_scene_script, validate_scene_object
from .progress import SamplingProgress, format_time, print_scene_info

console = Console()


def pixel_centers(evaluator: MaterialEvaluator) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Pixel-center coordinates along each axis of the evaluator's cell.

    Axes that are inactive or have zero extent get the single coordinate
    of the cell center.
    """
    scene = evaluator.scene
    resolution = evaluator.grid.resolution
    coords = []
    for axis in range(3):
        center, size = scene.center[axis], scene.cell_size[axis]
        n = int(round(size * resolution))
        if axis not in scene.dim.active_axes or n == 0:
            coords.append(np.array([center]))
            continue
        coords.append(center - size / 2 + (np.arange(n) + 0.5) / resolution)
    return coords[0], coords[1], coords[2]


def sample_with_progress(
    evaluator: MaterialEvaluator,
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    frequency: float,
) -> tuple[np.ndarray, float]:
    """Sample slice by slice along x; returns values and throughput."""
    values = np.empty((x.size, y.size, z.size), dtype=np.complex128)
    with SamplingProgress(console, x.size, y.size * z.size) as progress:
        for i, xi in enumerate(x):
            values[i] = evaluator.epsilon_grid([xi], y, z, frequency)[0]
            progress.advance()
        throughput = progress.throughput
    return values, throughput


@click.command()
@click.argument("script", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file path (default: epsilon_{hash}.h5)",
)
@click.option(
    "--resolution",
    "-r",
    type=float,
    help="Pixels per unit length (default: the script's 'resolution', else 10)",
)
@click.option(
    "--frequency",
    "-f",
    "frequencies",
    type=float,
    multiple=True,
    help="Sampling frequency; repeat for several (default: 0, instantaneous)",
)
@click.option(
    "--compression",
    type=click.Choice(["gzip", "lzf", "none"]),
    default="gzip",
    help="HDF5 dataset compression",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with debug info")
@click.option("--dry-run", is_flag=True, help="Validate script without sampling")
@click.version_option(version="0.1.0", prog_name="eps-sample")
def main(
    script: Path,
    output: Path | None,
    resolution: float | None,
    frequencies: tuple[float, ...],
    compression: str,
    verbose: bool,
    dry_run: bool,
):
    """Sample the permittivity of a scene defined in a Python script.

    SCRIPT is the path to a Python file that defines a 'scene' variable
    containing a Scene instance. It may also define 'resolution' and
    'absorbers' (a list of AbsorbingLayer).

    Example script:

    \b
        from strata_media.geometry import Scene, Sphere
        from strata_media.core import Dimensionality
        from strata_media.materials import SILICON
        scene = Scene(cell_size=(4, 4, 0), dim=Dimensionality.D2)
        scene.add_object(Sphere(center=(0, 0, 0), radius=1.0), SILICON)
        resolution = 20
    """
    try:
        console.print(f"\n[bold]Permittivity sampling:[/bold] {script.name}", style="blue")
        console.print("─" * 60)

        script_content = script.read_text()
        script_hash = hashlib.sha256(script_content.encode()).hexdigest()

        if verbose:
            console.print(f"Script hash: {script_hash}")

        if output is None:
            output = Path(f"epsilon_{script_hash[:8]}.h5")

        console.print("Loading scene...", style="dim")
        try:
            namespace = execute_scene_script(script, script_content, verbose=verbose)
        except RestrictedImportError as e:
            console.print(f"\n[bold red]Security Error:[/bold red] {e}")
            console.print(
                "\n[yellow]Scene scripts can only import:[/yellow] "
                "strata_media, numpy, scipy, math, pathlib"
            )
            sys.exit(1)
        except SyntaxError as e:
            console.print("\n[bold red]Syntax Error in script:[/bold red]")
            console.print(f"  {e}")
            sys.exit(1)

        try:
            scene = validate_scene_object(namespace)
        except ValueError as e:
            console.print(f"\n[bold red]Error:[/bold red] {e}")
            sys.exit(1)

        if resolution is None:
            resolution = float(namespace.get("resolution", 10.0))
        evaluator = MaterialEvaluator(scene, resolution, namespace.get("absorbers", ()))

        x, y, z = pixel_centers(evaluator)
        freqs = list(frequencies) or [0.0]
        print_scene_info(console, evaluator, output, (x.size, y.size, z.size), freqs)

        if dry_run:
            console.print("[yellow]Dry run - permittivity not sampled[/yellow]")
            return

        start_time = time.time()
        throughput = 0.0
        writer = EpsilonGridWriter(
            output,
            evaluator,
            script_content=script_content,
            compression=None if compression == "none" else compression,
        )
        try:
            for frequency in freqs:
                values, throughput = sample_with_progress(evaluator, x, y, z, frequency)
                writer.write_grid(x, y, z, frequency, values=values)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(130)
        finally:
            writer.finalize(runtime=time.time() - start_time)

        runtime = time.time() - start_time

        console.print("─" * 60)
        console.print("✓ [bold green]Sampling complete![/bold green]")
        if output.exists():
            console.print(f"  Output: {output} ({output.stat().st_size / 1e6:.1f} MB)")
        else:
            console.print(f"  Output: {output}")
        console.print(f"  Runtime: {format_time(runtime)}")
        console.print(f"  Average throughput: {throughput:.0f} points/s")

        if verbose:
            console.print("\n[dim]Results can be analyzed with HDF5 tools (h5py, HDFView)[/dim]")

        return

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
