"""Progress display for permittivity sampling.

Provides rich terminal UI for sampling runs:
- Scene summary table before sampling
- Progress bar over grid slices with elapsed time and ETA
- Sampling throughput (points/s)
"""

import time
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

if TYPE_CHECKING:
    from strata_media.evaluation.evaluator import MaterialEvaluator


def format_time(seconds: float) -> str:
    """Format time duration for display.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "1m 23s" or "2h 15m"
    """
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs:02d}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes:02d}m"


class SamplingProgress:
    """Progress bar over the slices of a sampled grid.

    Example:
        >>> with SamplingProgress(console, total_slices, points_per_slice) as progress:
        ...     for i in range(total_slices):
        ...         sample_slice(i)
        ...         progress.advance()
    """

    def __init__(self, console: Console, total: int, points_per_slice: int):
        self.console = console
        self.total = total
        self.points_per_slice = points_per_slice
        self.completed = 0
        self.start_time = time.time()

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=console,
        )
        self.task = self.progress.add_task("Sampling", total=total)
        self.progress.start()

    def advance(self):
        """Mark one slice as done."""
        self.completed += 1
        self.progress.update(self.task, completed=self.completed)

    @property
    def throughput(self) -> float:
        """Sampled points per second so far."""
        elapsed = time.time() - self.start_time
        if elapsed <= 0:
            return 0.0
        return self.completed * self.points_per_slice / elapsed

    def finish(self):
        self.progress.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()


def print_scene_info(
    console: Console,
    evaluator: "MaterialEvaluator",
    output_path,
    shape: tuple[int, int, int],
    frequencies: list[float],
):
    """Print scene and sampling parameters before sampling.

    Args:
        console: Rich console instance
        evaluator: Evaluator of the sampled scene
        output_path: Path to output file
        shape: Number of samples along x, y, z
        frequencies: Sampled frequencies
    """
    scene = evaluator.scene

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Dimensionality", scene.dim.name)
    table.add_row("Cell", " × ".join(f"{s:g}" for s in scene.cell_size))
    table.add_row("Resolution", f"{evaluator.grid.resolution:g} px/unit")
    table.add_row("Objects", str(len(scene.objects)))
    table.add_row("Material grids", str(len(scene.material_grids())))
    num_points = shape[0] * shape[1] * shape[2]
    table.add_row("Samples", f"{shape[0]} × {shape[1]} × {shape[2]} ({num_points} points)")
    table.add_row("Frequencies", ", ".join(f"{f:g}" for f in frequencies))
    table.add_row("Output", str(output_path))

    console.print(table)
    console.print()
