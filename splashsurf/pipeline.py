"""Post-processing helpers and the task runner of the reconstruct command."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TypeVar

from tqdm import tqdm

from splashsurf.log_setup import get_progress_bar, log_error, set_progress_bar
from splashsurf.paths import ReconstructionRunnerPaths

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BAR_FORMAT = (
    "[{elapsed}] |{bar:40}| {n_fmt}/{total_fmt} ({percentage:3.0f}%) - remaining: [{remaining}]"
)


def weighted_neighbor_counts(
    positions: Sequence[Sequence[float]],
    neighbor_lists: Sequence[Sequence[int]],
    compact_support_radius: float,
) -> list[float]:
    """Distance-weighted number of neighbours of every particle.

    Each neighbour contributes ``1 - clamp(d^2 / r^2, 0, 1)``.
    """
    if len(positions) != len(neighbor_lists):
        raise ValueError(
            f"expected one neighbour list per particle, got {len(neighbor_lists)} "
            f"lists for {len(positions)} particles"
        )
    if compact_support_radius <= 0.0:
        raise ValueError("the compact support radius must be positive")

    squared_r = compact_support_radius * compact_support_radius

    def count(particle: Sequence[float], neighbors: Sequence[int]) -> float:
        total = 0.0
        for j in neighbors:
            dist = math.fsum((a - b) ** 2 for a, b in zip(particle, positions[j]))
            total += 1.0 - min(max(dist / squared_r, 0.0), 1.0)
        return total

    return [count(p, nl) for p, nl in zip(positions, neighbor_lists)]


def _smooth_step(x: float) -> float:
    return 6.0 * x**5 - 15.0 * x**4 + 10.0 * x**3


def smoothing_weights(weighted_counts: Sequence[float], normalization: float) -> list[float]:
    """Maps weighted neighbour counts to mesh smoothing weights in ``[0, 1]``."""
    if normalization <= 0.0:
        raise ValueError("the smoothing weight normalization value must be positive")
    offset = 0.0
    normalization -= offset
    return [
        _smooth_step(min(max(n - offset, 0.0) / normalization, 1.0))
        for n in weighted_counts
    ]


def raw_output_path(output_file: str | Path) -> Path:
    """Path of the unprocessed mesh: the output file name prefixed with ``raw_``."""
    output_file = Path(output_file)
    if output_file.name in ("", ".", ".."):
        raise ValueError(f'The output file path "{output_file}" does not end with a filename')
    return output_file.parent / f"raw_{output_file.name}"


def _run_one(
    path: ReconstructionRunnerPaths,
    task: Callable[[ReconstructionRunnerPaths], T],
    wrap_errors: bool,
) -> T:
    try:
        result = task(path)
    except Exception as err:
        if not wrap_errors:
            raise
        wrapped = RuntimeError(
            f'Error while processing input file "{path.input_file}" from a file sequence'
        )
        wrapped.__cause__ = err
        log_error(wrapped)
        raise wrapped from err
    bar = get_progress_bar()
    if bar is not None:
        bar.update(1)
    return result


def run_tasks(
    paths: Sequence[ReconstructionRunnerPaths],
    task: Callable[[ReconstructionRunnerPaths], T],
    parallel: bool = False,
) -> list[T]:
    """Runs ``task`` for every path pair and returns the results in order.

    A progress bar is shown for more than one task. Sequentially, the first
    error stops processing; in parallel, errors are logged as they occur and
    the first one in input order is raised.
    """
    paths = list(paths)
    bar = None
    if len(paths) > 1:
        bar = tqdm(total=len(paths), bar_format=_BAR_FORMAT, ascii="=> ")
        set_progress_bar(bar)

    try:
        if parallel:
            with ThreadPoolExecutor() as pool:
                futures = [pool.submit(_run_one, path, task, True) for path in paths]
            results = [future.result() for future in futures]
        else:
            results = [_run_one(path, task, False) for path in paths]
    finally:
        if bar is not None:
            bar.close()
            set_progress_bar(None)

    logger.info("Successfully finished processing all inputs.")
    return results