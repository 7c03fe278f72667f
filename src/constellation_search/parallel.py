"""
Parallel processing of the constellation sweep.

Acceptance only short-circuits the inclination walk of its own
(planes, sats per plane) pair, so pairs are independent and can be
evaluated on separate worker processes. Each worker builds its own
visibility engine and run context; results are merged back in odometer
order, so solutions, log entries and counters match a sequential run.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import logging
import multiprocessing as mp
import os
import time

from .config import SearchConfig
from .report import RunContext
from .sweep import (
    ParameterSweep, SweepResult, compute_min_inclination,
    write_header, write_solutions_block,
)
from .utils import format_duration
from .visibility import CoverageGapAnalyzer, VisibilityEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[SearchConfig], VisibilityEngine]

# Global process pool for reuse (avoids repeated spawn overhead)
_process_pool: Optional[ProcessPoolExecutor] = None
_pool_max_workers: Optional[int] = None


def create_default_engine(config: SearchConfig) -> VisibilityEngine:
    """Build the default coverage gap analyzer for a configuration."""
    engine = CoverageGapAnalyzer(
        config.start_date, config.search_date, config.time_step, config.visibility_threshold
    )
    engine.set_include_coverage_gaps(config.include_coverage_gaps)
    return engine


def get_optimal_workers(max_workers: Optional[int] = None, num_pairs: int = 0) -> int:
    """
    Determine optimal number of worker processes.

    Args:
        max_workers: Maximum number of workers (None = auto-detect)
        num_pairs: Number of (planes, sats) pairs to evaluate

    Returns:
        Optimal number of workers for parallel processing
    """
    cpu_count = os.cpu_count() or 4

    if max_workers is not None:
        optimal = min(max_workers, cpu_count)
    else:
        optimal = cpu_count

    # Don't spawn more workers than pairs
    if num_pairs > 0:
        optimal = min(optimal, num_pairs)

    return max(1, optimal)


def get_or_create_process_pool(max_workers: int) -> ProcessPoolExecutor:
    """
    Get or create a reusable process pool to avoid repeated spawn overhead.

    Args:
        max_workers: Number of worker processes

    Returns:
        ProcessPoolExecutor instance
    """
    global _process_pool, _pool_max_workers

    if _process_pool is not None and _pool_max_workers == max_workers:
        return _process_pool

    if _process_pool is not None:
        _process_pool.shutdown(wait=False)

    # 'fork' starts faster; not available on Windows
    mp_context = None
    try:
        mp_context = mp.get_context('fork')
        logger.debug("Using 'fork' context for faster worker startup")
    except ValueError:
        logger.debug("'fork' context not available, using default 'spawn'")

    _process_pool = ProcessPoolExecutor(
        max_workers=max_workers,
        mp_context=mp_context
    )
    _pool_max_workers = max_workers

    return _process_pool


def cleanup_process_pool() -> None:
    """
    Clean up the global process pool on shutdown.
    """
    global _process_pool, _pool_max_workers

    if _process_pool is not None:
        logger.info("Shutting down process pool...")
        _process_pool.shutdown(wait=True)
        _process_pool = None
        _pool_max_workers = None


def iter_plane_sat_pairs(config: SearchConfig) -> List[Tuple[int, int]]:
    """(planes, sats per plane) pairs in odometer order."""
    return [
        (planes, sats)
        for planes in range(config.min_planes, config.max_planes + 1)
        for sats in range(config.min_sats_in_plane, config.max_sats_in_plane + 1)
    ]


@dataclass
class PairResult:
    """Records of one (planes, sats) pair evaluated by a worker."""

    planes: int
    sats_in_plane: int
    context: RunContext


def _sweep_pair_worker(
    config: SearchConfig,
    planes: int,
    sats_in_plane: int,
    min_inclination: float,
    engine_factory: EngineFactory = create_default_engine
) -> PairResult:
    """
    Worker function: sweep the inclinations of a single pair.

    This function is designed to be pickled and run in a separate process.
    Errors propagate to the parent.
    """
    pair_config = config.restricted_to(planes, sats_in_plane)
    engine = engine_factory(pair_config)
    engine.set_include_coverage_gaps(pair_config.include_coverage_gaps)

    sweep = ParameterSweep(pair_config, engine, RunContext(), min_inclination=min_inclination)
    return PairResult(planes, sats_in_plane, sweep.sweep())


class ParallelSweep:
    """
    Parallel implementation of the parameter sweep.

    Distributes (planes, sats per plane) pairs across worker processes.
    With a single worker the pairs run in-process.
    """

    def __init__(
        self,
        config: SearchConfig,
        max_workers: Optional[int] = None,
        engine_factory: EngineFactory = create_default_engine
    ) -> None:
        """
        Initialize parallel sweep.

        Args:
            config: Search configuration
            max_workers: Maximum worker processes (None = auto-detect)
            engine_factory: Picklable callable building one engine per worker
        """
        self.config = config
        self.max_workers = max_workers
        self.engine_factory = engine_factory

    def _run_pairs(self, pairs: List[Tuple[int, int]], min_inclination: float) -> List[PairResult]:
        workers = get_optimal_workers(self.max_workers, len(pairs))

        if workers == 1:
            logger.info(f"Sweeping {len(pairs)} pairs in-process")
            return [
                _sweep_pair_worker(self.config, planes, sats, min_inclination, self.engine_factory)
                for planes, sats in pairs
            ]

        logger.info(f"Sweeping {len(pairs)} pairs using {workers} workers")
        executor = get_or_create_process_pool(workers)
        futures = [
            executor.submit(
                _sweep_pair_worker, self.config, planes, sats, min_inclination, self.engine_factory
            )
            for planes, sats in pairs
        ]

        results = []
        for completed, future in enumerate(futures, start=1):
            result = future.result()
            results.append(result)
            logger.debug(f"Completed {completed}/{len(pairs)}: "
                         f"{result.planes}-{result.sats_in_plane} "
                         f"({len(result.context.solutions)} solutions)")
        return results

    def run(self) -> SweepResult:
        """
        Run the sweep across workers and merge results in odometer order.

        Returns:
            SweepResult equivalent to a sequential run
        """
        started = time.perf_counter()
        min_inclination = compute_min_inclination(self.config)
        pairs = iter_plane_sat_pairs(self.config)

        context = RunContext()
        write_header(context, self.config, min_inclination)
        for result in self._run_pairs(pairs, min_inclination):
            context.merge(result.context)
        write_solutions_block(context)

        elapsed = time.perf_counter() - started
        if not context.solutions:
            logger.warning("Sweep finished without any solution")
        logger.info(
            f"Parallel sweep complete in {format_duration(elapsed)}: {context.evaluations} shapes, "
            f"{len(context.solutions)} solutions"
        )
        return SweepResult(context, min_inclination, elapsed)
