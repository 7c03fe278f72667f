"""
Parameter sweep over the constellation design space.

Shapes are enumerated as an odometer: inclination is the fastest digit,
satellites per plane the next, planes the slowest. Each shape is
generated fresh, refined, and recorded as a solution or a discard.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from .config import SearchConfig
from .constellation import ConstellationShape, generate_constellation, round_inclination
from .devices import longitude_facility_count
from .geometry import min_inclination_for_equal_coverage
from .refinement import ComplexityRefiner, RefinementOutcome
from .report import RunContext, Solution, SOLUTION_COLUMNS, section_banner
from .utils import current_stamp, format_duration
from .visibility import VisibilityEngine

logger = logging.getLogger(__name__)


class Odometer:
    """
    Nested (planes, sats per plane, inclination) enumeration state.

    The first shape is always produced, even when the minimum inclination
    is above the maximum. After each shape, ``advance`` applies the single
    transition rule: step the inclination; roll over to the next sats
    count when it exceeds the maximum or the shape was accepted; roll
    over to the next plane count when sats exceed their maximum.
    """

    def __init__(self, config: SearchConfig, min_inclination: float) -> None:
        self.config = config
        self.min_inclination = round_inclination(min_inclination)
        self.planes = config.min_planes
        self.sats_in_plane = config.min_sats_in_plane
        self.inclination = self.min_inclination
        self.finished = False

    @property
    def current(self) -> ConstellationShape:
        return ConstellationShape(self.planes, self.sats_in_plane, self.inclination)

    def advance(self, accepted: bool) -> bool:
        """
        Move to the next shape.

        Args:
            accepted: Whether the current shape was accepted

        Returns:
            False once the sweep is exhausted
        """
        cfg = self.config
        self.inclination = round_inclination(self.inclination + cfg.inclination_step)

        if self.inclination > cfg.max_inclination or accepted:
            self.inclination = self.min_inclination
            self.sats_in_plane += 1

            if self.sats_in_plane > cfg.max_sats_in_plane:
                self.sats_in_plane = cfg.min_sats_in_plane
                self.planes += 1

            if self.planes > cfg.max_planes:
                self.finished = True

        return not self.finished


@dataclass
class SweepResult:
    """Outcome of a full sweep."""

    context: RunContext
    min_inclination: float
    elapsed_seconds: float = 0.0

    @property
    def solutions(self) -> List[Solution]:
        return self.context.solutions

    @property
    def discarded(self) -> List[int]:
        return self.context.discarded

    @property
    def evaluations(self) -> int:
        return self.context.evaluations


def compute_min_inclination(config: SearchConfig) -> float:
    """Lower inclination bound of the sweep, rounded to the sweep grid."""
    return round_inclination(min_inclination_for_equal_coverage(
        config.semi_major_axis,
        config.eccentricity,
        config.visibility_threshold,
        config.max_lat,
    ))


def write_header(context: RunContext, config: SearchConfig, min_inclination: float) -> None:
    """Run parameter block at the top of the run log."""
    context.add_header(f"Starting analysis at {current_stamp()}")
    context.add_header(f"Scenario start: {config.start_date} - Scenario end: {config.end_date}")
    context.add_header(
        f"Target MCG: {config.max_mcg} - Maximum latitude band: {config.max_lat} "
        f"Degrees - complexity 0 search date {config.search_date}"
    )
    context.add_header(
        f"Minimum number of planes: {config.min_planes} - "
        f"Maximum number of planes: {config.max_planes}"
    )
    context.add_header(
        f"Minimum sats per plane: {config.min_sats_in_plane} - "
        f"Maximum sats per planes: {config.max_sats_in_plane}"
    )
    context.add_header(
        f"Minimum inclination: {min_inclination} - Maximum inclination: {config.max_inclination}"
    )
    context.add_header(f"Inclination step: {config.inclination_step} Degrees")
    context.add_header(section_banner("PROGRESS"))


def write_solutions_block(context: RunContext) -> None:
    """Solution table at the bottom of the run log."""
    context.add_header(section_banner("SOLUTIONS"))
    context.add_header(",".join(SOLUTION_COLUMNS))
    for solution in context.solutions:
        context.add_header(str(solution))


class ParameterSweep:
    """
    Sequential constellation design sweep.

    Drives shape generation, refinement and recording against a single
    visibility engine instance.
    """

    def __init__(
        self,
        config: SearchConfig,
        engine: VisibilityEngine,
        context: Optional[RunContext] = None,
        min_inclination: Optional[float] = None
    ) -> None:
        """
        Initialize the sweep.

        Args:
            config: Search configuration
            engine: Visibility engine used for every shape
            context: Run context to record into (new one if None)
            min_inclination: Lower inclination bound; computed from the
                coverage geometry when None
        """
        self.config = config
        self.engine = engine
        self.context = context if context is not None else RunContext()
        if min_inclination is None:
            min_inclination = compute_min_inclination(config)
        self.min_inclination = round_inclination(min_inclination)
        self.refiner = ComplexityRefiner(engine, config, self.context)

        logger.info(
            f"Initialized ParameterSweep: planes {config.min_planes}-{config.max_planes}, "
            f"sats {config.min_sats_in_plane}-{config.max_sats_in_plane}, "
            f"inclination {self.min_inclination}-{config.max_inclination} "
            f"step {config.inclination_step}, "
            f"{longitude_facility_count(config.longitude_resolution)} longitudes per row"
        )

    def evaluate_shape(self, shape: ConstellationShape) -> RefinementOutcome:
        """Generate the satellites of a shape, refine it and record the outcome."""
        cfg = self.config
        logger.info(f"Performing: {shape}")

        satellites = generate_constellation(
            shape, cfg.semi_major_axis, cfg.eccentricity, cfg.perigee_argument, cfg.start_date
        )
        outcome = self.refiner.evaluate(shape, satellites)

        if outcome.accepted:
            self.context.log(f"SOLUTION!: {shape.describe()}. MCG: {outcome.mcg_minutes}")
            self.context.record_solution(Solution(
                plane_count=shape.plane_count,
                sats_per_plane=shape.sats_per_plane,
                inclination_deg=shape.inclination_deg,
                mcg_minutes=outcome.mcg_minutes,
                devices=outcome.devices,
                satellites=tuple(satellites),
                discarded_per_level=self.context.discard_snapshot(),
            ))
        else:
            self.context.log(
                f"Discarded: {shape.describe()}. Complexity level: {outcome.level} "
                f"> MCG: {outcome.mcg_minutes}"
            )
            self.context.record_discard(outcome.level)

        return outcome

    def sweep(self) -> RunContext:
        """Evaluate every shape of the odometer, without header or summary."""
        odometer = Odometer(self.config, self.min_inclination)
        while True:
            outcome = self.evaluate_shape(odometer.current)
            if not odometer.advance(outcome.accepted):
                break
        return self.context

    def run(self) -> SweepResult:
        """
        Run the complete sweep.

        Returns:
            SweepResult with solutions in discovery order and discard counters
        """
        started = time.perf_counter()
        self.engine.set_include_coverage_gaps(self.config.include_coverage_gaps)

        write_header(self.context, self.config, self.min_inclination)
        self.sweep()
        write_solutions_block(self.context)

        elapsed = time.perf_counter() - started
        if not self.context.solutions:
            logger.warning("Sweep finished without any solution")
        logger.info(
            f"Sweep complete in {format_duration(elapsed)}: {self.context.evaluations} shapes, "
            f"{len(self.context.solutions)} solutions, discarded per level {self.context.discarded}"
        )
        return SweepResult(self.context, self.min_inclination, elapsed)
