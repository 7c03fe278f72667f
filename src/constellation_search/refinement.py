"""
Progressive latitude-grid refinement of one constellation shape.

A shape is first checked on three latitude rows (equator, half band, band
edge) over a short "first look" window. Only if it meets the coverage-gap
target there is the window widened to the full scenario and the latitude
grid densified level by level (step = max_lat / 2**level). Each level
evaluates only latitudes not seen before; the first level that misses
the target discards the shape.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Sequence, Set, Tuple

from .config import SearchConfig
from .constellation import ConstellationShape
from .devices import DeviceSample, generate_device_grid
from .orbit import SatelliteOrbit
from .report import RunContext
from .visibility import VisibilityEngine

logger = logging.getLogger(__name__)

FIRST_LOOK_LEVEL = 0
MAX_COMPLEXITY_LEVEL = 4


class RefinementState(Enum):
    """Terminal states of a shape evaluation."""
    ACCEPTED = "accepted"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class RefinementOutcome:
    """Result of refining one shape."""

    state: RefinementState
    level: int  # level at which the outcome was decided
    mcg_minutes: float
    devices: Tuple[DeviceSample, ...]  # every device evaluated at levels >= 1
    explored_latitudes: Tuple[float, ...]  # in discovery order

    @property
    def accepted(self) -> bool:
        return self.state is RefinementState.ACCEPTED


def latitude_walk(first: float, last: float, step: float) -> Iterator[float]:
    """
    Yield first, first + step, ... while <= last, by repeated addition.

    Values are exactly those produced by accumulating ``step``; a zero
    step yields ``first`` once.
    """
    lat = first
    while lat <= last:
        yield lat
        if step <= 0:
            break
        lat += step


def level_latitudes(level: int, max_lat: float) -> List[float]:
    """
    Candidate latitude rows of a complexity level, before de-duplication.

    Level 0 is the first-look set (equator, half band, band edge). Level 1
    covers the whole band at step max_lat / 2; deeper levels skip the band
    edges, which level 1 already sampled.
    """
    if level == FIRST_LOOK_LEVEL:
        return [0.0, max_lat / 2, max_lat]

    step = max_lat / 2 ** level
    if level == 1:
        first_step, last_step = 0.0, max_lat
    else:
        first_step, last_step = step, max_lat - step
    return list(latitude_walk(first_step, last_step, step))


class ComplexityRefiner:
    """
    Coarse-to-fine coverage-gap check of a single constellation shape.

    The refiner drives the visibility engine through one shape: it owns
    the explored-latitude set, which is reset on every evaluate call.
    """

    def __init__(
        self,
        engine: VisibilityEngine,
        config: SearchConfig,
        context: RunContext
    ) -> None:
        self.engine = engine
        self.config = config
        self.context = context
        self.explored_latitudes: Set[float] = set()

    def _log_level(self, shape: ConstellationShape, level: int, mcg: float, sim_time: float) -> None:
        self.context.log(
            f"Analyzing: {shape.describe()}. Complexity level: {level} "
            f"> MCG: {mcg} - computation time: {sim_time} ms."
        )

    def _first_look(
        self,
        shape: ConstellationShape,
        satellites: Sequence[SatelliteOrbit]
    ) -> float:
        """Level 0: three latitude rows over the search window."""
        cfg = self.config
        self.engine.set_scenario_params(
            cfg.start_date, cfg.search_date, cfg.time_step, cfg.visibility_threshold
        )

        devices = generate_device_grid(
            level_latitudes(FIRST_LOOK_LEVEL, cfg.max_lat), cfg.longitude_resolution
        )
        self.engine.set_assets(devices, satellites)
        self.engine.compute_devices_pov()
        self.engine.compute_max_mcg()

        mcg = self.engine.get_max_mcg_minutes()
        self._log_level(shape, FIRST_LOOK_LEVEL, mcg, self.engine.get_last_sim_time())
        return mcg

    def evaluate(
        self,
        shape: ConstellationShape,
        satellites: Sequence[SatelliteOrbit]
    ) -> RefinementOutcome:
        """
        Refine a shape until it fails a level or passes level 4.

        A level with no unexplored latitudes makes no engine call and keeps
        the previous level's MCG.

        Args:
            shape: Shape under evaluation
            satellites: Its satellites (plane_count * sats_per_plane)

        Returns:
            RefinementOutcome with the deciding level and last MCG
        """
        cfg = self.config
        self.explored_latitudes = set()
        explored_order: List[float] = []
        evaluated_devices: List[DeviceSample] = []

        mcg = self._first_look(shape, satellites)
        if mcg > cfg.max_mcg:
            return RefinementOutcome(RefinementState.DISCARDED, FIRST_LOOK_LEVEL, mcg, (), ())

        # Promising at first look: widen to the full analysis window once
        self.engine.set_scenario_params(
            cfg.start_date, cfg.end_date, cfg.time_step, cfg.visibility_threshold
        )

        for level in range(1, MAX_COMPLEXITY_LEVEL + 1):
            new_latitudes = []
            for lat in level_latitudes(level, cfg.max_lat):
                if lat not in self.explored_latitudes:
                    self.explored_latitudes.add(lat)
                    explored_order.append(lat)
                    new_latitudes.append(lat)

            if new_latitudes:
                devices = generate_device_grid(
                    new_latitudes, cfg.longitude_resolution, start_id=len(evaluated_devices)
                )
                evaluated_devices.extend(devices)

                self.engine.set_devices(devices)
                self.engine.compute_devices_pov()
                self.engine.compute_max_mcg()
                mcg = self.engine.get_max_mcg_minutes()
                sim_time = self.engine.get_last_sim_time()
            else:
                # Nothing new to sample (degenerate band); previous MCG stands
                logger.debug(f"No new latitudes for {shape} at level {level}")
                sim_time = 0.0

            self._log_level(shape, level, mcg, sim_time)

            if mcg > cfg.max_mcg:
                return RefinementOutcome(
                    RefinementState.DISCARDED, level, mcg,
                    tuple(evaluated_devices), tuple(explored_order),
                )

        return RefinementOutcome(
            RefinementState.ACCEPTED, MAX_COMPLEXITY_LEVEL, mcg,
            tuple(evaluated_devices), tuple(explored_order),
        )
