"""
Device visibility and maximum coverage gap computation.

This module defines the VisibilityEngine interface consumed by the
refinement engine and provides CoverageGapAnalyzer, a sampled
line-of-sight implementation: satellite positions are propagated on a
fixed time grid, a device is covered at a sample when at least one
satellite is above its visibility threshold, and coverage gaps are the
intervals between access windows.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .devices import DeviceSample
from .geometry import EARTH_RADIUS_KM
from .orbit import SatelliteOrbit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessInterval:
    """A window during which a device sees at least one satellite."""

    device_id: int
    start_s: float  # seconds from scenario start
    end_s: float

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "start_s": round(self.start_s, 3),
            "end_s": round(self.end_s, 3),
        }


class VisibilityEngine(ABC):
    """
    Interface of the visibility/coverage-gap collaborator.

    Calls are blocking and stateful: scenario parameters and assets set
    on the engine apply to the next compute call. Implementations must
    be usable as independent instances (one per worker).
    """

    @abstractmethod
    def set_scenario_params(
        self,
        start: datetime,
        end: datetime,
        time_step: float,
        visibility_threshold: float
    ) -> None:
        """Reconfigure the analysis window (time_step in seconds)."""

    @abstractmethod
    def set_assets(
        self,
        devices: Sequence[DeviceSample],
        satellites: Sequence[SatelliteOrbit]
    ) -> None:
        """Replace both the device and the satellite sets."""

    @abstractmethod
    def set_devices(self, devices: Sequence[DeviceSample]) -> None:
        """Replace the device set, keeping the satellites."""

    @abstractmethod
    def set_include_coverage_gaps(self, include: bool) -> None:
        """Count gaps touching the scenario boundaries."""

    @abstractmethod
    def compute_devices_pov(self) -> None:
        """Compute access intervals of the current devices."""

    @abstractmethod
    def compute_max_mcg(self) -> None:
        """Compute the worst coverage gap over the current devices."""

    @abstractmethod
    def get_max_mcg_minutes(self) -> float:
        """Result of the last compute_max_mcg, in minutes."""

    @abstractmethod
    def get_last_sim_time(self) -> float:
        """Wall time of the last computation in milliseconds."""


def _boolean_runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """Return (first, last) index pairs of the True runs in a 1-D mask."""
    padded = np.concatenate(([0], mask.astype(np.int8), [0]))
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return list(zip(starts.tolist(), ends.tolist()))


def max_gap_seconds(
    intervals: Sequence[AccessInterval],
    duration_s: float,
    include_coverage_gaps: bool = True
) -> float:
    """
    Longest coverage gap of one device over a scenario.

    Args:
        intervals: Chronological access intervals of the device
        duration_s: Scenario duration in seconds
        include_coverage_gaps: Also count the gaps before the first and
            after the last access

    Returns:
        Gap in seconds; the whole duration when the device is never covered
    """
    if not intervals:
        return duration_s

    gap = 0.0
    for previous, current in zip(intervals, intervals[1:]):
        gap = max(gap, current.start_s - previous.end_s)

    if include_coverage_gaps:
        gap = max(gap, intervals[0].start_s, duration_s - intervals[-1].end_s)

    return gap


class CoverageGapAnalyzer(VisibilityEngine):
    """
    Sampled line-of-sight coverage gap analyzer.

    Satellite positions are cached per (satellite set, scenario window) so
    that replacing only the devices does not repropagate the constellation.
    """

    def __init__(
        self,
        start: datetime,
        end: datetime,
        time_step: float,
        visibility_threshold: float
    ) -> None:
        """
        Initialize the analyzer with a scenario window.

        Args:
            start: Scenario start (UTC)
            end: Scenario end (UTC)
            time_step: Sampling step in seconds
            visibility_threshold: Minimum elevation in degrees
        """
        self.include_coverage_gaps = False
        self.devices: List[DeviceSample] = []
        self.satellites: List[SatelliteOrbit] = []
        self.access_intervals: Dict[int, List[AccessInterval]] = {}

        self._max_mcg_minutes = 0.0
        self._last_sim_time_ms = 0.0
        self._pov_ready = False
        self._position_cache_key: Optional[Tuple[Any, ...]] = None
        self._sat_positions: Optional[np.ndarray] = None

        self.set_scenario_params(start, end, time_step, visibility_threshold)
        logger.info(f"Initialized CoverageGapAnalyzer ({start} - {end}, step {time_step}s)")

    def set_scenario_params(
        self,
        start: datetime,
        end: datetime,
        time_step: float,
        visibility_threshold: float
    ) -> None:
        if time_step <= 0:
            raise ValueError(f"time_step must be > 0, got {time_step}")
        if end < start:
            raise ValueError(f"Scenario end {end} is before start {start}")

        self.start = start
        self.end = end
        self.time_step = time_step
        self.visibility_threshold = visibility_threshold
        self._pov_ready = False
        logger.debug(f"Scenario window set to {start} - {end}")

    def set_assets(
        self,
        devices: Sequence[DeviceSample],
        satellites: Sequence[SatelliteOrbit]
    ) -> None:
        self.satellites = list(satellites)
        self.set_devices(devices)

    def set_devices(self, devices: Sequence[DeviceSample]) -> None:
        self.devices = list(devices)
        self.access_intervals = {}
        self._pov_ready = False

    def set_include_coverage_gaps(self, include: bool) -> None:
        self.include_coverage_gaps = include

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    def sample_offsets(self) -> np.ndarray:
        """Sample times in seconds from scenario start (end included when on grid)."""
        n_samples = int(math.floor(self.duration_s / self.time_step)) + 1
        return np.arange(n_samples, dtype=float) * self.time_step

    def _satellite_positions(self) -> np.ndarray:
        """ECEF positions (n_sats, n_samples, 3), cached per satellites and window."""
        key = (tuple(self.satellites), self.start, self.end, self.time_step)
        if self._position_cache_key != key or self._sat_positions is None:
            offsets = self.sample_offsets()
            times = [self.start + timedelta(seconds=float(t)) for t in offsets]
            positions = np.empty((len(self.satellites), len(times), 3), dtype=float)
            for i, satellite in enumerate(self.satellites):
                positions[i] = satellite.positions_ecef(times)
            self._sat_positions = positions
            self._position_cache_key = key
            logger.debug(f"Propagated {len(self.satellites)} satellites over {len(times)} samples")
        return self._sat_positions

    def _device_vectors(self) -> Tuple[np.ndarray, np.ndarray]:
        """Device ECEF positions and local up unit vectors on a spherical Earth."""
        lat = np.radians([d.latitude for d in self.devices])
        lon = np.radians([d.longitude for d in self.devices])
        radius = EARTH_RADIUS_KM + np.array([d.altitude for d in self.devices])
        up = np.column_stack((
            np.cos(lat) * np.cos(lon),
            np.cos(lat) * np.sin(lon),
            np.sin(lat),
        ))
        return up * radius[:, None], up

    def coverage_mask(self) -> np.ndarray:
        """
        Boolean array (n_devices, n_samples): device sees any satellite.
        """
        n_samples = len(self.sample_offsets())
        covered = np.zeros((len(self.devices), n_samples), dtype=bool)
        if not self.devices or not self.satellites:
            return covered

        ground, up = self._device_vectors()
        sin_threshold = math.sin(math.radians(self.visibility_threshold))
        sat_positions = self._satellite_positions()

        for sat_track in sat_positions:
            # line of sight from each device to the satellite at each sample
            los = sat_track[None, :, :] - ground[:, None, :]
            rng = np.linalg.norm(los, axis=2)
            sin_elevation = np.einsum("dtk,dk->dt", los, up) / np.maximum(rng, 1e-9)
            covered |= sin_elevation >= sin_threshold

        return covered

    def compute_devices_pov(self) -> None:
        """Compute access intervals for every current device."""
        started = time.perf_counter()

        offsets = self.sample_offsets()
        covered = self.coverage_mask()
        self.access_intervals = {}
        for row, device in zip(covered, self.devices):
            self.access_intervals[device.device_id] = [
                AccessInterval(device.device_id, float(offsets[first]), float(offsets[last]))
                for first, last in _boolean_runs(row)
            ]

        self._pov_ready = True
        self._last_sim_time_ms = (time.perf_counter() - started) * 1000.0
        total = sum(len(v) for v in self.access_intervals.values())
        logger.debug(f"Computed {total} access intervals for {len(self.devices)} devices "
                     f"in {self._last_sim_time_ms:.1f} ms")

    def compute_max_mcg(self) -> None:
        """Compute the maximum coverage gap over all current devices."""
        if not self._pov_ready:
            raise RuntimeError("compute_devices_pov must be called before compute_max_mcg")

        worst_s = 0.0
        for device in self.devices:
            gap = max_gap_seconds(
                self.access_intervals.get(device.device_id, []),
                self.duration_s,
                self.include_coverage_gaps,
            )
            worst_s = max(worst_s, gap)

        self._max_mcg_minutes = worst_s / 60.0

    def get_max_mcg_minutes(self) -> float:
        return self._max_mcg_minutes

    def get_last_sim_time(self) -> float:
        return self._last_sim_time_ms
