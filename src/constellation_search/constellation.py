"""
Constellation shapes and satellite generation.

A shape is one point of the design space: number of orbital planes,
satellites per plane and inclination. Satellites are spread evenly in
right ascension across planes and in true anomaly within each plane.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List
import logging

from .orbit import SatelliteOrbit

logger = logging.getLogger(__name__)

INCLINATION_DECIMALS = 2


def round_inclination(inclination: float) -> float:
    """Round an inclination to the sweep grid (2 decimals)."""
    return round(inclination, INCLINATION_DECIMALS)


@dataclass(frozen=True)
class ConstellationShape:
    """One design point of the constellation search."""

    plane_count: int
    sats_per_plane: int
    inclination_deg: float

    def __post_init__(self) -> None:
        """Validate and normalise the shape."""
        if self.plane_count < 1:
            raise ValueError(f"plane_count must be >= 1, got {self.plane_count}")
        if self.sats_per_plane < 1:
            raise ValueError(f"sats_per_plane must be >= 1, got {self.sats_per_plane}")
        object.__setattr__(self, "inclination_deg", round_inclination(self.inclination_deg))

    @property
    def total_satellites(self) -> int:
        return self.plane_count * self.sats_per_plane

    def describe(self) -> str:
        """Human-readable description used in run logs."""
        return (f"{self.plane_count} planes with {self.sats_per_plane} "
                f"satellites at {self.inclination_deg} degrees")

    def __str__(self) -> str:
        return f"{self.plane_count}-{self.sats_per_plane}-{self.inclination_deg}"


def generate_constellation(
    shape: ConstellationShape,
    semi_major_axis: float,
    eccentricity: float,
    arg_perigee: float,
    epoch: datetime
) -> List[SatelliteOrbit]:
    """
    Generate the satellites of a constellation shape.

    Planes are spaced by 360/planes in RAAN, satellites within a plane by
    360/sats in true anomaly. Ids are sequential from 0, plane-major.

    Args:
        shape: Constellation shape
        semi_major_axis: Semi-major axis in km
        eccentricity: Orbit eccentricity
        arg_perigee: Argument of perigee in degrees
        epoch: Element epoch (UTC)

    Returns:
        List of plane_count * sats_per_plane SatelliteOrbit
    """
    plane_phase = 360.0 / shape.plane_count
    sats_phase = 360.0 / shape.sats_per_plane

    satellites = []
    sat_id = 0
    for plane in range(shape.plane_count):
        for slot in range(shape.sats_per_plane):
            satellites.append(SatelliteOrbit(
                sat_id=sat_id,
                epoch=epoch,
                semi_major_axis=semi_major_axis,
                eccentricity=eccentricity,
                inclination=shape.inclination_deg,
                raan=plane * plane_phase,
                arg_perigee=arg_perigee,
                true_anomaly=slot * sats_phase,
            ))
            sat_id += 1

    logger.debug(f"Generated {len(satellites)} satellites for shape {shape}")
    return satellites
