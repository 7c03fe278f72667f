"""
Keplerian satellite orbit representation and propagation.

This module provides the SatelliteOrbit element set used for generated
constellations and samples satellite positions in the Earth-fixed frame
using the orbit-predictor library.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cached_property
from typing import Dict, Any, Sequence
import logging

from orbit_predictor.predictors.keplerian import KeplerianPredictor  # type: ignore[import-untyped]
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SatelliteOrbit:
    """
    Osculating Keplerian elements of one satellite at its epoch.

    Distances are in km, angles in degrees.
    """

    sat_id: int
    epoch: datetime
    semi_major_axis: float
    eccentricity: float
    inclination: float
    raan: float
    arg_perigee: float
    true_anomaly: float

    def __post_init__(self) -> None:
        """Validate orbital elements."""
        if self.semi_major_axis <= 0:
            raise ValueError(f"Invalid semi-major axis: {self.semi_major_axis}. Must be positive.")
        if not 0 <= self.eccentricity < 1:
            raise ValueError(f"Invalid eccentricity: {self.eccentricity}. Must be in [0, 1).")

    @cached_property
    def predictor(self) -> KeplerianPredictor:
        """Two-body predictor built from the element set."""
        return KeplerianPredictor(
            self.semi_major_axis,
            self.eccentricity,
            self.inclination,
            self.raan,
            self.arg_perigee,
            self.true_anomaly,
            self.epoch,
        )

    def __getstate__(self) -> Dict[str, Any]:
        # predictor is rebuilt lazily after unpickling
        state = dict(self.__dict__)
        state.pop("predictor", None)
        return state

    def get_position_ecef(self, timestamp: datetime) -> np.ndarray:
        """
        Get satellite position at a specific timestamp.

        Args:
            timestamp: UTC datetime (naive)

        Returns:
            ECEF position vector in km
        """
        position = self.predictor.get_position(timestamp)
        return np.asarray(position.position_ecef, dtype=float)

    def positions_ecef(self, times: Sequence[datetime]) -> np.ndarray:
        """
        Sample ECEF positions over a sequence of timestamps.

        Args:
            times: UTC datetimes

        Returns:
            Array of shape (len(times), 3) in km
        """
        positions = np.empty((len(times), 3), dtype=float)
        for i, when in enumerate(times):
            positions[i] = self.get_position_ecef(when)
        return positions

    def get_orbital_period(self) -> timedelta:
        """Orbital period from Kepler's third law."""
        mu_earth = 398600.4418  # km^3/s^2
        period_s = 2 * np.pi * np.sqrt(self.semi_major_axis ** 3 / mu_earth)
        return timedelta(seconds=float(period_s))

    def to_dict(self) -> Dict[str, Any]:
        """Convert orbit to dictionary representation."""
        return {
            "sat_id": self.sat_id,
            "epoch": self.epoch.isoformat(),
            "semi_major_axis": self.semi_major_axis,
            "eccentricity": self.eccentricity,
            "inclination": self.inclination,
            "raan": self.raan,
            "arg_perigee": self.arg_perigee,
            "true_anomaly": self.true_anomaly,
        }

    def __repr__(self) -> str:
        return (f"SatelliteOrbit(id={self.sat_id}, i={self.inclination}, "
                f"raan={self.raan}, nu={self.true_anomaly})")
