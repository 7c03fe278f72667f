"""
Ground device samples and latitude/longitude grid generation.

A device is one ground observation point at which the coverage gap is
measured. Devices are laid out on a grid of latitude rows, each row
sampled at a fixed longitude resolution.
"""

from dataclasses import dataclass
from typing import List, Dict, Any, Iterable
import logging

logger = logging.getLogger(__name__)

FULL_CIRCLE_DEG = 360.0


@dataclass(frozen=True)
class DeviceSample:
    """
    A ground sample point for coverage analysis.
    """

    device_id: int
    latitude: float  # degrees, -90 to +90
    longitude: float  # degrees, 0 to 360 (grid steps east of Greenwich)
    altitude: float = 0.0  # km above the reference sphere

    def __post_init__(self) -> None:
        """Validate device coordinates."""
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Invalid latitude: {self.latitude}. Must be between -90 and 90 degrees.")
        if not 0 <= self.longitude <= FULL_CIRCLE_DEG:
            raise ValueError(f"Invalid longitude: {self.longitude}. Must be between 0 and 360 degrees.")

    def to_dict(self) -> Dict[str, Any]:
        """Convert device to dictionary representation."""
        return {
            "device_id": self.device_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
        }


def longitude_facility_count(longitude_resolution: float) -> int:
    """
    Number of longitude steps around a latitude row.

    A non-positive resolution collapses the row to a single sample at 0 deg.
    """
    if longitude_resolution <= 0:
        return 1
    return max(1, int(round(FULL_CIRCLE_DEG / longitude_resolution)))


def generate_device_grid(
    latitudes: Iterable[float],
    longitude_resolution: float,
    start_id: int = 0
) -> List[DeviceSample]:
    """
    Generate devices for every latitude at every longitude step.

    Latitudes are emitted in input order (duplicates included); within
    a latitude, longitudes increase from 0. Ids are sequential from
    ``start_id``.

    Args:
        latitudes: Latitude rows in degrees
        longitude_resolution: Longitude step in degrees
        start_id: Id of the first device

    Returns:
        List of DeviceSample
    """
    n_facilities = longitude_facility_count(longitude_resolution)
    devices = []
    device_id = start_id
    for latitude in latitudes:
        for step in range(n_facilities):
            devices.append(DeviceSample(device_id, latitude, step * longitude_resolution, 0.0))
            device_id += 1
    return devices
