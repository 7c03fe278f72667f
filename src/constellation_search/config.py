"""
Search configuration loading and validation.

This module loads the run parameters of a constellation search from a
YAML file into a validated SearchConfig. Any missing or malformed value
is a fatal ConfigurationError.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

import yaml  # type: ignore[import-untyped]

from .geometry import EARTH_RADIUS_KM
from .utils import parse_datetime

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when the search configuration is missing or invalid."""


REQUIRED_KEYS = [
    "output_path",
    "start_date",
    "end_date",
    "search_date",
    "time_step",
    "visibility_threshold",
    "max_mcg",
    "max_lat",
    "min_planes",
    "max_planes",
    "min_sats_in_plane",
    "max_sats_in_plane",
    "max_inclination",
    "inclination_step",
    "semi_major_axis",
    "eccentricity",
    "perigee_argument",
]

_INT_KEYS = {"min_planes", "max_planes", "min_sats_in_plane", "max_sats_in_plane", "workers"}
_DATE_KEYS = {"start_date", "end_date", "search_date"}

SAMPLE_CONFIG: Dict[str, Any] = {
    "output_path": "results/",
    "start_date": "2024-01-01 00:00:00",
    "end_date": "2024-01-02 00:00:00",
    "search_date": "2024-01-01 06:00:00",
    "time_step": 60.0,
    "visibility_threshold": 10.0,
    "max_mcg": 60.0,
    "max_lat": 60.0,
    "min_planes": 1,
    "max_planes": 4,
    "min_sats_in_plane": 1,
    "max_sats_in_plane": 6,
    "max_inclination": 90.0,
    "inclination_step": 5.0,
    "semi_major_axis": 7078.137,
    "eccentricity": 0.0,
    "perigee_argument": 0.0,
    "include_coverage_gaps": True,
    "workers": 1,
}


@dataclass
class SearchConfig:
    """
    Parameters of one constellation search run.

    Dates are naive UTC datetimes, time_step is in seconds, angles in
    degrees, max_mcg in minutes and semi_major_axis in km.
    """

    output_path: str
    start_date: datetime
    end_date: datetime
    search_date: datetime
    time_step: float
    visibility_threshold: float
    max_mcg: float
    max_lat: float
    min_planes: int
    max_planes: int
    min_sats_in_plane: int
    max_sats_in_plane: int
    max_inclination: float
    inclination_step: float
    semi_major_axis: float
    eccentricity: float
    perigee_argument: float
    include_coverage_gaps: bool = True
    workers: int = 1
    source: str = field(default="<memory>", compare=False)

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if not self.start_date < self.search_date:
            raise ConfigurationError(
                f"search_date ({self.search_date}) must be after start_date ({self.start_date})"
            )
        if self.search_date > self.end_date:
            raise ConfigurationError(
                f"search_date ({self.search_date}) must not be after end_date ({self.end_date})"
            )
        if self.time_step <= 0:
            raise ConfigurationError(f"time_step must be > 0, got {self.time_step}")
        if self.max_mcg < 0:
            raise ConfigurationError(f"max_mcg must be >= 0, got {self.max_mcg}")
        if not 0 <= self.max_lat <= 90:
            raise ConfigurationError(f"max_lat must be in [0, 90], got {self.max_lat}")
        if not 0 <= self.visibility_threshold < 90:
            raise ConfigurationError(
                f"visibility_threshold must be in [0, 90), got {self.visibility_threshold}"
            )
        if not 1 <= self.min_planes <= self.max_planes:
            raise ConfigurationError(
                f"Invalid plane range: {self.min_planes}..{self.max_planes}"
            )
        if not 1 <= self.min_sats_in_plane <= self.max_sats_in_plane:
            raise ConfigurationError(
                f"Invalid sats-per-plane range: {self.min_sats_in_plane}..{self.max_sats_in_plane}"
            )
        if self.inclination_step <= 0:
            raise ConfigurationError(
                f"inclination_step must be > 0, got {self.inclination_step}"
            )
        if not 0 <= self.eccentricity < 1:
            raise ConfigurationError(f"eccentricity must be in [0, 1), got {self.eccentricity}")
        if self.semi_major_axis * (1 - self.eccentricity) <= EARTH_RADIUS_KM:
            raise ConfigurationError(
                f"Perigee radius {self.semi_major_axis * (1 - self.eccentricity):.1f} km "
                f"is inside the Earth ({EARTH_RADIUS_KM} km)"
            )
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")

    @property
    def longitude_resolution(self) -> float:
        """Longitude step of device grids, derived from the MCG target."""
        return self.max_mcg * 0.25

    def restricted_to(self, planes: int, sats_in_plane: int) -> "SearchConfig":
        """Copy of the configuration that sweeps a single (planes, sats) pair."""
        return replace(
            self,
            min_planes=planes,
            max_planes=planes,
            min_sats_in_plane=sats_in_plane,
            max_sats_in_plane=sats_in_plane,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "source":
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.strftime("%Y-%m-%d %H:%M:%S")
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<memory>") -> "SearchConfig":
        """
        Build a configuration from raw key/value pairs.

        Numeric values may be given as numbers or numeric strings.

        Raises:
            ConfigurationError: On missing keys or unparseable values
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {source} must be a mapping")

        missing = [key for key in REQUIRED_KEYS if data.get(key) is None]
        if missing:
            raise ConfigurationError(f"Missing configuration keys in {source}: {missing}")

        known = {f.name for f in fields(cls)} - {"source"}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys in {source}: {unknown}")

        values: Dict[str, Any] = {}
        for key in known:
            if key not in data:
                continue
            values[key] = _coerce(key, data[key])

        return cls(source=source, **values)


def _coerce(key: str, raw: Any) -> Any:
    """Convert one raw configuration value to its field type."""
    try:
        if key in _DATE_KEYS:
            if isinstance(raw, datetime):
                if raw.tzinfo is not None:
                    raw = raw.astimezone(timezone.utc).replace(tzinfo=None)
                return raw
            return parse_datetime(str(raw))
        if key == "output_path":
            return str(raw)
        if key == "include_coverage_gaps":
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text not in ("true", "false"):
                raise ValueError(f"expected true/false, got {raw!r}")
            return text == "true"
        if key in _INT_KEYS:
            if isinstance(raw, bool) or float(raw) != int(float(raw)):
                raise ValueError(f"expected an integer, got {raw!r}")
            return int(float(raw))
        if isinstance(raw, bool):
            raise ValueError(f"expected a number, got {raw!r}")
        return float(raw)
    except (TypeError, ValueError, OverflowError) as e:
        raise ConfigurationError(f"Invalid value for '{key}': {e}") from e


def load_config(config_file: Union[str, Path]) -> SearchConfig:
    """
    Load a search configuration from a YAML file.

    Args:
        config_file: Path to the YAML file

    Returns:
        Validated SearchConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = Path(config_file)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    config = SearchConfig.from_dict(data or {}, source=str(config_path))
    logger.info(f"Loaded search configuration from {config_path}")
    return config


def create_sample_config_file(output_file: Union[str, Path]) -> Path:
    """Write a sample YAML configuration."""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        yaml.safe_dump(SAMPLE_CONFIG, f, sort_keys=False)

    logger.info(f"Created sample configuration: {output_path}")
    return output_path
