"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorization
- Shared fixtures for common test setup
- A recording stub of the visibility engine
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pytest
from _pytest.config import Config
from _pytest.python import Function

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from constellation_search.config import SearchConfig  # noqa: E402
from constellation_search.visibility import VisibilityEngine  # noqa: E402


# =============================================================================
# COLLECTION HOOKS
# =============================================================================


def pytest_collection_modifyitems(config: Config, items: List[Function]) -> None:
    """Auto-mark integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks integration tests")


# =============================================================================
# STUB ENGINE
# =============================================================================


class StubVisibilityEngine(VisibilityEngine):
    """
    Visibility engine that records every call and returns scripted MCGs.

    ``mcg_fn`` receives the engine and returns the MCG (minutes) for the
    current satellites, devices and window. Without it, ``mcg`` is used.
    """

    def __init__(self, mcg: float = 0.0, mcg_fn: Optional[Callable[[Any], float]] = None) -> None:
        self.mcg = mcg
        self.mcg_fn = mcg_fn
        self.calls: List[Tuple[Any, ...]] = []
        self.devices: List[Any] = []
        self.satellites: List[Any] = []
        self.window: Optional[Tuple[datetime, datetime]] = None
        self.include_coverage_gaps: Optional[bool] = None
        self.pov_batches: List[List[Any]] = []
        self.mcg_history: List[float] = []
        self._mcg = 0.0

    def set_scenario_params(self, start, end, time_step, visibility_threshold) -> None:
        self.calls.append(("set_scenario_params", start, end))
        self.window = (start, end)

    def set_assets(self, devices: Sequence[Any], satellites: Sequence[Any]) -> None:
        self.calls.append(("set_assets", len(devices), len(satellites)))
        self.devices = list(devices)
        self.satellites = list(satellites)

    def set_devices(self, devices: Sequence[Any]) -> None:
        self.calls.append(("set_devices", len(devices)))
        self.devices = list(devices)

    def set_include_coverage_gaps(self, include: bool) -> None:
        self.calls.append(("set_include_coverage_gaps", include))
        self.include_coverage_gaps = include

    def compute_devices_pov(self) -> None:
        self.calls.append(("compute_devices_pov",))
        self.pov_batches.append(list(self.devices))

    def compute_max_mcg(self) -> None:
        self.calls.append(("compute_max_mcg",))
        self._mcg = self.mcg_fn(self) if self.mcg_fn else self.mcg
        self.mcg_history.append(self._mcg)

    def get_max_mcg_minutes(self) -> float:
        return self._mcg

    def get_last_sim_time(self) -> float:
        return 1.0

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


# =============================================================================
# FIXTURES - Common test setup
# =============================================================================


@pytest.fixture
def base_datetime() -> datetime:
    """Standard scenario start for tests."""
    return datetime(2024, 1, 1, 0, 0, 0)


@pytest.fixture
def config_values(tmp_path: Path) -> dict:
    """Raw configuration values (as read from YAML)."""
    return {
        "output_path": str(tmp_path / "results"),
        "start_date": "2024-01-01 00:00:00",
        "end_date": "2024-01-02 00:00:00",
        "search_date": "2024-01-01 06:00:00",
        "time_step": 60,
        "visibility_threshold": 10,
        "max_mcg": 60,
        "max_lat": 60,
        "min_planes": 1,
        "max_planes": 2,
        "min_sats_in_plane": 1,
        "max_sats_in_plane": 2,
        "max_inclination": 70,
        "inclination_step": 10,
        "semi_major_axis": 7078.137,
        "eccentricity": 0.0,
        "perigee_argument": 0.0,
    }


@pytest.fixture
def sample_config(config_values: dict) -> SearchConfig:
    """Validated search configuration."""
    return SearchConfig.from_dict(config_values)


@pytest.fixture
def stub_engine() -> StubVisibilityEngine:
    """Engine that always meets the target (MCG 0)."""
    return StubVisibilityEngine(mcg=0.0)


@pytest.fixture
def stub_engine_class() -> type:
    """The stub engine class, for tests that script their own MCGs."""
    return StubVisibilityEngine
