"""
Tests for the coverage gap analyzer and gap arithmetic.
"""

from datetime import datetime, timedelta
from typing import Iterable, Sequence

import numpy as np
import pytest

from constellation_search.devices import DeviceSample
from constellation_search.visibility import (
    AccessInterval,
    CoverageGapAnalyzer,
    _boolean_runs,
    max_gap_seconds,
)

START = datetime(2024, 1, 1, 0, 0, 0)
END = START + timedelta(seconds=600)

OVERHEAD = (7078.0, 0.0, 0.0)
BELOW_HORIZON = (-7078.0, 0.0, 0.0)


class ScriptedSatellite:
    """
    Satellite stand-in that sits above (0N, 0E) at chosen sample indices
    and on the far side of the Earth otherwise.
    """

    def __init__(self, visible_samples: Iterable[int]) -> None:
        self.visible_samples = set(visible_samples)
        self.propagations = 0

    def positions_ecef(self, times: Sequence[datetime]) -> np.ndarray:
        self.propagations += 1
        return np.array([
            OVERHEAD if i in self.visible_samples else BELOW_HORIZON
            for i in range(len(times))
        ], dtype=float)


def equator_device(device_id: int = 0) -> DeviceSample:
    return DeviceSample(device_id, 0.0, 0.0)


def run_analyzer(analyzer: CoverageGapAnalyzer) -> float:
    analyzer.compute_devices_pov()
    analyzer.compute_max_mcg()
    return analyzer.get_max_mcg_minutes()


@pytest.fixture
def analyzer() -> CoverageGapAnalyzer:
    """Ten-minute window sampled every minute, 10 deg mask."""
    return CoverageGapAnalyzer(START, END, 60.0, 10.0)


class TestBooleanRuns:
    """Tests for _boolean_runs helper."""

    def test_runs(self) -> None:
        mask = np.array([False, True, True, False, True])
        assert _boolean_runs(mask) == [(1, 2), (4, 4)]

    def test_all_false(self) -> None:
        assert _boolean_runs(np.zeros(4, dtype=bool)) == []

    def test_all_true(self) -> None:
        assert _boolean_runs(np.ones(3, dtype=bool)) == [(0, 2)]


class TestMaxGapSeconds:
    """Tests for max_gap_seconds."""

    def test_never_covered_is_full_duration(self) -> None:
        assert max_gap_seconds([], 600.0) == 600.0
        assert max_gap_seconds([], 600.0, include_coverage_gaps=False) == 600.0

    def test_between_intervals(self) -> None:
        intervals = [AccessInterval(0, 100.0, 150.0), AccessInterval(0, 400.0, 500.0)]
        assert max_gap_seconds(intervals, 600.0, include_coverage_gaps=False) == 250.0

    def test_boundary_gaps_counted(self) -> None:
        intervals = [AccessInterval(0, 300.0, 310.0), AccessInterval(0, 320.0, 330.0)]
        assert max_gap_seconds(intervals, 600.0) == 300.0
        assert max_gap_seconds(intervals, 600.0, include_coverage_gaps=False) == 10.0

    def test_single_interval_without_boundaries(self) -> None:
        intervals = [AccessInterval(0, 200.0, 300.0)]
        assert max_gap_seconds(intervals, 600.0, include_coverage_gaps=False) == 0.0


class TestAccessInterval:
    """Tests for AccessInterval dataclass."""

    def test_duration(self) -> None:
        assert AccessInterval(1, 60.0, 180.0).duration_s == 120.0

    def test_to_dict(self) -> None:
        assert AccessInterval(1, 60.0, 180.0).to_dict() == {
            "device_id": 1, "start_s": 60.0, "end_s": 180.0,
        }


class TestScenarioParams:
    """Tests for scenario validation and sampling."""

    def test_include_coverage_gaps_default_off(self, analyzer) -> None:
        assert analyzer.include_coverage_gaps is False

    def test_invalid_time_step(self) -> None:
        with pytest.raises(ValueError, match="time_step"):
            CoverageGapAnalyzer(START, END, 0.0, 10.0)

    def test_end_before_start(self) -> None:
        with pytest.raises(ValueError, match="before start"):
            CoverageGapAnalyzer(END, START, 60.0, 10.0)

    def test_sample_offsets_on_grid(self, analyzer) -> None:
        offsets = analyzer.sample_offsets()
        assert len(offsets) == 11
        assert offsets[-1] == 600.0

    def test_sample_offsets_off_grid(self) -> None:
        engine = CoverageGapAnalyzer(START, END, 70.0, 10.0)
        offsets = engine.sample_offsets()
        assert len(offsets) == 9
        assert offsets[-1] == 560.0


class TestCoverageGapAnalyzer:
    """Tests for coverage and MCG computation."""

    def test_always_visible(self, analyzer) -> None:
        analyzer.set_include_coverage_gaps(True)
        analyzer.set_assets([equator_device()], [ScriptedSatellite(range(11))])
        assert run_analyzer(analyzer) == 0.0

    def test_never_visible_is_full_window(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [ScriptedSatellite([])])
        assert run_analyzer(analyzer) == pytest.approx(10.0)

    def test_gap_between_passes(self, analyzer) -> None:
        # Access at 120-240 s and 480 s: inner gap 240 s, edge gaps 120 s
        analyzer.set_include_coverage_gaps(True)
        analyzer.set_assets([equator_device()], [ScriptedSatellite([2, 3, 4, 8])])
        assert run_analyzer(analyzer) == pytest.approx(4.0)
        assert analyzer.access_intervals[0] == [
            AccessInterval(0, 120.0, 240.0),
            AccessInterval(0, 480.0, 480.0),
        ]

    def test_boundary_gaps_flag(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [ScriptedSatellite([5])])

        analyzer.set_include_coverage_gaps(True)
        assert run_analyzer(analyzer) == pytest.approx(5.0)

        analyzer.set_include_coverage_gaps(False)
        assert run_analyzer(analyzer) == pytest.approx(0.0)

    def test_union_of_satellites(self, analyzer) -> None:
        analyzer.set_include_coverage_gaps(True)
        satellites = [ScriptedSatellite(range(0, 6)), ScriptedSatellite(range(5, 11))]
        analyzer.set_assets([equator_device()], satellites)
        assert run_analyzer(analyzer) == 0.0

    def test_worst_device_wins(self, analyzer) -> None:
        # The antipodal device never sees the satellite
        devices = [equator_device(0), DeviceSample(1, 0.0, 180.0)]
        analyzer.set_assets(devices, [ScriptedSatellite(range(11))])
        assert run_analyzer(analyzer) == pytest.approx(10.0)

    def test_threshold_applies(self) -> None:
        # 45 deg east of the sub-satellite point the elevation is negative
        engine = CoverageGapAnalyzer(START, END, 60.0, 10.0)
        engine.set_assets([DeviceSample(0, 0.0, 45.0)], [ScriptedSatellite(range(11))])
        assert run_analyzer(engine) == pytest.approx(10.0)

    def test_no_devices(self, analyzer) -> None:
        analyzer.set_assets([], [ScriptedSatellite([])])
        assert run_analyzer(analyzer) == 0.0

    def test_no_satellites(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [])
        assert run_analyzer(analyzer) == pytest.approx(10.0)

    def test_mcg_requires_pov(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [ScriptedSatellite([])])
        with pytest.raises(RuntimeError):
            analyzer.compute_max_mcg()

    def test_set_devices_invalidates_pov(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [ScriptedSatellite([])])
        analyzer.compute_devices_pov()
        analyzer.set_devices([equator_device(1)])
        with pytest.raises(RuntimeError):
            analyzer.compute_max_mcg()

    def test_last_sim_time_recorded(self, analyzer) -> None:
        analyzer.set_assets([equator_device()], [ScriptedSatellite([])])
        analyzer.compute_devices_pov()
        assert analyzer.get_last_sim_time() >= 0.0


class TestPositionCache:
    """Tests for satellite position caching."""

    def test_new_devices_reuse_positions(self, analyzer) -> None:
        satellite = ScriptedSatellite([1])
        analyzer.set_assets([equator_device()], [satellite])
        run_analyzer(analyzer)

        analyzer.set_devices([equator_device(1), equator_device(2)])
        run_analyzer(analyzer)
        assert satellite.propagations == 1

    def test_window_change_repropagates(self, analyzer) -> None:
        satellite = ScriptedSatellite([1])
        analyzer.set_assets([equator_device()], [satellite])
        run_analyzer(analyzer)

        analyzer.set_scenario_params(START, END + timedelta(seconds=600), 60.0, 10.0)
        run_analyzer(analyzer)
        assert satellite.propagations == 2

    def test_new_satellites_repropagate(self, analyzer) -> None:
        first = ScriptedSatellite([1])
        second = ScriptedSatellite([1])
        analyzer.set_assets([equator_device()], [first])
        run_analyzer(analyzer)

        analyzer.set_assets([equator_device()], [second])
        run_analyzer(analyzer)
        assert first.propagations == 1
        assert second.propagations == 1
