"""
Tests for the coverage geometry module.
"""

import math

import pytest

from constellation_search import geometry
from constellation_search.geometry import (
    EARTH_RADIUS_KM,
    coverage_fraction_at_equator,
    coverage_fraction_at_latitude,
    max_earth_central_angle,
    min_inclination_for_equal_coverage,
)

# 700 km circular orbit, 10 deg mask, +/-60 deg band
SEMI_MAJOR_AXIS = 7078.137
ECCENTRICITY = 0.0
VISIBILITY_THRESHOLD = 10.0
MAX_LATITUDE = 60.0


class TestMaxEarthCentralAngle:
    """Tests for max_earth_central_angle."""

    def test_leo_value(self) -> None:
        result = max_earth_central_angle(SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD)
        assert result == pytest.approx(17.45, abs=0.02)

    def test_zero_altitude_is_zero(self) -> None:
        result = max_earth_central_angle(EARTH_RADIUS_KM, 0.0, 0.0)
        assert result == pytest.approx(0.0, abs=1e-9)

    def test_eccentricity_uses_apogee(self) -> None:
        circular = max_earth_central_angle(SEMI_MAJOR_AXIS, 0.0, VISIBILITY_THRESHOLD)
        elliptic = max_earth_central_angle(SEMI_MAJOR_AXIS, 0.05, VISIBILITY_THRESHOLD)
        assert elliptic > circular

    def test_higher_threshold_shrinks_cone(self) -> None:
        low = max_earth_central_angle(SEMI_MAJOR_AXIS, ECCENTRICITY, 5.0)
        high = max_earth_central_angle(SEMI_MAJOR_AXIS, ECCENTRICITY, 30.0)
        assert high < low

    @pytest.mark.parametrize("a,e,threshold", [
        (6878.137, 0.0, 0.0),
        (7078.137, 0.01, 10.0),
        (26560.0, 0.0, 5.0),
        (42164.0, 0.0, 45.0),
        (7500.0, 0.1, 80.0),
    ])
    def test_finite_and_non_negative(self, a, e, threshold) -> None:
        result = max_earth_central_angle(a, e, threshold)
        assert math.isfinite(result)
        assert result >= 0.0


class TestCoverageFractions:
    """Tests for the closed-form coverage fractions."""

    def test_equator_nan_when_band_covers_equator(self) -> None:
        result = coverage_fraction_at_equator(math.radians(30.0), math.radians(10.0))
        assert math.isnan(result)

    def test_equator_full_when_lambda_equals_inclination(self) -> None:
        lam = math.radians(20.0)
        assert coverage_fraction_at_equator(lam, lam) == pytest.approx(1.0)

    def test_equator_fraction_in_unit_interval(self) -> None:
        result = coverage_fraction_at_equator(math.radians(17.0), math.radians(55.0))
        assert 0.0 < result < 1.0

    def test_latitude_nan_when_out_of_reach(self) -> None:
        result = coverage_fraction_at_latitude(
            math.radians(10.0), math.radians(20.0), math.radians(60.0)
        )
        assert math.isnan(result)

    def test_latitude_fraction_in_unit_interval(self) -> None:
        result = coverage_fraction_at_latitude(
            math.radians(17.0), math.radians(55.0), math.radians(45.0)
        )
        assert 0.0 < result < 1.0


class TestMinInclinationForEqualCoverage:
    """Tests for the inclination bisection."""

    def test_result_within_bracket(self) -> None:
        result = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, MAX_LATITUDE
        )
        assert 1.0 < result < 89.0

    def test_deterministic(self) -> None:
        results = {
            min_inclination_for_equal_coverage(
                SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, MAX_LATITUDE
            )
            for _ in range(5)
        }
        assert len(results) == 1

    def test_fractions_equal_at_result(self) -> None:
        result = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, MAX_LATITUDE
        )
        lam = math.radians(max_earth_central_angle(SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD))
        inc = math.radians(result)
        p_max_lat = coverage_fraction_at_latitude(lam, inc, math.radians(MAX_LATITUDE))
        p_equator = coverage_fraction_at_equator(lam, inc)
        assert p_max_lat == pytest.approx(p_equator, abs=0.01)

    @pytest.mark.parametrize("max_lat", [0.0, 5.0])
    def test_narrow_band_stalls_below_lambda(self, max_lat) -> None:
        # Midpoints 45 and 23 lower the high bound; at 12 deg both fractions
        # are NaN, only the equator one is substituted and the bracket freezes.
        result = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, max_lat
        )
        assert result == pytest.approx(12.0)

    def test_both_fractions_nan_keeps_bracket(self, monkeypatch) -> None:
        lam = math.radians(max_earth_central_angle(SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD))
        assert math.isnan(coverage_fraction_at_equator(lam, math.radians(12.0)))
        assert math.isnan(coverage_fraction_at_latitude(lam, math.radians(12.0), 0.0))

        # Third midpoint is 12; every later step repeats it until the cap
        monkeypatch.setattr(geometry, "MAX_BISECTION_ITERATIONS", 5)
        result = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, 0.0
        )
        assert result == pytest.approx(12.0)

    def test_wider_band_needs_higher_inclination(self) -> None:
        narrow = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, 30.0
        )
        wide = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, 60.0
        )
        assert wide > narrow

    def test_iteration_cap_returns_last_midpoint(self, monkeypatch) -> None:
        # Midpoints: 45 (raise low), 67 (lower high), 56 -> cap reached
        monkeypatch.setattr(geometry, "MAX_BISECTION_ITERATIONS", 2)
        result = min_inclination_for_equal_coverage(
            SEMI_MAJOR_AXIS, ECCENTRICITY, VISIBILITY_THRESHOLD, MAX_LATITUDE
        )
        assert result == pytest.approx(56.0)
