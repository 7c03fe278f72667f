"""
Closed-form coverage geometry for circular-ish constellations.

This module provides the maximum Earth central angle of a satellite
visibility cone and a bisection search for the inclination at which the
fraction of time a ground point at the maximum latitude is covered equals
the fraction at the equator. That inclination is the lower bound of the
inclination sweep.
"""

import logging
import math

import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

# WGS84 equatorial radius, same frame as orbit_predictor
EARTH_RADIUS_KM = 6378.137

# Bisection bracket and stopping rules (degrees)
INCLINATION_LOWER_BOUND_DEG = 1.0
INCLINATION_UPPER_BOUND_DEG = 89.0
INCLINATION_TOLERANCE_DEG = 0.01
MAX_BISECTION_ITERATIONS = 1000

# Initial value returned if the loop never evaluates a midpoint
_INITIAL_INCLINATION_DEG = 55.0


def max_earth_central_angle(
    semi_major_axis: float,
    eccentricity: float,
    visibility_threshold: float
) -> float:
    """
    Maximum Earth central angle (lambda max) of a satellite at apogee.

    This is half of the satellite's visibility cone projected on the
    surface of the Earth. Arguments are not validated.

    Args:
        semi_major_axis: Semi-major axis in km
        eccentricity: Orbit eccentricity
        visibility_threshold: Minimum elevation for visibility in degrees

    Returns:
        Earth central angle in degrees
    """
    apogee_altitude = (1 + eccentricity) * semi_major_axis - EARTH_RADIUS_KM
    eta_max = math.asin(
        EARTH_RADIUS_KM * math.cos(math.radians(visibility_threshold))
        / (EARTH_RADIUS_KM + apogee_altitude)
    )
    return 90 - visibility_threshold - math.degrees(eta_max)


def coverage_fraction_at_equator(lambda_rad: float, inclination_rad: float) -> float:
    """
    Fraction of an orbit during which a point on the equator is in view.

    Returns NaN when sin(lambda) exceeds sin(inclination), i.e. the
    equator is permanently inside the coverage band.
    """
    with np.errstate(invalid="ignore"):
        ratio = np.sin(lambda_rad) / np.sin(inclination_rad)
        return float(1 - (2 / np.pi) * np.arccos(ratio))


def coverage_fraction_at_latitude(
    lambda_rad: float,
    inclination_rad: float,
    latitude_rad: float
) -> float:
    """
    Fraction of an orbit during which a point at the given latitude is in view.

    Returns NaN when the latitude is out of reach of the ground track
    plus coverage half-width.
    """
    with np.errstate(invalid="ignore", divide="ignore"):
        ratio = (
            (-np.sin(lambda_rad) + np.cos(inclination_rad) * np.sin(latitude_rad))
            / (np.sin(inclination_rad) * np.cos(latitude_rad))
        )
        return float(np.arccos(ratio) / np.pi)


def min_inclination_for_equal_coverage(
    semi_major_axis: float,
    eccentricity: float,
    visibility_threshold: float,
    max_latitude: float
) -> float:
    """
    Find the inclination at which coverage at max latitude equals the equator's.

    Bisection over (1, 89) degrees. NaN coverage fractions are substituted
    before comparison: NaN at the equator counts as full coverage (1.0),
    otherwise NaN at the maximum latitude counts as no coverage (0.0).
    When both are NaN the difference stays NaN and the bracket does not
    move, so the loop runs to the iteration cap.

    The loop stops when the bracket is narrower than 0.01 degrees, when
    both fractions are exactly equal, or after MAX_BISECTION_ITERATIONS
    iterations. Hitting the iteration cap is not an error: the last
    midpoint is returned as a best-effort estimate.

    Args:
        semi_major_axis: Semi-major axis in km
        eccentricity: Orbit eccentricity
        visibility_threshold: Minimum elevation for visibility in degrees
        max_latitude: Upper edge of the latitude band in degrees

    Returns:
        Inclination in degrees (not rounded)
    """
    lam = math.radians(
        max_earth_central_angle(semi_major_axis, eccentricity, visibility_threshold)
    )
    lat = math.radians(max_latitude)

    inc0 = INCLINATION_LOWER_BOUND_DEG
    inc1 = INCLINATION_UPPER_BOUND_DEG
    inc = math.radians(_INITIAL_INCLINATION_DEG)

    iterations = 0
    while abs(inc0 - inc1) >= INCLINATION_TOLERANCE_DEG:
        incx = (inc1 + inc0) / 2
        inc = math.radians(incx)

        p_max_lat = coverage_fraction_at_latitude(lam, inc, lat)
        p_equator = coverage_fraction_at_equator(lam, inc)

        # Only one substitution per step; a remaining NaN leaves the bracket as is
        if math.isnan(p_equator):
            p_equator = 1.0
        elif math.isnan(p_max_lat):
            p_max_lat = 0.0

        diff = p_max_lat - p_equator
        if diff == 0:
            break
        if diff < 0:
            inc0 = incx
        elif diff > 0:
            inc1 = incx

        iterations += 1
        if iterations > MAX_BISECTION_ITERATIONS:
            logger.debug(
                f"Inclination bisection hit the iteration cap; "
                f"returning {incx:.4f} deg (bracket {inc0:.4f}-{inc1:.4f})"
            )
            break

    result = math.degrees(inc)
    logger.debug(f"Minimum inclination for equal coverage: {result:.4f} deg "
                 f"after {iterations} iterations")
    return result
