"""
Constellation Search Tool

Searches a discrete space of constellation designs (planes, satellites
per plane, inclination) for the configurations that meet a maximum
coverage-gap requirement over a latitude band, using progressive
latitude-grid refinement to keep the visibility analysis cheap.
"""

from .config import SearchConfig, ConfigurationError, load_config
from .constellation import ConstellationShape, generate_constellation
from .devices import DeviceSample, generate_device_grid
from .orbit import SatelliteOrbit
from .sweep import ParameterSweep, SweepResult
from .visibility import CoverageGapAnalyzer, VisibilityEngine

__version__ = "0.1.0"
__author__ = "Constellation Search Team"

__all__ = [
    "SearchConfig",
    "ConfigurationError",
    "load_config",
    "ConstellationShape",
    "generate_constellation",
    "DeviceSample",
    "generate_device_grid",
    "SatelliteOrbit",
    "ParameterSweep",
    "SweepResult",
    "CoverageGapAnalyzer",
    "VisibilityEngine",
]
