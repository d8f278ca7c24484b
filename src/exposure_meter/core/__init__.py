"""Pure exposure calculations: photometry, camera profiles and resolution.

Nothing in this package performs I/O, so every function can be called from
any thread and tested without fixtures.
"""

from __future__ import annotations

from .exposure_resolver import (
    CalculationResult,
    ExposureCombination,
    FixedAperture,
    FixedShutter,
    FixedTarget,
    calculate_all_combinations,
    calculate_best_overall_setting,
    calculate_best_setting,
    find_closest,
    resolve_fixed_aperture,
    resolve_fixed_shutter,
)
from .photometry import luminance_to_ev, lux_to_ev, sensor_to_ev
from .profile import CameraProfile, build_profile, default_profile

__all__ = [
    "CalculationResult",
    "CameraProfile",
    "ExposureCombination",
    "FixedAperture",
    "FixedShutter",
    "FixedTarget",
    "build_profile",
    "calculate_all_combinations",
    "calculate_best_overall_setting",
    "calculate_best_setting",
    "default_profile",
    "find_closest",
    "luminance_to_ev",
    "lux_to_ev",
    "resolve_fixed_aperture",
    "resolve_fixed_shutter",
    "sensor_to_ev",
]
