"""Human readable strings for exposure values and settings."""

from __future__ import annotations

from typing import Optional

from ..config import NO_READING_EV, PERFECT_TOLERANCE
from .exposure_resolver import CalculationResult, ExposureCombination

PLACEHOLDER = "—"
NO_READING = "--"


def format_live_ev(ev: float, *, incident: bool = False, sensor_available: bool = True) -> str:
    """Return *ev* with one decimal, or ``"--"`` while incident metering has no sensor."""

    if incident and not sensor_available and ev == NO_READING_EV:
        return NO_READING
    return f"{ev:.1f}"


def format_aperture(aperture: float) -> str:
    return f"f/{aperture:g}"


def format_shutter(denominator: int) -> str:
    return f"1/{denominator}s"


def format_bulb_time(seconds: float) -> str:
    """Return a bulb duration: one decimal below ten seconds, whole seconds above."""

    if seconds < 10:
        return f"{seconds:.1f}s"
    return f"{int(seconds + 0.5)}s"


def _signed_stops(difference: float) -> str:
    sign = "+" if difference > 0 else "-"
    return f"{sign}{abs(difference):.1f}"


def is_perfect(difference: float) -> bool:
    return abs(difference) < PERFECT_TOLERANCE


def describe_result(result: Optional[CalculationResult]) -> str:
    """Return the headline for *result*, e.g. ``"-0.1 stops (EV 14.9)"``."""

    if result is None:
        return PLACEHOLDER
    ev_text = f"EV {result.resulting_ev:.1f}"
    if is_perfect(result.f_stop_difference):
        return f"Perfect Exposure ({ev_text})"
    return f"{_signed_stops(result.f_stop_difference)} stops ({ev_text})"


def describe_shutter(combination: ExposureCombination) -> str:
    if combination.is_bulb:
        return format_bulb_time(combination.bulb_time_seconds or 0.0)
    return format_shutter(combination.closest_shutter)


def describe_correction(combination: ExposureCombination) -> str:
    """Return the correction column for a row of the exposure table."""

    if combination.is_bulb:
        return "Bulb"
    if is_perfect(combination.f_stop_difference):
        return "Perfect"
    return _signed_stops(combination.f_stop_difference)


__all__ = [
    "NO_READING",
    "PLACEHOLDER",
    "describe_correction",
    "describe_result",
    "describe_shutter",
    "format_aperture",
    "format_bulb_time",
    "format_live_ev",
    "format_shutter",
    "is_perfect",
]
