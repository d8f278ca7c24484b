"""Resolve continuous exposure values onto a camera's discrete settings.

Every function in this module is pure: the same arguments always produce the
same result and nothing is read from or written to the outside world.  Invalid
input (non-positive ISO, empty sets, no fixed setting) yields ``None`` or an
empty list instead of raising, so callers can render a placeholder directly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar, Union

from ..config import REFERENCE_ISO
from .profile import CameraProfile

_Number = TypeVar("_Number", int, float)


@dataclass(frozen=True)
class CalculationResult:
    """Best discrete setting for one fixed dimension."""

    suggested_aperture: float
    suggested_shutter: int
    resulting_ev: float
    f_stop_difference: float


@dataclass(frozen=True)
class ExposureCombination:
    """One row of the per-aperture exposure table.

    Bulb rows carry ``closest_shutter == 0`` and ``f_stop_difference == 0.0``;
    the exposure time to hold the shutter open for is ``bulb_time_seconds``.
    """

    aperture: float
    closest_shutter: int
    f_stop_difference: float
    is_bulb: bool = False
    bulb_time_seconds: Optional[float] = None


@dataclass(frozen=True)
class FixedAperture:
    """The user locked the aperture; the resolver picks a shutter speed."""

    value: float


@dataclass(frozen=True)
class FixedShutter:
    """The user locked the shutter denominator; the resolver picks an aperture."""

    value: int


FixedTarget = Union[FixedAperture, FixedShutter, None]


def find_closest(target: float, options: Iterable[_Number]) -> Optional[_Number]:
    """Return the member of *options* nearest to *target*.

    Ties resolve to the first candidate in iteration order, so
    ``find_closest(5.0, [4.0, 6.0])`` is ``4.0``.  ``None`` is returned for an
    empty iterable.
    """

    best: Optional[_Number] = None
    best_distance = math.inf
    for option in options:
        distance = abs(target - option)
        if distance < best_distance:
            best = option
            best_distance = distance
    return best


def ideal_ev(lighting_ev: float, iso: float) -> float:
    """Return the EV the camera must deliver for *lighting_ev* (ISO 100) at *iso*."""

    return lighting_ev + math.log2(iso / REFERENCE_ISO)


def ideal_shutter_time(ideal: float, aperture: float) -> Optional[float]:
    """Return the exposure time in seconds for *aperture* at EV *ideal*.

    ``None`` when ``2^ideal`` overflows or underflows to zero.
    """

    try:
        light = math.pow(2.0, ideal)
    except OverflowError:
        return None
    if light == 0.0:
        return None
    return aperture * aperture / light


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resulting_ev(aperture: float, shutter: int) -> float:
    """Return the EV produced by *aperture* and a 1/*shutter* second exposure."""

    return math.log2(aperture * aperture * shutter)


def resolve_fixed_aperture(
    ideal: float, aperture: float, shutter_set: Iterable[int]
) -> Optional[int]:
    """Return the shutter denominator from *shutter_set* closest to the ideal one."""

    if aperture <= 0:
        return None
    time_seconds = ideal_shutter_time(ideal, aperture)
    if time_seconds is None or time_seconds <= 0:
        return None
    try:
        ideal_denominator = _round_half_up(1.0 / time_seconds)
    except (OverflowError, ValueError):
        return None
    return find_closest(ideal_denominator, shutter_set)


def resolve_fixed_shutter(
    ideal: float, shutter: int, aperture_set: Iterable[float]
) -> Optional[float]:
    """Return the f-number from *aperture_set* closest to the ideal one.

    The ideal f-number is ``sqrt(t * 2^ev)`` where ``t`` is the exposure time
    ``1 / shutter`` seconds, i.e. ``sqrt(2^ev / shutter)``.  Multiplying the
    denominator itself, as in ``sqrt(shutter * 2^ev)``, would invert the
    relation between shutter speed and aperture: EV = log2(N^2 / t), so
    N = sqrt(t * 2^EV) only holds with ``t`` in seconds.
    """

    if shutter <= 0:
        return None
    try:
        ideal_aperture = math.sqrt(math.pow(2.0, ideal) / shutter)
    except OverflowError:
        return None
    return find_closest(ideal_aperture, aperture_set)


def _build_result(aperture: float, shutter: int, ideal: float) -> Optional[CalculationResult]:
    # A non-positive pair would turn into NaN or negative stops further down.
    if aperture <= 0 or shutter <= 0:
        return None
    achieved = resulting_ev(aperture, shutter)
    return CalculationResult(
        suggested_aperture=aperture,
        suggested_shutter=shutter,
        resulting_ev=achieved,
        f_stop_difference=achieved - ideal,
    )


def calculate_best_setting(
    lighting_ev: float,
    iso: float,
    profile: CameraProfile,
    fixed: FixedTarget,
) -> Optional[CalculationResult]:
    """Return the best setting for the free dimension given the *fixed* one.

    ``None`` is returned when *iso* is not positive, nothing is fixed, the
    profile lacks values for the free dimension, or resolution produces a
    non-positive setting.
    """

    if iso <= 0:
        return None
    target = ideal_ev(lighting_ev, iso)

    if isinstance(fixed, FixedAperture):
        if not profile.shutter_speeds:
            return None
        shutter = resolve_fixed_aperture(target, fixed.value, profile.shutter_speeds)
        if shutter is None:
            return None
        return _build_result(fixed.value, shutter, target)

    if isinstance(fixed, FixedShutter):
        if not profile.apertures:
            return None
        aperture = resolve_fixed_shutter(target, fixed.value, profile.apertures)
        if aperture is None:
            return None
        return _build_result(aperture, fixed.value, target)

    return None


def calculate_all_combinations(
    lighting_ev: float,
    iso: float,
    profile: CameraProfile,
) -> list[ExposureCombination]:
    """Return one :class:`ExposureCombination` per profile aperture, in profile order.

    When the slowest timed shutter cannot cover the ideal exposure time (or the
    profile has no shutter speeds at all) the row becomes a bulb exposure.  An
    exposure time of exactly ``1 / slowest`` still uses the timed shutter.
    """

    if iso <= 0 or not profile.apertures:
        return []
    target = ideal_ev(lighting_ev, iso)
    slowest = min(profile.shutter_speeds) if profile.shutter_speeds else None

    combinations: list[ExposureCombination] = []
    for aperture in profile.apertures:
        time_seconds = ideal_shutter_time(target, aperture)
        if time_seconds is None:
            continue
        if slowest is None or time_seconds > 1.0 / slowest:
            combinations.append(
                ExposureCombination(
                    aperture=aperture,
                    closest_shutter=0,
                    f_stop_difference=0.0,
                    is_bulb=True,
                    bulb_time_seconds=time_seconds,
                )
            )
            continue

        shutter = resolve_fixed_aperture(target, aperture, profile.shutter_speeds)
        result = _build_result(aperture, shutter, target) if shutter is not None else None
        if result is None:
            continue
        combinations.append(
            ExposureCombination(
                aperture=aperture,
                closest_shutter=result.suggested_shutter,
                f_stop_difference=result.f_stop_difference,
            )
        )
    return combinations


def calculate_best_overall_setting(
    lighting_ev: float,
    iso: float,
    profile: CameraProfile,
) -> Optional[CalculationResult]:
    """Return the timed combination with the smallest absolute stop error.

    Bulb rows are ignored; ties keep the earliest aperture in profile order.
    """

    timed = [
        combination
        for combination in calculate_all_combinations(lighting_ev, iso, profile)
        if not combination.is_bulb
    ]
    if not timed:
        return None
    best = min(timed, key=lambda combination: abs(combination.f_stop_difference))
    return CalculationResult(
        suggested_aperture=best.aperture,
        suggested_shutter=best.closest_shutter,
        resulting_ev=resulting_ev(best.aperture, best.closest_shutter),
        f_stop_difference=best.f_stop_difference,
    )


__all__ = [
    "CalculationResult",
    "ExposureCombination",
    "FixedAperture",
    "FixedShutter",
    "FixedTarget",
    "calculate_all_combinations",
    "calculate_best_overall_setting",
    "calculate_best_setting",
    "find_closest",
    "ideal_ev",
    "ideal_shutter_time",
    "resolve_fixed_aperture",
    "resolve_fixed_shutter",
    "resulting_ev",
]
