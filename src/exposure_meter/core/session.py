"""Metering session state and its pure transition rules.

The session is an immutable :class:`SessionState`.  Every user or sensor event
is a small dataclass handed to :func:`reduce`, which applies the transition
and then :func:`recalculate` so the derived exposure outputs always match the
inputs.  Side effects (starting sensors, persisting settings, logging) belong
to the controller driving this module.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from ..config import (
    DEFAULT_ISO_TEXT,
    DEFAULT_MANUAL_EV,
    DEFAULT_SPOT_POINT,
    EV_ADJUSTMENT_MAX,
    EV_ADJUSTMENT_MIN,
    NO_READING_EV,
)
from .exposure_resolver import (
    CalculationResult,
    ExposureCombination,
    FixedAperture,
    FixedShutter,
    FixedTarget,
    calculate_all_combinations,
    calculate_best_overall_setting,
    calculate_best_setting,
)
from .profile import CameraProfile
from .sample_channel import LightSample, SampleSource


class MeteringMode(Enum):
    AVERAGE = "average"
    SPOT = "spot"
    INCIDENT = "incident"


class InputMode(Enum):
    """Whether the lighting EV is picked by hand or read from a live source."""

    MANUAL = "manual"
    LIVE = "live"


class AdjustmentKind(Enum):
    CAMERA = "camera"
    INCIDENT = "incident"


def clamp_adjustment(value: int) -> int:
    return max(EV_ADJUSTMENT_MIN, min(EV_ADJUSTMENT_MAX, int(value)))


@dataclass(frozen=True)
class EvAdjustments:
    """Calibration offsets in whole stops for camera and incident metering."""

    camera: int = 0
    incident: int = 0

    def for_source(self, source: SampleSource) -> int:
        if source is SampleSource.INCIDENT:
            return self.incident
        return self.camera

    def with_value(self, kind: AdjustmentKind, value: int) -> "EvAdjustments":
        if kind is AdjustmentKind.INCIDENT:
            return replace(self, incident=clamp_adjustment(value))
        return replace(self, camera=clamp_adjustment(value))


@dataclass(frozen=True)
class SessionState:
    profiles: Tuple[CameraProfile, ...] = ()
    selected_profile_id: Optional[str] = None
    iso_text: str = DEFAULT_ISO_TEXT
    fixed: FixedTarget = None
    input_mode: InputMode = InputMode.MANUAL
    metering_mode: MeteringMode = MeteringMode.AVERAGE
    current_ev: float = DEFAULT_MANUAL_EV
    manual_ev: float = DEFAULT_MANUAL_EV
    adjustments: EvAdjustments = field(default_factory=EvAdjustments)
    spot_point: Tuple[float, float] = DEFAULT_SPOT_POINT
    incident_sensor_available: bool = False
    incident_ev: Optional[float] = None

    result: Optional[CalculationResult] = None
    combinations: Tuple[ExposureCombination, ...] = ()
    best_overall: Optional[CalculationResult] = None

    @property
    def selected_profile(self) -> Optional[CameraProfile]:
        return find_profile(self.profiles, self.selected_profile_id)

    @property
    def iso(self) -> Optional[float]:
        return parse_iso(self.iso_text)

    @property
    def selected_aperture(self) -> Optional[float]:
        return self.fixed.value if isinstance(self.fixed, FixedAperture) else None

    @property
    def selected_shutter(self) -> Optional[int]:
        return self.fixed.value if isinstance(self.fixed, FixedShutter) else None

    @property
    def is_live_incident(self) -> bool:
        return (
            self.input_mode is InputMode.LIVE
            and self.metering_mode is MeteringMode.INCIDENT
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IsoChanged:
    text: str


@dataclass(frozen=True)
class ProfileSelected:
    profile_id: Optional[str]


@dataclass(frozen=True)
class FixedTargetChanged:
    target: FixedTarget


@dataclass(frozen=True)
class ManualEvChanged:
    ev: float


@dataclass(frozen=True)
class InputModeChanged:
    mode: InputMode


@dataclass(frozen=True)
class MeteringModeChanged:
    mode: MeteringMode


@dataclass(frozen=True)
class SampleReceived:
    sample: LightSample


@dataclass(frozen=True)
class EvAdjustmentChanged:
    kind: AdjustmentKind
    value: int


@dataclass(frozen=True)
class SpotPointChanged:
    x: float
    y: float


@dataclass(frozen=True)
class IncidentSensorAvailability:
    available: bool


@dataclass(frozen=True)
class ProfileAdded:
    """Append an already validated profile and make it the active one."""

    profile: CameraProfile


@dataclass(frozen=True)
class ProfileUpdated:
    profile_id: str
    name: str
    apertures: Tuple[float, ...]
    shutter_speeds: Tuple[int, ...]


@dataclass(frozen=True)
class ProfileDeleted:
    profile_id: str


SessionEvent = Union[
    IsoChanged,
    ProfileSelected,
    FixedTargetChanged,
    ManualEvChanged,
    InputModeChanged,
    MeteringModeChanged,
    SampleReceived,
    EvAdjustmentChanged,
    SpotPointChanged,
    IncidentSensorAvailability,
    ProfileAdded,
    ProfileUpdated,
    ProfileDeleted,
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_iso(text: str) -> Optional[float]:
    """Return *text* as a finite ISO number, or ``None`` when it is not numeric."""

    try:
        value = float((text or "").strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def find_profile(
    profiles: Iterable[CameraProfile], profile_id: Optional[str]
) -> Optional[CameraProfile]:
    if profile_id is None:
        return None
    for profile in profiles:
        if profile.id == profile_id:
            return profile
    return None


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def initial_state(
    profiles: Iterable[CameraProfile],
    *,
    selected_profile_id: Optional[str] = None,
    iso_text: str = DEFAULT_ISO_TEXT,
    manual_ev: float = DEFAULT_MANUAL_EV,
    adjustments: EvAdjustments | None = None,
    incident_sensor_available: bool = False,
) -> SessionState:
    """Return a recalculated session restored from persisted values.

    A stored selection that no longer matches any profile falls back to the
    first profile.
    """

    profiles = tuple(profiles)
    if find_profile(profiles, selected_profile_id) is None:
        selected_profile_id = profiles[0].id if profiles else None
    state = SessionState(
        profiles=profiles,
        selected_profile_id=selected_profile_id,
        iso_text=iso_text,
        current_ev=float(manual_ev),
        manual_ev=float(manual_ev),
        adjustments=adjustments or EvAdjustments(),
        incident_sensor_available=bool(incident_sensor_available),
    )
    return recalculate(state)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _apply_sample(state: SessionState, sample: LightSample) -> SessionState:
    if sample.source is SampleSource.INCIDENT:
        state = replace(state, incident_ev=sample.ev)
        if state.is_live_incident:
            offset = state.adjustments.for_source(SampleSource.INCIDENT)
            state = replace(state, current_ev=sample.ev + offset)
        return state

    if state.input_mode is InputMode.LIVE and state.metering_mode in (
        MeteringMode.AVERAGE,
        MeteringMode.SPOT,
    ):
        offset = state.adjustments.for_source(SampleSource.CAMERA)
        return replace(state, current_ev=sample.ev + offset)
    return state


def _enter_incident_without_sensor(state: SessionState) -> SessionState:
    if state.is_live_incident and not state.incident_sensor_available:
        return replace(state, current_ev=NO_READING_EV)
    return state


def _delete_profile(state: SessionState, profile_id: str) -> SessionState:
    remaining = tuple(profile for profile in state.profiles if profile.id != profile_id)
    if len(remaining) == len(state.profiles):
        return state
    state = replace(state, profiles=remaining)
    if state.selected_profile_id == profile_id:
        fallback = remaining[0].id if remaining else None
        state = replace(state, selected_profile_id=fallback, fixed=None)
    return state


def _update_profile(state: SessionState, event: ProfileUpdated) -> SessionState:
    name = event.name.strip()
    if not name or not event.apertures or not event.shutter_speeds:
        return state
    if find_profile(state.profiles, event.profile_id) is None:
        return state
    profiles = tuple(
        profile.with_settings(name, event.apertures, event.shutter_speeds)
        if profile.id == event.profile_id
        else profile
        for profile in state.profiles
    )
    state = replace(state, profiles=profiles)
    # A locked value may no longer exist on the edited body.
    if state.selected_profile_id == event.profile_id:
        state = replace(state, fixed=None)
    return state


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Apply *event* to *state* without touching the derived outputs.

    Returns *state* itself when the event is rejected or changes nothing.
    """

    if isinstance(event, IsoChanged):
        return replace(state, iso_text=event.text)

    if isinstance(event, ProfileSelected):
        if event.profile_id is not None and find_profile(state.profiles, event.profile_id) is None:
            return state
        return replace(state, selected_profile_id=event.profile_id, fixed=None)

    if isinstance(event, FixedTargetChanged):
        target = event.target
        if target is not None and not isinstance(target, (FixedAperture, FixedShutter)):
            return state
        return replace(state, fixed=target)

    if isinstance(event, ManualEvChanged):
        state = replace(state, manual_ev=float(event.ev))
        if state.input_mode is InputMode.MANUAL:
            state = replace(state, current_ev=float(event.ev))
        return state

    if isinstance(event, InputModeChanged):
        state = replace(state, input_mode=event.mode)
        if event.mode is InputMode.MANUAL:
            return replace(state, current_ev=state.manual_ev)
        return _enter_incident_without_sensor(state)

    if isinstance(event, MeteringModeChanged):
        return _enter_incident_without_sensor(replace(state, metering_mode=event.mode))

    if isinstance(event, SampleReceived):
        return _apply_sample(state, event.sample)

    if isinstance(event, EvAdjustmentChanged):
        return replace(state, adjustments=state.adjustments.with_value(event.kind, event.value))

    if isinstance(event, SpotPointChanged):
        return replace(state, spot_point=(_clamp_unit(event.x), _clamp_unit(event.y)))

    if isinstance(event, IncidentSensorAvailability):
        return _enter_incident_without_sensor(
            replace(state, incident_sensor_available=bool(event.available))
        )

    if isinstance(event, ProfileAdded):
        profile = event.profile
        if not profile.name.strip() or not profile.is_usable:
            return state
        if find_profile(state.profiles, profile.id) is not None:
            return state
        return replace(
            state,
            profiles=state.profiles + (profile,),
            selected_profile_id=profile.id,
            fixed=None,
        )

    if isinstance(event, ProfileUpdated):
        return _update_profile(state, event)

    if isinstance(event, ProfileDeleted):
        return _delete_profile(state, event.profile_id)

    raise TypeError(f"Unsupported session event: {event!r}")


def recalculate(state: SessionState) -> SessionState:
    """Return *state* with result, combinations and best overall refreshed.

    Malformed ISO text or a missing profile empties every derived output; a
    missing fixed target only empties the single-setting result.
    """

    iso = state.iso
    profile = state.selected_profile
    if iso is None or profile is None:
        return replace(state, result=None, combinations=(), best_overall=None)

    ev = state.current_ev
    result = (
        calculate_best_setting(ev, iso, profile, state.fixed)
        if state.fixed is not None
        else None
    )
    return replace(
        state,
        result=result,
        combinations=tuple(calculate_all_combinations(ev, iso, profile)),
        best_overall=calculate_best_overall_setting(ev, iso, profile),
    )


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """Apply *event* and recompute the derived outputs."""

    updated = transition(state, event)
    if updated is state:
        return state
    return recalculate(updated)


__all__ = [
    "AdjustmentKind",
    "EvAdjustmentChanged",
    "EvAdjustments",
    "FixedTargetChanged",
    "IncidentSensorAvailability",
    "InputMode",
    "InputModeChanged",
    "IsoChanged",
    "ManualEvChanged",
    "MeteringMode",
    "MeteringModeChanged",
    "ProfileAdded",
    "ProfileDeleted",
    "ProfileSelected",
    "ProfileUpdated",
    "SampleReceived",
    "SessionEvent",
    "SessionState",
    "SpotPointChanged",
    "clamp_adjustment",
    "find_profile",
    "initial_state",
    "parse_iso",
    "recalculate",
    "reduce",
]
