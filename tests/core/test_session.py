"""Tests for the metering session reducer."""

from __future__ import annotations

import pytest

from exposure_meter.config import DEFAULT_APERTURES
from exposure_meter.core.exposure_resolver import FixedAperture, FixedShutter
from exposure_meter.core.profile import CameraProfile, build_profile, default_profile
from exposure_meter.core.sample_channel import LightSample, SampleSource
from exposure_meter.core.session import (
    AdjustmentKind,
    EvAdjustmentChanged,
    EvAdjustments,
    FixedTargetChanged,
    IncidentSensorAvailability,
    InputMode,
    InputModeChanged,
    IsoChanged,
    ManualEvChanged,
    MeteringMode,
    MeteringModeChanged,
    ProfileAdded,
    ProfileDeleted,
    ProfileSelected,
    ProfileUpdated,
    SampleReceived,
    SessionState,
    SpotPointChanged,
    initial_state,
    parse_iso,
    reduce,
)


def _camera(ev: float) -> SampleReceived:
    return SampleReceived(LightSample(SampleSource.CAMERA, ev))


def _incident(ev: float) -> SampleReceived:
    return SampleReceived(LightSample(SampleSource.INCIDENT, ev))


@pytest.fixture
def state() -> SessionState:
    return initial_state([default_profile()])


@pytest.fixture
def live_state() -> SessionState:
    base = initial_state(
        [default_profile()],
        adjustments=EvAdjustments(camera=2, incident=-1),
        incident_sensor_available=True,
    )
    return reduce(base, InputModeChanged(InputMode.LIVE))


def test_initial_state_selects_first_profile(state: SessionState) -> None:
    assert state.selected_profile is not None
    assert state.result is None
    assert len(state.combinations) == len(DEFAULT_APERTURES)
    assert state.best_overall is not None


def test_initial_state_keeps_stored_selection() -> None:
    first = build_profile("A", "2.8", "125")
    second = build_profile("B", "4", "60")

    restored = initial_state([first, second], selected_profile_id=second.id)
    stale = initial_state([first, second], selected_profile_id="gone")

    assert restored.selected_profile_id == second.id
    assert stale.selected_profile_id == first.id


def test_parse_iso() -> None:
    assert parse_iso(" 400 ") == 400.0
    assert parse_iso("abc") is None
    assert parse_iso("") is None
    assert parse_iso("nan") is None


def test_malformed_iso_empties_every_output(state: SessionState) -> None:
    state = reduce(state, FixedTargetChanged(FixedAperture(5.6)))
    assert state.result is not None

    invalid = reduce(state, IsoChanged("abc"))
    assert invalid.iso_text == "abc"
    assert invalid.result is None
    assert invalid.combinations == ()
    assert invalid.best_overall is None

    restored = reduce(invalid, IsoChanged("100"))
    assert restored.result == state.result


def test_non_positive_iso_empties_every_output(state: SessionState) -> None:
    state = reduce(state, FixedTargetChanged(FixedAperture(5.6)))
    zero = reduce(state, IsoChanged("0"))

    assert zero.result is None
    assert zero.combinations == ()
    assert zero.best_overall is None


def test_fixed_aperture_and_shutter_are_exclusive(state: SessionState) -> None:
    state = reduce(state, FixedTargetChanged(FixedAperture(5.6)))
    assert state.selected_aperture == 5.6
    assert state.result is not None and state.result.suggested_shutter == 1000

    state = reduce(state, FixedTargetChanged(FixedShutter(125)))
    assert state.selected_aperture is None
    assert state.selected_shutter == 125

    state = reduce(state, FixedTargetChanged(None))
    assert state.fixed is None
    assert state.result is None


def test_manual_ev_drives_current_ev(state: SessionState) -> None:
    state = reduce(state, ManualEvChanged(12))

    assert state.manual_ev == 12.0
    assert state.current_ev == 12.0


def test_unreachable_manual_ev_empties_outputs_instead_of_raising(state: SessionState) -> None:
    state = reduce(state, FixedTargetChanged(FixedAperture(5.6)))

    dark = reduce(state, ManualEvChanged(-1100.0))

    assert dark.current_ev == -1100.0
    assert dark.result is None
    assert dark.combinations == ()
    assert dark.best_overall is None


def test_camera_samples_use_camera_offset(live_state: SessionState) -> None:
    state = reduce(live_state, _camera(10))

    assert state.current_ev == pytest.approx(12.0)

    spot = reduce(reduce(state, MeteringModeChanged(MeteringMode.SPOT)), _camera(9))
    assert spot.current_ev == pytest.approx(11.0)


def test_incident_samples_use_incident_offset(live_state: SessionState) -> None:
    state = reduce(live_state, MeteringModeChanged(MeteringMode.INCIDENT))
    state = reduce(state, _incident(8))

    assert state.current_ev == pytest.approx(7.0)
    assert state.incident_ev == 8

    # Camera frames keep arriving but do not drive incident metering.
    assert reduce(state, _camera(14)).current_ev == pytest.approx(7.0)


def test_samples_are_ignored_in_manual_mode(state: SessionState) -> None:
    updated = reduce(state, _camera(3))

    assert updated.current_ev == state.current_ev


def test_incident_without_sensor_reports_sentinel(state: SessionState) -> None:
    live = reduce(state, InputModeChanged(InputMode.LIVE))
    incident = reduce(live, MeteringModeChanged(MeteringMode.INCIDENT))

    assert incident.incident_sensor_available is False
    assert incident.current_ev == 0.0


def test_sensor_disappearing_mid_session_reports_sentinel(live_state: SessionState) -> None:
    state = reduce(live_state, MeteringModeChanged(MeteringMode.INCIDENT))
    state = reduce(state, _incident(11))

    lost = reduce(state, IncidentSensorAvailability(False))
    assert lost.current_ev == 0.0


def test_returning_to_manual_reseeds_from_manual_ev(live_state: SessionState) -> None:
    state = reduce(live_state, ManualEvChanged(13))
    state = reduce(state, _camera(5))
    assert state.current_ev == pytest.approx(7.0)

    manual = reduce(state, InputModeChanged(InputMode.MANUAL))
    assert manual.current_ev == 13.0


def test_live_readings_trigger_recalculation(live_state: SessionState) -> None:
    state = reduce(live_state, FixedTargetChanged(FixedAperture(5.6)))
    before = state.result
    after = reduce(state, _camera(8)).result

    assert before is not None and after is not None
    assert after.suggested_shutter < before.suggested_shutter


def test_adjustments_are_clamped(state: SessionState) -> None:
    state = reduce(state, EvAdjustmentChanged(AdjustmentKind.CAMERA, 10))
    state = reduce(state, EvAdjustmentChanged(AdjustmentKind.INCIDENT, -9))

    assert state.adjustments == EvAdjustments(camera=6, incident=-6)


def test_spot_point_is_clamped(state: SessionState) -> None:
    state = reduce(state, SpotPointChanged(1.4, -0.2))

    assert state.spot_point == (1.0, 0.0)


def test_selecting_profile_clears_fixed_target() -> None:
    first = build_profile("A", "2.8, 5.6", "1000, 125")
    second = build_profile("B", "4, 8", "500, 60")
    state = initial_state([first, second])
    state = reduce(state, FixedTargetChanged(FixedAperture(5.6)))

    state = reduce(state, ProfileSelected(second.id))

    assert state.selected_profile_id == second.id
    assert state.fixed is None


def test_unknown_profile_selection_is_rejected(state: SessionState) -> None:
    assert reduce(state, ProfileSelected("missing")) is state


def test_profile_added_becomes_active(state: SessionState) -> None:
    profile = build_profile("Olympus OM-1", "1.8, 2.8", "1000, 60")

    state = reduce(state, ProfileAdded(profile))

    assert state.profiles[-1] == profile
    assert state.selected_profile_id == profile.id


def test_unusable_profile_is_rejected(state: SessionState) -> None:
    empty = CameraProfile(name="Empty", apertures=(), shutter_speeds=(125,))

    assert reduce(state, ProfileAdded(empty)) is state


def test_profile_update_replaces_both_sets(state: SessionState) -> None:
    profile_id = state.selected_profile_id
    assert profile_id is not None

    state = reduce(state, ProfileUpdated(profile_id, "Renamed", (8.0, 4.0), (60, 250)))

    updated = state.selected_profile
    assert updated is not None
    assert updated.name == "Renamed"
    assert updated.apertures == (4.0, 8.0)
    assert updated.shutter_speeds == (250, 60)
    assert [row.aperture for row in state.combinations] == [4.0, 8.0]


def test_profile_update_with_blank_name_is_rejected(state: SessionState) -> None:
    profile_id = state.selected_profile_id
    assert profile_id is not None

    assert reduce(state, ProfileUpdated(profile_id, "  ", (4.0,), (60,))) is state


def test_deleting_active_profile_falls_back_then_clears() -> None:
    first = build_profile("A", "2.8", "125")
    second = build_profile("B", "4", "60")
    state = initial_state([first, second], selected_profile_id=first.id)

    state = reduce(state, ProfileDeleted(first.id))
    assert state.selected_profile_id == second.id

    state = reduce(state, ProfileDeleted(second.id))
    assert state.selected_profile_id is None
    assert state.profiles == ()
    assert state.combinations == ()
    assert state.best_overall is None


def test_deleting_inactive_profile_keeps_selection() -> None:
    first = build_profile("A", "2.8", "125")
    second = build_profile("B", "4", "60")
    state = initial_state([first, second], selected_profile_id=first.id)

    state = reduce(state, ProfileDeleted(second.id))

    assert state.selected_profile_id == first.id
    assert reduce(state, ProfileDeleted("missing")) is state
