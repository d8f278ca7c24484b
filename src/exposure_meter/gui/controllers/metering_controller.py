"""Controller owning the metering session and its side effects."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Protocol, Tuple

from PySide6.QtCore import QMetaObject, QObject, Qt, QThreadPool, Signal, Slot

from ...config import (
    DEFAULT_ISO_TEXT,
    DEFAULT_MANUAL_EV,
    KEY_CAMERA_ADJUSTMENT,
    KEY_INCIDENT_ADJUSTMENT,
    KEY_MANUAL_EV,
    KEY_SELECTED_PROFILE,
    KEY_USER_ISO,
    LIGHTING_PRESETS,
    REFERENCE_ISO,
)
from ...core.exposure_resolver import (
    CalculationResult,
    ExposureCombination,
    FixedAperture,
    FixedShutter,
    FixedTarget,
)
from ...core.exposure_text import (
    describe_correction,
    describe_result,
    describe_shutter,
    format_aperture,
    format_live_ev,
)
from ...core.photometry import luminance_to_ev, lux_to_ev, sensor_to_ev
from ...core.profile import CameraProfile, build_profile, validate_profile_input
from ...core.sample_channel import LatestSampleChannel, LightSample, SampleSource
from ...core.session import (
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
    SessionEvent,
    SessionState,
    SpotPointChanged,
    clamp_adjustment,
    initial_state,
    reduce,
)
from ...errors import ProfileValidationError
from ...profiles.store import ProfileStore, load_or_seed_profiles
from ...utils.logging import get_logger
from ..tasks.frame_analysis_worker import FrameAnalysisWorker

logger = get_logger("metering")


class LightSensor(Protocol):
    """Ambient light sensor delivering lux readings to a callback."""

    def is_available(self) -> bool:
        ...

    def start(self, callback: Callable[[float], None]) -> None:
        ...

    def stop(self) -> None:
        ...


class MeteringController(QObject):
    """Drive the metering session from UI and sensor events.

    The controller is a single-writer container: every mutation runs on the
    thread the controller lives on.  Live readings may be submitted from any
    thread through :meth:`submit_sample`; only the newest pending reading is
    kept and older ones are dropped.
    """

    stateChanged = Signal(object)
    resultChanged = Signal(object)
    combinationsChanged = Signal(object)
    bestOverallChanged = Signal(object)
    currentEvChanged = Signal(float)
    meteringModeChanged = Signal(object)
    profilesChanged = Signal(object)

    def __init__(
        self,
        *,
        store: ProfileStore,
        light_sensor: LightSensor | None = None,
        thread_pool: QThreadPool | None = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._light_sensor = light_sensor
        self._thread_pool = thread_pool
        self._sensor_running = False
        self._channel = LatestSampleChannel()
        self._owner_thread = threading.get_ident()
        self._frame_generation = 0
        self._applied_generation = 0
        self._frame_in_flight: Optional[FrameAnalysisWorker] = None
        self._pending_frame: Optional[Tuple[Any, int]] = None
        self._dropped_frames = 0
        self._state = self._restore_state()

    # ------------------------------------------------------------------
    # Preference restoration
    # ------------------------------------------------------------------
    def _restore_state(self) -> SessionState:
        profiles = load_or_seed_profiles(self._store)

        stored_iso = self._store.get(KEY_USER_ISO, DEFAULT_ISO_TEXT)
        iso_text = stored_iso if isinstance(stored_iso, str) else DEFAULT_ISO_TEXT

        stored_ev = self._store.get(KEY_MANUAL_EV, DEFAULT_MANUAL_EV)
        try:
            manual_ev = float(stored_ev)
        except (TypeError, ValueError):
            manual_ev = DEFAULT_MANUAL_EV

        adjustments = EvAdjustments(
            camera=self._stored_adjustment(KEY_CAMERA_ADJUSTMENT),
            incident=self._stored_adjustment(KEY_INCIDENT_ADJUSTMENT),
        )

        selected = self._store.get(KEY_SELECTED_PROFILE)
        state = initial_state(
            profiles,
            selected_profile_id=selected if isinstance(selected, str) else None,
            iso_text=iso_text,
            manual_ev=manual_ev,
            adjustments=adjustments,
            incident_sensor_available=self._sensor_available(),
        )
        if state.selected_profile_id != selected:
            self._store.set(KEY_SELECTED_PROFILE, state.selected_profile_id)
        return state

    def _stored_adjustment(self, key: str) -> int:
        stored = self._store.get(key, 0)
        try:
            return clamp_adjustment(int(round(float(stored))))
        except (TypeError, ValueError):
            return 0

    def _sensor_available(self) -> bool:
        return self._light_sensor is not None and bool(self._light_sensor.is_available())

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    def iso_text(self) -> str:
        return self._state.iso_text

    def current_ev(self) -> float:
        return self._state.current_ev

    def current_ev_text(self) -> str:
        return format_live_ev(
            self._state.current_ev,
            incident=self._state.is_live_incident,
            sensor_available=self._state.incident_sensor_available,
        )

    def profiles(self) -> Tuple[CameraProfile, ...]:
        return self._state.profiles

    def selected_profile(self) -> Optional[CameraProfile]:
        return self._state.selected_profile

    def selected_aperture(self) -> Optional[float]:
        return self._state.selected_aperture

    def selected_shutter(self) -> Optional[int]:
        return self._state.selected_shutter

    def result(self) -> Optional[CalculationResult]:
        return self._state.result

    def combinations(self) -> Tuple[ExposureCombination, ...]:
        return self._state.combinations

    def best_overall(self) -> Optional[CalculationResult]:
        return self._state.best_overall

    def metering_mode(self) -> MeteringMode:
        return self._state.metering_mode

    def input_mode(self) -> InputMode:
        return self._state.input_mode

    def spot_point(self) -> Tuple[float, float]:
        return self._state.spot_point

    def ev_adjustments(self) -> EvAdjustments:
        return self._state.adjustments

    def is_incident_sensor_available(self) -> bool:
        return self._state.incident_sensor_available

    def result_text(self) -> str:
        return describe_result(self._state.result)

    def best_overall_text(self) -> str:
        return describe_result(self._state.best_overall)

    def combination_rows(self) -> Tuple[Tuple[str, str, str], ...]:
        """Return (aperture, shutter, correction) label triples for the exposure table."""

        return tuple(
            (
                format_aperture(combination.aperture),
                describe_shutter(combination),
                describe_correction(combination),
            )
            for combination in self._state.combinations
        )

    # ------------------------------------------------------------------
    # Session inputs
    # ------------------------------------------------------------------
    def set_iso(self, text: str) -> None:
        self._dispatch(IsoChanged(text))
        self._store.set(KEY_USER_ISO, text)

    def select_profile(self, profile_id: Optional[str]) -> None:
        if self._dispatch(ProfileSelected(profile_id)):
            self._store.set(KEY_SELECTED_PROFILE, profile_id)

    def select_aperture(self, aperture: float) -> None:
        self._dispatch(FixedTargetChanged(FixedAperture(float(aperture))))

    def select_shutter(self, shutter: int) -> None:
        self._dispatch(FixedTargetChanged(FixedShutter(int(shutter))))

    def set_fixed_target(self, target: FixedTarget) -> None:
        self._dispatch(FixedTargetChanged(target))

    def clear_fixed_target(self) -> None:
        self._dispatch(FixedTargetChanged(None))

    def set_manual_ev(self, ev: float) -> None:
        self._dispatch(ManualEvChanged(float(ev)))
        self._store.set(KEY_MANUAL_EV, float(ev))

    def lighting_presets(self) -> Tuple[Tuple[str, int], ...]:
        return LIGHTING_PRESETS

    def apply_lighting_preset(self, label: str) -> bool:
        """Set the manual EV from the preset named *label*; ``False`` if unknown."""

        for preset_label, ev in LIGHTING_PRESETS:
            if preset_label == label:
                self.set_manual_ev(ev)
                return True
        logger.warning("Unknown lighting preset %r", label)
        return False

    def set_input_mode(self, mode: InputMode) -> None:
        if mode is InputMode.MANUAL:
            self._channel.clear()
        self._dispatch(InputModeChanged(mode))
        self._sync_light_sensor()

    def set_metering_mode(self, mode: MeteringMode) -> None:
        self._channel.clear()
        self._invalidate_frame_in_flight()
        self._dispatch(MeteringModeChanged(mode))
        self._sync_light_sensor()

    def set_ev_adjustment(self, kind: AdjustmentKind, value: int) -> None:
        self._dispatch(EvAdjustmentChanged(kind, value))
        key = KEY_INCIDENT_ADJUSTMENT if kind is AdjustmentKind.INCIDENT else KEY_CAMERA_ADJUSTMENT
        stored = (
            self._state.adjustments.incident
            if kind is AdjustmentKind.INCIDENT
            else self._state.adjustments.camera
        )
        self._store.set(key, stored)

    def set_spot_point(self, x: float, y: float) -> None:
        if self._dispatch(SpotPointChanged(x, y)):
            self._invalidate_frame_in_flight()

    # ------------------------------------------------------------------
    # Profile management
    # ------------------------------------------------------------------
    def add_profile(self, name: str, apertures_text: str, shutters_text: str) -> Optional[str]:
        """Create a profile from user input and select it; return its id.

        Invalid input is logged and leaves the stored profiles untouched.
        """

        try:
            profile = build_profile(name, apertures_text, shutters_text)
        except ProfileValidationError as exc:
            logger.warning("Rejected new camera profile: %s", exc)
            return None
        if not self._dispatch(ProfileAdded(profile)):
            return None
        self._persist_profiles()
        return profile.id

    def update_profile(
        self, profile_id: str, name: str, apertures_text: str, shutters_text: str
    ) -> bool:
        try:
            cleaned_name, apertures, shutters = validate_profile_input(
                name, apertures_text, shutters_text
            )
        except ProfileValidationError as exc:
            logger.warning("Rejected update of camera profile %s: %s", profile_id, exc)
            return False
        if not self._dispatch(ProfileUpdated(profile_id, cleaned_name, apertures, shutters)):
            logger.warning("Cannot update unknown camera profile %s", profile_id)
            return False
        self._persist_profiles()
        return True

    def delete_profile(self, profile_id: str) -> bool:
        if not self._dispatch(ProfileDeleted(profile_id)):
            return False
        self._persist_profiles()
        return True

    def _persist_profiles(self) -> None:
        self._store.save_profiles(self._state.profiles)
        self._store.set(KEY_SELECTED_PROFILE, self._state.selected_profile_id)

    # ------------------------------------------------------------------
    # Live readings
    # ------------------------------------------------------------------
    def submit_sample(self, sample: LightSample) -> None:
        """Accept a live reading from any thread.

        Readings submitted faster than the controller drains them overwrite
        each other; only the newest one is ever applied.
        """

        if self._channel.offer(sample):
            logger.debug("Dropped stale %s reading", sample.source.value)
        if threading.get_ident() == self._owner_thread:
            self.drain_samples()
        else:
            QMetaObject.invokeMethod(self, "drain_samples", Qt.ConnectionType.QueuedConnection)

    @Slot()
    def drain_samples(self) -> None:
        sample = self._channel.take()
        if sample is not None:
            self._dispatch(SampleReceived(sample))

    def submit_lux(self, lux: float) -> None:
        self.submit_sample(LightSample(SampleSource.INCIDENT, lux_to_ev(lux)))

    def submit_frame_luma(self, luma: float) -> None:
        ev = luminance_to_ev(luma, REFERENCE_ISO)
        self.submit_sample(LightSample(SampleSource.CAMERA, float(ev)))

    def submit_capture_result(self, sensor_iso: int, exposure_time_nanos: int) -> None:
        self.submit_sample(
            LightSample(SampleSource.CAMERA, sensor_to_ev(sensor_iso, exposure_time_nanos))
        )

    def analyze_frame(self, frame: Any) -> Optional[FrameAnalysisWorker]:
        """Meter *frame* on the thread pool using the current mode and spot point.

        At most one frame is analysed at a time.  Frames arriving meanwhile
        replace a single pending slot, so only the newest one is analysed next;
        ``None`` is returned for a frame that was parked rather than started.
        """

        self._frame_generation += 1
        generation = self._frame_generation
        if self._frame_in_flight is not None:
            if self._pending_frame is not None:
                self._dropped_frames += 1
                logger.debug("Dropped stale camera frame %d", self._pending_frame[1])
            self._pending_frame = (frame, generation)
            return None
        return self._start_frame_worker(frame, generation)

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    @property
    def dropped_samples(self) -> int:
        return self._channel.dropped

    def _start_frame_worker(self, frame: Any, generation: int) -> FrameAnalysisWorker:
        worker = FrameAnalysisWorker(
            frame,
            generation=generation,
            metering_mode=self._state.metering_mode,
            spot_point=self._state.spot_point,
        )
        worker.signals.sampleReady.connect(self._on_frame_sample)
        worker.signals.error.connect(self._on_frame_error)
        worker.signals.finished.connect(self._on_frame_finished)
        self._frame_in_flight = worker
        pool = self._thread_pool or QThreadPool.globalInstance()
        pool.start(worker)
        return worker

    def _invalidate_frame_in_flight(self) -> None:
        # The running analysis used the previous mode or spot point.
        if self._frame_in_flight is not None:
            self._applied_generation = max(
                self._applied_generation, self._frame_in_flight.generation
            )

    @Slot(object, int)
    def _on_frame_sample(self, sample: LightSample, generation: int) -> None:
        if generation <= self._applied_generation:
            logger.debug("Ignoring outdated camera frame %d", generation)
            return
        self._applied_generation = generation
        self.submit_sample(sample)

    @Slot(int, str)
    def _on_frame_error(self, generation: int, message: str) -> None:
        logger.error("Camera frame %d could not be metered: %s", generation, message)

    @Slot(int)
    def _on_frame_finished(self, generation: int) -> None:
        if self._frame_in_flight is not None and self._frame_in_flight.generation == generation:
            self._frame_in_flight = None
        if self._frame_in_flight is None and self._pending_frame is not None:
            frame, pending_generation = self._pending_frame
            self._pending_frame = None
            self._start_frame_worker(frame, pending_generation)

    # ------------------------------------------------------------------
    # Light sensor
    # ------------------------------------------------------------------
    def refresh_sensor_availability(self) -> None:
        self._dispatch(IncidentSensorAvailability(self._sensor_available()))
        self._sync_light_sensor()

    def _sync_light_sensor(self) -> None:
        wanted = self._state.is_live_incident and self._state.incident_sensor_available
        if wanted and not self._sensor_running and self._light_sensor is not None:
            logger.info("Starting incident light sensor")
            self._light_sensor.start(self.submit_lux)
            self._sensor_running = True
        elif not wanted and self._sensor_running and self._light_sensor is not None:
            logger.info("Stopping incident light sensor")
            self._light_sensor.stop()
            self._sensor_running = False

    def shutdown(self) -> None:
        """Stop live sources; pending readings are discarded."""

        self._channel.clear()
        self._pending_frame = None
        self._applied_generation = self._frame_generation
        if self._sensor_running and self._light_sensor is not None:
            self._light_sensor.stop()
            self._sensor_running = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _dispatch(self, event: SessionEvent) -> bool:
        previous = self._state
        updated = reduce(previous, event)
        if updated is previous:
            return False
        self._state = updated

        if updated.current_ev != previous.current_ev:
            self.currentEvChanged.emit(updated.current_ev)
        if updated.metering_mode is not previous.metering_mode:
            self.meteringModeChanged.emit(updated.metering_mode)
        if updated.profiles != previous.profiles:
            self.profilesChanged.emit(updated.profiles)
        if updated.result != previous.result:
            self.resultChanged.emit(updated.result)
        if updated.combinations != previous.combinations:
            self.combinationsChanged.emit(updated.combinations)
        if updated.best_overall != previous.best_overall:
            self.bestOverallChanged.emit(updated.best_overall)
        self.stateChanged.emit(updated)
        return True


__all__ = ["LightSensor", "MeteringController"]
