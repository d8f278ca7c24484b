from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from exposure_meter.core.sample_channel import LightSample, SampleSource
from exposure_meter.core.session import InputMode, MeteringMode
from exposure_meter.gui.controllers.metering_controller import MeteringController
from exposure_meter.gui.tasks.frame_analysis_worker import FrameAnalysisWorker
from exposure_meter.profiles.store import MemoryProfileStore


def _frame_with_bright_corner() -> np.ndarray:
    frame = np.zeros((20, 20), dtype=np.uint8)
    frame[0:2, 0:2] = 125
    return frame


def _flat_frame(luma: int) -> np.ndarray:
    return np.full((8, 8), luma, dtype=np.uint8)


@pytest.fixture
def pool() -> MagicMock:
    return MagicMock()


@pytest.fixture
def live_controller(pool: MagicMock) -> MeteringController:
    controller = MeteringController(store=MemoryProfileStore(), thread_pool=pool)
    controller.set_input_mode(InputMode.LIVE)
    return controller


def test_average_metering_uses_whole_frame() -> None:
    worker = FrameAnalysisWorker(_flat_frame(125), generation=7)
    samples: list[tuple[LightSample, int]] = []
    finished: list[int] = []
    worker.signals.sampleReady.connect(lambda sample, generation: samples.append((sample, generation)))
    worker.signals.finished.connect(finished.append)

    worker.run()

    assert samples == [(LightSample(SampleSource.CAMERA, 9.0), 7)]
    assert finished == [7]


def test_spot_metering_reads_window_around_point() -> None:
    frame = _frame_with_bright_corner()
    spot = FrameAnalysisWorker(frame, metering_mode=MeteringMode.SPOT, spot_point=(0.0, 0.0))
    average = FrameAnalysisWorker(frame, metering_mode=MeteringMode.AVERAGE)

    assert spot.measure_luma() == pytest.approx(125.0)
    assert average.measure_luma() == pytest.approx(1.25)


def test_controller_feeds_worker_samples_into_session(
    live_controller: MeteringController, pool: MagicMock
) -> None:
    live_controller.set_metering_mode(MeteringMode.SPOT)
    live_controller.set_spot_point(0.0, 0.0)

    worker = live_controller.analyze_frame(_frame_with_bright_corner())

    assert worker is not None
    pool.start.assert_called_once_with(worker)
    worker.run()
    assert live_controller.current_ev() == pytest.approx(9.0)


def test_frames_arriving_while_busy_keep_only_the_newest(
    live_controller: MeteringController, pool: MagicMock
) -> None:
    first = live_controller.analyze_frame(_flat_frame(12))
    assert first is not None

    assert live_controller.analyze_frame(_flat_frame(60)) is None
    assert live_controller.analyze_frame(_flat_frame(125)) is None
    assert pool.start.call_count == 1
    assert live_controller.dropped_frames == 1

    first.run()
    assert live_controller.current_ev() == pytest.approx(6.0)

    # Finishing the busy worker starts the newest parked frame, not the older one.
    assert pool.start.call_count == 2
    latest = pool.start.call_args[0][0]
    assert latest.generation == 3
    latest.run()
    assert live_controller.current_ev() == pytest.approx(9.0)
    assert pool.start.call_count == 2


def test_late_result_from_older_frame_is_ignored(
    live_controller: MeteringController, pool: MagicMock
) -> None:
    first = live_controller.analyze_frame(_flat_frame(12))
    assert first is not None
    live_controller.analyze_frame(_flat_frame(125))
    first.run()
    latest = pool.start.call_args[0][0]
    latest.run()
    assert live_controller.current_ev() == pytest.approx(9.0)

    first.signals.sampleReady.emit(LightSample(SampleSource.CAMERA, 6.0), first.generation)

    assert live_controller.current_ev() == pytest.approx(9.0)


def test_result_computed_before_spot_point_moved_is_discarded(
    live_controller: MeteringController,
) -> None:
    live_controller.set_metering_mode(MeteringMode.SPOT)
    worker = live_controller.analyze_frame(_frame_with_bright_corner())
    assert worker is not None

    live_controller.set_spot_point(0.9, 0.9)
    worker.run()
    assert live_controller.current_ev() == pytest.approx(15.0)

    follow_up = live_controller.analyze_frame(_frame_with_bright_corner())
    assert follow_up is not None
    follow_up.run()
    assert live_controller.current_ev() == pytest.approx(0.0)
