"""Worker that meters camera frames on a background thread."""

from __future__ import annotations

import logging
from typing import Any, Tuple

from PySide6.QtCore import QObject, QRunnable, Signal

from ...config import DEFAULT_SPOT_POINT, DEFAULT_SPOT_RADIUS, REFERENCE_ISO
from ...core.photometry import average_luminance, luminance_to_ev, spot_luminance
from ...core.sample_channel import LightSample, SampleSource
from ...core.session import MeteringMode

_LOGGER = logging.getLogger(__name__)


class FrameAnalysisSignals(QObject):
    """Signals emitted by :class:`FrameAnalysisWorker`."""

    sampleReady = Signal(object, int)
    """Delivered with the :class:`LightSample` computed for the frame and its generation."""

    error = Signal(int, str)
    """Emitted if an unexpected exception aborts the analysis."""

    finished = Signal(int)
    """Emitted once the worker has completed, even on failure."""

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)


class FrameAnalysisWorker(QRunnable):
    """Turn a preview frame into a camera :class:`LightSample`.

    ``SPOT`` metering averages a small window around the tapped point; every
    other mode averages the whole frame.  The luma is converted at the
    reference ISO so the sample is an ISO 100 scene EV.  Results carry the
    *generation* the frame was submitted with so receivers can discard
    readings that were overtaken by newer frames.
    """

    def __init__(
        self,
        frame: Any,
        *,
        generation: int = 0,
        metering_mode: MeteringMode = MeteringMode.AVERAGE,
        spot_point: Tuple[float, float] = DEFAULT_SPOT_POINT,
        spot_radius: float = DEFAULT_SPOT_RADIUS,
    ) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._frame = frame
        self._generation = int(generation)
        self._metering_mode = metering_mode
        self._spot_point = spot_point
        self._spot_radius = spot_radius
        self.signals = FrameAnalysisSignals()

    @property
    def generation(self) -> int:
        return self._generation

    def measure_luma(self) -> float:
        if self._metering_mode is MeteringMode.SPOT:
            return spot_luminance(self._frame, self._spot_point, radius=self._spot_radius)
        return average_luminance(self._frame)

    def run(self) -> None:  # type: ignore[override]
        """Compute the frame EV and notify listeners."""

        try:
            luma = self.measure_luma()
            ev = luminance_to_ev(luma, REFERENCE_ISO)
            sample = LightSample(SampleSource.CAMERA, float(ev))
            self.signals.sampleReady.emit(sample, self._generation)
        except Exception as exc:  # pragma: no cover - defensive logging path
            _LOGGER.exception("Failed to meter camera frame")
            self.signals.error.emit(self._generation, str(exc))
        finally:
            self.signals.finished.emit(self._generation)


__all__ = ["FrameAnalysisSignals", "FrameAnalysisWorker"]
