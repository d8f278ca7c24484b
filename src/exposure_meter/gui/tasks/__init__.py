"""Background worker helpers for live metering."""

from .frame_analysis_worker import FrameAnalysisSignals, FrameAnalysisWorker

__all__ = ["FrameAnalysisSignals", "FrameAnalysisWorker"]
