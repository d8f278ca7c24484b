"""Convert raw light measurements into exposure values.

Every converter here is a pure function.  Invalid readings (non-positive
luminance, lux, ISO or exposure time) produce an EV of zero rather than
raising so a flaky sensor never interrupts live metering.
"""

from __future__ import annotations

import math
from typing import Any, Tuple

import numpy as np
from PIL import Image

from ..config import (
    DEFAULT_SPOT_RADIUS,
    INCIDENT_CALIBRATION,
    INCIDENT_EV_OFFSET,
    REFERENCE_ISO,
    REFLECTED_CALIBRATION,
)

NANOS_PER_SECOND = 1_000_000_000


def luminance_to_ev(
    luma: float,
    iso: float,
    *,
    calibration: float = REFLECTED_CALIBRATION,
) -> int:
    """Return the integer EV for an average 8-bit *luma* reading at *iso*.

    ``ev100 = log2(luma * 100 / K)`` relates luminance to EV at ISO 100, the
    result is shifted by ``log2(iso / 100)`` and truncated toward zero.
    """

    if luma <= 0 or iso <= 0 or calibration <= 0:
        return 0
    ev100 = math.log2(luma * 100.0 / calibration)
    ev = ev100 - math.log2(iso / REFERENCE_ISO)
    return int(ev)


def lux_to_ev(
    lux: float,
    iso: float | None = None,
    *,
    calibration: float = INCIDENT_CALIBRATION,
    offset: float = INCIDENT_EV_OFFSET,
) -> float:
    """Return the incident-light EV for an illuminance of *lux*.

    *iso* is accepted for symmetry with :func:`luminance_to_ev` but ignored:
    the result is an ISO 100 scene EV and film speed is folded in by the
    exposure resolver.
    """

    del iso
    if lux <= 0 or calibration <= 0:
        return 0.0
    return math.log2(lux / calibration) + offset


def sensor_to_ev(sensor_iso: int, exposure_time_nanos: int) -> float:
    """Return the EV100 implied by a camera sensor's auto-exposure decision."""

    if sensor_iso <= 0 or exposure_time_nanos <= 0:
        return 0.0
    exposure_seconds = exposure_time_nanos / NANOS_PER_SECOND
    return math.log2(100.0 / (exposure_seconds * sensor_iso))


# ---------------------------------------------------------------------------
# Frame analysis
# ---------------------------------------------------------------------------


def _as_luma_array(frame: Any) -> np.ndarray:
    """Return *frame* as a float32 luma array.

    Accepted inputs are Pillow images, raw bytes holding one luma byte per
    pixel (the Y plane of a YUV frame) and numpy arrays.  Colour arrays are
    reduced with Rec. 601 weights, which is what Pillow's ``"L"`` mode uses.
    """

    if isinstance(frame, Image.Image):
        return np.asarray(frame.convert("L"), dtype=np.float32)
    if isinstance(frame, (bytes, bytearray, memoryview)):
        return np.frombuffer(frame, dtype=np.uint8).astype(np.float32)
    array = np.asarray(frame)
    if array.ndim == 3 and array.shape[2] >= 3:
        rgb = array[..., :3].astype(np.float32)
        return rgb @ np.array([0.299, 0.587, 0.114], dtype=np.float32)
    if array.ndim == 3:
        return array[..., 0].astype(np.float32)
    return array.astype(np.float32)


def average_luminance(frame: Any) -> float:
    """Return the mean luma (0-255) of *frame*; empty frames yield ``0.0``."""

    luma = _as_luma_array(frame)
    if luma.size == 0:
        return 0.0
    return float(luma.mean())


def spot_luminance(
    frame: Any,
    point: Tuple[float, float],
    *,
    radius: float = DEFAULT_SPOT_RADIUS,
) -> float:
    """Return the mean luma of a square window centred on the normalised *point*.

    The window half-size is *radius* times the shorter side of the frame and
    always covers at least one pixel.  One-dimensional buffers have no
    geometry, so they fall back to :func:`average_luminance`.
    """

    luma = _as_luma_array(frame)
    if luma.size == 0:
        return 0.0
    if luma.ndim != 2:
        return float(luma.mean())

    height, width = luma.shape
    x = min(max(float(point[0]), 0.0), 1.0)
    y = min(max(float(point[1]), 0.0), 1.0)
    centre_col = min(int(x * width), width - 1)
    centre_row = min(int(y * height), height - 1)
    half = max(int(round(min(width, height) * max(radius, 0.0))), 0)

    window = luma[
        max(centre_row - half, 0) : centre_row + half + 1,
        max(centre_col - half, 0) : centre_col + half + 1,
    ]
    return float(window.mean())


__all__ = [
    "NANOS_PER_SECOND",
    "average_luminance",
    "luminance_to_ev",
    "lux_to_ev",
    "sensor_to_ev",
    "spot_luminance",
]
