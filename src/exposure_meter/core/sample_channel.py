"""Single-slot channel carrying the most recent live light reading."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SampleSource(Enum):
    """Where a live reading came from."""

    CAMERA = "camera"
    INCIDENT = "incident"


@dataclass(frozen=True)
class LightSample:
    """An ISO 100 EV reading produced by a live photometric source."""

    source: SampleSource
    ev: float


class LatestSampleChannel:
    """Bounded channel of capacity one that overwrites on full.

    Producers on any thread call :meth:`offer`; the consumer calls
    :meth:`take` and only ever sees the newest reading.  Older readings that
    were never taken are dropped and counted in :attr:`dropped`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Optional[LightSample] = None
        self._dropped = 0

    def offer(self, sample: LightSample) -> bool:
        """Store *sample* and return ``True`` when it replaced an untaken one."""

        with self._lock:
            replaced = self._pending is not None
            if replaced:
                self._dropped += 1
            self._pending = sample
            return replaced

    def take(self) -> Optional[LightSample]:
        """Return and clear the pending sample, if any."""

        with self._lock:
            sample, self._pending = self._pending, None
            return sample

    def clear(self) -> None:
        with self._lock:
            self._pending = None

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return 0 if self._pending is None else 1


__all__ = ["LatestSampleChannel", "LightSample", "SampleSource"]
