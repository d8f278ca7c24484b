"""Persistence contract for camera profiles and metering preferences."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable

from ..config import BACKUP_DIR_NAME, KEY_PROFILES, SETTINGS_FILE_NAME
from ..core.profile import CameraProfile, default_profile
from ..errors import SettingsStoreError
from ..utils.jsonio import read_json, write_json
from ..utils.logging import get_logger

logger = get_logger("profiles")


@runtime_checkable
class ProfileStore(Protocol):
    """Key-value store the metering session reads from and writes to."""

    def load_profiles(self) -> list[CameraProfile]:
        ...

    def save_profiles(self, profiles: Iterable[CameraProfile]) -> None:
        ...

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


def _decode_profiles(records: Any) -> list[CameraProfile]:
    if not isinstance(records, list):
        return []
    profiles: list[CameraProfile] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        profile = CameraProfile.from_dict(record)
        if profile.name and profile.is_usable:
            profiles.append(profile)
        else:
            logger.warning("Skipping unusable stored profile %r", record.get("name"))
    return profiles


class MemoryProfileStore:
    """Store keeping everything in a dictionary; handy for tests and previews."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def load_profiles(self) -> list[CameraProfile]:
        return _decode_profiles(self._values.get(KEY_PROFILES))

    def save_profiles(self, profiles: Iterable[CameraProfile]) -> None:
        self._values[KEY_PROFILES] = [profile.to_dict() for profile in profiles]

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonProfileStore:
    """Store backed by a single JSON settings file.

    The file is read once, lazily, and every change rewrites it atomically.
    A missing or malformed file is logged and treated as empty so the session
    can still start with the default profile.
    """

    def __init__(self, path: Path, *, keep_backups: bool = False) -> None:
        self._path = Path(path)
        self._backup_dir = self._path.parent / BACKUP_DIR_NAME if keep_backups else None
        self._lock = threading.Lock()
        self._values: dict[str, Any] | None = None

    @classmethod
    def in_directory(cls, directory: Path, **kwargs: Any) -> "JsonProfileStore":
        return cls(Path(directory) / SETTINGS_FILE_NAME, **kwargs)

    @property
    def path(self) -> Path:
        return self._path

    def _data(self) -> dict[str, Any]:
        if self._values is None:
            if not self._path.exists():
                self._values = {}
            else:
                try:
                    self._values = read_json(self._path)
                except SettingsStoreError as exc:
                    logger.error("Ignoring unreadable settings file: %s", exc)
                    self._values = {}
        return self._values

    def _flush(self) -> None:
        write_json(self._path, dict(self._data()), backup_dir=self._backup_dir)

    def load_profiles(self) -> list[CameraProfile]:
        with self._lock:
            return _decode_profiles(self._data().get(KEY_PROFILES))

    def save_profiles(self, profiles: Iterable[CameraProfile]) -> None:
        with self._lock:
            self._data()[KEY_PROFILES] = [profile.to_dict() for profile in profiles]
            self._flush()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._data()
            if key in data and data[key] == value:
                return
            data[key] = value
            self._flush()


def load_or_seed_profiles(store: ProfileStore) -> list[CameraProfile]:
    """Return the stored profiles, seeding and saving the default one when none exist."""

    profiles = store.load_profiles()
    if profiles:
        return profiles
    seeded = default_profile()
    logger.info("No camera profiles stored; seeding %r", seeded.name)
    store.save_profiles([seeded])
    return [seeded]


__all__ = [
    "JsonProfileStore",
    "MemoryProfileStore",
    "ProfileStore",
    "load_or_seed_profiles",
]
