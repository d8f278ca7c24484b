"""JSON helpers for the settings file with atomic writes and backups."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import SettingsStoreError


def read_json(path: Path) -> dict[str, Any]:
    """Read the JSON object stored at *path*.

    Raises :class:`SettingsStoreError` when the file is missing, unreadable or
    does not hold a JSON object.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise SettingsStoreError(f"Settings file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SettingsStoreError(f"Invalid JSON data in {path}") from exc
    if not isinstance(payload, dict):
        raise SettingsStoreError(f"Expected a JSON object in {path}")
    return payload


def atomic_write_text(path: Path, data: str) -> None:
    """Atomically write *data* into *path*."""

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    # ``Path.replace`` can fail transiently on Windows while another process holds
    # the destination open, so retry a few times before giving up.
    for attempt in range(5):
        try:
            tmp_path.replace(path)
            return
        except PermissionError:
            if attempt == 4:
                tmp_path.unlink(missing_ok=True)
                raise
            time.sleep(0.05 * (attempt + 1))


def _write_backup(path: Path, backup_dir: Path) -> None:
    if not path.exists():
        return
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup_path = backup_dir / f"{path.stem}-{timestamp}{path.suffix}"
    backup_path.write_bytes(path.read_bytes())


def write_json(path: Path, data: dict[str, Any], *, backup_dir: Path | None = None) -> None:
    """Write *data* into *path* atomically, copying the previous file to *backup_dir*."""

    if backup_dir is not None:
        _write_backup(path, backup_dir)
    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
    atomic_write_text(path, payload)
