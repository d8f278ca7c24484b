"""Exception hierarchy for the exposure meter."""

from __future__ import annotations


class ExposureMeterError(Exception):
    """Base class for errors raised by the exposure meter."""


class ProfileValidationError(ExposureMeterError, ValueError):
    """Raised when user supplied camera profile input cannot be accepted."""


class SettingsStoreError(ExposureMeterError):
    """Raised when the persisted settings file cannot be read."""


__all__ = [
    "ExposureMeterError",
    "ProfileValidationError",
    "SettingsStoreError",
]
