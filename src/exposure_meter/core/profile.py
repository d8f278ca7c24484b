"""Camera profiles describing the discrete apertures and shutter speeds of a body."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from ..config import DEFAULT_APERTURES, DEFAULT_PROFILE_NAME, DEFAULT_SHUTTER_SPEEDS
from ..errors import ProfileValidationError


def new_profile_id() -> str:
    """Return a fresh, collision-resistant profile identifier."""

    return uuid.uuid4().hex


@dataclass(frozen=True)
class CameraProfile:
    """A named camera with its aperture and shutter-speed sets.

    ``apertures`` holds f-numbers in ascending order and ``shutter_speeds``
    holds shutter denominators (``1000`` meaning 1/1000 s) fastest first.  The
    order is a storage convention only; the resolver always scans whole sets.
    """

    name: str
    apertures: tuple[float, ...]
    shutter_speeds: tuple[int, ...]
    id: str = field(default_factory=new_profile_id)

    @property
    def is_usable(self) -> bool:
        return bool(self.apertures) and bool(self.shutter_speeds)

    def with_settings(
        self,
        name: str,
        apertures: Iterable[float],
        shutter_speeds: Iterable[int],
    ) -> "CameraProfile":
        """Return a copy renamed to *name* with both sets replaced."""

        return replace(
            self,
            name=name,
            apertures=tuple(sorted(apertures)),
            shutter_speeds=tuple(sorted(shutter_speeds, reverse=True)),
        )

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "apertures": list(self.apertures),
            "shutterSpeeds": list(self.shutter_speeds),
        }

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "CameraProfile":
        """Build a profile from a stored record.

        Unparsable set members are skipped.  A record without a usable ``id``
        receives a new one so stored data never produces duplicate keys.
        """

        name = str(record.get("name") or "").strip()
        apertures = tuple(sorted(_positive_floats(record.get("apertures") or ())))
        shutters = tuple(
            sorted(_positive_ints(record.get("shutterSpeeds") or ()), reverse=True)
        )
        profile_id = record.get("id")
        if not isinstance(profile_id, str) or not profile_id:
            profile_id = new_profile_id()
        return cls(name=name, apertures=apertures, shutter_speeds=shutters, id=profile_id)


def _positive_floats(values: Iterable[Any]) -> list[float]:
    result: list[float] = []
    for value in values:
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number) and number > 0:
            result.append(number)
    return result


def _positive_ints(values: Iterable[Any]) -> list[int]:
    result: list[int] = []
    for value in values:
        if isinstance(value, float):
            if not value.is_integer():
                continue
            value = int(value)
        try:
            number = int(value)
        except (TypeError, ValueError):
            continue
        if number > 0:
            result.append(number)
    return result


def parse_apertures(text: str) -> tuple[float, ...]:
    """Return the positive f-numbers listed in comma separated *text*, ascending."""

    tokens = (token.strip() for token in (text or "").split(","))
    return tuple(sorted(_positive_floats(token for token in tokens if token)))


def parse_shutter_speeds(text: str) -> tuple[int, ...]:
    """Return the positive denominators listed in comma separated *text*, fastest first.

    Tokens must be plain integers; ``"1/125"`` or ``"2.5"`` are skipped.
    """

    values: list[int] = []
    for token in (text or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            number = int(token)
        except ValueError:
            continue
        if number > 0:
            values.append(number)
    return tuple(sorted(values, reverse=True))


def validate_profile_input(
    name: str, apertures_text: str, shutters_text: str
) -> tuple[str, tuple[float, ...], tuple[int, ...]]:
    """Return the cleaned ``(name, apertures, shutter_speeds)`` triple.

    Raises :class:`ProfileValidationError` when the name is blank or either set
    does not contain at least one valid value.
    """

    cleaned_name = (name or "").strip()
    if not cleaned_name:
        raise ProfileValidationError("Profile name must not be blank")
    apertures = parse_apertures(apertures_text)
    if not apertures:
        raise ProfileValidationError(
            f"No positive aperture values in {apertures_text!r}"
        )
    shutters = parse_shutter_speeds(shutters_text)
    if not shutters:
        raise ProfileValidationError(
            f"No positive shutter denominators in {shutters_text!r}"
        )
    return cleaned_name, apertures, shutters


def build_profile(
    name: str,
    apertures_text: str,
    shutters_text: str,
    *,
    profile_id: str | None = None,
) -> CameraProfile:
    """Validate user input and return a new :class:`CameraProfile`."""

    cleaned_name, apertures, shutters = validate_profile_input(
        name, apertures_text, shutters_text
    )
    return CameraProfile(
        name=cleaned_name,
        apertures=apertures,
        shutter_speeds=shutters,
        id=profile_id or new_profile_id(),
    )


def default_profile() -> CameraProfile:
    """Return the built-in profile seeded on first run."""

    return CameraProfile(
        name=DEFAULT_PROFILE_NAME,
        apertures=DEFAULT_APERTURES,
        shutter_speeds=DEFAULT_SHUTTER_SPEEDS,
    )


__all__ = [
    "CameraProfile",
    "build_profile",
    "default_profile",
    "new_profile_id",
    "parse_apertures",
    "parse_shutter_speeds",
    "validate_profile_input",
]
