"""Named constants and defaults shared across the exposure meter."""

from __future__ import annotations

# Photometry ---------------------------------------------------------------

REFERENCE_ISO = 100.0
"""ISO at which every EV handled by the metering session is expressed."""

REFLECTED_CALIBRATION = 12.5
"""Calibration constant *K* of a reflected-light meter."""

INCIDENT_CALIBRATION = 250.0
"""Calibration constant *C* of an incident-light meter (lux based)."""

INCIDENT_EV_OFFSET = 9.66
"""Offset aligning ``log2(lux / C)`` with the EV scale."""

DEFAULT_SPOT_RADIUS = 0.05
"""Half-size of the spot window as a fraction of the shorter frame side."""

# Camera profiles ----------------------------------------------------------

DEFAULT_PROFILE_NAME = "Default Camera"
DEFAULT_APERTURES = (1.4, 2.0, 2.8, 4.0, 5.6, 8.0, 11.0, 16.0, 22.0)
DEFAULT_SHUTTER_SPEEDS = (1000, 500, 250, 125, 60, 30, 15, 8, 4, 2, 1)

# Session ------------------------------------------------------------------

DEFAULT_ISO_TEXT = "100"
DEFAULT_MANUAL_EV = 15.0
DEFAULT_SPOT_POINT = (0.5, 0.5)

EV_ADJUSTMENT_MIN = -6
EV_ADJUSTMENT_MAX = 6

NO_READING_EV = 0.0
"""Current EV reported while incident metering has no sensor to read from."""

PERFECT_TOLERANCE = 0.1
"""Stop difference below which an exposure counts as perfect."""

# Manual lighting presets shown in the lighting-condition picker, brightest first.
LIGHTING_PRESETS: tuple[tuple[str, int], ...] = (
    ("Sunny / Snow (EV 16)", 16),
    ("Sunny (EV 15)", 15),
    ("Slight Overcast (EV 14)", 14),
    ("Overcast (EV 13)", 13),
    ("Heavy Overcast (EV 12)", 12),
    ("Open Shade/Sunset (EV 11)", 11),
    ("Dim Indoors (EV 8)", 8),
)

# Persistence --------------------------------------------------------------

SETTINGS_FILE_NAME = "exposure_meter.json"
BACKUP_DIR_NAME = "backups"

KEY_PROFILES = "profiles"
KEY_SELECTED_PROFILE = "selected_profile_id"
KEY_USER_ISO = "user_iso"
KEY_MANUAL_EV = "manual_ev"
KEY_CAMERA_ADJUSTMENT = "camera_ev_adjustment"
KEY_INCIDENT_ADJUSTMENT = "incident_ev_adjustment"
