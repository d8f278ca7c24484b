"""Qt-side drivers for the exposure meter core."""
