"""Exposure meter: resolve light readings into a camera's discrete settings."""

__version__ = "0.1.0"
