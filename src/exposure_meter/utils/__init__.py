"""Shared helpers for logging and JSON persistence."""
