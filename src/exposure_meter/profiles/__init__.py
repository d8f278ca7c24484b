"""Camera profile persistence."""

from .store import JsonProfileStore, MemoryProfileStore, ProfileStore, load_or_seed_profiles

__all__ = [
    "JsonProfileStore",
    "MemoryProfileStore",
    "ProfileStore",
    "load_or_seed_profiles",
]
