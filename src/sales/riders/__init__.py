"""Rider directory factory.

Provides get_rider_directory() / set_rider_directory() to swap
implementations; FakeRiderDirectory is the default.
"""

from sales.riders.fake_adapter import FakeRiderDirectory
from sales.riders.port import Rider, RiderDirectory

__all__ = ["Rider", "RiderDirectory", "get_rider_directory", "set_rider_directory", "reset_rider_directory"]

_current_directory: RiderDirectory | None = None


def get_rider_directory() -> RiderDirectory:
    """Return the current rider directory. Defaults to FakeRiderDirectory."""
    global _current_directory
    if _current_directory is None:
        _current_directory = FakeRiderDirectory()
    return _current_directory


def set_rider_directory(directory: RiderDirectory) -> None:
    """Override the active rider directory (useful for tests)."""
    global _current_directory
    _current_directory = directory


def reset_rider_directory() -> None:
    """Reset to default directory."""
    global _current_directory
    _current_directory = None
