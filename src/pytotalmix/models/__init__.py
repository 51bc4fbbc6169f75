"""Data models for pytotalmix."""

from pytotalmix.models.snapshot import DeviceSnapshot
from pytotalmix.models.state import DeviceState, Reading, Uninitialized, merge_reading

__all__ = [
    "DeviceSnapshot",
    "DeviceState",
    "Reading",
    "Uninitialized",
    "merge_reading",
]
