"""pytotalmix - Async Python client for RME TotalMix FX volume control over OSC."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytotalmix")
except PackageNotFoundError:
    __version__ = "0+local"
from pytotalmix.config import TotalMixConfig, VolumeSettings
from pytotalmix.exceptions import (
    ArgumentTypeMismatchError,
    MalformedPacketError,
    TotalMixCancelledError,
    TotalMixConfigError,
    TotalMixError,
    TotalMixTimeoutError,
    TotalMixTransportError,
)
from pytotalmix.fader import decibels_to_value, value_to_decibels
from pytotalmix.manager import VolumeManager
from pytotalmix.models import DeviceSnapshot
from pytotalmix.monitor import ConnectionStatus, VolumeMonitor

__all__ = [
    "__version__",
    "ArgumentTypeMismatchError",
    "ConnectionStatus",
    "DeviceSnapshot",
    "MalformedPacketError",
    "TotalMixCancelledError",
    "TotalMixConfig",
    "TotalMixConfigError",
    "TotalMixError",
    "TotalMixTimeoutError",
    "TotalMixTransportError",
    "VolumeManager",
    "VolumeMonitor",
    "VolumeSettings",
    "decibels_to_value",
    "value_to_decibels",
]
