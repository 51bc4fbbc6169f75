"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# TotalMix OSC addresses (case-sensitive)
# ------------------------------------------------------------------

VOLUME_ADDRESS = "/1/mastervolume"
"""Main volume as a float fraction (0.0-1.0). Sent and received."""

VOLUME_DECIBELS_ADDRESS = "/1/mastervolumeVal"
"""Main volume as device-formatted text (e.g. ``"-38.2 dB"``). Received only."""

DIM_ADDRESS = "/1/mainDim"
"""Dim state. Receiving 0.0/1.0 reports the state; sending 1.0 toggles it."""

VOLUME_ADDRESSES: frozenset[str] = frozenset({VOLUME_ADDRESS, VOLUME_DECIBELS_ADDRESS, DIM_ADDRESS})

# Out-of-range value that makes TotalMix echo its current volume and dim state.
REQUEST_SENTINEL = -1.0

# TotalMix toggles dim whenever it receives 1.0, whatever the current state.
DIM_TOGGLE_VALUE = 1.0

# ------------------------------------------------------------------
# Defaults matching the TotalMix FX OSC settings
# ------------------------------------------------------------------

DEFAULT_HOST = "127.0.0.1"
DEFAULT_OUTGOING_PORT = 7001
DEFAULT_INCOMING_PORT = 9001

# TotalMix sends a keepalive bundle roughly every 1-2 seconds, so a 3 second
# receive window is enough to tell a silent device from an unreachable one.
DEFAULT_RECEIVE_TIMEOUT = 3.0
DEFAULT_REQUEST_INTERVAL = 1.0

# Datagrams buffered by the listener before the oldest are dropped.
DEFAULT_LISTENER_QUEUE_SIZE = 64
