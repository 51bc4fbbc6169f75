"""Custom exception hierarchy for pytotalmix."""

from __future__ import annotations


class TotalMixError(Exception):
    """Base exception for all pytotalmix errors."""


class TotalMixConfigError(TotalMixError):
    """Invalid or missing configuration."""


class MalformedPacketError(TotalMixError):
    """A datagram could not be decoded as an OSC packet.

    TotalMix may leave a partial datagram behind when it goes offline
    mid-transmission.  :class:`~pytotalmix.manager.VolumeManager` recovers
    from this locally and never surfaces it.
    """

    def __init__(self, message: str, *, data: bytes = b"") -> None:
        self.data = data
        super().__init__(message)


class ArgumentTypeMismatchError(TotalMixError):
    """An OSC message carried an argument of an unexpected type."""

    def __init__(self, message: str, *, address: str = "") -> None:
        self.address = address
        super().__init__(message)


class TotalMixTransportError(TotalMixError):
    """Socket-level failure while talking to the device."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class TotalMixTimeoutError(TotalMixTransportError, TimeoutError):
    """No packet arrived from the device within the receive deadline.

    The device is treated as unreachable; cached state is discarded.
    """


class TotalMixCancelledError(TotalMixError):
    """A pending receive was abandoned at the caller's request."""
