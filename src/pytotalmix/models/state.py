"""Cached device state.

The manager's state is a tagged variant: either :class:`Uninitialized`, which
carries whatever partial fields have arrived so far, or a complete
:class:`~pytotalmix.models.snapshot.DeviceSnapshot`.  Partial readings are
merged through :func:`merge_reading`, which promotes the state to a snapshot as
soon as all three fields are known.
"""

from __future__ import annotations

from dataclasses import dataclass

from pytotalmix.models.snapshot import DeviceSnapshot


@dataclass(frozen=True, slots=True)
class Uninitialized:
    """Device state is not (fully) known.

    Fields hold values reported since the last reset.  They are never exposed
    to callers on their own.
    """

    volume: float | None = None
    volume_decibels: str | None = None
    dim: float | None = None


@dataclass(frozen=True, slots=True)
class Reading:
    """Fields extracted from one bundle; ``None`` means "not reported"."""

    volume: float | None = None
    volume_decibels: str | None = None
    dim: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.volume is None and self.volume_decibels is None and self.dim is None


DeviceState = Uninitialized | DeviceSnapshot


def merge_reading(state: DeviceState, reading: Reading) -> DeviceState:
    """Apply a reading on top of the current state.

    Fields missing from ``reading`` keep their cached value.
    """
    if reading.is_empty:
        return state

    if isinstance(state, DeviceSnapshot):
        return state.model_copy(
            update={
                "volume": state.volume if reading.volume is None else reading.volume,
                "volume_decibels": (
                    state.volume_decibels if reading.volume_decibels is None else reading.volume_decibels
                ),
                "is_dimmed": state.is_dimmed if reading.dim is None else reading.dim == 1.0,
            }
        )

    volume = state.volume if reading.volume is None else reading.volume
    volume_decibels = state.volume_decibels if reading.volume_decibels is None else reading.volume_decibels
    dim = state.dim if reading.dim is None else reading.dim

    if volume is None or volume_decibels is None or dim is None:
        return Uninitialized(volume=volume, volume_decibels=volume_decibels, dim=dim)
    return DeviceSnapshot(volume=volume, volume_decibels=volume_decibels, is_dimmed=dim == 1.0)
