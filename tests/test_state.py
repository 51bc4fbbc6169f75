from __future__ import annotations

import pytest
from pydantic import ValidationError

from pytotalmix.models import DeviceSnapshot, Reading, Uninitialized, merge_reading


def test_partial_readings_accumulate_until_complete() -> None:
    state = merge_reading(Uninitialized(), Reading(volume=0.4))
    assert state == Uninitialized(volume=0.4)

    state = merge_reading(state, Reading(dim=0.0))
    assert isinstance(state, Uninitialized)

    state = merge_reading(state, Reading(volume_decibels="-14.0 dB"))
    assert state == DeviceSnapshot(volume=0.4, volume_decibels="-14.0 dB", is_dimmed=False)


def test_dim_flag_is_set_only_by_exactly_one() -> None:
    on = merge_reading(Uninitialized(), Reading(volume=0.1, volume_decibels="x", dim=1.0))
    half = merge_reading(Uninitialized(), Reading(volume=0.1, volume_decibels="x", dim=0.5))

    assert isinstance(on, DeviceSnapshot) and on.is_dimmed
    assert isinstance(half, DeviceSnapshot) and not half.is_dimmed


def test_known_state_updates_only_reported_fields() -> None:
    snapshot = DeviceSnapshot(volume=0.3, volume_decibels="-30.0 dB", is_dimmed=True)

    updated = merge_reading(snapshot, Reading(volume_decibels="-29.5 dB"))

    assert updated == DeviceSnapshot(volume=0.3, volume_decibels="-29.5 dB", is_dimmed=True)


def test_empty_reading_keeps_state() -> None:
    state = Uninitialized(volume=0.5)
    assert merge_reading(state, Reading()) is state
    assert Reading().is_empty


def test_snapshot_is_frozen_and_validated() -> None:
    snapshot = DeviceSnapshot(volume=0.3, volume_decibels="-30.0 dB", is_dimmed=False)

    with pytest.raises(ValidationError):
        snapshot.volume = 0.5  # type: ignore[misc]
    with pytest.raises(ValidationError):
        DeviceSnapshot(volume=1.5, volume_decibels="", is_dimmed=False)
