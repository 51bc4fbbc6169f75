from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from pytotalmix._constants import DIM_ADDRESS, VOLUME_ADDRESS, VOLUME_DECIBELS_ADDRESS
from pytotalmix._osc import build_bundle, build_message
from pytotalmix.config import TotalMixConfig
from pytotalmix.exceptions import TotalMixTransportError
from pytotalmix.manager import VolumeManager
from pytotalmix.models import DeviceSnapshot
from pytotalmix.monitor import ConnectionStatus, VolumeMonitor


def _full_bundle():
    return build_bundle(
        build_message(DIM_ADDRESS, 0.0),
        build_message(VOLUME_ADDRESS, 0.4),
        build_message(VOLUME_DECIBELS_ADDRESS, "-20.3 dB"),
    )


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_monitor_requests_state_and_reports_updates(sender, listener) -> None:
    manager = VolumeManager(TotalMixConfig(), sender=sender, listener=listener)
    updates: list[tuple[DeviceSnapshot, bool]] = []
    statuses: list[ConnectionStatus] = []
    listener.push(_full_bundle(), build_bundle(build_message(VOLUME_DECIBELS_ADDRESS, "-20.0 dB")))

    async with VolumeMonitor(
        manager,
        on_update=lambda snapshot, before: updates.append((snapshot, before)),
        on_status=statuses.append,
        receive_timeout=1.0,
        request_interval=0.01,
    ) as monitor:
        await _wait_until(lambda: len(updates) == 2)
        assert monitor.status is ConnectionStatus.CONNECTED

    assert sender.sent[:2] == [(VOLUME_ADDRESS, [-1.0]), (DIM_ADDRESS, [-1.0])]
    assert [before for _, before in updates] == [False, True]
    assert updates[1][0].volume_decibels == "-20.0 dB"
    assert statuses == [ConnectionStatus.CONNECTED]
    assert not monitor.is_running


@pytest.mark.asyncio
async def test_monitor_reports_unreachable_on_silence(sender, listener) -> None:
    manager = VolumeManager(TotalMixConfig(), sender=sender, listener=listener)
    statuses: list[ConnectionStatus] = []

    async with VolumeMonitor(manager, on_status=statuses.append, receive_timeout=0.01, request_interval=0.01):
        await _wait_until(lambda: ConnectionStatus.UNREACHABLE in statuses)

    # Requests keep going out while the device is silent.
    assert len(sender.sent) >= 2


@pytest.mark.asyncio
async def test_monitor_reports_listener_error_and_recovers(sender, listener) -> None:
    manager = VolumeManager(TotalMixConfig(), sender=sender, listener=listener)
    statuses: list[ConnectionStatus] = []
    listener.push(TotalMixTransportError("socket closed"), _full_bundle())

    async with VolumeMonitor(manager, on_status=statuses.append, receive_timeout=1.0, request_interval=0.01):
        await _wait_until(lambda: ConnectionStatus.CONNECTED in statuses)

    assert statuses == [ConnectionStatus.LISTENER_ERROR, ConnectionStatus.CONNECTED]
    assert await manager.is_volume_initialized()


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_monitor(sender, listener) -> None:
    manager = VolumeManager(TotalMixConfig(), sender=sender, listener=listener)
    seen: list[DeviceSnapshot] = []

    def on_update(snapshot: DeviceSnapshot, _before: bool) -> None:
        seen.append(snapshot)
        raise RuntimeError("display went away")

    listener.push(_full_bundle(), _full_bundle())

    async with VolumeMonitor(manager, on_update=on_update, request_interval=0.01) as monitor:
        await _wait_until(lambda: len(seen) == 2)
        assert monitor.is_running


@pytest.mark.asyncio
async def test_stop_ends_pending_receive(sender, listener) -> None:
    manager = VolumeManager(TotalMixConfig(), sender=sender, listener=listener)
    monitor = VolumeMonitor(manager, receive_timeout=5.0, request_interval=5.0)

    monitor.start()
    await _wait_until(lambda: listener.calls == 1)
    await monitor.stop()

    assert not monitor.is_running
    assert monitor.status is ConnectionStatus.CONNECTING
