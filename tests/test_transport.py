from __future__ import annotations

import asyncio
import socket

import pytest
from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_message import OscMessage

from pytotalmix._constants import DIM_ADDRESS, VOLUME_ADDRESS, VOLUME_DECIBELS_ADDRESS
from pytotalmix._osc import build_bundle, build_message
from pytotalmix._transport import UdpListener, UdpSender
from pytotalmix.config import TotalMixConfig
from pytotalmix.exceptions import MalformedPacketError, TotalMixCancelledError, TotalMixTransportError
from pytotalmix.manager import VolumeManager


def _send_raw(address: tuple[str, int], data: bytes) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.sendto(data, address)


@pytest.mark.asyncio
async def test_sender_to_listener_round_trip() -> None:
    async with UdpListener("127.0.0.1", 0) as listener:
        address = listener.local_address
        assert address is not None

        async with UdpSender(*address) as sender:
            sent = await sender.send(build_message(DIM_ADDRESS, 1.0))
            packet = await asyncio.wait_for(listener.receive(), 2.0)

    assert sent > 0
    assert isinstance(packet, OscMessage)
    assert packet.address == DIM_ADDRESS
    assert packet.params == [1.0]


@pytest.mark.asyncio
async def test_listener_decodes_bundles_and_flags_garbage() -> None:
    async with UdpListener("127.0.0.1", 0) as listener:
        address = listener.local_address
        assert address is not None

        _send_raw(address, build_bundle(build_message(VOLUME_ADDRESS, 0.5)).dgram)
        _send_raw(address, b"\x00\x01garbage")

        packet = await asyncio.wait_for(listener.receive(), 2.0)
        with pytest.raises(MalformedPacketError):
            await asyncio.wait_for(listener.receive(), 2.0)

    assert isinstance(packet, OscBundle)


@pytest.mark.asyncio
async def test_receive_requires_open_listener() -> None:
    listener = UdpListener("127.0.0.1", 0)

    with pytest.raises(TotalMixTransportError, match="not open"):
        await listener.receive()


@pytest.mark.asyncio
async def test_cancelled_receive_leaves_datagrams_buffered() -> None:
    async with UdpListener("127.0.0.1", 0) as listener:
        address = listener.local_address
        assert address is not None

        cancel = asyncio.Event()
        pending = asyncio.create_task(listener.receive(cancel))
        await asyncio.sleep(0.01)
        cancel.set()
        with pytest.raises(TotalMixCancelledError):
            await pending

        _send_raw(address, build_message(DIM_ADDRESS, 0.0).dgram)
        packet = await asyncio.wait_for(listener.receive(asyncio.Event()), 2.0)

    assert isinstance(packet, OscMessage)
    assert packet.address == DIM_ADDRESS


@pytest.mark.asyncio
async def test_listener_bind_failure_is_transport_error() -> None:
    async with UdpListener("127.0.0.1", 0) as first:
        address = first.local_address
        assert address is not None

        with pytest.raises(TotalMixTransportError):
            await UdpListener(*address).open()


@pytest.mark.asyncio
async def test_manager_over_loopback() -> None:
    async with UdpListener("127.0.0.1", 0) as device, UdpListener("127.0.0.1", 0) as incoming:
        device_address = device.local_address
        incoming_address = incoming.local_address
        assert device_address is not None and incoming_address is not None

        async with UdpSender(*device_address) as sender:
            manager = VolumeManager(TotalMixConfig(receive_timeout=2.0), sender=sender, listener=incoming)

            await manager.request_volume()
            requests = [await asyncio.wait_for(device.receive(), 2.0) for _ in range(2)]
            assert [(m.address, m.params) for m in requests] == [(VOLUME_ADDRESS, [-1.0]), (DIM_ADDRESS, [-1.0])]

            _send_raw(
                incoming_address,
                build_bundle(
                    build_message(DIM_ADDRESS, 0.0),
                    build_message(VOLUME_ADDRESS, 0.25),
                    build_message(VOLUME_DECIBELS_ADDRESS, "-33.7 dB"),
                ).dgram,
            )
            snapshot = await manager.receive_volume()
            assert snapshot is not None
            assert snapshot.volume_decibels == "-33.7 dB"

            assert await manager.toggle_dim() is True
            echoed = await asyncio.wait_for(device.receive(), 2.0)

    assert isinstance(echoed, OscMessage)
    assert (echoed.address, echoed.params) == (DIM_ADDRESS, [1.0])
