"""UDP transport for OSC traffic with TotalMix."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, cast

from pythonosc.osc_message import OscMessage

from pytotalmix._constants import DEFAULT_LISTENER_QUEUE_SIZE
from pytotalmix._osc import OscPacket, decode_packet
from pytotalmix.exceptions import TotalMixCancelledError, TotalMixTransportError

_logger = logging.getLogger(__name__)


class Sender(Protocol):
    """Structural sender interface used by :class:`~pytotalmix.manager.VolumeManager`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (:class:`UdpSender`) concrete.
    """

    async def send(self, message: OscMessage) -> int:
        ...


class Listener(Protocol):
    """Structural listener interface used by :class:`~pytotalmix.manager.VolumeManager`."""

    async def receive(self, cancel: asyncio.Event | None = None) -> OscPacket:
        ...


def _format_endpoint(host: str, port: int) -> str:
    return f"{host}:{port}"


class _SenderProtocol(asyncio.DatagramProtocol):
    def __init__(self, endpoint: str) -> None:
        self._endpoint = endpoint

    def error_received(self, exc: Exception) -> None:
        # Typically ICMP port unreachable while TotalMix is not running.
        _logger.debug("Send error reported for %s: %s", self._endpoint, exc)


class UdpSender:
    """Send OSC messages to a fixed remote endpoint.

    Usage::

        async with UdpSender("127.0.0.1", 7001) as sender:
            await sender.send(build_message("/1/mainDim", 1.0))
    """

    def __init__(self, host: str, port: int) -> None:
        self._host = host
        self._port = port
        self._endpoint = _format_endpoint(host, port)
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def open(self) -> None:
        """Create the datagram endpoint. Called implicitly by :meth:`send`."""
        if self._transport is not None and not self._transport.is_closing():
            return
        loop = asyncio.get_running_loop()
        try:
            transport, _protocol = await loop.create_datagram_endpoint(
                lambda: _SenderProtocol(self._endpoint),
                remote_addr=(self._host, self._port),
            )
        except OSError as exc:
            raise TotalMixTransportError(
                f"Unable to open sender for {self._endpoint}: {exc}",
                endpoint=self._endpoint,
            ) from exc
        self._transport = cast(asyncio.DatagramTransport, transport)
        _logger.debug("Sender opened for %s", self._endpoint)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    async def __aenter__(self) -> UdpSender:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    async def send(self, message: OscMessage) -> int:
        """Send one message and return the number of bytes handed to the socket.

        Raises
        ------
        TotalMixTransportError
            If the socket cannot be opened or rejects the datagram.
        """
        await self.open()
        assert self._transport is not None  # noqa: S101
        datagram = message.dgram
        _logger.debug("Sending %s %s to %s", message.address, message.params, self._endpoint)
        try:
            self._transport.sendto(datagram)
        except OSError as exc:
            raise TotalMixTransportError(
                f"Send to {self._endpoint} failed: {exc}",
                endpoint=self._endpoint,
            ) from exc
        return len(datagram)


class _ListenerProtocol(asyncio.DatagramProtocol):
    """Push received datagrams (or socket errors) onto a bounded queue."""

    def __init__(self, queue: asyncio.Queue[bytes | Exception], endpoint: str) -> None:
        self._queue = queue
        self._endpoint = endpoint

    def datagram_received(self, data: bytes, addr: tuple[str | Any, int]) -> None:
        self._put(data)

    def error_received(self, exc: Exception) -> None:
        _logger.debug("Listener on %s reported error: %s", self._endpoint, exc)
        self._put(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        _logger.debug("Listener on %s closed. Error: %s", self._endpoint, exc)
        self._put(exc or ConnectionError(f"Listener on {self._endpoint} closed"))

    def _put(self, item: bytes | Exception) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            _logger.warning("Listener queue for %s full; dropped oldest datagram", self._endpoint)
        self._queue.put_nowait(item)


class UdpListener:
    """Receive OSC packets on a bound local endpoint.

    Datagrams are buffered as they arrive.  :meth:`receive` hands out one
    decoded packet at a time; a receive abandoned through the ``cancel``
    event leaves buffered datagrams in place for the next call.
    """

    def __init__(self, host: str, port: int, *, queue_size: int = DEFAULT_LISTENER_QUEUE_SIZE) -> None:
        self._host = host
        self._port = port
        self._endpoint = _format_endpoint(host, port)
        self._queue_size = queue_size
        self._queue: asyncio.Queue[bytes | Exception] | None = None
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def local_address(self) -> tuple[str, int] | None:
        """Address actually bound (useful when binding port 0)."""
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def open(self) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[bytes | Exception] = asyncio.Queue(maxsize=self._queue_size)
        try:
            transport, _protocol = await loop.create_datagram_endpoint(
                lambda: _ListenerProtocol(queue, self._endpoint),
                local_addr=(self._host, self._port),
            )
        except OSError as exc:
            raise TotalMixTransportError(
                f"Unable to listen on {self._endpoint}: {exc}",
                endpoint=self._endpoint,
            ) from exc
        self._queue = queue
        self._transport = cast(asyncio.DatagramTransport, transport)
        _logger.debug("Listening on %s", self._endpoint)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        self._queue = None

    async def __aenter__(self) -> UdpListener:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    async def receive(self, cancel: asyncio.Event | None = None) -> OscPacket:
        """Wait for the next packet and decode it.

        :param cancel: optional event; setting it abandons the wait.
        :raises MalformedPacketError: if the datagram cannot be decoded.
        :raises TotalMixTransportError: if the listener is not open or the
            socket reported an error.
        :raises TotalMixCancelledError: if ``cancel`` is set before a packet
            arrives.
        """
        queue = self._queue
        if queue is None:
            raise TotalMixTransportError(f"Listener on {self._endpoint} is not open", endpoint=self._endpoint)

        if cancel is None:
            item = await queue.get()
        else:
            item = await self._get_or_cancel(queue, cancel)

        if isinstance(item, Exception):
            raise TotalMixTransportError(
                f"Receive on {self._endpoint} failed: {item}",
                endpoint=self._endpoint,
            ) from item
        return decode_packet(item)

    async def _get_or_cancel(
        self,
        queue: asyncio.Queue[bytes | Exception],
        cancel: asyncio.Event,
    ) -> bytes | Exception:
        if cancel.is_set():
            raise TotalMixCancelledError(f"Receive on {self._endpoint} cancelled")

        get_task = asyncio.ensure_future(queue.get())
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({get_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not get_task.done():
                get_task.cancel()

        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        raise TotalMixCancelledError(f"Receive on {self._endpoint} cancelled")
