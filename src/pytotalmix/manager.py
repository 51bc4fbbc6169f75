"""Volume and dim state tracking for a TotalMix device."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pythonosc.osc_bundle import OscBundle

from pytotalmix._constants import (
    DIM_ADDRESS,
    DIM_TOGGLE_VALUE,
    REQUEST_SENTINEL,
    VOLUME_ADDRESS,
    VOLUME_ADDRESSES,
    VOLUME_DECIBELS_ADDRESS,
)
from pytotalmix._osc import (
    OscPacket,
    build_message,
    extract_float,
    extract_string,
    iter_messages,
    to_wire_precision,
)
from pytotalmix._transport import Listener, Sender, UdpListener, UdpSender
from pytotalmix.config import TotalMixConfig
from pytotalmix.exceptions import (
    ArgumentTypeMismatchError,
    MalformedPacketError,
    TotalMixCancelledError,
    TotalMixTimeoutError,
    TotalMixTransportError,
)
from pytotalmix.fader import step_decibels, step_percent
from pytotalmix.models.snapshot import DeviceSnapshot
from pytotalmix.models.state import DeviceState, Reading, Uninitialized, merge_reading

_logger = logging.getLogger(__name__)


def _read_bundle(bundle: OscBundle) -> Reading:
    """Collect volume fields from a bundle.

    Messages for other addresses, or with anything but exactly one argument,
    are skipped.  A message with the wrong argument type only loses its own
    field; later messages for the same field win.
    """
    volume: float | None = None
    volume_decibels: str | None = None
    dim: float | None = None

    for message in iter_messages(bundle):
        if message.address not in VOLUME_ADDRESSES or len(message.params) != 1:
            continue
        try:
            if message.address == VOLUME_DECIBELS_ADDRESS:
                volume_decibels = extract_string(message)
            elif message.address == VOLUME_ADDRESS:
                value = extract_float(message)
                if not 0.0 <= value <= 1.0:
                    _logger.debug("Ignoring out-of-range volume %s", value)
                    continue
                volume = value
            else:
                dim = extract_float(message)
        except ArgumentTypeMismatchError as exc:
            _logger.debug("Ignoring message: %s", exc)

    return Reading(volume=volume, volume_decibels=volume_decibels, dim=dim)


class VolumeManager:
    """Track the device volume and dim state and send changes to it.

    The manager is the only writer of the cached state.  Every read and write
    goes through one :class:`asyncio.Lock`; volume and dim changes hold it
    across the computation and the send so that concurrent presses cannot
    lose updates.

    Usage::

        async with VolumeManager(config) as manager:
            await manager.request_volume()
            snapshot = await manager.receive_volume()
            await manager.increase_volume()
    """

    def __init__(
        self,
        config: TotalMixConfig | None = None,
        *,
        sender: Sender | None = None,
        listener: Listener | None = None,
    ) -> None:
        self._config = config if config is not None else TotalMixConfig()
        self._owned_sender: UdpSender | None = None
        self._owned_listener: UdpListener | None = None
        if sender is None:
            self._owned_sender = UdpSender(self._config.outgoing_host, self._config.outgoing_port)
            sender = self._owned_sender
        if listener is None:
            self._owned_listener = UdpListener(self._config.incoming_host, self._config.incoming_port)
            listener = self._owned_listener
        self._sender: Sender = sender
        self._listener: Listener = listener
        self._lock = asyncio.Lock()
        self._state: DeviceState = Uninitialized()

    @property
    def config(self) -> TotalMixConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VolumeManager:
        if self._owned_listener is not None:
            await self._owned_listener.open()
        if self._owned_sender is not None:
            try:
                await self._owned_sender.open()
            except TotalMixTransportError:
                self.close()
                raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close transports created by this manager (injected ones are left alone)."""
        if self._owned_listener is not None:
            self._owned_listener.close()
        if self._owned_sender is not None:
            self._owned_sender.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def is_volume_initialized(self) -> bool:
        """Whether volume, decibel text and dim have all been reported."""
        async with self._lock:
            return isinstance(self._state, DeviceSnapshot)

    async def get_snapshot(self) -> DeviceSnapshot | None:
        """Return the current snapshot, or ``None`` while the state is unknown."""
        async with self._lock:
            state = self._state
            return state if isinstance(state, DeviceSnapshot) else None

    async def reset(self) -> None:
        """Forget everything known about the device."""
        async with self._lock:
            self._state = Uninitialized()

    # ------------------------------------------------------------------
    # Device requests
    # ------------------------------------------------------------------

    async def request_volume(self) -> None:
        """Ask the device to report its volume and dim state.

        Sends the ``-1.0`` sentinel to the volume and dim addresses, which
        TotalMix answers with its current values.  Does nothing once the state
        is known.  The answer must be collected with :meth:`receive_volume`.
        """
        async with self._lock:
            if isinstance(self._state, DeviceSnapshot):
                return
        await self._send(VOLUME_ADDRESS, REQUEST_SENTINEL)
        await self._send(DIM_ADDRESS, REQUEST_SENTINEL)

    async def receive_volume(
        self,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DeviceSnapshot | None:
        """Wait for the next device packet and apply any volume fields it carries.

        :param timeout: seconds to wait; defaults to ``config.receive_timeout``.
            TotalMix sends a keepalive every 1-2 seconds, so silence for longer
            means the device is unreachable.
        :param cancel: optional event the caller sets to abandon the wait.
        :returns: the current snapshot if the packet updated at least one
            field and the state is now fully known, otherwise ``None``.
            Malformed datagrams and lone messages return ``None``.
        :raises TotalMixTimeoutError: if no packet arrives in time.  Cached
            state is discarded.
        :raises TotalMixTransportError: if the listener fails.  Cached state is
            discarded.
        :raises TotalMixCancelledError: if ``cancel`` is set first.  Cached
            state is kept.
        """
        if timeout is None:
            timeout = self._config.receive_timeout

        receive_cancel = asyncio.Event()
        receive_task = asyncio.ensure_future(self._listener.receive(receive_cancel))
        cancel_task: asyncio.Future[Any] | None = None
        waiters: set[asyncio.Future[Any]] = {receive_task}
        if cancel is not None:
            cancel_task = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_task)

        try:
            done, _pending = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if not receive_task.done():
                receive_cancel.set()
                receive_task.cancel()

        if receive_task in done:
            try:
                packet = receive_task.result()
            except MalformedPacketError as exc:
                # Partial datagrams show up when the device drops mid-transmission.
                _logger.debug("Discarding malformed packet: %s", exc)
                return None
            except TotalMixTransportError:
                await self.reset()
                raise
            except OSError as exc:
                await self.reset()
                raise TotalMixTransportError(f"Volume receive failed: {exc}") from exc
            except Exception as exc:
                _logger.debug("Listener raised unexpectedly", exc_info=True)
                await self.reset()
                raise TotalMixTransportError(f"Volume receive failed: {exc!r}") from exc
            return await self._apply_packet(packet)

        if cancel_task is not None and cancel_task in done:
            raise TotalMixCancelledError("Volume receive cancelled")

        # The device state may change while it is unreachable, so force a
        # fresh request before trusting the cache again.
        await self.reset()
        raise TotalMixTimeoutError(f"No packet received within {timeout} seconds")

    async def _apply_packet(self, packet: OscPacket) -> DeviceSnapshot | None:
        # Volume changes are only presented in bundles.
        if not isinstance(packet, OscBundle):
            _logger.debug("Ignoring lone message %s", packet.address)
            return None

        reading = _read_bundle(packet)
        if reading.is_empty:
            return None

        async with self._lock:
            self._state = merge_reading(self._state, reading)
            state = self._state
        _logger.debug("Applied %s -> %s", reading, state)
        return state if isinstance(state, DeviceSnapshot) else None

    # ------------------------------------------------------------------
    # Volume and dim changes
    # ------------------------------------------------------------------

    async def increase_volume(self, fine: bool = False) -> bool:
        """Raise the volume by one (fine) increment.

        :returns: ``True`` if a new volume was sent, ``False`` if the state is
            unknown or the volume is already at the configured maximum.
        """
        return await self._step_volume(fine=fine, increase=True)

    async def decrease_volume(self, fine: bool = False) -> bool:
        """Lower the volume by one (fine) increment.

        :returns: ``True`` if a new volume was sent, ``False`` if the state is
            unknown or the volume is already silent.
        """
        return await self._step_volume(fine=fine, increase=False)

    async def _step_volume(self, *, fine: bool, increase: bool) -> bool:
        settings = self._config.volume
        step = step_decibels if settings.use_decibels else step_percent

        async with self._lock:
            state = self._state
            if not isinstance(state, DeviceSnapshot):
                return False

            new_volume = to_wire_precision(
                step(state.volume, settings.increment(fine), settings.maximum, increase=increase)
            )
            if new_volume == state.volume:
                return False

            await self._send(VOLUME_ADDRESS, new_volume)
            # No need to wait for the device echo.
            self._state = state.model_copy(update={"volume": new_volume})
            return True

    async def toggle_dim(self) -> bool:
        """Toggle the dim function.

        :returns: ``True`` if the toggle was sent, ``False`` if the state is
            unknown.
        """
        async with self._lock:
            state = self._state
            if not isinstance(state, DeviceSnapshot):
                return False

            # TotalMix toggles on 1.0; sending the desired 0/1 state does not work.
            await self._send(DIM_ADDRESS, DIM_TOGGLE_VALUE)
            self._state = state.model_copy(update={"is_dimmed": not state.is_dimmed})
            return True

    async def _send(self, address: str, value: float) -> None:
        try:
            await self._sender.send(build_message(address, value))
        except TotalMixTransportError:
            # Raised while the device reconnects; the next request recovers.
            _logger.debug("Send of %s %s failed", address, value, exc_info=True)
