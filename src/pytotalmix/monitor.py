"""Background loops keeping a :class:`VolumeManager` in sync with the device.

Owns:
- re-requesting device state while it is unknown
- the receive loop, including timeout and listener-failure handling
- a coarse connection status for display
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pytotalmix.exceptions import TotalMixCancelledError, TotalMixTimeoutError, TotalMixTransportError
from pytotalmix.manager import VolumeManager
from pytotalmix.models.snapshot import DeviceSnapshot

_logger = logging.getLogger(__name__)


class ConnectionStatus(StrEnum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    UNREACHABLE = "unreachable"
    LISTENER_ERROR = "listener_error"


class VolumeMonitor:
    """Run the request and receive loops for a :class:`VolumeManager`.

    ``on_update`` receives every snapshot produced by the device along with a
    flag telling whether the state was already known before that packet, so
    callers can tell remote volume changes apart from the initial sync.

    Usage::

        async with VolumeManager(config) as manager, VolumeMonitor(manager, on_update=show):
            await asyncio.Event().wait()
    """

    def __init__(
        self,
        manager: VolumeManager,
        *,
        on_update: Callable[[DeviceSnapshot, bool], None] | None = None,
        on_status: Callable[[ConnectionStatus], None] | None = None,
        receive_timeout: float | None = None,
        request_interval: float | None = None,
    ) -> None:
        self._manager = manager
        self._on_update = on_update
        self._on_status = on_status
        config = manager.config
        self._receive_timeout = config.receive_timeout if receive_timeout is None else receive_timeout
        self._request_interval = config.request_interval if request_interval is None else request_interval
        self._status = ConnectionStatus.CONNECTING
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start both loops on the running event loop."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._request_loop(), name="totalmix-request"),
            asyncio.create_task(self._receive_loop(), name="totalmix-receive"),
        ]
        _logger.debug("Volume monitor started")

    async def stop(self) -> None:
        """Stop both loops and wait for them to finish."""
        self._stop_event.set()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        _logger.debug("Volume monitor stopped")

    async def __aenter__(self) -> VolumeMonitor:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _request_loop(self) -> None:
        while not self._stop_event.is_set():
            # No-op while the state is known.
            await self._manager.request_volume()
            if await self._sleep(self._request_interval):
                return

    async def _receive_loop(self) -> None:
        while not self._stop_event.is_set():
            initialized_before = await self._manager.is_volume_initialized()
            try:
                snapshot = await self._manager.receive_volume(self._receive_timeout, self._stop_event)
            except TotalMixCancelledError:
                return
            except TotalMixTimeoutError:
                self._set_status(ConnectionStatus.UNREACHABLE)
                continue
            except TotalMixTransportError:
                _logger.debug("Listener failure", exc_info=True)
                self._set_status(ConnectionStatus.LISTENER_ERROR)
                if await self._sleep(self._request_interval):
                    return
                continue

            self._set_status(ConnectionStatus.CONNECTED)
            if snapshot is not None:
                self._notify_update(snapshot, initialized_before)

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first; returns ``True`` when stopped."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), seconds)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        _logger.debug("Connection status %s -> %s", self._status, status)
        self._status = status
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception:
            _logger.debug("on_status callback failed", exc_info=True)

    def _notify_update(self, snapshot: DeviceSnapshot, initialized_before: bool) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(snapshot, initialized_before)
        except Exception:
            _logger.debug("on_update callback failed", exc_info=True)
