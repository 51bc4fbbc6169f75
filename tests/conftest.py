from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import pytest
from pythonosc.osc_message import OscMessage

from pytotalmix._osc import OscPacket


class FakeSender:
    """Records messages instead of sending them."""

    def __init__(self) -> None:
        self.messages: list[OscMessage] = []
        self.error: Exception | None = None

    async def send(self, message: OscMessage) -> int:
        if self.error is not None:
            raise self.error
        self.messages.append(message)
        return len(message.dgram)

    @property
    def sent(self) -> list[tuple[str, list[Any]]]:
        return [(message.address, list(message.params)) for message in self.messages]


class FakeListener:
    """Hands out queued packets (or raises queued exceptions), then blocks."""

    def __init__(self) -> None:
        self._items: deque[OscPacket | Exception] = deque()
        self._pushed = asyncio.Event()
        self.calls = 0
        self.cancelled = 0

    def push(self, *items: OscPacket | Exception) -> None:
        self._items.extend(items)
        self._pushed.set()

    async def receive(self, cancel: asyncio.Event | None = None) -> OscPacket:
        self.calls += 1
        try:
            while not self._items:
                self._pushed.clear()
                await self._pushed.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        item = self._items.popleft()
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def listener() -> FakeListener:
    return FakeListener()
