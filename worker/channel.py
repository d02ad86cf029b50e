"""Ordered message channels between a controller and an execution host."""

import asyncio
from abc import ABC, abstractmethod
from multiprocessing.connection import Connection
from typing import Optional, Tuple

from pydantic import BaseModel

from worker.errors import ChannelClosedError
from worker.protocol import decode_message, encode_message


class Channel(ABC):
    """Awaitable send/receive of control messages, delivered in order."""

    def __init__(self):
        self._send_lock: Optional[asyncio.Lock] = None

    async def send(self, message: BaseModel) -> None:
        """Send one message; returns once it has been handed to the transport."""
        if self._send_lock is None:
            self._send_lock = asyncio.Lock()
        async with self._send_lock:
            await self._send(encode_message(message))

    async def receive(self, timeout: Optional[float] = None):
        """Wait for the next message.

        Raises ``asyncio.TimeoutError`` when nothing arrives within
        ``timeout`` seconds and :class:`ChannelClosedError` when the peer is
        gone.
        """
        return decode_message(await self._receive(timeout))

    @abstractmethod
    async def _send(self, raw: dict) -> None:
        pass

    @abstractmethod
    async def _receive(self, timeout: Optional[float]) -> dict:
        pass

    def close(self) -> None:
        pass


class PipeChannel(Channel):
    """Channel over a ``multiprocessing`` connection.

    Blocking pipe calls run in the default executor so the event loop stays
    responsive.
    """

    def __init__(self, connection: Connection):
        super().__init__()
        self._conn = connection

    async def _send(self, raw: dict) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._conn.send, raw)
        except (OSError, EOFError, ValueError) as e:
            raise ChannelClosedError(f"Could not deliver message: {e}") from e

    async def _receive(self, timeout: Optional[float]) -> dict:
        loop = asyncio.get_running_loop()
        try:
            ready = await loop.run_in_executor(None, self._conn.poll, timeout)
        except (OSError, EOFError, ValueError) as e:
            raise ChannelClosedError(f"Channel closed: {e}") from e

        # Raised outside the try blocks: asyncio.TimeoutError is an OSError on 3.11+
        if not ready:
            raise asyncio.TimeoutError()

        try:
            return await loop.run_in_executor(None, self._conn.recv)
        except (OSError, EOFError, ValueError) as e:
            raise ChannelClosedError(f"Channel closed: {e}") from e

    def close(self) -> None:
        self._conn.close()


class MemoryChannel(Channel):
    """In-process channel backed by asyncio queues."""

    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue):
        super().__init__()
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False

    async def _send(self, raw: dict) -> None:
        if self._closed:
            raise ChannelClosedError("Channel closed")
        await self._outbox.put(raw)

    async def _receive(self, timeout: Optional[float]) -> dict:
        if self._closed:
            raise ChannelClosedError("Channel closed")
        return await asyncio.wait_for(self._inbox.get(), timeout)

    def close(self) -> None:
        self._closed = True


def memory_channel_pair() -> Tuple[MemoryChannel, MemoryChannel]:
    """Two connected channels: what one sends, the other receives."""
    left: asyncio.Queue = asyncio.Queue()
    right: asyncio.Queue = asyncio.Queue()
    return MemoryChannel(left, right), MemoryChannel(right, left)
