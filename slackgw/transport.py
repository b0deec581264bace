"""
One physical websocket connection
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from .exceptions import SessionClosed, TransportError

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]


class Session:
    """
    Thin wrapper over a websockets client connection.

    A session is never reopened: the supervisor builds a new one for every
    connection epoch and closes the old one.
    """

    def __init__(self, ws: Any, url: str, epoch: int = 0):
        self._ws = ws
        self.url = url
        self.epoch = epoch
        self.expires_at: Optional[float] = None
        self._closed = False
        self._send_lock = asyncio.Lock()

    @classmethod
    async def open(cls, url: str, epoch: int = 0, open_timeout: float = 10.0) -> "Session":
        """Connect to ``url``; raises TransportError on any failure"""
        try:
            ws = await websockets.connect(url, open_timeout=open_timeout, ping_interval=None)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            raise TransportError(f"failed to open {url}: {e}") from e
        logger.debug(f"Session {epoch} opened")
        return cls(ws, url, epoch)

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self, timeout: Optional[float] = None) -> Frame:
        """Wait for the next frame"""
        if self._closed:
            raise SessionClosed("session is closed")
        try:
            if timeout is None:
                return await self._ws.recv()
            return await asyncio.wait_for(self._ws.recv(), timeout)
        except ConnectionClosed as e:
            self._closed = True
            raise SessionClosed(f"connection closed: {e}") from e

    async def send(self, frame: Union[Frame, dict]) -> None:
        """Write one frame; dicts are JSON-encoded"""
        if self._closed:
            raise SessionClosed("session is closed")
        data = json.dumps(frame) if isinstance(frame, dict) else frame
        async with self._send_lock:
            try:
                await self._ws.send(data)
            except ConnectionClosed as e:
                self._closed = True
                raise SessionClosed(f"connection closed: {e}") from e
            except OSError as e:
                raise TransportError(f"send failed: {e}") from e

    async def ping(self, on_pong: Optional[Callable[[], None]] = None) -> None:
        """Send a transport-level ping; ``on_pong`` runs when it is answered"""
        if self._closed:
            raise SessionClosed("session is closed")
        try:
            waiter: Awaitable = await self._ws.ping()
        except ConnectionClosed as e:
            self._closed = True
            raise SessionClosed(f"connection closed: {e}") from e
        if on_pong is not None:
            asyncio.ensure_future(waiter).add_done_callback(
                lambda fut: on_pong() if not fut.cancelled() and fut.exception() is None else None
            )

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed and self._ws is None:
            return
        self._closed = True
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug(f"Ignoring error while closing session {self.epoch}: {e}")
        logger.debug(f"Session {self.epoch} closed")
