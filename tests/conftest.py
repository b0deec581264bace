"""
In-memory stand-ins for the websocket session and the handshake call
"""

import asyncio
import json

import pytest

from slackgw.config import GatewayConfig
from slackgw.exceptions import SessionClosed, TransportError
from slackgw.types import ConnectionInfo


class FakeSession:
    """Session double fed by the test through feed()/fail()"""

    def __init__(self, url, epoch=0, auto_pong=True):
        self.url = url
        self.epoch = epoch
        self.expires_at = None
        self.auto_pong = auto_pong
        self.sent = []
        self.pings = 0
        self._closed = False
        self._inbox = asyncio.Queue()

    @property
    def closed(self):
        return self._closed

    def feed(self, frame):
        self._inbox.put_nowait(json.dumps(frame) if isinstance(frame, dict) else frame)

    def fail(self, error=None):
        self._inbox.put_nowait(error or TransportError("connection reset by peer"))

    async def receive(self, timeout=None):
        if self._closed:
            raise SessionClosed("session is closed")
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            self._closed = True
            raise item
        return item

    async def send(self, frame):
        if self._closed:
            raise SessionClosed("session is closed")
        if isinstance(frame, dict):
            json.dumps(frame)
        self.sent.append(frame)
        if self.auto_pong and isinstance(frame, dict) and frame.get("type") == "ping":
            self.feed({"type": "pong", "reply_to": frame["id"]})

    async def ping(self, on_pong=None):
        if self._closed:
            raise SessionClosed("session is closed")
        self.pings += 1
        if self.auto_pong and on_pong is not None:
            asyncio.get_running_loop().call_soon(on_pong)

    async def close(self):
        self._closed = True


class FakeGateway:
    """Handshake and connector pair recording every attempt"""

    def __init__(self, urls=None, auto_pong=None):
        self.urls = list(urls or [])
        self.auto_pong = list(auto_pong or [])
        self.handshake_errors = []
        self.connect_errors = []
        self.handshake_urls = []
        self.sessions = []

    @property
    def handshakes(self):
        return len(self.handshake_urls)

    async def handshake(self):
        if self.handshake_errors:
            self.handshake_urls.append(None)
            raise self.handshake_errors.pop(0)
        url = self.urls.pop(0) if self.urls else f"wss://gateway.test/{len(self.handshake_urls) + 1}"
        self.handshake_urls.append(url)
        return ConnectionInfo(url=url)

    async def connect(self, url, epoch=0, open_timeout=10.0):
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        auto_pong = self.auto_pong.pop(0) if self.auto_pong else True
        session = FakeSession(url, epoch, auto_pong=auto_pong)
        self.sessions.append(session)
        return session

    async def wait_sessions(self, count, timeout=2.0):
        async def poll():
            while len(self.sessions) < count:
                await asyncio.sleep(0.005)
        await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def fast_config():
    return GatewayConfig(
        ping_interval=60.0,
        ping_deadline=1.0,
        ack_timeout=0.2,
        sweep_interval=0.02,
        backoff_base=0.01,
        backoff_max=0.05,
        backoff_jitter=0.0,
        min_dwell=60.0,
        stop_grace=0.1,
    )
