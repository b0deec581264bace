"""
Shared surface of the realtime clients
"""

from typing import AsyncIterator, Optional

from .client import SlackClient
from .config import GatewayConfig
from .events import InboundEvent
from .frames import FrameCodec
from .supervisor import ConnectionState, ConnectionSupervisor, Handshake


class RealtimeClient:
    """Base class binding a Web API handshake to a ConnectionSupervisor"""

    codec_class = FrameCodec

    def __init__(
        self,
        api: SlackClient,
        config: Optional[GatewayConfig] = None,
        **supervisor_kwargs,
    ):
        self.api = api
        self.supervisor = ConnectionSupervisor(
            self._handshake(),
            self.codec_class(),
            config=config,
            **supervisor_kwargs,
        )

    def _handshake(self) -> Handshake:
        raise NotImplementedError

    @property
    def state(self) -> ConnectionState:
        return self.supervisor.state

    def is_connected(self) -> bool:
        return self.supervisor.state is ConnectionState.CONNECTED

    async def start(self) -> None:
        await self.supervisor.start()

    async def stop(self) -> None:
        await self.supervisor.stop()

    async def next_event(self) -> InboundEvent:
        return await self.supervisor.next_event()

    def events(self) -> AsyncIterator[InboundEvent]:
        return self.supervisor.events()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
