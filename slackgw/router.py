"""
Routing of decoded frames for one connection epoch
"""

import asyncio
import logging
from typing import Callable, Optional

from .correlator import OutboundCorrelator
from .events import Acker, InboundEvent
from .exceptions import (
    MalformedFrame,
    SendRejected,
    ServerDisconnectNotice,
    SlackError,
    TransportError,
)
from .frames import Ack, AppEvent, Disconnect, FrameCodec, Hello, Pong, UnknownFrame
from .heartbeat import HeartbeatMonitor

logger = logging.getLogger(__name__)


class EventRouter:
    """
    Reads frames from one session, in order, and sends each one where it
    belongs: control frames to the heartbeat, correlator or supervisor,
    application frames to the consumer queue.

    A router is built per connection epoch and dropped with its session.
    """

    def __init__(
        self,
        session,
        codec: FrameCodec,
        queue: asyncio.Queue,
        correlator: OutboundCorrelator,
        on_fault: Callable[[SlackError], None],
        heartbeat: Optional[HeartbeatMonitor] = None,
        acker: Optional[Acker] = None,
    ):
        self.session = session
        self._codec = codec
        self._queue = queue
        self._correlator = correlator
        self._on_fault = on_fault
        self._heartbeat = heartbeat
        self._acker = acker
        self.hello_received = False
        self.malformed = 0
        self._handlers = {
            Hello: self._on_hello,
            Pong: self._on_pong,
            Disconnect: self._on_disconnect,
            Ack: self._on_ack,
            AppEvent: self._on_app_event,
            UnknownFrame: self._on_unknown,
        }

    async def run(self) -> None:
        """Receive loop; reports a transport fault and returns when reading fails"""
        while True:
            try:
                raw = await self.session.receive()
            except TransportError as e:
                logger.warning(f"Session {self.session.epoch} read failed: {e}")
                self._on_fault(e)
                return
            await self.handle(raw)

    async def handle(self, raw) -> None:
        try:
            frame = self._codec.decode(raw)
        except MalformedFrame as e:
            self._skip(e)
            return
        except Exception as e:
            self._skip(MalformedFrame(f"undecodable frame: {e!r}", raw))
            return
        await self._handlers[type(frame)](frame)

    def _skip(self, error: MalformedFrame) -> None:
        self.malformed += 1
        logger.warning(f"Skipping malformed frame: {error}")

    async def _on_hello(self, frame: Hello) -> None:
        self.hello_received = True
        if frame.connection_ttl is not None:
            loop = asyncio.get_running_loop()
            self.session.expires_at = loop.time() + frame.connection_ttl
        logger.info(f"Session {self.session.epoch} confirmed by server")

    async def _on_pong(self, frame: Pong) -> None:
        if self._heartbeat is not None:
            self._heartbeat.reply_received(frame.reply_to)

    async def _on_disconnect(self, frame: Disconnect) -> None:
        logger.info(f"Server requested reconnect ({frame.reason or 'no reason'})")
        self._on_fault(ServerDisconnectNotice(frame.reason))

    async def _on_ack(self, frame: Ack) -> None:
        if frame.ok:
            self._correlator.resolve(frame.reply_to, frame.payload)
            return
        error = frame.error or {}
        self._correlator.fail(
            frame.reply_to,
            SendRejected(error.get("msg", "rejected by server"), code=error.get("code")),
        )

    async def _on_app_event(self, frame: AppEvent) -> None:
        event = InboundEvent(
            type=frame.type,
            data=frame.data,
            envelope_id=frame.envelope_id,
            epoch=self.session.epoch,
            accepts_response_payload=frame.accepts_response_payload,
            retry_attempt=frame.retry_attempt,
            retry_reason=frame.retry_reason,
            _acker=self._acker if frame.envelope_id is not None else None,
        )
        await self._queue.put(event)

    async def _on_unknown(self, frame: UnknownFrame) -> None:
        logger.debug(f"Unknown frame type {frame.type!r} passed through")
        await self._queue.put(InboundEvent(type=frame.type, data=frame.data, epoch=self.session.epoch))
