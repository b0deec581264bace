"""
Connection supervisor for the realtime gateway

Drives handshake -> connect -> run -> (fault) -> backoff -> reconnect and
owns the session, router, heartbeat and correlator of every connection
epoch. Consumers only see an ordered stream of InboundEvent objects.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from .backoff import Backoff
from .config import GatewayConfig
from .correlator import OutboundCorrelator
from .events import InboundEvent
from .exceptions import (
    NON_RECOVERABLE,
    ManagerClosed,
    ServerDisconnectNotice,
    SessionLost,
    SlackError,
    StaleAcknowledgement,
    TransportError,
)
from .frames import FrameCodec
from .heartbeat import HeartbeatMonitor
from .router import EventRouter
from .transport import Session
from .types import ConnectionInfo

logger = logging.getLogger(__name__)

Handshake = Callable[[], Awaitable[ConnectionInfo]]
Connector = Callable[..., Awaitable[Session]]


class ConnectionState(Enum):
    """Connection states of the supervisor"""
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


# Queue marker for the end of the event stream.
_CLOSED = object()


class ConnectionSupervisor:
    """Keeps one realtime connection alive and feeds its events to a queue"""

    def __init__(
        self,
        handshake: Handshake,
        codec: FrameCodec,
        config: Optional[GatewayConfig] = None,
        connect: Optional[Connector] = None,
        rand: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            handshake: Coroutine function returning a fresh ConnectionInfo
            codec: Frame vocabulary of the connection (RTM or Socket Mode)
            config: Timing policy
            connect: Session factory, ``Session.open`` by default
            rand: Random source for backoff jitter
        """
        self.config = config or GatewayConfig()
        self._handshake = handshake
        self._codec = codec
        self._connect = connect or Session.open
        self._backoff = Backoff(
            base=self.config.backoff_base,
            maximum=self.config.backoff_max,
            factor=self.config.backoff_factor,
            jitter=self.config.backoff_jitter,
            rand=rand,
        )
        self._correlator = OutboundCorrelator(
            codec, self.config.ack_timeout, on_fault=self._report_fault
        )
        self._events: asyncio.Queue = asyncio.Queue()
        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: List[Callable[[ConnectionState, ConnectionState], None]] = []

        self._session: Optional[Session] = None
        self._epoch = 0
        self._fault: Optional[asyncio.Future] = None
        self._connected = asyncio.Event()
        self._stop_requested = asyncio.Event()
        self._run_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._terminal_error: Optional[BaseException] = None
        self._terminal_reported = False
        self.reconnects = 0

    # State

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def correlator(self) -> OutboundCorrelator:
        return self._correlator

    def on_state_change(self, callback: Callable[[ConnectionState, ConnectionState], None]) -> None:
        """Register a callback(old_state, new_state)"""
        self._state_callbacks.append(callback)

    def _set_state(self, state: ConnectionState) -> None:
        old, self._state = self._state, state
        if old is state:
            return
        logger.info(f"Gateway state {old.value} -> {state.value}")
        for callback in self._state_callbacks:
            try:
                callback(old, state)
            except Exception as e:
                logger.warning(f"State callback raised exception: {e}")

    # Consumer API

    async def start(self) -> None:
        """Start connecting in the background. Idempotent until closed."""
        if self._state is ConnectionState.CLOSED:
            raise ManagerClosed("connection manager is closed")
        if self._run_task is not None:
            return
        self._run_task = asyncio.create_task(self._run())
        self._sweep_task = asyncio.create_task(
            self._correlator.run_sweeper(self.config.sweep_interval)
        )

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        """Wait until a session is connected"""
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def stop(self) -> None:
        """
        Close the connection gracefully.

        Pending sends get ``stop_grace`` seconds to be acknowledged before
        they fail with ManagerClosed. No reconnect is attempted afterwards.
        """
        if self._state is ConnectionState.CLOSED:
            return
        self._stop_requested.set()
        task = self._run_task
        if task is not None:
            if self._state is not ConnectionState.CONNECTED:
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close(None)

    async def next_event(self) -> InboundEvent:
        """
        Wait for the next event.

        Raises:
            AuthRejected: once, when the manager closed on bad credentials
            ManagerClosed: when the stream has ended
        """
        item = await self._events.get()
        if item is _CLOSED:
            self._events.put_nowait(_CLOSED)
            if self._terminal_error is not None and not self._terminal_reported:
                self._terminal_reported = True
                raise self._terminal_error
            raise ManagerClosed("connection manager is closed")
        return item

    async def events(self) -> AsyncIterator[InboundEvent]:
        """Iterate over events until the manager is stopped"""
        while True:
            try:
                event = await self.next_event()
            except ManagerClosed:
                return
            yield event

    async def submit(self, payload: Dict[str, Any]) -> Tuple[int, asyncio.Future]:
        """Send a correlated frame; see OutboundCorrelator.submit"""
        if self._state is ConnectionState.CLOSED:
            future = asyncio.get_running_loop().create_future()
            future.set_exception(ManagerClosed("connection manager is closed"))
            return 0, future
        return await self._correlator.submit(payload)

    # Internals

    def _report_fault(self, fault: SlackError, epoch: Optional[int] = None) -> None:
        """First fault of the current epoch wins; faults from old epochs are dropped"""
        if epoch is not None and epoch != self._epoch:
            logger.debug(f"Dropping fault from epoch {epoch}: {fault}")
            return
        if self._fault is not None and not self._fault.done():
            self._fault.set_result(fault)

    async def _acknowledge(
        self, envelope_id: str, epoch: int, payload: Optional[Dict[str, Any]]
    ) -> Optional[StaleAcknowledgement]:
        session = self._session
        if session is None or epoch != self._epoch or session.closed:
            stale = StaleAcknowledgement(envelope_id)
            logger.warning(str(stale))
            return stale
        try:
            await session.send(self._codec.ack_frame(envelope_id, payload))
        except TransportError as e:
            self._report_fault(e, epoch)
            stale = StaleAcknowledgement(envelope_id, f"session failed: {e}")
            logger.warning(str(stale))
            return stale
        return None

    async def _probe(self, session: Session, monitor: HeartbeatMonitor, probe_id: int) -> None:
        if self._codec.transport_ping:
            await session.ping(on_pong=monitor.reply_received)
        else:
            await session.send(self._codec.probe_frame(probe_id))

    async def _run(self) -> None:
        try:
            while not self._stop_requested.is_set():
                fault, uptime = await self._connect_once()
                if self._stop_requested.is_set():
                    break
                if isinstance(fault, NON_RECOVERABLE):
                    logger.error(f"Gateway closing on non-recoverable fault: {fault}")
                    await self._close(fault)
                    return

                delay = self._reconnect_delay(fault, uptime)
                self._set_state(ConnectionState.RECONNECTING)
                self.reconnects += 1
                logger.warning(f"Reconnecting in {delay:.2f}s after: {fault}")
                if delay > 0:
                    try:
                        await asyncio.wait_for(self._stop_requested.wait(), delay)
                    except asyncio.TimeoutError:
                        pass
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Gateway supervisor crashed")
            await self._close(e)

    def _reconnect_delay(self, fault: Optional[SlackError], uptime: Optional[float]) -> float:
        if uptime is not None and uptime >= self.config.min_dwell:
            self._backoff.reset()
            if isinstance(fault, ServerDisconnectNotice):
                return 0.0
        return self._backoff.next_delay()

    async def _connect_once(self) -> Tuple[Optional[SlackError], Optional[float]]:
        """
        Run one connection epoch.

        Returns:
            (fault, uptime) where uptime is None if the session never opened
        """
        self._set_state(ConnectionState.HANDSHAKING)
        try:
            info = await self._handshake()
        except SlackError as e:
            return e, None
        except Exception as e:
            return TransportError(f"handshake failed: {e}"), None

        self._set_state(ConnectionState.CONNECTING)
        epoch = self._epoch + 1
        try:
            session = await self._connect(info.url, epoch=epoch, open_timeout=self.config.open_timeout)
        except SlackError as e:
            return e, None

        loop = asyncio.get_running_loop()
        if info.ttl:
            session.expires_at = loop.time() + info.ttl
        self._epoch = epoch
        self._session = session
        self._fault = loop.create_future()

        def report(fault: SlackError) -> None:
            self._report_fault(fault, epoch)

        heartbeat = HeartbeatMonitor(
            probe=lambda probe_id: self._probe(session, heartbeat, probe_id),
            on_fault=report,
            interval=self.config.ping_interval,
            deadline=self.config.ping_deadline,
            next_id=self._correlator.next_id,
        )
        router = EventRouter(
            session,
            self._codec,
            self._events,
            self._correlator,
            on_fault=report,
            heartbeat=heartbeat,
            acker=self._acknowledge,
        )
        self._correlator.bind(session, epoch)
        reader = asyncio.create_task(router.run())
        heartbeat.start()
        connected_at = loop.time()
        self._set_state(ConnectionState.CONNECTED)
        self._connected.set()

        stop_wait = asyncio.create_task(self._stop_requested.wait())
        try:
            await asyncio.wait({self._fault, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
            if self._stop_requested.is_set():
                await self._correlator.drain(self.config.stop_grace)
        finally:
            stop_wait.cancel()
            uptime = loop.time() - connected_at
            self._connected.clear()
            await self._teardown(session, reader, heartbeat)

        fault = self._fault.result() if self._fault.done() else None
        return fault, uptime

    async def _teardown(self, session: Session, reader: asyncio.Task, heartbeat: HeartbeatMonitor) -> None:
        """Stop the epoch's workers, then retire its session"""
        await heartbeat.stop()
        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass
        self._correlator.unbind()
        self._session = None
        if self._stop_requested.is_set():
            self._correlator.fail_all(ManagerClosed("connection manager stopped"))
        else:
            self._correlator.fail_all(SessionLost(f"session {session.epoch} was lost"))
        await session.close()

    async def _close(self, terminal: Optional[BaseException]) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self._set_state(ConnectionState.CLOSED)
        self._terminal_error = terminal
        self._stop_requested.set()

        sweep, self._sweep_task = self._sweep_task, None
        if sweep is not None:
            sweep.cancel()
            try:
                await sweep
            except asyncio.CancelledError:
                pass

        self._correlator.fail_all(ManagerClosed("connection manager stopped"))
        self._events.put_nowait(_CLOSED)
