"""
Correlation of outbound frames with their acknowledgements
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .exceptions import AckTimeout, SessionLost, SlackError, TransportError
from .frames import FrameCodec

logger = logging.getLogger(__name__)


@dataclass
class PendingSend:
    """Outbound frame waiting for its acknowledgement"""
    id: int
    submitted_at: float
    epoch: int
    future: asyncio.Future


class OutboundCorrelator:
    """
    Owns the table of outbound frames awaiting acknowledgement.

    Ids are allocated from one counter for the lifetime of the correlator,
    so an id is never reused, not even across reconnects. Every record ends
    in exactly one of: acknowledged, rejected, timed out, session lost,
    or manager closed.
    """

    def __init__(
        self,
        codec: FrameCodec,
        ack_timeout: float = 10.0,
        on_fault: Optional[Callable[[SlackError, int], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._codec = codec
        self.ack_timeout = ack_timeout
        self._on_fault = on_fault
        self._clock = clock
        self._last_id = 0
        self._pending: Dict[int, PendingSend] = {}
        self._session = None
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, frame_id: int) -> bool:
        return frame_id in self._pending

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def bind(self, session, epoch: int) -> None:
        """Accept submissions for ``session`` from now on"""
        self._session = session
        self._epoch = epoch

    def unbind(self) -> None:
        self._session = None

    async def submit(self, payload: Dict[str, Any]) -> Tuple[int, asyncio.Future]:
        """
        Frame ``payload`` with a fresh id and write it to the bound session.

        Returns:
            (id, future) where the future resolves to the acknowledgement
            payload or fails with AckTimeout, SessionLost, SendRejected,
            TransportError or ManagerClosed
        """
        future = asyncio.get_running_loop().create_future()
        frame_id = self.next_id()
        session = self._session
        if session is None:
            future.set_exception(SessionLost("no active session"))
            return frame_id, future

        epoch = self._epoch
        self._pending[frame_id] = PendingSend(frame_id, self._now(), epoch, future)
        try:
            await session.send(self._codec.outbound_frame(frame_id, payload))
        except TransportError as e:
            self.fail(frame_id, e)
            if self._on_fault is not None:
                self._on_fault(e, epoch)
        except Exception:
            # Nothing was written.
            self._pending.pop(frame_id, None)
            raise
        return frame_id, future

    def resolve(self, frame_id: int, payload: Any) -> bool:
        record = self._pending.pop(frame_id, None)
        if record is None:
            logger.debug(f"Acknowledgement for unknown id {frame_id} ignored")
            return False
        if not record.future.done():
            record.future.set_result(payload)
        return True

    def fail(self, frame_id: int, reason: BaseException) -> bool:
        record = self._pending.pop(frame_id, None)
        if record is None:
            logger.debug(f"Failure for unknown id {frame_id} ignored: {reason}")
            return False
        if not record.future.done():
            record.future.set_exception(reason)
        return True

    def fail_all(self, reason: SlackError) -> int:
        """Fail every outstanding record with ``reason``; returns the count"""
        ids = list(self._pending)
        for frame_id in ids:
            self.fail(frame_id, type(reason)(*reason.args))
        if ids:
            logger.info(f"Failed {len(ids)} pending send(s): {reason}")
        return len(ids)

    def sweep(self, now: Optional[float] = None) -> int:
        """Fail records older than the acknowledgement deadline"""
        now = self._now() if now is None else now
        expired = [
            record.id
            for record in self._pending.values()
            if now - record.submitted_at >= self.ack_timeout
        ]
        for frame_id in expired:
            self.fail(frame_id, AckTimeout(f"no acknowledgement for {frame_id} within {self.ack_timeout}s"))
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Periodic timeout sweep; runs until cancelled"""
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    async def drain(self, timeout: float) -> None:
        """Give outstanding records up to ``timeout`` seconds to settle"""
        futures = [record.future for record in self._pending.values()]
        if futures and timeout > 0:
            await asyncio.wait(futures, timeout=timeout)
