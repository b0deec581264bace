"""
Liveness probing of the active session
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .exceptions import HeartbeatTimeout, SlackError

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """
    Sends a probe every ``interval`` seconds and waits ``deadline`` seconds
    for the reply.

    The first missed reply (or failed probe) is reported through
    ``on_fault`` and the monitor exits; it never reports twice.
    """

    def __init__(
        self,
        probe: Callable[[int], Awaitable[None]],
        on_fault: Callable[[SlackError], None],
        interval: float = 30.0,
        deadline: float = 10.0,
        next_id: Optional[Callable[[], int]] = None,
    ):
        self._probe = probe
        self._on_fault = on_fault
        self.interval = interval
        self.deadline = deadline
        self._next_id = next_id
        self._counter = 0
        self._outstanding: Optional[int] = None
        self._reply = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.probes_sent = 0
        self.replies = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the monitor and wait until it has exited"""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def reply_received(self, reply_to: Optional[int] = None) -> None:
        """Record a liveness reply; replies to older probes are ignored"""
        if reply_to is not None and reply_to != self._outstanding:
            logger.debug(f"Ignoring late pong for probe {reply_to}")
            return
        self.replies += 1
        self._reply.set()

    def _allocate_id(self) -> int:
        if self._next_id is not None:
            return self._next_id()
        self._counter += 1
        return self._counter

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)

            probe_id = self._allocate_id()
            self._outstanding = probe_id
            self._reply.clear()
            try:
                await self._probe(probe_id)
            except SlackError as e:
                logger.warning(f"Liveness probe {probe_id} could not be sent: {e}")
                self._on_fault(e)
                return
            self.probes_sent += 1

            try:
                await asyncio.wait_for(self._reply.wait(), self.deadline)
            except asyncio.TimeoutError:
                logger.warning(f"No liveness reply to probe {probe_id} within {self.deadline}s")
                self._on_fault(HeartbeatTimeout(f"probe {probe_id} unanswered after {self.deadline}s"))
                return
