"""
Consumer-visible events
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .exceptions import StaleAcknowledgement

logger = logging.getLogger(__name__)

Acker = Callable[[str, int, Optional[Dict[str, Any]]], Awaitable[Optional[StaleAcknowledgement]]]


@dataclass
class InboundEvent:
    """
    One event delivered by the realtime connection.

    Attributes:
        type: Event type (``message``, ``events_api``, ``interactive``, ...)
        data: Decoded event body
        envelope_id: Delivery id when the platform expects an acknowledgement
        epoch: Connection epoch the event arrived on
        accepts_response_payload: Whether ack() may carry a response payload
        retry_attempt: Platform redelivery counter
        retry_reason: Why the platform redelivered the event
    """

    type: str
    data: Dict[str, Any]
    envelope_id: Optional[str] = None
    epoch: int = 0
    accepts_response_payload: bool = False
    retry_attempt: int = 0
    retry_reason: str = ""
    _acker: Optional[Acker] = field(default=None, repr=False, compare=False)
    _acked: bool = field(default=False, repr=False, compare=False)

    @property
    def requires_ack(self) -> bool:
        return self.envelope_id is not None and self._acker is not None

    async def ack(self, payload: Optional[Dict[str, Any]] = None) -> Optional[StaleAcknowledgement]:
        """
        Acknowledge the event on the connection it arrived on.

        Returns:
            None once the acknowledgement is written, otherwise the
            StaleAcknowledgement explaining why it was dropped (second call,
            or the connection was replaced in the meantime)
        """
        if not self.requires_ack:
            raise ValueError(f"{self.type} event does not take an acknowledgement")
        if self._acked:
            stale = StaleAcknowledgement(self.envelope_id, "already acknowledged")
            logger.warning(str(stale))
            return stale
        self._acked = True
        return await self._acker(self.envelope_id, self.epoch, payload)
