"""
Legacy RTM streaming client
"""

import asyncio
import logging
from typing import Optional

from .frames import RTMCodec
from .realtime import RealtimeClient
from .supervisor import Handshake
from .types import OutgoingMessage

logger = logging.getLogger(__name__)


class RTMClient(RealtimeClient):
    """
    Streams workspace events over rtm.connect.

    Messages sent with :meth:`send_message` are correlated with the
    server's ``reply_to`` acknowledgement.
    """

    codec_class = RTMCodec

    def _handshake(self) -> Handshake:
        return self.api.rtm_connect_async

    @staticmethod
    def new_outgoing_message(
        text: str, channel: str, thread_ts: Optional[str] = None
    ) -> OutgoingMessage:
        message: OutgoingMessage = {"type": "message", "channel": channel, "text": text}
        if thread_ts:
            message["thread_ts"] = thread_ts
        return message

    async def send_message(
        self, text: str, channel: str, thread_ts: Optional[str] = None
    ) -> asyncio.Future:
        """
        Send a chat message over the stream.

        Returns:
            Future resolving to the acknowledgement (``ts``, ``text``)
        """
        frame_id, future = await self.supervisor.submit(
            self.new_outgoing_message(text, channel, thread_ts)
        )
        logger.debug(f"Submitted message {frame_id} to {channel}")
        return future
