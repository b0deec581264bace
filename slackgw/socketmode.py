"""
Socket Mode client
"""

from .frames import SocketModeCodec
from .realtime import RealtimeClient
from .supervisor import Handshake


class SocketModeClient(RealtimeClient):
    """
    Receives Events API, interactivity and slash command envelopes over
    apps.connections.open. Every event with an ``envelope_id`` must be
    acknowledged with ``await event.ack()`` (optionally with a response
    payload when ``event.accepts_response_payload`` is set).
    """

    codec_class = SocketModeCodec

    def _handshake(self) -> Handshake:
        return self.api.apps_connections_open_async
