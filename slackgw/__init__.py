"""
slackgw

Web API client and realtime gateway (RTM and Socket Mode) for Slack.
"""

from .client import SlackClient
from .config import ClientConfig, GatewayConfig
from .events import InboundEvent
from .exceptions import (
    AckTimeout,
    AuthRejected,
    HeartbeatTimeout,
    MalformedFrame,
    ManagerClosed,
    SendRejected,
    ServerDisconnectNotice,
    SessionClosed,
    SessionLost,
    SlackAPIError,
    SlackError,
    StaleAcknowledgement,
    TransportError,
)
from .rtm import RTMClient
from .socketmode import SocketModeClient
from .supervisor import ConnectionState, ConnectionSupervisor
from .types import ConnectionInfo

__version__ = "0.1.0"
__all__ = [
    "SlackClient",
    "ClientConfig",
    "GatewayConfig",
    "RTMClient",
    "SocketModeClient",
    "ConnectionSupervisor",
    "ConnectionState",
    "ConnectionInfo",
    "InboundEvent",
    "SlackError",
    "SlackAPIError",
    "TransportError",
    "SessionClosed",
    "AuthRejected",
    "HeartbeatTimeout",
    "ServerDisconnectNotice",
    "AckTimeout",
    "SessionLost",
    "SendRejected",
    "StaleAcknowledgement",
    "MalformedFrame",
    "ManagerClosed",
]
