"""
Type definitions for Web API responses and the realtime handshake
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict


@dataclass(frozen=True)
class ConnectionInfo:
    """Result of a realtime handshake"""
    url: str
    ttl: Optional[float] = None  # seconds the URL/session is expected to live


class AuthTestResponse(TypedDict, total=False):
    """auth.test result"""
    ok: bool
    url: str
    team: str
    user: str
    team_id: str
    user_id: str
    bot_id: str


class Reaction(TypedDict, total=False):
    """One emoji reaction on an item"""
    name: str
    count: int
    users: List[str]


class Conversation(TypedDict, total=False):
    """Conversation object (subset)"""
    id: str
    is_im: bool
    user: str


class MessageMetadata(TypedDict):
    """Metadata attached to a posted message"""
    event_type: str
    event_payload: Dict[str, Any]


class OutgoingMessage(TypedDict, total=False):
    """Frame body the RTM client submits for a chat message"""
    type: str
    channel: str
    text: str
    thread_ts: str
