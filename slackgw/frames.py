"""
Wire frames of the realtime connection.

Each inbound frame decodes to exactly one of the frame classes below. The two
codecs know the vocabulary of the legacy RTM stream and of Socket Mode.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from .exceptions import MalformedFrame


@dataclass(frozen=True)
class Hello:
    """Session confirmed by the server"""
    connection_ttl: Optional[float] = None


@dataclass(frozen=True)
class Pong:
    """Liveness reply"""
    reply_to: Optional[int] = None


@dataclass(frozen=True)
class Disconnect:
    """Server asks the client to reconnect elsewhere"""
    reason: str = ""


@dataclass(frozen=True)
class Ack:
    """Server reply to a frame the client submitted"""
    reply_to: int
    ok: bool = True
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AppEvent:
    """Application event for the consumer"""
    type: str
    data: Dict[str, Any]
    envelope_id: Optional[str] = None
    accepts_response_payload: bool = False
    retry_attempt: int = 0
    retry_reason: str = ""


@dataclass(frozen=True)
class UnknownFrame:
    """Frame of a kind this version does not know"""
    type: str
    data: Dict[str, Any]


InboundFrame = Union[Hello, Pong, Disconnect, Ack, AppEvent, UnknownFrame]


def _number(data: Dict[str, Any], key: str, kind: Callable[[Any], Any], default: Any = None) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise MalformedFrame(f"bad {key}: {value!r}", data)
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise MalformedFrame(f"bad {key}: {value!r}", data) from e


def _object(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedFrame(f"{key} is not an object", data)
    return value


class FrameCodec:
    """Decodes inbound frames and builds outbound ones for one dialect"""

    name = "base"
    # True when liveness is checked with websocket pings instead of frames
    transport_ping = False

    def decode(self, raw: Union[str, bytes]) -> InboundFrame:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedFrame(f"invalid JSON: {e}", raw) from e
        if not isinstance(data, dict):
            raise MalformedFrame("frame is not a JSON object", raw)
        return self.classify(data)

    def classify(self, data: Dict[str, Any]) -> InboundFrame:
        raise NotImplementedError

    def probe_frame(self, probe_id: int) -> Optional[Dict[str, Any]]:
        return None

    def outbound_frame(self, frame_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        frame = dict(payload)
        frame["id"] = frame_id
        return frame

    def ack_frame(self, envelope_id: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        raise NotImplementedError(f"{self.name} events cannot be acknowledged")


class RTMCodec(FrameCodec):
    """Legacy RTM stream: client pings, ``reply_to`` acknowledgements"""

    name = "rtm"

    _DISCONNECTS = ("goodbye", "team_migration_started")

    def classify(self, data: Dict[str, Any]) -> InboundFrame:
        kind = data.get("type")

        if kind == "pong":
            return Pong(reply_to=_number(data, "reply_to", int))

        if "reply_to" in data and kind is None:
            error = data.get("error")
            if isinstance(error, str):
                error = {"msg": error}
            elif error is not None and not isinstance(error, dict):
                raise MalformedFrame("error is not an object", data)
            reply_to = _number(data, "reply_to", int)
            if reply_to is None:
                raise MalformedFrame("reply_to is null", data)
            return Ack(
                reply_to=reply_to,
                ok=bool(data.get("ok", True)),
                payload=data,
                error=error,
            )

        if not isinstance(kind, str) or not kind:
            raise MalformedFrame("frame has no type", data)
        if kind == "hello":
            return Hello()
        if kind in self._DISCONNECTS:
            return Disconnect(reason=kind)
        return AppEvent(type=kind, data=data)

    def probe_frame(self, probe_id: int) -> Optional[Dict[str, Any]]:
        return {"id": probe_id, "type": "ping"}


class SocketModeCodec(FrameCodec):
    """Socket Mode: websocket pings, ``envelope_id`` acknowledgements"""

    name = "socket_mode"
    transport_ping = True

    def classify(self, data: Dict[str, Any]) -> InboundFrame:
        kind = data.get("type")
        if not isinstance(kind, str) or not kind:
            raise MalformedFrame("frame has no type", data)

        if kind == "hello":
            debug_info = _object(data, "debug_info")
            return Hello(connection_ttl=_number(debug_info, "approximate_connection_time", float))

        if kind == "disconnect":
            return Disconnect(reason=data.get("reason", ""))

        envelope_id = data.get("envelope_id")
        if envelope_id is not None:
            return AppEvent(
                type=kind,
                data=_object(data, "payload"),
                envelope_id=str(envelope_id),
                accepts_response_payload=bool(data.get("accepts_response_payload", False)),
                retry_attempt=_number(data, "retry_attempt", int, 0),
                retry_reason=str(data.get("retry_reason") or ""),
            )

        return UnknownFrame(type=kind, data=data)

    def ack_frame(self, envelope_id: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        frame: Dict[str, Any] = {"envelope_id": envelope_id}
        if payload is not None:
            frame["payload"] = payload
        return frame
