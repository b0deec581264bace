"""
Composable options for chat.* Web API calls.

Every ``msg_option_*`` function returns a callable that mutates a
:class:`MessageConfig`; the client applies them in order and then encodes
the collected fields either as a form (regular API calls) or as JSON
(posts to a response URL).
"""

import json
from typing import Any, Callable, Dict, Iterable, Optional

from .types import MessageMetadata

ENDPOINT_POST = "chat.postMessage"
ENDPOINT_UPDATE = "chat.update"
ENDPOINT_DELETE = "chat.delete"
ENDPOINT_UNFURL = "chat.unfurl"

RESPONSE_TYPE_IN_CHANNEL = "in_channel"
RESPONSE_TYPE_EPHEMERAL = "ephemeral"


class MessageConfig:
    """Request being assembled from message options"""

    def __init__(self, channel: str, endpoint: str = ENDPOINT_POST):
        self.endpoint = endpoint
        self.fields: Dict[str, Any] = {"channel": channel}
        self.response_url: Optional[str] = None

    def json_body(self) -> Dict[str, Any]:
        """Fields as a JSON document for response URLs"""
        return dict(self.fields)


MsgOption = Callable[[MessageConfig], None]


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def escape_text(text: str) -> str:
    """Escape the three characters the platform treats as markup"""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def apply_options(
    channel: str, options: Iterable[MsgOption], endpoint: str = ENDPOINT_POST
) -> MessageConfig:
    config = MessageConfig(channel, endpoint)
    for option in options:
        option(config)
    return config


def msg_option_text(text: str, escape: bool) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.fields["text"] = escape_text(text) if escape else text
    return apply


def msg_option_blocks(*blocks: Dict[str, Any]) -> MsgOption:
    """Attach layout blocks; they are passed through as given"""
    def apply(config: MessageConfig) -> None:
        config.fields["blocks"] = list(blocks)
    return apply


def msg_option_attachments(*attachments: Dict[str, Any]) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.fields["attachments"] = list(attachments)
    return apply


def msg_option_metadata(event_type: str, event_payload: Dict[str, Any]) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        metadata: MessageMetadata = {
            "event_type": event_type,
            "event_payload": event_payload,
        }
        config.fields["metadata"] = metadata
    return apply


def msg_option_link_names(link_names: bool) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.fields["link_names"] = link_names
    return apply


def msg_option_ts(ts: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.fields["ts"] = ts
    return apply


def msg_option_thread_ts(thread_ts: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.fields["thread_ts"] = thread_ts
    return apply


def msg_option_file_ids(file_ids: Iterable[str]) -> MsgOption:
    """Files to keep on an updated message; an empty list is omitted"""
    def apply(config: MessageConfig) -> None:
        ids = list(file_ids)
        if ids:
            config.fields["file_ids"] = ids
    return apply


def msg_option_unfurl(ts: str, unfurls: Dict[str, Dict[str, Any]]) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.endpoint = ENDPOINT_UNFURL
        config.fields["ts"] = ts
        config.fields["unfurls"] = unfurls
    return apply


def msg_option_unfurl_auth_url(ts: str, user_auth_url: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.endpoint = ENDPOINT_UNFURL
        config.fields["ts"] = ts
        config.fields["user_auth_url"] = user_auth_url
    return apply


def msg_option_unfurl_auth_required(ts: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.endpoint = ENDPOINT_UNFURL
        config.fields["ts"] = ts
        config.fields["user_auth_required"] = True
    return apply


def msg_option_unfurl_auth_message(ts: str, message: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.endpoint = ENDPOINT_UNFURL
        config.fields["ts"] = ts
        config.fields["user_auth_message"] = message
    return apply


def msg_option_response_url(url: str, response_type: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.response_url = url
        config.fields["response_type"] = response_type
    return apply


def msg_option_replace_original(url: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.response_url = url
        config.fields["replace_original"] = True
    return apply


def msg_option_delete_original(url: str) -> MsgOption:
    def apply(config: MessageConfig) -> None:
        config.response_url = url
        config.fields["delete_original"] = True
    return apply
