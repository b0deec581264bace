"""
Tests for the Web API client and message options
"""

import json
import logging
from urllib.parse import parse_qs

import httpx
import pytest

from slackgw.chat import (
    RESPONSE_TYPE_IN_CHANNEL,
    msg_option_attachments,
    msg_option_blocks,
    msg_option_delete_original,
    msg_option_file_ids,
    msg_option_link_names,
    msg_option_metadata,
    msg_option_replace_original,
    msg_option_response_url,
    msg_option_text,
    msg_option_unfurl,
    msg_option_unfurl_auth_message,
    msg_option_unfurl_auth_required,
    msg_option_unfurl_auth_url,
)
from slackgw.client import SlackClient, redact_token
from slackgw.config import ClientConfig
from slackgw.exceptions import AuthRejected, RateLimitedError, SlackAPIError, TransportError
from slackgw.types import ConnectionInfo

API_URL = "http://slack.test/api/"


class Recorder:
    """MockTransport handler answering every request with one response"""

    def __init__(self, status=200, body=None, headers=None):
        self.status = status
        self.body = body if body is not None else {"ok": True, "channel": "CXXX", "ts": "123.456"}
        self.headers = headers or {}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body, headers=self.headers)

    @property
    def last(self):
        return self.requests[-1]

    def form(self):
        return {key: values[0] for key, values in parse_qs(self.last.content.decode()).items()}


def make_client(recorder, **config):
    config.setdefault("token", "xtest-token")
    return SlackClient(
        ClientConfig(api_url=API_URL, **config),
        transport=httpx.MockTransport(recorder),
        async_transport=httpx.MockTransport(recorder),
    )


@pytest.mark.parametrize("options, expected", [
    (
        [msg_option_text("test", False)],
        {"channel": "CXXX", "text": "test", "token": "xtest-token"},
    ),
    (
        [msg_option_text("a < b & c", True)],
        {"channel": "CXXX", "text": "a &lt; b &amp; c", "token": "xtest-token"},
    ),
    (
        [msg_option_blocks({"type": "divider"})],
        {"channel": "CXXX", "blocks": '[{"type":"divider"}]', "token": "xtest-token"},
    ),
    (
        [msg_option_attachments({"pretext": "pre", "text": "text"})],
        {"channel": "CXXX", "attachments": '[{"pretext":"pre","text":"text"}]', "token": "xtest-token"},
    ),
    (
        [msg_option_metadata("testing-metadata", {"number": 1})],
        {
            "channel": "CXXX",
            "metadata": '{"event_type":"testing-metadata","event_payload":{"number":1}}',
            "token": "xtest-token",
        },
    ),
    (
        [msg_option_link_names(True)],
        {"channel": "CXXX", "link_names": "true", "token": "xtest-token"},
    ),
])
def test_post_message_options(options, expected):
    recorder = Recorder()
    client = make_client(recorder)

    channel, ts = client.post_message("CXXX", *options)

    assert (channel, ts) == ("CXXX", "123.456")
    assert recorder.last.method == "POST"
    assert recorder.last.url.path == "/api/chat.postMessage"
    assert recorder.last.headers["content-type"] == "application/x-www-form-urlencoded"
    assert recorder.form() == expected


@pytest.mark.parametrize("option, field, value", [
    (msg_option_unfurl("123", {"https://example.com": {"text": "hi"}}),
     "unfurls", '{"https://example.com":{"text":"hi"}}'),
    (msg_option_unfurl_auth_url("123", "https://auth.example.com"),
     "user_auth_url", "https://auth.example.com"),
    (msg_option_unfurl_auth_required("123"), "user_auth_required", "true"),
    (msg_option_unfurl_auth_message("123", "please log in"), "user_auth_message", "please log in"),
])
def test_unfurl_options_switch_endpoint(option, field, value):
    recorder = Recorder()
    client = make_client(recorder)

    client.post_message("CXXX", option)

    form = recorder.form()
    assert recorder.last.url.path == "/api/chat.unfurl"
    assert form["ts"] == "123"
    assert form[field] == value


def test_api_error_is_raised():
    recorder = Recorder(body={"ok": False, "error": "channel_not_found"})
    client = make_client(recorder)

    with pytest.raises(SlackAPIError) as exc_info:
        client.post_message("CXXX", msg_option_text("hi", False))

    assert exc_info.value.error == "channel_not_found"
    assert exc_info.value.response == {"ok": False, "error": "channel_not_found"}


def test_rate_limit_is_raised():
    recorder = Recorder(status=429, body={"ok": False, "error": "ratelimited"}, headers={"Retry-After": "3"})
    client = make_client(recorder)

    with pytest.raises(RateLimitedError) as exc_info:
        client.auth_test()

    assert exc_info.value.retry_after == 3
    assert exc_info.value.status_code == 429


def test_rate_limit_with_http_date_retry_after():
    recorder = Recorder(
        status=429,
        body={"ok": False, "error": "ratelimited"},
        headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"},
    )
    client = make_client(recorder)

    with pytest.raises(RateLimitedError) as exc_info:
        client.auth_test()

    assert exc_info.value.retry_after is None


def test_get_permalink_uses_query_string():
    recorder = Recorder(body={"ok": True, "permalink": "https://x.slack.com/archives/C1/p1"})
    client = make_client(recorder)

    permalink = client.get_permalink("C1", "1.0")

    assert permalink == "https://x.slack.com/archives/C1/p1"
    assert recorder.last.method == "GET"
    assert recorder.last.url.path == "/api/chat.getPermalink"
    assert recorder.last.url.params["channel"] == "C1"
    assert recorder.last.url.params["message_ts"] == "1.0"
    assert recorder.last.url.params["token"] == "xtest-token"
    assert recorder.last.headers["content-type"] == "application/x-www-form-urlencoded"


@pytest.mark.parametrize("option, expected", [
    (msg_option_response_url("https://hooks.test/resp", RESPONSE_TYPE_IN_CHANNEL),
     {"channel": "CXXX", "response_type": "in_channel", "blocks": [{"type": "divider"}]}),
    (msg_option_replace_original("https://hooks.test/resp"),
     {"channel": "CXXX", "replace_original": True, "blocks": [{"type": "divider"}]}),
    (msg_option_delete_original("https://hooks.test/resp"),
     {"channel": "CXXX", "delete_original": True, "blocks": [{"type": "divider"}]}),
])
def test_response_url_posts_json(option, expected):
    recorder = Recorder()
    client = make_client(recorder)

    result = client.send_message("CXXX", option, msg_option_blocks({"type": "divider"}))

    assert result == ("", "", "")
    assert str(recorder.last.url) == "https://hooks.test/resp"
    assert recorder.last.headers["content-type"] == "application/json"
    assert json.loads(recorder.last.content) == expected


def test_update_message_with_files():
    recorder = Recorder(body={"ok": True, "channel": "CXXX", "ts": "1.0", "text": "edited"})
    client = make_client(recorder)

    result = client.update_message(
        "CXXX", "1.0", msg_option_text("edited", False), msg_option_file_ids(["F1", "F2"])
    )

    assert result == ("CXXX", "1.0", "edited")
    assert recorder.last.url.path == "/api/chat.update"
    assert recorder.form() == {
        "channel": "CXXX",
        "ts": "1.0",
        "text": "edited",
        "file_ids": '["F1","F2"]',
        "token": "xtest-token",
    }


def test_update_message_omits_empty_files():
    recorder = Recorder()
    client = make_client(recorder)

    client.update_message("CXXX", "1.0", msg_option_file_ids([]))

    assert "file_ids" not in recorder.form()


def test_reactions_and_conversations():
    recorder = Recorder(body={
        "ok": True,
        "channel": {"id": "D1"},
        "message": {"reactions": [{"name": "tada", "count": 2, "users": ["U1", "U2"]}]},
    })
    client = make_client(recorder)

    client.add_reaction("tada", "C1", "1.0")
    assert recorder.last.url.path == "/api/reactions.add"
    assert recorder.form()["name"] == "tada"

    reactions = client.get_reactions("C1", "1.0", full=True)
    assert reactions[0]["name"] == "tada"
    assert recorder.form()["full"] == "true"

    conversation = client.open_conversation(users=["U1", "U2"])
    assert conversation == {"id": "D1"}
    assert recorder.form()["users"] == "U1,U2"
    assert "channel" not in recorder.form()


@pytest.mark.parametrize("token, shown", [
    ("xtest-1234-secret", "token=xtest-REDACTED"),
    ("xoxe.xtest-1234", "token=xoxe.xtest-REDACTED"),
])
def test_debug_log_redacts_token(caplog, token, shown):
    caplog.set_level(logging.DEBUG, logger="slackgw.client")
    recorder = Recorder()
    client = make_client(recorder, token=token, debug=True)

    client.post_message("CXXX", msg_option_text("xtest-looks-like-a-token", False))

    assert shown in caplog.text
    assert token not in caplog.text
    assert "text=xtest-looks-like-a-token" in caplog.text
    assert recorder.form()["token"] == token


def test_no_request_logging_without_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="slackgw.client")
    client = make_client(Recorder())

    client.auth_test()

    assert [record for record in caplog.records if record.name == "slackgw.client"] == []


def test_redact_token_without_prefix():
    assert redact_token("secret") == "REDACTED"


@pytest.mark.asyncio
async def test_socket_mode_handshake_uses_app_token():
    recorder = Recorder(body={"ok": True, "url": "wss://gateway.test/link"})
    client = make_client(recorder, app_token="xapp-1-secret", debug_reconnects=True)

    info = await client.apps_connections_open_async()
    await client.aclose()

    assert info == ConnectionInfo(url="wss://gateway.test/link")
    assert recorder.last.url.path == "/api/apps.connections.open"
    assert recorder.form() == {"token": "xapp-1-secret", "debug_reconnects": "true"}


@pytest.mark.asyncio
async def test_rtm_handshake_uses_bot_token():
    recorder = Recorder(body={"ok": True, "url": "wss://gateway.test/rtm"})
    client = make_client(recorder)

    info = await client.rtm_connect_async()
    await client.aclose()

    assert info.url == "wss://gateway.test/rtm"
    assert recorder.last.url.path == "/api/rtm.connect"
    assert recorder.form() == {"token": "xtest-token"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status, body", [
    (200, {"ok": False, "error": "invalid_auth"}),
    (200, {"ok": False, "error": "token_revoked"}),
    (401, {"ok": False, "error": "not_authed"}),
])
async def test_handshake_rejected_credentials(status, body):
    client = make_client(Recorder(status=status, body=body))

    with pytest.raises(AuthRejected):
        await client.rtm_connect_async()
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status, body", [
    (200, {"ok": False, "error": "internal_error"}),
    (500, {"ok": False}),
    (200, {"ok": True}),
])
async def test_handshake_other_failures_are_transient(status, body):
    client = make_client(Recorder(status=status, body=body))

    with pytest.raises(TransportError):
        await client.apps_connections_open_async()
    await client.aclose()
