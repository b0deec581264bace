"""
HTTP client for the Web API

Every remote method is a form-encoded POST carrying the token in the body.
The realtime clients only need the handshake calls (rtm.connect and
apps.connections.open); the rest is a thin convenience layer.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from .chat import (
    ENDPOINT_DELETE,
    ENDPOINT_POST,
    ENDPOINT_UPDATE,
    MsgOption,
    apply_options,
    encode_value,
    msg_option_ts,
)
from .config import ClientConfig
from .exceptions import (
    AuthRejected,
    RateLimitedError,
    SlackAPIError,
    TransportError,
)
from .types import AuthTestResponse, ConnectionInfo, Conversation, Reaction

logger = logging.getLogger(__name__)

# Platform error codes that mean the credentials themselves are bad.
AUTH_ERRORS = frozenset({
    "invalid_auth",
    "not_authed",
    "account_inactive",
    "token_revoked",
    "token_expired",
    "invalid_token",
})

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds from a Retry-After header; HTTP-date values are not supported"""
    try:
        return int(value) if value else None
    except ValueError:
        return None


def redact_token(token: str) -> str:
    """Keep the token type prefix, drop the secret part"""
    prefix, sep, _ = token.partition("-")
    return f"{prefix}-REDACTED" if sep else "REDACTED"


class SlackClient:
    """
    HTTP client for the Web API.

    Uses a synchronous ``httpx.Client`` for regular calls and a lazily
    created ``httpx.AsyncClient`` for the handshakes issued by the realtime
    connection manager.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Credentials, base URL and debug settings
            transport: Custom httpx transport (tests pass a MockTransport)
            async_transport: Custom httpx transport for the async client
        """
        self.config = config or ClientConfig.from_env()
        self.endpoint = self.config.api_url

        headers = dict(self.config.headers)
        self._client = httpx.Client(
            base_url=self.endpoint,
            headers=headers,
            timeout=self.config.timeout,
            transport=transport,
        )
        self._headers = headers
        self._async_transport = async_transport
        self._async_client: Optional[httpx.AsyncClient] = None

    def _get_async_client(self) -> httpx.AsyncClient:
        """Get or create async client"""
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(
                base_url=self.endpoint,
                headers=self._headers,
                timeout=self.config.timeout,
                transport=self._async_transport,
            )
        return self._async_client

    def _form(self, values: Optional[Dict[str, Any]], token: Optional[str]) -> Dict[str, str]:
        form = {"token": token if token is not None else self.config.token}
        for key, value in (values or {}).items():
            if value is not None:
                form[key] = encode_value(value)
        return form

    def _log_request(self, http_method: str, method_name: str, form: Dict[str, str]) -> None:
        if not self.config.debug:
            return
        shown = dict(form)
        if shown.get("token"):
            shown["token"] = redact_token(shown["token"])
        logger.debug(f"{http_method} {method_name} {urlencode(shown)}")

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code == 429:
            raise RateLimitedError(_retry_after(response.headers.get("Retry-After")))

        if not response.is_success:
            raise SlackAPIError(
                f"http_{response.status_code}", status_code=response.status_code
            )

        body = response.json()
        if not body.get("ok", False):
            raise SlackAPIError(
                body.get("error", "unknown_error"),
                status_code=response.status_code,
                response=body,
            )
        return body

    def _request(
        self,
        method_name: str,
        values: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        http_method: str = "POST",
        retry_count: int = 0,
    ) -> Dict[str, Any]:
        """Make a Web API request with retry logic"""
        form = self._form(values, token)
        self._log_request(http_method, method_name, form)
        try:
            if http_method == "GET":
                response = self._client.get(
                    method_name,
                    params=form,
                    headers={"Content-Type": FORM_CONTENT_TYPE},
                )
            else:
                response = self._client.post(method_name, data=form)
        except httpx.HTTPError as e:
            if retry_count < self.config.max_retries:
                time.sleep(2 ** retry_count)
                return self._request(method_name, values, token, http_method, retry_count + 1)
            raise TransportError(f"{method_name} failed: {e}") from e

        return self._parse(response)

    async def _arequest(
        self,
        method_name: str,
        values: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        retry_count: int = 0,
    ) -> Dict[str, Any]:
        """Async twin of :meth:`_request` (POST only)"""
        form = self._form(values, token)
        self._log_request("POST", method_name, form)
        try:
            response = await self._get_async_client().post(method_name, data=form)
        except httpx.HTTPError as e:
            if retry_count < self.config.max_retries:
                await asyncio.sleep(2 ** retry_count)
                return await self._arequest(method_name, values, token, retry_count + 1)
            raise TransportError(f"{method_name} failed: {e}") from e

        return self._parse(response)

    def api_call(self, method_name: str, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call any Web API method with form values"""
        return self._request(method_name, values)

    def auth_test(self) -> AuthTestResponse:
        return self._request("auth.test")

    def post_message(self, channel: str, *options: MsgOption) -> Tuple[str, str]:
        """Post a message; returns (channel, ts)"""
        channel_id, ts, _ = self.send_message(channel, *options)
        return channel_id, ts

    def send_message(self, channel: str, *options: MsgOption) -> Tuple[str, str, str]:
        """
        Send a message built from options.

        The target method is chosen by the options (chat.postMessage by
        default, chat.unfurl for unfurl options). When a response URL option
        is present the message is posted there as JSON instead.

        Returns:
            (channel, ts, text) as echoed by the platform
        """
        config = apply_options(channel, options, ENDPOINT_POST)
        if config.response_url:
            return self._post_response_url(config.response_url, config.json_body())

        body = self._request(config.endpoint, config.fields)
        return body.get("channel", ""), body.get("ts", ""), body.get("text", "")

    def _post_response_url(self, url: str, message: Dict[str, Any]) -> Tuple[str, str, str]:
        if self.config.debug:
            logger.debug(f"POST {url} (response url)")
        try:
            response = self._client.post(url, json=message)
        except httpx.HTTPError as e:
            raise TransportError(f"response url post failed: {e}") from e
        if not response.is_success:
            raise SlackAPIError(f"http_{response.status_code}", status_code=response.status_code)
        return "", "", ""

    def update_message(self, channel: str, ts: str, *options: MsgOption) -> Tuple[str, str, str]:
        """Update a message; returns (channel, ts, text)"""
        config = apply_options(channel, (msg_option_ts(ts),) + options, ENDPOINT_UPDATE)
        body = self._request(config.endpoint, config.fields)
        return body.get("channel", ""), body.get("ts", ""), body.get("text", "")

    def delete_message(self, channel: str, ts: str) -> Tuple[str, str]:
        config = apply_options(channel, (msg_option_ts(ts),), ENDPOINT_DELETE)
        body = self._request(config.endpoint, config.fields)
        return body.get("channel", ""), body.get("ts", "")

    def get_permalink(self, channel: str, message_ts: str) -> str:
        body = self._request(
            "chat.getPermalink",
            {"channel": channel, "message_ts": message_ts},
            http_method="GET",
        )
        return body.get("permalink", "")

    def add_reaction(self, name: str, channel: str, timestamp: str) -> None:
        self._request("reactions.add", {"name": name, "channel": channel, "timestamp": timestamp})

    def remove_reaction(self, name: str, channel: str, timestamp: str) -> None:
        self._request("reactions.remove", {"name": name, "channel": channel, "timestamp": timestamp})

    def get_reactions(self, channel: str, timestamp: str, full: bool = False) -> List[Reaction]:
        body = self._request(
            "reactions.get",
            {"channel": channel, "timestamp": timestamp, "full": full},
        )
        message = body.get("message") or {}
        return message.get("reactions", [])

    def open_conversation(
        self,
        users: Optional[List[str]] = None,
        channel_id: Optional[str] = None,
    ) -> Conversation:
        values: Dict[str, Any] = {"channel": channel_id}
        if users:
            values["users"] = ",".join(users)
        body = self._request("conversations.open", values)
        return body.get("channel", {})

    def function_complete_success(
        self, function_execution_id: str, outputs: Dict[str, Any]
    ) -> None:
        self._request(
            "functions.completeSuccess",
            {"function_execution_id": function_execution_id, "outputs": outputs},
        )

    # Handshakes

    def _handshake_values(self) -> Dict[str, Any]:
        if self.config.debug_reconnects:
            return {"debug_reconnects": True}
        return {}

    def rtm_connect(self) -> ConnectionInfo:
        """Fetch a websocket URL for the legacy RTM stream"""
        body = self._request(self.config.handshake_endpoint or "rtm.connect")
        return ConnectionInfo(url=body["url"])

    def apps_connections_open(self) -> ConnectionInfo:
        """Fetch a websocket URL for Socket Mode (needs the app-level token)"""
        body = self._request(
            self.config.handshake_endpoint or "apps.connections.open",
            self._handshake_values(),
            token=self.config.app_token,
        )
        return ConnectionInfo(url=body["url"])

    async def _handshake_async(
        self, method_name: str, values: Dict[str, Any], token: Optional[str]
    ) -> ConnectionInfo:
        try:
            body = await self._arequest(method_name, values, token=token)
        except SlackAPIError as e:
            if e.error in AUTH_ERRORS or e.status_code in (401, 403):
                raise AuthRejected(f"{method_name} rejected credentials: {e.error}", code=e.error) from e
            raise TransportError(f"{method_name} failed: {e.error}") from e

        if "url" not in body:
            raise TransportError(f"{method_name} returned no url")
        return ConnectionInfo(url=body["url"], ttl=body.get("ttl"))

    async def rtm_connect_async(self) -> ConnectionInfo:
        return await self._handshake_async(
            self.config.handshake_endpoint or "rtm.connect", {}, None
        )

    async def apps_connections_open_async(self) -> ConnectionInfo:
        return await self._handshake_async(
            self.config.handshake_endpoint or "apps.connections.open",
            self._handshake_values(),
            self.config.app_token,
        )

    def close(self):
        """Close the sync client"""
        self._client.close()

    async def aclose(self):
        """Close both clients"""
        self._client.close()
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
