"""
Configuration objects for the Web API client and the realtime gateway
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_API_URL = "https://slack.com/api/"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable settings for :class:`slackgw.client.SlackClient`.

    Attributes:
        token: Bot or user token sent with every Web API call
        app_token: App-level token used by Socket Mode handshakes
        api_url: Base URL of the Web API, must end with a slash
        debug: Log every request (with the token redacted)
        timeout: HTTP timeout in seconds
        max_retries: Retries on transport errors before giving up
        handshake_endpoint: Override for the realtime handshake method
        debug_reconnects: Ask Socket Mode to rotate connections quickly
        headers: Extra HTTP headers
    """

    token: str = ""
    app_token: str = ""
    api_url: str = DEFAULT_API_URL
    debug: bool = False
    timeout: float = 30.0
    max_retries: int = 3
    handshake_endpoint: Optional[str] = None
    debug_reconnects: bool = False
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.api_url.endswith("/"):
            object.__setattr__(self, "api_url", self.api_url + "/")

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Build a config from ``SLACK_*`` environment variables"""
        values = {
            "token": os.getenv("SLACK_BOT_TOKEN", ""),
            "app_token": os.getenv("SLACK_APP_TOKEN", ""),
            "api_url": os.getenv("SLACK_API_URL", DEFAULT_API_URL),
            "debug": os.getenv("SLACK_DEBUG", "").lower() in _TRUTHY,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class GatewayConfig:
    """
    Timing policy for the realtime connection manager. All values in seconds.

    Attributes:
        ping_interval: Time between liveness probes
        ping_deadline: How long a probe may stay unanswered
        ack_timeout: How long an outbound frame may stay unacknowledged
        sweep_interval: Period of the acknowledgement timeout sweep
        backoff_base: First reconnect delay
        backoff_max: Upper bound for reconnect delays
        backoff_factor: Growth factor between consecutive failures
        backoff_jitter: Fraction of the delay that is randomized (0..1)
        min_dwell: Uptime after which a connection counts as stable
        stop_grace: Time given to pending sends during stop()
        open_timeout: Websocket opening handshake timeout
    """

    ping_interval: float = 30.0
    ping_deadline: float = 10.0
    ack_timeout: float = 10.0
    sweep_interval: float = 0.5
    backoff_base: float = 1.0
    backoff_max: float = 60.0
    backoff_factor: float = 2.0
    backoff_jitter: float = 0.2
    min_dwell: float = 30.0
    stop_grace: float = 5.0
    open_timeout: float = 10.0

    def __post_init__(self):
        for name in ("ping_interval", "ping_deadline", "ack_timeout", "sweep_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.backoff_base < 0 or self.backoff_max < self.backoff_base:
            raise ValueError("backoff_max must be >= backoff_base >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if not 0 <= self.backoff_jitter <= 1:
            raise ValueError("backoff_jitter must be between 0 and 1")
