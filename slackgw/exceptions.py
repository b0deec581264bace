"""
Exception classes for the slackgw client
"""

from typing import Optional


class SlackError(Exception):
    """Base exception for slackgw errors"""
    pass


class SlackAPIError(SlackError):
    """Web API call answered with ``ok: false``"""

    def __init__(
        self,
        error: str,
        status_code: Optional[int] = None,
        response: Optional[dict] = None,
    ):
        super().__init__(error)
        self.error = error
        self.status_code = status_code
        self.response = response


class RateLimitedError(SlackAPIError):
    """API rate limit exceeded"""

    def __init__(self, retry_after: Optional[int] = None):
        super().__init__("ratelimited", status_code=429)
        self.retry_after = retry_after


class TransportError(SlackError):
    """Connect, read or write failure on the realtime connection"""
    pass


class SessionClosed(TransportError):
    """Operation attempted on a session that was already closed"""
    pass


class AuthRejected(SlackError):
    """Credentials were rejected; the gateway will not reconnect"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class HeartbeatTimeout(SlackError):
    """No liveness reply arrived within the deadline"""
    pass


class ServerDisconnectNotice(SlackError):
    """The platform asked the client to move to a new connection"""

    def __init__(self, reason: str = ""):
        super().__init__(f"server requested disconnect: {reason or 'unspecified'}")
        self.reason = reason


class AckTimeout(SlackError):
    """Outbound frame was not acknowledged in time"""
    pass


class SessionLost(SlackError):
    """The session an outbound frame was bound to went away"""
    pass


class SendRejected(SlackError):
    """The platform answered an outbound frame with ``ok: false``"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class StaleAcknowledgement(SlackError):
    """Acknowledgement for an envelope that belongs to a rotated session"""

    def __init__(self, envelope_id: str, reason: str = "session rotated"):
        super().__init__(f"acknowledgement for {envelope_id} dropped: {reason}")
        self.envelope_id = envelope_id
        self.reason = reason


class MalformedFrame(SlackError):
    """Inbound frame could not be decoded"""

    def __init__(self, message: str, raw: object = None):
        super().__init__(message)
        self.raw = raw


class ManagerClosed(SlackError):
    """The connection manager was shut down"""
    pass


# Faults that end the gateway for good instead of triggering a reconnect.
NON_RECOVERABLE = (AuthRejected,)
