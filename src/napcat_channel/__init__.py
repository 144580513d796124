"""
napcat-channel: OneBot v11 private-message channel for chat-bot hosts.

Websocket action/event client with HTTP fallback, message normalization,
and DM access policy.
"""

from napcat_channel.channel import NapcatChannel
from napcat_channel.host import HostRuntime, PairingRequest, Route
from napcat_channel.errors import (
    NapcatError,
    TransportError,
    ConnectionStoppedError,
    ProtocolTimeoutError,
    RemoteActionFailure,
    HttpTransportError,
    DecodeError,
    ConfigurationError,
    InvalidTargetError,
)
from napcat_channel.transport.connection import OneBotConnection
from napcat_channel.models.action import ActionResponse
from napcat_channel.models.message import NormalizedMessage, ReplyPayload, SendResult

__version__ = "0.1.0"
__all__ = [
    "NapcatChannel",
    "HostRuntime",
    "PairingRequest",
    "Route",
    "OneBotConnection",
    "ActionResponse",
    "NormalizedMessage",
    "ReplyPayload",
    "SendResult",
    "NapcatError",
    "TransportError",
    "ConnectionStoppedError",
    "ProtocolTimeoutError",
    "RemoteActionFailure",
    "HttpTransportError",
    "DecodeError",
    "ConfigurationError",
    "InvalidTargetError",
]
