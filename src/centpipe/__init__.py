"""
centpipe

Async client for the real-time messaging server's HTTP API.
Commands are collected into pipes and sent to the server in a single HTTP
request; replies come back in command order.
"""

__version__ = "0.1.0"

from centpipe.client import Client, default_http_client
from centpipe.config import ClientConfig
from centpipe.core.command import Command, Method
from centpipe.core.pipe import Pipe
from centpipe.core.reply import ErrorInfo, Reply
from centpipe.errors import (
    CentPipeError,
    DecodeError,
    EmptyPipeError,
    EndpointResolutionError,
    LockContentionError,
    MalformedPayloadError,
    MalformedResponseError,
    NoReplyError,
    RemoteError,
    StatusCodeError,
    TransportError,
)

__all__ = [
    "Client",
    "ClientConfig",
    "default_http_client",
    "Command",
    "Method",
    "Pipe",
    "ErrorInfo",
    "Reply",
    "CentPipeError",
    "DecodeError",
    "EmptyPipeError",
    "EndpointResolutionError",
    "LockContentionError",
    "MalformedPayloadError",
    "MalformedResponseError",
    "NoReplyError",
    "RemoteError",
    "StatusCodeError",
    "TransportError",
]
