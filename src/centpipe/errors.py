"""
Exception hierarchy for the API client.

Every failure raised by the pipe, the client and the decoders derives from
CentPipeError so callers can catch the whole family at once.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from centpipe.core.reply import ErrorInfo


class CentPipeError(Exception):
    """Base class for all client errors."""
    pass


class LockContentionError(CentPipeError):
    """Raised when a pipe's lock was broken by an earlier failed mutation.

    The pipe instance must be discarded.
    """
    pass


class MalformedPayloadError(CentPipeError, ValueError):
    """Raised when publish/broadcast data is not valid JSON text."""
    pass


class EndpointResolutionError(CentPipeError):
    """Raised when the API endpoint cannot be determined."""
    pass


class TransportError(CentPipeError):
    """Raised when the HTTP request itself fails (connect, timeout, ...)."""
    pass


class StatusCodeError(CentPipeError):
    """Raised when the server answers with a non-2xx status code."""

    def __init__(self, code: int, body: str):
        super().__init__(f"wrong status code: {code}, body {body}")
        self.code = code
        self.body = body


class MalformedResponseError(CentPipeError):
    """Raised when the reply stream cannot be decoded or does not line up."""

    def __init__(self, message: str = "malformed response returned from server"):
        super().__init__(message)


class EmptyPipeError(CentPipeError):
    """Raised when sending a pipe that holds no commands."""

    def __init__(self, message: str = "no commands in pipe"):
        super().__init__(message)


class NoReplyError(CentPipeError):
    """Raised when a single-command call gets no reply at all."""

    def __init__(self, message: str = "no reply from server"):
        super().__init__(message)


class RemoteError(CentPipeError):
    """Raised when the server reports an error for a command."""

    def __init__(self, error: "ErrorInfo"):
        super().__init__(str(error))
        self.error = error

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message


class DecodeError(CentPipeError):
    """Raised when a command result does not match its expected schema."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
