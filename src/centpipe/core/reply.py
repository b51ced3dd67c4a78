"""
Replies and typed command results.

The server answers every command with one Reply. A Reply's ``result`` is
decoded into the typed result of the command that produced it with one of
the ``decode_*`` functions. Decoding is all-or-nothing: a payload that is
empty, not JSON, or not shaped like the expected result raises DecodeError.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from centpipe.errors import DecodeError, MalformedResponseError, RemoteError


M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")

Payload = Union[str, bytes]


class WireModel(BaseModel):
    """Base for server messages: unknown fields ignored, no type coercion."""

    model_config = ConfigDict(strict=True)


class ErrorInfo(WireModel):
    """Error reported by the server for a single command."""

    code: int
    message: str

    def __str__(self) -> str:
        return f"{self.message}: {self.code}"

    def to_exception(self) -> RemoteError:
        """Wrap into an exception that can be raised."""
        return RemoteError(self)


class Reply(WireModel):
    """Server reply to one command."""

    error: Optional[ErrorInfo] = None
    result: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise RemoteError if the server reported an error."""
        if self.error is not None:
            raise self.error.to_exception()

    def result_json(self) -> str:
        """Raw JSON text of the result, ``"null"`` when absent."""
        return json.dumps(self.result)

    def decode(self, decoder: Callable[[str], R]) -> R:
        """Decode the result with one of the ``decode_*`` functions."""
        return decoder(self.result_json())


class ClientInfo(WireModel):
    """Information about one client connection."""

    user: str
    client: str
    conn_info: Optional[Any] = None
    chan_info: Optional[Any] = None


class Publication(WireModel):
    """Message published into a channel."""

    offset: int = 0
    data: Any
    info: Optional[ClientInfo] = None


class NodeInfo(WireModel):
    """
    Information and statistics about one server node.

    Attributes:
        uid: Unique id of the running node
        name: Node name, configured or generated
        version: Server version
        num_clients: Clients connected to the node
        num_users: Unique users connected to the node
        num_channels: Active channels on the node
        uptime: Node uptime in seconds
    """

    uid: str
    name: str
    version: str
    num_clients: int = 0
    num_users: int = 0
    num_channels: int = 0
    uptime: int = 0


class PublishResult(WireModel):
    offset: Optional[int] = None
    epoch: Optional[str] = None


class PublishResponse(WireModel):
    """Per-channel outcome inside a broadcast result."""

    error: Optional[ErrorInfo] = None
    result: Optional[PublishResult] = None


class BroadcastResult(WireModel):
    responses: List[PublishResponse]


class PresenceResult(WireModel):
    presence: Dict[str, ClientInfo]


class PresenceStatsResult(WireModel):
    num_users: int
    num_clients: int


class HistoryResult(WireModel):
    # The server leaves out an empty publication list
    publications: List[Publication] = Field(default_factory=list)
    offset: Optional[int] = None
    epoch: Optional[str] = None


class ChannelInfo(WireModel):
    num_clients: int = 0


class ChannelsResult(WireModel):
    channels: Dict[str, ChannelInfo]


class InfoResult(WireModel):
    nodes: List[NodeInfo]


def parse_replies(body: Payload) -> List[Reply]:
    """
    Parse a newline-delimited reply stream.

    Blank lines (including a trailing one) are skipped.

    Args:
        body: Response body, raw bytes or text. Bytes must be valid UTF-8.

    Returns:
        Replies in the order the server wrote them

    Raises:
        MalformedResponseError: If any line is not a valid reply
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    replies = []
    # Only "\n" delimits replies; JSON strings may hold other line separators
    for lineno, line in enumerate(body.split(b"\n"), start=1):
        if not line.strip():
            continue
        try:
            replies.append(Reply.model_validate_json(line))
        except ValidationError as e:
            raise MalformedResponseError(
                f"malformed response returned from server: line {lineno}: {e}"
            ) from e
    return replies


def _decode(model: Type[M], payload: Payload) -> M:
    if not payload or not payload.strip():
        raise DecodeError(f"cannot decode {model.__name__}: empty payload")
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"cannot decode {model.__name__}: {e}", cause=e) from e


def decode_publish(payload: Payload) -> PublishResult:
    return _decode(PublishResult, payload)


def decode_broadcast(payload: Payload) -> BroadcastResult:
    return _decode(BroadcastResult, payload)


def decode_presence(payload: Payload) -> PresenceResult:
    return _decode(PresenceResult, payload)


def decode_presence_stats(payload: Payload) -> PresenceStatsResult:
    return _decode(PresenceStatsResult, payload)


def decode_history(payload: Payload) -> HistoryResult:
    return _decode(HistoryResult, payload)


def decode_channels(payload: Payload) -> ChannelsResult:
    return _decode(ChannelsResult, payload)


def decode_info(payload: Payload) -> InfoResult:
    return _decode(InfoResult, payload)
