"""
Per-command options and their mutators.

Every configurable command has an options dataclass whose fields all start
unset. Options are changed through small mutator functions produced by the
``with_*`` factories; applying the same kind of mutator twice simply
overwrites the earlier value.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar


NO_LIMIT = -1

T = TypeVar("T")


def drop_unset(values: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``values`` without the keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


@dataclass
class StreamPosition:
    """Position inside a channel history stream."""

    offset: Optional[int] = None
    epoch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_unset({"offset": self.offset, "epoch": self.epoch})


@dataclass
class Disconnect:
    """Disconnect code and reason sent to the client being disconnected."""

    code: Optional[int] = None
    reason: Optional[str] = None
    reconnect: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_unset({
            "code": self.code,
            "reason": self.reason,
            "reconnect": self.reconnect,
        })


@dataclass
class PublishOptions:
    """Options shared by publish and broadcast."""

    skip_history: Optional[bool] = None


@dataclass
class SubscribeOptions:
    """
    Options for a server-side subscription.

    Attributes:
        info: Custom channel information attached to the subscription
        presence: Participate in channel presence
        join_leave: Send join/leave messages for this client
        position: Track the client's position inside the history stream
        recover: Recover missed publications on resubscribe
        data: Data sent to the client with the subscribe push
        recover_since: Stream position to recover from
        client_id: Only subscribe this client connection of the user
    """

    info: Optional[Any] = None
    presence: Optional[bool] = None
    join_leave: Optional[bool] = None
    position: Optional[bool] = None
    recover: Optional[bool] = None
    data: Optional[Any] = None
    recover_since: Optional[StreamPosition] = None
    client_id: Optional[str] = None


@dataclass
class UnsubscribeOptions:
    """Options for unsubscribe."""

    client_id: Optional[str] = None


@dataclass
class DisconnectOptions:
    """Options for disconnect."""

    disconnect: Optional[Disconnect] = None
    client_whitelist: Optional[List[str]] = None
    client_id: Optional[str] = None


@dataclass
class HistoryOptions:
    """Options for history.

    A limit of NO_LIMIT asks for the whole stream.
    """

    since: Optional[StreamPosition] = None
    limit: Optional[int] = None
    reverse: Optional[bool] = None


@dataclass
class ChannelsOptions:
    """Options for channels."""

    pattern: Optional[str] = None


PublishOption = Callable[[PublishOptions], None]
SubscribeOption = Callable[[SubscribeOptions], None]
UnsubscribeOption = Callable[[UnsubscribeOptions], None]
DisconnectOption = Callable[[DisconnectOptions], None]
HistoryOption = Callable[[HistoryOptions], None]
ChannelsOption = Callable[[ChannelsOptions], None]


def apply_options(options: T, mutators: Iterable[Callable[[T], None]]) -> T:
    """
    Apply mutators to an options value in order.

    Args:
        options: Freshly constructed options value
        mutators: Mutators produced by the ``with_*`` factories

    Returns:
        The same options value, updated in place
    """
    for mutator in mutators:
        mutator(options)
    return options


def _setter(field_name: str, value: Any) -> Callable[[Any], None]:
    def mutate(options: Any) -> None:
        setattr(options, field_name, value)
    return mutate


# Publish / broadcast

def with_skip_history(skip: bool) -> PublishOption:
    """Do not save the publication into channel history."""
    return _setter("skip_history", skip)


# Subscribe

def with_subscribe_info(chan_info: Any) -> SubscribeOption:
    return _setter("info", chan_info)


def with_presence(enabled: bool) -> SubscribeOption:
    return _setter("presence", enabled)


def with_join_leave(enabled: bool) -> SubscribeOption:
    return _setter("join_leave", enabled)


def with_position(enabled: bool) -> SubscribeOption:
    return _setter("position", enabled)


def with_recover(enabled: bool) -> SubscribeOption:
    return _setter("recover", enabled)


def with_subscribe_data(data: Any) -> SubscribeOption:
    return _setter("data", data)


def with_recover_since(since: StreamPosition) -> SubscribeOption:
    return _setter("recover_since", since)


def with_subscribe_client(client_id: str) -> SubscribeOption:
    return _setter("client_id", client_id)


# Unsubscribe

def with_unsubscribe_client(client_id: str) -> UnsubscribeOption:
    return _setter("client_id", client_id)


# Disconnect

def with_disconnect(disconnect: Disconnect) -> DisconnectOption:
    return _setter("disconnect", disconnect)


def with_disconnect_client(client_id: str) -> DisconnectOption:
    return _setter("client_id", client_id)


def with_disconnect_client_whitelist(whitelist: List[str]) -> DisconnectOption:
    """Keep these client connections of the user connected."""
    return _setter("client_whitelist", list(whitelist))


# History

def with_limit(limit: int) -> HistoryOption:
    return _setter("limit", limit)


def with_since(since: StreamPosition) -> HistoryOption:
    return _setter("since", since)


def with_reverse(reverse: bool) -> HistoryOption:
    return _setter("reverse", reverse)


# Channels

def with_pattern(pattern: str) -> ChannelsOption:
    """Only list channels matching a glob-like pattern."""
    return _setter("pattern", pattern)
