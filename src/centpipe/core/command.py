"""
Command model.

A Command pairs an API method name with the request payload for that method.
The payload is serialized into the ``params`` object of the wire command;
unset optional fields are left out instead of being sent as null.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from centpipe.core.options import (
    ChannelsOptions,
    Disconnect,
    DisconnectOptions,
    HistoryOptions,
    PublishOptions,
    StreamPosition,
    SubscribeOptions,
    UnsubscribeOptions,
    drop_unset,
)


class Method(str, Enum):
    """Server API methods."""
    PUBLISH = "publish"
    BROADCAST = "broadcast"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    DISCONNECT = "disconnect"
    PRESENCE = "presence"
    PRESENCE_STATS = "presence_stats"
    HISTORY = "history"
    HISTORY_REMOVE = "history_remove"
    CHANNELS = "channels"
    INFO = "info"


@dataclass(frozen=True)
class PublishRequest:
    channel: str
    data: Any
    options: PublishOptions = field(default_factory=PublishOptions)

    def to_dict(self) -> Dict[str, Any]:
        params = {"channel": self.channel, "data": self.data}
        params.update(drop_unset({"skip_history": self.options.skip_history}))
        return params


@dataclass(frozen=True)
class BroadcastRequest:
    channels: List[str]
    data: Any
    options: PublishOptions = field(default_factory=PublishOptions)

    def to_dict(self) -> Dict[str, Any]:
        params = {"channels": list(self.channels), "data": self.data}
        params.update(drop_unset({"skip_history": self.options.skip_history}))
        return params


@dataclass(frozen=True)
class SubscribeRequest:
    channel: str
    user: str
    options: SubscribeOptions = field(default_factory=SubscribeOptions)

    def to_dict(self) -> Dict[str, Any]:
        opts = self.options
        recover_since = opts.recover_since.to_dict() if opts.recover_since else None
        return drop_unset({
            "user": self.user,
            "channel": self.channel,
            "info": opts.info,
            "presence": opts.presence,
            "join_leave": opts.join_leave,
            "position": opts.position,
            "recover": opts.recover,
            "data": opts.data,
            "recover_since": recover_since,
            "client": opts.client_id,
        })


@dataclass(frozen=True)
class UnsubscribeRequest:
    channel: str
    user: str
    options: UnsubscribeOptions = field(default_factory=UnsubscribeOptions)

    def to_dict(self) -> Dict[str, Any]:
        return drop_unset({
            "user": self.user,
            "channel": self.channel,
            "client": self.options.client_id,
        })


@dataclass(frozen=True)
class DisconnectRequest:
    user: str
    options: DisconnectOptions = field(default_factory=DisconnectOptions)

    def to_dict(self) -> Dict[str, Any]:
        opts = self.options
        disconnect: Optional[Disconnect] = opts.disconnect
        whitelist = list(opts.client_whitelist) if opts.client_whitelist is not None else None
        return drop_unset({
            "user": self.user,
            "disconnect": disconnect.to_dict() if disconnect else None,
            "whitelist": whitelist,
            "client": opts.client_id,
        })


@dataclass(frozen=True)
class ChannelRequest:
    """Payload for the methods that only take a channel name."""
    channel: str

    def to_dict(self) -> Dict[str, Any]:
        return {"channel": self.channel}


@dataclass(frozen=True)
class HistoryRequest:
    channel: str
    options: HistoryOptions = field(default_factory=HistoryOptions)

    def to_dict(self) -> Dict[str, Any]:
        since: Optional[StreamPosition] = self.options.since
        return drop_unset({
            "channel": self.channel,
            "limit": self.options.limit,
            "since": since.to_dict() if since else None,
            "reverse": self.options.reverse,
        })


@dataclass(frozen=True)
class ChannelsRequest:
    options: ChannelsOptions = field(default_factory=ChannelsOptions)

    def to_dict(self) -> Dict[str, Any]:
        return drop_unset({"pattern": self.options.pattern})


@dataclass(frozen=True)
class InfoRequest:
    def to_dict(self) -> Dict[str, Any]:
        return {}


RequestPayload = Union[
    PublishRequest,
    BroadcastRequest,
    SubscribeRequest,
    UnsubscribeRequest,
    DisconnectRequest,
    ChannelRequest,
    HistoryRequest,
    ChannelsRequest,
    InfoRequest,
]

# Payload type each method carries
PAYLOAD_TYPES = {
    Method.PUBLISH: PublishRequest,
    Method.BROADCAST: BroadcastRequest,
    Method.SUBSCRIBE: SubscribeRequest,
    Method.UNSUBSCRIBE: UnsubscribeRequest,
    Method.DISCONNECT: DisconnectRequest,
    Method.PRESENCE: ChannelRequest,
    Method.PRESENCE_STATS: ChannelRequest,
    Method.HISTORY: HistoryRequest,
    Method.HISTORY_REMOVE: ChannelRequest,
    Method.CHANNELS: ChannelsRequest,
    Method.INFO: InfoRequest,
}


@dataclass(frozen=True)
class Command:
    """
    One API command.

    Attributes:
        method: API method to call
        params: Request payload matching the method
    """

    method: Method
    params: RequestPayload

    def __post_init__(self):
        """Normalize the method and check it matches the payload type."""
        method = Method(self.method)
        object.__setattr__(self, "method", method)

        expected = PAYLOAD_TYPES[method]
        if not isinstance(self.params, expected):
            raise ValueError(
                f"method {method.value!r} requires {expected.__name__} params, "
                f"got {type(self.params).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation."""
        return {"method": self.method.value, "params": self.params.to_dict()}

    def to_json(self) -> str:
        """Serialize as one compact JSON object."""
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)
