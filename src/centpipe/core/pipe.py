"""
Pipe - ordered command buffer.

A pipe collects commands so several of them can be sent to the server in one
HTTP request. Commands are transmitted in the order they were added and the
server replies in the same order, which is how replies are matched back to
commands.
"""

import json
import threading
from contextlib import contextmanager
from typing import Iterator, List, Sequence, Union

import structlog

from centpipe.core.command import (
    BroadcastRequest,
    ChannelRequest,
    ChannelsRequest,
    Command,
    DisconnectRequest,
    HistoryRequest,
    InfoRequest,
    Method,
    PublishRequest,
    SubscribeRequest,
    UnsubscribeRequest,
)
from centpipe.core.options import (
    ChannelsOption,
    ChannelsOptions,
    DisconnectOption,
    DisconnectOptions,
    HistoryOption,
    HistoryOptions,
    PublishOption,
    PublishOptions,
    SubscribeOption,
    SubscribeOptions,
    UnsubscribeOption,
    UnsubscribeOptions,
    apply_options,
)
from centpipe.errors import LockContentionError, MalformedPayloadError

logger = structlog.get_logger(__name__)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not a valid JSON value")


def parse_payload(data: Union[str, bytes]):
    """
    Parse raw JSON text supplied as publication data.

    Args:
        data: JSON document as text or UTF-8 bytes

    Returns:
        The decoded JSON value

    Raises:
        MalformedPayloadError: If data is not valid JSON (NaN and Infinity
            included)
    """
    try:
        return json.loads(data, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        raise MalformedPayloadError(f"publication data is not valid JSON: {e}") from e


class Pipe:
    """
    Ordered, thread-safe buffer of commands.

    The ``add_*`` helpers only build and buffer commands; nothing is sent
    until the pipe is passed to ``Client.send_pipe``. Build the pipe, send
    it, then discard or reset it. Appending while a send is in flight is
    allowed but the send only sees the commands present when it started.

    If a mutation fails while the lock is held the pipe becomes poisoned and
    every later operation raises LockContentionError.
    """

    def __init__(self):
        self._commands: List[Command] = []
        self._lock = threading.Lock()
        self._poisoned = False

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            if self._poisoned:
                raise LockContentionError("pipe lock poisoned by an earlier failure")
            try:
                yield
            except BaseException:
                self._poisoned = True
                raise

    def add(self, cmd: Command) -> None:
        """
        Append a command.

        Args:
            cmd: The command to buffer

        Raises:
            LockContentionError: If the pipe is poisoned
        """
        with self._locked():
            self._commands.append(cmd)

    def reset(self) -> None:
        """Drop all buffered commands."""
        with self._locked():
            dropped = len(self._commands)
            self._commands = []
        logger.debug("pipe_reset", dropped=dropped)

    def commands(self) -> List[Command]:
        """Snapshot of the buffered commands in append order."""
        with self._locked():
            return list(self._commands)

    def __len__(self) -> int:
        with self._locked():
            return len(self._commands)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def add_publish(
        self,
        channel: str,
        data: Union[str, bytes],
        *opts: PublishOption,
    ) -> None:
        """
        Buffer a publish command.

        Args:
            channel: Channel to publish into
            data: Publication data as raw JSON text
            *opts: Publish option mutators

        Raises:
            MalformedPayloadError: If data is not valid JSON
        """
        options = apply_options(PublishOptions(), opts)
        params = PublishRequest(channel=channel, data=parse_payload(data), options=options)
        self.add(Command(method=Method.PUBLISH, params=params))

    def add_broadcast(
        self,
        channels: Sequence[str],
        data: Union[str, bytes],
        *opts: PublishOption,
    ) -> None:
        """
        Buffer a broadcast command (same data into many channels).

        Raises:
            MalformedPayloadError: If data is not valid JSON
        """
        options = apply_options(PublishOptions(), opts)
        params = BroadcastRequest(
            channels=list(channels),
            data=parse_payload(data),
            options=options,
        )
        self.add(Command(method=Method.BROADCAST, params=params))

    def add_subscribe(self, channel: str, user: str, *opts: SubscribeOption) -> None:
        """Buffer a server-side subscribe of user to channel."""
        options = apply_options(SubscribeOptions(), opts)
        params = SubscribeRequest(channel=channel, user=user, options=options)
        self.add(Command(method=Method.SUBSCRIBE, params=params))

    def add_unsubscribe(self, channel: str, user: str, *opts: UnsubscribeOption) -> None:
        """Buffer an unsubscribe of user from channel."""
        options = apply_options(UnsubscribeOptions(), opts)
        params = UnsubscribeRequest(channel=channel, user=user, options=options)
        self.add(Command(method=Method.UNSUBSCRIBE, params=params))

    def add_disconnect(self, user: str, *opts: DisconnectOption) -> None:
        """Buffer a disconnect of all user connections."""
        options = apply_options(DisconnectOptions(), opts)
        params = DisconnectRequest(user=user, options=options)
        self.add(Command(method=Method.DISCONNECT, params=params))

    def add_presence(self, channel: str) -> None:
        self.add(Command(method=Method.PRESENCE, params=ChannelRequest(channel=channel)))

    def add_presence_stats(self, channel: str) -> None:
        self.add(Command(method=Method.PRESENCE_STATS, params=ChannelRequest(channel=channel)))

    def add_history(self, channel: str, *opts: HistoryOption) -> None:
        options = apply_options(HistoryOptions(), opts)
        self.add(Command(method=Method.HISTORY, params=HistoryRequest(channel=channel, options=options)))

    def add_history_remove(self, channel: str) -> None:
        self.add(Command(method=Method.HISTORY_REMOVE, params=ChannelRequest(channel=channel)))

    def add_channels(self, *opts: ChannelsOption) -> None:
        options = apply_options(ChannelsOptions(), opts)
        self.add(Command(method=Method.CHANNELS, params=ChannelsRequest(options=options)))

    def add_info(self) -> None:
        self.add(Command(method=Method.INFO, params=InfoRequest()))

    def __repr__(self) -> str:
        return f"Pipe(size={len(self._commands)})"
