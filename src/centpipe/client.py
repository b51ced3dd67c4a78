"""
HTTP API client.

Sends pipes of commands to the server API in a single HTTP request and maps
the newline-delimited replies back onto the commands by position.
"""

from typing import Dict, List, Optional, Sequence, Union

import httpx
import structlog

from centpipe.config import ClientConfig, get_config
from centpipe.core.command import Command
from centpipe.core.options import (
    ChannelsOption,
    DisconnectOption,
    HistoryOption,
    PublishOption,
    SubscribeOption,
    UnsubscribeOption,
)
from centpipe.core.pipe import Pipe
from centpipe.core.reply import (
    BroadcastResult,
    ChannelsResult,
    HistoryResult,
    InfoResult,
    PresenceResult,
    PresenceStatsResult,
    PublishResult,
    Reply,
    decode_broadcast,
    decode_channels,
    decode_history,
    decode_info,
    decode_presence,
    decode_presence_stats,
    decode_publish,
    parse_replies,
)
from centpipe.errors import (
    EmptyPipeError,
    EndpointResolutionError,
    MalformedResponseError,
    NoReplyError,
    StatusCodeError,
    TransportError,
)

logger = structlog.get_logger(__name__)


def default_http_client(config: Optional[ClientConfig] = None) -> httpx.AsyncClient:
    """
    Build the HTTP client used when none is configured.

    Args:
        config: Client configuration. Uses global config if not provided.
    """
    config = config or get_config()
    return httpx.AsyncClient(
        timeout=config.timeout_seconds,
        limits=httpx.Limits(max_keepalive_connections=config.max_idle_connections),
    )


class Client:
    """
    API client for the real-time messaging server.

    Every public call performs exactly one HTTP round trip and never retries.
    The client holds no per-call state and can be shared between tasks.

    Usage:
        async with Client(ClientConfig(addr="http://127.0.0.1:8000/api", key="...")) as client:
            await client.publish("news", '{"text": "hello"}')

            pipe = client.pipe()
            pipe.add_publish("news", '{"text": "one"}')
            pipe.add_presence_stats("news")
            replies = await client.send_pipe(pipe)
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        """
        Initialize the client.

        Args:
            config: Client configuration. Uses global config if not provided.
        """
        self.config = config or get_config()
        self.endpoint = self.config.addr
        self.get_endpoint = self.config.get_addr
        self.api_key = self.config.key

        self._owns_http_client = self.config.http_client is None
        self.http_client = self.config.http_client or default_http_client(self.config)

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http_client:
            await self.http_client.aclose()

    def set_http_client(self, http_client: httpx.AsyncClient) -> None:
        """
        Replace the HTTP client used for requests.

        The new client stays owned by the caller and is not closed by aclose().
        """
        self.http_client = http_client
        self._owns_http_client = False

    def pipe(self) -> Pipe:
        """Create a new empty pipe."""
        return Pipe()

    @property
    def headers(self) -> Dict[str, str]:
        """Get request headers with API key."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"apikey {self.api_key}"
        return headers

    def _resolve_endpoint(self) -> str:
        if self.get_endpoint is not None:
            try:
                return self.get_endpoint()
            except Exception as e:
                raise EndpointResolutionError(f"failed to resolve API endpoint: {e}") from e

        if not self.endpoint:
            raise EndpointResolutionError("no API endpoint configured")
        return self.endpoint

    async def send(self, commands: Sequence[Command]) -> List[Reply]:
        """
        Send commands in one HTTP request.

        Args:
            commands: Commands in the order they must be executed

        Returns:
            Replies in server order, blank lines skipped

        Raises:
            EndpointResolutionError: If the endpoint cannot be determined
            TransportError: If the HTTP request fails
            StatusCodeError: If the server answers with a non-2xx status
            MalformedResponseError: If any reply line cannot be decoded
        """
        body = "\n".join(cmd.to_json() for cmd in commands)
        endpoint = self._resolve_endpoint()

        try:
            response = await self.http_client.post(
                endpoint,
                content=body.encode("utf-8"),
                headers=self.headers,
            )
        except httpx.RequestError as e:
            raise TransportError(f"API request to {endpoint} failed: {e}") from e

        logger.debug(
            "api_request_sent",
            endpoint=endpoint,
            commands=len(commands),
            status=response.status_code,
        )

        if not response.is_success:
            raise StatusCodeError(response.status_code, response.text)

        replies = parse_replies(response.content)
        logger.debug("api_replies_received", replies=len(replies))
        return replies

    async def send_pipe(self, pipe: Pipe) -> List[Reply]:
        """
        Send all commands buffered in a pipe.

        The pipe is read, not cleared. Per-command errors are left in the
        returned replies for the caller to inspect.

        Returns:
            One reply per command, in command order

        Raises:
            EmptyPipeError: If the pipe holds no commands
            MalformedResponseError: If the reply count does not match
        """
        commands = pipe.commands()
        if not commands:
            raise EmptyPipeError()

        replies = await self.send(commands)

        if len(replies) != len(commands):
            raise MalformedResponseError(
                f"malformed response returned from server: "
                f"{len(commands)} commands sent, {len(replies)} replies received"
            )
        return replies

    async def _send_single(self, pipe: Pipe) -> Reply:
        replies = await self.send_pipe(pipe)
        if not replies:
            raise NoReplyError()

        reply = replies[0]
        reply.raise_for_error()
        return reply

    async def publish(
        self,
        channel: str,
        data: Union[str, bytes],
        *opts: PublishOption,
    ) -> PublishResult:
        """Publish JSON data into a channel."""
        pipe = self.pipe()
        pipe.add_publish(channel, data, *opts)
        reply = await self._send_single(pipe)
        return reply.decode(decode_publish)

    async def broadcast(
        self,
        channels: Sequence[str],
        data: Union[str, bytes],
        *opts: PublishOption,
    ) -> BroadcastResult:
        """Publish the same JSON data into many channels."""
        pipe = self.pipe()
        pipe.add_broadcast(channels, data, *opts)
        reply = await self._send_single(pipe)
        return reply.decode(decode_broadcast)

    async def subscribe(self, channel: str, user: str, *opts: SubscribeOption) -> None:
        """Subscribe a user to a channel (server-side subscription)."""
        pipe = self.pipe()
        pipe.add_subscribe(channel, user, *opts)
        await self._send_single(pipe)

    async def unsubscribe(self, channel: str, user: str, *opts: UnsubscribeOption) -> None:
        """Unsubscribe a user from a channel."""
        pipe = self.pipe()
        pipe.add_unsubscribe(channel, user, *opts)
        await self._send_single(pipe)

    async def disconnect(self, user: str, *opts: DisconnectOption) -> None:
        """Close user connections."""
        pipe = self.pipe()
        pipe.add_disconnect(user, *opts)
        await self._send_single(pipe)

    async def presence(self, channel: str) -> PresenceResult:
        """Get channel presence information."""
        pipe = self.pipe()
        pipe.add_presence(channel)
        reply = await self._send_single(pipe)
        return reply.decode(decode_presence)

    async def presence_stats(self, channel: str) -> PresenceStatsResult:
        """Get short channel presence information (only counters)."""
        pipe = self.pipe()
        pipe.add_presence_stats(channel)
        reply = await self._send_single(pipe)
        return reply.decode(decode_presence_stats)

    async def history(self, channel: str, *opts: HistoryOption) -> HistoryResult:
        """Get channel history."""
        pipe = self.pipe()
        pipe.add_history(channel, *opts)
        reply = await self._send_single(pipe)
        return reply.decode(decode_history)

    async def history_remove(self, channel: str) -> None:
        """Remove channel history."""
        pipe = self.pipe()
        pipe.add_history_remove(channel)
        await self._send_single(pipe)

    async def channels(self, *opts: ChannelsOption) -> ChannelsResult:
        """Get active channels (with one or more subscribers)."""
        pipe = self.pipe()
        pipe.add_channels(*opts)
        reply = await self._send_single(pipe)
        return reply.decode(decode_channels)

    async def info(self) -> InfoResult:
        """Get information about running server nodes."""
        pipe = self.pipe()
        pipe.add_info()
        reply = await self._send_single(pipe)
        return reply.decode(decode_info)
