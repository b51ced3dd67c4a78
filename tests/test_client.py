"""
Test suite for the HTTP API client.

Requests go to an in-process fake server (httpx.MockTransport); no network
access is needed.
"""

import json
import threading

import httpx
import pytest

from centpipe.client import Client, default_http_client
from centpipe.config import ClientConfig
from centpipe.core.options import (
    Disconnect,
    with_disconnect,
    with_limit,
    with_pattern,
    with_reverse,
    with_skip_history,
)
from centpipe.core.reply import PublishResult
from centpipe.errors import (
    DecodeError,
    EmptyPipeError,
    EndpointResolutionError,
    MalformedPayloadError,
    MalformedResponseError,
    NoReplyError,
    RemoteError,
    StatusCodeError,
    TransportError,
)
from tests.conftest import API_KEY, API_URL


INFO_REPLY = {"result": {"nodes": []}}


# ============================================================================
# Test Construction
# ============================================================================

class TestClientConstruction:
    """Tests for client configuration."""

    def test_client_new(self, test_config):
        client = Client(test_config)

        assert client.endpoint == API_URL
        assert client.api_key == API_KEY
        assert client.get_endpoint is None

    def test_default_http_client(self):
        config = ClientConfig(addr=API_URL, timeout_seconds=2.5)
        http_client = default_http_client(config)

        assert isinstance(http_client, httpx.AsyncClient)
        assert http_client.timeout.read == 2.5

    def test_pipe_is_new_each_time(self, client):
        first = client.pipe()
        first.add_info()

        assert client.pipe().is_empty is True

    def test_headers_with_key(self, client):
        assert client.headers == {
            "Content-Type": "application/json",
            "Authorization": f"apikey {API_KEY}",
        }

    def test_headers_without_key(self, fake_server):
        client = Client(ClientConfig(addr=API_URL, http_client=fake_server.http_client()))
        assert "Authorization" not in client.headers


# ============================================================================
# Test Send
# ============================================================================

class TestSend:
    """Tests for the wire-level request/response exchange."""

    @pytest.mark.asyncio
    async def test_request_format(self, client, fake_server):
        pipe = client.pipe()
        pipe.add_publish("news", '{"text": "hi"}')
        pipe.add_info()

        await client.send_pipe(pipe)

        assert len(fake_server.requests) == 1
        request = fake_server.requests[0]
        assert request.method == "POST"
        assert str(request.url) == API_URL
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Authorization"] == f"apikey {API_KEY}"
        assert request.content == (
            b'{"method":"publish","params":{"channel":"news","data":{"text":"hi"}}}\n'
            b'{"method":"info","params":{}}'
        )

    @pytest.mark.asyncio
    async def test_no_authorization_without_key(self, fake_server):
        client = Client(ClientConfig(addr=API_URL, http_client=fake_server.http_client()))

        fake_server.reply_with(INFO_REPLY)
        await client.info()

        assert "Authorization" not in fake_server.requests[0].headers

    @pytest.mark.asyncio
    async def test_resolver_takes_precedence(self, fake_server):
        calls = []

        def get_addr() -> str:
            calls.append(1)
            return f"http://node-{len(calls)}:8000/api"

        config = ClientConfig(
            addr=API_URL,
            get_addr=get_addr,
            http_client=fake_server.http_client(),
        )
        client = Client(config)

        fake_server.reply_with(INFO_REPLY)
        await client.info()
        await client.info()

        assert [str(r.url) for r in fake_server.requests] == [
            "http://node-1:8000/api",
            "http://node-2:8000/api",
        ]

    @pytest.mark.asyncio
    async def test_resolver_failure(self, fake_server):
        def get_addr() -> str:
            raise RuntimeError("discovery down")

        client = Client(ClientConfig(get_addr=get_addr, http_client=fake_server.http_client()))

        with pytest.raises(EndpointResolutionError) as exc_info:
            await client.info()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, fake_server):
        client = Client(ClientConfig(http_client=fake_server.http_client()))

        with pytest.raises(EndpointResolutionError):
            await client.info()

    @pytest.mark.asyncio
    async def test_status_code_error(self, client, fake_server):
        fake_server.status_code = 500
        fake_server.body = "internal error"

        with pytest.raises(StatusCodeError) as exc_info:
            await client.info()

        assert exc_info.value.code == 500
        assert exc_info.value.body == "internal error"

    @pytest.mark.asyncio
    async def test_status_checked_before_decoding(self, client, fake_server):
        fake_server.status_code = 403
        fake_server.body = "{not json"

        pipe = client.pipe()
        pipe.add_info()

        with pytest.raises(StatusCodeError):
            await client.send_pipe(pipe)

    @pytest.mark.asyncio
    async def test_transport_error(self, client, fake_server):
        fake_server.error = httpx.ConnectError("connection refused")

        with pytest.raises(TransportError) as exc_info:
            await client.info()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_malformed_reply_line(self, client, fake_server):
        fake_server.body = '{"result": {}}\n{"result": '

        pipe = client.pipe()
        pipe.add_info()
        pipe.add_info()

        with pytest.raises(MalformedResponseError):
            await client.send_pipe(pipe)

    @pytest.mark.asyncio
    async def test_invalid_utf8_reply(self, client, fake_server):
        fake_server.body = b'{"result": {"offset": 1, "epoch": "\xff\xfe"}}'

        with pytest.raises(MalformedResponseError):
            await client.publish("news", '{"text": "hi"}')

    @pytest.mark.asyncio
    async def test_send_without_count_check(self, client, fake_server):
        fake_server.reply_with({"result": {}}, {"result": {}})

        pipe = client.pipe()
        pipe.add_info()

        replies = await client.send(pipe.commands())
        assert len(replies) == 2


# ============================================================================
# Test Send Pipe
# ============================================================================

class TestSendPipe:
    """Tests for pipe submission and reply correlation."""

    @pytest.mark.asyncio
    async def test_empty_pipe(self, client, fake_server):
        with pytest.raises(EmptyPipeError):
            await client.send_pipe(client.pipe())

        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_reset_pipe_is_empty(self, client, fake_server):
        pipe = client.pipe()
        pipe.add_info()
        pipe.reset()

        with pytest.raises(EmptyPipeError):
            await client.send_pipe(pipe)

        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_ten_publishes_one_request(self, client, fake_server):
        pipe = client.pipe()
        for i in range(10):
            pipe.add_publish("chan3", json.dumps({"input": f"test{i}"}))

        replies = await client.send_pipe(pipe)

        assert len(fake_server.requests) == 1
        assert len(replies) == 10
        for i, reply in enumerate(replies):
            assert reply.error is None
            assert reply.result["echo"]["data"] == {"input": f"test{i}"}

    @pytest.mark.asyncio
    async def test_pipe_not_cleared_by_send(self, client):
        pipe = client.pipe()
        pipe.add_info()

        await client.send_pipe(pipe)

        assert len(pipe) == 1

    @pytest.mark.asyncio
    async def test_trailing_newline_in_response(self, client, fake_server):
        fake_server.body = '{"result": {}}\n{"result": {}}\n'

        pipe = client.pipe()
        pipe.add_info()
        pipe.add_info()

        assert len(await client.send_pipe(pipe)) == 2

    @pytest.mark.asyncio
    async def test_too_few_replies(self, client, fake_server):
        fake_server.reply_with({"result": {}})

        pipe = client.pipe()
        pipe.add_info()
        pipe.add_info()

        with pytest.raises(MalformedResponseError):
            await client.send_pipe(pipe)

    @pytest.mark.asyncio
    async def test_too_many_replies(self, client, fake_server):
        fake_server.reply_with({"result": {}}, {"result": {}})

        pipe = client.pipe()
        pipe.add_info()

        with pytest.raises(MalformedResponseError):
            await client.send_pipe(pipe)

    @pytest.mark.asyncio
    async def test_partial_failure_left_to_caller(self, client, fake_server):
        fake_server.reply_with(
            {"result": {"offset": 1, "epoch": "e"}},
            {"error": {"code": 102, "message": "unknown channel"}},
        )

        pipe = client.pipe()
        pipe.add_publish("news", '{"n": 1}')
        pipe.add_publish("missing", '{"n": 2}')

        replies = await client.send_pipe(pipe)

        assert replies[0].error is None
        assert replies[1].error.code == 102

    @pytest.mark.asyncio
    async def test_correlation_with_concurrent_producers(self, client, fake_server):
        pipe = client.pipe()

        def produce(producer_id: int) -> None:
            for seq in range(50):
                pipe.add_publish("chan", json.dumps({"producer": producer_id, "seq": seq}))
                pipe.add_presence(f"chan-{producer_id}-{seq}")

        threads = [threading.Thread(target=produce, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        commands = pipe.commands()
        replies = await client.send_pipe(pipe)

        assert len(replies) == len(commands) == 400
        for cmd, reply in zip(commands, replies):
            assert reply.result["echo"] == cmd.to_dict()["params"]


# ============================================================================
# Test Single-Command Calls
# ============================================================================

class TestSingleCommandCalls:
    """Tests for the one-command convenience calls."""

    @pytest.mark.asyncio
    async def test_publish(self, client, fake_server):
        fake_server.reply_with({"result": {"offset": 42, "epoch": "1789378957"}})

        result = await client.publish("news", '{"text": "hi"}', with_skip_history(True))

        assert result == PublishResult(offset=42, epoch="1789378957")
        assert fake_server.last_commands == [{
            "method": "publish",
            "params": {"channel": "news", "data": {"text": "hi"}, "skip_history": True},
        }]

    @pytest.mark.asyncio
    async def test_publish_malformed_payload_no_request(self, client, fake_server):
        with pytest.raises(MalformedPayloadError):
            await client.publish("news", "{broken")

        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_publish_remote_error(self, client, fake_server):
        fake_server.reply_with({"error": {"code": 102, "message": "unknown channel"}})

        with pytest.raises(RemoteError) as exc_info:
            await client.publish("news", '{"text": "hi"}')

        assert exc_info.value.code == 102
        assert str(exc_info.value) == "unknown channel: 102"

    @pytest.mark.asyncio
    async def test_broadcast(self, client, fake_server):
        fake_server.reply_with({"result": {"responses": [
            {"result": {"offset": 1, "epoch": "a"}},
            {"result": {"offset": 7, "epoch": "b"}},
        ]}})

        result = await client.broadcast(["a", "b"], '{"date": "2024-12-28"}')

        assert [r.result.offset for r in result.responses] == [1, 7]
        assert fake_server.last_commands[0]["params"]["channels"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_subscribe(self, client, fake_server):
        fake_server.reply_with({"result": {}})

        assert await client.subscribe("news", "42") is None
        assert fake_server.last_commands[0] == {
            "method": "subscribe",
            "params": {"user": "42", "channel": "news"},
        }

    @pytest.mark.asyncio
    async def test_unsubscribe_remote_error(self, client, fake_server):
        fake_server.reply_with({"error": {"code": 100, "message": "internal server error"}})

        with pytest.raises(RemoteError):
            await client.unsubscribe("news", "42")

    @pytest.mark.asyncio
    async def test_disconnect(self, client, fake_server):
        fake_server.reply_with({"result": {}})

        await client.disconnect("42", with_disconnect(Disconnect(code=4000, reason="bye")))

        assert fake_server.last_commands[0]["params"] == {
            "user": "42",
            "disconnect": {"code": 4000, "reason": "bye"},
        }

    @pytest.mark.asyncio
    async def test_presence(self, client, fake_server):
        fake_server.reply_with({"result": {"presence": {
            "c1": {"user": "42", "client": "c1"},
        }}})

        result = await client.presence("news")

        assert result.presence["c1"].user == "42"

    @pytest.mark.asyncio
    async def test_presence_decode_error(self, client, fake_server):
        fake_server.reply_with({"result": {"bogus": 1}})

        with pytest.raises(DecodeError):
            await client.presence("news")

    @pytest.mark.asyncio
    async def test_presence_stats(self, client, fake_server):
        fake_server.reply_with({"result": {"num_users": 1, "num_clients": 2}})

        result = await client.presence_stats("news")

        assert result.num_clients == 2
        assert fake_server.last_commands[0]["method"] == "presence_stats"

    @pytest.mark.asyncio
    async def test_history(self, client, fake_server):
        fake_server.reply_with({"result": {
            "publications": [{"offset": 1, "data": {"n": 1}}],
            "offset": 1,
            "epoch": "e",
        }})

        result = await client.history("news", with_limit(20), with_reverse(True))

        assert result.publications[0].data == {"n": 1}
        assert fake_server.last_commands[0]["params"] == {
            "channel": "news",
            "limit": 20,
            "reverse": True,
        }

    @pytest.mark.asyncio
    async def test_history_absent_result(self, client, fake_server):
        fake_server.reply_with({"result": None})

        with pytest.raises(DecodeError):
            await client.history("news")

    @pytest.mark.asyncio
    async def test_history_remove(self, client, fake_server):
        fake_server.reply_with({})

        assert await client.history_remove("news") is None
        assert fake_server.last_commands[0]["method"] == "history_remove"

    @pytest.mark.asyncio
    async def test_channels(self, client, fake_server):
        fake_server.reply_with({"result": {"channels": {"news": {"num_clients": 3}}}})

        result = await client.channels(with_pattern("n*"))

        assert result.channels["news"].num_clients == 3
        assert fake_server.last_commands[0]["params"] == {"pattern": "n*"}

    @pytest.mark.asyncio
    async def test_info(self, client, fake_server):
        fake_server.reply_with({"result": {"nodes": [
            {"uid": "u1", "name": "node-1", "version": "5.0.0", "num_clients": 2},
        ]}})

        result = await client.info()

        assert result.nodes[0].num_clients == 2

    @pytest.mark.asyncio
    async def test_status_error_wins_over_remote_error(self, client, fake_server):
        fake_server.status_code = 502
        fake_server.reply_with({"error": {"code": 102, "message": "unknown channel"}})

        with pytest.raises(StatusCodeError):
            await client.publish("news", '{"text": "hi"}')

    @pytest.mark.asyncio
    async def test_no_reply(self, client, monkeypatch):
        async def no_replies(pipe):
            return []

        monkeypatch.setattr(client, "send_pipe", no_replies)

        with pytest.raises(NoReplyError):
            await client.info()


# ============================================================================
# Test Lifecycle
# ============================================================================

class TestClientLifecycle:
    """Tests for transport ownership and hot-swap."""

    @pytest.mark.asyncio
    async def test_set_http_client(self, client, fake_server):
        other_server = type(fake_server)()
        other_server.reply_with(INFO_REPLY)
        client.set_http_client(other_server.http_client())

        await client.info()

        assert fake_server.requests == []
        assert len(other_server.requests) == 1

    @pytest.mark.asyncio
    async def test_aclose_keeps_caller_transport_open(self, fake_server, test_config):
        fake_server.reply_with(INFO_REPLY)
        async with Client(test_config) as client:
            await client.info()

        assert test_config.http_client.is_closed is False

    @pytest.mark.asyncio
    async def test_aclose_closes_own_transport(self):
        client = Client(ClientConfig(addr=API_URL))

        await client.aclose()

        assert client.http_client.is_closed is True
