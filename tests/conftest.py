"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
import logging
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest
import structlog

from centpipe.client import Client
from centpipe.config import ClientConfig


API_URL = "http://127.0.0.1:8000/api"
API_KEY = "fa7ce149-b279-4870-af59-ad7ce78ef11a"


# ============================================================================
# Fake Server
# ============================================================================

Responder = Callable[[List[dict]], str]


def echo_responder(commands: List[dict]) -> str:
    """Answer every command with its own params as the result."""
    return "\n".join(
        json.dumps({"result": {"echo": cmd["params"]}}) for cmd in commands
    )


class FakeServer:
    """Records API requests and answers them with a canned reply stream."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body: Optional[Union[str, bytes]] = None
        self.responder: Responder = echo_responder
        self.error: Optional[Exception] = None

    def reply_with(self, *replies: Dict) -> None:
        """Answer the next requests with these reply objects."""
        self.body = "\n".join(json.dumps(reply) for reply in replies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        if self.body is not None:
            body = self.body
        else:
            body = self.responder(self.sent_commands(request))
        if isinstance(body, bytes):
            return httpx.Response(self.status_code, content=body)
        return httpx.Response(self.status_code, text=body)

    @staticmethod
    def sent_commands(request: httpx.Request) -> List[dict]:
        lines = request.content.decode("utf-8").split("\n")
        return [json.loads(line) for line in lines if line]

    @property
    def last_commands(self) -> List[dict]:
        return self.sent_commands(self.requests[-1])

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def quiet_logging():
    """Drop the library's debug events so they stay out of captured stdout."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_server() -> FakeServer:
    """Create a fake API server."""
    return FakeServer()


@pytest.fixture
def test_config(fake_server) -> ClientConfig:
    """Create a test configuration wired to the fake server."""
    return ClientConfig(
        addr=API_URL,
        key=API_KEY,
        http_client=fake_server.http_client(),
    )


@pytest.fixture
def client(test_config) -> Client:
    """Create a client talking to the fake server."""
    return Client(test_config)
