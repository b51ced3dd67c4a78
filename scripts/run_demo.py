#!/usr/bin/env python3
"""
Run a demo against a local server.

Demonstrates:
1. Single-command calls (publish, history, presence, channels, broadcast)
2. Sending many commands through one pipe
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from centpipe.cli import setup_logging
from centpipe.client import Client
from centpipe.config import ClientConfig
from centpipe.core.options import with_limit
from centpipe.errors import CentPipeError

logger = structlog.get_logger("run_demo")


async def run(addr: str, key: str, channel: str) -> None:
    """Run all demo steps."""
    config = ClientConfig(addr=addr, key=key)

    async with Client(config) as client:
        steps = [
            ("publish", lambda: client.publish(channel, '{"input": "test"}')),
            ("history", lambda: client.history(channel, with_limit(20))),
            ("presence", lambda: client.presence(channel)),
            ("presence_stats", lambda: client.presence_stats(channel)),
            ("channels", lambda: client.channels()),
            (
                "broadcast",
                lambda: client.broadcast(
                    [f"{channel}_{i}" for i in range(10)],
                    '{"date": "2024-12-28"}',
                ),
            ),
        ]

        for name, call in steps:
            try:
                result = await call()
                logger.info("demo_step_ok", step=name, result=result)
            except CentPipeError as e:
                logger.error("demo_step_failed", step=name, error=str(e))

        # Several commands, one HTTP request
        pipe = client.pipe()
        for _ in range(10):
            pipe.add_publish("chan3", '{"input": "test1"}')

        try:
            replies = await client.send_pipe(pipe)
        except CentPipeError as e:
            logger.error("demo_pipe_failed", error=str(e))
            return

        for index, reply in enumerate(replies):
            if reply.error is not None:
                logger.warning("demo_pipe_command_failed", index=index, error=str(reply.error))

        logger.info("demo_pipe_sent", commands=len(replies))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run API client demo")
    parser.add_argument("--addr", default="http://127.0.0.1:8000/api")
    parser.add_argument("--key", required=True, help="Server API key")
    parser.add_argument("--channel", default="test_channel")
    args = parser.parse_args()

    setup_logging("INFO")
    asyncio.run(run(args.addr, args.key, args.channel))


if __name__ == "__main__":
    main()
