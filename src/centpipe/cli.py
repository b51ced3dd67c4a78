"""
Command-line interface for the API client.

Provides commands for calling the server API from a shell.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import structlog

from centpipe import __version__
from centpipe.client import Client
from centpipe.config import ClientConfig, set_config
from centpipe.core.options import (
    Disconnect,
    with_disconnect,
    with_limit,
    with_pattern,
    with_reverse,
    with_skip_history,
)
from centpipe.errors import CentPipeError


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Route structlog events through stdlib logging on stderr.

    stdout is left to command output. httpx request lines are only shown
    at DEBUG level.
    """
    renderer = (
        structlog.processors.JSONRenderer() if json_format
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level_no = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", level=level_no, stream=sys.stderr)
    if level_no > logging.DEBUG:
        logging.getLogger("httpx").setLevel(max(level_no, logging.WARNING))


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="centpipe",
        description="Call the real-time messaging server HTTP API",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--addr",
        help="API endpoint (default: CENTPIPE_ADDR)",
    )
    parser.add_argument(
        "--key",
        help="API key (default: CENTPIPE_KEY)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: CENTPIPE_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    publish_parser = subparsers.add_parser("publish", help="Publish data into a channel")
    publish_parser.add_argument("channel")
    publish_parser.add_argument("data", help="Publication data as JSON")
    publish_parser.add_argument(
        "--skip-history",
        action="store_true",
        help="Do not save the publication into history",
    )

    broadcast_parser = subparsers.add_parser(
        "broadcast", help="Publish the same data into many channels"
    )
    broadcast_parser.add_argument("data", help="Publication data as JSON")
    broadcast_parser.add_argument("channels", nargs="+")
    broadcast_parser.add_argument("--skip-history", action="store_true")

    history_parser = subparsers.add_parser("history", help="Show channel history")
    history_parser.add_argument("channel")
    history_parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of publications (-1 for the whole stream)",
    )
    history_parser.add_argument("--reverse", action="store_true")

    history_remove_parser = subparsers.add_parser(
        "history-remove", help="Remove channel history"
    )
    history_remove_parser.add_argument("channel")

    presence_parser = subparsers.add_parser("presence", help="Show channel presence")
    presence_parser.add_argument("channel")

    presence_stats_parser = subparsers.add_parser(
        "presence-stats", help="Show channel presence counters"
    )
    presence_stats_parser.add_argument("channel")

    channels_parser = subparsers.add_parser("channels", help="List active channels")
    channels_parser.add_argument("--pattern", help="Channel name pattern")

    subparsers.add_parser("info", help="Show server node information")

    disconnect_parser = subparsers.add_parser("disconnect", help="Disconnect a user")
    disconnect_parser.add_argument("user")
    disconnect_parser.add_argument("--code", type=int)
    disconnect_parser.add_argument("--reason")

    bench_parser = subparsers.add_parser(
        "bench-pipe", help="Send several publications in one request"
    )
    bench_parser.add_argument("channel")
    bench_parser.add_argument("data", help="Publication data as JSON")
    bench_parser.add_argument(
        "--count",
        type=int,
        default=10,
        help="Number of publications (default: 10)",
    )

    return parser


def _print_json(value: Any) -> None:
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    print(json.dumps(value, indent=2))


async def run_command(client: Client, args: argparse.Namespace) -> None:
    """Run one CLI command against the API."""
    if args.command == "publish":
        opts = [with_skip_history(True)] if args.skip_history else []
        _print_json(await client.publish(args.channel, args.data, *opts))

    elif args.command == "broadcast":
        opts = [with_skip_history(True)] if args.skip_history else []
        _print_json(await client.broadcast(args.channels, args.data, *opts))

    elif args.command == "history":
        opts = []
        if args.limit is not None:
            opts.append(with_limit(args.limit))
        if args.reverse:
            opts.append(with_reverse(True))
        _print_json(await client.history(args.channel, *opts))

    elif args.command == "history-remove":
        await client.history_remove(args.channel)

    elif args.command == "presence":
        _print_json(await client.presence(args.channel))

    elif args.command == "presence-stats":
        _print_json(await client.presence_stats(args.channel))

    elif args.command == "channels":
        opts = [with_pattern(args.pattern)] if args.pattern else []
        _print_json(await client.channels(*opts))

    elif args.command == "info":
        _print_json(await client.info())

    elif args.command == "disconnect":
        opts = []
        if args.code is not None or args.reason is not None:
            opts.append(with_disconnect(Disconnect(code=args.code, reason=args.reason)))
        await client.disconnect(args.user, *opts)

    elif args.command == "bench-pipe":
        pipe = client.pipe()
        for _ in range(args.count):
            pipe.add_publish(args.channel, args.data)

        replies = await client.send_pipe(pipe)
        failed = [reply for reply in replies if reply.error is not None]
        for reply in failed:
            print(f"command failed: {reply.error}", file=sys.stderr)
        print(f"Sent {len(replies)} commands in one HTTP request ({len(failed)} failed)")


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Load settings from the environment, then apply the flags that were given."""
    overrides = {}
    if args.addr:
        overrides["addr"] = args.addr
    if args.key:
        overrides["key"] = args.key
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    return ClientConfig(**overrides)


async def run(args: argparse.Namespace) -> int:
    """Build the client from arguments and run the command."""
    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    async with Client(config) as client:
        try:
            await run_command(client, args)
        except CentPipeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
