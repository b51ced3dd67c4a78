"""
Core pipe components.

This module contains the command model, the per-command options, the pipe
that buffers commands and the reply decoders.
"""

from centpipe.core.command import Command, Method
from centpipe.core.pipe import Pipe
from centpipe.core.reply import ErrorInfo, Reply

__all__ = [
    "Command",
    "Method",
    "Pipe",
    "ErrorInfo",
    "Reply",
]
