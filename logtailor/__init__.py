"""
logtailor: follow a growing log file across logrotate without inotify.

    t = Tailer("/var/log/nginx/access.log", with_seek_on_startup(0, os.SEEK_SET))
    t.run(stop_event)
    for line in t.lines:
        print(line.text_trimmed())
"""

from typing import Any

from .channel import Channel, ChannelClosed
from .errors import AlreadyRunningError, FileMissingError, TailerError
from .line import Line
from .options import (
    Option,
    TailerOptions,
    build_options,
    load_options,
    with_leaky_bucket,
    with_poll_timeout,
    with_rate_limiter,
    with_read_buffer_size,
    with_seek_on_reopen,
    with_seek_on_startup,
    with_update_lag_interval,
)
from .rate_limiter import NoopRateLimiter, RateLimiter, TickerRateLimiter
from .tailer import Tailer

__all__ = [
    "AlreadyRunningError",
    "Channel",
    "ChannelClosed",
    "FileMissingError",
    "Line",
    "NoopRateLimiter",
    "Option",
    "RateLimiter",
    "Tailer",
    "TailerError",
    "TailerOptions",
    "TickerRateLimiter",
    "build_options",
    "load_options",
    "main",
    "with_leaky_bucket",
    "with_poll_timeout",
    "with_rate_limiter",
    "with_read_buffer_size",
    "with_seek_on_reopen",
    "with_seek_on_startup",
    "with_update_lag_interval",
]


def main(argv: Any = None) -> int:
    # Lazy import: library users don't need argparse/signal wiring.
    from .cli import main as _main

    return int(_main(argv))
