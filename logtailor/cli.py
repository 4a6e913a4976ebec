import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, TextIO

from .channel import Channel
from .errors import TailerError
from .log import log_info, log_warn
from .options import (
    TailerOptions,
    load_options,
    parse_whence,
    with_leaky_bucket,
    with_poll_timeout,
    with_rate_limiter,
    with_seek_on_startup,
    with_update_lag_interval,
)
from .rate_limiter import TickerRateLimiter
from .tailer import Tailer

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_STARTUP_ERROR = 2


def _parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="logtailor",
        description="Follow a log file like `tail -F`, surviving logrotate, without inotify.",
    )
    p.add_argument("path", help="file to follow")
    p.add_argument("--config", default=None, help="JSON file with tailer options (flags override it)")
    p.add_argument("--from-start", action="store_true", help="start at the beginning of the file instead of the end")
    p.add_argument("--offset", type=int, default=None, help="startup seek offset in bytes (moved back to a line start)")
    p.add_argument(
        "--whence",
        default=None,
        choices=["start", "current", "end"],
        help="startup seek origin (default: end)",
    )
    p.add_argument("--poll-timeout", type=float, default=None, help="base poll sleep in seconds (default: 0.01)")
    p.add_argument("--lag-interval", type=float, default=None, help="lag refresh interval in seconds (default: 5)")
    p.add_argument("--lps", type=float, default=None, help="limit output to N lines per second")
    p.add_argument("--leaky-bucket", action="store_true", help="drop lines instead of blocking when output is slow")
    p.add_argument("--timeout", type=float, default=None, help="stop after N seconds")
    p.add_argument("--raw", action="store_true", help="print lines untrimmed")
    p.add_argument("--show-lag", action="store_true", help="print the lag to stderr when the run ends")
    return p.parse_args(argv)


def _build_tailer(args: argparse.Namespace) -> Tailer:
    base = load_options(Path(args.config)) if args.config else TailerOptions()
    opts = []
    if args.from_start:
        opts.append(with_seek_on_startup(0, parse_whence("start")))
    if args.offset is not None or args.whence is not None:
        offset = int(args.offset) if args.offset is not None else int(base.run_offset)
        whence = parse_whence(args.whence, base.run_whence) if args.whence is not None else base.run_whence
        opts.append(with_seek_on_startup(offset, whence))
    if args.poll_timeout is not None:
        opts.append(with_poll_timeout(args.poll_timeout))
    if args.lag_interval is not None:
        opts.append(with_update_lag_interval(args.lag_interval))
    if args.lps is not None and args.lps > 0:
        opts.append(with_rate_limiter(TickerRateLimiter(args.lps)))
    if args.leaky_bucket:
        opts.append(with_leaky_bucket())
    return Tailer(args.path, *opts, options=base)


def _drain_errors(errors: Channel) -> None:
    for err in errors:
        log_warn(f"error:{getattr(err, 'phase', '')}", f"ERROR: {err}", min_interval_s=5.0)


def follow(tailer: Tailer, stop_event: threading.Event, timeout_s: Optional[float], out: TextIO, raw: bool) -> int:
    """Run the tailer and copy its lines to `out` until the run ends."""
    tailer.run(stop_event, timeout_s=timeout_s)
    drainer = threading.Thread(
        target=_drain_errors,
        args=(tailer.errors,),
        name="logtailor-errors",
        daemon=True,
    )
    drainer.start()
    for line in tailer.lines:
        out.write(line.text() if raw else line.text_trimmed() + "\n")
        out.flush()
    drainer.join()
    return EXIT_RUNTIME_ERROR if tailer.fatal_error is not None else EXIT_OK


def main(argv=None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    args = _parse_args(raw_argv)

    try:
        tailer = _build_tailer(args)
    except ValueError as exc:
        print(f"[logtailor] ERROR: {exc}", file=sys.stderr)
        return EXIT_STARTUP_ERROR

    stop_event = threading.Event()

    def _on_signal(signum, _frame) -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _on_signal)
        except (ValueError, OSError):
            # Not in the main thread (e.g. embedded); rely on --timeout.
            pass

    log_info(f"following {tailer.file_name}")
    try:
        code = follow(tailer, stop_event, args.timeout, sys.stdout, bool(args.raw))
    except TailerError as exc:
        print(f"[logtailor] ERROR: can't start tailing: {exc}", file=sys.stderr)
        return EXIT_STARTUP_ERROR
    except BrokenPipeError:
        tailer.stop()
        return EXIT_OK
    if args.show_lag:
        log_info(f"lag={tailer.lag} position={tailer.position} size={tailer.size}")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
