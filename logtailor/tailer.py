import contextlib
import os
import threading
import time
from typing import BinaryIO, Dict, Optional

from .channel import Channel
from .errors import AlreadyRunningError, FileMissingError, TailerError
from .lifecycle import StopToken, request_stop_and_join
from .line import Line
from .log import log_info, log_warn
from .options import Option, TailerOptions, build_options
from .rotation import is_same_file
from .seeker import seek_to_line_start
from .status import build_tailer_status

# A line can be read partially while the writer is still busy with it.
# Retry this many times before emitting whatever was read.
_PARTIAL_READ_ATTEMPTS = 5
_MAX_PARTIAL_WAIT_S = 1.0
_MAX_IDLE_WAIT_S = 5.0
_MIN_BUFFER_SIZE = 64


class Tailer:
    """
    Follows a growing file and survives logrotate (rename + recreate).

    run() opens the file, seeks to the configured start (moved back to a line
    start), then a background thread reads line by line and delivers Line
    objects on `lines`. Errors go to `errors`; both channels are closed
    together when the run ends. There are no inotify-style notifications:
    the thread polls with an exponential sleep to keep stat calls low.
    """

    def __init__(self, file_name: str, *opts: Option, options: Optional[TailerOptions] = None) -> None:
        self._file_name = str(file_name)
        base = options if options is not None else TailerOptions()
        self._opts = build_options(lambda _: base, *opts)

        self._file: Optional[BinaryIO] = None
        # Written by the poll thread only.
        self._last_pos = 0
        self._last_size = 0
        self._lag = 0
        self._rotations = 0
        self._emitted = 0
        self._dropped = 0
        self._last_error = ""
        self._fatal_error: Optional[TailerError] = None

        self._lines: Optional[Channel] = None
        self._errors: Optional[Channel] = None
        self._thread: Optional[threading.Thread] = None
        self._token: Optional[StopToken] = None
        # Non-blocking acquire is the test-and-set of the "is running" flag.
        self._running = threading.Lock()

    @property
    def file_name(self) -> str:
        return self._file_name

    @property
    def options(self) -> TailerOptions:
        return self._opts

    @property
    def lag(self) -> int:
        """Approximate distance to the end of file in bytes, refreshed per interval."""
        return self._lag

    @property
    def position(self) -> int:
        return self._last_pos

    @property
    def size(self) -> int:
        return self._last_size

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    @property
    def lines(self) -> Optional[Channel]:
        """Line channel of the current (or last) run; None before the first run."""
        return self._lines

    @property
    def errors(self) -> Optional[Channel]:
        return self._errors

    @property
    def fatal_error(self) -> Optional[TailerError]:
        """The error that ended the last run, or None if it was stopped."""
        return self._fatal_error

    def status(self) -> Dict[str, object]:
        return build_tailer_status(
            file_name=self._file_name,
            running=self.is_running,
            position=self._last_pos,
            size=self._last_size,
            lag=self._lag,
            rotations=self._rotations,
            emitted=self._emitted,
            dropped=self._dropped,
            last_error=self._last_error,
        )

    def run(self, stop_event: Optional[threading.Event] = None, timeout_s: Optional[float] = None) -> None:
        """
        Start tailing in a background thread.

        Raises AlreadyRunningError if a run is active, or TailerError if the
        file can't be opened/seeked/stated; in both cases nothing is started.
        The run ends when stop_event is set, timeout_s elapses, or a fatal
        error is reported on `errors`.
        """
        if not self._running.acquire(blocking=False):
            raise AlreadyRunningError(self._file_name)

        try:
            self._open_file(self._opts.run_offset, self._opts.run_whence, phase="opening")
            token = StopToken(stop_event, timeout_s)
            lines = Channel(maxsize=1)
            errors = Channel(maxsize=0)
            t = threading.Thread(
                target=self._read_loop,
                args=(token, lines, errors),
                name=f"logtailor:{os.path.basename(self._file_name)}",
                daemon=True,
            )
            self._token = token
            self._lines = lines
            self._errors = errors
            self._last_error = ""
            self._fatal_error = None
            self._thread = t
            t.start()
        except BaseException:
            self._close_after_failed_start()
            raise

    def stop(self, join_timeout_s: float = 2.0) -> bool:
        """Request a stop and wait for the thread; True if it is still alive."""
        token = self._token
        return request_stop_and_join(
            stop_event=token.event if token is not None else None,
            thread=self._thread,
            join_timeout_s=join_timeout_s,
        )

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current run to finish; True if it finished."""
        t = self._thread
        if t is None:
            return True
        t.join(timeout=timeout)
        return not t.is_alive()

    def _close_after_failed_start(self) -> None:
        f = self._file
        self._file = None
        try:
            if f is not None:
                with contextlib.suppress(OSError):
                    f.close()
        finally:
            self._running.release()

    def _open_file(self, offset: int, whence: int, *, phase: str) -> None:
        """Open read-only, seek to the start of the line at offset and refresh status."""
        path = self._file_name
        size = max(_MIN_BUFFER_SIZE, int(self._opts.read_buffer_size or 0))
        try:
            self._file = open(path, "rb", buffering=size)
        except FileNotFoundError as exc:
            raise FileMissingError(path, phase=phase) from exc
        except OSError as exc:
            raise TailerError(phase, f"error opening file: {exc}", path=path) from exc

        try:
            seek_to_line_start(self._file, offset, whence)
        except (OSError, ValueError) as exc:
            raise TailerError("seeking", f"error seeking to line start: {exc}", path=path) from exc

        self._update_file_status()

    def _update_file_status(self) -> None:
        f = self._file
        if f is None:
            raise TailerError("stating", "file is not open", path=self._file_name)
        try:
            size = int(os.fstat(f.fileno()).st_size)
            pos = int(f.tell())
        except (OSError, ValueError) as exc:
            raise TailerError("stating", f"error getting file status: {exc}", path=self._file_name) from exc
        self._last_pos = pos
        self._last_size = size
        self._lag = size - pos

    def _report(self, errors: Channel, err: TailerError, *, fatal: bool = False) -> None:
        self._last_error = str(err)
        if fatal:
            self._fatal_error = err
            log_warn(f"fatal:{self._file_name}", f"stopped tailing {self._file_name}: {err}")
        errors.send(err)

    def _read_line(self, token: StopToken) -> Optional[bytes]:
        """
        Read one line, waiting a little for a writer that is mid-line.

        Returns b"" at a clean end of file, the line (possibly without a
        terminator after the retries ran out), or None if stopped while waiting.
        """
        f = self._file
        wait = float(self._opts.poll_timeout_s)
        line = b""
        for _ in range(_PARTIAL_READ_ATTEMPTS):
            part = f.readline()
            if not line and part.endswith(b"\n"):
                return part
            line += part
            if not line or line.endswith(b"\n"):
                return line
            if token.wait(wait):
                return None
            wait = min(wait * 2, _MAX_PARTIAL_WAIT_S)
        return line

    def _reopen(self, errors: Channel) -> bool:
        old = self._file
        self._file = None
        if old is not None:
            try:
                old.close()
            except OSError as exc:
                self._report(errors, TailerError("closing", f"error closing current file: {exc}", path=self._file_name))
        try:
            self._open_file(self._opts.reopen_offset, self._opts.reopen_whence, phase="reopening")
        except TailerError as exc:
            self._report(errors, exc, fatal=True)
            return False
        self._rotations += 1
        log_info(f"{self._file_name} was rotated, reopened at offset {self._last_pos}")
        return True

    def _rewind_truncated(self, errors: Channel) -> bool:
        # Same file but shorter than our cursor: truncated in place (copytruncate).
        try:
            seek_to_line_start(self._file, self._opts.reopen_offset, self._opts.reopen_whence)
            self._update_file_status()
        except (OSError, ValueError) as exc:
            self._report(errors, TailerError("seeking", f"error seeking truncated file: {exc}", path=self._file_name), fatal=True)
            return False
        except TailerError as exc:
            self._report(errors, exc, fatal=True)
            return False
        log_info(f"{self._file_name} was truncated, rewound to offset {self._last_pos}")
        return True

    def _deliver(self, lines: Channel, line: bytes) -> None:
        rl = self._opts.rate_limiter
        if rl is not None and not rl.allow():
            self._dropped += 1
            return
        item = Line(file_name=self._file_name, raw=line)
        if self._opts.leaky_bucket:
            if lines.try_send(item):
                self._emitted += 1
            else:
                self._dropped += 1
            return
        lines.send(item)
        self._emitted += 1

    def _read_loop(self, token: StopToken, lines: Channel, errors: Channel) -> None:
        opts = self._opts
        base_wait = float(opts.poll_timeout_s)
        idle_wait = base_wait
        lag_interval = float(opts.update_lag_interval_s)
        next_status_ts = time.monotonic() + lag_interval
        try:
            while not token.is_set():
                now = time.monotonic()
                if now >= next_status_ts:
                    next_status_ts = now + lag_interval
                    try:
                        self._update_file_status()
                    except TailerError as exc:
                        self._report(errors, exc)

                try:
                    line = self._read_line(token)
                except (OSError, ValueError) as exc:
                    self._report(errors, TailerError("reading", f"error reading line: {exc}", path=self._file_name), fatal=True)
                    return
                if line is None:
                    return

                if line:
                    idle_wait = base_wait
                    self._deliver(lines, line)
                    continue

                # Nothing new: either a quiet file or logrotate swapped it.
                try:
                    same = is_same_file(self._file, self._file_name, sleep=token.wait)
                except TailerError as exc:
                    if not token.is_set():
                        self._report(errors, exc, fatal=True)
                    return

                if not same:
                    if not self._reopen(errors):
                        return
                    idle_wait = base_wait
                    continue

                try:
                    self._update_file_status()
                except TailerError as exc:
                    self._report(errors, exc)
                else:
                    if self._last_size < self._last_pos and not self._rewind_truncated(errors):
                        return
                token.wait(idle_wait)
                idle_wait = min(idle_wait * 2, _MAX_IDLE_WAIT_S)
        finally:
            self._finish(lines, errors)

    def _finish(self, lines: Channel, errors: Channel) -> None:
        f = self._file
        self._file = None
        try:
            if f is not None:
                try:
                    f.close()
                except OSError as exc:
                    self._report(errors, TailerError("closing", f"error closing file: {exc}", path=self._file_name))
            rl = self._opts.rate_limiter
            if rl is not None:
                rl.close()
        finally:
            lines.close()
            errors.close()
            self._running.release()
