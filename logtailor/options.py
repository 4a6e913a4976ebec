import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .rate_limiter import RateLimiter, TickerRateLimiter

_WHENCE_BY_NAME = {
    "start": os.SEEK_SET,
    "set": os.SEEK_SET,
    "current": os.SEEK_CUR,
    "cur": os.SEEK_CUR,
    "end": os.SEEK_END,
}
_WHENCE_NAMES = {os.SEEK_SET: "start", os.SEEK_CUR: "current", os.SEEK_END: "end"}


def parse_whence(v: Any, default: int = os.SEEK_SET) -> int:
    if isinstance(v, bool):
        return int(default)
    if isinstance(v, int):
        return v if v in _WHENCE_NAMES else int(default)
    s = str(v or "").strip().lower()
    if not s:
        return int(default)
    if s.isdigit():
        return parse_whence(int(s), default)
    return _WHENCE_BY_NAME.get(s, int(default))


def whence_name(whence: int) -> str:
    return _WHENCE_NAMES.get(int(whence), str(whence))


def _to_int(v: Any, default: int) -> int:
    try:
        if v is None:
            return int(default)
        if isinstance(v, bool):
            return int(v)
        if isinstance(v, (int, float)):
            return int(v)
        s = str(v).strip()
        if not s:
            return int(default)
        try:
            return int(s)
        except ValueError:
            return int(float(s))
    except (TypeError, ValueError):
        return int(default)


def _to_float(v: Any, default: float) -> float:
    try:
        if v is None:
            return float(default)
        if isinstance(v, bool):
            return float(int(v))
        if isinstance(v, (int, float)):
            return float(v)
        s = str(v).strip()
        if not s:
            return float(default)
        return float(s)
    except (TypeError, ValueError):
        return float(default)


@dataclass(frozen=True)
class TailerOptions:
    # Where to put the cursor when run() opens the file (default: the end).
    run_offset: int = 0
    run_whence: int = os.SEEK_END

    # Where to put the cursor on the fresh file after a rotation.
    reopen_offset: int = 0
    reopen_whence: int = os.SEEK_SET

    read_buffer_size: int = 4096
    # Base poll sleep; grows exponentially while there is nothing to read.
    poll_timeout_s: float = 0.01
    update_lag_interval_s: float = 5.0

    rate_limiter: Optional[RateLimiter] = None
    # Drop lines instead of blocking when the consumer is not ready.
    leaky_bucket: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "run_offset": int(self.run_offset),
            "run_whence": whence_name(self.run_whence),
            "reopen_offset": int(self.reopen_offset),
            "reopen_whence": whence_name(self.reopen_whence),
            "read_buffer_size": int(self.read_buffer_size),
            "poll_timeout_s": float(self.poll_timeout_s),
            "update_lag_interval_s": float(self.update_lag_interval_s),
            "leaky_bucket": bool(self.leaky_bucket),
        }
        rl = self.rate_limiter
        if isinstance(rl, TickerRateLimiter):
            out["lines_per_second"] = 1.0 / rl.period_s
        return out

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TailerOptions":
        base = TailerOptions()
        if not isinstance(d, dict):
            return base
        rate_limiter: Optional[RateLimiter] = None
        lps = _to_float(d.get("lines_per_second"), 0.0)
        if lps > 0.0:
            rate_limiter = TickerRateLimiter(lps)
        return build_options(
            with_seek_on_startup(
                _to_int(d.get("run_offset"), base.run_offset),
                parse_whence(d.get("run_whence"), base.run_whence),
            ),
            with_seek_on_reopen(
                _to_int(d.get("reopen_offset"), base.reopen_offset),
                parse_whence(d.get("reopen_whence"), base.reopen_whence),
            ),
            with_read_buffer_size(_to_int(d.get("read_buffer_size"), base.read_buffer_size)),
            with_poll_timeout(_to_float(d.get("poll_timeout_s"), base.poll_timeout_s)),
            with_update_lag_interval(_to_float(d.get("update_lag_interval_s"), base.update_lag_interval_s)),
            with_rate_limiter(rate_limiter),
            with_leaky_bucket(bool(d.get("leaky_bucket") or False)),
        )


Option = Callable[[TailerOptions], TailerOptions]


def with_seek_on_startup(offset: int, whence: int) -> Option:
    """Seek applied when run() opens the file. Use os.SEEK_* for whence."""
    return lambda o: replace(o, run_offset=int(offset), run_whence=int(whence))


def with_seek_on_reopen(offset: int, whence: int) -> Option:
    """Seek applied to the new file after a rotation. Use os.SEEK_* for whence."""
    return lambda o: replace(o, reopen_offset=int(offset), reopen_whence=int(whence))


def with_read_buffer_size(size: int) -> Option:
    return lambda o: replace(o, read_buffer_size=max(1, int(size)))


def with_poll_timeout(seconds: float) -> Option:
    return lambda o: replace(o, poll_timeout_s=max(0.001, float(seconds)))


def with_update_lag_interval(seconds: float) -> Option:
    """How often lag/position are refreshed. Smaller means more fstat calls."""
    return lambda o: replace(o, update_lag_interval_s=max(0.001, float(seconds)))


def with_rate_limiter(rate_limiter: Optional[RateLimiter]) -> Option:
    """
    Gate every line through rate_limiter.allow().

    The tailer closes the limiter when its run ends. A closed
    TickerRateLimiter drops every line, so pass a fresh one before running
    the same Tailer again.
    """
    return lambda o: replace(o, rate_limiter=rate_limiter)


def with_leaky_bucket(enabled: bool = True) -> Option:
    """Skip lines when the consumer is not ready instead of blocking the loop."""
    return lambda o: replace(o, leaky_bucket=bool(enabled))


def build_options(*opts: Option) -> TailerOptions:
    out = TailerOptions()
    for o in opts:
        out = o(out)
    return out


def load_options(path: Path) -> TailerOptions:
    """
    Load options from a JSON object file. A missing or malformed file gives
    the defaults.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
        obj = json.loads(raw)
    except (OSError, ValueError):
        return TailerOptions()
    if not isinstance(obj, dict):
        return TailerOptions()
    return TailerOptions.from_dict(obj)
