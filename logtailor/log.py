import sys
import threading
import time
from typing import Dict

_PREFIX = "[logtailor]"
_LAST_WARN_TS_BY_KIND: Dict[str, float] = {}
_LOCK = threading.Lock()


def _emit(msg: str) -> None:
    try:
        print(f"{_PREFIX} {msg}", file=sys.stderr)
    except Exception:
        pass


def log_info(msg: str) -> str:
    _emit(msg)
    return msg


def log_warn(kind: str, msg: str, min_interval_s: float = 5.0) -> str:
    """
    Rate-limited stderr log to avoid spamming when the same failure repeats
    (e.g. a status refresh failing on every tick).

    Returns msg unchanged so callers can keep it as a last_error value.
    """
    now = time.time()
    k = (kind or "warn").strip() or "warn"
    with _LOCK:
        last = float(_LAST_WARN_TS_BY_KIND.get(k, 0.0) or 0.0)
        if now - last < float(min_interval_s or 0.0):
            return msg
        _LAST_WARN_TS_BY_KIND[k] = now
    _emit(msg)
    return msg


def reset_warn_state() -> None:
    with _LOCK:
        _LAST_WARN_TS_BY_KIND.clear()
