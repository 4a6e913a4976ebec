import os
import time
from typing import BinaryIO, Callable

from .errors import FileMissingError, TailerError


def is_same_file(
    f: BinaryIO,
    path: str,
    *,
    attempts: int = 2,
    retry_interval_s: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Check whether the open handle `f` is still the file reachable at `path`.

    Rename-then-create is not atomic for an outside observer, so a missing
    path is retried a few times before giving up with FileMissingError.
    """
    tries = max(1, int(attempts or 1))
    by_name = None
    for i in range(tries):
        try:
            by_name = os.stat(path)
            break
        except FileNotFoundError:
            if i + 1 < tries:
                sleep(float(retry_interval_s or 0.0))
        except OSError as exc:
            raise TailerError("stating", f"error stating maybe new file by name: {exc}", path=path) from exc
    if by_name is None:
        raise FileMissingError(path)

    try:
        current = os.fstat(f.fileno())
    except (OSError, ValueError) as exc:
        raise TailerError("stating", f"error stating current file: {exc}", path=path) from exc

    return os.path.samestat(current, by_name)
