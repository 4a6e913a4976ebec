from __future__ import annotations

from typing import Dict, Optional


def build_tailer_status(
    *,
    file_name: str,
    running: bool,
    position: int,
    size: int,
    lag: int,
    rotations: int,
    emitted: int,
    dropped: int,
    last_error: Optional[str],
) -> Dict[str, object]:
    """
    Build the status snapshot returned by Tailer.status().

    Notes:
    - Values are whatever was stored at the last refresh; lag is not
      recomputed here.
    - This function should be pure (no IO, no locks, no side-effects).
    """
    return {
        "file_name": str(file_name or ""),
        "running": bool(running),
        "position": int(position or 0),
        "size": int(size or 0),
        "lag": int(lag or 0),
        "rotations": int(rotations or 0),
        "emitted": int(emitted or 0),
        "dropped": int(dropped or 0),
        "last_error": str(last_error or ""),
    }
