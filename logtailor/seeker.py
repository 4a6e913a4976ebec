import os
from typing import BinaryIO

DEFAULT_BLOCK_SIZE = 256


def seek_to_line_start(f: BinaryIO, offset: int, whence: int, block_size: int = DEFAULT_BLOCK_SIZE) -> int:
    """
    Seek to offset/whence, then move the cursor back to the start of the line
    containing that position.

    Only bytes strictly before the target are scanned, nearest first, one
    block at a time. The cursor ends up one byte after the last `\\n` found,
    or at 0 when there is none. Returns the final absolute position.
    """
    initial = int(f.seek(int(offset), int(whence)))
    if initial == 0:
        return 0

    size = os.fstat(f.fileno()).st_size
    pos = min(initial, int(size))
    step = max(1, int(block_size or DEFAULT_BLOCK_SIZE))
    target = 0
    while pos > 0:
        start = pos - step if pos >= step else 0
        f.seek(start)
        buf = f.read(pos - start)
        if not buf:
            break
        idx = buf.rfind(b"\n")
        if idx >= 0:
            target = start + idx + 1
            break
        pos = start

    return int(f.seek(target, os.SEEK_SET))
