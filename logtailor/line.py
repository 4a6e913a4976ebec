from __future__ import annotations

from dataclasses import dataclass

_TRAILER = b"\r\n "


@dataclass(frozen=True)
class Line:
    """One line read from the tailed file, terminator included."""

    file_name: str
    raw: bytes

    def bytes(self) -> bytes:
        return self.raw

    def bytes_trimmed(self) -> bytes:
        # Only \r, \n and spaces; tabs and other whitespace stay.
        return self.raw.rstrip(_TRAILER)

    def text(self, encoding: str = "utf-8", errors: str = "replace") -> str:
        return self.raw.decode(encoding, errors)

    def text_trimmed(self, encoding: str = "utf-8", errors: str = "replace") -> str:
        return self.bytes_trimmed().decode(encoding, errors)

    def __str__(self) -> str:
        return self.text()
