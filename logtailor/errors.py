from typing import Optional


class TailerError(Exception):
    """
    Error raised or reported by the tailer.

    `phase` names the step that failed: opening, seeking, stating, reading,
    reopening, closing or running.
    """

    def __init__(self, phase: str, message: str, path: Optional[str] = None) -> None:
        self.phase = str(phase or "running")
        self.message = str(message or "")
        self.path = path
        super().__init__(f"{self.phase}: {self.message}")


class AlreadyRunningError(TailerError):
    def __init__(self, path: Optional[str] = None) -> None:
        super().__init__("running", "already running", path=path)


class FileMissingError(TailerError):
    """The tailed path does not exist anymore (rotated away and never recreated)."""

    def __init__(self, path: str, phase: str = "stating") -> None:
        super().__init__(phase, f"file does not exist: {path}", path=path)
