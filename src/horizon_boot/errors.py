from __future__ import annotations


class StartupError(RuntimeError):
    """A startup stage failed; the container must not become ready."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message
