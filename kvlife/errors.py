"""
kvlife error types
"""

from __future__ import annotations


class KvlifeError(Exception):
    """Base error for kvlife."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class StoreUnavailableError(KvlifeError):
    """A store operation failed on a synchronous path."""

    def __init__(self, message: str, code: str | None = "store_unavailable") -> None:
        super().__init__(message, code)


class ShutdownTimeoutError(KvlifeError):
    """A background loop was still running past its stop deadline."""

    def __init__(self, message: str, code: str | None = "shutdown_timeout") -> None:
        super().__init__(message, code)


class LoopFailedError(KvlifeError):
    """A background loop exited on an unexpected error."""

    def __init__(self, message: str, code: str | None = "loop_failed") -> None:
        super().__init__(message, code)
