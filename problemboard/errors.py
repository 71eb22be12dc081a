"""Exception types raised by the record store."""

from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base class for store errors that reach the HTTP layer."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class PersistenceFailure(StoreError):
    """Writing the snapshot file failed.

    The in-memory change that triggered the write has already been applied
    and is not rolled back.
    """

    def __init__(self, message: str = "Failed to persist state", cause: Optional[BaseException] = None) -> None:
        super().__init__(message, status_code=500)
        self.cause = cause


class CorruptDurableState(StoreError):
    """The snapshot file exists but cannot be decoded."""

    def __init__(self, message: str = "Durable state file is corrupt") -> None:
        super().__init__(message, status_code=500)
