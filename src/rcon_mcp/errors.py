"""Exceptions raised by the RCON codec and session."""

from __future__ import annotations


class RconError(Exception):
    """Base exception for all RCON errors."""


class AuthenticationError(RconError):
    """The server rejected the password (auth reply carried id -1)."""

    def __init__(self, message: str = "authentication failed") -> None:
        super().__init__(message)


class CommandTooLongError(RconError):
    """A command body exceeds the payload length the server accepts."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(
            f"command exceeds the maximum length ({length} > {limit} bytes)"
        )
        self.length = length
        self.limit = limit


class RconIOError(RconError):
    """Reading or writing the underlying stream failed.

    The transport-level exception is chained as ``__cause__`` and also
    kept on :attr:`cause`.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class ProtocolError(RconIOError):
    """The server sent a frame that cannot be decoded."""
