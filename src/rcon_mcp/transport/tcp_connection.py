"""Buffered TCP connection to an RCON server.

The session only needs ``write`` and ``read_exact``; this module supplies
both on top of a socket wrapped in a buffered binary file object.
"""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25575
DEFAULT_TIMEOUT = 5.0


class TCPConnection:
    """Manages the TCP stream to an RCON server.

    Usage::

        conn = TCPConnection("localhost", 25575)
        conn.open()
        conn.write(frame_bytes)
        header = conn.read_exact(4)
        conn.close()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._socket: socket.socket | None = None
        self._file = None

    @property
    def connected(self) -> bool:
        return self._file is not None

    @property
    def address(self) -> tuple[str, int]:
        return self._host, self._port

    def open(self) -> None:
        """Connect to the server.

        Raises:
            OSError: If the connection cannot be established or times out.
        """
        sock = socket.create_connection(
            (self._host, self._port), timeout=self._timeout
        )
        self._attach(sock)
        logger.info("Connected to %s:%d", self._host, self._port)

    @classmethod
    def from_socket(cls, sock: socket.socket) -> "TCPConnection":
        """Wrap an already connected socket."""
        try:
            host, port = sock.getpeername()[:2]
        except (OSError, ValueError):
            host, port = "", 0
        conn = cls(host, port, timeout=sock.gettimeout())
        conn._attach(sock)
        return conn

    def _attach(self, sock: socket.socket) -> None:
        self._socket = sock
        self._file = sock.makefile("rwb")

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if not self.connected:
            return

        try:
            self._file.close()
            self._socket.close()
        except OSError as e:
            logger.warning("Error closing connection: %s", e)
        finally:
            self._file = None
            self._socket = None
            logger.info("Disconnected from %s:%d", self._host, self._port)

    def write(self, data: bytes) -> int:
        """Write *data* and flush it to the socket.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
            OSError: If the write fails.
        """
        if not self.connected:
            raise ConnectionError("Not connected to server")

        written = self._file.write(data)
        self._file.flush()
        return written

    def read_exact(self, size: int) -> bytes:
        """Read exactly *size* bytes.

        Raises:
            ConnectionError: If not connected, or the server closed the
                connection before *size* bytes arrived.
            OSError: If the read fails or times out.
        """
        if not self.connected:
            raise ConnectionError("Not connected to server")

        data = self._file.read(size)
        if len(data) < size:
            raise ConnectionError(
                f"Connection closed by server after {len(data)} of {size} bytes"
            )
        return data
