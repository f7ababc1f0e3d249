"""Authenticated RCON session: handshake, commands and multi-packet replies."""

from __future__ import annotations

import logging

from .errors import AuthenticationError, CommandTooLongError, RconIOError
from .protocol.packet import (
    ENCODING,
    Packet,
    PacketType,
    Stream,
    is_error,
    read_packet,
    write_packet,
)
from .transport.tcp_connection import DEFAULT_PORT, DEFAULT_TIMEOUT, TCPConnection

logger = logging.getLogger(__name__)

INITIAL_REQUEST_ID = 1
MAX_REQUEST_ID = 2**31 - 1

# Minecraft accepts request payloads of up to 1446 bytes, but only payloads
# of 1413 bytes or less round-trip reliably. Other servers may differ.
MAX_COMMAND_LENGTH = 1413


class Session:
    """One authenticated RCON connection.

    Constructing a session authenticates over *stream*; if the server
    rejects the password the stream is closed and
    :class:`~rcon_mcp.errors.AuthenticationError` is raised, so an
    instance is never observable in an unauthenticated state.

    Commands are strictly sequential. :meth:`response` relies on the
    server answering requests in the order they arrive and must not be
    interleaved with other calls on the same session.

    Args:
        stream: An exclusively owned byte stream providing ``write`` and
            ``read_exact``. If it also has ``close``, :meth:`close` calls it.
        password: The RCON password.
    """

    def __init__(self, stream: Stream, password: str) -> None:
        self._stream = stream
        self._next_request_id = INITIAL_REQUEST_ID
        try:
            self._auth(password)
        except Exception:
            self.close()
            raise

    @classmethod
    def connect(
        cls,
        address: tuple[str, int] | str,
        password: str,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> "Session":
        """Open a TCP connection to *address* and authenticate.

        Args:
            address: ``(host, port)`` or ``"host[:port]"``; the port
                defaults to 25575.
            password: The RCON password.
            timeout: Socket timeout in seconds, or None to block forever.

        Raises:
            RconIOError: If the connection cannot be established or
                breaks during the handshake.
            AuthenticationError: If the server rejects the password.
            ValueError: If *address* is a malformed string.
        """
        host, port = parse_address(address)
        conn = TCPConnection(host, port, timeout=timeout)
        try:
            conn.open()
        except OSError as e:
            raise RconIOError(f"unable to connect to {host}:{port}", e) from e
        return cls(conn, password)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying stream."""
        close = getattr(self._stream, "close", None)
        if close is not None:
            close()

    def cmd(self, command: str) -> int:
        """Send *command* without waiting for its reply.

        Returns:
            The request id the command was sent with.

        Raises:
            CommandTooLongError: If *command* is too long; nothing is sent.
            RconIOError: If the stream fails.
        """
        check_length(command)
        return self._send(PacketType.EXEC_COMMAND, command)

    def response(self, command: str) -> str:
        """Send *command* and return its complete reply.

        Replies longer than one frame arrive as several frames. An empty
        command is sent right after the real one; since the server handles
        requests in order, the echo of that empty command marks the end of
        the reply.

        Raises:
            CommandTooLongError: If *command* is too long; nothing is sent.
            RconIOError: If the stream fails before the reply is complete.
        """
        check_length(command)

        self._send(PacketType.EXEC_COMMAND, command)
        end_id = self._send(PacketType.EXEC_COMMAND, "")

        fragments = self._read_until(end_id)
        logger.debug("Reassembled reply from %d fragment(s)", len(fragments))
        return "".join(fragments)

    def sync(self) -> int:
        """Discard replies to earlier :meth:`cmd` calls that were never read.

        Sends an empty command and drops every frame that arrives before
        its echo, leaving the stream aligned for the next :meth:`response`.

        Returns:
            The number of frames discarded.

        Raises:
            RconIOError: If the stream fails before the echo arrives.
        """
        end_id = self._send(PacketType.EXEC_COMMAND, "")
        discarded = self._read_until(end_id)
        if discarded:
            logger.debug("Discarded %d unread frame(s)", len(discarded))
        return len(discarded)

    def _read_until(self, end_id: int) -> list[str]:
        bodies: list[str] = []
        while True:
            packet = self._recv()
            if packet.id == end_id:
                return bodies
            bodies.append(packet.body)

    def _auth(self, password: str) -> None:
        self._send(PacketType.AUTH, password)
        reply = self._recv()

        if is_error(reply):
            logger.info("Authentication rejected by server")
            raise AuthenticationError()
        logger.info("Authenticated")

    def _send(self, packet_type: PacketType, body: str) -> int:
        request_id = self._generate_request_id()
        write_packet(self._stream, Packet(id=request_id, type=packet_type, body=body))
        return request_id

    def _recv(self) -> Packet:
        return read_packet(self._stream)

    def _generate_request_id(self) -> int:
        request_id = self._next_request_id

        # negative ids are how the server signals failed authentication
        if self._next_request_id >= MAX_REQUEST_ID:
            logger.debug("Request id wrapped around")
            self._next_request_id = INITIAL_REQUEST_ID
        else:
            self._next_request_id += 1

        return request_id


def connect(
    address: tuple[str, int] | str,
    password: str,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Session:
    """Connect and authenticate; see :meth:`Session.connect`."""
    return Session.connect(address, password, timeout=timeout)


def check_length(command: str) -> None:
    """Raise CommandTooLongError if *command* exceeds the payload limit."""
    length = len(command.encode(ENCODING))
    if length > MAX_COMMAND_LENGTH:
        raise CommandTooLongError(length, MAX_COMMAND_LENGTH)


def parse_address(address: tuple[str, int] | str) -> tuple[str, int]:
    """Normalize an address to a ``(host, port)`` tuple.

    Accepts ``(host, port)``, ``"host"``, ``"host:port"``, a bare IPv6
    address such as ``"::1"``, and ``"[ipv6]"`` or ``"[ipv6]:port"``.
    """
    if isinstance(address, tuple):
        host, port = address
        return host, int(port)

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ValueError(f"Invalid address: {address!r}")
        port = rest[1:]
        return host, int(port) if port else DEFAULT_PORT

    # more than one colon means an unbracketed IPv6 address without a port
    if address.count(":") != 1:
        return address, DEFAULT_PORT

    host, _, port = address.partition(":")
    if not port.isdigit():
        raise ValueError(f"Invalid port in address: {address!r}")
    return host, int(port)
