"""RCON packet encoding and decoding.

Frame layout (all integers little-endian, signed 32-bit)::

    +---------+------------+---------+------------------+----------+----------+
    | Length  | Request ID |  Type   |       Body       | Body NUL | Frame NUL|
    | 4 bytes |  4 bytes   | 4 bytes | variable length  |  1 byte  |  1 byte  |
    +---------+------------+---------+------------------+----------+----------+

- Length: byte count of everything after the length field itself
- Request ID: chosen by the client, echoed by the server; -1 on auth failure
- Type: 3 = auth request, 2 = command request, 0 = response value
- Body: text, no declared encoding on the wire
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

from ..errors import ProtocolError, RconIOError

logger = logging.getLogger(__name__)

HEADER = struct.Struct("<ii")  # request id, type
LENGTH = struct.Struct("<i")
TERMINATOR = b"\x00\x00"
MIN_FRAME_LENGTH = HEADER.size + len(TERMINATOR)
# Servers split replies into bodies of at most 4096 bytes.
MAX_BODY_LENGTH = 4096
MAX_FRAME_LENGTH = MIN_FRAME_LENGTH + MAX_BODY_LENGTH
ENCODING = "utf-8"
AUTH_FAILURE_ID = -1


class PacketType(IntEnum):
    """Packet type codes.

    The server answers an auth request with the same code used for
    command requests, hence the alias.
    """

    RESPONSE_VALUE = 0
    EXEC_COMMAND = 2
    AUTH_RESPONSE = 2
    AUTH = 3


class Stream(Protocol):
    """The byte stream the codec reads from and writes to."""

    def write(self, data: bytes) -> object: ...

    def read_exact(self, size: int) -> bytes: ...


@dataclass(frozen=True)
class Packet:
    """A single RCON frame."""

    id: int
    type: PacketType | int
    body: str = ""

    def __repr__(self) -> str:
        type_name = self.type.name if isinstance(self.type, PacketType) else self.type
        return f"Packet(id={self.id}, type={type_name}, body={self.body!r})"


def is_error(packet: Packet) -> bool:
    """Return True if *packet* signals a failed authentication."""
    return packet.id == AUTH_FAILURE_ID


def encode_packet(packet: Packet) -> bytes:
    """Encode *packet* into a complete frame, length prefix included."""
    body = packet.body.encode(ENCODING)
    frame_length = HEADER.size + len(body) + len(TERMINATOR)
    return (
        LENGTH.pack(frame_length)
        + HEADER.pack(packet.id, int(packet.type))
        + body
        + TERMINATOR
    )


def decode_payload(data: bytes) -> Packet:
    """Decode everything that follows the length field of one frame.

    Args:
        data: Exactly ``frame_length`` bytes: id, type, body and the two
            terminator bytes.

    Raises:
        ProtocolError: If *data* is too short to hold a frame.
    """
    if len(data) < MIN_FRAME_LENGTH:
        raise ProtocolError(
            f"frame of {len(data)} bytes is shorter than the "
            f"{MIN_FRAME_LENGTH}-byte minimum"
        )
    packet_id, type_code = HEADER.unpack_from(data)
    body = data[HEADER.size : -len(TERMINATOR)].decode(ENCODING, errors="replace")
    return Packet(id=packet_id, type=_packet_type(type_code), body=body)


def write_packet(stream: Stream, packet: Packet) -> None:
    """Serialize *packet* onto *stream*.

    Raises:
        RconIOError: If the stream write fails. The frame may have been
            partially sent.
    """
    data = encode_packet(packet)
    logger.debug("-> %r (%d bytes)", packet, len(data))
    try:
        stream.write(data)
    except OSError as e:
        raise RconIOError("unable to send packet", e) from e


def read_packet(stream: Stream) -> Packet:
    """Read one frame from *stream*.

    Raises:
        ProtocolError: If the length field cannot describe a valid frame.
        RconIOError: On a short read or any other stream failure.
    """
    try:
        (frame_length,) = LENGTH.unpack(stream.read_exact(LENGTH.size))
        if frame_length < MIN_FRAME_LENGTH:
            raise ProtocolError(
                f"invalid frame length {frame_length} "
                f"(minimum is {MIN_FRAME_LENGTH})"
            )
        if frame_length > MAX_FRAME_LENGTH:
            raise ProtocolError(
                f"invalid frame length {frame_length} "
                f"(maximum is {MAX_FRAME_LENGTH})"
            )
        data = stream.read_exact(frame_length)
    except OSError as e:
        raise RconIOError("unable to receive packet", e) from e

    packet = decode_payload(data)
    logger.debug("<- %r", packet)
    return packet


def _packet_type(code: int) -> PacketType | int:
    try:
        return PacketType(code)
    except ValueError:
        return code
