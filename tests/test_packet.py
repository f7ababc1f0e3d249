"""Tests for RCON packet encoding and decoding."""

import io
import struct

import pytest

from rcon_mcp.errors import ProtocolError, RconIOError
from rcon_mcp.protocol.packet import (
    MAX_FRAME_LENGTH,
    MIN_FRAME_LENGTH,
    Packet,
    PacketType,
    decode_payload,
    encode_packet,
    is_error,
    read_packet,
    write_packet,
)


class BytesStream:
    """Minimal stream over an in-memory buffer."""

    def __init__(self, incoming: bytes = b"") -> None:
        self._in = io.BytesIO(incoming)
        self.written = bytearray()

    def write(self, data: bytes) -> int:
        self.written += data
        return len(data)

    def read_exact(self, size: int) -> bytes:
        data = self._in.read(size)
        if len(data) < size:
            raise ConnectionError("stream closed")
        return data


class BrokenStream:
    def write(self, data: bytes) -> int:
        raise BrokenPipeError("broken pipe")

    def read_exact(self, size: int) -> bytes:
        raise TimeoutError("timed out")


def _frame(packet_id: int, packet_type: int, body: bytes) -> bytes:
    payload = struct.pack("<ii", packet_id, packet_type) + body + b"\x00\x00"
    return struct.pack("<i", len(payload)) + payload


def test_encode_auth_packet_layout():
    """Verify every field of an encoded auth frame.

    Structure: [length] [id] [type] [body] 00 00
    """
    data = encode_packet(Packet(id=1, type=PacketType.AUTH, body="secret"))
    assert data[0:4] == struct.pack("<i", 4 + 4 + 6 + 2)
    assert data[4:8] == b"\x01\x00\x00\x00"  # id, little-endian
    assert data[8:12] == b"\x03\x00\x00\x00"  # auth type
    assert data[12:18] == b"secret"
    assert data[18:] == b"\x00\x00"


def test_encode_exec_command_type_code():
    data = encode_packet(Packet(id=7, type=PacketType.EXEC_COMMAND, body="list"))
    assert struct.unpack_from("<i", data, 8)[0] == 2


def test_length_field_counts_encoded_bytes():
    """The length field counts body bytes, not characters."""
    body = "héllo ✓"
    data = encode_packet(Packet(id=3, type=PacketType.EXEC_COMMAND, body=body))
    (length,) = struct.unpack_from("<i", data)
    assert length == 8 + len(body.encode("utf-8")) + 2
    assert len(data) == 4 + length


def test_encode_empty_body():
    data = encode_packet(Packet(id=2, type=PacketType.EXEC_COMMAND))
    assert data == struct.pack("<iii", 10, 2, 2) + b"\x00\x00"


def test_encode_negative_id():
    data = encode_packet(Packet(id=-1, type=PacketType.AUTH, body=""))
    assert data[4:8] == b"\xff\xff\xff\xff"


def test_roundtrip_through_stream():
    """Write a packet and read it back from the same bytes."""
    out = BytesStream()
    original = Packet(id=2**31 - 1, type=PacketType.EXEC_COMMAND, body="say hi ✓")
    write_packet(out, original)

    parsed = read_packet(BytesStream(bytes(out.written)))
    assert parsed == original


@pytest.mark.parametrize("packet_id", [-2**31, 0, 2**31 - 1])
@pytest.mark.parametrize("packet_type", [PacketType.AUTH, PacketType.EXEC_COMMAND])
@pytest.mark.parametrize("body", ["", "gamerule keepInventory true", "say héllo ✓ 世界"])
def test_roundtrip_table(packet_id, packet_type, body):
    original = Packet(id=packet_id, type=packet_type, body=body)
    data = encode_packet(original)
    assert struct.unpack_from("<i", data)[0] == 8 + len(body.encode("utf-8")) + 2
    assert read_packet(BytesStream(data)) == original


def test_roundtrip_auth_type():
    data = encode_packet(Packet(id=42, type=PacketType.AUTH, body="pw"))
    parsed = decode_payload(data[4:])
    assert parsed.id == 42
    assert parsed.type is PacketType.AUTH
    assert parsed.body == "pw"


def test_read_strips_terminators():
    stream = BytesStream(_frame(5, 0, b"There are 0 players online"))
    packet = read_packet(stream)
    assert packet.id == 5
    assert packet.type is PacketType.RESPONSE_VALUE
    assert packet.body == "There are 0 players online"


def test_read_consumes_one_frame_only():
    stream = BytesStream(_frame(1, 0, b"first") + _frame(2, 0, b"second"))
    assert read_packet(stream).body == "first"
    assert read_packet(stream).body == "second"


def test_unknown_type_code_is_kept():
    """Unrecognized type codes are not an error at the codec layer."""
    packet = read_packet(BytesStream(_frame(9, 77, b"")))
    assert packet.type == 77
    assert not isinstance(packet.type, PacketType)


def test_read_invalid_utf8_is_replaced():
    packet = read_packet(BytesStream(_frame(1, 0, b"caf\xe9")))
    assert packet.body == "caf\ufffd"


def test_read_length_too_small():
    """A length that cannot hold id, type and terminators is rejected."""
    stream = BytesStream(struct.pack("<ii", 4, 1))
    with pytest.raises(ProtocolError):
        read_packet(stream)


def test_read_length_too_large():
    """An oversized length is rejected before any body bytes are read."""
    stream = BytesStream(struct.pack("<i", 2**31 - 1) + b"\x00" * 64)
    with pytest.raises(ProtocolError):
        read_packet(stream)
    assert stream._in.tell() == 4


def test_read_largest_frame():
    body = b"x" * (MAX_FRAME_LENGTH - MIN_FRAME_LENGTH)
    assert read_packet(BytesStream(_frame(1, 0, body))).body == body.decode()
    with pytest.raises(ProtocolError):
        read_packet(BytesStream(_frame(1, 0, body + b"x")))


def test_protocol_error_is_io_error():
    assert issubclass(ProtocolError, RconIOError)


def test_decode_payload_too_short():
    with pytest.raises(ProtocolError):
        decode_payload(b"\x00" * (MIN_FRAME_LENGTH - 1))


def test_read_short_frame_fails():
    """A stream that closes mid-frame is a failure, not a partial packet."""
    truncated = _frame(1, 0, b"partial body")[:-5]
    with pytest.raises(RconIOError) as excinfo:
        read_packet(BytesStream(truncated))
    assert isinstance(excinfo.value.cause, ConnectionError)


def test_read_empty_stream_fails():
    with pytest.raises(RconIOError):
        read_packet(BytesStream(b""))


def test_write_failure_is_wrapped():
    with pytest.raises(RconIOError) as excinfo:
        write_packet(BrokenStream(), Packet(id=1, type=PacketType.AUTH, body="x"))
    assert isinstance(excinfo.value.__cause__, BrokenPipeError)
    assert "broken pipe" in str(excinfo.value)


def test_read_timeout_is_wrapped():
    with pytest.raises(RconIOError) as excinfo:
        read_packet(BrokenStream())
    assert isinstance(excinfo.value.cause, TimeoutError)


def test_is_error():
    assert is_error(Packet(id=-1, type=PacketType.AUTH_RESPONSE))
    assert not is_error(Packet(id=1, type=PacketType.AUTH_RESPONSE))
    assert not is_error(Packet(id=0, type=PacketType.AUTH_RESPONSE))
    assert not is_error(Packet(id=-2, type=PacketType.AUTH_RESPONSE))


def test_auth_response_aliases_exec_command():
    assert PacketType.AUTH_RESPONSE is PacketType.EXEC_COMMAND


def test_packet_repr():
    r = repr(Packet(id=3, type=PacketType.AUTH, body="pw"))
    assert "AUTH" in r
    assert "id=3" in r
