"""Protocol layer: RCON packet framing."""

from .packet import (
    Packet,
    PacketType,
    decode_payload,
    encode_packet,
    is_error,
    read_packet,
    write_packet,
)
