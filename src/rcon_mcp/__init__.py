"""RCON client: packet codec, authenticated sessions and an MCP server."""

from .errors import (
    AuthenticationError,
    CommandTooLongError,
    ProtocolError,
    RconError,
    RconIOError,
)
from .session import MAX_COMMAND_LENGTH, Session, connect
