"""MCP server entry point for RCON.

Exposes an RCON session to MCP clients as tools and resources using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import RconConfig
from .errors import AuthenticationError, CommandTooLongError, RconIOError
from .session import Session

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "rcon",
    instructions="Run console commands on a game server over RCON",
)

# Global session state
_session: Session | None = None
_address: tuple[str, int] | None = None
# send_command leaves replies unread; run_command discards them first
_unread_replies = False


def _get_session() -> Session:
    """Get the active session, raising if not connected."""
    if _session is None:
        raise RuntimeError(
            "Not connected to a server. Use the 'connect' tool first."
        )
    return _session


def _drop_session() -> None:
    """Forget the current session after a stream failure."""
    global _session, _address, _unread_replies
    if _session is not None:
        _session.close()
    _session = None
    _address = None
    _unread_replies = False


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    password: str | None = None,
) -> dict[str, Any]:
    """Connect and authenticate to an RCON server.

    Omitted arguments fall back to the RCON_HOST, RCON_PORT and
    RCON_PASSWORD environment variables.

    Args:
        host: Server hostname or IP address.
        port: RCON port (default 25575).
        password: RCON password.
    """
    global _session, _address
    if _session is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "address": f"{_address[0]}:{_address[1]}",
        }

    try:
        config = RconConfig.from_env()
    except ValueError as e:
        return {"connected": False, "error": f"Invalid configuration: {e}"}
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    if password is not None:
        config.password = password

    is_valid, message = config.validate()
    if not is_valid:
        return {"connected": False, "error": message}

    try:
        _session = Session.connect(
            (config.host, config.port), config.password, timeout=config.timeout
        )
    except (AuthenticationError, RconIOError) as e:
        logger.warning("Connect to %s:%d failed: %s", config.host, config.port, e)
        return {"connected": False, "error": str(e)}

    _address = (config.host, config.port)
    return {"connected": True, "address": f"{config.host}:{config.port}"}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the RCON connection."""
    _drop_session()
    return {"disconnected": True}


# ─── COMMAND TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def run_command(command: str) -> dict[str, Any]:
    """Run a console command and return the server's complete reply.

    Args:
        command: The console command, e.g. "list" or "say hello".
    """
    global _unread_replies
    session = _get_session()
    try:
        if _unread_replies:
            session.sync()
            _unread_replies = False
        reply = session.response(command)
    except CommandTooLongError as e:
        return {"error": str(e)}
    except RconIOError as e:
        logger.error("run_command failed, dropping session: %s", e)
        _drop_session()
        return {"error": str(e), "connected": False}

    return {"command": command, "response": reply}


@mcp.tool()
def send_command(command: str) -> dict[str, Any]:
    """Send a console command without waiting for the reply.

    Args:
        command: The console command.
    """
    global _unread_replies
    session = _get_session()
    try:
        request_id = session.cmd(command)
        _unread_replies = True
    except CommandTooLongError as e:
        return {"error": str(e)}
    except RconIOError as e:
        logger.error("send_command failed, dropping session: %s", e)
        _drop_session()
        return {"error": str(e), "connected": False}

    return {"command": command, "request_id": request_id}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("rcon://session/status")
def resource_session_status() -> str:
    """Connection state and server address."""
    if _session is None:
        return json.dumps({"connected": False})

    return json.dumps({
        "connected": True,
        "host": _address[0],
        "port": _address[1],
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
