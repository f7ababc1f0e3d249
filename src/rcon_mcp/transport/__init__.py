"""Transport layer: byte streams the session runs over."""

from .tcp_connection import TCPConnection
