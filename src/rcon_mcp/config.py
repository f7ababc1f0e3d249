"""Connection settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .transport.tcp_connection import DEFAULT_PORT, DEFAULT_TIMEOUT


@dataclass
class RconConfig:
    host: str = "localhost"
    port: int = DEFAULT_PORT
    password: str = ""
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "RconConfig":
        return cls(
            host=os.getenv("RCON_HOST", "localhost"),
            port=int(os.getenv("RCON_PORT", str(DEFAULT_PORT))),
            password=os.getenv("RCON_PASSWORD", ""),
            timeout=float(os.getenv("RCON_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )

    def validate(self) -> tuple[bool, str]:
        if not self.password:
            return False, "RCON_PASSWORD environment variable not set"

        if not 0 < self.port < 65536:
            return False, f"RCON_PORT must be 1-65535, got {self.port}"

        return True, "Configuration is valid"
