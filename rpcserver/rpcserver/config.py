"""Server settings read from the environment (and ``./.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8100
DEFAULT_MAX_REQUEST_SIZE = 524288  # bytes

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    max_request_size: int = DEFAULT_MAX_REQUEST_SIZE
    expose_errors: bool = False

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(os.path.join(Path.cwd(), ".env"))
        return cls(
            host=os.getenv("RPC_HOST", DEFAULT_HOST),
            port=int(os.getenv("RPC_PORT", str(DEFAULT_PORT))),
            log_level=os.getenv("RPC_LOG_LEVEL", "INFO").upper(),
            max_request_size=int(
                os.getenv("RPC_MAX_REQUEST_SIZE", str(DEFAULT_MAX_REQUEST_SIZE))
            ),
            expose_errors=os.getenv("RPC_EXPOSE_ERRORS", "").lower() in _TRUTHY,
        )
