"""rpcwire — HTTP call envelope models."""

from rpcwire.envelope import (
    AUTH_KEY,
    AUTHENTICATION_FAILED,
    INTERNAL_SERVER_ERROR,
    INVALID_PARAMS,
    METHOD_KEY,
    STATUS_CODE,
    CallEnvelope,
    CallError,
    CallResponse,
)

__all__ = [
    "CallEnvelope",
    "CallResponse",
    "CallError",
    "INVALID_PARAMS",
    "AUTHENTICATION_FAILED",
    "INTERNAL_SERVER_ERROR",
    "STATUS_CODE",
    "METHOD_KEY",
    "AUTH_KEY",
]
