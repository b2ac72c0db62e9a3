"""HTTP call envelope models.

Pure data — no I/O, no dispatch logic.  Both the server and the client
import these for serialisation only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ── Error types ──────────────────────────────────────────────────────
INVALID_PARAMS = "invalid_params"
AUTHENTICATION_FAILED = "authentication_failed"
INTERNAL_SERVER_ERROR = "internal_server_error"
STATUS_CODE = "status_code"

METHOD_KEY = "method"
AUTH_KEY = "auth"


# ── Models ───────────────────────────────────────────────────────────
@dataclass(slots=True)
class CallError:
    """Error object carried by a failed call response."""

    type: str
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.data is not None:
            d["data"] = self.data
        return d


@dataclass(slots=True)
class CallEnvelope:
    """Inbound call to ``POST /{endpoint}``.

    The body is a flat JSON object: the ``method`` key names the method,
    an optional ``auth`` key carries the token, every other key is a
    parameter.
    """

    endpoint: str
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    auth: str | None = None

    # -- Convenience ---------------------------------------------------
    def to_body(self) -> dict[str, Any]:
        body = dict(self.params)
        body[METHOD_KEY] = self.method
        if self.auth is not None:
            body[AUTH_KEY] = self.auth
        return body

    @classmethod
    def from_body(cls, endpoint: str, raw: Any) -> "CallEnvelope":
        """Parse a decoded body — raises ``ValueError`` on bad input."""
        if not isinstance(raw, dict):
            raise ValueError("call body must be a JSON object")
        params = dict(raw)
        method = params.pop(METHOD_KEY, None)
        if not isinstance(method, str) or not method:
            raise ValueError("missing or invalid 'method' field")
        auth = params.pop(AUTH_KEY, None)
        if auth is not None and not isinstance(auth, str):
            raise ValueError("'auth' must be a string")
        return cls(endpoint=endpoint, method=method, params=params, auth=auth)


@dataclass(slots=True)
class CallResponse:
    """Outbound call response body."""

    result: Any = None
    error: CallError | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.to_dict()}
        return {"result": self.result}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CallResponse":
        """Parse a decoded response body — raises ``ValueError`` on bad input."""
        if not isinstance(raw, dict):
            raise ValueError("response must be a JSON object")
        err = raw.get("error")
        if err is not None:
            if not isinstance(err, dict) or "type" not in err or "message" not in err:
                raise ValueError("malformed 'error' field")
            return cls(error=CallError(err["type"], err["message"], err.get("data")))
        return cls(result=raw.get("result"))

    # -- Factories -----------------------------------------------------
    @classmethod
    def success(cls, result: Any) -> "CallResponse":
        return cls(result=result)

    @classmethod
    def fail(cls, type: str, message: str, data: Any = None) -> "CallResponse":
        return cls(error=CallError(type=type, message=message, data=data))
