"""Collaborators consumed by the dispatcher.

* ``Authenticator`` — resolves an auth token to a user and its scopes.
* ``Serialization`` — turns structured payloads into domain objects and back.
* ``CallLog``       — records calls and returns a record id.

Each protocol ships with a small in-memory implementation that the demo
server and the tests use.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping, Protocol

if TYPE_CHECKING:
    from rpcserver.context import CallContext

log = logging.getLogger(__name__)


# ── Authentication ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AuthInfo:
    """A successfully authenticated caller."""

    user_id: int
    scopes: frozenset[str] = field(default_factory=frozenset)


class Authenticator(Protocol):
    async def authenticate(self, token: str) -> AuthInfo | None: ...


class StaticTokenAuthenticator:
    """Token → ``AuthInfo`` lookup from a fixed table."""

    def __init__(self, tokens: Mapping[str, AuthInfo] | None = None) -> None:
        self._tokens = dict(tokens or {})

    async def authenticate(self, token: str) -> AuthInfo | None:
        return self._tokens.get(token)


# ── Serialization ───────────────────────────────────────────────────


class Serialization(Protocol):
    def decode(self, data: Any, type_name: str) -> Any: ...

    def encode(self, value: Any) -> Any: ...


class SerializationManager:
    """Registry of domain types keyed by name.

    ``decode`` calls the registered type's ``from_dict``.  ``encode``
    produces JSON-friendly data from dataclasses, objects with ``to_dict``,
    datetimes, mappings and sequences.
    """

    def __init__(self) -> None:
        self._types: dict[str, Callable[[dict[str, Any]], Any]] = {}

    def register(self, type_name: str, cls: Any) -> None:
        if type_name in self._types:
            raise ValueError(f"type {type_name!r} already registered")
        self._types[type_name] = cls.from_dict

    def decode(self, data: Any, type_name: str) -> Any:
        factory = self._types.get(type_name)
        if factory is None:
            raise LookupError(f"unknown type {type_name!r}")
        if not isinstance(data, dict):
            raise ValueError(f"{type_name} payload must be an object")
        return factory(data)

    def encode(self, value: Any) -> Any:
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, datetime):
            return value.isoformat()
        if hasattr(value, "to_dict"):
            return self.encode(value.to_dict())
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return self.encode(dataclasses.asdict(value))
        if isinstance(value, Mapping):
            return {str(k): self.encode(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.encode(v) for v in value]
        raise TypeError(f"cannot encode {type(value).__name__}")


# ── Call log ────────────────────────────────────────────────────────


@dataclass(slots=True)
class CallLogRecord:
    """One logged call."""

    id: int
    endpoint: str
    method: str
    started_at: datetime
    duration: timedelta
    user_id: int | None = None
    exception: str | None = None
    stack_trace: str | None = None


class CallLog(Protocol):
    async def write(
        self,
        context: CallContext,
        *,
        user_id: int | None = None,
        exception: str | None = None,
        stack_trace: str | None = None,
    ) -> int: ...


class MemoryCallLog:
    """Keeps call records in a list; ids start at 1."""

    def __init__(self) -> None:
        self.records: list[CallLogRecord] = []

    async def write(
        self,
        context: CallContext,
        *,
        user_id: int | None = None,
        exception: str | None = None,
        stack_trace: str | None = None,
    ) -> int:
        record = CallLogRecord(
            id=len(self.records) + 1,
            endpoint=context.endpoint_name,
            method=context.method_name,
            started_at=context.started_at,
            duration=datetime.now(timezone.utc) - context.started_at,
            user_id=user_id,
            exception=exception,
            stack_trace=stack_trace,
        )
        self.records.append(record)
        if exception is None:
            log.info("call %d %s.%s ok", record.id, record.endpoint, record.method)
        else:
            log.warning(
                "call %d %s.%s failed: %s", record.id, record.endpoint, record.method, exception
            )
        return record.id

    def get(self, record_id: int) -> CallLogRecord | None:
        if 0 < record_id <= len(self.records):
            return self.records[record_id - 1]
        return None
