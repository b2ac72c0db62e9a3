"""Endpoint and method registry entries.

Endpoints are assembled with an ``EndpointBuilder`` and frozen into an
``EndpointEntry`` at startup::

    invoice = EndpointBuilder("invoice")

    @invoice.method("create", Param("amount", ParamKind.FLOAT))
    async def create(context, params):
        return {"amount": params.get("amount")}

    entry = invoice.build()

Nothing here changes after ``build()``; all per-call state lives on the
call context.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Mapping

if TYPE_CHECKING:
    from rpcserver.context import CallContext

log = logging.getLogger(__name__)

# Type alias for a method handler: async (context, params) -> result
MethodFn = Callable[["CallContext", dict[str, Any]], Awaitable[Any]]


class ParamKind(enum.Enum):
    """Declared type of a method parameter."""

    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    STRUCTURED = "structured"


@dataclass(frozen=True, slots=True)
class Param:
    """One declared parameter of a method.

    ``type_name`` is the domain type handed to the deserialization service
    and is required for ``STRUCTURED`` parameters.
    """

    name: str
    kind: ParamKind = ParamKind.TEXT
    nullable: bool = False
    type_name: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ParamKind.STRUCTURED and not self.type_name:
            raise ValueError(f"structured parameter {self.name!r} needs a type_name")


@dataclass(frozen=True, slots=True)
class MethodEntry:
    """Binds a method name to its parameter schema and handler."""

    name: str
    parameters: Mapping[str, Param]
    invoke: MethodFn


@dataclass(frozen=True, slots=True)
class EndpointEntry:
    """Binds an endpoint name to its access-control flags and methods."""

    name: str
    methods: Mapping[str, MethodEntry]
    requires_authentication: bool = False
    required_scopes: frozenset[str] = field(default_factory=frozenset)
    log_calls: bool = True


class EndpointBuilder:
    """Collects the methods of one endpoint before freezing it."""

    def __init__(
        self,
        name: str,
        *,
        requires_authentication: bool = False,
        required_scopes: Iterable[str] = (),
        log_calls: bool = True,
    ) -> None:
        if not name or "." in name:
            raise ValueError(f"invalid endpoint name {name!r}")
        self.name = name
        self.requires_authentication = requires_authentication
        self.required_scopes = frozenset(required_scopes)
        self.log_calls = log_calls
        self._methods: dict[str, MethodEntry] = {}

    # -- Registration --------------------------------------------------
    def method(self, name: str, *params: Param) -> Callable[[MethodFn], MethodFn]:
        """Decorator that registers *fn* as method *name* with *params*."""

        def decorator(fn: MethodFn) -> MethodFn:
            self.add_method(name, fn, params)
            return fn

        return decorator

    def add_method(self, name: str, fn: MethodFn, params: Iterable[Param] = ()) -> None:
        if name in self._methods:
            raise ValueError(f"method {name!r} already registered on {self.name!r}")
        schema: dict[str, Param] = {}
        for param in params:
            if param.name in schema:
                raise ValueError(f"duplicate parameter {param.name!r} on {self.name}.{name}")
            schema[param.name] = param
        self._methods[name] = MethodEntry(
            name=name, parameters=MappingProxyType(schema), invoke=fn
        )
        log.debug("registered method %s.%s → %s", self.name, name, fn.__qualname__)

    # -- Freeze --------------------------------------------------------
    def build(self) -> EndpointEntry:
        return EndpointEntry(
            name=self.name,
            methods=MappingProxyType(dict(self._methods)),
            requires_authentication=self.requires_authentication,
            required_scopes=self.required_scopes,
            log_calls=self.log_calls,
        )
