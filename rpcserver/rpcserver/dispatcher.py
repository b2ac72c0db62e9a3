"""Call dispatch.

The ``Dispatcher`` maps ``endpoint`` / ``module.endpoint`` names to frozen
endpoint entries, checks access, coerces parameters, invokes the method and
reports the outcome as a ``Result``.  Nothing client-triggerable escapes
``handle_call`` as an exception.

Usage::

    dispatcher = (
        DispatcherBuilder()
        .add_endpoint(greeting.build())
        .add_module("billing", billing_dispatcher)
        .build(authenticator=auth, call_log=call_log, tasks=pool)
    )

    result = await dispatcher.handle_call("billing.invoice", {"method": "create"})
"""

from __future__ import annotations

import logging
import traceback
from types import MappingProxyType
from typing import Any, Mapping

from rpcserver.coercion import coerce_parameters
from rpcserver.context import CallContext, TransportHandle
from rpcserver.errors import AuthenticationError, MalformedCallError, RoutingError
from rpcserver.registry import EndpointEntry
from rpcserver.results import (
    AuthenticationFailed,
    InternalServerError,
    InvalidParams,
    Result,
    Success,
)
from rpcserver.services import Authenticator, CallLog, Serialization
from rpcserver.tasks import TaskPool

log = logging.getLogger(__name__)


class Dispatcher:
    """Endpoints, modules and the collaborators used to serve calls.

    A dispatcher registered as a module only contributes its endpoints;
    calls routed into it are served with the outer dispatcher's
    collaborators.
    """

    def __init__(
        self,
        endpoints: Mapping[str, EndpointEntry],
        modules: Mapping[str, "Dispatcher"] | None = None,
        *,
        authenticator: Authenticator | None = None,
        serialization: Serialization | None = None,
        call_log: CallLog | None = None,
        tasks: TaskPool | None = None,
    ) -> None:
        if call_log is not None and tasks is None:
            raise ValueError("call logging needs a task pool")
        self._endpoints = MappingProxyType(dict(endpoints))
        self._modules = MappingProxyType(dict(modules or {}))
        self.authenticator = authenticator
        self.serialization = serialization
        self.call_log = call_log
        self.tasks = tasks

    # -- Introspection -------------------------------------------------
    @property
    def endpoints(self) -> Mapping[str, EndpointEntry]:
        return self._endpoints

    @property
    def modules(self) -> Mapping[str, "Dispatcher"]:
        return self._modules

    @property
    def endpoint_names(self) -> list[str]:
        names = list(self._endpoints)
        for module_name, module in self._modules.items():
            names.extend(f"{module_name}.{name}" for name in module.endpoints)
        return sorted(names)

    # -- Routing -------------------------------------------------------
    def resolve(self, endpoint_name: str) -> EndpointEntry:
        """Return the entry for ``endpoint`` or ``module.endpoint``.

        Raises ``RoutingError`` for malformed or unknown names.
        """
        parts = endpoint_name.split(".")
        if not parts or len(parts) > 2:
            raise RoutingError(f"Endpoint {endpoint_name} is not a valid endpoint name")

        if len(parts) == 1:
            entry = self._endpoints.get(endpoint_name)
            if entry is None:
                raise RoutingError(f"Endpoint {endpoint_name} does not exist")
            return entry

        module_name, name = parts
        module = self._modules.get(module_name)
        if module is None:
            raise RoutingError(f"Module {module_name} does not exist")
        entry = module.endpoints.get(name)
        if entry is None:
            raise RoutingError(f"Endpoint {module_name}.{name} does not exist")
        return entry

    # -- Dispatch ------------------------------------------------------
    async def handle_call(
        self,
        endpoint_name: str,
        parameters: Mapping[str, Any],
        auth_token: str | None = None,
        transport: TransportHandle | None = None,
    ) -> Result:
        """Serve one call and return exactly one result variant.

        ``parameters`` carries the method name under the ``"method"`` key.
        """
        try:
            entry = self.resolve(endpoint_name)
        except RoutingError as exc:
            return InvalidParams(str(exc))

        try:
            context = await CallContext.open(
                endpoint_name, parameters, auth_token, transport, self.authenticator
            )
        except MalformedCallError as exc:
            return InvalidParams(f"Malformed call to {endpoint_name}: {exc}")

        log.debug("call ← %s/%s", endpoint_name, context.method_name)
        async with context:
            return await self._serve(entry, context)

    async def _serve(self, entry: EndpointEntry, context: CallContext) -> Result:
        try:
            await self._authorize(entry, context)
        except AuthenticationError as exc:
            return AuthenticationFailed(str(exc))
        except Exception as exc:
            return await self._fail(entry, context, exc)

        method = entry.methods.get(context.method_name)
        if method is None:
            return InvalidParams(
                f"Method {context.method_name} not found in endpoint {context.endpoint_name}"
            )

        try:
            params = coerce_parameters(method.parameters, context.parameters, self.serialization)
            value = await method.invoke(context, params)
        except Exception as exc:
            return await self._fail(entry, context, exc)

        if entry.log_calls and self.call_log is not None:
            user_id = await context.authenticated_user_id() if entry.requires_authentication else None
            self.tasks.start_soon(_write_success, self.call_log, context, user_id)
        return Success(value)

    async def _authorize(self, entry: EndpointEntry, context: CallContext) -> None:
        if entry.requires_authentication:
            if context.auth_token is None:
                raise AuthenticationError("No authentication provided")
            if not await context.is_signed_in():
                raise AuthenticationError("Authentication failed")

        if entry.required_scopes:
            if not await context.is_signed_in():
                raise AuthenticationError("Sign in required to access this endpoint")
            granted = await context.granted_scopes()
            for scope in sorted(entry.required_scopes):
                if scope not in granted:
                    raise AuthenticationError(f"User does not have access to scope {scope}")

    async def _fail(
        self, entry: EndpointEntry, context: CallContext, exc: Exception
    ) -> InternalServerError:
        text = str(exc) or type(exc).__name__
        stack_trace = "".join(traceback.format_exception(exc))
        log.error(
            "call %s/%s raised %s: %s",
            context.endpoint_name,
            context.method_name,
            type(exc).__name__,
            text,
        )
        log_id = 0
        if entry.log_calls and self.call_log is not None:
            try:
                log_id = await self.call_log.write(
                    context, exception=text, stack_trace=stack_trace
                )
            except Exception:
                log.exception("could not log failed call %s", context.endpoint_name)
        return InternalServerError(text, stack_trace, log_id)


async def _write_success(call_log: CallLog, context: CallContext, user_id: int | None) -> None:
    await call_log.write(context, user_id=user_id)


class DispatcherBuilder:
    """Assembles a dispatcher's endpoints and modules before freezing them."""

    def __init__(self) -> None:
        self._endpoints: dict[str, EndpointEntry] = {}
        self._modules: dict[str, Dispatcher] = {}

    def add_endpoint(self, entry: EndpointEntry) -> "DispatcherBuilder":
        if entry.name in self._endpoints:
            raise ValueError(f"endpoint {entry.name!r} already registered")
        self._endpoints[entry.name] = entry
        log.debug("registered endpoint %r (%d methods)", entry.name, len(entry.methods))
        return self

    def add_module(self, name: str, module: Dispatcher) -> "DispatcherBuilder":
        if not name or "." in name:
            raise ValueError(f"invalid module name {name!r}")
        if name in self._modules:
            raise ValueError(f"module {name!r} already registered")
        self._modules[name] = module
        log.debug("registered module %r → %s", name, ", ".join(module.endpoints))
        return self

    def build(
        self,
        *,
        authenticator: Authenticator | None = None,
        serialization: Serialization | None = None,
        call_log: CallLog | None = None,
        tasks: TaskPool | None = None,
    ) -> Dispatcher:
        return Dispatcher(
            self._endpoints,
            self._modules,
            authenticator=authenticator,
            serialization=serialization,
            call_log=call_log,
            tasks=tasks,
        )
