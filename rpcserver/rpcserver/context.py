"""Per-call state.

A ``CallContext`` is created by the dispatcher for one call and closed when
the call ends, whatever the outcome::

    context = await CallContext.open("invoice", {"method": "create"}, token)
    async with context:
        ...

The authentication lookup happens at most once per call and is cached.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from rpcwire import METHOD_KEY

from rpcserver.errors import MalformedCallError
from rpcserver.services import AuthInfo, Authenticator

log = logging.getLogger(__name__)

_UNSET: Any = object()


class TransportHandle(Protocol):
    def close(self) -> Any: ...


class CallContext:
    """Parsed call metadata plus cached authentication state."""

    def __init__(
        self,
        endpoint_name: str,
        method_name: str,
        parameters: Mapping[str, Any],
        auth_token: str | None = None,
        transport: TransportHandle | None = None,
        authenticator: Authenticator | None = None,
    ) -> None:
        self.endpoint_name = endpoint_name
        self.method_name = method_name
        self.parameters = parameters
        self.auth_token = auth_token
        self.transport = transport
        self.started_at = datetime.now(timezone.utc)
        self._authenticator = authenticator
        self._auth: AuthInfo | None = _UNSET
        self._closed = False

    @classmethod
    async def open(
        cls,
        endpoint_name: str,
        raw_parameters: Mapping[str, Any],
        auth_token: str | None = None,
        transport: TransportHandle | None = None,
        authenticator: Authenticator | None = None,
    ) -> "CallContext":
        """Build a context from raw call data.

        Raises ``MalformedCallError`` if the parameters are not a mapping or
        do not name a method.
        """
        if not isinstance(raw_parameters, Mapping):
            raise MalformedCallError("call parameters must be a mapping")
        params = dict(raw_parameters)
        method_name = params.pop(METHOD_KEY, None)
        if not isinstance(method_name, str) or not method_name:
            raise MalformedCallError("call does not name a method")
        if auth_token is not None and not isinstance(auth_token, str):
            raise MalformedCallError("auth token must be a string")
        return cls(endpoint_name, method_name, params, auth_token, transport, authenticator)

    # -- Authentication ------------------------------------------------
    async def _lookup(self) -> AuthInfo | None:
        if self._auth is _UNSET:
            if self.auth_token is None or self._authenticator is None:
                self._auth = None
            else:
                self._auth = await self._authenticator.authenticate(self.auth_token)
        return self._auth

    async def is_signed_in(self) -> bool:
        return await self._lookup() is not None

    async def granted_scopes(self) -> frozenset[str]:
        auth = await self._lookup()
        return auth.scopes if auth is not None else frozenset()

    async def authenticated_user_id(self) -> int | None:
        auth = await self._lookup()
        return auth.user_id if auth is not None else None

    # -- Lifecycle -----------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release the transport handle.  Safe to call more than once.

        A failing transport is logged; the call's outcome stands.
        """
        if self._closed:
            return
        self._closed = True
        if self.transport is not None:
            try:
                result = self.transport.close()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception(
                    "closing transport for %s/%s failed", self.endpoint_name, self.method_name
                )
        log.debug("context %s.%s closed", self.endpoint_name, self.method_name)

    async def __aenter__(self) -> "CallContext":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
