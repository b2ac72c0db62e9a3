"""HTTP transport — Starlette ASGI server.

``POST /{endpoint}`` takes a flat JSON object (``method`` plus parameters,
optionally ``auth``) and answers with the dispatcher's result mapped to an
HTTP status.  ``GET /`` is a health check listing the served endpoints.

Run directly::

    python -m rpcserver.server --port 8100
"""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
from typing import Any, AsyncIterator, Callable

from rpcwire import (
    AUTHENTICATION_FAILED,
    INTERNAL_SERVER_ERROR,
    INVALID_PARAMS,
    METHOD_KEY,
    STATUS_CODE,
    CallEnvelope,
    CallResponse,
)
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from rpcserver.config import Settings
from rpcserver.dispatcher import Dispatcher
from rpcserver.endpoints import build_dispatcher
from rpcserver.results import (
    AuthenticationFailed,
    InternalServerError,
    InvalidParams,
    Result,
    StatusCode,
    Success,
)
from rpcserver.services import Authenticator, CallLog, MemoryCallLog, StaticTokenAuthenticator
from rpcserver.tasks import TaskPool

log = logging.getLogger(__name__)

DispatcherFactory = Callable[..., Dispatcher]


# ── Helpers ──────────────────────────────────────────────────────────


def status_for(result: Result) -> int:
    """HTTP status for a call result."""
    if isinstance(result, Success):
        return 200
    if isinstance(result, InvalidParams):
        return 400
    if isinstance(result, AuthenticationFailed):
        return 403
    if isinstance(result, InternalServerError):
        return 500
    if isinstance(result, StatusCode):
        return result.code
    raise TypeError(f"unknown result {result!r}")


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _render(result: Result, dispatcher: Dispatcher, settings: Settings) -> JSONResponse:
    """Build the HTTP response for *result*."""
    if isinstance(result, Success):
        value = result.value
        try:
            if dispatcher.serialization is not None:
                value = dispatcher.serialization.encode(value)
            return JSONResponse(CallResponse.success(value).to_dict())
        except (TypeError, ValueError):
            # JSONResponse rejects NaN and infinities
            log.exception("could not encode result %r", type(value).__name__)
            resp = CallResponse.fail(INTERNAL_SERVER_ERROR, "Result could not be encoded")
            return JSONResponse(resp.to_dict(), status_code=500)

    if isinstance(result, InvalidParams):
        resp = CallResponse.fail(INVALID_PARAMS, str(result))
    elif isinstance(result, AuthenticationFailed):
        resp = CallResponse.fail(AUTHENTICATION_FAILED, str(result))
    elif isinstance(result, InternalServerError):
        data: dict[str, Any] = {"log_id": result.log_id}
        message = "Internal server error"
        if settings.expose_errors:
            message = result.exception
            data["stack_trace"] = result.stack_trace
        resp = CallResponse.fail(INTERNAL_SERVER_ERROR, message, data)
    else:
        resp = CallResponse.fail(STATUS_CODE, str(result))
    return JSONResponse(resp.to_dict(), status_code=status_for(result))


# ── Routes ───────────────────────────────────────────────────────────


async def health(request: Request) -> JSONResponse:
    dispatcher: Dispatcher = request.app.state.dispatcher
    return JSONResponse({"status": "ok", "endpoints": dispatcher.endpoint_names})


async def call_endpoint(request: Request) -> JSONResponse:
    """Handle ``POST /{endpoint}``."""
    settings: Settings = request.app.state.settings
    dispatcher: Dispatcher = request.app.state.dispatcher
    endpoint = request.path_params["endpoint"]
    result: Result

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.max_request_size:
        return _render(StatusCode(413), dispatcher, settings)

    body = await request.body()
    if len(body) > settings.max_request_size:
        return _render(StatusCode(413), dispatcher, settings)

    try:
        envelope = CallEnvelope.from_body(endpoint, json.loads(body))
    except (ValueError, RecursionError) as exc:
        result = InvalidParams(f"Malformed call to {endpoint}: {exc}")
    else:
        log.info("call ← %s/%s", endpoint, envelope.method)
        token = _bearer_token(request) or envelope.auth
        params = {**envelope.params, METHOD_KEY: envelope.method}
        result = await dispatcher.handle_call(endpoint, params, token, request)

    response = _render(result, dispatcher, settings)
    log.info("call → %s %d", endpoint, response.status_code)
    return response


# ── App factory ──────────────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    *,
    authenticator: Authenticator | None = None,
    call_log: CallLog | None = None,
    dispatcher_factory: DispatcherFactory = build_dispatcher,
) -> Starlette:
    """Return the ASGI app.

    The dispatcher is built on startup, once the call-log task pool runs.
    """
    settings = settings or Settings()
    call_log = call_log if call_log is not None else MemoryCallLog()
    authenticator = authenticator or StaticTokenAuthenticator()

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with TaskPool("call-log") as pool:
            app.state.dispatcher = dispatcher_factory(
                authenticator=authenticator, call_log=call_log, tasks=pool
            )
            log.info("serving %s", ", ".join(app.state.dispatcher.endpoint_names))
            yield

    app = Starlette(
        debug=False,
        routes=[
            Route("/", health, methods=["GET"]),
            Route("/{endpoint}", call_endpoint, methods=["POST"]),
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.call_log = call_log
    return app


# ── Runnable entrypoint ──────────────────────────────────────────────


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="RPC dispatch server")
    parser.add_argument("--host", type=str, default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    parser.add_argument(
        "--log-level", type=str, default=settings.log_level, help="Logging level"
    )
    args = parser.parse_args()
    settings.host, settings.port, settings.log_level = args.host, args.port, args.log_level.upper()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
