"""Integration tests — full roundtrip through client, server and dispatcher.

Uses httpx.ASGITransport for a realistic HTTP test without processes.
"""

import httpx
import pytest
from rpcclient import RpcClient, RpcError
from rpcserver.config import Settings
from rpcserver.server import create_app
from rpcserver.services import AuthInfo, MemoryCallLog, StaticTokenAuthenticator

TOKENS = {"ops": AuthInfo(user_id=3, scopes=frozenset({"admin:write"}))}


@pytest.mark.anyio
async def test_sequential_calls_are_independent():
    """Multiple calls should not share state."""
    app = create_app(Settings(), call_log=MemoryCallLog())
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
        async with RpcClient("http://test", transport=transport) as client:
            r1 = await client.call("greeting", "add", {"a": 1, "b": 2})
            r2 = await client.call("greeting", "add", {"a": "100", "b": "200"})
    assert r1 == 3
    assert r2 == 300


@pytest.mark.anyio
async def test_error_does_not_corrupt_connection():
    """A failed call should not break subsequent calls."""
    call_log = MemoryCallLog()
    app = create_app(
        Settings(), authenticator=StaticTokenAuthenticator(TOKENS), call_log=call_log
    )
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
        async with RpcClient("http://test", auth_token="ops", transport=transport) as client:
            with pytest.raises(RpcError) as exc_info:
                await client.call("admin", "delete", {"item": "nothing"})
            result = await client.call("admin", "delete", {"item": "sessions"})

    assert exc_info.value.status == 500
    assert result == {"deleted": "sessions"}

    failed, succeeded = call_log.records
    assert failed.exception == "no such item: nothing"
    assert exc_info.value.error.data["log_id"] == failed.id
    assert succeeded.exception is None
    assert succeeded.user_id is None
