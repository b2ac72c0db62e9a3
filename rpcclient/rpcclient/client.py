"""RPC client — thin HTTP consumer of the dispatch server.

* ``call(endpoint, method, params)`` → result value

Uses ``httpx.AsyncClient`` with connection pooling.
**Never** imports from ``rpcserver``.

Run directly for a quick demo::

    python -m rpcclient.client
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from rpcwire import STATUS_CODE, CallEnvelope, CallError, CallResponse

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

log = logging.getLogger(__name__)


class RpcError(Exception):
    """Raised when the server answers a call with an error."""

    def __init__(self, status: int, error: CallError) -> None:
        self.status = status
        self.error = error
        super().__init__(f"[{status} {error.type}] {error.message}")


class RpcClient:
    """Async client for ``POST /{endpoint}`` calls.

    Parameters
    ----------
    base_url : str
        Server origin, e.g. ``http://127.0.0.1:8100``.
    auth_token : str | None
        Sent as a bearer token with every call.
    timeout : float
        Default request timeout in seconds.
    max_retries : int
        Max connection-level retries.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8100",
        auth_token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    # -- Lifecycle -----------------------------------------------------

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Internal retry helper -----------------------------------------

    def _get_retrier(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=10),
            retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
            reraise=True,
        )

    # -- Calls ---------------------------------------------------------

    async def call(
        self, endpoint: str, method: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Call *endpoint*/*method* and return the result.

        Raises ``RpcError`` if the server returns an error.
        """
        envelope = CallEnvelope(endpoint=endpoint, method=method, params=params or {})
        headers = {}
        if self.auth_token is not None:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        log.debug("call → %s/%s", endpoint, method)

        async for attempt in self._get_retrier():
            with attempt:
                resp = await self._client.post(
                    f"/{endpoint}", json=envelope.to_body(), headers=headers
                )

        try:
            data = CallResponse.from_dict(resp.json())
        except ValueError:
            data = CallResponse.fail(STATUS_CODE, f"Status Code: {resp.status_code}")
        if data.error is not None:
            raise RpcError(resp.status_code, data.error)
        if resp.is_error:
            raise RpcError(
                resp.status_code, CallError(STATUS_CODE, f"Status Code: {resp.status_code}")
            )
        return data.result


# ── Demo entrypoint ──────────────────────────────────────────────────


async def _demo() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async with RpcClient() as client:
        print("── greeting.hello ──")
        result = await client.call("greeting", "hello", {"name": "client"})
        print(f"  result: {result}")

        print("── greeting.add ──")
        result = await client.call("greeting", "add", {"a": "17", "b": "25"})
        print(f"  result: {result}")

        print("── billing.invoice.create ──")
        result = await client.call(
            "billing.invoice",
            "create",
            {"customer": "acme", "amount": "99.5", "due": "2026-01-31T00:00:00"},
        )
        print(f"  result: {result}")

        print("── done ──")


if __name__ == "__main__":
    import anyio

    anyio.run(_demo)
