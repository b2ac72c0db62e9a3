"""rpcclient — HTTP client for the dispatch server."""

from rpcclient.client import RpcClient, RpcError

__all__ = ["RpcClient", "RpcError"]
