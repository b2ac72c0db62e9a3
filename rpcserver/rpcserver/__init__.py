"""rpcserver — named-call dispatch with access control."""

from rpcserver.context import CallContext
from rpcserver.dispatcher import Dispatcher, DispatcherBuilder
from rpcserver.registry import EndpointBuilder, EndpointEntry, MethodEntry, Param, ParamKind
from rpcserver.results import (
    AuthenticationFailed,
    InternalServerError,
    InvalidParams,
    Result,
    StatusCode,
    Success,
)
from rpcserver.tasks import TaskPool

__all__ = [
    "CallContext",
    "Dispatcher",
    "DispatcherBuilder",
    "EndpointBuilder",
    "EndpointEntry",
    "MethodEntry",
    "Param",
    "ParamKind",
    "Result",
    "Success",
    "InvalidParams",
    "AuthenticationFailed",
    "InternalServerError",
    "StatusCode",
    "TaskPool",
]
