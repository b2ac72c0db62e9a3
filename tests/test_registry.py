"""Tests for registry entries and builders."""

import dataclasses

import pytest
from rpcserver.dispatcher import DispatcherBuilder
from rpcserver.registry import EndpointBuilder, Param, ParamKind
from rpcserver.results import (
    AuthenticationFailed,
    InternalServerError,
    InvalidParams,
    StatusCode,
    Success,
)


async def noop(context, params):
    return None


def test_decorator_registers_method():
    builder = EndpointBuilder("things", required_scopes=["a", "b", "a"])

    @builder.method("get", Param("id", ParamKind.INTEGER))
    async def get(context, params):
        return params

    entry = builder.build()
    assert entry.name == "things"
    assert entry.required_scopes == frozenset({"a", "b"})
    assert entry.methods["get"].invoke is get
    assert entry.methods["get"].parameters["id"].kind is ParamKind.INTEGER


def test_duplicate_method_rejected():
    builder = EndpointBuilder("things")
    builder.add_method("get", noop)
    with pytest.raises(ValueError, match="already registered"):
        builder.add_method("get", noop)


def test_duplicate_parameter_rejected():
    builder = EndpointBuilder("things")
    with pytest.raises(ValueError, match="duplicate parameter"):
        builder.add_method("get", noop, [Param("id"), Param("id", ParamKind.INTEGER)])


def test_structured_param_needs_type_name():
    with pytest.raises(ValueError, match="type_name"):
        Param("item", ParamKind.STRUCTURED)


@pytest.mark.parametrize("name", ["", "a.b"])
def test_invalid_endpoint_name(name):
    with pytest.raises(ValueError):
        EndpointBuilder(name)


def test_entries_are_frozen():
    builder = EndpointBuilder("things")
    builder.add_method("get", noop)
    entry = builder.build()

    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.requires_authentication = True  # type: ignore[misc]
    with pytest.raises(TypeError):
        entry.methods["put"] = entry.methods["get"]  # type: ignore[index]

    builder.add_method("put", noop)
    assert "put" not in entry.methods


def test_dispatcher_builder_rejects_duplicates():
    entry = EndpointBuilder("things").build()
    builder = DispatcherBuilder().add_endpoint(entry)
    with pytest.raises(ValueError, match="endpoint"):
        builder.add_endpoint(entry)

    module = DispatcherBuilder().build()
    builder.add_module("mod", module)
    with pytest.raises(ValueError, match="module"):
        builder.add_module("mod", module)


@pytest.mark.parametrize("name", ["", "a.b"])
def test_dispatcher_builder_rejects_bad_module_name(name):
    with pytest.raises(ValueError):
        DispatcherBuilder().add_module(name, DispatcherBuilder().build())


def test_endpoint_names_include_modules():
    inner = DispatcherBuilder().add_endpoint(EndpointBuilder("invoice").build()).build()
    outer = (
        DispatcherBuilder()
        .add_endpoint(EndpointBuilder("greeting").build())
        .add_module("billing", inner)
        .build()
    )
    assert outer.endpoint_names == ["billing.invoice", "greeting"]


def test_call_log_requires_task_pool():
    from rpcserver.services import MemoryCallLog

    with pytest.raises(ValueError, match="task pool"):
        DispatcherBuilder().build(call_log=MemoryCallLog())


class TestResultRendering:
    def test_success(self):
        assert str(Success(42)) == "42"

    def test_invalid_params(self):
        assert str(InvalidParams("Endpoint x does not exist")) == "Endpoint x does not exist"

    def test_authentication_failed(self):
        assert str(AuthenticationFailed("Authentication failed")) == "Authentication failed"

    def test_internal_server_error(self):
        result = InternalServerError("boom", "Traceback ...", 9)
        assert str(result) == "boom\nTraceback ..."

    def test_internal_server_error_default_log_id(self):
        assert InternalServerError("boom", "").log_id == 0

    def test_status_code(self):
        assert str(StatusCode(413)) == "Status Code: 413"
