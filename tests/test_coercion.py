"""Tests for parameter coercion."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from rpcserver.coercion import coerce, coerce_parameters
from rpcserver.registry import Param, ParamKind
from rpcserver.services import SerializationManager

TEXT = Param("p")
INTEGER = Param("p", ParamKind.INTEGER)
FLOAT = Param("p", ParamKind.FLOAT)
BOOLEAN = Param("p", ParamKind.BOOLEAN)
TIMESTAMP = Param("p", ParamKind.TIMESTAMP)
POINT = Param("p", ParamKind.STRUCTURED, type_name="Point")

ALL_KINDS = [TEXT, INTEGER, FLOAT, BOOLEAN, TIMESTAMP, POINT]


@dataclass
class Point:
    x: int
    y: int

    @classmethod
    def from_dict(cls, raw):
        return cls(x=raw["x"], y=raw["y"])


@pytest.fixture
def serialization():
    manager = SerializationManager()
    manager.register("Point", Point)
    return manager


# ── Scalars ──────────────────────────────────────────────────────────


def test_text_passes_through():
    assert coerce("  anything 42 ", TEXT) == "  anything 42 "


@pytest.mark.parametrize("raw", [{"x": 1}, 5, 1.5, True, ["a"]])
def test_text_rejects_non_strings(raw):
    assert coerce(raw, TEXT) is None


@pytest.mark.parametrize("raw, expected", [("42", 42), ("-7", -7), ("0", 0), (13, 13)])
def test_integer(raw, expected):
    assert coerce(raw, INTEGER) == expected


@pytest.mark.parametrize("raw", ["4.2", "forty", "", "0x10", True, [1]])
def test_integer_unparsable(raw):
    assert coerce(raw, INTEGER) is None


@pytest.mark.parametrize("raw, expected", [("1.5", 1.5), ("-2", -2.0), ("1e3", 1000.0), (3, 3.0)])
def test_float(raw, expected):
    assert coerce(raw, FLOAT) == expected


@pytest.mark.parametrize("raw", ["one", "", "1,5", False])
def test_float_unparsable(raw):
    assert coerce(raw, FLOAT) is None


@pytest.mark.parametrize("raw", ["1_000", "١٢", "１２", "nan", "inf", "infinity", "-inf"])
def test_numbers_need_plain_ascii_syntax(raw):
    assert coerce(raw, INTEGER) is None
    assert coerce(raw, FLOAT) is None


def test_numbers_allow_surrounding_whitespace():
    assert coerce(" 42 ", INTEGER) == 42
    assert coerce("\t1.5\n", FLOAT) == 1.5


def test_float_non_finite_spellings():
    assert math.isnan(coerce("NaN", FLOAT))
    assert coerce("Infinity", FLOAT) == math.inf
    assert coerce("-Infinity", FLOAT) == -math.inf


def test_boolean_literals():
    assert coerce("true", BOOLEAN) is True
    assert coerce("false", BOOLEAN) is False


@pytest.mark.parametrize("raw", ["True", "FALSE", "1", "yes", ""])
def test_boolean_is_case_sensitive(raw):
    assert coerce(raw, BOOLEAN) is None


def test_timestamp():
    assert coerce("2024-03-01T12:30:00", TIMESTAMP) == datetime(2024, 3, 1, 12, 30)


def test_timestamp_with_offset():
    value = coerce("2024-03-01T12:30:00+02:00", TIMESTAMP)
    assert value.utcoffset() == timedelta(hours=2)


@pytest.mark.parametrize("raw", ["yesterday", "2024-13-01", ""])
def test_timestamp_unparsable(raw):
    assert coerce(raw, TIMESTAMP) is None


# ── Structured ───────────────────────────────────────────────────────


def test_structured_from_json_string(serialization):
    assert coerce('{"x": 1, "y": 2}', POINT, serialization) == Point(1, 2)


def test_structured_from_decoded_payload(serialization):
    assert coerce({"x": 3, "y": 4}, POINT, serialization) == Point(3, 4)


@pytest.mark.parametrize("raw", ["{not json", '{"x": 1}', "[1, 2]", "null", "7"])
def test_structured_failures_are_absent(serialization, raw):
    assert coerce(raw, POINT, serialization) is None


def test_structured_unknown_type(serialization):
    param = Param("p", ParamKind.STRUCTURED, type_name="Polygon")
    assert coerce('{"x": 1, "y": 2}', param, serialization) is None


def test_structured_without_serialization():
    assert coerce('{"x": 1, "y": 2}', POINT) is None


# ── Totality ─────────────────────────────────────────────────────────

AWKWARD = ["", " ", "nan", "-inf", "1e309", "\x00", "9" * 5000, "{", "[]", "null", "é", "true "]


@pytest.mark.parametrize("param", ALL_KINDS, ids=lambda p: p.kind.value)
@pytest.mark.parametrize("raw", AWKWARD)
def test_coerce_never_raises(serialization, param, raw):
    coerce(raw, param, serialization)


def test_none_stays_absent(serialization):
    for param in ALL_KINDS:
        assert coerce(None, param, serialization) is None


# ── Canonical string forms ──────────────────────────────────────────


@pytest.mark.parametrize(
    "param, value, text",
    [
        (INTEGER, 10**20, str(10**20)),
        (INTEGER, -42, "-42"),
        (FLOAT, 0.1, repr(0.1)),
        (FLOAT, -1234.5e-7, repr(-1234.5e-7)),
        (BOOLEAN, True, "true"),
        (BOOLEAN, False, "false"),
        (TEXT, "hello world", "hello world"),
    ],
)
def test_canonical_form_reconstructs_value(param, value, text):
    assert coerce(text, param) == value


@pytest.mark.parametrize(
    "value",
    [
        datetime(2023, 7, 4, 9, 15, 30),
        datetime(2023, 7, 4, 9, 15, 30, 123456, tzinfo=timezone.utc),
        datetime(1999, 12, 31, 23, 59, tzinfo=timezone(timedelta(hours=-5))),
    ],
)
def test_timestamp_isoformat_reconstructs_value(value):
    assert coerce(value.isoformat(), TIMESTAMP) == value


# ── Parameter maps ──────────────────────────────────────────────────


def test_coerce_parameters(serialization):
    schema = {
        "count": Param("count", ParamKind.INTEGER),
        "name": Param("name"),
        "where": Param("where", ParamKind.STRUCTURED, type_name="Point"),
        "flag": Param("flag", ParamKind.BOOLEAN),
    }
    raw = {"count": "3", "name": "n", "where": '{"x": 0, "y": 1}', "extra": "dropped"}
    params = coerce_parameters(schema, raw, serialization)
    assert params == {"count": 3, "name": "n", "where": Point(0, 1)}


def test_coerce_parameters_omits_failed_values():
    schema = {"count": Param("count", ParamKind.INTEGER), "flag": Param("flag", ParamKind.BOOLEAN)}
    assert coerce_parameters(schema, {"count": "three", "flag": "true"}) == {"flag": True}
