"""Best-effort conversion of raw wire values into typed parameters.

Nothing in this module raises.  A value that cannot be converted comes back
as ``None`` and the dispatcher leaves that parameter out of the call.

Numbers use plain ASCII syntax: no digit separators, no other scripts'
digits.  The only non-finite spellings are ``NaN`` and ``Infinity``.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping

from rpcserver.registry import Param, ParamKind

if TYPE_CHECKING:
    from rpcserver.services import Serialization

log = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?[0-9]+", re.ASCII)
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:NaN|Infinity)", re.ASCII
)


def _to_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not _INT_RE.fullmatch(text):
            return None
        try:
            return int(text)
        except ValueError:
            return None
    return None


def _to_float(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not _FLOAT_RE.fullmatch(text):
            return None
        return float(text)
    return None


def _to_bool(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if raw == "true":
        return True
    if raw == "false":
        return False
    return None


def _to_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _to_structured(raw: Any, type_name: str, serialization: Serialization | None) -> Any:
    if serialization is None:
        return None
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return serialization.decode(data, type_name)
    except Exception as exc:
        log.debug("could not decode %s parameter: %s", type_name, exc)
        return None


_SCALARS = {
    ParamKind.INTEGER: _to_int,
    ParamKind.FLOAT: _to_float,
    ParamKind.BOOLEAN: _to_bool,
    ParamKind.TIMESTAMP: _to_timestamp,
}


def coerce(raw: Any, param: Param, serialization: Serialization | None = None) -> Any:
    """Convert *raw* to the type declared by *param*, or return ``None``."""
    if raw is None:
        return None
    if param.kind is ParamKind.TEXT:
        return raw if isinstance(raw, str) else None
    convert = _SCALARS.get(param.kind)
    if convert is not None:
        return convert(raw)
    return _to_structured(raw, param.type_name or "", serialization)


def coerce_parameters(
    schema: Mapping[str, Param],
    raw: Mapping[str, Any],
    serialization: Serialization | None = None,
) -> dict[str, Any]:
    """Build the handler's parameter map from the raw call parameters.

    Keys missing from *schema* are dropped, as are values that fail to
    coerce.  Declared parameters absent from *raw* are simply not present.
    """
    params: dict[str, Any] = {}
    for name, value in raw.items():
        param = schema.get(name)
        if param is None:
            continue
        coerced = coerce(value, param, serialization)
        if coerced is not None:
            params[name] = coerced
    return params
