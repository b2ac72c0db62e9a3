"""Call outcomes.

``Result`` is a closed union: the dispatcher reports every outcome through
exactly one of these variants.  Each variant renders a stable diagnostic
string via ``str()``, independent of any transport encoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class Success:
    """The method returned normally."""

    value: Any

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class InvalidParams:
    """Routing failed or the call was malformed."""

    description: str

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True, slots=True)
class AuthenticationFailed:
    """Credential missing or invalid, or a required scope is absent."""

    description: str

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True, slots=True)
class InternalServerError:
    """An exception escaped the method (or a collaborator).

    ``log_id`` is ``0`` when the call was not logged.
    """

    exception: str
    stack_trace: str
    log_id: int = 0

    def __str__(self) -> str:
        return f"{self.exception}\n{self.stack_trace}"


@dataclass(frozen=True, slots=True)
class StatusCode:
    """An explicit status code for the transport to return."""

    code: int

    def __str__(self) -> str:
        return f"Status Code: {self.code}"


Result = Union[Success, InvalidParams, AuthenticationFailed, InternalServerError, StatusCode]
