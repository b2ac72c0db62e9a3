"""Exceptions raised by the dispatcher's own steps.

They never escape ``Dispatcher.handle_call``; each one is converted to the
matching result variant at the call boundary.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for client-triggerable dispatch failures."""


class RoutingError(DispatchError):
    """Raised for a malformed or unknown endpoint, module or method name."""


class MalformedCallError(DispatchError):
    """Raised when call metadata cannot be parsed into a call context."""


class AuthenticationError(DispatchError):
    """Raised when a credential is missing or invalid, or a scope is absent."""
