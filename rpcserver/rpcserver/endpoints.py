"""Example endpoints served by default.

``build_dispatcher`` wires them into a dispatcher together with the
collaborators the caller supplies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from rpcserver.context import CallContext
from rpcserver.dispatcher import Dispatcher, DispatcherBuilder
from rpcserver.registry import EndpointBuilder, Param, ParamKind
from rpcserver.services import Authenticator, CallLog, SerializationManager
from rpcserver.tasks import TaskPool

log = logging.getLogger(__name__)

ADMIN_WRITE = "admin:write"


# ── Domain types ─────────────────────────────────────────────────────


@dataclass(slots=True)
class LineItem:
    description: str
    quantity: int = 1
    unit_price: float = 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LineItem":
        return cls(
            description=str(raw["description"]),
            quantity=int(raw.get("quantity", 1)),
            unit_price=float(raw.get("unit_price", 0.0)),
        )

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


def serialization_manager() -> SerializationManager:
    manager = SerializationManager()
    manager.register("LineItem", LineItem)
    return manager


# ── greeting ─────────────────────────────────────────────────────────

greeting = EndpointBuilder("greeting", log_calls=False)


@greeting.method("hello", Param("name"))
async def hello(context: CallContext, params: dict) -> str:
    """Greet *name*."""
    return f"Hello {params.get('name', 'world')}"


@greeting.method("add", Param("a", ParamKind.INTEGER), Param("b", ParamKind.INTEGER))
async def add(context: CallContext, params: dict) -> int:
    """Add two integers; missing ones count as zero."""
    return params.get("a", 0) + params.get("b", 0)


# ── account (sign-in required) ──────────────────────────────────────

account = EndpointBuilder("account", requires_authentication=True)


@account.method("me")
async def me(context: CallContext, params: dict) -> dict:
    return {"user_id": await context.authenticated_user_id()}


# ── admin (scope required) ──────────────────────────────────────────

admin = EndpointBuilder("admin", required_scopes=[ADMIN_WRITE])

ADMIN_ITEMS = frozenset({"cache", "sessions"})


@admin.method("delete", Param("item"))
async def delete(context: CallContext, params: dict) -> dict:
    item = params.get("item")
    if item not in ADMIN_ITEMS:
        raise LookupError(f"no such item: {item}")
    log.info("admin delete %s by user %s", item, await context.authenticated_user_id())
    return {"deleted": item}


# ── billing module ──────────────────────────────────────────────────

invoice = EndpointBuilder("invoice")


@invoice.method(
    "create",
    Param("customer"),
    Param("amount", ParamKind.FLOAT),
    Param("due", ParamKind.TIMESTAMP, nullable=True),
    Param("line", ParamKind.STRUCTURED, nullable=True, type_name="LineItem"),
)
async def create_invoice(context: CallContext, params: dict) -> dict:
    """Create an invoice.  A line item, when given, overrides the amount."""
    line = params.get("line")
    amount = line.total if line is not None else params.get("amount", 0.0)
    due = params.get("due")
    return {
        "customer": params.get("customer"),
        "amount": amount,
        "due": due.isoformat() if due is not None else None,
        "line": line,
    }


@invoice.method("paid", Param("flag", ParamKind.BOOLEAN))
async def mark_paid(context: CallContext, params: dict) -> dict:
    return {"paid": params.get("flag", False)}


def build_billing() -> Dispatcher:
    return DispatcherBuilder().add_endpoint(invoice.build()).build()


# ── Wiring ───────────────────────────────────────────────────────────


def build_dispatcher(
    *,
    authenticator: Authenticator | None = None,
    call_log: CallLog | None = None,
    tasks: TaskPool | None = None,
) -> Dispatcher:
    """Return the example dispatcher with the ``billing`` module mounted."""
    return (
        DispatcherBuilder()
        .add_endpoint(greeting.build())
        .add_endpoint(account.build())
        .add_endpoint(admin.build())
        .add_module("billing", build_billing())
        .build(
            authenticator=authenticator,
            serialization=serialization_manager(),
            call_log=call_log,
            tasks=tasks,
        )
    )
