from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from bgsport.config import DEFAULT_SIZE_UPCHARGE
from bgsport.utils import clamp_int

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_IN_PROGRESS, STATUS_COMPLETED)


@dataclass(frozen=True)
class SettlementInputs:
    """
    Everything an order's money figures depend on.

    Prices are the order's snapshot (copied from the fabric when the order
    was created), never the live fabric row.
    """

    fabric_short_price: int = 0
    fabric_long_price: int = 0
    short_qty: int = 0
    long_qty: int = 0
    free_qty: int = 0
    qty_3xl: int = 0
    qty_4xl: int = 0
    qty_5xl: int = 0
    size_upcharge: int = DEFAULT_SIZE_UPCHARGE
    extra_charge: int = 0
    design_deposit: int = 0
    factory_cost: int = 0
    customer_payments_total: int = 0
    factory_payments_total: int = 0

    @classmethod
    def from_order(
        cls,
        order: Mapping[str, Any],
        *,
        customer_payments_total: Optional[int] = None,
        factory_payments_total: int = 0,
    ) -> "SettlementInputs":
        """
        Build inputs from an orders row (sqlite3.Row or dict).
        Without a ledger total the legacy initial_deposit column is used.
        """
        keys = set(order.keys())

        def g(name: str, default: int = 0) -> int:
            return clamp_int(order[name]) if name in keys and order[name] is not None else default

        if customer_payments_total is None:
            customer_payments_total = g("initial_deposit")

        return cls(
            fabric_short_price=g("fabric_short_price"),
            fabric_long_price=g("fabric_long_price"),
            short_qty=g("short_qty"),
            long_qty=g("long_qty"),
            free_qty=g("free_qty"),
            qty_3xl=g("qty_3xl"),
            qty_4xl=g("qty_4xl"),
            qty_5xl=g("qty_5xl"),
            size_upcharge=g("size_upcharge", DEFAULT_SIZE_UPCHARGE) or DEFAULT_SIZE_UPCHARGE,
            extra_charge=g("extra_charge"),
            design_deposit=g("design_deposit"),
            factory_cost=g("factory_cost"),
            customer_payments_total=clamp_int(customer_payments_total),
            factory_payments_total=clamp_int(factory_payments_total),
        )


@dataclass(frozen=True)
class Settlement:
    billable_qty: int
    production_qty: int
    plus_size_qty: int
    shirts_total: int
    plus_size_total: int
    gross_total: int
    net_total: int
    customer_received: int
    customer_balance: int
    factory_cost: int
    factory_paid: int
    factory_balance: int
    profit: int

    @property
    def customer_paid_full(self) -> bool:
        return self.customer_balance == 0

    @property
    def factory_paid_full(self) -> bool:
        return self.factory_balance == 0

    def cached_columns(self) -> dict[str, int]:
        """Denormalized order columns kept for listings and reports."""
        return {
            "gross_total": self.gross_total,
            "net_total": self.net_total,
            "initial_deposit": self.customer_received,
            "balance": self.customer_balance,
            "profit": self.profit,
        }


def compute_settlement(inputs: SettlementInputs) -> Settlement:
    """
    Derive every money/quantity figure of an order.

    Negative inputs are treated as zero and negative intermediate results
    are floored at zero, so a design deposit larger than the gross total
    yields a net total of 0 rather than an error. Free (giveaway) shirts
    count towards production but never towards the shirts total.
    """
    short_qty = clamp_int(inputs.short_qty)
    long_qty = clamp_int(inputs.long_qty)
    free_qty = clamp_int(inputs.free_qty)
    plus_size_qty = clamp_int(inputs.qty_3xl) + clamp_int(inputs.qty_4xl) + clamp_int(inputs.qty_5xl)

    shirts_total = short_qty * clamp_int(inputs.fabric_short_price) + long_qty * clamp_int(inputs.fabric_long_price)
    plus_size_total = plus_size_qty * clamp_int(inputs.size_upcharge)
    gross_total = shirts_total + plus_size_total + clamp_int(inputs.extra_charge)
    net_total = max(0, gross_total - clamp_int(inputs.design_deposit))

    received = clamp_int(inputs.customer_payments_total)
    factory_cost = clamp_int(inputs.factory_cost)
    factory_paid = clamp_int(inputs.factory_payments_total)

    return Settlement(
        billable_qty=short_qty + long_qty,
        production_qty=short_qty + long_qty + free_qty,
        plus_size_qty=plus_size_qty,
        shirts_total=shirts_total,
        plus_size_total=plus_size_total,
        gross_total=gross_total,
        net_total=net_total,
        customer_received=received,
        customer_balance=max(0, net_total - received),
        factory_cost=factory_cost,
        factory_paid=factory_paid,
        factory_balance=max(0, factory_cost - factory_paid),
        profit=net_total - factory_cost,
    )


def customer_received(ledger_amounts: Iterable[Any], initial_deposit: Any = 0) -> int:
    """Ledger sum when the order has ledger rows, else the legacy single deposit."""
    amounts = [clamp_int(a) for a in ledger_amounts]
    if amounts:
        return sum(amounts)
    return clamp_int(initial_deposit)


def payment_state(outstanding: int, received: int) -> str:
    if outstanding == 0:
        return "paid"
    if received > 0:
        return "partial"
    return "unpaid"


def check_payment_amount(amount: Any, outstanding: int) -> int:
    try:
        value = int(amount)
    except (TypeError, ValueError):
        raise ValueError("Amount must be a whole number.")
    if value <= 0:
        raise ValueError("Amount must be greater than 0.")
    if value > int(outstanding):
        raise ValueError(f"Amount exceeds outstanding balance ({int(outstanding):,}).")
    return value


def completion_blockers(settlement: Settlement, *, require_factory: bool = True) -> list[str]:
    blockers: list[str] = []
    if settlement.customer_balance != 0:
        blockers.append(f"Customer still owes {settlement.customer_balance:,}.")
    if require_factory and settlement.factory_balance != 0:
        blockers.append(f"Factory is still owed {settlement.factory_balance:,}.")
    return blockers


def can_complete(settlement: Settlement, *, require_factory: bool = True) -> bool:
    return not completion_blockers(settlement, require_factory=require_factory)
