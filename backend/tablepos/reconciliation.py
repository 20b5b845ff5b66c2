# Overview: Pure order/payment reconciliation rules shared by the order, payment and kitchen services.

"""
Order & Payment Reconciliation

================================================================================
PURPOSE: One home for the arithmetic and state rules of an order's life
================================================================================

Nothing in this module touches the database. Services load rows, call these
functions, and write the outcome back. Every caller (order editing, cashier,
kitchen notices, CLI re-settlement) goes through the same rules.

ORDER STATUS MACHINE:
    pending -> preparing -> ready -> served -> paid
         \\_________\\__________\\________\\____-> cancelled

    - Staff move an order forward (stages may be skipped) up to "served".
    - "cancelled" is reachable from any non-terminal state.
    - "paid" is system-assigned by the settlement rule, never selected.
    - "paid" and "cancelled" are terminal.

LEDGER:
    amount_paid = sum of current payment amounts (recomputed, never cached)
    amount_due  = max(0, total - amount_paid)
    settled     = amount_due <= epsilon

ITEM DELTA:
    Snapshots map (menu_item_id, trimmed note) -> quantity. Comparing the
    snapshot before an edit with the one after yields the positive deltas
    (newly added quantity). Removed keys are reported separately and only
    used when the caller opts in.

MONEY:
    Services work in integer cents, where sums are exact. The functions are
    unit-agnostic, so Decimal currency amounts work too as long as epsilon
    uses the same unit. Decimal totals are quantized to 2 places.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Hashable, Iterable, Mapping

from .validation import ValidationError, coerce_text


# =============================================================================
# ORDER STATUSES (CONSTANTS)
# =============================================================================

ORDER_PENDING = "pending"
ORDER_PREPARING = "preparing"
ORDER_READY = "ready"
ORDER_SERVED = "served"
ORDER_PAID = "paid"
ORDER_CANCELLED = "cancelled"

ORDER_FLOW = (ORDER_PENDING, ORDER_PREPARING, ORDER_READY, ORDER_SERVED, ORDER_PAID)
ORDER_STATUSES = frozenset(ORDER_FLOW) | {ORDER_CANCELLED}
TERMINAL_ORDER_STATUSES = frozenset({ORDER_PAID, ORDER_CANCELLED})


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_TRANSFER = "transfer"
METHOD_OTHER = "other"

PAYMENT_METHODS = (METHOD_CASH, METHOD_CARD, METHOD_TRANSFER, METHOD_OTHER)

CENT = Decimal("0.01")


class LifecycleError(ValidationError):
    """
    Raised when an invalid order status transition is attempted.

    A domain error: the request was well-formed but breaks the lifecycle.
    """
    pass


# =============================================================================
# STATUS MACHINE
# =============================================================================

def validate_order_status(status: str) -> str:
    """Normalize and check a status value. Returns the normalized status."""
    normalized = coerce_text(status, "status", LifecycleError).lower()
    if normalized not in ORDER_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(ORDER_STATUSES))}"
        )
    return normalized


def is_terminal(status: str) -> bool:
    return status in TERMINAL_ORDER_STATUSES


def can_transition_order(from_status: str, to_status: str) -> bool:
    """
    Check whether staff may move an order from one status to another.

    Returns False for the system-only "paid" target, for any move out of a
    terminal state, for no-ops and for backwards moves.
    """
    if from_status not in ORDER_STATUSES or to_status not in ORDER_STATUSES:
        return False
    if is_terminal(from_status) or from_status == to_status:
        return False
    if to_status == ORDER_CANCELLED:
        return True
    if to_status == ORDER_PAID:
        return False
    return ORDER_FLOW.index(to_status) > ORDER_FLOW.index(from_status)


def require_order_transition(from_status: str, to_status: str) -> None:
    """Raise LifecycleError unless can_transition_order() allows the move."""
    if can_transition_order(from_status, to_status):
        return
    if to_status == ORDER_PAID:
        raise LifecycleError("Orders become paid automatically once payments cover the total")
    if is_terminal(from_status):
        raise LifecycleError(f"Order is {from_status}; its status can no longer change")
    raise LifecycleError(f"Cannot move order from {from_status} to {to_status}")


# =============================================================================
# ORDER TOTAL CALCULATOR
# =============================================================================

def _as_amount(value: Any):
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _line_parts(line: Any) -> tuple[Any, Any]:
    if isinstance(line, Mapping):
        quantity = line.get("quantity")
        price = line.get("unit_price_cents", line.get("unit_price"))
    elif isinstance(line, (tuple, list)):
        quantity, price = line
    else:
        quantity = line.quantity
        price = line.unit_price_cents
    return quantity, _as_amount(price)


def _require_positive_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def calculate_order_total(lines: Iterable[Any]):
    """
    Sum quantity x unit price over an order's lines.

    Lines may be (quantity, unit_price) pairs, mappings with "quantity" and
    "unit_price_cents" (or "unit_price"), or objects with those attributes.
    Integer cents stay exact; Decimal totals are quantized to 2 places.

    Raises:
        ValidationError: A line has a non-positive or non-integer quantity
    """
    total = 0
    for line in lines:
        quantity, price = _line_parts(line)
        total += _require_positive_quantity(quantity) * price
    if isinstance(total, Decimal):
        return total.quantize(CENT, rounding=ROUND_HALF_UP)
    return total


# =============================================================================
# LEDGER & SETTLEMENT
# =============================================================================

def amount_paid(amounts: Iterable[Any]):
    """Sum of the payment amounts currently on record for an order."""
    total = 0
    for amount in amounts:
        total += _as_amount(amount)
    return total


def amount_due(total: Any, paid: Any):
    """Outstanding balance, never negative."""
    due = _as_amount(total) - _as_amount(paid)
    return due if due > 0 else type(due)(0)


def is_settled(total: Any, paid: Any, epsilon: Any = 1) -> bool:
    """
    Settlement rule: the order counts as fully paid once the remaining due
    is at or below epsilon. Default epsilon is 1 (one cent).
    """
    return amount_due(total, paid) <= _as_amount(epsilon)


# =============================================================================
# ITEM-DELTA DETECTOR
# =============================================================================

SnapshotKey = tuple[Hashable, str]


def normalize_note(note: str | None) -> str:
    return coerce_text(note, "notes")


def build_snapshot(lines: Iterable[Any]) -> dict[SnapshotKey, int]:
    """
    Collapse order lines into {(menu_item_id, trimmed note): quantity}.

    Lines for the same item and note are summed; different notes stay
    distinct keys.
    """
    snapshot: dict[SnapshotKey, int] = {}
    for line in lines:
        if isinstance(line, Mapping):
            menu_item_id = line.get("menu_item_id")
            note = line.get("notes", line.get("note"))
            quantity = line.get("quantity")
        else:
            menu_item_id = line.menu_item_id
            note = line.notes
            quantity = line.quantity
        key = (menu_item_id, normalize_note(note))
        snapshot[key] = snapshot.get(key, 0) + _require_positive_quantity(quantity)
    return snapshot


@dataclass(frozen=True)
class ItemDelta:
    """Positive quantity changes between two snapshots, split by direction."""
    added: dict[SnapshotKey, int] = field(default_factory=dict)
    removed: dict[SnapshotKey, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def diff_snapshots(
    old: Mapping[SnapshotKey, int],
    new: Mapping[SnapshotKey, int],
) -> ItemDelta:
    added: dict[SnapshotKey, int] = {}
    removed: dict[SnapshotKey, int] = {}

    for key, new_qty in new.items():
        delta = new_qty - old.get(key, 0)
        if delta > 0:
            added[key] = delta
        elif delta < 0:
            removed[key] = -delta

    for key, old_qty in old.items():
        if key not in new and old_qty > 0:
            removed[key] = old_qty

    return ItemDelta(added=added, removed=removed)


def detect_added_items(
    old: Mapping[SnapshotKey, int],
    new: Mapping[SnapshotKey, int],
) -> dict[SnapshotKey, int]:
    """
    Newly added quantity per key. Unchanged, decreased and removed keys are
    excluded.
    """
    return diff_snapshots(old, new).added
