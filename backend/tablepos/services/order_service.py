# Overview: Service-layer operations for orders; line capture, status lifecycle and kitchen notices.

"""
Order Service

Orders are opened against a table by a staff member and carry a full line
set. Editing an order replaces the whole line set; the snapshot diff
between the old and new sets decides which kitchen tickets to send.

RULES:
- Unit prices are captured when a menu item first lands on an order.
  Re-submitted lines for items already on the order keep the captured price.
- Paid orders are locked (SettledOrderLocked); cancelled orders are closed.
- An edit may not push the total below what has already been paid.
- Status changes follow reconciliation.can_transition_order(); "paid" is
  only reached through settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import and_, or_

from ..extensions import db
from ..models import DiningTable, MenuItem, Order, OrderLine, Payment
from ..reconciliation import (
    ORDER_CANCELLED,
    ORDER_PAID,
    ORDER_SERVED,
    LifecycleError,
    SnapshotKey,
    build_snapshot,
    calculate_order_total,
    diff_snapshots,
    is_terminal,
    require_order_transition,
    validate_order_status,
)
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int, coerce_text
from .concurrency import backend_call, commit, fetch_current
from .kitchen_service import cancel_open_tickets, create_tickets_for_delta
from .payment_service import SettledOrderLocked, get_amount_paid, settle_order_if_fully_paid
from .session_service import StaffContext

MAX_NOTE_LENGTH = 255


@dataclass
class OrderChange:
    """An order write plus what the kitchen needs to hear about it."""
    order: Order
    kitchen_added: dict[SnapshotKey, int] = field(default_factory=dict)
    kitchen_removed: dict[SnapshotKey, int] = field(default_factory=dict)
    settled: bool = False

    def to_dict(self) -> dict:
        data = {
            "order": self.order.to_dict(),
            "kitchen_added": _delta_to_list(self.kitchen_added),
            "settled": self.settled,
        }
        if current_app.config.get("KITCHEN_NOTIFY_REMOVALS"):
            data["kitchen_removed"] = _delta_to_list(self.kitchen_removed)
        return data


def _delta_to_list(delta: dict[SnapshotKey, int]) -> list[dict]:
    return [
        {"menu_item_id": menu_item_id, "notes": note, "quantity": quantity}
        for (menu_item_id, note), quantity in delta.items()
    ]


# =============================================================================
# LINE VALIDATION
# =============================================================================

def _resolve_items(items, captured_prices: dict[int, int] | None = None) -> list[dict]:
    """
    Validate submitted lines and attach unit prices.

    Every quantity must be a positive integer and every menu item must
    exist. New items must be available; items already on the order
    (captured_prices) keep their captured price even if since withdrawn.
    """
    captured_prices = captured_prices or {}

    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    resolved = []
    for index, entry in enumerate(items):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if entry.get("menu_item_id") is None:
            raise ValidationError(f"items[{index}].menu_item_id is required")

        menu_item_id = coerce_int(entry.get("menu_item_id"), f"items[{index}].menu_item_id")
        quantity = coerce_int(entry.get("quantity", 1), f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be a positive integer")

        note = coerce_text(entry.get("notes"), f"items[{index}].notes")
        if len(note) > MAX_NOTE_LENGTH:
            raise ValidationError(f"items[{index}].notes exceeds max length {MAX_NOTE_LENGTH}")

        if menu_item_id in captured_prices:
            unit_price = captured_prices[menu_item_id]
        else:
            menu_item = db.session.get(MenuItem, menu_item_id)
            if not menu_item:
                raise ValidationError(f"Menu item {menu_item_id} not found")
            if not menu_item.is_available:
                raise ValidationError(f"Menu item '{menu_item.name}' is not available")
            unit_price = menu_item.price_cents

        resolved.append({
            "menu_item_id": menu_item_id,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "notes": note,
        })
    return resolved


def _build_lines(lines: list[dict]) -> list[OrderLine]:
    return [
        OrderLine(
            menu_item_id=line["menu_item_id"],
            quantity=line["quantity"],
            unit_price_cents=line["unit_price_cents"],
            notes=line["notes"] or None,
        )
        for line in lines
    ]


def _load_order(order_id: int) -> Order:
    with backend_call("load order"):
        order = fetch_current(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


# =============================================================================
# ORDER OPERATIONS
# =============================================================================

def create_order(actor: StaffContext, *, table_id, items, status: str | None = None) -> OrderChange:
    """
    Open an order on a table and send every line to the kitchen.

    status defaults to ORDER_INITIAL_STATUS; paid and cancelled are refused.

    Raises:
        ValidationError: Missing table, empty or invalid lines
        NotFoundError: Table does not exist
    """
    if table_id is None or table_id == "":
        raise ValidationError("table_id is required")
    table_id = coerce_int(table_id, "table_id")

    table = db.session.get(DiningTable, table_id)
    if not table:
        raise NotFoundError(f"Table {table_id} not found")

    lines = _resolve_items(items)

    initial_status = validate_order_status(status or current_app.config.get("ORDER_INITIAL_STATUS", "pending"))
    if is_terminal(initial_status):
        raise LifecycleError(f"Orders cannot start as {initial_status}")

    now = utcnow()
    order = Order(
        table_id=table.id,
        user_id=actor.user_id,
        status=initial_status,
        total_cents=calculate_order_total(lines),
        created_at=now,
        updated_at=now,
    )
    order.lines = _build_lines(lines)
    db.session.add(order)
    db.session.flush()

    delta = diff_snapshots({}, build_snapshot(lines))
    create_tickets_for_delta(order, delta.added)
    commit("create order")

    current_app.logger.info(
        "Order %s opened on table %s by %s: %s lines, %s cents",
        order.id, table.name, actor.username, len(lines), order.total_cents,
    )
    return OrderChange(order=order, kitchen_added=delta.added)


def replace_order_items(actor: StaffContext, order_id: int, items) -> OrderChange:
    """
    Replace an order's full line set and notify the kitchen of additions.

    The replacement, new total and kitchen tickets are written together;
    settlement is evaluated afterwards in case the new total is now covered.

    Raises:
        SettledOrderLocked: Order is already paid
        LifecycleError: Order is cancelled
        ValidationError: Invalid lines, or total below the amount paid
    """
    order = _load_order(order_id)
    if order.status == ORDER_PAID:
        raise SettledOrderLocked(order.id)
    if order.status == ORDER_CANCELLED:
        raise LifecycleError("Cannot edit a cancelled order")

    captured_prices = {line.menu_item_id: line.unit_price_cents for line in order.lines}
    lines = _resolve_items(items, captured_prices)
    new_total = calculate_order_total(lines)

    paid = get_amount_paid(order.id)
    if new_total < paid:
        raise ValidationError(
            f"New total of {new_total} cents is below the {paid} cents already paid; delete payments first"
        )

    delta = diff_snapshots(build_snapshot(order.lines), build_snapshot(lines))

    order.lines.clear()
    db.session.flush()
    order.lines.extend(_build_lines(lines))
    order.total_cents = new_total
    order.updated_at = utcnow()
    create_tickets_for_delta(order, delta.added)
    commit("replace order items")

    removed = delta.removed if current_app.config.get("KITCHEN_NOTIFY_REMOVALS") else {}
    if removed:
        current_app.logger.info("Order %s: quantities removed since last snapshot: %s", order.id, removed)

    current_app.logger.info(
        "Order %s items replaced by %s: total %s cents, %s new kitchen keys",
        order.id, actor.username, new_total, len(delta.added),
    )

    settled = settle_order_if_fully_paid(order.id) if paid else False
    return OrderChange(order=order, kitchen_added=delta.added, kitchen_removed=removed, settled=settled)


def change_order_status(actor: StaffContext, order_id: int, new_status: str) -> Order:
    """
    Move an order forward or cancel it.

    Cancelling is refused while payments are on record and cancels the
    kitchen tickets still being worked.

    Serving an order with a zero total settles it, since nothing is owed.
    """
    target = validate_order_status(new_status)
    order = _load_order(order_id)
    require_order_transition(order.status, target)

    if target == ORDER_CANCELLED:
        has_payments = db.session.query(Payment.id).filter(Payment.order_id == order.id).first()
        if has_payments:
            raise ValidationError("Order has payments recorded; delete them before cancelling")
        cancel_open_tickets(order.id)

    previous = order.status
    order.status = target
    order.updated_at = utcnow()
    commit("change order status")

    current_app.logger.info("Order %s: %s -> %s by %s", order.id, previous, target, actor.username)

    if target == ORDER_SERVED and order.total_cents == 0:
        settle_order_if_fully_paid(order.id)
    return order


def delete_order(actor: StaffContext, order_id: int) -> None:
    """Delete an order that has no payments recorded."""
    order = _load_order(order_id)
    if order.status == ORDER_PAID:
        raise SettledOrderLocked(order.id)

    has_payments = db.session.query(Payment.id).filter(Payment.order_id == order.id).first()
    if has_payments:
        raise ConflictError("Order has payments recorded and cannot be deleted")

    db.session.delete(order)
    commit("delete order")
    current_app.logger.info("Order %s deleted by %s", order_id, actor.username)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(*, search: str | None = None, status: str | None = None) -> list[Order]:
    """Orders newest first; search matches table name, staff username or status."""
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == validate_order_status(status))
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    term = (search or "").strip().lower()
    if not term:
        return orders

    def _matches(order: Order) -> bool:
        table_name = order.table.name.lower() if order.table else ""
        username = order.user.username.lower() if order.user else ""
        return term in table_name or term in username or term in order.status

    return [o for o in orders if _matches(o)]


def recent_orders(limit: int = 5) -> list[Order]:
    return (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


def settle_open_orders() -> list[int]:
    """
    Re-run settlement over every open order with payments on record, plus
    served orders whose total is zero.

    Used for manual reconciliation after settlement was skipped.
    Returns the ids of orders that ended up paid.
    """
    candidate_ids = [
        row.id
        for row in db.session.query(Order.id)
        .filter(Order.status.notin_((ORDER_PAID, ORDER_CANCELLED)))
        .filter(or_(
            Order.id.in_(db.session.query(Payment.order_id)),
            and_(Order.total_cents == 0, Order.status == ORDER_SERVED),
        ))
        .order_by(Order.id.asc())
        .all()
    ]
    return [order_id for order_id in candidate_ids if settle_order_if_fully_paid(order_id)]


