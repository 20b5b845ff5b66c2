# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

Cashier operations against an order's payment ledger: record, correct and
delete payments, and settle the order once payments cover its total.

DESIGN PRINCIPLES:
- Payments are separate from orders (many-to-one relationship)
- Split payments: one order can have many payments
- Partial payments: a payment may cover only part of the due
- No drift: paid/due are recomputed from the payment rows on every read
- Locked when settled: once an order is "paid", its payments cannot change
- At-least-recorded, best-effort-settled: the payment commit and the
  settlement evaluation are separate steps. If settlement cannot read the
  backend, the payment stays recorded and the order keeps its status until
  the next evaluation (settlement is idempotent).
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Order, Payment
from ..reconciliation import (
    METHOD_CASH,
    ORDER_CANCELLED,
    ORDER_PAID,
    ORDER_SERVED,
    PAYMENT_METHODS,
    amount_due,
    amount_paid,
    is_settled,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import NotFoundError, ValidationError, coerce_int, coerce_text
from .concurrency import BackendUnavailable, backend_call, fetch_current
from .session_service import StaffContext


# Marks a correction field the caller did not send; None means "clear it".
UNSET = object()


class SettledOrderLocked(Exception):
    """Raised when a payment mutation targets an order that is already paid."""

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} is already paid; its payments are locked")
        self.order_id = order_id


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of a payment mutation: the row touched and whether the order is now settled."""
    order_id: int
    payment: Payment | None
    settled: bool


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def _validate_amount(amount_cents) -> int:
    if amount_cents is None:
        raise ValidationError("amount_cents is required")
    amount = coerce_int(amount_cents, "amount_cents")
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    return amount


def _validate_method(method) -> str:
    normalized = coerce_text(method, "method").lower()
    if normalized not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {list(PAYMENT_METHODS)}")
    return normalized


MAX_REFERENCE_LENGTH = 100


def _payment_reference(method: str, reference) -> str | None:
    """Transaction reference for a card, transfer or other payment. Blank reads as none."""
    text = coerce_text(reference, "reference")
    if not text:
        return None
    if method == METHOD_CASH:
        raise ValidationError("reference does not apply to cash payments")
    if len(text) > MAX_REFERENCE_LENGTH:
        raise ValidationError(f"reference exceeds max length {MAX_REFERENCE_LENGTH}")
    return text


def _cash_tender(method: str, amount: int, tendered_cents) -> tuple[int | None, int]:
    """Returns (tendered_cents, change_cents) for a payment."""
    if tendered_cents is None:
        return None, 0
    tendered = coerce_int(tendered_cents, "tendered_cents")
    if method != METHOD_CASH:
        raise ValidationError("tendered_cents only applies to cash payments")
    if tendered < amount:
        raise ValidationError("Tendered amount must be at least the payment amount")
    return tendered, tendered - amount


# =============================================================================
# LEDGER READS
# =============================================================================

def _settlement_epsilon() -> int:
    return int(current_app.config.get("SETTLEMENT_EPSILON_CENTS", 1))


def _payment_amounts(order_id: int) -> list[int]:
    rows = db.session.query(Payment.amount_cents).filter(Payment.order_id == order_id).all()
    return [row.amount_cents for row in rows]


def get_amount_paid(order_id: int) -> int:
    """Sum of the payment rows currently recorded for the order."""
    return amount_paid(_payment_amounts(order_id))


def get_amount_due(order_id: int) -> int:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return amount_due(order.total_cents, get_amount_paid(order_id))


def _load_order_for_payment(order_id) -> Order:
    """Fresh read of the order a payment mutation is about to touch."""
    if order_id is None or order_id == "":
        raise ValidationError("order_id is required")
    order_id = coerce_int(order_id, "order_id")
    order = fetch_current(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _guard_order(order: Order) -> None:
    if order.status == ORDER_PAID:
        raise SettledOrderLocked(order.id)
    if order.status == ORDER_CANCELLED:
        raise ValidationError("Cannot take payments on a cancelled order")


def _load_settlement_state(order_id: int) -> tuple[Order | None, list[int]]:
    order = fetch_current(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        return None, []
    return order, _payment_amounts(order_id)


# =============================================================================
# SETTLEMENT
# =============================================================================

def settle_order_if_fully_paid(order_id: int, *, epsilon: int | None = None) -> bool:
    """
    Settlement rule: mark the order "paid" once its payments cover the total.

    Re-reads the order and its payments from the database. Cancelled orders
    are left alone, as are orders without any payment on record, except a
    served order whose total is zero: nothing is owed, so it settles.

    Returns:
        True if the order is paid after the evaluation, False otherwise
        (including when the backend could not be read; that failure is
        logged and the order keeps its prior status).
    """
    if epsilon is None:
        epsilon = _settlement_epsilon()

    try:
        with backend_call("settlement evaluation"):
            order, amounts = _load_settlement_state(order_id)
            if order is None or order.status == ORDER_CANCELLED:
                return False
            if order.status == ORDER_PAID:
                return True
            if not amounts and not (order.total_cents == 0 and order.status == ORDER_SERVED):
                return False

            paid = amount_paid(amounts)
            if not is_settled(order.total_cents, paid, epsilon):
                return False

            now = utcnow()
            order.status = ORDER_PAID
            order.settled_at = now
            order.updated_at = now
            db.session.commit()
    except BackendUnavailable:
        current_app.logger.warning(
            "Settlement skipped for order %s; status left unchanged for later reconciliation",
            order_id,
            exc_info=True,
        )
        return False

    current_app.logger.info("Order %s settled: paid %s of %s cents", order_id, paid, order.total_cents)
    return True


# =============================================================================
# PAYMENT MUTATIONS
# =============================================================================

def record_payment(
    actor: StaffContext,
    *,
    order_id,
    amount_cents,
    method,
    tendered_cents=None,
    reference=None,
) -> PaymentOutcome:
    """
    Record a payment against an order, then evaluate settlement.

    Args:
        actor: Staff member taking the payment
        order_id: Order being paid
        amount_cents: Amount applied to the order (positive, at most the due)
        method: cash, card, transfer or other
        tendered_cents: Cash handed over (cash only, optional); change is derived
        reference: Card or transfer transaction reference (optional)

    Raises:
        ValidationError: Bad input, cancelled order, or amount above the due
        NotFoundError: Order does not exist
        SettledOrderLocked: Order is already paid
        BackendUnavailable: The payment could not be written
    """
    amount = _validate_amount(amount_cents)
    method = _validate_method(method)
    tendered, change = _cash_tender(method, amount, tendered_cents)
    reference = _payment_reference(method, reference)

    with backend_call("record payment"):
        order = _load_order_for_payment(order_id)
        _guard_order(order)

        due = amount_due(order.total_cents, get_amount_paid(order.id))
        if amount > due:
            raise ValidationError(f"Payment of {amount} cents exceeds amount due ({due} cents)")

        payment = Payment(
            order_id=order.id,
            amount_cents=amount,
            method=method,
            tendered_cents=tendered,
            change_cents=change,
            reference=reference,
            created_by_user_id=actor.user_id,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.commit()

    current_app.logger.info(
        "Payment %s recorded on order %s: %s cents %s by %s",
        payment.id, order.id, amount, method, actor.username,
    )

    settled = settle_order_if_fully_paid(order.id)
    return PaymentOutcome(order_id=order.id, payment=payment, settled=settled)


def update_payment(
    actor: StaffContext,
    payment_id: int,
    *,
    amount_cents=None,
    method=None,
    tendered_cents=UNSET,
    reference=UNSET,
) -> PaymentOutcome:
    """
    Correct a payment's amount, method, tendered cash or reference.

    The corrected amount may use the room the payment itself already
    occupied: it must not exceed due + the payment's current amount.

    tendered_cents left UNSET keeps the recorded tender while it still
    covers the amount of a cash payment. An explicit None clears it.
    """
    new_amount = None if amount_cents is None else _validate_amount(amount_cents)
    new_method = None if method is None else _validate_method(method)

    with backend_call("update payment"):
        payment = fetch_current(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")

        order = _load_order_for_payment(payment.order_id)
        _guard_order(order)

        amount = payment.amount_cents if new_amount is None else new_amount
        method = payment.method if new_method is None else new_method

        room = amount_due(order.total_cents, get_amount_paid(order.id) - payment.amount_cents)
        if amount > room:
            raise ValidationError(f"Payment of {amount} cents exceeds amount due ({room} cents)")

        if tendered_cents is not UNSET:
            tendered, change = _cash_tender(method, amount, tendered_cents)
        elif method == METHOD_CASH and payment.tendered_cents is not None and payment.tendered_cents >= amount:
            tendered, change = payment.tendered_cents, payment.tendered_cents - amount
        else:
            tendered, change = None, 0

        if reference is not UNSET:
            reference = _payment_reference(method, reference)
        else:
            reference = None if method == METHOD_CASH else payment.reference

        payment.amount_cents = amount
        payment.method = method
        payment.tendered_cents = tendered
        payment.change_cents = change
        payment.reference = reference
        db.session.commit()

    current_app.logger.info("Payment %s on order %s updated by %s", payment.id, order.id, actor.username)

    settled = settle_order_if_fully_paid(order.id)
    return PaymentOutcome(order_id=order.id, payment=payment, settled=settled)


def delete_payment(actor: StaffContext, payment_id: int) -> PaymentOutcome:
    """
    Delete a payment from an unsettled order.

    Raises:
        NotFoundError: Payment does not exist
        SettledOrderLocked: Owning order is already paid
    """
    with backend_call("delete payment"):
        payment = fetch_current(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")

        order = _load_order_for_payment(payment.order_id)
        if order.status == ORDER_PAID:
            raise SettledOrderLocked(order.id)

        db.session.delete(payment)
        db.session.commit()

    current_app.logger.info("Payment %s on order %s deleted by %s", payment_id, order.id, actor.username)

    settled = settle_order_if_fully_paid(order.id)
    return PaymentOutcome(order_id=order.id, payment=None, settled=settled)


# =============================================================================
# REPORTING
# =============================================================================

def get_payment_summary(order_id: int) -> dict:
    """
    Payment position of one order.

    Returns:
        - total_cents: Order total
        - paid_cents: Sum of payments on record
        - due_cents: Amount still owed (never negative)
        - status / settled: Order status and whether it is paid
        - payments: Payment records, oldest first
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")

    payments = (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
    paid = amount_paid(p.amount_cents for p in payments)

    return {
        "order_id": order.id,
        "total_cents": order.total_cents,
        "paid_cents": paid,
        "due_cents": amount_due(order.total_cents, paid),
        "status": order.status,
        "settled": order.status == ORDER_PAID,
        "payments": [p.to_dict() for p in payments],
    }


def list_payments(*, search: str | None = None, order_id: int | None = None) -> list[Payment]:
    """Payments newest first, optionally filtered by table name, method or amount."""
    query = db.session.query(Payment)
    if order_id is not None:
        query = query.filter(Payment.order_id == order_id)
    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    term = (search or "").strip().lower()
    if not term:
        return payments

    def _matches(p: Payment) -> bool:
        table_name = p.order.table.name.lower() if p.order and p.order.table else ""
        amount_text = f"{p.amount_cents / 100:.2f}"
        return term in table_name or term in p.method or term in amount_text or term == str(p.amount_cents)

    return [p for p in payments if _matches(p)]


def list_pending_bills() -> list[dict]:
    """
    Open orders that still owe money, newest first.

    Excludes paid and cancelled orders and orders whose due is zero.
    """
    orders = (
        db.session.query(Order)
        .filter(Order.status.notin_((ORDER_PAID, ORDER_CANCELLED)))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    if not orders:
        return []

    paid_rows = (
        db.session.query(Payment.order_id, db.func.coalesce(db.func.sum(Payment.amount_cents), 0))
        .filter(Payment.order_id.in_([o.id for o in orders]))
        .group_by(Payment.order_id)
        .all()
    )
    paid_by_order = {order_id: int(total) for order_id, total in paid_rows}

    bills = []
    for order in orders:
        paid = paid_by_order.get(order.id, 0)
        due = amount_due(order.total_cents, paid)
        if due <= 0:
            continue
        bills.append({
            "order_id": order.id,
            "table_name": order.table.name if order.table else None,
            "status": order.status,
            "total_cents": order.total_cents,
            "paid_cents": paid,
            "due_cents": due,
            "created_at": to_utc_z(order.created_at),
        })
    return bills
