"""
Cashier ledger and settlement tests.

Covers split/partial payments, the settled-order lock, input validation,
and settlement being skipped (not lost) when the backend cannot be read.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from tablepos.extensions import db
from tablepos.models import MenuItem, Order, Payment
from tablepos.services import order_service, payment_service
from tablepos.services.concurrency import BackendUnavailable
from tablepos.services.payment_service import SettledOrderLocked
from tablepos.validation import NotFoundError, ValidationError


@pytest.fixture
def hundred_order(db_session, waiter, table, menu):
    """Order totalling 10000 cents ($100.00)."""
    change = order_service.create_order(
        waiter, table_id=table.id, items=[{"menu_item_id": menu["feast"].id, "quantity": 1}]
    )
    return change.order


def _pay(actor, order, amount, method="card", **kwargs):
    return payment_service.record_payment(
        actor, order_id=order.id, amount_cents=amount, method=method, **kwargs
    )


class TestSplitPayments:

    def test_sixty_then_forty_settles(self, admin, hundred_order):
        first = _pay(admin, hundred_order, 6000)
        assert first.settled is False
        assert payment_service.get_amount_due(hundred_order.id) == 4000
        assert db.session.get(Order, hundred_order.id).status == "pending"

        second = _pay(admin, hundred_order, 4000, method="cash")
        assert second.settled is True
        assert payment_service.get_amount_due(hundred_order.id) == 0

        order = db.session.get(Order, hundred_order.id)
        assert order.status == "paid"
        assert order.settled_at is not None

    def test_payments_locked_after_settlement(self, admin, hundred_order):
        p1 = _pay(admin, hundred_order, 6000).payment
        p2 = _pay(admin, hundred_order, 4000).payment

        for payment_id in (p1.id, p2.id):
            with pytest.raises(SettledOrderLocked):
                payment_service.delete_payment(admin, payment_id)
            with pytest.raises(SettledOrderLocked):
                payment_service.update_payment(admin, payment_id, method="other")

        with pytest.raises(SettledOrderLocked):
            _pay(admin, hundred_order, 100)

        assert db.session.query(Payment).filter_by(order_id=hundred_order.id).count() == 2
        assert db.session.get(Order, hundred_order.id).status == "paid"

    def test_amount_paid_tracks_inserts_and_deletes(self, admin, hundred_order):
        p1 = _pay(admin, hundred_order, 1500).payment
        p2 = _pay(admin, hundred_order, 2500).payment
        p3 = _pay(admin, hundred_order, 1000).payment
        assert payment_service.get_amount_paid(hundred_order.id) == 5000

        payment_service.delete_payment(admin, p2.id)
        assert payment_service.get_amount_paid(hundred_order.id) == 2500

        payment_service.update_payment(admin, p3.id, amount_cents=3000)
        assert payment_service.get_amount_paid(hundred_order.id) == 4500

        payment_service.delete_payment(admin, p1.id)
        assert payment_service.get_amount_paid(hundred_order.id) == 3000

        summary = payment_service.get_payment_summary(hundred_order.id)
        assert summary["paid_cents"] == 3000
        assert summary["due_cents"] == 7000
        assert summary["settled"] is False
        assert [p["amount_cents"] for p in summary["payments"]] == [3000]

    def test_update_can_settle(self, admin, hundred_order):
        p1 = _pay(admin, hundred_order, 6000).payment
        outcome = payment_service.update_payment(admin, p1.id, amount_cents=10000)
        assert outcome.settled is True
        assert db.session.get(Order, hundred_order.id).status == "paid"


class TestPaymentValidation:

    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_amount_rejected(self, admin, hundred_order, amount):
        with pytest.raises(ValidationError):
            _pay(admin, hundred_order, amount)
        assert payment_service.get_amount_paid(hundred_order.id) == 0
        assert db.session.get(Order, hundred_order.id).status == "pending"

    @pytest.mark.parametrize("amount", [12.5, "12.50", "1e3", True])
    def test_non_integer_amount_rejected(self, admin, hundred_order, amount):
        with pytest.raises(ValidationError):
            _pay(admin, hundred_order, amount)

    def test_missing_order_reference(self, admin, db_session):
        with pytest.raises(ValidationError, match="order_id"):
            payment_service.record_payment(admin, order_id=None, amount_cents=100, method="card")

    def test_unknown_order(self, admin, db_session):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(admin, order_id=999, amount_cents=100, method="card")

    def test_unknown_method(self, admin, hundred_order):
        with pytest.raises(ValidationError, match="method"):
            _pay(admin, hundred_order, 100, method="iou")

    def test_amount_above_due_rejected(self, admin, hundred_order):
        _pay(admin, hundred_order, 6000)
        with pytest.raises(ValidationError, match="exceeds amount due"):
            _pay(admin, hundred_order, 4001)
        assert payment_service.get_amount_paid(hundred_order.id) == 6000

    def test_cancelled_order_takes_no_payments(self, admin, waiter, hundred_order):
        order_service.change_order_status(waiter, hundred_order.id, "cancelled")
        with pytest.raises(ValidationError, match="cancelled"):
            _pay(admin, hundred_order, 100)

    def test_cash_change(self, admin, hundred_order):
        payment = _pay(admin, hundred_order, 4000, method="cash", tendered_cents=5000).payment
        assert payment.tendered_cents == 5000
        assert payment.change_cents == 1000

    def test_tender_below_amount_rejected(self, admin, hundred_order):
        with pytest.raises(ValidationError, match="Tendered"):
            _pay(admin, hundred_order, 4000, method="cash", tendered_cents=3000)

    def test_tender_only_for_cash(self, admin, hundred_order):
        with pytest.raises(ValidationError, match="cash"):
            _pay(admin, hundred_order, 4000, method="card", tendered_cents=5000)

    def test_correction_keeps_or_clears_tender(self, admin, hundred_order):
        payment = _pay(admin, hundred_order, 3000, method="cash", tendered_cents=5000).payment

        payment = payment_service.update_payment(admin, payment.id, amount_cents=3500).payment
        assert (payment.tendered_cents, payment.change_cents) == (5000, 1500)

        payment = payment_service.update_payment(admin, payment.id, tendered_cents=None).payment
        assert (payment.tendered_cents, payment.change_cents) == (None, 0)
        assert payment.method == "cash"

    def test_reference_for_card_only(self, admin, hundred_order):
        payment = _pay(admin, hundred_order, 2000, reference="TX-88121").payment
        assert payment.reference == "TX-88121"

        with pytest.raises(ValidationError, match="cash"):
            _pay(admin, hundred_order, 2000, method="cash", reference="TX-2")

        # Switching to cash drops the card reference
        payment = payment_service.update_payment(admin, payment.id, method="cash").payment
        assert payment.reference is None

    def test_non_text_method(self, admin, hundred_order):
        with pytest.raises(ValidationError, match="method must be a string"):
            _pay(admin, hundred_order, 100, method=1)


class TestSettlementRule:

    def test_no_payments_never_settles(self, admin, hundred_order):
        assert payment_service.settle_order_if_fully_paid(hundred_order.id) is False
        assert db.session.get(Order, hundred_order.id).status == "pending"

    def test_settlement_is_idempotent(self, admin, hundred_order):
        _pay(admin, hundred_order, 10000)
        assert payment_service.settle_order_if_fully_paid(hundred_order.id) is True
        assert payment_service.settle_order_if_fully_paid(hundred_order.id) is True
        assert db.session.get(Order, hundred_order.id).status == "paid"

    def test_epsilon_from_config(self, app, admin, hundred_order):
        _pay(admin, hundred_order, 9990)
        assert db.session.get(Order, hundred_order.id).status == "pending"

        app.config["SETTLEMENT_EPSILON_CENTS"] = 10
        assert payment_service.settle_order_if_fully_paid(hundred_order.id) is True

    def test_settlement_reads_fresh_state(self, admin, hundred_order):
        _pay(admin, hundred_order, 6000)

        # Another writer records the rest directly
        db.session.add(Payment(order_id=hundred_order.id, amount_cents=4000, method="card", change_cents=0))
        db.session.commit()

        assert payment_service.settle_order_if_fully_paid(hundred_order.id) is True

    def test_served_zero_total_order_settles(self, db_session, waiter, table):
        free = MenuItem(name="Tap Water", price_cents=0, is_available=True)
        db_session.add(free)
        db_session.commit()

        order = order_service.create_order(
            waiter, table_id=table.id, items=[{"menu_item_id": free.id, "quantity": 2}]
        ).order
        assert payment_service.settle_order_if_fully_paid(order.id) is False

        order = order_service.change_order_status(waiter, order.id, "served")
        assert order.status == "paid"
        assert order.settled_at is not None
        assert payment_service.list_pending_bills() == []


class TestSettlementFailure:

    def test_payment_kept_when_settlement_cannot_read(self, admin, hundred_order, monkeypatch, caplog):
        def _unavailable(order_id):
            raise BackendUnavailable("settlement evaluation: backend unavailable")

        monkeypatch.setattr(payment_service, "_load_settlement_state", _unavailable)

        with caplog.at_level(logging.WARNING):
            outcome = _pay(admin, hundred_order, 10000)

        assert outcome.settled is False
        assert outcome.payment.id is not None
        assert any("Settlement skipped" in r.getMessage() for r in caplog.records)

        assert db.session.query(Payment).filter_by(order_id=hundred_order.id).count() == 1
        assert db.session.get(Order, hundred_order.id).status == "pending"

        monkeypatch.undo()
        assert order_service.settle_open_orders() == [hundred_order.id]
        assert db.session.get(Order, hundred_order.id).status == "paid"

    def test_driver_error_on_payment_write(self, admin, hundred_order, monkeypatch):
        def _connection_lost():
            raise OperationalError("INSERT INTO payments", {}, Exception("server closed the connection"))

        monkeypatch.setattr(db.session, "commit", _connection_lost)

        with pytest.raises(BackendUnavailable, match="record payment"):
            _pay(admin, hundred_order, 4000)

        monkeypatch.undo()
        assert db.session.query(Payment).count() == 0
        assert payment_service.get_amount_due(hundred_order.id) == 10000

    def test_driver_error_during_settlement(self, admin, hundred_order, monkeypatch, caplog):
        real_commit = db.session.commit
        commits = []

        def _second_commit_fails():
            commits.append(1)
            if len(commits) == 1:
                return real_commit()
            raise OperationalError("UPDATE orders", {}, Exception("server closed the connection"))

        monkeypatch.setattr(db.session, "commit", _second_commit_fails)

        with caplog.at_level(logging.WARNING):
            outcome = _pay(admin, hundred_order, 10000)

        assert outcome.settled is False
        assert len(commits) == 2
        assert any(
            r.levelno == logging.WARNING and "Settlement skipped" in r.getMessage() for r in caplog.records
        )

        monkeypatch.undo()
        assert db.session.query(Payment).filter_by(order_id=hundred_order.id).count() == 1
        assert db.session.get(Order, hundred_order.id).status == "pending"


class TestReporting:

    def test_pending_bills(self, admin, waiter, table, menu, hundred_order):
        other = order_service.create_order(
            waiter, table_id=table.id, items=[{"menu_item_id": menu["soda"].id, "quantity": 2}]
        ).order
        _pay(admin, hundred_order, 2500)
        _pay(admin, other, 500)

        bills = payment_service.list_pending_bills()
        assert [b["order_id"] for b in bills] == [hundred_order.id]
        assert bills[0]["due_cents"] == 7500
        assert bills[0]["table_name"] == "T1"

    def test_search_payments(self, admin, hundred_order):
        _pay(admin, hundred_order, 1250, method="cash")
        _pay(admin, hundred_order, 300, method="card")

        assert [p.amount_cents for p in payment_service.list_payments(search="12.50")] == [1250]
        assert [p.amount_cents for p in payment_service.list_payments(search="card")] == [300]
        assert len(payment_service.list_payments(search="t1")) == 2
