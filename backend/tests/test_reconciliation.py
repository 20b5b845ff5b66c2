"""
Order total, ledger, settlement and item-delta rules.

These functions never touch the database, so no fixtures are needed.
"""

from decimal import Decimal

import pytest

from tablepos.reconciliation import (
    ORDER_CANCELLED,
    ORDER_PAID,
    ORDER_PENDING,
    ORDER_PREPARING,
    ORDER_READY,
    ORDER_SERVED,
    LifecycleError,
    amount_due,
    amount_paid,
    build_snapshot,
    calculate_order_total,
    can_transition_order,
    detect_added_items,
    diff_snapshots,
    is_settled,
    require_order_transition,
    validate_order_status,
)
from tablepos.validation import ValidationError


# =============================================================================
# ORDER TOTAL
# =============================================================================


class TestOrderTotal:

    def test_sum_of_quantity_times_price(self):
        lines = [(2, 1000), (1, 450), (3, 250)]
        assert calculate_order_total(lines) == 2 * 1000 + 450 + 3 * 250

    def test_independent_of_line_order(self):
        lines = [(2, 1000), (1, 450), (3, 250)]
        assert calculate_order_total(lines) == calculate_order_total(list(reversed(lines)))

    def test_accepts_mappings_and_objects(self):
        class Line:
            quantity = 2
            unit_price_cents = 1250

        lines = [{"quantity": 1, "unit_price_cents": 500}, Line()]
        assert calculate_order_total(lines) == 3000

    def test_decimal_prices_are_exact(self):
        lines = [{"quantity": 3, "unit_price": Decimal("0.10")}, {"quantity": 1, "unit_price": Decimal("0.20")}]
        assert calculate_order_total(lines) == Decimal("0.50")

    def test_float_prices_do_not_drift(self):
        lines = [{"quantity": 3, "unit_price": 0.1}]
        assert calculate_order_total(lines) == Decimal("0.30")

    def test_empty_order_totals_zero(self):
        assert calculate_order_total([]) == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_rejects_bad_quantity(self, quantity):
        with pytest.raises(ValidationError):
            calculate_order_total([(quantity, 100)])


# =============================================================================
# LEDGER & SETTLEMENT
# =============================================================================


class TestLedger:

    def test_amount_paid_sums_current_rows(self):
        assert amount_paid([6000, 4000]) == 10000
        assert amount_paid([]) == 0

    def test_amount_due_never_negative(self):
        assert amount_due(10000, 6000) == 4000
        assert amount_due(10000, 10000) == 0
        assert amount_due(10000, 12000) == 0

    def test_settled_at_zero_due(self):
        assert is_settled(10000, 10000)

    def test_not_settled_with_due_above_epsilon(self):
        assert not is_settled(10000, 6000)
        assert not is_settled(10000, 9998)

    def test_one_cent_due_counts_as_settled(self):
        assert is_settled(10000, 9999)

    def test_due_of_nine_tenths_of_a_cent_is_settled(self):
        assert is_settled(Decimal("100.00"), Decimal("99.991"), epsilon=Decimal("0.01"))

    def test_due_just_above_a_cent_is_not_settled(self):
        assert not is_settled(Decimal("100.00"), Decimal("99.989"), epsilon=Decimal("0.01"))

    def test_overpayment_is_settled(self):
        assert is_settled(10000, 10500)


# =============================================================================
# STATUS MACHINE
# =============================================================================


class TestStatusMachine:

    @pytest.mark.parametrize("from_status,to_status", [
        (ORDER_PENDING, ORDER_PREPARING),
        (ORDER_PREPARING, ORDER_READY),
        (ORDER_READY, ORDER_SERVED),
        (ORDER_PENDING, ORDER_SERVED),
        (ORDER_PENDING, ORDER_CANCELLED),
        (ORDER_SERVED, ORDER_CANCELLED),
    ])
    def test_allowed(self, from_status, to_status):
        assert can_transition_order(from_status, to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        (ORDER_READY, ORDER_PENDING),
        (ORDER_SERVED, ORDER_PAID),
        (ORDER_PAID, ORDER_CANCELLED),
        (ORDER_CANCELLED, ORDER_PENDING),
        (ORDER_PENDING, ORDER_PENDING),
    ])
    def test_refused(self, from_status, to_status):
        assert not can_transition_order(from_status, to_status)

    def test_paid_is_never_selectable(self):
        with pytest.raises(LifecycleError, match="automatically"):
            require_order_transition(ORDER_SERVED, ORDER_PAID)

    def test_terminal_states_stay_put(self):
        with pytest.raises(LifecycleError, match="no longer change"):
            require_order_transition(ORDER_PAID, ORDER_SERVED)

    def test_status_is_normalized(self):
        assert validate_order_status("  Preparing ") == ORDER_PREPARING

    def test_unknown_status(self):
        with pytest.raises(LifecycleError):
            validate_order_status("eaten")

    @pytest.mark.parametrize("status", [5, ["ready"], {"status": "ready"}])
    def test_non_text_status(self, status):
        with pytest.raises(LifecycleError, match="status must be a string"):
            validate_order_status(status)


# =============================================================================
# ITEM DELTA
# =============================================================================


class TestItemDelta:

    def test_added_quantity_and_new_keys(self):
        old = {("A", ""): 2}
        new = {("A", ""): 5, ("B", ""): 1}
        assert detect_added_items(old, new) == {("A", ""): 3, ("B", ""): 1}

    def test_unchanged_and_decreased_keys_excluded(self):
        old = {("A", ""): 2, ("B", ""): 3}
        new = {("A", ""): 2, ("B", ""): 1}
        assert detect_added_items(old, new) == {}

    def test_removed_keys_reported_separately(self):
        old = {("A", ""): 2, ("B", ""): 3}
        new = {("B", ""): 1}
        delta = diff_snapshots(old, new)
        assert delta.added == {}
        assert delta.removed == {("A", ""): 2, ("B", ""): 2}

    def test_notes_are_trimmed_into_the_key(self):
        snapshot = build_snapshot([
            {"menu_item_id": 1, "notes": " no onions ", "quantity": 1},
            {"menu_item_id": 1, "notes": "no onions", "quantity": 2},
            {"menu_item_id": 1, "notes": None, "quantity": 1},
        ])
        assert snapshot == {(1, "no onions"): 3, (1, ""): 1}

    def test_non_text_note_rejected(self):
        with pytest.raises(ValidationError, match="notes must be a string"):
            build_snapshot([{"menu_item_id": 1, "notes": 7, "quantity": 1}])

    def test_different_note_is_a_new_key(self):
        old = build_snapshot([{"menu_item_id": 1, "notes": "", "quantity": 1}])
        new = build_snapshot([
            {"menu_item_id": 1, "notes": "", "quantity": 1},
            {"menu_item_id": 1, "notes": "extra cheese", "quantity": 1},
        ])
        assert detect_added_items(old, new) == {(1, "extra cheese"): 1}

    def test_empty_delta(self):
        snapshot = {("A", ""): 1}
        assert diff_snapshots(snapshot, dict(snapshot)).is_empty
