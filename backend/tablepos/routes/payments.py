# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Cashier API Routes

DESIGN:
- Record payments against orders (split and partial payments supported)
- Change is calculated for cash when the tendered amount is given
- Correct or delete payments until the order is settled
- Payment summary and pending bills for the cashier screen

SECURITY: Admin only.

Every write re-evaluates settlement; the response's "settled" flag says
whether the order is paid afterwards.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_staff, require_role
from ..services import payment_service
from ..services.concurrency import BackendUnavailable
from ..services.payment_service import SettledOrderLocked
from ..validation import ValidationError, NotFoundError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _outcome_response(outcome, status_code: int):
    return jsonify({
        "payment": outcome.payment.to_dict() if outcome.payment else None,
        "settled": outcome.settled,
        "summary": payment_service.get_payment_summary(outcome.order_id),
    }), status_code


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_staff
@require_role("admin")
def list_payments_route():
    """
    Payment history, newest first.

    Query params:
    - search: Table name, method or amount ("12.50" or cents)
    - order_id: Restrict to one order
    """
    order_id = request.args.get("order_id", type=int)
    payments = payment_service.list_payments(search=request.args.get("search"), order_id=order_id)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})


@payments_bp.get("/orders/<int:order_id>/summary")
@require_staff
@require_role("admin")
def get_payment_summary_route(order_id: int):
    """
    Payment position of an order.

    Returns:
    - total_cents, paid_cents, due_cents
    - status, settled
    - payments
    """
    try:
        return jsonify(payment_service.get_payment_summary(order_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@payments_bp.get("/pending-bills")
@require_staff
@require_role("admin")
def pending_bills_route():
    """Open orders that still owe money."""
    bills = payment_service.list_pending_bills()
    return jsonify({"items": bills, "count": len(bills)})


# =============================================================================
# PAYMENT WRITES
# =============================================================================

@payments_bp.post("")
@require_staff
@require_role("admin")
def record_payment_route():
    """
    Record a payment against an order.

    Request body:
    {
        "order_id": 12,
        "amount_cents": 4000,
        "method": "cash",          // cash, card, transfer, other
        "tendered_cents": 5000,    // optional, cash only
        "reference": "TX-88121"    // optional, card/transfer/other only
    }

    Returns:
        201: Payment recorded, with settlement flag and summary
        400: Invalid input, cancelled order, or amount above due
        404: Order not found
        409: Order already paid
        503: Payment could not be written
    """
    data = request.get_json(silent=True) or {}

    try:
        outcome = payment_service.record_payment(
            g.staff,
            order_id=data.get("order_id"),
            amount_cents=data.get("amount_cents"),
            method=data.get("method"),
            tendered_cents=data.get("tendered_cents"),
            reference=data.get("reference"),
        )
        return _outcome_response(outcome, 201)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SettledOrderLocked as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.patch("/<int:payment_id>")
@require_staff
@require_role("admin")
def update_payment_route(payment_id: int):
    """
    Correct a payment on an unsettled order.

    Request body (all optional):
    {
        "amount_cents": 3500,
        "method": "card",
        "tendered_cents": null,    // null clears the recorded tender
        "reference": "TX-88121"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        outcome = payment_service.update_payment(
            g.staff,
            payment_id,
            amount_cents=data.get("amount_cents"),
            method=data.get("method"),
            tendered_cents=data.get("tendered_cents", payment_service.UNSET),
            reference=data.get("reference", payment_service.UNSET),
        )
        return _outcome_response(outcome, 200)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SettledOrderLocked as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_staff
@require_role("admin")
def delete_payment_route(payment_id: int):
    """Delete a payment from an unsettled order."""
    try:
        outcome = payment_service.delete_payment(g.staff, payment_id)
        return _outcome_response(outcome, 200)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SettledOrderLocked as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
