# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order API Routes

DESIGN:
- An order is opened with its full line set and sent to the kitchen
- Edits replace the whole line set; only newly added quantity reaches the kitchen
- Status moves forward through pending -> preparing -> ready -> served;
  "paid" is reached only by settling payments
- Paid orders are locked

SECURITY: All staff roles may take and work orders.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_staff, require_role, ALL_STAFF_ROLES
from ..services import order_service
from ..services.concurrency import BackendUnavailable
from ..services.payment_service import SettledOrderLocked
from ..validation import ValidationError, NotFoundError, ConflictError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def list_orders_route():
    """
    List orders, newest first.

    Query parameters:
    - search: Matches table name, staff username or status
    - status: Exact status filter
    """
    try:
        orders = order_service.list_orders(
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [o.to_dict(include_lines=False) for o in orders],
        "count": len(orders),
    })


@orders_bp.get("/<int:order_id>")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# ORDER WRITES
# =============================================================================

@orders_bp.post("")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def create_order_route():
    """
    Open an order on a table.

    Request body:
    {
        "table_id": 3,
        "items": [
            {"menu_item_id": 1, "quantity": 2, "notes": "no onions"},
            {"menu_item_id": 7, "quantity": 1}
        ],
        "status": "pending"   (optional)
    }

    Returns:
        201: {order, kitchen_added, settled}
        400: Invalid input
        404: Table not found
    """
    data = request.get_json(silent=True) or {}

    try:
        change = order_service.create_order(
            g.staff,
            table_id=data.get("table_id"),
            items=data.get("items"),
            status=data.get("status"),
        )
        return jsonify(change.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/items")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def replace_order_items_route(order_id: int):
    """
    Replace an order's line set.

    Request body:
    {
        "items": [{"menu_item_id": 1, "quantity": 3, "notes": ""}]
    }

    Returns:
        200: {order, kitchen_added, settled} (+ kitchen_removed when enabled)
        400: Invalid input, cancelled order or total below amount paid
        409: Order already paid
    """
    data = request.get_json(silent=True) or {}

    try:
        change = order_service.replace_order_items(g.staff, order_id, data.get("items"))
        return jsonify(change.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SettledOrderLocked as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to replace order items")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def change_order_status_route(order_id: int):
    """
    Move an order along its lifecycle or cancel it.

    Request body:
    {
        "status": "preparing"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.change_order_status(g.staff, order_id, data.get("status"))
        return jsonify(order.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def delete_order_route(order_id: int):
    """Delete an order that has no payments recorded."""
    try:
        order_service.delete_order(g.staff, order_id)
        return jsonify({"deleted": order_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (SettledOrderLocked, ConflictError) as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
