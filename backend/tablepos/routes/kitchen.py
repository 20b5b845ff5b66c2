# Overview: Flask API routes for the kitchen display; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_staff, require_role, ALL_STAFF_ROLES
from ..services import kitchen_service
from ..services.concurrency import BackendUnavailable
from ..validation import ValidationError, NotFoundError


kitchen_bp = Blueprint("kitchen", __name__, url_prefix="/api/kitchen")


@kitchen_bp.get("/tickets")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def list_tickets_route():
    """
    Kitchen queue, oldest first.

    Query parameters:
    - include_closed: Include delivered and cancelled tickets (default: false)
    - order_id: Restrict to one order
    """
    include_closed = request.args.get("include_closed", "false").lower() == "true"
    order_id = request.args.get("order_id", type=int)
    tickets = kitchen_service.list_tickets(include_closed=include_closed, order_id=order_id)
    return jsonify({"items": [t.to_dict() for t in tickets], "count": len(tickets)})


@kitchen_bp.post("/tickets/<int:ticket_id>/status")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def update_ticket_status_route(ticket_id: int):
    """
    Move a ticket along the kitchen workflow.

    Request body:
    {
        "status": "in_progress"   // in_progress, ready, delivered, cancelled
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        ticket = kitchen_service.update_ticket_status(g.staff, ticket_id, data.get("status"))
        return jsonify(ticket.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update kitchen ticket")
        return jsonify({"error": "Internal server error"}), 500
