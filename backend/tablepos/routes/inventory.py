# Overview: Flask API routes for kitchen inventory; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_staff, require_role
from ..models import InventoryItem
from ..services import inventory_service
from ..services.concurrency import BackendUnavailable
from ..validation import (
    PayloadPolicy,
    validate_payload,
    enforce_rules_inventory_item,
    ValidationError,
    NotFoundError,
    ConflictError,
)

INVENTORY_POLICY = PayloadPolicy(
    model=InventoryItem,
    writable=frozenset({"name", "unit", "quantity", "min_stock_level", "supplier"}),
    required=frozenset({"name"}),
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_staff
@require_role("admin")
def list_inventory_route():
    """List inventory; ?search= matches name or supplier."""
    items = inventory_service.list_inventory(request.args.get("search"))
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@inventory_bp.get("/low-stock")
@require_staff
@require_role("admin")
def low_stock_route():
    """Items at or below their minimum stock level."""
    items = inventory_service.list_low_stock()
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@inventory_bp.post("")
@require_staff
@require_role("admin")
def create_inventory_item_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, INVENTORY_POLICY, partial=False)
        enforce_rules_inventory_item(patch)
        item = inventory_service.create_inventory_item(patch=patch)
        return jsonify(item.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/<int:item_id>")
@require_staff
@require_role("admin")
def update_inventory_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, INVENTORY_POLICY, partial=True)
        enforce_rules_inventory_item(patch)
        item = inventory_service.update_inventory_item(item_id=item_id, patch=patch)
        return jsonify(item.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:item_id>")
@require_staff
@require_role("admin")
def delete_inventory_item_route(item_id: int):
    try:
        inventory_service.delete_inventory_item(item_id=item_id)
        return jsonify({"deleted": item_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return jsonify({"error": "Internal server error"}), 500
