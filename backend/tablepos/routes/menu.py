# Overview: Flask API routes for menu categories and items; parses input and returns JSON responses.

"""
Menu Routes

SECURITY:
- Reading the menu is open to all staff (order taking needs it)
- Creating, editing and deleting menu entries is admin only

Prices are integer cents. Editing a price never changes existing orders.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_staff, require_role, ALL_STAFF_ROLES
from ..models import MenuCategory, MenuItem
from ..services import catalog_service
from ..services.concurrency import BackendUnavailable
from ..validation import (
    PayloadPolicy,
    validate_payload,
    enforce_rules_menu_item,
    ValidationError,
    NotFoundError,
    ConflictError,
)

MENU_ITEM_POLICY = PayloadPolicy(
    model=MenuItem,
    writable=frozenset({"name", "description", "price_cents", "category_id", "image_url", "is_available"}),
    required=frozenset({"name", "price_cents"}),
)

CATEGORY_POLICY = PayloadPolicy(
    model=MenuCategory,
    writable=frozenset({"name"}),
    required=frozenset({"name"}),
)

menu_bp = Blueprint("menu", __name__, url_prefix="/api/menu")


# =============================================================================
# CATEGORIES
# =============================================================================

@menu_bp.get("/categories")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@menu_bp.post("/categories")
@require_staff
@require_role("admin")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(name=patch["name"])
        return jsonify(category.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create menu category")
        return jsonify({"error": "Internal server error"}), 500


@menu_bp.delete("/categories/<int:category_id>")
@require_staff
@require_role("admin")
def delete_category_route(category_id: int):
    """Delete a category; its items stay on the menu uncategorized."""
    try:
        catalog_service.delete_category(category_id=category_id)
        return jsonify({"deleted": category_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete menu category")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ITEMS
# =============================================================================

@menu_bp.get("/items")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def list_menu_items_route():
    """
    List menu items.

    Query parameters:
    - available_only: Only items that can be ordered (default: false)
    - search: Substring match on name
    """
    available_only = request.args.get("available_only", "false").lower() == "true"
    items = catalog_service.list_menu_items(
        available_only=available_only,
        search=request.args.get("search"),
    )
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@menu_bp.get("/items/<int:item_id>")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def get_menu_item_route(item_id: int):
    try:
        return jsonify(catalog_service.get_menu_item(item_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@menu_bp.post("/items")
@require_staff
@require_role("admin")
def create_menu_item_route():
    """
    Create a menu item.

    Request body:
    {
        "name": "Margherita",     // required
        "price_cents": 1250,      // required, 0..MAX_PRICE_CENTS
        "category_id": 1,         // optional
        "description": "...",     // optional
        "image_url": "...",       // optional
        "is_available": true      // optional (default true)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, MENU_ITEM_POLICY, partial=False)
        enforce_rules_menu_item(patch)
        item = catalog_service.create_menu_item(patch=patch)
        return jsonify(item.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create menu item")
        return jsonify({"error": "Internal server error"}), 500


@menu_bp.patch("/items/<int:item_id>")
@require_staff
@require_role("admin")
def update_menu_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, MENU_ITEM_POLICY, partial=True)
        enforce_rules_menu_item(patch)
        item = catalog_service.update_menu_item(item_id=item_id, patch=patch)
        return jsonify(item.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update menu item")
        return jsonify({"error": "Internal server error"}), 500


@menu_bp.delete("/items/<int:item_id>")
@require_staff
@require_role("admin")
def delete_menu_item_route(item_id: int):
    """Delete a menu item that no order references; otherwise 409."""
    try:
        catalog_service.delete_menu_item(item_id=item_id)
        return jsonify({"deleted": item_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete menu item")
        return jsonify({"error": "Internal server error"}), 500
