# Overview: Flask API routes for dining tables; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_staff, require_role, ALL_STAFF_ROLES
from ..models import DiningTable
from ..services import catalog_service
from ..services.concurrency import BackendUnavailable
from ..validation import (
    PayloadPolicy,
    validate_payload,
    enforce_rules_table,
    ValidationError,
    NotFoundError,
    ConflictError,
)

TABLE_POLICY = PayloadPolicy(
    model=DiningTable,
    writable=frozenset({"name", "capacity", "status", "location"}),
    required=frozenset({"name", "capacity"}),
)

tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def list_tables_route():
    """List tables; ?search= matches name, location or status."""
    tables = catalog_service.list_tables(request.args.get("search"))
    return jsonify({"items": [t.to_dict() for t in tables], "count": len(tables)})


@tables_bp.post("")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def create_table_route():
    """
    Create a table.

    Request body:
    {
        "name": "T1",            // required, unique
        "capacity": 4,           // required, >= 1
        "status": "available",   // available, occupied, reserved, cleaning
        "location": "Terrace"    // optional
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, TABLE_POLICY, partial=False)
        enforce_rules_table(patch)
        table = catalog_service.create_table(patch=patch)
        return jsonify(table.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create table")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.patch("/<int:table_id>")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def update_table_route(table_id: int):
    """Update a table. Occupancy status is set by staff, not by orders."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, TABLE_POLICY, partial=True)
        enforce_rules_table(patch)
        table = catalog_service.update_table(table_id=table_id, patch=patch)
        return jsonify(table.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update table")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.delete("/<int:table_id>")
@require_staff
@require_role(*ALL_STAFF_ROLES)
def delete_table_route(table_id: int):
    try:
        catalog_service.delete_table(table_id=table_id)
        return jsonify({"deleted": table_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete table")
        return jsonify({"error": "Internal server error"}), 500
