# Overview: Flask API routes for staff accounts; parses input and returns JSON responses.

"""
Staff Routes

SECURITY: Admin only. Staff accounts are deactivated, never deleted, so
orders and payments keep their attribution.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_staff, require_role
from ..models import User
from ..services import staff_service
from ..services.concurrency import BackendUnavailable
from ..validation import (
    PayloadPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
)

STAFF_POLICY = PayloadPolicy(
    model=User,
    writable=frozenset({"username", "display_name", "role", "is_active"}),
    required=frozenset({"username"}),
)

staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
@require_staff
@require_role("admin")
def list_staff_route():
    """
    List staff accounts.

    Query parameters:
    - include_inactive: Include deactivated accounts (default: true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = staff_service.list_staff(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@staff_bp.post("")
@require_staff
@require_role("admin")
def create_staff_route():
    """
    Create a staff account.

    Request body:
    {
        "username": "maria",        // required
        "display_name": "Maria",    // optional
        "role": "chef"              // admin, staff, chef or employee (default employee)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, STAFF_POLICY, partial=False)
        user = staff_service.create_staff(patch=patch)
        return jsonify(user.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create staff member")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.patch("/<int:user_id>")
@require_staff
@require_role("admin")
def update_staff_route(user_id: int):
    """Rename, change the role of, or (de)activate a staff account."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(payload, STAFF_POLICY, partial=True)
        user = staff_service.update_staff(user_id=user_id, patch=patch)
        return jsonify(user.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except BackendUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to update staff member")
        return jsonify({"error": "Internal server error"}), 500
