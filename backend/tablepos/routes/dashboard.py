# Overview: Flask API route for the admin dashboard.

from flask import Blueprint, request, jsonify

from ..decorators import require_staff, require_role
from ..services import dashboard_service
from ..time_utils import parse_iso_date


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_staff
@require_role("admin")
def dashboard_route():
    """
    Headline figures for the admin dashboard.

    Query parameters:
    - date: YYYY-MM-DD day for the sales figure (UTC, default today)
    """
    try:
        day = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    return jsonify(dashboard_service.dashboard_stats(day))
