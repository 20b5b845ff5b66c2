# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service

STAFF_HEADER = "X-Staff-Id"

ALL_STAFF_ROLES = ("admin", "staff", "chef", "employee")


def _is_authenticated() -> bool:
    return hasattr(g, 'staff')


def require_staff(f):
    """
    Require an identified staff member and establish the request principal.

    Sets g.staff to the StaffContext resolved from the X-Staff-Id header,
    which the fronting auth gateway populates after login.

    Returns 401 if:
    - No X-Staff-Id header
    - Unknown or malformed staff id
    - Staff account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        staff_id = request.headers.get(STAFF_HEADER)

        if not staff_id:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.resolve_staff(staff_id)

        if not context:
            return jsonify({"error": "Unknown or inactive staff member"}), 401

        g.staff = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the staff member to act under one of the given roles.

    Must be stacked under @require_staff.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not g.staff.has_role(*roles):
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires any of: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
