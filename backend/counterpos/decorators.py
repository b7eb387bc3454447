# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_staff_session(f):
    """
    Require a valid register session.

    Sets the following Flask g attributes:
    - g.current_staff: the signed-in Staff row
    - g.staff_session: the StaffSession backing the request
    - g.session_token: the presented token (for single-session logout)

    Returns 401 if the Authorization header is missing, the session is
    unknown, revoked, idle too long, or its staff member is not active.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        session = session_service.validate_session(token)
        if session is None:
            return jsonify({"error": "Invalid or expired session"}), 401

        g.current_staff = session.staff
        g.staff_session = session
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the signed-in staff member to hold one of ``roles``.

    Must be stacked under @require_staff_session.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            staff = getattr(g, "current_staff", None)
            if staff is None:
                return jsonify({"error": "Authentication required"}), 401

            if staff.role not in roles:
                current_app.logger.warning(
                    "Role denied: staff_id=%s role=%s path=%s", staff.id, staff.role, request.path
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires any of: {', '.join(roles)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
