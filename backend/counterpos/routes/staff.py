# Overview: Flask API routes for staff sign-in and staff records.

"""
Staff API routes

Sign-in surface used by the register:
- POST /api/staff/login          {email, pin} -> {_id, name, role, sessionId, loginTime}
- POST /api/staff/logout         {staffId} or a bearer session alone
- GET  /api/staff/session/current
- POST /api/staff/change-pin     {staffId, oldPin, newPin}

Back-office management (Manager/Admin):
- GET/POST       /api/staff
- GET/PUT/DELETE /api/staff/<id>

Credentials and session tokens are never logged.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_role, require_staff_session, bearer_token
from ..errors import AuthenticationError, PosError
from ..services import staff_service


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")

STAFF_ADMIN_ROLES = ("Manager", "Admin")


@staff_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    try:
        result = staff_service.login(
            email,
            data.get("pin"),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        current_app.logger.info("Staff login: staff_id=%s", result["_id"])
        return jsonify(result), 200
    except AuthenticationError as e:
        current_app.logger.warning("Failed staff login from %s", request.remote_addr)
        return jsonify(e.to_dict()), e.http_status
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to log in staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("/logout")
def logout_route():
    """
    With {staffId}: end every session of that staff member (idempotent).
    Without it: end only the session presented in the Authorization header.
    """
    data = request.get_json(silent=True) or {}
    staff_id = data.get("staffId")
    try:
        if staff_id is not None:
            staff = staff_service.logout(staff_id)
        else:
            token = bearer_token()
            if not token:
                return jsonify({"error": "Staff ID is required"}), 400
            staff = staff_service.logout_session(token)
            if staff is None:
                return jsonify({"error": "Invalid or expired session"}), 401

        current_app.logger.info("Staff logout: staff_id=%s", staff.id)
        return jsonify({"message": "Logged out successfully", "staff": staff.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to log out staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("/session/current")
@require_staff_session
def current_session_route():
    body = g.current_staff.to_dict()
    body["session"] = g.staff_session.to_dict()
    return jsonify(body), 200


@staff_bp.post("/change-pin")
def change_pin_route():
    data = request.get_json(silent=True) or {}
    staff_id = data.get("staffId")
    try:
        staff_service.change_pin(staff_id, data.get("oldPin"), data.get("newPin"))
        current_app.logger.info("PIN changed: staff_id=%s", staff_id)
        return jsonify({"message": "PIN changed successfully"}), 200
    except AuthenticationError as e:
        current_app.logger.warning("Failed PIN change: staff_id=%s", staff_id)
        return jsonify(e.to_dict()), e.http_status
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change PIN")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("")
@require_staff_session
@require_role(*STAFF_ADMIN_ROLES)
def list_staff_route():
    try:
        return jsonify([s.to_dict() for s in staff_service.list_staff()]), 200
    except Exception:
        current_app.logger.exception("Failed to list staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("")
@require_staff_session
@require_role(*STAFF_ADMIN_ROLES)
def create_staff_route():
    try:
        staff = staff_service.create_staff(request.get_json(silent=True) or {})
        current_app.logger.info(
            "Staff created: staff_id=%s by staff_id=%s", staff.id, g.current_staff.id
        )
        return jsonify(staff.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("/<int:staff_id>")
@require_staff_session
@require_role(*STAFF_ADMIN_ROLES)
def get_staff_route(staff_id: int):
    try:
        return jsonify(staff_service.get_staff(staff_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@staff_bp.put("/<int:staff_id>")
@require_staff_session
@require_role(*STAFF_ADMIN_ROLES)
def update_staff_route(staff_id: int):
    try:
        staff = staff_service.update_staff(staff_id, request.get_json(silent=True) or {})
        return jsonify(staff.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.delete("/<int:staff_id>")
@require_staff_session
@require_role(*STAFF_ADMIN_ROLES)
def delete_staff_route(staff_id: int):
    if staff_id == g.current_staff.id:
        return jsonify({"error": "You cannot delete your own account"}), 400
    try:
        staff_service.delete_staff(staff_id)
        current_app.logger.info(
            "Staff deleted: staff_id=%s by staff_id=%s", staff_id, g.current_staff.id
        )
        return jsonify({"message": "Staff deleted successfully"}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete staff")
        return jsonify({"error": "Internal server error"}), 500
