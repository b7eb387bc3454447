# Overview: Flask API routes for checkout and order status.

"""
Order API routes

- POST /api/orders/quote         price a cart, nothing persisted
- POST /api/orders               checkout (server-side pricing)
- GET  /api/orders[?status=]     newest first
- GET  /api/orders/status/<s>
- GET  /api/orders/<id>
- PUT  /api/orders/<id>/status   {status}
- DELETE /api/orders/<id>        Manager/Admin
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_role, require_staff_session
from ..errors import PosError
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/quote")
@require_staff_session
def quote_route():
    try:
        pricing = order_service.quote_order(request.get_json(silent=True) or {})
        return jsonify(pricing.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to quote order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
@require_staff_session
def create_order_route():
    try:
        order = order_service.create_order(request.get_json(silent=True) or {}, staff=g.current_staff)
        current_app.logger.info(
            "Order created: order_number=%s status=%s staff_id=%s",
            order.order_number, order.status, g.current_staff.id,
        )
        return jsonify(order.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_staff_session
def list_orders_route():
    try:
        orders = order_service.list_orders(request.args.get("status") or None)
        return jsonify([o.to_dict() for o in orders]), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to fetch orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/status/<string:status>")
@require_staff_session
def list_orders_by_status_route(status: str):
    try:
        return jsonify([o.to_dict() for o in order_service.list_orders(status)]), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to fetch orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_staff_session
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.put("/<int:order_id>/status")
@require_staff_session
def update_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400
    try:
        order = order_service.update_status(order_id, status, staff=g.current_staff)
        current_app.logger.info(
            "Order status: order_id=%s status=%s staff_id=%s", order.id, order.status, g.current_staff.id
        )
        return jsonify(order.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_staff_session
@require_role("Manager", "Admin")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
        current_app.logger.info("Order deleted: order_id=%s by staff_id=%s", order_id, g.current_staff.id)
        return jsonify({"message": "Order deleted successfully"}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
