# Overview: Flask API routes for customer records.

from flask import Blueprint, request, current_app

from ..services import catalog_service
from ..errors import PosError
from ..decorators import require_staff_session

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    customers = catalog_service.list_customers(search=request.args.get("q") or None)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    try:
        return catalog_service.get_customer(customer_id).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status


@customers_bp.post("")
@require_staff_session
def create_customer():
    try:
        customer = catalog_service.create_customer(request.get_json(silent=True))
        return customer.to_dict(), 201
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500


@customers_bp.put("/<int:customer_id>")
@require_staff_session
def update_customer(customer_id: int):
    try:
        return catalog_service.update_customer(customer_id, request.get_json(silent=True)).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return {"error": "Internal server error"}, 500


@customers_bp.delete("/<int:customer_id>")
@require_staff_session
def delete_customer(customer_id: int):
    try:
        catalog_service.delete_customer(customer_id)
        return {"message": "Customer deleted successfully"}
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return {"error": "Internal server error"}, 500
