# Overview: Flask API routes for the product catalog.

"""
Product routes.

Reads are open so the register can load its catalog before sign-in;
writes require a staff session.
"""
from flask import Blueprint, request, current_app

from ..services import catalog_service
from ..errors import PosError
from ..decorators import require_staff_session

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - category: str (optional)
    - include_inactive: "true" to include retired products
    """
    category = request.args.get("category") or None
    include_inactive = request.args.get("include_inactive", "").lower() == "true"
    products = catalog_service.list_products(category=category, include_inactive=include_inactive)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return catalog_service.get_product(product_id).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status


@products_bp.post("")
@require_staff_session
def create_product():
    try:
        product = catalog_service.create_product(request.get_json(silent=True))
        return product.to_dict(), 201
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500


@products_bp.put("/<int:product_id>")
@require_staff_session
def update_product(product_id: int):
    try:
        return catalog_service.update_product(product_id, request.get_json(silent=True)).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500


@products_bp.delete("/<int:product_id>")
@require_staff_session
def delete_product(product_id: int):
    try:
        catalog_service.delete_product(product_id)
        return {"message": "Product deleted successfully"}
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500
