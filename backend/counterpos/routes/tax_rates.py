# Overview: Flask API routes for the tax rate registry.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_role, require_staff_session
from ..errors import PosError
from ..services import tax_rate_service


tax_rates_bp = Blueprint("tax_rates", __name__, url_prefix="/api/tax-rates")

TAX_ADMIN_ROLES = ("Manager", "Supervisor", "Admin")


@tax_rates_bp.get("")
def list_tax_rates_route():
    try:
        return jsonify([t.to_dict() for t in tax_rate_service.list_tax_rates()]), 200
    except Exception:
        current_app.logger.exception("Failed to fetch tax rates")
        return jsonify({"error": "Failed to fetch tax rates"}), 500


@tax_rates_bp.get("/default")
def get_default_route():
    rate = tax_rate_service.get_default_tax_rate()
    if rate is None:
        return jsonify({"error": "No default tax rate configured"}), 404
    return jsonify(rate.to_dict()), 200


@tax_rates_bp.post("")
@require_staff_session
@require_role(*TAX_ADMIN_ROLES)
def create_tax_rate_route():
    data = request.get_json(silent=True) or {}
    try:
        rate = tax_rate_service.create_tax_rate(
            data.get("name"),
            data.get("rate"),
            description=data.get("description"),
            is_default=bool(data.get("isDefault")),
        )
        if rate.is_default:
            current_app.logger.info(
                "Default tax rate set: tax_rate_id=%s by staff_id=%s", rate.id, g.current_staff.id
            )
        return jsonify(rate.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create tax rate")
        return jsonify({"error": "Failed to create tax rate"}), 500


@tax_rates_bp.put("/<int:tax_rate_id>")
@require_staff_session
@require_role(*TAX_ADMIN_ROLES)
def update_tax_rate_route(tax_rate_id: int):
    data = request.get_json(silent=True) or {}
    fields = {}
    if "name" in data:
        fields["name"] = data["name"]
    if "rate" in data:
        fields["rate"] = data["rate"]
    if "description" in data:
        fields["description"] = data["description"]
    # Non-boolean isDefault values are ignored, as the register sends
    # whole records back on edit
    if isinstance(data.get("isDefault"), bool):
        fields["is_default"] = data["isDefault"]

    try:
        rate = tax_rate_service.update_tax_rate(tax_rate_id, **fields)
        return jsonify(rate.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update tax rate")
        return jsonify({"error": "Failed to update tax rate"}), 500


@tax_rates_bp.delete("/<int:tax_rate_id>")
@require_staff_session
@require_role(*TAX_ADMIN_ROLES)
def delete_tax_rate_route(tax_rate_id: int):
    try:
        tax_rate_service.delete_tax_rate(tax_rate_id)
        return jsonify({"message": "Tax rate deleted successfully"}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete tax rate")
        return jsonify({"error": "Failed to delete tax rate"}), 500


@tax_rates_bp.post("/<int:tax_rate_id>/default")
@require_staff_session
@require_role(*TAX_ADMIN_ROLES)
def set_default_route(tax_rate_id: int):
    try:
        rate = tax_rate_service.set_default_tax_rate(tax_rate_id)
        current_app.logger.info(
            "Default tax rate set: tax_rate_id=%s by staff_id=%s", rate.id, g.current_staff.id
        )
        return jsonify(rate.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to set default tax rate")
        return jsonify({"error": "Failed to set default tax rate"}), 500
