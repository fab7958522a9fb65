# Overview: Flask API routes for pricing; live cart totals without persisting anything.

from flask import Blueprint, current_app, jsonify

from ..decorators import require_auth
from ..services import document_service
from .common import DOMAIN_ERRORS, error_response, json_body

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.post("/preview")
@require_auth
def preview_route():
    """
    Price a cart with the active taxes.

    Request body:
    {
        "items": [
            {"article_id": 1, "quantity": 2, "discount": 10, "discount_type": "percentage"},
            {"name": "Main d'oeuvre", "unit_price": 5000}
        ]
    }

    Returns the line totals, subtotal, discount total, tax lines and total.
    """
    try:
        breakdown = document_service.preview(json_body().get("items"))
        return jsonify(breakdown.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Pricing preview failed")
        return jsonify({"error": "Internal server error"}), 500
