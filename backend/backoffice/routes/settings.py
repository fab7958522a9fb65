# Overview: Flask API routes for company settings; read by everyone, updated by admins.

from flask import Blueprint, current_app, jsonify

from ..decorators import require_admin, require_auth
from ..models import CompanySettings
from ..services import settings_service
from ..validation import ModelValidationPolicy, validate_payload
from .common import DOMAIN_ERRORS, error_response, json_body

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "tax_id", "trade_register", "logo_url", "receipt_footer"},
    required_on_create=set(),
)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/company")
@require_auth
def get_company_route():
    return jsonify({"company": settings_service.get_company_settings().to_dict()}), 200


@settings_bp.put("/company")
@require_auth
@require_admin
def update_company_route():
    try:
        patch = validate_payload(
            model=CompanySettings, payload=json_body(), policy=SETTINGS_POLICY, partial=True
        )
        settings = settings_service.update_company_settings(patch)
        return jsonify({"company": settings.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update company settings")
        return jsonify({"error": "Internal server error"}), 500
